import uuid

from models import SelectionEntry
from normalizer import normalize_class_code, normalize_course_code
from priority import priority_score


def _new_entry_id() -> str:
    return uuid.uuid4().hex


def create_selection(course_code, class_code, category, entry_id=None) -> SelectionEntry:
    """
    Build a SelectionEntry with a fresh opaque id.

    priority is fixed here from the category given now; an unknown category
    is accepted and scores 0. Raises ValueError when either code is empty.
    """
    course = normalize_course_code(course_code)
    if course is None:
        raise ValueError(f"Invalid course code: {course_code!r}")
    klass = normalize_class_code(class_code)
    if klass is None:
        raise ValueError(f"Invalid class code: {class_code!r}")
    category = category if isinstance(category, str) else ""
    return SelectionEntry(
        id=entry_id or _new_entry_id(),
        course_code=course,
        class_code=klass,
        category=category,
        priority=priority_score(category),
    )


def withdraw_selection(selections, entry_id: str) -> tuple:
    """Return the selections without entry_id. Unknown ids are a no-op."""
    return tuple(s for s in selections if s.id != entry_id)
