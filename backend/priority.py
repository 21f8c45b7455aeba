from types import MappingProxyType

# Programme-requirement categories, highest priority first.
PROGRAMME_CATEGORIES = (
    "UTown/USP courses",
    "Major core and Primary Major 1st Specialisation courses",
    "Primary Major courses",
    "Second Major Specialisation courses",
    "Faculty Requirement courses",
    "Second Major courses",
    "Restricted/Direct Minor courses",
    "Unrestricted Elective / General Education courses",
)

PRIORITY_SCORES = MappingProxyType({
    category: len(PROGRAMME_CATEGORIES) - idx
    for idx, category in enumerate(PROGRAMME_CATEGORIES)
})

UNKNOWN_CATEGORY_SCORE = 0


def priority_score(category) -> int:
    """
    Map a programme-requirement category to its bidding priority (8 down to 1).

    Unknown or missing categories score 0 instead of failing.
    """
    if not isinstance(category, str):
        return UNKNOWN_CATEGORY_SCORE
    return PRIORITY_SCORES.get(category, UNKNOWN_CATEGORY_SCORE)


def categories_with_scores() -> list[dict]:
    return [
        {"category": category, "priority": PRIORITY_SCORES[category]}
        for category in PROGRAMME_CATEGORIES
    ]
