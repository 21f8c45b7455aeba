import re

# Matches: ACC1701, ACC1701X, CS1010S, GEA1000N, "cs 1010s", "ACC-1701X", etc.
CANONICAL = re.compile(r'^([A-Za-z]{2,4})\s*[-]?\s*(\d{4}[A-Za-z]{0,2})$')


def normalize_course_code(raw) -> str | None:
    """
    Normalizes a course code the same way for history rows and selections.
    Handles: 'acc1701x', 'ACC-1701X', 'ACC 1701X' -> 'ACC1701X'
    Codes outside the usual shape ('DTK1234-A', 'GEC1000/GEX1000') are only
    trimmed and upper-cased.
    Returns None for empty input.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    m = CANONICAL.match(raw.strip())
    if m:
        return f"{m.group(1).upper()}{m.group(2).upper()}"
    return raw.strip().upper()


def normalize_class_code(raw) -> str | None:
    """Class codes ('SA1', 'LV2') are matched as-is after trimming."""
    if not isinstance(raw, str) or not raw.strip():
        return None
    return raw.strip()


def normalize_selection_rows(rows) -> dict:
    """
    Normalizes raw selection dicts from a request body.

    Returns:
      {
        "valid":   [{"course_code": "ACC1701", "class_code": "LV1", "category": ..., "id": ...}],
        "invalid": [{"index": 2, "reason": "course_code is required."}]
      }
    """
    valid = []
    invalid = []
    for idx, row in enumerate(rows or []):
        if not isinstance(row, dict):
            invalid.append({"index": idx, "reason": "selection must be an object."})
            continue
        course_code = normalize_course_code(row.get("course_code"))
        if course_code is None:
            invalid.append({"index": idx, "reason": "course_code is required."})
            continue
        class_code = normalize_class_code(row.get("class_code"))
        if class_code is None:
            invalid.append({"index": idx, "reason": "class_code is required."})
            continue
        entry_id = row.get("id")
        valid.append({
            "course_code": course_code,
            "class_code": class_code,
            "category": str(row.get("category") or ""),
            "id": str(entry_id).strip() if entry_id not in (None, "") else None,
        })
    return {"valid": valid, "invalid": invalid}
