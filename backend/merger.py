from models import MergedEntry


def _first_record_index(catalog) -> dict:
    """(course_code, class_code) -> first matching record, in catalog order."""
    index = {}
    for record in catalog:
        index.setdefault(record.key, record)
    return index


def merge_selections(selections, catalog) -> list[MergedEntry]:
    """
    Join selections with historical records on trimmed (course_code, class_code).

    Matching is exact and case-sensitive after trimming. Selections without a
    record are dropped; duplicate catalog keys resolve to the first record.
    Output keeps selection order.
    """
    index = _first_record_index(catalog)
    merged = []
    for selection in selections:
        record = index.get(selection.key)
        if record is None:
            continue
        merged.append(MergedEntry(selection=selection, record=record))
    return merged


def find_unmatched(selections, catalog) -> list:
    """Selections that merge_selections would drop, in selection order."""
    index = _first_record_index(catalog)
    return [s for s in selections if s.key not in index]
