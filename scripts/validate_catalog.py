"""
Validator for historical bidding data files.

Checks that a history file loads cleanly and flags rows that will never
contribute to a ranking. Importable for tests and runnable as a CLI.

Usage:
    python scripts/validate_catalog.py
    python scripts/validate_catalog.py --path data/bidding_history.csv
"""

import argparse
import os
import sys

BACKEND_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend")
sys.path.insert(0, BACKEND_DIR)

from bidding_rules import HISTORICAL_ROUNDS
from data_loader import CatalogValidationError, find_duplicate_keys, load_catalog


DEFAULT_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "data")


# ── Validation result ─────────────────────────────────────────────────────────

class ValidationResult:
    """Collects errors and warnings for a single history file."""

    def __init__(self, path: str):
        self.path = path
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.record_count = 0

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] History '{self.path}' ({self.record_count} rows)"]
        for e in self.errors:
            lines.append(f"  [ERROR] {e}")
        for w in self.warnings:
            lines.append(f"  [WARN]  {w}")
        if self.passed and not self.warnings:
            lines.append("  All checks passed.")
        return "\n".join(lines)


# ── Individual checks ─────────────────────────────────────────────────────────

def check_duplicate_keys(records, result: ValidationResult) -> None:
    """Each course/class pair should appear once; later rows are ignored."""
    for course_code, class_code in find_duplicate_keys(records):
        result.warn(f"{course_code} {class_code} appears more than once; first row wins.")


def check_rows_have_round_data(records, result: ValidationResult) -> None:
    """Rows with no rate in any round rank as 'never oversubscribed'."""
    empty = [
        f"{r.course_code} {r.class_code}"
        for r in records
        if all(r.rate(round_no) is None for round_no in HISTORICAL_ROUNDS)
    ]
    if empty:
        result.warn(f"{len(empty)} row(s) have no round data: {empty}")


def validate_catalog(path: str) -> ValidationResult:
    result = ValidationResult(path)
    try:
        catalog = load_catalog(path)
    except FileNotFoundError as exc:
        result.error(f"File not found: {exc}")
        return result
    except CatalogValidationError as exc:
        result.error(str(exc))
        return result

    result.record_count = len(catalog)
    check_duplicate_keys(catalog.records, result)
    check_rows_have_round_data(catalog.records, result)
    return result


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Validate a historical bidding data file.")
    parser.add_argument("--path", default=DEFAULT_PATH, help="CSV/xlsx file or folder of CSVs")
    args = parser.parse_args(argv)

    result = validate_catalog(args.path)
    print(result.summary())
    return 0 if result.passed else 1


if __name__ == "__main__":
    raise SystemExit(main())
