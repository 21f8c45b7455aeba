import io
import math
import os
from dataclasses import dataclass, field

import pandas as pd

from bidding_rules import HISTORICAL_ROUNDS
from models import HistoricalRecord
from normalizer import normalize_course_code


REQUIRED_COLUMNS = ("course_code", "course_class")
RATE_COLUMNS = tuple(f"Rd{r}_rate" for r in HISTORICAL_ROUNDS)
TF_COLUMNS = tuple(f"Rd{r}_TF" for r in HISTORICAL_ROUNDS)

_INF_TOKENS = {"inf", "+inf", "infinity", "∞"}
_BOOL_TRUTHY = {"true", "1", "yes", "y"}


class CatalogValidationError(ValueError):
    """Raised when a history file is structurally unusable."""


@dataclass(frozen=True)
class Catalog:
    records: tuple = ()
    course_class_map: dict = field(default_factory=dict)
    source: str = ""

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


def _is_blank(x) -> bool:
    if x is None:
        return True
    if isinstance(x, float) and math.isnan(x):
        return True
    return str(x).strip() == ""


def _coerce_rate(x, col: str, row_no: int):
    """Rate cell -> float, math.inf for the 'inf' token, None when blank."""
    if _is_blank(x):
        return None
    if isinstance(x, bool):
        raise CatalogValidationError(f"Invalid rate value in {col} for row {row_no}")
    if isinstance(x, (int, float)):
        value = float(x)
    else:
        token = str(x).strip()
        if token.lower() in _INF_TOKENS:
            return math.inf
        try:
            value = float(token)
        except ValueError:
            raise CatalogValidationError(
                f"Invalid rate value in {col} for row {row_no}"
            ) from None
    if math.isnan(value) or value < 0:
        raise CatalogValidationError(f"Invalid rate value in {col} for row {row_no}")
    return value


def _coerce_flag(x):
    """TF cell -> bool, None when blank. Handles bools, 1/0 and TRUE/false strings."""
    if _is_blank(x):
        return None
    if isinstance(x, bool):
        return x
    if isinstance(x, (int, float)):
        return bool(x)
    return str(x).strip().lower() in _BOOL_TRUTHY


def _infer_flag(rate):
    """Flag for a round whose TF cell is missing: filled iff demand fit supply."""
    if rate is None:
        return None
    if math.isinf(rate):
        return False
    return rate <= 1


def _clean_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    keep = [c for c in df.columns if c and not c.startswith("Unnamed:")]
    return df[keep]


def parse_history_frame(df: pd.DataFrame) -> tuple:
    """
    Convert a raw history table into HistoricalRecord objects.

    Expected columns: course_code, course_class, Rd{0..3}_rate and optional
    Rd{0..3}_TF. Missing round columns mean "no data" for that round.
    Raises CatalogValidationError on missing headers or bad cells.
    """
    if df is None:
        raise CatalogValidationError("No valid data found in the history file")
    df = _clean_columns(df)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise CatalogValidationError(f"Missing required headers: {', '.join(missing)}")
    if not any(c in df.columns for c in RATE_COLUMNS):
        raise CatalogValidationError(
            "History file must contain at least one round data column "
            f"({', '.join(RATE_COLUMNS)})"
        )

    records = []
    for pos, row in enumerate(df.to_dict(orient="records"), start=1):
        if all(_is_blank(v) for v in row.values()):
            continue
        course_code = row.get("course_code")
        class_code = row.get("course_class")
        if _is_blank(course_code):
            raise CatalogValidationError(f"Invalid course code in row {pos}")
        if _is_blank(class_code):
            raise CatalogValidationError(f"Invalid class code in row {pos}")

        rates = []
        flags = []
        for rate_col, tf_col in zip(RATE_COLUMNS, TF_COLUMNS):
            rate = _coerce_rate(row.get(rate_col), rate_col, pos)
            flag = _coerce_flag(row.get(tf_col))
            if flag is None:
                flag = _infer_flag(rate)
            rates.append(rate)
            flags.append(flag)

        records.append(HistoricalRecord(
            course_code=normalize_course_code(str(course_code)),
            class_code=str(class_code).strip(),
            filled=tuple(flags),
            rates=tuple(rates),
        ))

    if not records:
        raise CatalogValidationError("No valid data found in the history file")
    return tuple(records)


def build_course_class_map(records) -> dict[str, list[str]]:
    """course_code -> sorted distinct class codes, for the course picker."""
    classes: dict[str, set[str]] = {}
    for record in records:
        code = record.course_code.strip()
        classes.setdefault(code, set()).add(record.class_code.strip())
    return {code: sorted(classes[code]) for code in sorted(classes)}


def find_duplicate_keys(records) -> list[tuple[str, str]]:
    seen: set = set()
    dupes: list = []
    for record in records:
        if record.key in seen and record.key not in dupes:
            dupes.append(record.key)
        seen.add(record.key)
    return dupes


def _read_csv(source) -> pd.DataFrame:
    try:
        return pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        raise CatalogValidationError("History file is empty or contains only headers") from None
    except pd.errors.ParserError as exc:
        raise CatalogValidationError(f"History file could not be parsed: {exc}") from None


def _read_history_frame(path: str) -> pd.DataFrame:
    if os.path.isdir(path):
        csv_files = sorted(f for f in os.listdir(path) if f.lower().endswith(".csv"))
        if not csv_files:
            raise FileNotFoundError(f"No .csv history files in {path}")
        frames = [_read_csv(os.path.join(path, f)) for f in csv_files]
        return pd.concat(frames, ignore_index=True)
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    if path.lower().endswith((".xlsx", ".xlsm")):
        return pd.read_excel(path, dtype=str, engine="openpyxl")
    return _read_csv(path)


def _build_catalog(records: tuple, source: str) -> Catalog:
    dupes = find_duplicate_keys(records)
    if dupes:
        print(f"[WARN] {len(dupes)} duplicate course/class row(s); first row wins: {dupes}")
    return Catalog(
        records=records,
        course_class_map=build_course_class_map(records),
        source=source,
    )


def load_catalog(path: str) -> Catalog:
    """Load historical bidding data from a CSV, an xlsx workbook or a folder of CSVs.
    Raises on file/schema errors."""
    records = parse_history_frame(_read_history_frame(path))
    print(f"[INFO] History source: {path} ({len(records)} rows)")
    return _build_catalog(records, source=str(path))


def load_catalog_from_text(text: str, source: str = "upload") -> Catalog:
    """Parse an uploaded CSV body. Raises CatalogValidationError on bad data."""
    if not text or not text.strip():
        raise CatalogValidationError("History file is empty or contains only headers")
    records = parse_history_frame(_read_csv(io.StringIO(text)))
    print(f"[INFO] History source: {source} ({len(records)} rows)")
    return _build_catalog(records, source=source)
