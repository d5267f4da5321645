"""
Normalize raw spreadsheet rows into typed records with search-friendly shadow fields.
Column class (date / identifier / free text / other) is decided from the header name.
The transform is pure: identical header + rows always produce identical records.
"""
import logging
import math
import re
import warnings
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

# Column classes
DATE_COLUMN = "date"
IDENTIFIER_COLUMN = "identifier"
FREE_TEXT_COLUMN = "free_text"
OTHER_COLUMN = "other"

# Header substrings (after lower/strip) that decide the column class
DATE_HINTS = ("date",)
IDENTIFIER_HINTS = ("mmt",)
FREE_TEXT_HINTS = ("location", "description", "action")

# Shadow field suffixes
SEARCH_SUFFIX = "_search"
UPPER_SUFFIX = "_upper"
NORMALIZED_SUFFIX = "_normalized"
PARSED_SUFFIX = "_parsed"
MONTH_SUFFIX = "_month"
YEAR_SUFFIX = "_year"
FORMATTED_SUFFIX = "_formatted"

INVALID_DATE = "Invalid Date"

# Numeric coercion looks at this many non-empty values of an "other" column
NUMERIC_SAMPLE_SIZE = 50

# Spreadsheet serial day numbers accepted as dates (roughly 1968..2036)
SERIAL_DATE_MIN = 25000
SERIAL_DATE_MAX = 50000
SERIAL_EPOCH = date(1899, 12, 30)

# Explicit formats tried after the native parse, in order
DATE_FORMAT_LADDER = (
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%Y-%m-%d",
)

# Native text parse only runs on strings shaped like a date (year or d/m/y groups)
_DATE_SHAPE = re.compile(r"\d{4}|\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2}")


def classify_column(name: str) -> str:
    """Return the column class for a header name. First matching class wins."""
    n = str(name or "").strip().lower()
    if any(h in n for h in DATE_HINTS):
        return DATE_COLUMN
    if any(h in n for h in IDENTIFIER_HINTS):
        return IDENTIFIER_COLUMN
    if any(h in n for h in FREE_TEXT_HINTS):
        return FREE_TEXT_COLUMN
    return OTHER_COLUMN


def is_blank(value: Any) -> bool:
    """None, NaN/NaT, or an empty/whitespace string."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def text_of(value: Any) -> str:
    """Textual representation of a cell: integral floats lose '.0', dates render ISO."""
    if is_blank(value):
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.hour == 0 and value.minute == 0 and value.second == 0:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def to_number(value: Any) -> Optional[float]:
    """Coerce to int/float or None. Strips thousands separators; rejects NaN/inf and booleans."""
    if isinstance(value, bool) or is_blank(value):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    s = str(value).strip().replace(",", "")
    if not s:
        return None
    try:
        n = float(s)
    except ValueError:
        return None
    if not math.isfinite(n):
        return None
    return int(n) if n.is_integer() and re.fullmatch(r"[+-]?\d+", s) else n


def normalize_text(value: Any) -> str:
    """Lowercase, punctuation replaced by spaces, whitespace collapsed."""
    s = re.sub(r"[^\w\s]", " ", text_of(value).lower())
    return re.sub(r"\s+", " ", s).strip()


def _native_parse(value: Any) -> Optional[date]:
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return None if pd.isna(value) else value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        if SERIAL_DATE_MIN < value < SERIAL_DATE_MAX:
            return SERIAL_EPOCH + timedelta(days=int(value))
        return None
    s = str(value).strip()
    if not _DATE_SHAPE.search(s):
        return None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            ts = pd.to_datetime(s, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    return ts.date()


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a cell into a date using the ordered ladder:
    native parse (date objects, serial numbers, pandas), then MM/DD/YYYY,
    DD/MM/YYYY, YYYY/MM/DD. Returns None when every attempt fails.
    """
    if is_blank(value):
        return None
    parsed = _native_parse(value)
    if parsed is not None:
        return parsed
    s = str(value).strip()
    for fmt in DATE_FORMAT_LADDER:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


def date_shadow(value: Any) -> Dict[str, Any]:
    """{parsed, month, year, formatted}. Empty cell -> formatted ''; failed parse -> 'Invalid Date'."""
    if is_blank(value):
        return {"parsed": None, "month": None, "year": None, "formatted": ""}
    parsed = parse_date(value)
    if parsed is None:
        return {"parsed": None, "month": None, "year": None, "formatted": INVALID_DATE}
    return {
        "parsed": parsed,
        "month": parsed.month,
        "year": parsed.year,
        "formatted": parsed.isoformat(),
    }


def _clean_headers(header: Sequence[Any]) -> List[str]:
    """Trim headers; blank -> 'Column N'; duplicates get _1, _2, ... suffixes."""
    names = []
    for i, h in enumerate(header):
        s = text_of(h)
        names.append(s if s else f"Column {i + 1}")
    seen: Dict[str, int] = {}
    unique = []
    for n in names:
        if n in seen:
            seen[n] += 1
            unique.append(f"{n}_{seen[n]}")
        else:
            seen[n] = 0
            unique.append(n)
    return unique


def _row_cells(row: Any, raw_header: Sequence[Any], width: int) -> List[Any]:
    """Positional cells for a row; dict rows are keyed by the raw header."""
    if isinstance(row, dict):
        return [row.get(h, "") for h in raw_header]
    cells = list(row or [])[:width]
    cells.extend([""] * (width - len(cells)))
    return ["" if c is None else c for c in cells]


def _numeric_columns(columns: List[str], classes: Dict[str, str], body: List[List[Any]]) -> set:
    """'Other' columns whose sampled non-empty values all parse as numbers."""
    numeric = set()
    for idx, col in enumerate(columns):
        if classes[col] != OTHER_COLUMN:
            continue
        sample = []
        for cells in body:
            if not is_blank(cells[idx]):
                sample.append(cells[idx])
                if len(sample) >= NUMERIC_SAMPLE_SIZE:
                    break
        if sample and all(to_number(v) is not None for v in sample):
            numeric.add(col)
    return numeric


def _put_shadow(record: dict, key: str, value: Any, originals: set) -> None:
    if key not in originals:
        record[key] = value


def normalize_rows(header: Sequence[Any], rows: Iterable[Any]) -> Tuple[List[dict], List[str]]:
    """
    Convert header + body rows into NormalizedRecords.
    - Missing cells default to ''; fully blank rows are dropped.
    - Date-like columns get _search/_parsed/_month/_year/_formatted shadows.
    - Identifier columns are trimmed verbatim with a lowercase _search shadow.
    - Free-text columns are trimmed with _search/_upper/_normalized shadows.
    - Other columns are kept as-is, coerced to numbers when every sampled value is numeric.
    Shadow keys that collide with an original header are skipped.
    Returns (records, column names).
    """
    raw_header = list(header or [])
    columns = _clean_headers(raw_header)
    if not columns:
        return [], []
    width = len(columns)
    originals = set(columns)
    classes = {c: classify_column(c) for c in columns}

    for col in columns:
        if classes[col] == OTHER_COLUMN:
            continue
        for suffix in (SEARCH_SUFFIX, UPPER_SUFFIX, NORMALIZED_SUFFIX, PARSED_SUFFIX,
                       MONTH_SUFFIX, YEAR_SUFFIX, FORMATTED_SUFFIX):
            if col + suffix in originals:
                logger.warning("normalizer: shadow_collision column=%s shadow=%s kept_original=true",
                               col, col + suffix)

    body = []
    for row in rows or []:
        cells = _row_cells(row, raw_header, width)
        if all(is_blank(c) for c in cells):
            continue
        body.append(cells)

    numeric = _numeric_columns(columns, classes, body)

    records = []
    for cells in body:
        record: Dict[str, Any] = {}
        for col, raw in zip(columns, cells):
            value = raw.strip() if isinstance(raw, str) else raw
            record[col] = value
        for col in columns:
            value = record[col]
            kind = classes[col]
            if kind == DATE_COLUMN:
                shadow = date_shadow(value)
                _put_shadow(record, col + SEARCH_SUFFIX, text_of(value).lower(), originals)
                _put_shadow(record, col + PARSED_SUFFIX, shadow["parsed"], originals)
                _put_shadow(record, col + MONTH_SUFFIX, shadow["month"], originals)
                _put_shadow(record, col + YEAR_SUFFIX, shadow["year"], originals)
                _put_shadow(record, col + FORMATTED_SUFFIX, shadow["formatted"], originals)
            elif kind == IDENTIFIER_COLUMN:
                _put_shadow(record, col + SEARCH_SUFFIX, text_of(value).lower(), originals)
            elif kind == FREE_TEXT_COLUMN:
                text = text_of(value)
                _put_shadow(record, col + SEARCH_SUFFIX, text.lower(), originals)
                _put_shadow(record, col + UPPER_SUFFIX, text.upper(), originals)
                _put_shadow(record, col + NORMALIZED_SUFFIX, normalize_text(value), originals)
            elif col in numeric and not is_blank(value):
                n = to_number(value)
                if n is not None:
                    record[col] = n
        records.append(record)

    logger.info("normalizer: columns=%s data_rows=%s numeric_columns=%s",
                len(columns), len(records), sorted(numeric))
    return records, columns


def rows_from_dataframe(df: pd.DataFrame) -> Tuple[List[str], List[List[Any]]]:
    """Header + positional rows from a DataFrame; NaN/NaT become None."""
    if df is None or df.empty:
        return ([str(c) for c in df.columns] if df is not None else []), []
    clean = df.astype(object).where(pd.notna(df), None)
    return [str(c) for c in clean.columns], clean.values.tolist()
