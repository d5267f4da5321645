"""
Data agent — executes filter plans against the in-memory dataset snapshot, and
runs keyword-index searches (strict patterns first, ranked matches for the local fallback).
Pure functions of (snapshot, plan/question): the snapshot is never mutated.
"""
import logging
import re
import time
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..models import (
    DATE_OPERATORS,
    EMPTINESS_OPERATORS,
    INTENT_LAST_ACTION,
    INTENT_LIST,
    INTENTS,
    NUMERIC_OPERATORS,
    OPERATORS,
    TEXT_OPERATORS,
    default_plan,
    describe_filters,
    filter_doc,
    plan_doc,
    result_doc,
)
from ..utils.field_resolver import NOT_FOUND, resolve_field
from ..utils.normalizer import (
    DATE_COLUMN,
    FORMATTED_SUFFIX,
    PARSED_SUFFIX,
    is_blank,
    parse_date,
    text_of,
    to_number,
)
from ..utils.search_index import lookup, tokenize

logger = logging.getLogger(__name__)

MONTH_LOOKUP = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

# "last 5", "recent 10", "latest 3"
LAST_N_PATTERN = re.compile(r"\b(?:last|recent|latest)\s+(\d+)\b", re.IGNORECASE)

# Operator phrases recognized right after a column name in a question
COLUMN_OPERATOR_PHRASES = {
    "starts with": "starts_with",
    "begins with": "starts_with",
    "ends with": "ends_with",
    "finishes with": "ends_with",
    "contains": "contains",
    "has": "contains",
    "with": "contains",
    "is": "equals",
    "equals": "equals",
    "=": "equals",
}


def month_number(value: Any) -> Optional[int]:
    """6, '6', 'June', 'jun' -> 6; anything else -> None."""
    n = to_number(value)
    if n is not None:
        return int(n) if float(n).is_integer() and 1 <= n <= 12 else None
    return MONTH_LOOKUP.get(text_of(value).lower())


def _parsed_date(record: dict, column: str, classes: Dict[str, str]) -> Optional[date]:
    shadow = record.get(column + PARSED_SUFFIX)
    if isinstance(shadow, date):
        return shadow
    if classes.get(column) == DATE_COLUMN and column + PARSED_SUFFIX in record:
        return None
    return parse_date(record.get(column))


def _texts(record: dict, column: str, classes: Dict[str, str]) -> List[str]:
    """Textual representations of a cell: the value itself, plus the ISO form for date columns."""
    texts = [text_of(record.get(column)).lower()]
    if classes.get(column) == DATE_COLUMN:
        formatted = record.get(column + FORMATTED_SUFFIX)
        if isinstance(formatted, str) and formatted:
            texts.append(formatted.lower())
    return texts


def matches_filter(record: dict, f: dict, classes: Dict[str, str]) -> bool:
    """Evaluate one resolved filter against a record."""
    column, op, value = f["field"], f["operator"], f.get("value")
    if op in TEXT_OPERATORS:
        wanted = text_of(value).lower()
        texts = _texts(record, column, classes)
        if op == "contains":
            return any(wanted in t for t in texts)
        if op == "equals":
            return any(t == wanted for t in texts)
        if op == "starts_with":
            return any(t.startswith(wanted) for t in texts)
        return any(t.endswith(wanted) for t in texts)
    if op in DATE_OPERATORS:
        parsed = _parsed_date(record, column, classes)
        if parsed is None:
            return False
        if op == "month":
            return month_number(value) == parsed.month
        year = to_number(value)
        return year is not None and int(year) == parsed.year
    if op in NUMERIC_OPERATORS:
        left, right = to_number(record.get(column)), to_number(value)
        if left is None or right is None:
            return False
        return left > right if op == "greater_than" else left < right
    if op in EMPTINESS_OPERATORS:
        empty = is_blank(record.get(column))
        return empty if op == "is_empty" else not empty
    return False


def recency_column(columns: Sequence[str], classes: Dict[str, str]) -> Optional[str]:
    """Canonical date column, else any column whose name contains 'date'."""
    col = resolve_field("date", columns)
    if col is not NOT_FOUND and classes.get(col) == DATE_COLUMN:
        return col
    for c in columns:
        if "date" in c.lower():
            return c
    return None


def sort_by_recent(records: Sequence[dict], columns: Sequence[str], classes: Dict[str, str]) -> List[dict]:
    """Newest first by the best available date; undated records last, original order kept for ties."""
    col = recency_column(columns, classes)
    if col is None:
        logger.info("data_agent: no date column for recency sort; original order kept")
        return list(records)

    def key(r):
        d = _parsed_date(r, col, classes)
        return (d is not None, d or date.min)

    return sorted(records, key=key, reverse=True)


def execute_plan(snapshot, plan: Optional[dict]) -> dict:
    """
    Run a FilterPlan against the snapshot. Filters whose field does not resolve
    (or whose operator is unknown) are dropped. AND semantics across filters.
    last_action keeps only the most recent match; total_count is the match count.
    """
    started = time.perf_counter()
    plan = plan or default_plan()
    intent = plan.get("intent") if plan.get("intent") in INTENTS else INTENT_LIST
    classes = snapshot.column_classes

    applied: List[dict] = []
    dropped: List[dict] = []
    for f in plan.get("filters") or []:
        col = resolve_field(f.get("field"), snapshot.columns)
        if col is NOT_FOUND or f.get("operator") not in OPERATORS:
            dropped.append(f)
            continue
        applied.append(filter_doc(col, f["operator"], f.get("value")))

    matched = [r for r in snapshot.records if all(matches_filter(r, f, classes) for f in applied)]
    total = len(matched)
    if intent == INTENT_LAST_ACTION:
        matched = sort_by_recent(matched, snapshot.columns, classes)[:1]

    duration_ms = (time.perf_counter() - started) * 1000
    logger.info("data_agent: intent=%s applied=%s dropped=%s matched=%s duration_ms=%.2f",
                intent, len(applied), len(dropped), total, duration_ms)
    return result_doc(
        matched,
        describe_filters(applied),
        duration_ms,
        intent=intent,
        applied_filters=applied,
        dropped_filters=dropped,
        total_count=total,
    )


def _column_filters(snapshot, question: str) -> List[dict]:
    """'<column> is|contains|starts with|ends with <value>' phrases; longer column names claim text first."""
    working = question.lower()
    filters = []
    phrases = "|".join(re.escape(p) for p in sorted(COLUMN_OPERATOR_PHRASES, key=len, reverse=True))
    for col in sorted(snapshot.columns, key=len, reverse=True):
        col_lower = col.lower()
        if col_lower not in working:
            continue
        m = re.search(
            r"\b" + re.escape(col_lower) + r"\s*(" + phrases + r")\s+['\"]?(.+?)['\"]?\s*(?:[?.!]|$)",
            working,
        )
        if not m:
            continue
        value = re.split(r"\s+and(?:\s+|$)", m.group(2))[0].strip()
        if not value:
            continue
        filters.append(filter_doc(col, COLUMN_OPERATOR_PHRASES[m.group(1)], value))
        working = working[:m.start()] + " " * (m.end() - m.start()) + working[m.end():]
    return filters


def search_keywords(snapshot, question: str, loose: bool = False) -> dict:
    """
    Keyword-index search.
    Strict (default): "last/recent N" -> N most recent records; explicit column phrases
    -> executed filters. Anything else returns no results.
    Loose: records whose indexed columns contain question keywords, ranked by hit count.
    Returns a query result with extra keys: mode, matched_keywords, matched_columns, plan.
    """
    started = time.perf_counter()
    q = (question or "").strip()
    hits = lookup(snapshot.keywords, q)
    matched_columns = sorted({c for cols in hits.values() for c in cols})
    classes = snapshot.column_classes

    mode = None
    plan = plan_doc(INTENT_LIST)
    records: List[dict] = []
    description = "no keyword match"

    m = LAST_N_PATTERN.search(q)
    if not loose and m and int(m.group(1)) > 0:
        n = int(m.group(1))
        mode = "last_n"
        records = sort_by_recent(snapshot.records, snapshot.columns, classes)[:n]
        description = f"the {n} most recent records"
    elif not loose:
        filters = _column_filters(snapshot, q)
        if filters:
            mode = "filters"
            plan = plan_doc(INTENT_LIST, filters)
            executed = execute_plan(snapshot, plan)
            records = executed["records"]
            description = executed["description"]
    elif hits:
        mode = "ranked"
        scored = []
        for r in snapshot.records:
            score = 0
            for token, cols in hits.items():
                if any(token in tokenize(r.get(c)) for c in cols):
                    score += 1
            if score:
                scored.append((score, r))
        scored.sort(key=lambda x: x[0], reverse=True)
        records = [r for _, r in scored]
        description = "records mentioning " + ", ".join(f"\"{t}\"" for t in hits)

    duration_ms = (time.perf_counter() - started) * 1000
    logger.info("data_agent: keyword_search mode=%s loose=%s keywords=%s results=%s",
                mode or "none", loose, list(hits), len(records))
    out = result_doc(records, description, duration_ms, intent=INTENT_LIST,
                     applied_filters=plan["filters"])
    out["mode"] = mode
    out["matched_keywords"] = list(hits)
    out["matched_columns"] = matched_columns
    out["plan"] = plan
    return out
