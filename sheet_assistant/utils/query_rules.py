"""
Query rules — deterministic question -> FilterPlan table used when the language model
is unavailable or its plan is unusable.
RULES is evaluated in order; the first predicate that holds builds the plan.
No rule matches -> default plan (all records, intent list).
"""
import logging
import re
from typing import Any, Callable, List, Optional, Tuple

from ..models import (
    INTENT_COUNT,
    INTENT_DETAILS,
    INTENT_LAST_ACTION,
    INTENT_LIST,
    INTENT_LIST_ALL,
    INTENT_UNIQUE_VALUES,
    default_plan,
    filter_doc,
    plan_doc,
)
from .field_resolver import FIELD_PATTERNS, NOT_FOUND, resolve_field, semantic_key
from .normalizer import FREE_TEXT_COLUMN, is_blank, parse_date
from .search_index import lookup

logger = logging.getLogger(__name__)

# Semantic field names used in rule-built plans (resolved against the dataset by the executor)
LOCATION_FIELD = "Location"
DATE_FIELD = "Date"
IDENTIFIER_FIELD = "identifier"
ACTION_FIELD = "Action"

MONTH_NAMES = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

COUNT_PATTERNS = [
    r"\bhow\s+many\b",
    r"\bcount\b",
    r"\bnumber\s+of\b",
    r"\btotal\s+(?:number|count)\b",
]

LAST_ACTION_PATTERNS = [
    r"\b(?:last|latest|most\s+recent|recent)\s+(?:action|activity|work|job|repair|maintenance|thing\s+done)\b",
    r"\bwhat\s+(?:was|is)\s+(?:the\s+)?(?:last|latest)\b",
    r"\bwhat\s+happened\s+(?:last|most\s+recently)\b",
    r"\b(?:last|latest)\s+(?:done|performed|reported)\b",
]

DUMP_PATTERNS = [
    r"\ball\s+(?:the\s+)?\w+",
    r"\bevery\s+\w+",
    r"\blist\s+of\s+(?:all\s+)?\w+",
    r"\b(?:unique|distinct|different)\s+\w+",
]

UNIQUE_PATTERNS = [r"\bunique\b", r"\bdistinct\b", r"\bdifferent\b"]

KEYWORD_CUE_PATTERNS = [
    r"\b(?:mentioning|mentions|containing|contains|about|involving|regarding|related\s+to|with)\s+['\"]?([\w\-]{2,})",
    r"\b(?:issues?|problems?|records?|entries|jobs?)\s+(?:of|for)\s+['\"]?([\w\-]{2,})",
]

LIST_PATTERNS = [
    r"\bshow\b",
    r"\blist\b",
    r"\bdisplay\b",
    r"\bgive\b",
    r"\bfind\b",
    r"\bget\b",
    r"\bwhat\b",
    r"\bwhich\b",
]

# "MMT 12345", "mmt no. A-77", "MMT number: 9001"
IDENTIFIER_PATTERN = re.compile(
    r"\bmmt\s*(?:no\.?|number|#)?\s*[:#]?\s*([A-Za-z0-9\-]*\d[A-Za-z0-9\-]*)",
    re.IGNORECASE,
)

# "at A St", "in Building 4", "for 387 Lemon Circle" (stops at the next preposition or punctuation)
LOCATION_PATTERN = re.compile(
    r"\b(?:at|in|for|from)\s+(.+?)(?=\s+(?:in|at|on|during|for|from|since|between|with)\b|[?.!,;]|$)",
    re.IGNORECASE,
)

DATE_LITERAL_PATTERNS = [
    re.compile(r"\b\d{4}[/\-]\d{1,2}[/\-]\d{1,2}\b"),
    re.compile(r"\b\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b"),
    re.compile(r"\b(?:january|february|march|april|may|june|july|august|september|october|november|december)"
               r"\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4}\b", re.IGNORECASE),
    re.compile(r"\b\d{1,2}(?:st|nd|rd|th)?\s+(?:january|february|march|april|may|june|july|august|september|"
               r"october|november|december),?\s+\d{4}\b", re.IGNORECASE),
]

YEAR_PATTERN = re.compile(r"\b(19\d{2}|20\d{2})\b")

# Words after "at/in/for" that are never a location
NON_LOCATION_WORDS = {
    "the", "all", "total", "this", "that", "these", "those", "my", "our", "data", "file", "dataset",
    "sheet", "spreadsheet", "records", "record", "entries", "each", "every", "general",
    "last", "latest", "recent", "year", "month", "week", "today", "yesterday", "detail", "details",
}

# A rule: (name, predicate(question, snapshot) -> bool, builder(question, snapshot) -> plan)
Rule = Tuple[str, Callable[[str, Any], bool], Callable[[str, Any], dict]]


def _any_pattern(patterns: List[str], q: str) -> bool:
    return any(re.search(p, q, re.IGNORECASE) for p in patterns)


# ---------------------------------------------------------------------------
# Extraction helpers
# ---------------------------------------------------------------------------
def extract_identifier(question: str) -> Optional[str]:
    m = IDENTIFIER_PATTERN.search(question or "")
    return m.group(1).strip("-") if m else None


def extract_date_literal(question: str) -> Optional[str]:
    """First explicit calendar date in the question, as YYYY-MM-DD."""
    for pattern in DATE_LITERAL_PATTERNS:
        m = pattern.search(question or "")
        if not m:
            continue
        text = re.sub(r"(\d)(?:st|nd|rd|th)\b", r"\1", m.group(0)).replace(",", "")
        parsed = parse_date(text)
        if parsed is not None:
            return parsed.isoformat()
    return None


def _without_date_literals(question: str) -> str:
    q = question or ""
    for pattern in DATE_LITERAL_PATTERNS:
        q = pattern.sub(" ", q)
    return q


def extract_month(question: str) -> Optional[int]:
    q = _without_date_literals(question).lower()
    for word in re.findall(r"[a-z]+", q):
        if word not in MONTH_NAMES:
            continue
        # "may I see ..." is not a month
        if word == "may" and re.search(r"\bmay\s+(?:i|we|you)\b", q):
            continue
        return MONTH_NAMES[word]
    return None


def extract_year(question: str) -> Optional[int]:
    m = YEAR_PATTERN.search(_without_date_literals(question))
    return int(m.group(1)) if m else None


def _is_location_candidate(text: str) -> bool:
    words = text.lower().split()
    if not words or words[0] in NON_LOCATION_WORDS:
        return False
    if len(words) == 1 and (words[0] in MONTH_NAMES or YEAR_PATTERN.fullmatch(words[0])):
        return False
    if all(w in MONTH_NAMES or YEAR_PATTERN.fullmatch(w) or w.isdigit() for w in words):
        return False
    return True


def extract_location(question: str) -> Optional[str]:
    """Text after at/in/for/from that is not a month, year or generic word."""
    q = _without_date_literals(question)
    for m in LOCATION_PATTERN.finditer(q):
        candidate = re.sub(r"^(?:the|location|site|address)\s+", "", m.group(1).strip(), flags=re.IGNORECASE)
        candidate = candidate.strip(" '\"")
        if _is_location_candidate(candidate):
            return candidate
    return None


def mentioned_column(question: str, snapshot) -> Optional[str]:
    """Dataset column named in the question, directly or through a semantic field word."""
    if snapshot is None:
        return None
    q = question.lower()
    for col in sorted(snapshot.columns, key=len, reverse=True):
        if re.search(r"\b" + re.escape(col.lower()) + r"s?\b", q):
            return col
    for word in re.findall(r"[a-z]+(?:\s+no)?", q):
        if semantic_key(word):
            col = resolve_field(word, snapshot.columns)
            if col is not NOT_FOUND:
                return col
    return None


def _keyword_column(token: str, snapshot) -> str:
    """Owning column for a keyword: action/description columns first, else the first owner, else Action."""
    if snapshot is None:
        return ACTION_FIELD
    owners = snapshot.keywords.get(token.lower())
    if not owners:
        return ACTION_FIELD
    preferred = FIELD_PATTERNS["action"] + FIELD_PATTERNS["description"]
    for col in snapshot.columns:
        if col in owners and any(p in col.lower() for p in preferred):
            return col
    for col in snapshot.columns:
        if col in owners:
            return col
    return ACTION_FIELD


def extract_keyword(question: str, snapshot) -> Optional[Tuple[str, str]]:
    """(field, value) for a specific-keyword question: quoted text, a cue word, or an indexed free-text token."""
    quoted = re.search(r"(?:^|\s)[\"']([^\"']{2,})[\"'](?=\s|[?.!,]|$)", question or "")
    if quoted:
        value = quoted.group(1).strip()
        first = value.split()[0] if value.split() else value
        return _keyword_column(first, snapshot), value
    for pattern in KEYWORD_CUE_PATTERNS:
        m = re.search(pattern, question or "", re.IGNORECASE)
        if m and m.group(1).lower() not in NON_LOCATION_WORDS:
            return _keyword_column(m.group(1), snapshot), m.group(1)
    if snapshot is not None:
        location = (extract_location(question) or "").lower()
        for token, owners in lookup(snapshot.keywords, question).items():
            if token in location or token in MONTH_NAMES or YEAR_PATTERN.fullmatch(token):
                continue
            if any(snapshot.column_classes.get(c) == FREE_TEXT_COLUMN for c in owners):
                return _keyword_column(token, snapshot), token
    return None


def _scope_filters(question: str) -> List[dict]:
    """Location / month / year filters found in the question."""
    filters = []
    location = extract_location(question)
    if location:
        filters.append(filter_doc(LOCATION_FIELD, "contains", location))
    month = extract_month(question)
    if month:
        filters.append(filter_doc(DATE_FIELD, "month", month))
    year = extract_year(question)
    if year:
        filters.append(filter_doc(DATE_FIELD, "year", year))
    return filters


# ---------------------------------------------------------------------------
# Predicates and builders
# ---------------------------------------------------------------------------
def _is_identifier_lookup(q: str, snapshot) -> bool:
    # "how many ... MMT 1004" is a count, not a lookup
    return extract_identifier(q) is not None and not _is_count(q, snapshot)


def _build_identifier_lookup(q: str, snapshot) -> dict:
    # "MMT 1004" should find "MMT-1004"
    return plan_doc(INTENT_DETAILS, [filter_doc(IDENTIFIER_FIELD, "ends_with", extract_identifier(q))])


def _is_count(q: str, snapshot) -> bool:
    return _any_pattern(COUNT_PATTERNS, q)


def _most_complete_column(snapshot) -> Optional[str]:
    """Column with the fewest blank cells (first one on ties); None without columns."""
    if snapshot is None or not snapshot.columns:
        return None
    return min(
        snapshot.columns,
        key=lambda c: sum(1 for r in snapshot.records if is_blank(r.get(c))),
    )


def _build_count(q: str, snapshot) -> dict:
    filters = _scope_filters(q)
    identifier = extract_identifier(q)
    if identifier:
        filters.append(filter_doc(IDENTIFIER_FIELD, "ends_with", identifier))
    if not filters:
        keyword = extract_keyword(q, snapshot)
        if keyword:
            filters.append(filter_doc(keyword[0], "contains", keyword[1]))
    if not filters:
        # counting every record still needs an explicit predicate
        filters.append(filter_doc(_most_complete_column(snapshot) or IDENTIFIER_FIELD, "is_not_empty"))
    return plan_doc(INTENT_COUNT, filters)


def _is_last_action(q: str, snapshot) -> bool:
    return _any_pattern(LAST_ACTION_PATTERNS, q)


def _build_last_action(q: str, snapshot) -> dict:
    location = extract_location(q)
    filters = [filter_doc(LOCATION_FIELD, "contains", location)] if location else []
    return plan_doc(INTENT_LAST_ACTION, filters)


def _is_column_dump(q: str, snapshot) -> bool:
    return _any_pattern(DUMP_PATTERNS, q) and mentioned_column(q, snapshot) is not None


def _build_column_dump(q: str, snapshot) -> dict:
    col = mentioned_column(q, snapshot)
    intent = INTENT_UNIQUE_VALUES if _any_pattern(UNIQUE_PATTERNS, q) else INTENT_LIST_ALL
    return plan_doc(intent, fields=[col])


def _is_specific_date(q: str, snapshot) -> bool:
    return extract_date_literal(q) is not None


def _build_specific_date(q: str, snapshot) -> dict:
    filters = [filter_doc(DATE_FIELD, "equals", extract_date_literal(q))]
    location = extract_location(q)
    if location:
        filters.append(filter_doc(LOCATION_FIELD, "contains", location))
    return plan_doc(INTENT_LIST, filters)


def _is_specific_keyword(q: str, snapshot) -> bool:
    return extract_keyword(q, snapshot) is not None


def _build_specific_keyword(q: str, snapshot) -> dict:
    field, value = extract_keyword(q, snapshot)
    return plan_doc(INTENT_LIST, [filter_doc(field, "contains", value)])


def _is_generic_list(q: str, snapshot) -> bool:
    return _any_pattern(LIST_PATTERNS, q)


def _build_generic_list(q: str, snapshot) -> dict:
    return plan_doc(INTENT_LIST, _scope_filters(q))


# Rules that only shape the listing and do not identify specific records
GENERIC_RULES = {"generic_list"}

RULES: List[Rule] = [
    ("identifier_lookup", _is_identifier_lookup, _build_identifier_lookup),
    ("count", _is_count, _build_count),
    ("last_action", _is_last_action, _build_last_action),
    ("column_dump", _is_column_dump, _build_column_dump),
    ("specific_date", _is_specific_date, _build_specific_date),
    ("specific_keyword", _is_specific_keyword, _build_specific_keyword),
    ("generic_list", _is_generic_list, _build_generic_list),
]


def match_rule(question: str, snapshot=None) -> Tuple[Optional[str], dict]:
    """
    First matching rule -> (rule name, plan). No match -> (None, default plan).
    """
    q = (question or "").strip()
    if q:
        for name, predicate, builder in RULES:
            if predicate(q, snapshot):
                plan = builder(q, snapshot)
                logger.info("query_rules: rule=%s intent=%s filters=%s", name, plan["intent"], plan["filters"])
                return name, plan
    logger.info("query_rules: rule=none -> default plan")
    return None, default_plan()
