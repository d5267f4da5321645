"""
Keyword index over searchable columns: token -> set of owning columns.
Also computes per-column metadata (type, unique count, samples, searchable)
once per load, plus dataset summaries and example questions for the host app.
"""
import logging
import re
from typing import Any, Dict, FrozenSet, List, Sequence

from .normalizer import (
    DATE_COLUMN,
    classify_column,
    is_blank,
    parse_date,
    text_of,
    to_number,
)

logger = logging.getLogger(__name__)

# Common words never indexed
STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
})

# Question filler dropped when tokenizing a user question (in addition to STOPWORDS)
QUESTION_STOPWORDS = STOPWORDS | frozenset({
    "how", "many", "what", "which", "when", "where", "who", "why", "is", "are", "was", "were",
    "do", "does", "did", "show", "list", "give", "me", "find", "get", "display", "all",
    "any", "there", "records", "record", "entries", "entry", "rows", "row", "data",
    "please", "can", "you", "tell", "about", "from", "have", "has", "been", "that", "this",
})

MIN_TOKEN_LENGTH = 2

# Column names that are always indexed
ALWAYS_INDEX_HINTS = ("description", "action", "location", "name", "title", "comment", "date", "time")

# Column names that suggest numeric content
NUMERIC_HINTS = ("amount", "count", "number", "total", "sum", "average")

MAX_NUMERIC_UNIQUE = 1000
MAX_STRING_UNIQUE = 500
SAMPLE_VALUES = 5
MAX_SUGGESTIONS = 10

# Column types
TYPE_STRING = "string"
TYPE_NUMBER = "number"
TYPE_DATE = "date"
TYPE_BOOLEAN = "boolean"


def tokenize(text: Any, stopwords: FrozenSet[str] = STOPWORDS) -> List[str]:
    """Punctuation -> space, split on whitespace, drop short tokens and stopwords. Order preserved."""
    s = re.sub(r"[^\w\s]", " ", text_of(text).lower())
    return [w for w in s.split() if len(w) >= MIN_TOKEN_LENGTH and w not in stopwords]


def infer_column_type(name: str, values: Sequence[Any]) -> str:
    """number if every value is numeric; date for parsable date columns; boolean; else string."""
    non_empty = [v for v in values if not is_blank(v)]
    if not non_empty:
        return TYPE_STRING
    if all(to_number(v) is not None for v in non_empty):
        return TYPE_NUMBER
    if classify_column(name) == DATE_COLUMN and any(parse_date(v) is not None for v in non_empty[:50]):
        return TYPE_DATE
    if all(isinstance(v, bool) or str(v).strip().lower() in ("true", "false") for v in non_empty):
        return TYPE_BOOLEAN
    return TYPE_STRING


def is_searchable_column(name: str, values: Sequence[Any], column_type: str) -> bool:
    """
    Always-index names (description/action/location/name/title/comment, date/time);
    numeric-like columns with <= 1000 distinct values; string columns with <= 500.
    """
    n = str(name).lower()
    if any(h in n for h in ALWAYS_INDEX_HINTS):
        return True
    non_empty = [v for v in values if not is_blank(v)]
    unique_count = len({text_of(v) for v in non_empty})
    if any(h in n for h in NUMERIC_HINTS) or column_type == TYPE_NUMBER:
        return unique_count <= MAX_NUMERIC_UNIQUE
    if non_empty and isinstance(non_empty[0], str) and unique_count <= MAX_STRING_UNIQUE:
        return True
    return False


def build_search_index(columns: Sequence[str], records: Sequence[dict]) -> Dict[str, Any]:
    """
    Build column metadata, the keyword index and lowercase unique-value sets.
    Returns {"keywords": {token: frozenset(columns)}, "column_metadata": {col: {...}},
             "unique_values": {col: frozenset}}.
    """
    keywords: Dict[str, set] = {}
    column_metadata: Dict[str, Dict[str, Any]] = {}
    unique_values: Dict[str, FrozenSet[str]] = {}

    for col in columns:
        values = [r.get(col) for r in records]
        non_empty = [v for v in values if not is_blank(v)]
        distinct: Dict[str, Any] = {}
        for v in non_empty:
            distinct.setdefault(text_of(v), v)
        column_type = infer_column_type(col, non_empty)
        searchable = is_searchable_column(col, non_empty, column_type)
        column_metadata[col] = {
            "name": col,
            "type": column_type,
            "unique_count": len(distinct),
            "sample_values": list(distinct.values())[:SAMPLE_VALUES],
            "searchable": searchable,
        }
        if not searchable:
            continue
        for text in distinct:
            for token in tokenize(text):
                keywords.setdefault(token, set()).add(col)
        unique_values[col] = frozenset(t.lower() for t in distinct)

    logger.info("search_index: keywords=%s columns=%s searchable=%s",
                len(keywords), len(column_metadata),
                [c for c, m in column_metadata.items() if m["searchable"]])
    return {
        "keywords": {k: frozenset(v) for k, v in keywords.items()},
        "column_metadata": column_metadata,
        "unique_values": unique_values,
    }


def lookup(keywords: Dict[str, FrozenSet[str]], question: str) -> Dict[str, FrozenSet[str]]:
    """Question tokens present in the index, mapped to their owning columns (first-seen order)."""
    hits: Dict[str, FrozenSet[str]] = {}
    for token in tokenize(question, QUESTION_STOPWORDS):
        if token in keywords and token not in hits:
            hits[token] = keywords[token]
    return hits


def search_suggestions(column_metadata: Dict[str, Dict[str, Any]]) -> List[str]:
    """Example questions derived from column types (at most 10)."""
    suggestions: List[str] = []
    for col, meta in column_metadata.items():
        if meta["type"] == TYPE_DATE:
            suggestions.append(f"Show entries from {col}")
            suggestions.append(f"What happened in {col}?")
        elif meta["type"] == TYPE_NUMBER:
            suggestions.append(f"Show {col} greater than {meta['sample_values'][0] if meta['sample_values'] else 0}")
        elif meta["searchable"]:
            suggestions.append(f"Find entries with {col}")
            suggestions.append(f"Show all {col} values")
    suggestions.extend([
        "Show last 5 entries",
        "Show last 10 entries",
        "What are the latest records?",
    ])
    return suggestions[:MAX_SUGGESTIONS]


def describe_dataset(name: str, columns: Sequence[str], record_count: int,
                     column_metadata: Dict[str, Dict[str, Any]]) -> str:
    """Short greeting-style summary of the loaded dataset."""
    key_fields = [c for c in columns if column_metadata.get(c, {}).get("searchable")] or list(columns)
    label = name or "your file"
    text = f"I've loaded {label} with {record_count} records"
    if key_fields:
        text += f" and fields like {', '.join(key_fields[:3])}"
        if len(key_fields) > 3:
            text += f" and {len(key_fields) - 3} others"
    return text + ". Ask me anything about the data, e.g. counts by location or month, or the latest action at a site."
