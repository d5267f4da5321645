"""
Field Resolver — map a semantic field name ("Location", "Date", "identifier", ...)
to the actual column present in the loaded dataset.

Resolution order:
1. Exact case-insensitive column-name match.
2. Ranked substring patterns per semantic field (first pattern wins, then column order).
3. Unknown semantic names: the name as a substring of a column name.
4. Fuzzy match (rapidfuzz ratio >= 85 on normalized names).
Nothing matched -> NOT_FOUND. Callers drop the filter; never an error.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence

from rapidfuzz import fuzz

logger = logging.getLogger(__name__)

NOT_FOUND = None

# Minimum similarity (0-100) to accept a fuzzy column match
SIMILARITY_THRESHOLD = 85

# ---------------------------------------------------------------------------
# SEMANTIC FIELD PATTERNS (ranked; earlier patterns win)
# ---------------------------------------------------------------------------
FIELD_PATTERNS: Dict[str, List[str]] = {
    "location": ["location", "address", "site", "functional location"],
    "date": ["date", "functional date", "report date", "created date"],
    "identifier": ["mmt", "mmt no", "mmt number", "ticket", "request no"],
    "action": ["action", "action taken", "work done", "resolution", "status"],
    "description": ["description", "issue description", "problem description", "work description"],
}

# Other spellings callers (and the language model) use for the semantic fields
FIELD_ALIASES: Dict[str, str] = {
    "mmt": "identifier",
    "mmt no": "identifier",
    "mmt number": "identifier",
    "id": "identifier",
    "ticket": "identifier",
    "locations": "location",
    "site": "location",
    "dates": "date",
    "actions": "action",
    "descriptions": "description",
}


def _normalize_for_match(s: str) -> str:
    """Lowercase, remove spaces/underscores/punctuation for matching."""
    if not isinstance(s, str):
        s = str(s or "")
    s = s.strip().lower()
    s = re.sub(r"[^\w\s]", "", s)
    return s.replace(" ", "").replace("_", "")


def semantic_key(name: str) -> Optional[str]:
    """Semantic field key for a name ('Location' -> 'location', 'MMT No' -> 'identifier'), else None."""
    n = str(name or "").strip().lower()
    if n in FIELD_PATTERNS:
        return n
    return FIELD_ALIASES.get(n)


def resolve_field(name: str, columns: Sequence[str]) -> Optional[str]:
    """Return the dataset column for a semantic field name, or NOT_FOUND."""
    if not name or not str(name).strip() or not columns:
        return NOT_FOUND
    wanted = str(name).strip().lower()

    # STAGE 1 — exact (case-insensitive)
    for col in columns:
        if col.strip().lower() == wanted:
            return col

    # STAGE 2 — ranked substring patterns
    key = semantic_key(wanted)
    if key:
        for pattern in FIELD_PATTERNS[key]:
            for col in columns:
                if pattern in col.lower():
                    return col
    else:
        # STAGE 3 — unknown semantic name used as a substring
        for col in columns:
            if wanted in col.lower():
                return col

    # STAGE 4 — fuzzy
    wanted_norm = _normalize_for_match(wanted)
    best_col, best_score = None, 0.0
    for col in columns:
        score = fuzz.ratio(wanted_norm, _normalize_for_match(col))
        if score > best_score:
            best_col, best_score = col, score
    if best_col is not None and best_score >= SIMILARITY_THRESHOLD:
        logger.debug("field_resolver: fuzzy name=%s column=%s score=%.1f", name, best_col, best_score)
        return best_col

    logger.debug("field_resolver: unresolved name=%s columns=%s", name, list(columns))
    return NOT_FOUND


def resolve_fields(names: Sequence[str], columns: Sequence[str]) -> List[str]:
    """Resolve several names, dropping NOT_FOUND and duplicates."""
    out: List[str] = []
    for n in names or []:
        col = resolve_field(n, columns)
        if col is not NOT_FOUND and col not in out:
            out.append(col)
    return out
