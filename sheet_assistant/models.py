"""
Filter plan DSL: intents, operators, document builders and JSON schemas.
Plans, filters, results and outcomes are plain dicts so they round-trip with
language-model JSON unchanged.
"""
from typing import Any, List, Optional

# ---------------------------------------------------------------------------
# Intents (drive executor post-processing and answer formatting)
# ---------------------------------------------------------------------------
INTENT_COUNT = "count"
INTENT_LIST = "list"
INTENT_LIST_ALL = "list_all"
INTENT_LAST_ACTION = "last_action"
INTENT_DETAILS = "details"
INTENT_UNIQUE_VALUES = "unique_values"

INTENTS = (
    INTENT_COUNT,
    INTENT_LIST,
    INTENT_LIST_ALL,
    INTENT_LAST_ACTION,
    INTENT_DETAILS,
    INTENT_UNIQUE_VALUES,
)

# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------
TEXT_OPERATORS = ("contains", "equals", "starts_with", "ends_with")
DATE_OPERATORS = ("month", "year")
NUMERIC_OPERATORS = ("greater_than", "less_than")
EMPTINESS_OPERATORS = ("is_empty", "is_not_empty")
OPERATORS = TEXT_OPERATORS + DATE_OPERATORS + NUMERIC_OPERATORS + EMPTINESS_OPERATORS

# Human-readable operator phrases for filter descriptions
OPERATOR_PHRASES = {
    "contains": "contains",
    "equals": "is",
    "starts_with": "starts with",
    "ends_with": "ends with",
    "month": "in month",
    "year": "in year",
    "greater_than": ">",
    "less_than": "<",
    "is_empty": "is empty",
    "is_not_empty": "is not empty",
}

# ---------------------------------------------------------------------------
# JSON schemas: model output is rejected unless it matches exactly
# ---------------------------------------------------------------------------
FILTER_SCHEMA = {
    "type": "object",
    "properties": {
        "field": {"type": "string", "minLength": 1},
        "operator": {"type": "string", "enum": list(OPERATORS)},
        "value": {"type": ["string", "number", "integer", "boolean", "null"]},
    },
    "required": ["field", "operator"],
}

PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "filters": {"type": "array", "items": FILTER_SCHEMA},
        "fields": {"type": "array", "items": {"type": "string"}},
        "intent": {"type": "string", "enum": list(INTENTS)},
    },
    "required": ["filters", "intent"],
}

ANSWER_SCHEMA = {
    "type": "object",
    "properties": {
        "answer": {"type": "string", "minLength": 1},
        "source": {"type": "string"},
    },
    "required": ["answer", "source"],
    "additionalProperties": False,
}


def filter_doc(field: str, operator: str, value: Any = None) -> dict:
    """Build one filter predicate."""
    return {"field": field, "operator": operator, "value": value}


def plan_doc(
    intent: str = INTENT_LIST,
    filters: Optional[List[dict]] = None,
    fields: Optional[List[str]] = None,
) -> dict:
    """Build a filter plan. Defaults select every record."""
    return {
        "filters": list(filters or []),
        "fields": list(fields or []),
        "intent": intent,
    }


def default_plan() -> dict:
    """Safe plan used when nothing else applies: all records, listed."""
    return plan_doc(INTENT_LIST)


def result_doc(
    records: List[dict],
    description: str,
    duration_ms: float,
    intent: str = INTENT_LIST,
    applied_filters: Optional[List[dict]] = None,
    dropped_filters: Optional[List[dict]] = None,
    total_count: Optional[int] = None,
) -> dict:
    """Build a query result. total_count defaults to len(records)."""
    return {
        "records": records,
        "total_count": len(records) if total_count is None else total_count,
        "description": description,
        "duration_ms": round(duration_ms, 3),
        "intent": intent,
        "applied_filters": list(applied_filters or []),
        "dropped_filters": list(dropped_filters or []),
    }


def success_outcome(message: str, route: str) -> dict:
    return {"success": True, "message": message, "route": route}


def failure_outcome(error: str, route: str) -> dict:
    return {"success": False, "error": error, "route": route}


def describe_filters(filters: List[dict]) -> str:
    """'Location contains "a st" AND Date in month 6' style description; 'all records' when empty."""
    if not filters:
        return "all records"
    parts = []
    for f in filters:
        op = f.get("operator")
        phrase = OPERATOR_PHRASES.get(op, op)
        if op in EMPTINESS_OPERATORS:
            parts.append(f"{f.get('field')} {phrase}")
        elif isinstance(f.get("value"), str):
            parts.append(f"{f.get('field')} {phrase} \"{f.get('value')}\"")
        else:
            parts.append(f"{f.get('field')} {phrase} {f.get('value')}")
    return " AND ".join(parts)
