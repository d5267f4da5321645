"""
Response agent — turns a query result into the user-facing answer.
Uses Groq with a strict {answer, source} JSON contract when available;
otherwise (or on any parse/overload/network failure) renders the answer manually.
Returns: {answer, source: llm | manual, network_error}.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from .. import config
from ..errors import LLMError, LLMUnavailableError
from ..models import (
    ANSWER_SCHEMA,
    INTENT_COUNT,
    INTENT_LAST_ACTION,
    INTENT_UNIQUE_VALUES,
)
from ..utils.field_resolver import NOT_FOUND, resolve_field, resolve_fields
from ..utils.json_repair import parse_and_validate
from ..utils.llm_client import complete_with_model_switch
from ..utils.normalizer import is_blank, text_of

logger = logging.getLogger(__name__)

SOURCE_LLM = "llm"
SOURCE_MANUAL = "manual"

AI_UNAVAILABLE_NOTE = "(AI unavailable: this answer was produced by local search of your data.)"

# Manual rendering limits
MAX_FULL_BLOCKS = 10
PREVIEW_BLOCKS = 5
MAX_LISTED_UNIQUE = 10

RESPONDER_SYSTEM = """You answer questions about spreadsheet records using ONLY the records provided.
Reply with ONLY a JSON object with exactly two keys and nothing else:
{"answer": "<the answer for the user>", "source": "<short note on which records the answer used>"}
Rules:
- Use the exact values from the records; never invent records or values.
- total_count is the number of matching records even when fewer records are shown.
- No markdown, no code fences, no extra keys, no text outside the JSON object."""


def _display_columns(plan: Optional[dict], snapshot) -> List[str]:
    """Columns shown in record blocks: the plan's requested fields, else every original column."""
    fields = resolve_fields((plan or {}).get("fields") or [], snapshot.columns)
    return fields or list(snapshot.columns)


def _cell(record: dict, column: str) -> str:
    value = record.get(column)
    return "-" if is_blank(value) else text_of(value)


def record_block(index: int, record: dict, columns: Sequence[str]) -> str:
    lines = [f"Record {index}"]
    lines.extend(f"  {col}: {_cell(record, col)}" for col in columns)
    return "\n".join(lines)


def render_records(records: Sequence[dict], columns: Sequence[str]) -> str:
    """All blocks when there are <= 10 records; otherwise the first 5 plus a '+N more' notice."""
    shown = records if len(records) <= MAX_FULL_BLOCKS else records[:PREVIEW_BLOCKS]
    blocks = [record_block(i, r, columns) for i, r in enumerate(shown, start=1)]
    remaining = len(records) - len(shown)
    if remaining:
        blocks.append(f"+{remaining} more records not shown. Add a filter (location, month, keyword) to narrow the list.")
    return "\n\n".join(blocks)


def _count_line(result: dict) -> str:
    total = result.get("total_count", 0)
    noun = "record" if total == 1 else "records"
    description = result.get("description")
    if result.get("applied_filters"):
        return f"Found {total} {noun} where {description}."
    if description and description != "all records":
        # keyword-search results describe themselves
        return f"Found {total} {noun}: {description}."
    return f"The dataset has {total} {noun} in total."


def render_empty(result: dict, snapshot) -> str:
    lines = [f"Found 0 records where {result.get('description') or 'the question applies'}."]
    if result.get("dropped_filters"):
        ignored = ", ".join(str(f.get("field")) for f in result["dropped_filters"])
        lines.append(f"Ignored fields not present in this file: {ignored}.")
    suggestions = snapshot.suggestions()[:3] if snapshot is not None else []
    lines.append("Try a broader question, check the spelling of locations or keywords, or ask by month or year.")
    if suggestions:
        lines.append("For example: " + "; ".join(suggestions))
    return "\n".join(lines)


def render_last_action(result: dict, plan: Optional[dict], snapshot) -> str:
    record = result["records"][0]
    header = "Most recent record"
    if result.get("applied_filters"):
        header += f" where {result.get('description')}"
    header += f" (latest of {result.get('total_count', 1)} matching)"
    lines = [header + ":"]
    action_col = resolve_field("action", snapshot.columns)
    if action_col is not NOT_FOUND and not is_blank(record.get(action_col)):
        date_col = resolve_field("date", snapshot.columns)
        when = f" on {_cell(record, date_col)}" if date_col is not NOT_FOUND else ""
        lines.append(f"Last action: {_cell(record, action_col)}{when}")
    lines.append(record_block(1, record, _display_columns(plan, snapshot)))
    return "\n".join(lines)


def render_unique_values(result: dict, plan: Optional[dict], snapshot) -> str:
    """Distinct values per requested column; listed when <= 10, else a distinct-count line."""
    lines = [_count_line(result)]
    for col in _display_columns(plan, snapshot):
        seen: Dict[str, None] = {}
        for r in result["records"]:
            if not is_blank(r.get(col)):
                seen.setdefault(text_of(r.get(col)), None)
        if len(seen) <= MAX_LISTED_UNIQUE:
            lines.append(f"{col} ({len(seen)} distinct): " + (", ".join(seen) or "-"))
        else:
            lines.append(f"{col} has {len(seen)} distinct values.")
    return "\n".join(lines)


def format_manual(result: dict, plan: Optional[dict], snapshot, note: Optional[str] = None) -> str:
    """Deterministic rendering by intent."""
    intent = result.get("intent")
    if not result.get("records"):
        text = render_empty(result, snapshot)
    elif intent == INTENT_COUNT:
        text = _count_line(result)
    elif intent == INTENT_LAST_ACTION:
        text = render_last_action(result, plan, snapshot)
    elif intent == INTENT_UNIQUE_VALUES:
        text = render_unique_values(result, plan, snapshot)
    else:
        text = _count_line(result) + "\n\n" + render_records(result["records"], _display_columns(plan, snapshot))
    return f"{note}\n\n{text}" if note else text


def build_responder_prompt(question: str, result: dict, plan: Optional[dict], snapshot) -> str:
    columns = _display_columns(plan, snapshot)
    limit = config.max_prompt_records()
    rows = [{c: text_of(r.get(c)) for c in columns} for r in result["records"][:limit]]
    payload = {
        "intent": result.get("intent"),
        "filters": result.get("description"),
        "total_count": result.get("total_count"),
        "records_shown": len(rows),
        "records": rows,
    }
    return f"Question: {question}\n\nMatching records (JSON):\n{json.dumps(payload, default=str)}\n\nJSON answer:"


async def format_answer(
    question: str,
    result: dict,
    plan: Optional[dict],
    snapshot,
    llm=None,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    """
    LLM answer when a model is configured and the result is non-empty; manual rendering otherwise.
    note (e.g. AI_UNAVAILABLE_NOTE) forces manual rendering and is prefixed to the answer.
    """
    if llm is None or note or not result.get("records"):
        return {"answer": format_manual(result, plan, snapshot, note), "source": SOURCE_MANUAL, "network_error": False}

    try:
        content = await complete_with_model_switch(
            llm, build_responder_prompt(question, result, plan, snapshot), system=RESPONDER_SYSTEM,
        )
        data = parse_and_validate(content, ANSWER_SCHEMA)
    except LLMUnavailableError as e:
        logger.warning("responder: language model unreachable error=%s; manual answer", e)
        return {
            "answer": format_manual(result, plan, snapshot, AI_UNAVAILABLE_NOTE),
            "source": SOURCE_MANUAL,
            "network_error": True,
        }
    except (LLMError, ValueError) as e:
        logger.warning("responder: llm answer unusable error=%s; manual answer", e)
        return {"answer": format_manual(result, plan, snapshot), "source": SOURCE_MANUAL, "network_error": False}
    except Exception:
        logger.exception("responder: language model call failed; manual answer")
        return {"answer": format_manual(result, plan, snapshot), "source": SOURCE_MANUAL, "network_error": False}

    logger.info("responder: source=llm note=%s", data.get("source"))
    return {"answer": data["answer"], "source": SOURCE_LLM, "network_error": False}
