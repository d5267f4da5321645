"""
Planner agent — natural-language question -> FilterPlan.
Primary path: Groq LLM with a schema summary, JSON-only reply, repair + jsonschema validation.
Fallback: ordered rule table (utils/query_rules.py), then the default plan.
Returns: {plan, source: llm | rules | default, rule, network_error}.
"""
import logging
from typing import Any, Dict

from ..errors import LLMError, LLMUnavailableError, NoDatasetError
from ..models import INTENTS, OPERATORS, PLAN_SCHEMA, default_plan, filter_doc, plan_doc
from ..utils.json_repair import parse_and_validate
from ..utils.llm_client import complete_with_model_switch
from ..utils.query_rules import match_rule

logger = logging.getLogger(__name__)

SOURCE_LLM = "llm"
SOURCE_RULES = "rules"
SOURCE_DEFAULT = "default"

PLANNER_SYSTEM = """You convert questions about a spreadsheet into a filter plan.
Reply with ONLY a valid JSON object (no markdown, no explanation) of the form:
{"filters": [{"field": "<column>", "operator": "<operator>", "value": <value>}], "fields": ["<column>"], "intent": "<intent>"}

Rules:
- field must be one of the column names listed in the schema.
- operator must be one of: %(operators)s
- intent must be one of: %(intents)s
  count = how many records match; list = show matching records; list_all = every value of a column;
  last_action = most recent record (e.g. "last action at X"); details = one specific record (e.g. by MMT number);
  unique_values = distinct values of a column.
- month values are numbers 1-12; year values are 4-digit numbers; is_empty / is_not_empty take value null.
- fields lists the columns the user wants to see ([] for all).
- Filters are combined with AND. Use [] when the question does not restrict the records."""


def build_planner_prompt(question: str, snapshot) -> str:
    return (
        f"Dataset: {snapshot.name or 'uploaded file'} ({len(snapshot)} records)\n"
        f"Columns (name, type, unique values, samples):\n{snapshot.schema_summary()}\n\n"
        f"Question: {question}\n\nJSON:"
    )


def _planner_system() -> str:
    return PLANNER_SYSTEM % {"operators": ", ".join(OPERATORS), "intents": ", ".join(INTENTS)}


def normalize_plan(data: Dict[str, Any]) -> dict:
    """Validated model output -> canonical plan document (trimmed names, explicit values)."""
    filters = [
        filter_doc(str(f["field"]).strip(), f["operator"], f.get("value"))
        for f in data.get("filters") or []
    ]
    fields = [str(c).strip() for c in data.get("fields") or [] if str(c).strip()]
    return plan_doc(data["intent"], filters, fields)


def _plan_fallback(question: str, snapshot, network_error: bool = False) -> dict:
    rule, plan = match_rule(question, snapshot)
    return {
        "plan": plan,
        "source": SOURCE_RULES if rule else SOURCE_DEFAULT,
        "rule": rule,
        "network_error": network_error,
    }


async def plan_question(question: str, snapshot, llm=None) -> dict:
    """
    Plan a question against the snapshot.
    Raises NoDatasetError when no dataset is loaded; any other failure of the model call falls back to the rule table.
    """
    if snapshot is None:
        raise NoDatasetError()

    q = (question or "").strip()
    if not q:
        return {"plan": default_plan(), "source": SOURCE_DEFAULT, "rule": None, "network_error": False}

    if llm is None:
        logger.info("planner: no language model configured; using rules")
        return _plan_fallback(q, snapshot)

    try:
        content = await complete_with_model_switch(llm, build_planner_prompt(q, snapshot), system=_planner_system())
        data = parse_and_validate(content, PLAN_SCHEMA)
    except LLMUnavailableError as e:
        logger.warning("planner: language model unreachable error=%s; using rules", e)
        return _plan_fallback(q, snapshot, network_error=True)
    except LLMError as e:
        logger.warning("planner: language model failed error=%s; using rules", e)
        return _plan_fallback(q, snapshot)
    except ValueError as e:
        logger.warning("planner: unusable plan error=%s; using rules", e)
        return _plan_fallback(q, snapshot)
    except Exception:
        logger.exception("planner: language model call failed; using rules")
        return _plan_fallback(q, snapshot)

    plan = normalize_plan(data)
    logger.info("planner: source=llm intent=%s filters=%s fields=%s", plan["intent"], plan["filters"], plan["fields"])
    return {"plan": plan, "source": SOURCE_LLM, "rule": None, "network_error": False}
