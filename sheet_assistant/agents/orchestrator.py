"""
Orchestrator — per-question pipeline with fallback edges at every stage.
start -> strict keyword search -> (hit: format) / (miss: plan -> execute -> format) -> done.
A network-class failure routes to the local fallback: specific rule plan, else ranked keyword
matches, else the default plan; all rendered manually with an "AI unavailable" note.
ask() never raises: every path ends in a success or failure outcome.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ..dataset import DatasetContext
from ..errors import NoDatasetError
from ..models import default_plan, failure_outcome, success_outcome
from ..utils.query_rules import GENERIC_RULES
from .data_agent import execute_plan, search_keywords
from .planner import plan_question
from .responder import AI_UNAVAILABLE_NOTE, format_answer, format_manual

logger = logging.getLogger(__name__)

ROUTE_INDEX = "index"
ROUTE_PLANNER = "planner"
ROUTE_LOCAL_FALLBACK = "local_fallback"
ROUTE_NONE = "none"

NOT_UNDERSTOOD_MESSAGE = (
    "Sorry, I could not understand the question. Try asking about a location, a month, "
    "an MMT number or a keyword, e.g. \"How many records at A St in June?\""
)
EMPTY_QUESTION_MESSAGE = "Please type a question about the loaded data."


class QueryOrchestrator:
    """Owns the dataset context and the language-model collaborator (None = deterministic only)."""

    def __init__(self, llm=None, context: Optional[DatasetContext] = None):
        self.llm = llm
        self.context = context or DatasetContext()

    # ------------------------------------------------------------------
    # Dataset lifecycle
    # ------------------------------------------------------------------
    def load_dataset(self, header: Sequence[Any], rows: Iterable[Any], name: str = "") -> Dict[str, Any]:
        self.context.load(header, rows, name)
        return self.context.stats()

    def load_dataframe(self, df: pd.DataFrame, name: str = "") -> Dict[str, Any]:
        self.context.load_dataframe(df, name)
        return self.context.stats()

    def clear_dataset(self) -> None:
        self.context.clear()

    def suggestions(self) -> List[str]:
        snapshot = self.context.current
        return snapshot.suggestions() if snapshot is not None else []

    def summary(self) -> str:
        snapshot = self.context.current
        if snapshot is None:
            return NoDatasetError.default_message
        return snapshot.describe()

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------
    async def ask(self, question: str) -> Dict[str, Any]:
        # one snapshot per question, even if a reload happens meanwhile
        snapshot = self.context.current
        try:
            outcome = await self._answer((question or "").strip(), snapshot)
        except NoDatasetError as e:
            logger.info("orchestrator: no dataset loaded")
            outcome = failure_outcome(str(e), ROUTE_NONE)
        except Exception as e:
            logger.exception("orchestrator: unexpected failure question=%s", question)
            outcome = failure_outcome(f"Something went wrong while answering the question: {e}", ROUTE_NONE)
        logger.info("orchestrator: success=%s route=%s", outcome["success"], outcome["route"])
        return outcome

    async def _answer(self, q: str, snapshot) -> Dict[str, Any]:
        if snapshot is None:
            raise NoDatasetError()
        if not q:
            return failure_outcome(EMPTY_QUESTION_MESSAGE, ROUTE_NONE)
        if len(snapshot) == 0:
            return success_outcome(
                "The loaded file has no data rows, so 0 records match. Load a file with data to ask about it.",
                ROUTE_INDEX,
            )

        found = search_keywords(snapshot, q)
        if found["records"]:
            logger.info("orchestrator: index hit mode=%s results=%s", found["mode"], found["total_count"])
            formatted = await format_answer(q, found, found["plan"], snapshot, self.llm)
            route = ROUTE_LOCAL_FALLBACK if formatted["network_error"] else ROUTE_INDEX
            return success_outcome(formatted["answer"], route)

        try:
            planned = await plan_question(q, snapshot, self.llm)
        except NoDatasetError:
            raise
        except Exception:
            logger.exception("orchestrator: planning failed question=%s", q)
            return failure_outcome(NOT_UNDERSTOOD_MESSAGE, ROUTE_PLANNER)

        if planned["network_error"]:
            return self._local_fallback(q, snapshot, planned)

        result = execute_plan(snapshot, planned["plan"])
        formatted = await format_answer(q, result, planned["plan"], snapshot, self.llm)
        route = ROUTE_LOCAL_FALLBACK if formatted["network_error"] else ROUTE_PLANNER
        logger.info("orchestrator: plan_source=%s rule=%s answer_source=%s",
                    planned["source"], planned["rule"] or "N/A", formatted["source"])
        return success_outcome(formatted["answer"], route)

    def _local_fallback(self, q: str, snapshot, planned: Dict[str, Any]) -> Dict[str, Any]:
        """Language model unreachable: answer from local data only."""
        rule = planned.get("rule")
        if rule and rule not in GENERIC_RULES:
            plan = planned["plan"]
            result = execute_plan(snapshot, plan)
            branch = f"rule:{rule}"
        else:
            loose = search_keywords(snapshot, q, loose=True)
            if loose["records"]:
                plan, result, branch = loose["plan"], loose, "ranked_keywords"
            else:
                plan = planned.get("plan") or default_plan()
                result = execute_plan(snapshot, plan)
                branch = "default"
        logger.info("orchestrator: local_fallback branch=%s results=%s", branch, result["total_count"])
        return success_outcome(format_manual(result, plan, snapshot, AI_UNAVAILABLE_NOTE), ROUTE_LOCAL_FALLBACK)
