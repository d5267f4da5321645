"""
Sheet Assistant — FastAPI app.
Host-application seam: load/replace/clear the dataset, ask questions, get suggestions.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI
from pydantic import BaseModel

from . import config
from .agents.orchestrator import QueryOrchestrator
from .utils.llm_client import build_language_model

logging.basicConfig(
    level=config.log_level(),
    format="%(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Sheet Assistant API", version="0.1.0")
orchestrator = QueryOrchestrator(llm=build_language_model())


class DatasetPayload(BaseModel):
    header: List[Any]
    rows: List[Union[List[Any], Dict[str, Any]]] = []
    name: Optional[str] = ""


class QuestionPayload(BaseModel):
    question: str


@app.get("/")
def root():
    return {"status": "ok", "message": "Sheet Assistant API", "dataset": orchestrator.context.stats()}


@app.post("/dataset")
def load_dataset(payload: DatasetPayload):
    """Build a new snapshot from header + rows and swap it in."""
    stats = orchestrator.load_dataset(payload.header, payload.rows, payload.name or "")
    logger.info("api: dataset loaded name=%s records=%s", stats.get("name") or "N/A", stats.get("records"))
    return {"dataset": stats, "summary": orchestrator.summary()}


@app.delete("/dataset")
def clear_dataset():
    orchestrator.clear_dataset()
    return {"dataset": orchestrator.context.stats()}


@app.post("/ask")
async def ask(payload: QuestionPayload):
    return await orchestrator.ask(payload.question)


@app.get("/suggestions")
def suggestions():
    return {"suggestions": orchestrator.suggestions()}
