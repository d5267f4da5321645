"""Sheet Assistant: natural-language questions over a loaded spreadsheet."""
from .agents.orchestrator import QueryOrchestrator
from .dataset import DatasetContext, DatasetSnapshot

__version__ = "0.1.0"

__all__ = ["QueryOrchestrator", "DatasetContext", "DatasetSnapshot"]
