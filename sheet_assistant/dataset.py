"""
Dataset snapshot and the context object that owns the current one.
A snapshot is built completely before it replaces the previous one, so a
question that captured the old snapshot keeps working against it.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .utils.normalizer import classify_column, normalize_rows, rows_from_dataframe
from .utils.search_index import build_search_index, describe_dataset, search_suggestions

logger = logging.getLogger(__name__)


class DatasetSnapshot:
    """Normalized records plus indexes for one loaded file. Treat as read-only."""

    def __init__(self, name: str, columns: Sequence[str], records: Sequence[dict]):
        self.name = name
        self.columns = tuple(columns)
        self.records = tuple(records)
        self.column_classes = {c: classify_column(c) for c in self.columns}
        index = build_search_index(self.columns, self.records)
        self.keywords = index["keywords"]
        self.column_metadata = index["column_metadata"]
        self.unique_values = index["unique_values"]
        self.loaded_at = datetime.now(timezone.utc)

    def __len__(self) -> int:
        return len(self.records)

    def schema_summary(self) -> str:
        """One line per column: name (type, N unique) e.g. samples."""
        lines = []
        for col in self.columns:
            meta = self.column_metadata[col]
            samples = ", ".join(str(v) for v in meta["sample_values"])
            lines.append(f"- {col} ({meta['type']}, {meta['unique_count']} unique) e.g. {samples}")
        return "\n".join(lines) if lines else "(no columns)"

    def suggestions(self) -> List[str]:
        return search_suggestions(self.column_metadata)

    def describe(self) -> str:
        return describe_dataset(self.name, self.columns, len(self.records), self.column_metadata)


def build_snapshot(header: Sequence[Any], rows: Iterable[Any], name: str = "") -> DatasetSnapshot:
    records, columns = normalize_rows(header, rows)
    snapshot = DatasetSnapshot(name, columns, records)
    logger.info("dataset: built name=%s records=%s columns=%s keywords=%s",
                name or "N/A", len(snapshot.records), len(snapshot.columns), len(snapshot.keywords))
    return snapshot


class DatasetContext:
    """Holds the current snapshot. Loads swap the reference wholesale; nothing is patched in place."""

    def __init__(self):
        self._current: Optional[DatasetSnapshot] = None

    @property
    def current(self) -> Optional[DatasetSnapshot]:
        return self._current

    def load(self, header: Sequence[Any], rows: Iterable[Any], name: str = "") -> DatasetSnapshot:
        snapshot = build_snapshot(header, rows, name)
        self._current = snapshot
        return snapshot

    def load_dataframe(self, df: pd.DataFrame, name: str = "") -> DatasetSnapshot:
        header, rows = rows_from_dataframe(df)
        return self.load(header, rows, name)

    def clear(self) -> None:
        if self._current is not None:
            logger.info("dataset: cleared name=%s", self._current.name or "N/A")
        self._current = None

    def stats(self) -> Dict[str, Any]:
        snap = self._current
        if snap is None:
            return {"loaded": False}
        return {
            "loaded": True,
            "name": snap.name,
            "records": len(snap.records),
            "columns": list(snap.columns),
            "loaded_at": snap.loaded_at.isoformat(),
        }
