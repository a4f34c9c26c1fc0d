from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ScopeValues = Dict[str, Dict[str, "ResultRecord"]]


class ResultRecord(BaseModel):
    value: Any = None
    error: Optional[str] = None
    silent: bool = False
    evaluation_count: int = 0


class ResultStore:
    """Stored node results, partitioned by scope name and then by node id.

    The store outlives a single run: the run-context snapshots it when it is
    created so nodes can compare their new result with the previous run's.
    """

    def __init__(self, values: Optional[ScopeValues] = None):
        self.values: ScopeValues = values or {}

    def touch(self, node_id: str, scope_name: str) -> ResultRecord:
        scope = self.values.setdefault(scope_name, {})
        record = scope.get(node_id)
        if record is None:
            record = scope[node_id] = ResultRecord()
        return record

    def persist(self, node, scope_name: str) -> ResultRecord:
        record = self.touch(node.id, scope_name)
        record.value = node.result_value
        record.error = None if node.result_err is None else str(node.result_err)
        record.silent = node.has_silent_value
        record.evaluation_count = node.evaluation_count
        return record

    def snapshot(self) -> ScopeValues:
        return {
            scope: {node_id: record.model_copy(deep=True) for node_id, record in records.items()}
            for scope, records in self.values.items()
        }

    def is_empty(self) -> bool:
        return not any(self.values.values())

    def dump(self) -> Dict[str, Any]:
        return {
            scope: {node_id: record.model_dump() for node_id, record in records.items()}
            for scope, records in self.values.items()
        }

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(self.dump(), sort_keys=False))
        logger.debug("Saved results for %d scope(s) to %s", len(self.values), path)

    @classmethod
    def load(cls, path: Path) -> "ResultStore":
        if not path.exists():
            return cls()
        data = yaml.safe_load(path.read_text()) or {}
        values = {
            str(scope): {str(node_id): ResultRecord(**(record or {})) for node_id, record in (records or {}).items()}
            for scope, records in data.items()
        }
        return cls(values)
