from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

from .component import Component
from .context import RunContext
from .errors import BootError
from .ir import ComponentData, ScenarioDocument
from .persistence import ResultStore
from .registry import NodeRegistry
from .signal import Signal

logger = logging.getLogger(__name__)


class Memory:
    """Nested key/value store; components each get their own sub-memory."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})
        self._children: Dict[str, "Memory"] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def get_sub_memory(self, name: str) -> "Memory":
        child = self._children.get(name)
        if child is None:
            child = self._children[name] = Memory()
        return child

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self._values)
        for name, child in self._children.items():
            result[name] = child.to_dict()
        return result


class Session(RunContext):
    """Run-context for a graph of components connected anchor to anchor."""

    node_class = Component

    def __init__(self, document: ScenarioDocument, registry: NodeRegistry,
                 store: Optional[ResultStore] = None, scope_name: str = "default",
                 persistent_memory: Optional[Memory] = None):
        self.session_memory = Memory()
        self.persistent_memory = persistent_memory
        super().__init__(document, registry, store=store, scope_name=scope_name)

    def _node_data(self) -> Iterable[ComponentData]:
        return self.document.components

    @property
    def scenario(self) -> "Session":
        return self

    def get_component(self, uid: str) -> Optional[Component]:
        return self.graph.resolve(uid)

    async def start(self) -> Dict[str, BootError]:
        """Boot every component, then evaluate the entrance components."""
        failures = await self.boot_all()

        tasks = [
            component.start_evaluation(None)
            for component in self._sorted.entrances
            if component.id not in failures
        ]
        if tasks:
            await asyncio.gather(*tasks)
        return failures

    def deliver(self, uid: str, anchor_name: str, signal: Signal) -> Any:
        component = self.get_component(uid)
        if component is None:
            logger.debug("No component %s to deliver %r to", uid, anchor_name)
            return None
        return component.input_signal(anchor_name, signal)
