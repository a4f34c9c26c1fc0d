from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .errors import BootError, ConfigurationError
from .graph import GraphIndex
from .ir import ScenarioDocument
from .node import Node
from .persistence import ResultRecord, ResultStore, ScopeValues
from .registry import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass
class SortedBlocks:
    all: Dict[str, Node] = field(default_factory=dict)
    entrances: List[Node] = field(default_factory=list)


class RunContext:
    """State owned by one run of a scenario document.

    Holds the live node instances, the shared variable table and the bridge
    to the result store. Nodes only keep a weak reference to their context.
    """

    node_class = Node

    def __init__(self, document: ScenarioDocument, registry: NodeRegistry,
                 store: Optional[ResultStore] = None, scope_name: str = "default"):
        self.document = document
        self.registry = registry
        self.store = store if store is not None else ResultStore()
        self.scope_name = scope_name
        self.closed = False

        # Results of the previous run, frozen before this run writes anything
        self.previous_result_clone: Optional[ScopeValues] = None
        if not self.store.is_empty():
            self.previous_result_clone = self.store.snapshot()

        self.variables: Dict[str, Dict[str, Any]] = {
            name: {"value": value, "type": type(value).__name__}
            for name, value in document.variables.items()
        }

        self.graph = GraphIndex(self)
        self.nodes: Dict[str, Node] = {}
        for data in self._node_data():
            node = registry.create(self, data)
            if not isinstance(node, self.node_class):
                raise ConfigurationError(
                    f"Node '{node.id}' of type '{node.type_name}' is not a {self.node_class.__name__}"
                )
            if node.id in self.nodes:
                raise ConfigurationError(f"Duplicate node id '{node.id}'")
            self.nodes[node.id] = node

        self._sorted = SortedBlocks(
            all=self.nodes,
            entrances=[node for node in self.nodes.values() if node.entrance_point],
        )

    def _node_data(self) -> Iterable[Any]:
        raise NotImplementedError

    def get_sorted_blocks(self) -> SortedBlocks:
        return self._sorted

    # -- result persistence bridge -------------------------------------------

    def persist_block_value(self, node: Node) -> None:
        if self.closed:
            return
        self.store.persist(node, self.scope_name)

    def touch_persisted_block_value(self, node: Node, scope_name: Optional[str] = None) -> ResultRecord:
        return self.store.touch(node.id, scope_name or self.scope_name)

    # -- lifecycle -----------------------------------------------------------

    async def boot_all(self) -> Dict[str, BootError]:
        """Boot every node concurrently and return the failures by node id."""
        nodes = list(self.nodes.values())
        results = await asyncio.gather(*(node.start_boot() for node in nodes), return_exceptions=True)

        failures: Dict[str, BootError] = {}
        for node, result in zip(nodes, results):
            if isinstance(result, BootError):
                logger.error("%s", result)
                failures[node.id] = result
            elif isinstance(result, BaseException):
                raise result
        return failures

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        cancelled = sum(node.cancel_pending() for node in self.nodes.values())
        if cancelled:
            logger.debug("Cancelled %d waiting evaluation(s)", cancelled)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()
