from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import networkx as nx

logger = logging.getLogger(__name__)


def clean_ids(ids: Optional[Iterable[Any]]) -> List[str]:
    """Drop falsy entries and stringify the rest, keeping their order."""
    return [str(i) for i in ids or [] if i]


class GraphIndex:
    """Id resolution and reachability over the nodes of one run.

    Entrance lists are memoized per node id for the lifetime of the run,
    which assumes the topology does not change once the run has loaded its
    graph. Call ``invalidate()`` after editing the graph of a live run.
    """

    def __init__(self, context: Any):
        self.context = context
        self._entrance_ids: Dict[str, List[str]] = {}
        self._entrance_nodes: Dict[str, List[Any]] = {}

    @property
    def nodes(self) -> Mapping[str, Any]:
        return self.context.get_sorted_blocks().all

    def invalidate(self) -> None:
        self._entrance_ids.clear()
        self._entrance_nodes.clear()

    def resolve(self, node_id: Any) -> Optional[Any]:
        if not node_id:
            return None
        return self.nodes.get(str(node_id))

    def resolve_all(self, ids: Iterable[Any]) -> List[Any]:
        nodes = self.nodes
        result = []
        for node_id in ids:
            node = nodes.get(str(node_id))
            if node is None:
                logger.debug("Skipping reference to missing node %r", node_id)
                continue
            result.append(node)
        return result

    def exit_ids(self, node: Any, value: Any) -> List[str]:
        data = getattr(node, "data", None)
        if data is None:
            return []
        if value:
            return clean_ids(getattr(data, "out_on_true", None))
        return clean_ids(getattr(data, "out_on_false", None))

    def all_exit_ids(self, node: Any) -> List[str]:
        return self.exit_ids(node, True) + self.exit_ids(node, False)

    def entrance_ids(self, node: Any) -> List[str]:
        target = str(getattr(node, "id", node))
        cached = self._entrance_ids.get(target)
        if cached is not None:
            return cached

        result: List[str] = []
        for source in self.nodes.values():
            if target in self.all_exit_ids(source):
                source_id = str(source.id)
                if source_id not in result:
                    result.append(source_id)

        self._entrance_ids[target] = result
        return result

    def entrance_nodes(self, node: Any) -> List[Any]:
        target = str(getattr(node, "id", node))
        cached = self._entrance_nodes.get(target)
        if cached is None:
            cached = self._entrance_nodes[target] = self.resolve_all(self.entrance_ids(node))
        return cached

    def next_nodes(self, node: Any, value: Any) -> List[Any]:
        ids = self.exit_ids(node, value)
        if not ids:
            return []
        return self.resolve_all(ids)

    def to_networkx(self) -> nx.DiGraph:
        g = nx.DiGraph()
        g.add_nodes_from(self.nodes)
        for node_id, node in self.nodes.items():
            for branch in (True, False):
                for target in self.exit_ids(node, branch):
                    g.add_edge(node_id, target, branch=branch)
        return g
