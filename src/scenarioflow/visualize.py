from pathlib import Path
from typing import Dict, List, Optional

import networkx as nx

from .errors import ConfigurationError
from .graph import clean_ids
from .ir import ScenarioDocument
from .registry import NodeRegistry
from .scenario import Scenario
from .validator import load_document


def _order(nxg: nx.DiGraph) -> List[str]:
    try:
        return list(nx.topological_sort(nxg))
    except nx.NetworkXUnfeasible:
        return list(nxg.nodes)


def _block_descriptions(doc: ScenarioDocument, registry: Optional[NodeRegistry]) -> Dict[str, str]:
    if registry is None:
        return {}
    try:
        scenario = Scenario(doc, registry)
    except ConfigurationError:
        return {}
    descriptions = {block_id: block.do_get_description() for block_id, block in scenario.nodes.items()}
    scenario.close()
    return descriptions


def ascii_plan_document(doc: ScenarioDocument, block_registry: Optional[NodeRegistry] = None) -> str:
    lines = [f"# ASCII Plan: {doc.name}"]

    if doc.blocks:
        nxg = nx.DiGraph()
        nxg.add_nodes_from([b.id for b in doc.blocks])
        for b in doc.blocks:
            for branch, exits in (("true", b.out_on_true), ("false", b.out_on_false)):
                for target in clean_ids(exits):
                    if nxg.has_edge(b.id, target):
                        nxg[b.id][target]["label"] += f"|{branch}"
                    else:
                        nxg.add_edge(b.id, target, label=branch)

        block_map = doc.block_map()
        descriptions = _block_descriptions(doc, block_registry)
        lines.append("## Blocks")
        i = 0
        for nid in _order(nxg):
            block = block_map.get(nid)
            if block is None:
                continue
            i += 1
            lines.append(f"{i:02d}. {block.id} [{block.type}] {descriptions.get(block.id, block.title or '')}")
            for succ in nxg.successors(nid):
                elabel = nxg.get_edge_data(nid, succ)["label"]
                missing = "" if succ in block_map else "  (missing)"
                lines.append(f"    └─▶ {succ}  (on {elabel}){missing}")

    if doc.components:
        nxg = nx.MultiDiGraph()
        nxg.add_nodes_from([c.uid for c in doc.components])
        for c in doc.components:
            for conn in c.connections.out:
                nxg.add_edge(c.uid, conn.target.node_uid,
                             label=f"{conn.source.anchor_name}->{conn.target.anchor_name}")

        component_map = doc.component_map()
        lines.append("## Components")
        i = 0
        for nid in _order(nx.DiGraph(nxg)):
            component = component_map.get(nid)
            if component is None:
                continue
            i += 1
            lines.append(f"{i:02d}. {component.uid} [{component.type}]")
            for _, succ, elabel in nxg.out_edges(nid, data="label"):
                missing = "" if succ in component_map else "  (missing)"
                lines.append(f"    └─▶ {succ}  ({elabel}){missing}")

    return "\n".join(lines)


def ascii_plan(path: Path, block_registry: Optional[NodeRegistry] = None) -> str:
    return ascii_plan_document(load_document(path), block_registry)
