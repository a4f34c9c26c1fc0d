from pathlib import Path
from typing import List, Optional, Tuple

import networkx as nx
import yaml

from .errors import ConfigurationError
from .graph import clean_ids
from .ir import ScenarioDocument
from .registry import NodeRegistry


def load_document(path: Path) -> ScenarioDocument:
    data = yaml.safe_load(path.read_text()) or {}
    return ScenarioDocument(**data)


def _is_acyclic(nxg: nx.DiGraph) -> bool:
    try:
        list(nx.topological_sort(nxg))
        return True
    except nx.NetworkXUnfeasible:
        return False


def _check_settings(registry: Optional[NodeRegistry], type_name: str, node_id: str,
                    settings: dict, messages: List[str]) -> bool:
    if registry is None:
        return True
    node_class = registry.get(type_name)
    if node_class is None:
        messages.append(f"ERR: Node '{node_id}' has unknown type '{type_name}'.")
        return False
    try:
        node_class.parse_settings(settings)
    except ConfigurationError as err:
        messages.append(f"ERR: Node '{node_id}': {err}")
        return False
    return True


def validate_blocks(doc: ScenarioDocument, registry: Optional[NodeRegistry] = None) -> Tuple[bool, List[str]]:
    messages: List[str] = []
    ok = True
    block_ids = [b.id for b in doc.blocks]

    # 1) Unique block ids
    if len(set(block_ids)) != len(block_ids):
        ok = False
        messages.append("ERR: Duplicate block IDs detected.")
    else:
        messages.append("OK: Block IDs are unique.")

    # 2) Known types with valid settings
    for b in doc.blocks:
        ok = _check_settings(registry, b.type, b.id, b.settings, messages) and ok

    # 3) Exits pointing at missing blocks are allowed, but worth knowing about
    known = set(block_ids)
    nxg = nx.DiGraph()
    nxg.add_nodes_from(known)
    for b in doc.blocks:
        for branch, exits in (("true", b.out_on_true), ("false", b.out_on_false)):
            for target in clean_ids(exits):
                if target not in known:
                    messages.append(f"WARN: Block {b.id} ({branch}) points to missing block {target}.")
                    continue
                nxg.add_edge(b.id, target)

    # 4) Entrance points
    if registry is not None:
        starts = [b.id for b in doc.blocks if registry.get(b.type) is not None and registry.get(b.type).entrance_point]
        if doc.blocks and not starts:
            messages.append("WARN: No entrance block, nothing will be evaluated.")

    # 5) Loops are cut by the scheduler after one traversal per edge
    if doc.blocks:
        if _is_acyclic(nxg):
            messages.append("OK: Block graph is acyclic.")
        else:
            messages.append("WARN: Block graph contains a loop; each edge is traversed at most once per run.")

    return ok, messages


def validate_components(doc: ScenarioDocument, registry: Optional[NodeRegistry] = None) -> Tuple[bool, List[str]]:
    messages: List[str] = []
    ok = True
    uids = [c.uid for c in doc.components]

    # 1) Unique component uids
    if len(set(uids)) != len(uids):
        ok = False
        messages.append("ERR: Duplicate component UIDs detected.")
    else:
        messages.append("OK: Component UIDs are unique.")

    for c in doc.components:
        ok = _check_settings(registry, c.type, c.uid, c.settings, messages) and ok

    # 2) Connections refer to existing components and declared anchors
    component_map = doc.component_map()
    nxg = nx.DiGraph()
    nxg.add_nodes_from(uids)
    edges_ok = True
    for c in doc.components:
        for conn in c.connections.out:
            if conn.source.node_uid != c.uid:
                edges_ok = False
                messages.append(f"ERR: Outgoing connection listed on {c.uid} starts at {conn.source.node_uid}.")
            target = component_map.get(conn.target.node_uid)
            if target is None:
                messages.append(f"WARN: Connection {c.uid}.{conn.source.anchor_name} points to missing component "
                                f"{conn.target.node_uid}.")
                continue
            nxg.add_edge(c.uid, target.uid)

            if registry is None:
                continue
            source_class = registry.get(c.type)
            target_class = registry.get(target.type)
            if source_class is not None and conn.source.anchor_name not in source_class.outputs:
                edges_ok = False
                messages.append(f"ERR: {c.uid}.{conn.source.anchor_name} is not an output on that component.")
            if target_class is not None and conn.target.anchor_name not in target_class.inputs:
                edges_ok = False
                messages.append(f"ERR: {target.uid}.{conn.target.anchor_name} is not an input on that component.")
    if edges_ok:
        messages.append("OK: All connections correspond to declared anchors.")
    ok = ok and edges_ok

    # 3) Signal loops are not protected against at run time
    if doc.components:
        if _is_acyclic(nxg):
            messages.append("OK: Signal graph is acyclic.")
        else:
            messages.append("WARN: Signal graph contains a loop and may never settle.")

    return ok, messages


def validate_document(doc: ScenarioDocument, block_registry: Optional[NodeRegistry] = None,
                      component_registry: Optional[NodeRegistry] = None) -> Tuple[bool, List[str]]:
    ok, messages = True, []
    if doc.blocks or not doc.components:
        ok, messages = validate_blocks(doc, block_registry)
    if doc.components:
        components_ok, component_messages = validate_components(doc, component_registry)
        ok = ok and components_ok
        messages.extend(component_messages)
    return ok, messages


def validate_scenario_from_file(path: Path, block_registry: Optional[NodeRegistry] = None,
                                component_registry: Optional[NodeRegistry] = None) -> Tuple[bool, List[str]]:
    return validate_document(load_document(path), block_registry, component_registry)
