from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .builtins import create_block_registry, create_component_registry
from .config import EngineConfig
from .errors import BootError, ScenarioError
from .ir import ScenarioDocument
from .persistence import ResultStore
from .registry import NodeRegistry
from .scenario import Scenario
from .scheduler import RunReport
from .session import Session
from .validator import load_document


@dataclass
class RunOutcome:
    report: Optional[RunReport] = None
    component_boot_errors: Dict[str, BootError] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)
    memory: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return (self.report is None or self.report.ok) and not self.component_boot_errors


async def run_document(doc: ScenarioDocument, store: ResultStore, config: EngineConfig,
                       block_registry: NodeRegistry, component_registry: NodeRegistry) -> RunOutcome:
    outcome = RunOutcome()

    if doc.blocks:
        async with Scenario(doc, block_registry, store=store, scope_name=config.scope_name) as scenario:
            outcome.report = await scenario.run(config)
            outcome.variables = {name: entry["value"] for name, entry in scenario.variables.items()}

    if doc.components:
        async with Session(doc, component_registry, store=store, scope_name=config.scope_name) as session:
            outcome.component_boot_errors = await session.start()
            outcome.memory = session.session_memory.to_dict()

    return outcome


def _print_outcome(outcome: RunOutcome, store: ResultStore, scope_name: str) -> None:
    report = outcome.report
    if report is not None:
        print(f"[runner] Evaluated {len(report.evaluated)} block(s), traversed {len(report.traversed)} edge(s).")
        for block_id, err in report.boot_errors.items():
            print(f"[runner] Boot failed for '{block_id}': {err}")
        for block_id, err in report.errors.items():
            print(f"[runner] Error in '{block_id}': {err}")
        if report.stopped:
            print("[runner] Scenario was stopped.")
        if report.timed_out:
            print("[runner] Scenario did not settle before the timeout.")
        for name, value in outcome.variables.items():
            print(f"    {name} = {value!r}")

    for uid, err in outcome.component_boot_errors.items():
        print(f"[runner] Boot failed for component '{uid}': {err}")

    for node_id, record in store.values.get(scope_name, {}).items():
        status = f"error: {record.error}" if record.error else repr(record.value)
        print(f"    {node_id}: {status}")


def run_scenario(file: Path, *, results: Optional[Path] = None, config: Optional[EngineConfig] = None,
                 block_registry: Optional[NodeRegistry] = None,
                 component_registry: Optional[NodeRegistry] = None) -> bool:
    config = config or EngineConfig()
    try:
        doc = load_document(file)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        print(f"[runner] Failed to load scenario: {e}")
        return False

    store = ResultStore.load(results) if results is not None else ResultStore()

    try:
        outcome = asyncio.run(run_document(
            doc,
            store,
            config,
            block_registry or create_block_registry(),
            component_registry or create_component_registry(),
        ))
    except ScenarioError as e:
        print(f"[runner] Scenario could not run: {e}")
        return False

    _print_outcome(outcome, store, config.scope_name)

    if results is not None:
        store.save(results)
        print(f"[runner] Wrote results to {results}")

    print("[runner] Done.")
    return outcome.ok
