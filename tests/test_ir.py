from pathlib import Path

import pytest
import yaml

from scenarioflow.builtins import create_block_registry, create_component_registry
from scenarioflow.generator import TEMPLATES, generate_scenario_from_template, save_scenario_yaml
from scenarioflow.ir import ScenarioDocument
from scenarioflow.validator import validate_document, validate_scenario_from_file
from scenarioflow.visualize import ascii_plan


def _validate(doc):
    return validate_document(doc, create_block_registry(), create_component_registry())


@pytest.mark.parametrize("template", TEMPLATES)
def test_generate_and_validate(tmp_path: Path, template):
    doc = generate_scenario_from_template(template)
    path = tmp_path / f"{template}.yaml"
    save_scenario_yaml(doc, path)
    ok, messages = validate_scenario_from_file(path, create_block_registry(), create_component_registry())
    assert ok, messages
    assert not [m for m in messages if m.startswith("ERR")]


def test_unknown_template():
    with pytest.raises(ValueError):
        generate_scenario_from_template("nope")


def test_connections_round_trip_with_in_alias(tmp_path: Path):
    doc = generate_scenario_from_template("signals")
    path = tmp_path / "signals.yaml"
    save_scenario_yaml(doc, path)

    raw = yaml.safe_load(path.read_text())
    gate = next(c for c in raw["components"] if c["uid"] == "gate")
    assert "in" in gate["connections"]
    assert ScenarioDocument(**raw) == doc


def test_duplicate_ids_and_unknown_types():
    doc = ScenarioDocument(blocks=[
        {"id": "a", "type": "start"},
        {"id": "a", "type": "echo_nothing"},
    ])
    ok, messages = _validate(doc)
    assert not ok
    assert "ERR: Duplicate block IDs detected." in messages
    assert any("unknown type 'echo_nothing'" in m for m in messages)


def test_missing_targets_are_warnings():
    doc = ScenarioDocument(blocks=[
        {"id": "start", "type": "start", "out_on_true": ["gone", ""]},
    ])
    ok, messages = _validate(doc)
    assert ok
    assert "WARN: Block start (true) points to missing block gone." in messages


def test_invalid_settings_are_errors():
    doc = ScenarioDocument(blocks=[
        {"id": "start", "type": "start", "out_on_true": ["w"]},
        {"id": "w", "type": "wait", "settings": {"seconds": "soon"}},
    ])
    ok, messages = _validate(doc)
    assert not ok
    assert any(m.startswith("ERR: Node 'w'") for m in messages)


def test_block_loops_and_missing_entrance_are_warnings():
    doc = ScenarioDocument(blocks=[
        {"id": "a", "type": "log", "out_on_true": ["b"]},
        {"id": "b", "type": "log", "out_on_true": ["a"]},
    ])
    ok, messages = _validate(doc)
    assert ok
    assert "WARN: No entrance block, nothing will be evaluated." in messages
    assert any("Block graph contains a loop" in m for m in messages)


def test_bad_anchors_and_signal_loops():
    def conn(s, sa, t, ta):
        return {"source": {"node_uid": s, "anchor_name": sa}, "target": {"node_uid": t, "anchor_name": ta}}

    doc = ScenarioDocument(components=[
        {"uid": "p1", "type": "passthrough", "connections": {"out": [conn("p1", "signal", "p2", "signal")]}},
        {"uid": "p2", "type": "passthrough", "connections": {"out": [
            conn("p2", "signal", "p1", "signal"),
            conn("p2", "nope", "p1", "signal"),
            conn("p2", "signal", "gone", "signal"),
        ]}},
    ])
    ok, messages = _validate(doc)
    assert not ok
    assert "ERR: p2.nope is not an output on that component." in messages
    assert any(m.startswith("WARN: Connection p2.signal points to missing component gone") for m in messages)
    assert "WARN: Signal graph contains a loop and may never settle." in messages


def test_ascii_plan(tmp_path: Path):
    path = tmp_path / "branching.yaml"
    save_scenario_yaml(generate_scenario_from_template("branching"), path)

    plan = ascii_plan(path, create_block_registry())

    assert plan.splitlines()[0] == "# ASCII Plan: branching"
    assert "01. start [start] Start" in plan
    assert "temperature > 20" in plan
    assert "    └─▶ warm  (on true)" in plan
