from typing import Any, Dict, List

import pytest

from scenarioflow.block import Block
from scenarioflow.builtins import create_block_registry, create_component_registry
from scenarioflow.ir import ScenarioDocument
from scenarioflow.session import Session
from scenarioflow.scenario import Scenario


class Echo(Block):
    """Calls back with its ``value`` setting (True by default)."""

    def evaluate(self, from_node, callback, command):
        callback(None, self.settings.get("value", True))


class Broken(Block):
    def evaluate(self, from_node, callback, command):
        raise ValueError("boom")


class Silent(Block):
    """Never calls back."""

    def evaluate(self, from_node, callback, command):
        return None


@pytest.fixture
def make_scenario():
    def factory(blocks: List[Dict[str, Any]], *extra_types, store=None, variables=None, **kwargs) -> Scenario:
        registry = create_block_registry()
        for block_type in (Echo, Broken, Silent) + extra_types:
            registry.register(block_type)
        doc = ScenarioDocument(name="test", blocks=blocks, variables=variables or {})
        return Scenario(doc, registry, store=store, **kwargs)
    return factory


@pytest.fixture
def make_session():
    def factory(components: List[Dict[str, Any]], *extra_types, **kwargs) -> Session:
        registry = create_component_registry()
        for component_type in extra_types:
            registry.register(component_type)
        doc = ScenarioDocument(name="test", components=components)
        return Session(doc, registry, **kwargs)
    return factory
