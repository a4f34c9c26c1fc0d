"""Generic node types that ship with the engine."""
from __future__ import annotations
import asyncio
import logging
import operator
from typing import Any, List, Literal, Optional

from pydantic import BaseModel

from .anchors import input_anchor
from .block import Block
from .component import Component
from .errors import ConfigurationError
from .registry import NodeRegistry

logger = logging.getLogger(__name__)

Operator = Literal["==", "!=", ">", ">=", "<", "<=", "exists"]

_OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


def compare(left: Any, op: str, right: Any) -> bool:
    if op == "exists":
        return left is not None
    try:
        return bool(_OPERATORS[op](left, right))
    except TypeError:
        return False


# -- blocks -------------------------------------------------------------------


class Start(Block):
    description = "Entrance point of a scenario"
    entrance_point = True
    has_entrance = False
    has_settings = False
    static_description = "Start"

    def evaluate(self, from_node, callback, command):
        callback(None, True)


class SetVariable(Block):
    class Settings(BaseModel):
        name: str
        value: Any = None
        type: Optional[str] = None

    settings_model = Settings
    description = "Store a value in the scenario variables"

    def get_description(self):
        return f"Set {self.config.name} to {self.config.value!r}"

    def evaluate(self, from_node, callback, command):
        callback(None, self.set(self.config.name, self.config.value, self.config.type))


class CompareVariable(Block):
    class Settings(BaseModel):
        name: str
        operator: Operator = "=="
        value: Any = None

    settings_model = Settings
    description = "Branch on a scenario variable"

    def get_description(self):
        if self.config.operator == "exists":
            return f"{self.config.name} exists"
        return f"{self.config.name} {self.config.operator} {self.config.value!r}"

    def evaluate(self, from_node, callback, command):
        callback(None, compare(self.get(self.config.name), self.config.operator, self.config.value))


class ResultChanged(Block):
    """True when another block's result differs from the previous run."""

    class Settings(BaseModel):
        block: str

    settings_model = Settings
    description = "Compare a block's result with the previous run"

    def get_description(self):
        return f"Result of {self.config.block} changed"

    def evaluate(self, from_node, callback, command):
        watched = self.scenario.get_block(self.config.block)
        if watched is None:
            raise ConfigurationError(f"Block '{self.config.block}' does not exist")
        callback(None, watched.result_changed())


class Wait(Block):
    class Settings(BaseModel):
        seconds: float = 0.0

    settings_model = Settings

    def get_description(self):
        return f"Wait {self.config.seconds}s"

    async def evaluate(self, from_node, callback, command):
        await asyncio.sleep(self.config.seconds)
        callback(None, True)


class Log(Block):
    class Settings(BaseModel):
        message: str = ""

    settings_model = Settings
    force_description_callback = True

    def get_description(self):
        return f"Log {self.config.message!r}"

    def evaluate(self, from_node, callback, command):
        logger.info("[%s] %s", self.id, self.config.message)
        callback(None, True)


class Stop(Block):
    has_settings = False
    static_description = "Stop the scenario"

    def evaluate(self, from_node, callback, command):
        command("stop", from_node.id if from_node is not None else None)


# -- components ---------------------------------------------------------------


class Trigger(Component):
    class Settings(BaseModel):
        type: str = "value"
        value: Any = None

    settings_model = Settings
    entrance_point = True
    description = "Emit one signal when the session starts"

    def evaluate(self, from_node, callback, command):
        self.output_signal("signal", self.create_signal(self.config.type, self.config.value))
        callback(None, self.config.value)


Trigger.define_output("signal", title="Signal")
Trigger.add_category("input")


class Passthrough(Component):
    description = "Forward every incoming signal"

    @input_anchor(title="Signal")
    def signal(self, signal):
        self.set_result_value(None, signal.value)
        self.output_signal("signal", signal)


Passthrough.define_output("signal", title="Signal")
Passthrough.add_category("flow")


class Gate(Component):
    """Route a signal to ``true`` or ``false`` depending on its value."""

    class Settings(BaseModel):
        operator: Operator = "=="
        value: Any = None

    settings_model = Settings
    description = "Route signals by comparing their value"

    @input_anchor(title="Signal")
    def signal(self, signal):
        passed = compare(signal.value, self.config.operator, self.config.value)
        self.set_result_value(None, passed)
        self.output_signal("true" if passed else "false", signal)


Gate.define_output("true", title="Passed")
Gate.define_output("false", title="Rejected")


class Collect(Component):
    description = "Remember every value it receives"

    @input_anchor(title="Signal")
    def signal(self, signal):
        memory = self.get_memory()
        values: List[Any] = memory.get("values", [])
        values.append(signal.value)
        memory.set("values", values)
        self.set_result_value(None, list(values))


Collect.add_category("output")


BLOCK_TYPES = (Start, SetVariable, CompareVariable, ResultChanged, Wait, Log, Stop)
COMPONENT_TYPES = (Trigger, Passthrough, Gate, Collect)


def create_block_registry() -> NodeRegistry:
    registry = NodeRegistry(Block)
    for block_class in BLOCK_TYPES:
        registry.register(block_class)
    return registry


def create_component_registry() -> NodeRegistry:
    registry = NodeRegistry(Component)
    for component_class in COMPONENT_TYPES:
        registry.register(component_class)
    return registry
