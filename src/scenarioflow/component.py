"""
Components: nodes that talk to each other through named anchors.

A component type declares its input anchors (each with a handler) and its
output anchors once, at class-definition time:

    class Doubler(Component):
        @input_anchor(type="number")
        def number(self, signal):
            self.output_signal("doubled", self.create_signal("number", signal.value * 2))

    Doubler.define_output("doubled", type="number")

Subclasses inherit their parent's anchors, including anchors the parent
defines after the subclass was created, unless the subclass declared an
anchor of the same name itself.

Routing is synchronous and has no cycle protection: a loop of connections
keeps re-delivering until Python's recursion limit is hit.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, ClassVar, Dict, List, Optional, Set

from .anchors import AnchorRegistry, AnchorSpec, collect_input_specs, make_input_spec, make_output_spec
from .errors import ConfigurationError
from .ir import ComponentData, Connection
from .node import Node
from .signal import Signal

logger = logging.getLogger(__name__)


class Component(Node):
    abstract = True
    data_model = ComponentData
    id_field = "uid"

    inputs: ClassVar[AnchorRegistry] = AnchorRegistry()
    outputs: ClassVar[AnchorRegistry] = AnchorRegistry()

    # Anchor names declared on the class itself rather than inherited
    _own_inputs: ClassVar[Set[str]] = set()
    _own_outputs: ClassVar[Set[str]] = set()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        parent = next(base for base in cls.__mro__[1:] if issubclass(base, Component))
        cls.inputs = parent.inputs.copy()
        cls.outputs = parent.outputs.copy()
        cls._own_inputs = set()
        cls._own_outputs = set()
        for spec in collect_input_specs(cls.__dict__):
            cls.inputs.set(spec)
            cls._own_inputs.add(spec.name)

    # -- anchor registration -----------------------------------------------

    @classmethod
    def define_input(cls, name: Any, handler: Optional[Callable[..., Any]] = None, **options: Any) -> AnchorSpec:
        if cls is Component:
            raise ConfigurationError("Anchors must be defined on a Component subclass")
        spec = make_input_spec(name, handler, options)
        cls._own_inputs.add(spec.name)
        cls._apply_anchor("inputs", spec)
        return spec

    @classmethod
    def define_output(cls, name: Any, **options: Any) -> AnchorSpec:
        if cls is Component:
            raise ConfigurationError("Anchors must be defined on a Component subclass")
        spec = make_output_spec(name, options)
        cls._own_outputs.add(spec.name)
        cls._apply_anchor("outputs", spec)
        return spec

    @classmethod
    def _apply_anchor(cls, direction: str, spec: AnchorSpec) -> None:
        getattr(cls, direction).set(spec)
        for sub in cls.__subclasses__():
            if spec.name not in getattr(sub, "_own_" + direction):
                sub._apply_anchor(direction, spec)

    @classmethod
    def add_category(cls, category_name: str) -> None:
        if category_name not in cls.categories:
            cls.categories.append(category_name)

    @classmethod
    def set_description(cls, description: str) -> None:
        cls.description = description

    @classmethod
    def get_client_descriptor(cls) -> Dict[str, Any]:
        """Serializable description of this component type for editors."""
        result = {
            "name": cls.__name__,
            "type_name": cls.type_name,
            "schema": cls.schema(),
            "categories": list(cls.categories),
            "title": cls.title,
            "description": cls.description,
            "inputs": cls.inputs.describe(),
            "outputs": cls.outputs.describe(),
        }
        parent = cls.__mro__[1]
        if cls is not Component and parent is not Component:
            result["parent"] = parent.__name__
        return result

    # -- instances ---------------------------------------------------------

    def __init__(self, session: Any, data: Any = None):
        if session is None:
            raise ConfigurationError("Scenario components require a session")
        super().__init__(session, data)
        self.uid = self.id

    @property
    def session(self) -> Any:
        return self.context

    @property
    def scenario(self) -> Any:
        return getattr(self.session, "scenario", None)

    def get_input(self, name: str) -> Optional[AnchorSpec]:
        return type(self).inputs.get(name)

    def get_input_connections(self) -> List[Connection]:
        return self.data.connections.in_

    def get_output_connections(self) -> List[Connection]:
        return self.data.connections.out

    # -- signal routing ----------------------------------------------------

    def create_signal(self, type: str, value: Any = None) -> Signal:
        signal = Signal(type, value)
        signal.source = self
        return signal

    def output_signal(self, name: str, signal: Signal) -> int:
        """Send a clone of ``signal`` along every connection of output ``name``.

        Returns the number of components the signal was delivered to.
        """
        if not self._is_live():
            logger.debug("Component %s is not in a live session, not sending %r", self.id, name)
            return 0

        graph = self.session.graph
        delivered = 0

        for connection in self.get_output_connections():
            if connection.source.anchor_name != name:
                continue

            target = graph.resolve(connection.target.node_uid)
            if target is None:
                logger.debug("Connection from %s.%s points to missing component %s",
                             self.id, name, connection.target.node_uid)
                continue

            cloned = signal.clone()
            cloned.source = self
            cloned.source_anchor = name

            target.input_signal(connection.target.anchor_name, cloned)
            delivered += 1

        return delivered

    def input_signal(self, name: str, signal: Signal) -> Any:
        spec = self.get_input(name)

        # Unconnected or optional inputs are normal
        if spec is None or spec.handler is None:
            logger.debug("Component %s has no handler for input %r", self.id, name)
            return None

        return spec.handler(self, signal)

    # -- memory ------------------------------------------------------------

    def get_memory(self):
        persistent = getattr(self.session, "persistent_memory", None)
        if persistent is not None:
            return persistent.get_sub_memory(self.uid)
        return self.get_session_memory()

    def get_session_memory(self):
        return self.session.session_memory.get_sub_memory(self.uid)
