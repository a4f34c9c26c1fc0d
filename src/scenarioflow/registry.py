from __future__ import annotations
import logging
from typing import Any, Dict, Iterator, List, Optional, Type

from .errors import ConfigurationError
from .node import Node

logger = logging.getLogger(__name__)


class NodeRegistry:
    """Type name -> node class mapping, filled explicitly at startup.

    A run-context uses it to turn the ``type`` of each node in a scenario
    document into an instance of the registered class.
    """

    def __init__(self, base: Type[Node] = Node):
        self.base = base
        self._types: Dict[str, Type[Node]] = {}

    def register(self, node_class: Type[Node]) -> Type[Node]:
        if not (isinstance(node_class, type) and issubclass(node_class, self.base)):
            raise ConfigurationError(f"{node_class!r} is not a {self.base.__name__} subclass")
        if node_class.abstract:
            raise ConfigurationError(f"{node_class.__name__} is abstract and cannot be registered")

        existing = self._types.get(node_class.type_name)
        if existing is not None and existing is not node_class:
            raise ConfigurationError(
                f"Type name '{node_class.type_name}' is already used by {existing.__name__}"
            )

        self._types[node_class.type_name] = node_class
        logger.debug("Registered node type %s", node_class.type_name)
        return node_class

    def get(self, type_name: str) -> Optional[Type[Node]]:
        return self._types.get(type_name)

    def create(self, context: Any, data: Any) -> Node:
        type_name = data.type if hasattr(data, "type") else (data or {}).get("type")
        node_class = self.get(type_name)
        if node_class is None:
            raise ConfigurationError(f"Unknown node type '{type_name}'")
        return node_class(context, data)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __iter__(self) -> Iterator[Type[Node]]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    def get_all(self) -> List[Dict[str, Any]]:
        """Palette entries for every registered type."""
        result = []
        for type_name, node_class in self._types.items():
            inputs = node_class.inputs.describe() if hasattr(node_class, "inputs") else []
            outputs = node_class.outputs.describe() if hasattr(node_class, "outputs") else []
            field_count = node_class.field_count()

            buttons = []
            if field_count:
                buttons.append({"name": "config", "title": "Config", "call": "configure_node"})

            result.append({
                "name": type_name,
                "title": node_class.title,
                "description": node_class.description or f"{node_class.title} component",
                "outputs": outputs,
                "inputs": inputs,
                "field_count": field_count,
                "schema": node_class.schema(),
                "buttons": buttons,
            })
        return result

    def client_descriptors(self) -> Dict[str, Dict[str, Any]]:
        return {
            node_class.__name__: node_class.get_client_descriptor()
            for node_class in self
            if hasattr(node_class, "get_client_descriptor")
        }
