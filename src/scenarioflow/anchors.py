from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class AnchorSpec:
    name: str
    title: Optional[str] = None
    type: Optional[str] = None
    handler: Optional[Callable[..., Any]] = None

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "title": self.title, "type": self.type}


class AnchorRegistry:
    """Ordered name -> AnchorSpec mapping for one direction of one node type.

    Setting an existing name replaces its spec in place, so the original
    declaration order survives redefinition.
    """

    def __init__(self, specs: Optional[List[AnchorSpec]] = None):
        self._specs: Dict[str, AnchorSpec] = {}
        for spec in specs or []:
            self.set(spec)

    def set(self, spec: AnchorSpec) -> None:
        self._specs[spec.name] = spec

    def get(self, name: str) -> Optional[AnchorSpec]:
        return self._specs.get(name)

    def names(self) -> List[str]:
        return list(self._specs)

    def copy(self) -> "AnchorRegistry":
        return AnchorRegistry(list(self._specs.values()))

    def describe(self) -> List[Dict[str, Any]]:
        return [spec.describe() for spec in self]

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[AnchorSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


def _valid_name(name: Any) -> bool:
    return isinstance(name, str) and bool(name) and name != "<lambda>"


def make_input_spec(name: Any, handler: Optional[Callable[..., Any]], options: Dict[str, Any]) -> AnchorSpec:
    if callable(name):
        handler, name = name, getattr(name, "__name__", None)
    if options.get("name"):
        name = options["name"]
    if not _valid_name(name):
        raise ConfigurationError(f"Each input anchor requires a valid name, got {name!r}")
    return AnchorSpec(name=name, title=options.get("title"), type=options.get("type"), handler=handler)


def make_output_spec(name: Any, options: Dict[str, Any]) -> AnchorSpec:
    if isinstance(name, dict):
        options, name = name, name.get("name")
    elif options.get("name"):
        name = options["name"]
    if not _valid_name(name):
        raise ConfigurationError(f"Each output anchor requires a valid name, got {name!r}")
    return AnchorSpec(name=name, title=options.get("title"), type=options.get("type"))


def input_anchor(name: Optional[str] = None, *, title: Optional[str] = None, type: Optional[str] = None):
    """Mark a component method as the handler of an input anchor.

    The anchor is named after the method unless ``name`` is given.
    """
    def decorate(fnc):
        fnc.__input_anchor__ = {"name": name, "title": title, "type": type}
        return fnc
    return decorate


def collect_input_specs(namespace: Dict[str, Any]) -> List[AnchorSpec]:
    specs = []
    for attr, value in namespace.items():
        options = getattr(value, "__input_anchor__", None)
        if options is None:
            continue
        options = {k: v for k, v in options.items() if v is not None}
        specs.append(make_input_spec(attr, value, options))
    return specs
