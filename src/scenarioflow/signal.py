from __future__ import annotations
import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Signal:
    """A typed value routed from an output anchor to an input anchor.

    Equality is structural (type, value, source anchor); ``id`` is unique per
    instance and ``source`` is the sending node.
    """

    type: str
    value: Any = None
    source: Any = field(default=None, compare=False, repr=False)
    source_anchor: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)

    def clone(self) -> "Signal":
        return Signal(
            type=self.type,
            value=copy.deepcopy(self.value),
            source=self.source,
            source_anchor=self.source_anchor,
        )
