from __future__ import annotations
from typing import Any, ClassVar, List, Sequence

from .errors import ConfigurationError
from .ir import BlockData
from .node import Node


class Block(Node):
    """A flow node that branches on the truthiness of its result.

    After evaluating, the blocks listed in ``out_on_true`` or
    ``out_on_false`` are the ones the scenario continues with.
    """

    abstract = True
    data_model = BlockData
    id_field = "id"

    has_entrance: ClassVar[bool] = True
    has_settings: ClassVar[bool] = True
    exit_names: ClassVar[Sequence[str]] = ("true", "false")

    # When set, used as the description regardless of the settings
    static_description: ClassVar[str] = ""
    force_description_callback: ClassVar[bool] = False

    def __init__(self, scenario: Any, data: Any = None):
        if scenario is None:
            raise ConfigurationError("Scenario blocks require a scenario")
        super().__init__(scenario, data)

    @property
    def scenario(self) -> Any:
        return self.context

    @property
    def block_ids_when_true(self) -> List[str]:
        return self.scenario.graph.exit_ids(self, True)

    @property
    def block_ids_when_false(self) -> List[str]:
        return self.scenario.graph.exit_ids(self, False)

    @property
    def exit_block_ids(self) -> List[str]:
        return self.block_ids_when_true + self.block_ids_when_false

    @property
    def entrance_block_ids(self) -> List[str]:
        return self.scenario.graph.entrance_ids(self)

    def get_entrance_blocks(self) -> List["Block"]:
        return self.scenario.graph.entrance_nodes(self)

    def get_next_blocks(self, value: Any) -> List["Block"]:
        return self.scenario.graph.next_nodes(self, value)

    def do_get_description(self) -> str:
        if self.static_description and not self.force_description_callback:
            return self.static_description

        if not self.has_settings or self.force_description_callback or self.settings:
            return self.get_description()

        return f"{self.title} (unconfigured)"

    def get_description(self) -> str:
        return self.title
