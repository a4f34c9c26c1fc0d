from __future__ import annotations
from typing import Iterable, Optional

from .block import Block
from .config import EngineConfig
from .context import RunContext
from .ir import BlockData
from .scheduler import EvaluationScheduler, RunReport


class Scenario(RunContext):
    """Run-context for a graph of true/false branching blocks."""

    node_class = Block

    def _node_data(self) -> Iterable[BlockData]:
        return self.document.blocks

    def get_block(self, block_id: str) -> Optional[Block]:
        return self.graph.resolve(block_id)

    async def run(self, config: Optional[EngineConfig] = None) -> RunReport:
        return await EvaluationScheduler(self, config).run()
