"""
Evaluation scheduler for block scenarios.

One run goes like this:

1. every block is booted concurrently; blocks that fail to boot are
   recorded and never evaluated,
2. every entrance-point block is evaluated with no referring block,
3. whenever a block calls back with a value, the blocks on the matching
   branch are evaluated next, each (source, target) edge at most once,
4. the run is over once no evaluation is pending.

A block error is recorded against that block and ends its branch; the rest
of the graph keeps going unless ``halt_on_error`` is configured. Blocks can
also send commands: ``stop`` stops the scheduler from starting anything
new and ``ignore`` does nothing by itself. Commands do not replace the main
callback; a block that only sent commands ends its branch once
``evaluate()`` has returned, and a callback after that point is ignored.
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from .block import Block
from .config import EngineConfig
from .errors import BootError
from .node import CompleteOnce

logger = logging.getLogger(__name__)

Edge = Tuple[str, str]


@dataclass
class RunReport:
    evaluated: List[str] = field(default_factory=list)   # in completion order
    errors: Dict[str, BaseException] = field(default_factory=dict)
    boot_errors: Dict[str, BootError] = field(default_factory=dict)
    traversed: List[Edge] = field(default_factory=list)
    stopped: bool = False
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not (self.errors or self.boot_errors or self.timed_out)


class EvaluationScheduler:
    def __init__(self, scenario: Any, config: Optional[EngineConfig] = None):
        self.scenario = scenario
        self.config = config or EngineConfig()
        self.report = RunReport()
        self._pending = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._traversed: Set[Edge] = set()
        self._stopped = False

    async def run(self) -> RunReport:
        self.report.boot_errors = await self.scenario.boot_all()

        entrances = self.scenario.get_sorted_blocks().entrances
        if not entrances:
            logger.warning("Scenario '%s' has no entrance blocks", self.scenario.document.name)

        for block in entrances:
            self._fire(block, None)

        try:
            await asyncio.wait_for(self._idle.wait(), timeout=self.config.run_timeout)
        except asyncio.TimeoutError:
            self.report.timed_out = True
            logger.warning("Scenario '%s' did not settle within %ss, %d evaluation(s) pending",
                           self.scenario.document.name, self.config.run_timeout, self._pending)

        self.report.stopped = self._stopped
        return self.report

    def stop(self) -> None:
        if not self._stopped:
            logger.info("Stopping scenario '%s'", self.scenario.document.name)
        self._stopped = True

    def _fire(self, block: Block, from_block: Optional[Block]) -> None:
        if self._stopped or self.scenario.closed:
            return

        if block.id in self.report.boot_errors:
            logger.debug("Block %s did not boot, it will not evaluate", block.id)
            return

        self._pending += 1
        self._idle.clear()

        def finish() -> None:
            self.report.evaluated.append(block.id)
            self._settle()

        settle = CompleteOnce(finish)
        commands: List[str] = []

        def evaluated(err: Any, value: Any) -> None:
            if settle.fired:
                logger.debug("Block %s called back after its evaluation settled", block.id)
                return
            if err is not None:
                logger.warning("%s", err)
                self.report.errors[block.id] = err
                if self.config.halt_on_error:
                    self.stop()
            else:
                for successor in block.get_next_blocks(value):
                    self._traverse(block, successor)
            settle()

        def commanded(command: str, silent_value: Any) -> None:
            commands.append(command)
            if command == "stop":
                self.stop()
            elif command != "ignore":
                logger.warning("Block %s sent unknown command %r", block.id, command)

        # A command alone answers the evaluation once evaluate() has returned
        def task_done(task: asyncio.Future) -> None:
            if task.cancelled() or commands:
                settle()

        task = block.start_evaluation(from_block, evaluated, commanded)
        task.add_done_callback(task_done)

    def _traverse(self, source: Block, target: Block) -> None:
        edge = (source.id, target.id)
        if edge in self._traversed:
            logger.debug("Edge %s -> %s was already traversed", *edge)
            return
        self._traversed.add(edge)
        self.report.traversed.append(edge)
        self._fire(target, source)

    def _settle(self) -> None:
        self._pending -= 1
        if self._pending <= 0:
            self._pending = 0
            self._idle.set()
