"""
Node base class shared by blocks and components.

Every node instance belongs to exactly one run-context (a ``Scenario`` or a
``Session``) and goes through the same lifecycle:

    CREATED -> BOOTING -> BOOTED -> EVALUATING (once per trigger)

Booting is driven by the run-context and happens at most once. Evaluations
may be requested at any time; they wait until the node has booted and never
start the boot themselves, so a node whose boot failed (or never started)
simply never evaluates.
"""
from __future__ import annotations
import asyncio
import inspect
import logging
import re
import weakref
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Set, Type

from pydantic import BaseModel, ValidationError

from .errors import BootError, ConfigurationError, EvaluationError
from .persistence import ResultRecord

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self):
        return "UNSET"


UNSET: Any = _Unset()

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def titleize(type_name: str) -> str:
    return type_name.replace("_", " ").strip().title()


class NodeState(str, Enum):
    CREATED = "created"
    BOOTING = "booting"
    BOOTED = "booted"
    EVALUATING = "evaluating"
    BOOT_FAILED = "boot_failed"


class CompleteOnce:
    """Callable wrapper that forwards only its first invocation."""

    def __init__(self, fnc: Optional[Callable[..., Any]] = None):
        self.fnc = fnc
        self.fired = False

    def __call__(self, *args: Any) -> Any:
        if self.fired:
            return None
        self.fired = True
        if self.fnc is not None:
            return self.fnc(*args)
        return None


Observer = Callable[..., Any]


class Node:
    # Class-level definition, shared by every instance of a node type
    type_name: ClassVar[str] = "node"
    title: ClassVar[str] = "Node"
    description: ClassVar[str] = ""
    categories: ClassVar[List[str]] = []
    settings_model: ClassVar[Optional[Type[BaseModel]]] = None
    entrance_point: ClassVar[bool] = False
    abstract: ClassVar[bool] = True

    data_model: ClassVar[Type[BaseModel]]
    id_field: ClassVar[str] = "id"

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "type_name" not in cls.__dict__:
            cls.type_name = snake_case(cls.__name__)
        if "title" not in cls.__dict__:
            cls.title = titleize(cls.type_name)
        cls.categories = list(cls.__dict__.get("categories", []))
        cls.abstract = cls.__dict__.get("abstract", False)

    @classmethod
    def schema(cls) -> Optional[Dict[str, Any]]:
        if cls.settings_model is None:
            return None
        return cls.settings_model.model_json_schema()

    @classmethod
    def field_count(cls) -> int:
        if cls.settings_model is None:
            return 0
        return len(cls.settings_model.model_fields)

    @classmethod
    def parse_settings(cls, settings: Dict[str, Any]) -> Optional[BaseModel]:
        if cls.settings_model is None:
            return None
        try:
            return cls.settings_model.model_validate(settings)
        except ValidationError as err:
            raise ConfigurationError(f"Invalid settings for '{cls.type_name}': {err}") from err

    def __init__(self, context: Any, data: Any = None):
        if context is None:
            raise ConfigurationError(f"{type(self).__name__} nodes require a run-context")
        if self.abstract:
            raise ConfigurationError(f"{type(self).__name__} is abstract and cannot be placed in a graph")

        self._context = weakref.ref(context)

        if not isinstance(data, self.data_model):
            try:
                data = self.data_model.model_validate(data or {})
            except ValidationError as err:
                raise ConfigurationError(f"Invalid node data for '{self.type_name}': {err}") from err

        self.data = data
        self.settings: Dict[str, Any] = dict(data.settings)
        self.config = self.parse_settings(self.settings)
        self.id: str = getattr(data, self.id_field)

        # Nodes that triggered an evaluation, in call order
        self.seen_blocks: List[Any] = []

        self.state = NodeState.CREATED
        self.booting = False
        self.booted = False
        self.evaluation_count = 0

        self.result_value: Any = None
        self.result_err: Optional[BaseException] = None
        self.has_result_value = False
        self.has_silent_value = False

        self._observers: Dict[str, List[Observer]] = {}
        self._notified: Set[str] = set()
        self._boot_task: Optional[asyncio.Future] = None
        self._booted_event = asyncio.Event()
        self._evaluations: Set[asyncio.Future] = set()

    def __repr__(self):
        return f"<{type(self).__name__} {self.id!r} {self.state.value}>"

    @property
    def context(self) -> Any:
        return self._context()

    def _is_live(self) -> bool:
        context = self.context
        return context is not None and not getattr(context, "closed", False)

    # -- observers ---------------------------------------------------------

    def on(self, event: str, handler: Observer) -> None:
        self._observers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Observer) -> None:
        handlers = self._observers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: str, *args: Any) -> None:
        """Run every observer of ``event`` in registration order.

        Observers receive the node as their first argument and may be
        coroutines. An exception from an observer propagates to the caller.
        """
        for handler in list(self._observers.get(event, [])):
            result = handler(self, *args)
            if inspect.isawaitable(result):
                await result

    def notify(self, event: str, *args: Any) -> Optional[asyncio.Future]:
        if not self._observers.get(event):
            return None
        task = asyncio.ensure_future(self.emit(event, *args))
        task.add_done_callback(self._log_observer_failure)
        return task

    def notify_once(self, event: str, *args: Any) -> Optional[asyncio.Future]:
        if event in self._notified:
            return None
        self._notified.add(event)
        return self.notify(event, *args)

    def _log_observer_failure(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            logger.error("Observer of node %s failed: %s", self.id, err, exc_info=err)

    # -- boot --------------------------------------------------------------

    async def start_boot(self) -> None:
        """Boot this node, or wait for the boot already in progress.

        Raises ``BootError`` when the ``booting`` observers or the ``boot``
        hook fail; every waiting caller receives the same error.
        """
        if self._boot_task is None:
            self._boot_task = asyncio.ensure_future(self._run_boot())
        await asyncio.shield(self._boot_task)

    async def _run_boot(self) -> None:
        self.booting = True
        self.state = NodeState.BOOTING
        logger.debug("Booting node %s", self.id)

        try:
            await self.emit("booting")
        except Exception as err:
            self.state = NodeState.BOOT_FAILED
            raise BootError(self.id, f"booting observer failed: {err}") from err

        try:
            result = self.boot()
            if inspect.isawaitable(result):
                await result
        except BootError:
            self.state = NodeState.BOOT_FAILED
            raise
        except Exception as err:
            self.state = NodeState.BOOT_FAILED
            raise BootError(self.id, str(err)) from err

        self.booted = True
        self.state = NodeState.BOOTED
        self._booted_event.set()
        logger.debug("Node %s booted", self.id)
        self.notify("booted")

    # -- evaluation --------------------------------------------------------

    def start_evaluation(self, from_node: Any = None, callback: Optional[Callable[..., Any]] = None,
                         special_callback: Optional[Callable[..., Any]] = None) -> asyncio.Future:
        """Evaluate this node once it has booted.

        ``callback(err, value)`` and ``special_callback(command, silent_value)``
        each fire at most once. Returns the task running the evaluation.
        """
        callback = CompleteOnce(callback)
        special_callback = CompleteOnce(special_callback)

        self.seen_blocks.append(from_node)

        task = asyncio.ensure_future(self._evaluate_when_booted(from_node, callback, special_callback))
        self._evaluations.add(task)
        task.add_done_callback(self._evaluations.discard)
        return task

    async def _evaluate_when_booted(self, from_node: Any, callback: CompleteOnce,
                                    special_callback: CompleteOnce) -> None:
        await self._booted_event.wait()

        if not self._is_live():
            logger.debug("Run of node %s ended before it could evaluate", self.id)
            return

        self.evaluation_count += 1
        self.state = NodeState.EVALUATING

        # Every call is persisted; only the caller's callback and the event fire once
        def evaluated(err: Any = None, value: Any = None) -> None:
            if not self._is_live():
                logger.debug("Ignoring late result of node %s", self.id)
                return
            if err is not None and not isinstance(err, EvaluationError):
                wrapped = EvaluationError(self.id, err)
                if isinstance(err, BaseException):
                    wrapped.__cause__ = err
                err = wrapped
            self.set_result_value(err, value)
            callback(err, value)
            self.notify_once("evaluated")

        def command(name: Optional[str] = None, silent_value: Any = UNSET) -> None:
            if not self._is_live():
                return
            if silent_value is not UNSET:
                self.set_result_value(None, silent_value, silent=True)
            special_callback(name or "ignore", None if silent_value is UNSET else silent_value)

        try:
            result = self.evaluate(from_node, evaluated, command)
            if inspect.isawaitable(result):
                await result
        except Exception as err:
            if callback.fired:
                logger.error("Node %s raised after it completed its evaluation", self.id, exc_info=err)
                return
            logger.warning("Node %s raised during evaluation: %s", self.id, err)
            evaluated(err)

    def cancel_pending(self) -> int:
        pending = [task for task in self._evaluations if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)

    # -- results -----------------------------------------------------------

    def set_result_value(self, err: Any, value: Any, silent: bool = False) -> None:
        self.has_result_value = True
        self.has_silent_value = bool(silent)
        self.result_value = value
        self.result_err = err

        context = self.context
        if context is not None:
            context.persist_block_value(self)

    def get_current_result(self, scope_name: Optional[str] = None) -> ResultRecord:
        context = self.context
        if context is None:
            return ResultRecord()
        return context.touch_persisted_block_value(self, scope_name)

    def get_previous_result(self, scope_name: Optional[str] = None) -> ResultRecord:
        context = self.context
        if context is None:
            return ResultRecord()

        scope_name = scope_name or context.scope_name
        previous = context.previous_result_clone

        # Without a snapshot of an earlier run, the current values are all we have
        if previous is None:
            return self.get_current_result(scope_name)

        record = previous.setdefault(scope_name, {}).get(self.id)
        if record is None:
            return ResultRecord()
        return record

    def result_changed(self, scope_name: Optional[str] = None) -> bool:
        current = self.get_current_result(scope_name)
        previous = self.get_previous_result(scope_name)
        return current.value != previous.value

    # -- shared variables --------------------------------------------------

    def get(self, name: str) -> Any:
        context = self.context
        if context is None or getattr(context, "variables", None) is None:
            return None
        entry = context.variables.get(name)
        if entry:
            return entry.get("value")
        return None

    def set(self, name: str, value: Any, type: Optional[str] = None) -> bool:
        context = self.context
        if context is None or getattr(context, "variables", None) is None:
            return False
        context.variables[name] = {"value": value, "type": type}
        return True

    # -- hooks for node types ----------------------------------------------

    async def boot(self) -> None:
        """Prepare the node; runs once, before any evaluation."""
        return None

    def evaluate(self, from_node: Any, callback: Callable[..., Any], command: Callable[..., Any]) -> Any:
        raise NotImplementedError(f"{type(self).__name__} does not implement evaluate()")
