import asyncio
import gc

import pytest

from scenarioflow.block import Block
from scenarioflow.errors import BootError, ConfigurationError, EvaluationError
from scenarioflow.node import NodeState
from scenarioflow.persistence import ResultRecord, ResultStore


class SlowBoot(Block):
    def __init__(self, scenario, data=None):
        super().__init__(scenario, data)
        self.boot_calls = 0

    async def boot(self):
        self.boot_calls += 1
        await asyncio.sleep(0.01)

    def evaluate(self, from_node, callback, command):
        callback(None, "done")


class FailingBoot(Block):
    def boot(self):
        raise RuntimeError("no database")

    def evaluate(self, from_node, callback, command):
        callback(None, True)


class Chatty(Block):
    def evaluate(self, from_node, callback, command):
        callback(None, 1)
        callback(None, 2)


class Complaining(Block):
    def evaluate(self, from_node, callback, command):
        callback(RuntimeError("bad input"), None)


class Quiet(Block):
    def evaluate(self, from_node, callback, command):
        command(silent_value=5)


class Deferred(Block):
    def evaluate(self, from_node, callback, command):
        self.finish = callback


@pytest.mark.asyncio
async def test_concurrent_boot_runs_hook_once(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "slow_boot"}], SlowBoot)
    block = scenario.get_block("a")
    booted_events = []
    block.on("booted", lambda node: booted_events.append(node.id))

    resumed = []

    async def boot_and_record(tag):
        await block.start_boot()
        resumed.append(tag)

    await asyncio.gather(boot_and_record(1), boot_and_record(2))
    await asyncio.sleep(0)

    assert block.boot_calls == 1
    assert sorted(resumed) == [1, 2]
    assert block.booted and block.state is NodeState.BOOTED
    assert booted_events == ["a"]

    # Booting again afterwards is a no-op
    await block.start_boot()
    assert block.boot_calls == 1


@pytest.mark.asyncio
async def test_boot_hook_failure_raises_boot_error(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "failing_boot"}], FailingBoot)
    block = scenario.get_block("a")

    with pytest.raises(BootError) as excinfo:
        await block.start_boot()

    assert excinfo.value.node_id == "a"
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert not block.booted
    assert block.state is NodeState.BOOT_FAILED


@pytest.mark.asyncio
async def test_booting_observer_failure_blocks_evaluation(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "echo"}])
    block = scenario.get_block("a")

    async def refuse(node):
        raise RuntimeError("not today")

    block.on("booting", refuse)
    with pytest.raises(BootError):
        await block.start_boot()

    called = []
    task = block.start_evaluation(None, lambda err, value: called.append(value))
    await asyncio.sleep(0.01)

    assert not task.done()
    assert called == []
    assert block.evaluation_count == 0
    assert block.seen_blocks == [None]

    scenario.close()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_evaluation_waits_for_boot(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "slow_boot"}, {"id": "b", "type": "echo"}], SlowBoot)
    block = scenario.get_block("a")
    referrer = scenario.get_block("b")
    results = []

    task = block.start_evaluation(referrer, lambda err, value: results.append((err, value)))
    assert block.seen_blocks == [referrer]
    await asyncio.sleep(0)
    assert block.evaluation_count == 0

    await block.start_boot()
    await task

    assert results == [(None, "done")]
    assert block.evaluation_count == 1
    assert block.state is NodeState.EVALUATING
    assert block.result_value == "done"
    assert block.has_result_value and not block.has_silent_value


@pytest.mark.asyncio
async def test_callback_fires_once_but_every_result_is_persisted(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "chatty"}], Chatty)
    block = scenario.get_block("a")
    evaluated_events = []
    block.on("evaluated", lambda node: evaluated_events.append(node.id))
    results = []

    await block.start_boot()
    await block.start_evaluation(None, lambda err, value: results.append(value))
    await block.start_evaluation(None, lambda err, value: results.append(value))
    await asyncio.sleep(0)

    assert results == [1, 1]
    assert block.result_value == 2
    assert scenario.store.values["default"]["a"].value == 2
    assert block.evaluation_count == 2
    assert evaluated_events == ["a"]


@pytest.mark.asyncio
async def test_raising_evaluate_becomes_evaluation_error(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "broken"}])
    block = scenario.get_block("a")
    errors = []

    await block.start_boot()
    await block.start_evaluation(None, lambda err, value: errors.append(err))

    assert len(errors) == 1
    assert isinstance(errors[0], EvaluationError)
    assert isinstance(errors[0].cause, ValueError)
    assert block.result_err is errors[0]
    assert scenario.store.values["default"]["a"].error is not None


@pytest.mark.asyncio
async def test_error_passed_to_callback_is_wrapped(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "complaining"}], Complaining)
    block = scenario.get_block("a")
    errors = []

    await block.start_boot()
    await block.start_evaluation(None, lambda err, value: errors.append(err))

    assert isinstance(errors[0], EvaluationError)
    assert str(errors[0].cause) == "bad input"


@pytest.mark.asyncio
async def test_command_stores_silent_value(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "quiet"}], Quiet)
    block = scenario.get_block("a")
    main, special = [], []

    await block.start_boot()
    await block.start_evaluation(None, lambda *args: main.append(args), lambda *args: special.append(args))

    assert main == []
    assert special == [("ignore", 5)]
    assert block.result_value == 5
    assert block.has_silent_value
    assert block.get_current_result().silent


@pytest.mark.asyncio
async def test_late_callback_after_close_is_ignored(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "deferred"}], Deferred)
    block = scenario.get_block("a")
    results = []

    await block.start_boot()
    await block.start_evaluation(None, lambda err, value: results.append(value))
    scenario.close()
    block.finish(None, 9)

    assert results == []
    assert block.result_value is None
    assert scenario.store.is_empty()


def test_result_round_trip_without_snapshot(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "echo"}])
    block = scenario.get_block("a")

    block.set_result_value(None, 42)

    assert block.get_current_result("default").value == 42
    assert block.get_previous_result().value == 42
    assert not block.result_changed()


def test_previous_result_comes_from_snapshot(make_scenario):
    store = ResultStore()
    store.touch("a", "default").value = 1
    scenario = make_scenario([{"id": "a", "type": "echo"}, {"id": "b", "type": "echo"}], store=store)
    block = scenario.get_block("a")

    block.set_result_value(None, 2)

    assert block.get_current_result().value == 2
    assert block.get_previous_result().value == 1
    assert block.result_changed()
    assert scenario.get_block("b").get_previous_result() == ResultRecord()
    assert block.get_previous_result("other").value is None


def test_results_are_scoped(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "echo"}], scope_name="morning")
    block = scenario.get_block("a")

    block.set_result_value(None, "sunrise")

    assert block.get_current_result().value == "sunrise"
    assert block.get_current_result("evening").value is None
    assert set(scenario.store.values) == {"morning", "evening"}


def test_variables(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "echo"}], variables={"greeting": "hi"})
    block = scenario.get_block("a")

    assert block.get("greeting") == "hi"
    assert block.get("missing") is None
    assert block.set("count", 3, "int") is True
    assert scenario.variables["count"] == {"value": 3, "type": "int"}
    assert block.get("count") == 3


def test_variables_without_context(make_scenario):
    scenario = make_scenario([{"id": "a", "type": "echo"}])
    block = scenario.get_block("a")

    del scenario
    gc.collect()

    assert block.context is None
    assert block.get("anything") is None
    assert block.set("anything", 1) is False
    assert block.get_current_result() == ResultRecord()


def test_invalid_nodes_are_configuration_errors(make_scenario):
    with pytest.raises(ConfigurationError):
        Block(None, {"id": "a", "type": "echo"})
    with pytest.raises(ConfigurationError):
        make_scenario([{"id": "a", "type": "nope"}])
    with pytest.raises(ConfigurationError):
        make_scenario([{"id": "a", "type": "compare_variable", "settings": {"operator": "=="}}])
    with pytest.raises(ConfigurationError):
        make_scenario([{"id": "a", "type": "echo"}, {"id": "a", "type": "echo"}])
