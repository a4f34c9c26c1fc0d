import networkx as nx


def test_next_blocks_drop_empty_and_missing_ids(make_scenario):
    scenario = make_scenario([
        {"id": "x", "type": "echo", "out_on_true": ["A", "", "missing", "B", None], "out_on_false": []},
        {"id": "A", "type": "echo"},
        {"id": "B", "type": "echo"},
    ])
    x = scenario.get_block("x")

    assert x.block_ids_when_true == ["A", "missing", "B"]
    assert [b.id for b in x.get_next_blocks(True)] == ["A", "B"]
    assert x.get_next_blocks(False) == []
    assert x.exit_block_ids == ["A", "missing", "B"]


def test_numeric_ids_are_compared_as_strings(make_scenario):
    scenario = make_scenario([
        {"id": 1, "type": "echo", "out_on_true": [2]},
        {"id": 2, "type": "echo"},
    ])

    assert [b.id for b in scenario.get_block("1").get_next_blocks(True)] == ["2"]
    assert scenario.get_block("2").entrance_block_ids == ["1"]


def test_entrance_ids_are_deduplicated_and_cached(make_scenario):
    scenario = make_scenario([
        {"id": "a", "type": "echo", "out_on_true": ["x"]},
        {"id": "b", "type": "echo", "out_on_false": ["x"]},
        {"id": "c", "type": "echo", "out_on_true": ["x"], "out_on_false": ["x"]},
        {"id": "d", "type": "echo", "out_on_true": ["a"]},
        {"id": "x", "type": "echo"},
    ])
    x = scenario.get_block("x")

    first = x.entrance_block_ids
    assert first == ["a", "b", "c"]
    assert x.entrance_block_ids is first
    assert [b.id for b in x.get_entrance_blocks()] == ["a", "b", "c"]
    assert x.get_entrance_blocks() is x.get_entrance_blocks()
    assert scenario.get_block("d").entrance_block_ids == []


def test_dangling_targets(make_scenario):
    scenario = make_scenario([
        {"id": "B", "type": "echo", "out_on_true": ["C"], "out_on_false": ["C"]},
    ])
    b = scenario.get_block("B")

    assert b.get_next_blocks(True) == []
    assert b.get_next_blocks(False) == []
    assert scenario.graph.entrance_ids("C") == ["B"]
    assert scenario.graph.entrance_nodes("C") == [b]
    assert scenario.get_block("C") is None


def test_invalidate_recomputes_entrances(make_scenario):
    scenario = make_scenario([
        {"id": "a", "type": "echo", "out_on_true": ["x"]},
        {"id": "b", "type": "echo"},
        {"id": "x", "type": "echo"},
    ])
    x = scenario.get_block("x")
    first = x.entrance_block_ids

    scenario.get_block("b").data.out_on_true.append("x")
    assert x.entrance_block_ids is first

    scenario.graph.invalidate()
    assert x.entrance_block_ids == ["a", "b"]


def test_networkx_view(make_scenario):
    scenario = make_scenario([
        {"id": "a", "type": "echo", "out_on_true": ["b"], "out_on_false": ["c"]},
        {"id": "b", "type": "echo"},
        {"id": "c", "type": "echo"},
    ])

    g = scenario.graph.to_networkx()

    assert set(g.edges) == {("a", "b"), ("a", "c")}
    assert g.edges["a", "b"]["branch"] is True
    assert g.edges["a", "c"]["branch"] is False
    assert list(nx.topological_sort(g))[0] == "a"
