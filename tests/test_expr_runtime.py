import pytest

from exprnode.expr_runtime import ExpressionNode, Reconciler, commit_text
from exprnode.expr_datatypes import Val, ParseError, InternalConsistencyFault


def make_node(text, **values):
    node = ExpressionNode()
    result = node.commit_text(text)
    assert result.changed, result.format_error()
    for name, value in values.items():
        node.set_value(name, value)
    return node


# --- ExpressionNode basics ---

def test_new_node_defaults():
    node = ExpressionNode()
    assert node.text == "0"
    assert node.ast == Val(0.0)
    assert node.bindings == ()
    assert node.values == ()
    assert node.slot_count == 1
    assert node.eval() == 0.0


def test_commit_sets_bindings_and_default_values():
    node = make_node("a + b * a")
    assert node.bindings == ("a", "b")
    assert node.values == (0.0, 0.0)
    assert node.slot_count == 3


def test_slot_labels_and_inputs():
    node = make_node("x - y", x=5.0)
    assert node.slot_label(0) == "expr"
    assert node.slot_label(1) == "x"
    assert node.slot_label(2) == "y"
    node.set_input(2, 1.5)
    assert node.value_of(2) == 1.5
    assert node.eval() == 3.5
    assert node.output_text() == "3.5"


def test_slot_out_of_range_is_an_internal_fault():
    node = make_node("x")
    with pytest.raises(InternalConsistencyFault):
        node.slot_label(2)
    with pytest.raises(InternalConsistencyFault):
        node.set_input(0, 1.0)


def test_set_value_unknown_name():
    node = make_node("x")
    with pytest.raises(KeyError):
        node.set_value("nope", 1.0)


def test_output_text_rounds():
    node = make_node("a / 3", a=1.0)
    assert node.output_text() == "0.333"


# --- Reconciliation ---

def test_drop_and_migrate():
    node = make_node("a + b", a=1.0, b=2.0)
    connections = {1: {"S1"}, 2: {"S2"}}

    result = node.commit_text("b+c", connections)

    assert result.changed
    assert node.bindings == ("b", "c")
    assert node.values == (2.0, 0.0)
    assert result.drops == [1]
    assert result.migrations == {2: 1}
    assert result.dropped_connections == [(1, "S1")]
    assert result.connections == {1: {"S2"}}
    assert result.slot_count == 3


def test_failed_parse_leaves_state_untouched():
    node = make_node("a", a=4.0)
    before = (node.text, node.ast, node.bindings, node.values)

    result = node.commit_text("a+", {1: {"S"}})

    assert result.status == "unchanged"
    assert isinstance(result.error, ParseError)
    assert result.error.reason == ParseError.UNEXPECTED_END
    assert (node.text, node.ast, node.bindings, node.values) == before
    assert result.connections == {1: {"S"}}
    assert result.drops == []
    assert result.migrations == {}
    assert "ParseError" in result.format_error()


def test_unchanged_slots_keep_their_wires():
    node = make_node("a + b")
    result = node.commit_text("a * b + c", {0: {"T"}, 1: {"S1"}, 2: {"S2"}})
    assert result.drops == []
    assert result.migrations == {}
    assert result.connections == {0: {"T"}, 1: {"S1"}, 2: {"S2"}}


def test_swap_migrates_both_slots():
    node = make_node("a - b", a=10.0, b=4.0)
    result = node.commit_text("b - a", {1: {"SA"}, 2: {"SB"}})
    assert result.migrations == {1: 2, 2: 1}
    assert result.connections == {1: {"SB"}, 2: {"SA"}}
    assert node.values == (4.0, 10.0)
    assert node.eval() == -6.0


def test_migration_onto_vacated_slot():
    # c moves into the slot a is vacating in the same pass.
    node = make_node("a + b + c", c=7.0)
    result = node.commit_text("c + b", {1: {"SA"}, 2: {"SB"}, 3: {"SC"}})
    assert result.drops == [1]
    assert result.migrations == {3: 1}
    assert result.connections == {1: {"SC"}, 2: {"SB"}}
    assert result.dropped_connections == [(1, "SA")]
    assert node.values == (7.0, 0.0)


def test_migration_is_by_name_not_position():
    node = make_node("p + q + r", q=3.0)
    result = node.commit_text("x + q", {2: {"SQ"}})
    assert result.drops == [1, 3]
    assert result.migrations == {}
    assert result.connections == {2: {"SQ"}}
    assert node.values == (0.0, 3.0)


def test_text_slot_connections_are_carried_over():
    node = make_node("a")
    result = node.commit_text("b", {0: {"STR"}, 1: {"SA"}})
    assert result.connections == {0: {"STR"}}
    assert result.dropped_connections == [(1, "SA")]


def test_connection_outside_binding_slots_is_an_internal_fault():
    node = make_node("a")
    before = (node.text, node.bindings, node.values)
    with pytest.raises(InternalConsistencyFault):
        node.commit_text("a + b", {2: {"S"}})
    assert (node.text, node.bindings, node.values) == before


def test_module_level_commit_text():
    node = ExpressionNode()
    result = commit_text(node, "k * 2")
    assert result.changed
    assert node.bindings == ("k",)


def test_reconciler_plan():
    plan = Reconciler(["a", "b", "c"], ["c", "d", "a"])
    assert plan.drops == [2]
    assert plan.migrations == {1: 3, 3: 1}
    assert plan.new_values([1.0, 2.0, 3.0]) == [3.0, 0.0, 1.0]


# --- State round trip ---

def test_to_dict_and_from_dict():
    node = make_node("u * v", u=2.0, v=8.0)
    clone = ExpressionNode.from_dict(node.to_dict())
    assert clone.text == "u * v"
    assert clone.bindings == ("u", "v")
    assert clone.values == (2.0, 8.0)
    assert clone.ast == node.ast


def test_from_dict_rederives_bindings_from_text():
    clone = ExpressionNode.from_dict({"text": "b + a", "bindings": ["a", "zzz"], "values": [1.0, 9.0]})
    assert clone.bindings == ("b", "a")
    assert clone.values == (0.0, 1.0)


def test_from_dict_rejects_bad_text():
    with pytest.raises(ParseError):
        ExpressionNode.from_dict({"text": "(", "bindings": [], "values": []})


def test_debug_trace(monkeypatch, capsys):
    monkeypatch.setenv("EXPRNODE_DEBUG", "1")
    node = ExpressionNode()
    node.commit_text("a")
    assert "[DBG] commit" in capsys.readouterr().err
