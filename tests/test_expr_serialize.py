import json

import pytest
import yaml

from exprnode.expr_serialize import serialize, deserialize, detect_format, dump_node, load_node
from exprnode.expr_runtime import ExpressionNode
from exprnode.expr_datatypes import ParseError


@pytest.fixture
def node():
    n = ExpressionNode()
    n.commit_text("rate * hours - fee")
    n.set_value("rate", 12.5)
    n.set_value("hours", 8.0)
    n.set_value("fee", 3.0)
    return n


def test_detect_format():
    assert detect_format("node.json") == "json"
    assert detect_format("node.YML") == "yaml"
    assert detect_format(data_hint='  {"text": "a"}') == "json"
    assert detect_format(data_hint="text: a") == "yaml"
    assert detect_format() is None


def test_dump_node_json_contains_only_state(node):
    data = json.loads(dump_node(node, fmt="json"))
    assert data == {
        "text": "rate * hours - fee",
        "bindings": ["rate", "hours", "fee"],
        "values": [12.5, 8.0, 3.0],
    }


def test_dump_node_yaml_keeps_key_order(node):
    out = dump_node(node, fmt="yaml")
    assert out.splitlines()[0] == "text: rate * hours - fee"
    assert yaml.safe_load(out)["values"] == [12.5, 8.0, 3.0]


@pytest.mark.parametrize("fmt", ["json", "yaml"])
def test_load_node_reparses_text(node, fmt):
    clone = load_node(dump_node(node, fmt=fmt))
    assert clone.ast == node.ast
    assert clone.bindings == node.bindings
    assert clone.values == node.values
    assert clone.eval() == 97.0


def test_load_node_from_bytes():
    clone = load_node(b'{"text": "x + 1", "bindings": ["x"], "values": [2]}', fmt="json")
    assert clone.eval() == 3.0


def test_load_node_rejects_non_mapping():
    with pytest.raises(ValueError):
        load_node("[1, 2]")


def test_load_node_with_broken_text():
    with pytest.raises(ParseError):
        load_node('{"text": "a +"}')


def test_unsupported_format():
    with pytest.raises(ValueError):
        serialize({"a": 1}, fmt="toml")
    with pytest.raises(ValueError):
        deserialize("a = 1", fmt="toml")
