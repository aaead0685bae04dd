"""
Logical wiring model for graphs of expression, number, string and sink nodes.

This is the non-visual half of a node editor: it knows which output feeds
which input and applies the reconciler's drops and migrations when an
expression node's text changes. Positions and drawing live elsewhere.

Example:
    graph = ExprGraph()
    n = graph.add_node(NumberNode(4.0))
    e = graph.add_node(ExprGraphNode())
    graph.edit_text(e, "x * 2")
    graph.connect(OutPin(n, 0), InPin(e, 1))
    graph.output_value(e)  # 8.0
"""
import copy
import json
from abc import ABC, abstractmethod
from typing import Dict, List, NamedTuple, Optional, Set

import rustworkx as rx

from exprnode.expr_printer import format_float
from exprnode.expr_runtime import ExpressionNode, ReconcileResult, commit_text, TEXT_SLOT

# Pin compatibility flags.
PIN_NUM = 1
PIN_STR = 2
PIN_ANY = PIN_NUM | PIN_STR


class GraphError(ValueError):
    """Illegal wiring or a node lookup that cannot succeed."""
    pass


class OutPin(NamedTuple):
    node: int
    output: int = 0


class InPin(NamedTuple):
    node: int
    input: int


# =================================================================
# Node kinds
# =================================================================

class GraphNode(ABC):
    """Base class for node kinds. Each kind exposes only the pins it really has."""
    title: str = "Node"
    description: str = ""

    @property
    @abstractmethod
    def inputs(self) -> int:
        ...

    @property
    @abstractmethod
    def outputs(self) -> int:
        ...

    def input_compat(self, slot: int) -> int:
        return 0

    def output_compat(self) -> int:
        return 0

    def __repr__(self) -> str:
        return f"<{self.title}>"


class SinkNode(GraphNode):
    title = "Sink"
    description = "Displays anything connected to it"

    @property
    def inputs(self) -> int:
        return 1

    @property
    def outputs(self) -> int:
        return 0

    def input_compat(self, slot: int) -> int:
        return PIN_ANY


class NumberNode(GraphNode):
    title = "Number"
    description = "Outputs a number value"

    def __init__(self, value: float = 0.0):
        self.value = float(value)

    @property
    def inputs(self) -> int:
        return 0

    @property
    def outputs(self) -> int:
        return 1

    def output_compat(self) -> int:
        return PIN_NUM

    def number_out(self) -> float:
        return self.value


class StringNode(GraphNode):
    title = "String"
    description = "Outputs a string value"

    def __init__(self, text: str = ""):
        self.text = text

    @property
    def inputs(self) -> int:
        return 0

    @property
    def outputs(self) -> int:
        return 1

    def output_compat(self) -> int:
        return PIN_STR

    def string_out(self) -> str:
        return self.text


class ExprGraphNode(GraphNode):
    """Evaluates an algebraic expression with one input per unique variable name.

    `draft` is the text as last typed; `expr.text` is the last text that parsed.
    """
    title = "Expr"
    description = "Evaluates algebraic expression with input for each unique variable name"

    def __init__(self, expr: Optional[ExpressionNode] = None):
        self.expr = expr or ExpressionNode()
        self.draft = self.expr.text

    @property
    def inputs(self) -> int:
        return self.expr.slot_count

    @property
    def outputs(self) -> int:
        return 1

    def input_compat(self, slot: int) -> int:
        return PIN_STR if slot == TEXT_SLOT else PIN_NUM

    def output_compat(self) -> int:
        return PIN_NUM

    def number_out(self) -> float:
        return self.expr.eval()


# =================================================================
# Graph
# =================================================================

class ExprGraph:
    """Nodes plus wires. Every input pin carries at most one wire."""

    def __init__(self):
        self.nodes: Dict[int, GraphNode] = {}
        self.wires: Dict[InPin, OutPin] = {}
        self._next_id = 0

    def __getitem__(self, node_id: int) -> GraphNode:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise GraphError(f"No node with id {node_id}") from None

    def add_node(self, node: GraphNode) -> int:
        node_id = self._next_id
        self._next_id += 1
        self.nodes[node_id] = node
        return node_id

    def remove_node(self, node_id: int) -> None:
        if node_id not in self.nodes:
            raise GraphError(f"No node with id {node_id}")
        for dst, src in list(self.wires.items()):
            if dst.node == node_id or src.node == node_id:
                del self.wires[dst]
        del self.nodes[node_id]

    # --- Wiring ---

    def _would_cycle(self, src: OutPin, dst: InPin) -> bool:
        dag = rx.PyDiGraph()
        idx = {node_id: dag.add_node(node_id) for node_id in self.nodes}
        for wired_dst, wired_src in self.wires.items():
            if wired_dst == dst:
                continue
            dag.add_edge(idx[wired_src.node], idx[wired_dst.node], None)
        dag.add_edge(idx[src.node], idx[dst.node], None)
        return not rx.is_directed_acyclic_graph(dag)

    def connect(self, src: OutPin, dst: InPin) -> None:
        """Wire `src` into `dst`, replacing whatever fed `dst` before.

        Raises:
            GraphError: unknown pins, incompatible pin kinds, or a cycle.
        """
        src_node = self[src.node]
        dst_node = self[dst.node]
        if not 0 <= src.output < src_node.outputs:
            raise GraphError(f"{src_node.title} node has no output {src.output}")
        if not 0 <= dst.input < dst_node.inputs:
            raise GraphError(f"{dst_node.title} node has no input {dst.input}")
        if not src_node.output_compat() & dst_node.input_compat(dst.input):
            raise GraphError(f"Cannot connect {src_node.title} output to {dst_node.title} input {dst.input}")
        if self._would_cycle(src, dst):
            raise GraphError(f"Connecting node {src.node} to node {dst.node} would create a cycle")
        self.wires[dst] = src

    def disconnect(self, src: OutPin, dst: InPin) -> None:
        if self.wires.get(dst) == src:
            del self.wires[dst]

    def drop_inputs(self, dst: InPin) -> None:
        self.wires.pop(dst, None)

    def remote(self, dst: InPin) -> Optional[OutPin]:
        return self.wires.get(dst)

    def connections_for(self, node_id: int) -> Dict[int, Set[OutPin]]:
        """Input slot -> set of source pins wired into it, for one node."""
        out: Dict[int, Set[OutPin]] = {}
        for dst, src in self.wires.items():
            if dst.node == node_id:
                out.setdefault(dst.input, set()).add(src)
        return out

    # --- Expression editing ---

    def _expr_node(self, node_id: int) -> ExprGraphNode:
        node = self[node_id]
        if not isinstance(node, ExprGraphNode):
            raise GraphError(f"Node {node_id} is a {node.title} node, not an Expr node")
        return node

    def edit_text(self, node_id: int, text: str) -> ReconcileResult:
        """Commit new text to an expression node and rewire its inputs to match."""
        node = self._expr_node(node_id)
        node.draft = text
        result = commit_text(node.expr, text, self.connections_for(node_id))
        if result.changed:
            for dst in [d for d in self.wires if d.node == node_id]:
                del self.wires[dst]
            for slot, sources in result.connections.items():
                for src in sources:
                    self.wires[InPin(node_id, slot)] = src
        return result

    def sync_text(self, node_id: int) -> Optional[ReconcileResult]:
        """Pull text from a string node wired into slot 0, committing it if it changed."""
        node = self._expr_node(node_id)
        src = self.wires.get(InPin(node_id, TEXT_SLOT))
        if src is None:
            return None
        remote = self[src.node]
        if not isinstance(remote, StringNode):
            return None
        text = remote.string_out()
        if text == node.draft:
            return None
        return self.edit_text(node_id, text)

    # --- Values ---

    def output_value(self, node_id: int) -> float:
        """Numeric output of a node, pulling upstream values into wired expression inputs."""
        node = self[node_id]
        if isinstance(node, NumberNode):
            return node.number_out()
        if isinstance(node, ExprGraphNode):
            self.sync_text(node_id)
            for slot in range(1, node.expr.slot_count):
                src = self.wires.get(InPin(node_id, slot))
                if src is not None:
                    node.expr.set_input(slot, self.output_value(src.node))
            return node.number_out()
        raise GraphError(f"{node.title} node has no numeric output")

    def display(self, node_id: int) -> str:
        """Text a sink shows for whatever is wired into it."""
        node = self[node_id]
        if not isinstance(node, SinkNode):
            raise GraphError(f"Node {node_id} is a {node.title} node, not a Sink")
        src = self.wires.get(InPin(node_id, 0))
        if src is None:
            return "None"
        remote = self[src.node]
        if isinstance(remote, StringNode):
            return json.dumps(remote.string_out(), ensure_ascii=False)
        return format_float(self.output_value(src.node))


class PresetManager:
    """Named in-memory snapshots of whole graphs."""

    def __init__(self):
        self.saved: Dict[str, ExprGraph] = {}
        self.selected: Optional[str] = None

    def save(self, name: str, graph: ExprGraph) -> None:
        if not name:
            raise ValueError("Preset name cannot be empty.")
        self.saved[name] = copy.deepcopy(graph)
        self.selected = name

    def load(self, name: str) -> ExprGraph:
        if name not in self.saved:
            raise KeyError(name)
        self.selected = name
        return copy.deepcopy(self.saved[name])

    def delete(self, name: str) -> None:
        self.saved.pop(name, None)
        if self.selected == name:
            self.selected = None

    def names(self) -> List[str]:
        return sorted(self.saved)
