"""
The expression node and the pin reconciler.

An ExpressionNode holds committed source text together with its AST, the
free-variable bindings derived from that AST, and one value per binding.
Input slot 0 carries the text; slots 1..N carry the bindings in order.

`commit_text` is the only way new text reaches a node. It parses, diffs the
old bindings against the new ones by name, and reports which input wires
must be dropped and which must move to a different slot. A failed parse
leaves the node exactly as it was.
"""
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Literal, Mapping, Optional, Sequence, Set, Tuple

from exprnode.expr_datatypes import Expr, Val, ParseError, InternalConsistencyFault
from exprnode.expr_parser import parse
from exprnode.expr_interpreter import evaluate, extract_bindings
from exprnode.expr_printer import format_float

logger = logging.getLogger(__name__)

DEFAULT_TEXT = "0"
DEFAULT_VALUE = 0.0
TEXT_SLOT = 0
TEXT_SLOT_LABEL = "expr"

Connections = Mapping[int, Set[Hashable]]


def _dbg(*parts):
    if os.environ.get("EXPRNODE_DEBUG"):
        print("[DBG]", *parts, file=sys.stderr)


def _fault(msg: str) -> InternalConsistencyFault:
    logger.error("Internal consistency fault: %s", msg)
    return InternalConsistencyFault(msg)


@dataclass
class ReconcileResult:
    """The structured outcome of a text commit."""
    status: Literal['changed', 'unchanged']
    slot_count: int
    drops: List[int] = field(default_factory=list)
    migrations: Dict[int, int] = field(default_factory=dict)
    dropped_connections: List[Tuple[int, Hashable]] = field(default_factory=list)
    connections: Dict[int, Set[Hashable]] = field(default_factory=dict)
    error: Optional[ParseError] = None

    @property
    def changed(self) -> bool:
        return self.status == 'changed'

    def format_error(self) -> str:
        if self.error is None:
            return ""
        return self.error.format()


class Reconciler:
    """Plans how input slots move when a binding list changes.

    The plan is keyed purely on variable names: a name that survives keeps
    its wires, wherever it lands in the new list.
    """

    def __init__(self, old_bindings: Sequence[str], new_bindings: Sequence[str]):
        self.old_bindings = list(old_bindings)
        self.new_bindings = list(new_bindings)
        new_pos = {}
        for j, name in enumerate(self.new_bindings):
            new_pos.setdefault(name, j)
        self.drops: List[int] = []
        self.migrations: Dict[int, int] = {}
        for i, name in enumerate(self.old_bindings):
            j = new_pos.get(name)
            if j is None:
                self.drops.append(i + 1)
            elif j != i:
                self.migrations[i + 1] = j + 1

    def new_values(self, old_values: Sequence[float]) -> List[float]:
        snapshot = dict(zip(self.old_bindings, old_values))
        return [float(snapshot.get(name, DEFAULT_VALUE)) for name in self.new_bindings]

    def remap(self, connections: Connections) -> Tuple[Dict[int, Set[Hashable]], List[Tuple[int, Hashable]]]:
        """Build the connection map for the new slot layout.

        Reads only from `connections` and writes only to a fresh map, so a slot
        being vacated and a slot being filled never alias within the pass.
        """
        remapped: Dict[int, Set[Hashable]] = {}
        dropped: List[Tuple[int, Hashable]] = []
        old_count = len(self.old_bindings)
        for slot, sources in connections.items():
            if slot < 0 or slot > old_count:
                raise _fault(f"connection on slot {slot} but node has {old_count} binding slots")
            if not sources:
                continue
            if slot == TEXT_SLOT:
                target = TEXT_SLOT
            elif slot in self.migrations:
                target = self.migrations[slot]
            elif slot in self.drops:
                dropped.extend((slot, src) for src in sources)
                continue
            else:
                target = slot
            remapped.setdefault(target, set()).update(sources)
        return remapped, dropped


class ExpressionNode:
    """Committed expression state for one graph node."""

    def __init__(self):
        self._text: str = DEFAULT_TEXT
        self._ast: Expr = Val(0.0)
        self._bindings: List[str] = []
        self._values: List[float] = []

    @property
    def text(self) -> str:
        return self._text

    @property
    def ast(self) -> Expr:
        return self._ast

    @property
    def bindings(self) -> Tuple[str, ...]:
        return tuple(self._bindings)

    @property
    def values(self) -> Tuple[float, ...]:
        return tuple(self._values)

    @property
    def slot_count(self) -> int:
        return 1 + len(self._bindings)

    def _binding_index(self, slot: int) -> int:
        if not 1 <= slot <= len(self._bindings):
            raise _fault(f"slot {slot} is not a binding slot (node has {len(self._bindings)} bindings)")
        return slot - 1

    def slot_label(self, slot: int) -> str:
        if slot == TEXT_SLOT:
            return TEXT_SLOT_LABEL
        return self._bindings[self._binding_index(slot)]

    def value_of(self, slot: int) -> float:
        return self._values[self._binding_index(slot)]

    def set_input(self, slot: int, value: float) -> None:
        self._values[self._binding_index(slot)] = float(value)

    def set_value(self, name: str, value: float) -> None:
        """Set the value bound to `name`. Raises KeyError for an unknown name."""
        try:
            idx = self._bindings.index(name)
        except ValueError:
            raise KeyError(name) from None
        self._values[idx] = float(value)

    def eval(self) -> float:
        return evaluate(self._ast, self._bindings, self._values)

    def output_text(self) -> str:
        return format_float(self.eval())

    def commit_text(self, new_text: str, current_connections: Optional[Connections] = None) -> ReconcileResult:
        return commit_text(self, new_text, current_connections)

    def _commit(self, text: str, ast: Expr, bindings: List[str], values: List[float]) -> None:
        if len(bindings) != len(values):
            raise _fault(f"commit with {len(bindings)} bindings but {len(values)} values")
        self._text, self._ast, self._bindings, self._values = text, ast, bindings, values

    def to_dict(self) -> Dict[str, Any]:
        """State needed to rebuild the node; the AST is re-derived from the text."""
        return {
            "text": self._text,
            "bindings": list(self._bindings),
            "values": list(self._values),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ExpressionNode':
        """Rebuild a node by reparsing its text. Values are matched to bindings by name.

        Raises ParseError when the stored text does not parse.
        """
        node = cls()
        text = str(data.get("text", DEFAULT_TEXT))
        ast = parse(text)
        stored = dict(zip(data.get("bindings") or [], data.get("values") or []))
        bindings = extract_bindings(ast)
        values = [float(stored.get(name, DEFAULT_VALUE)) for name in bindings]
        node._commit(text, ast, bindings, values)
        return node

    def __repr__(self) -> str:
        pairs = ", ".join(f"{n}={format_float(v)}" for n, v in zip(self._bindings, self._values))
        return f"<ExpressionNode {self._text!r} [{pairs}]>"


def commit_text(node: ExpressionNode, new_text: str, current_connections: Optional[Connections] = None) -> ReconcileResult:
    """Parse `new_text` and, on success, move `node` to it.

    On a parse failure nothing changes and the result carries the error. On
    success the result lists old slots to drop, old slot -> new slot
    migrations, and the remapped connection map the caller should install.
    """
    connections = current_connections or {}
    try:
        new_ast = parse(new_text)
    except ParseError as e:
        _dbg("commit rejected", repr(new_text), e.reason, e.pos)
        return ReconcileResult(
            status='unchanged',
            slot_count=node.slot_count,
            connections={slot: set(srcs) for slot, srcs in connections.items() if srcs},
            error=e,
        )

    new_bindings = extract_bindings(new_ast)
    plan = Reconciler(node.bindings, new_bindings)
    new_values = plan.new_values(node.values)
    remapped, dropped = plan.remap(connections)
    _dbg("commit", repr(new_text), "bindings", new_bindings, "drops", plan.drops, "migrations", plan.migrations)

    node._commit(new_text, new_ast, new_bindings, new_values)
    return ReconcileResult(
        status='changed',
        slot_count=node.slot_count,
        drops=plan.drops,
        migrations=plan.migrations,
        dropped_connections=dropped,
        connections=remapped,
    )
