"""
The expression interpreter: the Evaluator and the binding extractor.

Both are pure. The Evaluator reads variable values from a binding list and
a parallel value list; the extractor derives that binding list from an AST.
"""
import logging
import math
from typing import Dict, List, Sequence

from exprnode.expr_datatypes import (
    Expr, Var, Val, UnaryOp, BinaryOp, UnOp, BinOp, InternalConsistencyFault
)

logger = logging.getLogger(__name__)


def _divide(lhs: float, rhs: float) -> float:
    """IEEE-754 division; Python raises on a zero divisor, the engine does not."""
    if rhs == 0.0:
        if lhs == 0.0 or math.isnan(lhs):
            return math.nan
        return math.copysign(math.inf, lhs) * math.copysign(1.0, rhs)
    return lhs / rhs


class Evaluator:
    """Evaluates ASTs against one binding/value pairing."""

    def __init__(self, bindings: Sequence[str], values: Sequence[float]):
        if len(bindings) != len(values):
            msg = f"{len(bindings)} bindings but {len(values)} values"
            logger.error("Evaluator setup failed: %s", msg)
            raise InternalConsistencyFault(msg)
        # First match wins; the extractor never emits duplicates.
        self._index: Dict[str, int] = {}
        for i, name in enumerate(bindings):
            self._index.setdefault(name, i)
        self._values = [float(v) for v in values]

    def lookup(self, name: str) -> float:
        pos = self._index.get(name)
        if pos is None:
            logger.error("Variable %r has no binding (bindings: %s)", name, list(self._index))
            raise InternalConsistencyFault(f"Variable {name!r} has no binding")
        return self._values[pos]

    def eval(self, node: Expr) -> float:
        match node:
            case Var(name=name):
                return self.lookup(name)
            case Val(value=value):
                return float(value)
            case UnaryOp(op=UnOp.POS, operand=operand):
                return self.eval(operand)
            case UnaryOp(op=UnOp.NEG, operand=operand):
                return -self.eval(operand)
            case BinaryOp(op=op, lhs=lhs, rhs=rhs):
                left = self.eval(lhs)
                right = self.eval(rhs)
                if op is BinOp.ADD: return left + right
                if op is BinOp.SUB: return left - right
                if op is BinOp.MUL: return left * right
                return _divide(left, right)
        raise TypeError(f"Not an expression node: {node!r}")


def evaluate(ast: Expr, bindings: Sequence[str], values: Sequence[float]) -> float:
    return Evaluator(bindings, values).eval(ast)


def _extend_bindings(node: Expr, out: List[str]) -> None:
    match node:
        case Var(name=name):
            if name not in out:
                out.append(name)
        case Val():
            pass
        case UnaryOp(operand=operand):
            _extend_bindings(operand, out)
        case BinaryOp(lhs=lhs, rhs=rhs):
            _extend_bindings(lhs, out)
            _extend_bindings(rhs, out)


def extract_bindings(ast: Expr) -> List[str]:
    """Free variable names in first-appearance order (depth-first, left to right)."""
    out: List[str] = []
    _extend_bindings(ast, out)
    return out
