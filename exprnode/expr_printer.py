"""
A pretty-printer for expression ASTs and computed values.
"""
import math
from decimal import Decimal

from exprnode.expr_datatypes import Var, Val, UnaryOp, BinaryOp

DISPLAY_DECIMALS = 3


def _plain_decimal(v: float) -> str:
    """Shortest round-trip digits of `v` in positional notation, no exponent, no trailing '.0'."""
    if math.isnan(v):
        return "NaN"
    if math.isinf(v):
        return "inf" if v > 0 else "-inf"
    s = format(Decimal(repr(v)), 'f')
    if '.' in s:
        s = s.rstrip('0').rstrip('.')
    return s


def _round_half_away(v: float) -> float:
    if not math.isfinite(v):
        return v
    a = abs(v)
    r = math.floor(a)
    if a - r >= 0.5:
        r += 1.0
    return math.copysign(r, v)


def format_float(v: float, decimals: int = DISPLAY_DECIMALS) -> str:
    """Round `v` to the nearest 1/10**decimals and render it for display.

    format_float(1.23456) -> '1.235'
    format_float(2.0)     -> '2'
    """
    scale = 10.0 ** decimals
    scaled = v * scale
    # Past 2**52 a float has no fractional digits left to round.
    if math.isfinite(v) and (not math.isfinite(scaled) or abs(v) >= 2.0 ** 52):
        return _plain_decimal(v)
    rounded = _round_half_away(scaled) / scale
    return _plain_decimal(rounded)


class Printer:
    """Formats ASTs back into valid expression source with minimal parentheses."""

    def __init__(self, spaced: bool = True):
        self._sep = " " if spaced else ""
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format an object."""
        handler = self._handlers.get(type(obj))
        if handler is None:
            return repr(obj)
        return handler(obj)

    def _create_handlers(self):
        return {
            Var: self._pformat_var,
            Val: self._pformat_val,
            UnaryOp: self._pformat_unary,
            BinaryOp: self._pformat_binary,
            float: _plain_decimal,
            int: str,
        }

    def _pformat_var(self, obj):
        return obj.name

    def _pformat_val(self, obj):
        return _plain_decimal(obj.value)

    def _pformat_unary(self, obj):
        inner = self.pformat(obj.operand)
        # The grammar only allows an atom after a sign.
        if isinstance(obj.operand, (UnaryOp, BinaryOp)):
            inner = f"({inner})"
        return f"{obj.op.symbol}{inner}"

    def _pformat_binary(self, obj):
        lhs = self.pformat(obj.lhs)
        rhs = self.pformat(obj.rhs)
        prec = obj.op.precedence
        if isinstance(obj.lhs, BinaryOp) and obj.lhs.op.precedence < prec:
            lhs = f"({lhs})"
        # Left-associative: an equal-precedence right operand keeps its parentheses.
        if isinstance(obj.rhs, BinaryOp) and obj.rhs.op.precedence <= prec:
            rhs = f"({rhs})"
        return f"{lhs}{self._sep}{obj.op.symbol}{self._sep}{rhs}"


__all__ = [
    "Printer",
    "format_float",
    "DISPLAY_DECIMALS",
]
