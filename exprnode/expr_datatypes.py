"""
Defines the core data types for the expression engine.

This module provides the AST node classes produced by the parser and
consumed by the evaluator, the operator enums, and the two error kinds
the engine raises.
"""

from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ParseError(Exception):
    """Malformed expression text. Recoverable: callers keep their previous state."""

    UNEXPECTED_END = "unexpected-end"
    UNMATCHED_PAREN = "unmatched-paren"
    UNEXPECTED_TOKEN = "unexpected-token"
    UNEXPECTED_CHARACTER = "unexpected-character"

    def __init__(self, reason: str, message: str, pos: int, text: str = ""):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.pos = pos
        self.text = text

    def format(self) -> str:
        """Formats the message with the source line and a caret under the offending position."""
        head = f"ParseError: {self.message} (col {self.pos + 1})"
        if not self.text:
            return head
        caret = " " * max(self.pos, 0)
        return f"{head}\n  | {self.text}\n  | {caret}^"

    def __repr__(self) -> str:
        return f"<ParseError reason={self.reason!r} pos={self.pos} message={self.message!r}>"


class InternalConsistencyFault(Exception):
    """An invariant between an AST, its bindings and its values was broken.

    This is a defect in the caller, never a user-facing condition.
    """
    pass


# =================================================================
# Operators
# =================================================================

ADDITIVE = 1
MULTIPLICATIVE = 2


class UnOp(Enum):
    POS = "+"
    NEG = "-"

    @property
    def symbol(self) -> str:
        return self.value


class BinOp(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def precedence(self) -> int:
        """Two-level precedence class: additive or multiplicative."""
        if self in (BinOp.MUL, BinOp.DIV):
            return MULTIPLICATIVE
        return ADDITIVE

    @classmethod
    def from_symbol(cls, symbol: str) -> Optional['BinOp']:
        for op in cls:
            if op.value == symbol:
                return op
        return None


# =================================================================
# AST
# =================================================================

class Expr(ABC):
    """Abstract base class for all expression nodes. Nodes are immutable trees."""

    def __repr__(self) -> str:
        from exprnode.expr_printer import Printer
        return f"<{type(self).__name__} {Printer().pformat(self)}>"


@dataclass(frozen=True, repr=False)
class Var(Expr):
    """Reference to a free variable by name."""
    name: str


@dataclass(frozen=True, repr=False)
class Val(Expr):
    """Numeric literal."""
    value: float


@dataclass(frozen=True, repr=False)
class UnaryOp(Expr):
    op: UnOp
    operand: Expr


@dataclass(frozen=True, repr=False)
class BinaryOp(Expr):
    op: BinOp
    lhs: Expr
    rhs: Expr
