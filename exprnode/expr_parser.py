"""
Recursive-descent parser turning expression text into an AST.

Grammar:

    expr  := unary (binop expr)?
    unary := ('+' | '-')? atom
    atom  := IDENT | NUMBER | '(' expr ')'
    binop := '+' | '-' | '*' | '/'

Operators are read in one forward pass with a single token of lookahead.
`*` and `/` bind tighter than `+` and `-`, and every binary operator is
left-associative.
"""
from typing import List, Optional

from exprnode.expr_datatypes import (
    Expr, Var, Val, UnaryOp, BinaryOp, UnOp, BinOp, ParseError
)
from exprnode.expr_tokenizer import Token, TokenType, tokenize


class Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens: List[Token] = tokenize(text)
        self.index = 0
        self.current = self.tokens[0]

    def _advance(self) -> Token:
        tok = self.current
        if tok.type is not TokenType.EOF:
            self.index += 1
            self.current = self.tokens[self.index]
        return tok

    def _error(self, reason: str, message: str, tok: Optional[Token] = None) -> ParseError:
        tok = tok or self.current
        return ParseError(reason, message, tok.pos, self.text)

    def parse(self) -> Expr:
        result = self._expr()
        if self.current.type is TokenType.RPAREN:
            raise self._error(ParseError.UNMATCHED_PAREN, "Unmatched ')'")
        if self.current.type is not TokenType.EOF:
            raise self._error(ParseError.UNEXPECTED_TOKEN, f"Unexpected token {self.current.describe()}")
        return result

    def _expr(self) -> Expr:
        lhs = self._unary()
        op = self._binop()
        if op is None:
            return lhs
        return self._binop_chain(lhs, op)

    def _binop_chain(self, lhs: Expr, op: BinOp) -> Expr:
        """Parse the operands following `op`, folding left to right.

        When the operator after a right operand binds tighter than `op`, it is
        folded into that right operand before `op` combines it with `lhs`.
        """
        while True:
            rhs = self._unary()
            next_op = self._binop()
            while next_op is not None and next_op.precedence > op.precedence:
                rhs = BinaryOp(next_op, rhs, self._unary())
                next_op = self._binop()
            lhs = BinaryOp(op, lhs, rhs)
            if next_op is None:
                return lhs
            op = next_op

    def _binop(self) -> Optional[BinOp]:
        """Consume a binary operator, or return None at the end of an expression."""
        tok = self.current
        if tok.type in (TokenType.EOF, TokenType.RPAREN):
            return None
        if tok.type is TokenType.OP:
            self._advance()
            return BinOp.from_symbol(tok.text)
        raise self._error(ParseError.UNEXPECTED_TOKEN, f"Expected an operator, found {tok.describe()}")

    def _unary(self) -> Expr:
        tok = self.current
        if tok.type is TokenType.OP and tok.text in ('+', '-'):
            self._advance()
            op = UnOp.POS if tok.text == '+' else UnOp.NEG
            return UnaryOp(op, self._atom())
        return self._atom()

    def _atom(self) -> Expr:
        tok = self.current
        match tok.type:
            case TokenType.IDENT:
                self._advance()
                return Var(tok.text)
            case TokenType.NUMBER:
                self._advance()
                return Val(tok.value)
            case TokenType.LPAREN:
                self._advance()
                inner = self._expr()
                if self.current.type is not TokenType.RPAREN:
                    raise self._error(ParseError.UNMATCHED_PAREN, "Unmatched '('", tok)
                self._advance()
                return inner
            case TokenType.EOF:
                raise self._error(ParseError.UNEXPECTED_END, "Unexpected end of input")
            case _:
                raise self._error(
                    ParseError.UNEXPECTED_TOKEN,
                    f"Expected a number, name or '(', found {tok.describe()}",
                )


def parse(text: str) -> Expr:
    """Parse `text` into an AST. Raises ParseError; never touches caller state."""
    return Parser(text).parse()
