"""
Splits expression source text into tokens for the parser.
"""
from enum import Enum, auto
from typing import List, Optional

from exprnode.expr_datatypes import ParseError


# Reserved words that can never be variable names. The arithmetic grammar has none.
KEYWORDS: frozenset = frozenset()

OPERATOR_CHARS = "+-*/"


def _is_digit(ch: Optional[str]) -> bool:
    return ch is not None and "0" <= ch <= "9"


def _is_name_char(ch: Optional[str]) -> bool:
    return ch is not None and ch.isascii() and (ch.isalnum() or ch == "_")


class TokenType(Enum):
    NUMBER = auto()
    IDENT = auto()
    OP = auto()
    LPAREN = auto()
    RPAREN = auto()
    EOF = auto()


class Token:
    def __init__(self, type_: TokenType, text: str, pos: int, value: Optional[float] = None):
        self.type = type_
        self.text = text
        self.pos = pos
        self.value = value

    def describe(self) -> str:
        if self.type is TokenType.EOF:
            return "end of input"
        return repr(self.text)

    def __repr__(self):
        return f"Token({self.type.name}, {self.text!r}, pos={self.pos})"

    def __eq__(self, other):
        if not isinstance(other, Token):
            return NotImplemented
        return (self.type, self.text, self.pos) == (other.type, other.text, other.pos)


class Tokenizer:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.current = text[0] if text else None

    def advance(self):
        self.pos += 1
        self.current = self.text[self.pos] if self.pos < len(self.text) else None

    def peek(self) -> Optional[str]:
        nxt = self.pos + 1
        return self.text[nxt] if nxt < len(self.text) else None

    def skip_spaces(self):
        while self.current is not None and self.current.isspace():
            self.advance()

    def _digits(self):
        while _is_digit(self.current):
            self.advance()

    def number(self) -> Token:
        start = self.pos
        self._digits()
        if self.current == '.':
            self.advance()
            self._digits()
        # Exponent only when followed by digits, so `2e` stays a number then a name.
        if self.current in ('e', 'E'):
            mark = self.pos
            self.advance()
            if self.current in ('+', '-'):
                self.advance()
            if _is_digit(self.current):
                self._digits()
            else:
                self.pos = mark
                self.current = self.text[mark]
        text = self.text[start:self.pos]
        return Token(TokenType.NUMBER, text, start, float(text))

    def identifier(self) -> Token:
        start = self.pos
        while _is_name_char(self.current):
            self.advance()
        text = self.text[start:self.pos]
        if text in KEYWORDS:
            raise ParseError(ParseError.UNEXPECTED_TOKEN, f"Reserved word {text!r} cannot be a variable", start, self.text)
        return Token(TokenType.IDENT, text, start)

    def generate_tokens(self) -> List[Token]:
        tokens = []
        while self.current is not None:
            if self.current.isspace():
                self.skip_spaces()
                continue

            if _is_digit(self.current) or (self.current == "." and _is_digit(self.peek())):
                tokens.append(self.number())
                continue

            if _is_name_char(self.current) and not _is_digit(self.current):
                tokens.append(self.identifier())
                continue

            if self.current in OPERATOR_CHARS:
                tokens.append(Token(TokenType.OP, self.current, self.pos))
            elif self.current == '(':
                tokens.append(Token(TokenType.LPAREN, '(', self.pos))
            elif self.current == ')':
                tokens.append(Token(TokenType.RPAREN, ')', self.pos))
            else:
                raise ParseError(
                    ParseError.UNEXPECTED_CHARACTER,
                    f"Unexpected character {self.current!r}",
                    self.pos,
                    self.text,
                )

            self.advance()

        tokens.append(Token(TokenType.EOF, '', len(self.text)))
        return tokens


def tokenize(text: str) -> List[Token]:
    return Tokenizer(text).generate_tokens()
