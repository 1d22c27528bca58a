"""
Lexical types.

Defines token types, the immutable token record and the token stream the
parser consumes. Streams are lazy: tokens are pulled from the lexer one at
a time and can be rewritten once by extension stream filters.
"""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, Iterator, Optional

from .errors import TemplateSyntaxError


class TokenType(enum.Enum):
    """Token types produced by the lexer."""

    DATA = "data"

    BLOCK_BEGIN = "block_begin"
    BLOCK_END = "block_end"
    VARIABLE_BEGIN = "variable_begin"
    VARIABLE_END = "variable_end"

    NAME = "name"
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    OPERATOR = "operator"

    EOF = "eof"


# Operators recognised inside tags, longest first so the scanner is greedy.
OPERATORS = (
    "//", "**", "==", "!=", ">=", "<=",
    "+", "-", "/", "*", "%", "~",
    "[", "]", "(", ")", "{", "}",
    ">", "<", "=", ".", ":", "|", ",", ";",
)

BRACKET_PAIRS = {"(": ")", "[": "]", "{": "}"}


@dataclass(frozen=True)
class Token:
    """
    Token with positional information for precise error reporting.
    """
    type: TokenType
    value: str
    position: int        # Absolute offset in the source
    line: int            # 1-based line
    column: int          # 1-based column

    def test(self, type_: TokenType, value: Optional[str] = None) -> bool:
        """Check the token type and, optionally, its value."""
        if self.type is not type_:
            return False
        return value is None or self.value == value

    def test_name(self, *names: str) -> bool:
        return self.type is TokenType.NAME and self.value in names

    def test_op(self, *ops: str) -> bool:
        return self.type is TokenType.OPERATOR and self.value in ops

    def describe(self) -> str:
        """Human readable form used in parser error messages."""
        if self.type is TokenType.NAME or self.type is TokenType.OPERATOR:
            return self.value
        if self.type is TokenType.EOF:
            return "end of template"
        return self.type.value

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class TokenStream:
    """
    Lazy token stream with single-token lookahead and pushback.

    Args:
        tokens: Token iterable (usually a lexer generator)
        name: Template name for error messages
        filename: Template filename for error messages
    """

    def __init__(self, tokens: Iterable[Token], name: Optional[str] = None, filename: Optional[str] = None):
        self._iter: Iterator[Token] = iter(tokens)
        self._pushed: Deque[Token] = deque()
        self.name = name
        self.filename = filename
        self.closed = False
        self.current = Token(TokenType.EOF, "", 0, 1, 1)
        self.advance()

    def __iter__(self) -> Iterator[Token]:
        while not self.eos:
            yield self.advance()

    @property
    def eos(self) -> bool:
        return self.current.type is TokenType.EOF

    def push(self, token: Token) -> None:
        """Push a token back so it is returned after the current one."""
        self._pushed.append(token)

    def peek(self) -> Token:
        """Return the token after the current one without consuming anything."""
        result = self.advance()
        following = self.current
        self._pushed.appendleft(following)
        self.current = result
        return following

    def advance(self) -> Token:
        """Move to the next token and return the previous current token."""
        previous = self.current
        if self._pushed:
            self.current = self._pushed.popleft()
        elif self.current.type is not TokenType.EOF or not self.closed:
            try:
                self.current = next(self._iter)
            except StopIteration:
                self.close()
        return previous

    def close(self) -> None:
        self.current = Token(TokenType.EOF, "", self.current.position, self.current.line, self.current.column)
        self._iter = iter(())
        self.closed = True

    def skip(self, count: int = 1) -> None:
        for _ in range(count):
            self.advance()

    def match(self, type_: TokenType, value: Optional[str] = None) -> bool:
        return self.current.test(type_, value)

    def skip_if(self, type_: TokenType, value: Optional[str] = None) -> bool:
        """Consume the current token if it matches."""
        if self.current.test(type_, value):
            self.advance()
            return True
        return False

    def skip_name(self, name: str) -> bool:
        return self.skip_if(TokenType.NAME, name)

    def skip_op(self, op: str) -> bool:
        return self.skip_if(TokenType.OPERATOR, op)

    def consume(self, type_: TokenType, value: Optional[str] = None) -> Token:
        """
        Consume a token of the expected type (and value).

        Raises:
            TemplateSyntaxError: If the current token does not match
        """
        current = self.current
        if not current.test(type_, value):
            expected = value if value is not None else type_.value
            if current.type is TokenType.EOF:
                raise self.error(f"unexpected end of template, expected {expected!r}.")
            raise self.error(f"expected token {expected!r}, got {current.describe()!r}")
        return self.advance()

    def error(self, message: str, token: Optional[Token] = None) -> TemplateSyntaxError:
        token = token or self.current
        return TemplateSyntaxError(message, token.line, self.name, self.filename, colno=token.column)


__all__ = [
    "TokenType",
    "Token",
    "TokenStream",
    "OPERATORS",
    "BRACKET_PAIRS",
]
