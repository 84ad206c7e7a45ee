"""
Lexer for the cas expression language.

Turns source text into Tokens one at a time. Whitespace between tokens is
skipped; every token keeps the exact source text it was read from so that
the parser can compute node spans.

Tokens:
    + - * / % ^ ( )   single-character operators and parentheses
    123               NUMBER (decimal digits only, never signed)
    abc               IDENTIFIER (ASCII letters only)

Anything else raises LexError and ends the token stream.
"""

import string
from enum import Enum
from typing import Iterator, List, NamedTuple, Optional, Union

from .errors import LexError

INT64_MAX = 2 ** 63 - 1


class TokenKind(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    POW = "^"
    OPEN_PAREN = "("
    CLOSE_PAREN = ")"
    NUMBER = "number"
    IDENTIFIER = "identifier"


class Token(NamedTuple):
    """A lexed token: its kind, source text, offset and literal value."""

    kind: TokenKind
    text: str
    start: int
    value: Optional[Union[int, str]] = None

    @property
    def end(self) -> int:
        return self.start + len(self.text)


_SINGLE_CHAR = {kind.value: kind for kind in TokenKind if len(kind.value) == 1}
_DIGITS = frozenset(string.digits)
_LETTERS = frozenset(string.ascii_letters)


class Lexer:
    """
    Lazy token iterator over a source string.

    Example:
        [t.kind for t in Lexer("2 * x")]
        # => [TokenKind.NUMBER, TokenKind.MUL, TokenKind.IDENTIFIER]
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self._skip_whitespace()

    def _skip_whitespace(self):
        while self.position < len(self.source) and self.source[self.position].isspace():
            self.position += 1

    def _scan(self, charset: frozenset) -> str:
        start = self.position
        while self.position < len(self.source) and self.source[self.position] in charset:
            self.position += 1
        return self.source[start:self.position]

    def at_end(self) -> bool:
        """True when no characters are left to scan."""
        return self.position >= len(self.source)

    def __iter__(self) -> Iterator[Token]:
        return self

    def __next__(self) -> Token:
        if self.at_end():
            raise StopIteration

        start = self.position
        char = self.source[start]

        if char in _SINGLE_CHAR:
            self.position += 1
            token = Token(_SINGLE_CHAR[char], char, start)
        elif char in _DIGITS:
            text = self._scan(_DIGITS)
            value = int(text)
            if value > INT64_MAX:
                # Leave the lexer at the end so iteration stays terminated
                self.position = len(self.source)
                raise LexError(f"Integer literal {text} out of range", start, char)
            token = Token(TokenKind.NUMBER, text, start, value)
        elif char in _LETTERS:
            text = self._scan(_LETTERS)
            token = Token(TokenKind.IDENTIFIER, text, start, text)
        else:
            self.position = len(self.source)
            raise LexError(f"Unexpected character {char!r}", start, char)

        self._skip_whitespace()
        return token


def tokenize(source: str) -> List[Token]:
    """Lex a whole string into a list of tokens."""
    return list(Lexer(source))
