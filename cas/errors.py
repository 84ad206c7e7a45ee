"""
Exception hierarchy for cas.

Every failure raised by the lexer, parser, rule loader and rewrite engine
derives from CasError, so callers that only care about "did it simplify"
can catch a single type.
"""

from typing import Optional


class CasError(Exception):
    """Base class for all cas errors."""


class LexError(CasError):
    """An unrecognized character (or unrepresentable literal) in the source."""

    def __init__(self, message: str, position: int, char: Optional[str] = None):
        super().__init__(f"{message} at position {position}")
        self.position = position
        self.char = char


class ParseError(CasError):
    """Malformed token stream: empty input, trailing tokens, bad primary."""

    def __init__(self, message: str, position: Optional[int] = None):
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)
        self.position = position


class RuleError(CasError):
    """A rule database line that cannot be parsed."""

    def __init__(self, message: str, lineno: Optional[int] = None):
        if lineno is not None:
            message = f"line {lineno}: {message}"
        super().__init__(message)
        self.lineno = lineno


class ArityError(CasError):
    """A node whose child count disagrees with its kind."""


class EvaluationError(CasError, ArithmeticError):
    """A built-in operation with no defined 64-bit integer result."""
