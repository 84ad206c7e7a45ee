"""
Precedence-climbing parser for the cas expression language.

Grammar (higher level binds tighter):

    level 1   + -     left-associative
    level 2   * / %   left-associative
    level 3   ^       right-associative

    primary := IDENTIFIER | NUMBER | "(" expr ")"
             | "-" operand            negation
             | ("sin"|"cos"|"tan") operand

The operand of a prefix operator is parsed at level 3, so "-2^2" is
-(2^2) and "sin x * y" is (sin x) * y. The words sin, cos and tan are
reserved and cannot be used as variable names.

Examples:
    parse("2^3^2")  # same tree as parse("2^(3^2)")
    parse("2-3-2")  # same tree as parse("(2-3)-2")
"""

from typing import NamedTuple, Optional

from .errors import ParseError
from .expr import Expr, Kind
from .lexer import Lexer, Token, TokenKind


class OperatorInfo(NamedTuple):
    power: int
    right_assoc: bool
    kind: Kind


BINARY_OPERATORS = {
    TokenKind.ADD: OperatorInfo(1, False, Kind.ADD),
    TokenKind.SUB: OperatorInfo(1, False, Kind.SUB),
    TokenKind.MUL: OperatorInfo(2, False, Kind.MUL),
    TokenKind.DIV: OperatorInfo(2, False, Kind.DIV),
    TokenKind.MOD: OperatorInfo(2, False, Kind.MOD),
    TokenKind.POW: OperatorInfo(3, True, Kind.POW),
}

PREFIX_FUNCTIONS = {
    "sin": Kind.SIN,
    "cos": Kind.COS,
    "tan": Kind.TAN,
}

PREFIX_POWER = 3


class Parser:
    """Parses one expression from a source string."""

    def __init__(self, source: str):
        self.source = source
        self._tokens = Lexer(source)
        self._current: Optional[Token] = None
        self._last_end = 0
        self._advance()

    def _advance(self):
        if self._current is not None:
            self._last_end = self._current.end
        self._current = next(self._tokens, None)

    def _span(self, start: int) -> str:
        return self.source[start:self._last_end]

    def _operator(self) -> Optional[OperatorInfo]:
        if self._current is None:
            return None
        return BINARY_OPERATORS.get(self._current.kind)

    def parse(self) -> Expr:
        """Parse the whole input as a single expression."""
        if self._current is None:
            raise ParseError("Empty expression")
        result = self.expression()
        if self._current is not None:
            raise ParseError(f"Unexpected trailing token {self._current.text!r}",
                             self._current.start)
        return result

    def expression(self, min_power: int = 1) -> Expr:
        """Parse operators of binding power >= min_power (precedence climbing)."""
        start = self._current.start if self._current is not None else len(self.source)
        lhs = self.primary()
        while True:
            op = self._operator()
            if op is None or op.power < min_power:
                break
            self._advance()
            rhs = self.expression(op.power if op.right_assoc else op.power + 1)
            lhs = Expr.binary(op.kind, lhs, rhs, span=self._span(start))
        return lhs

    def primary(self) -> Expr:
        token = self._current
        if token is None:
            raise ParseError("Unexpected end of input", len(self.source))

        if token.kind is TokenKind.IDENTIFIER:
            self._advance()
            if token.value in PREFIX_FUNCTIONS:
                operand = self.expression(PREFIX_POWER)
                return Expr.unary(PREFIX_FUNCTIONS[token.value], operand,
                                  span=self._span(token.start))
            return Expr.variable(token.value, span=token.text)

        if token.kind is TokenKind.NUMBER:
            self._advance()
            return Expr.number(token.value, span=token.text)

        if token.kind is TokenKind.SUB:
            self._advance()
            operand = self.expression(PREFIX_POWER)
            return Expr.unary(Kind.NEGATE, operand, span=self._span(token.start))

        if token.kind is TokenKind.OPEN_PAREN:
            self._advance()
            inner = self.expression()
            if self._current is None or self._current.kind is not TokenKind.CLOSE_PAREN:
                position = self._current.start if self._current is not None else len(self.source)
                raise ParseError(f"Expected ')' to close '(' at position {token.start}", position)
            self._advance()
            return inner

        raise ParseError(f"Unexpected token {token.text!r}", token.start)


def parse(source: str) -> Expr:
    """
    Parse source text into an expression tree.

    Raises:
        LexError: on an unrecognized character
        ParseError: on empty input, trailing tokens, malformed syntax or
            nesting deeper than the interpreter stack allows
    """
    try:
        return Parser(source).parse()
    except RecursionError as e:
        raise ParseError("Expression nested too deeply") from e
