"""
Expression tree for cas.

Every expression is an Expr node tagged with a Kind. The kind fixes the
number of children (its arity): leaves (NUMBER, VARIABLE) carry a payload
and no children, the unary kinds carry one child and the binary kinds two.

Nodes are immutable. Rewriting never edits a node in place, it builds new
nodes that share the unchanged children of the old ones.

Examples:
    x = Expr.variable("x")
    e = Expr.binary(Kind.ADD, x, Expr.number(1))
    str(e)        # => "(x + 1)"
    e.to_sexpr()  # => ["+", "x", 1]
"""

from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple, Union

from .errors import ArityError


class Kind(Enum):
    """The closed set of node kinds."""

    NUMBER = "number"
    VARIABLE = "variable"
    NEGATE = "neg"
    SIN = "sin"
    COS = "cos"
    TAN = "tan"
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    POW = "^"

    @property
    def arity(self) -> int:
        """Number of children a node of this kind must have."""
        return _ARITY[self]

    @property
    def symbol(self) -> Optional[str]:
        """Display symbol for operator kinds, None for leaves."""
        return _SYMBOLS.get(self)

    @property
    def is_leaf(self) -> bool:
        return self in (Kind.NUMBER, Kind.VARIABLE)

    @property
    def is_unary(self) -> bool:
        return _ARITY[self] == 1

    @property
    def is_binary(self) -> bool:
        return _ARITY[self] == 2

    @classmethod
    def lookup(cls, symbol: str) -> 'Kind':
        """
        Find the operator kind for a symbol or keyword.

        Examples:
            Kind.lookup("+")    # => Kind.ADD
            Kind.lookup("sin")  # => Kind.SIN
            Kind.lookup("neg")  # => Kind.NEGATE
        """
        for kind in cls:
            if not kind.is_leaf and kind.value == symbol:
                return kind
        raise KeyError(f"No operator for symbol '{symbol}'")


_ARITY = {
    Kind.NUMBER: 0,
    Kind.VARIABLE: 0,
    Kind.NEGATE: 1,
    Kind.SIN: 1,
    Kind.COS: 1,
    Kind.TAN: 1,
    Kind.ADD: 2,
    Kind.SUB: 2,
    Kind.MUL: 2,
    Kind.DIV: 2,
    Kind.MOD: 2,
    Kind.POW: 2,
}

_SYMBOLS = {
    Kind.NEGATE: "-",
    Kind.SIN: "sin",
    Kind.COS: "cos",
    Kind.TAN: "tan",
    Kind.ADD: "+",
    Kind.SUB: "-",
    Kind.MUL: "*",
    Kind.DIV: "/",
    Kind.MOD: "%",
    Kind.POW: "^",
}

# Nested-list form of an expression: ints, strings and [op, *args] lists
SexprType = Union[int, str, List]


class Expr:
    """
    An immutable expression node.

    Attributes:
        kind:  the node's Kind
        value: the integer of a NUMBER, the name of a VARIABLE, else None
        args:  tuple of children, exactly kind.arity long
        span:  source text the node came from (display only)

    Equality and hashing are structural over (kind, value, args); the span
    never takes part, so trees parsed from different text compare equal
    when they have the same shape.
    """

    __slots__ = ('kind', 'value', 'args', 'span')

    def __init__(self, kind: Kind, args: Iterable['Expr'] = (),
                 value: Any = None, span: str = ""):
        args = tuple(args)
        if len(args) != kind.arity:
            raise ArityError(
                f"{kind.name} takes {kind.arity} argument(s), got {len(args)}")
        if kind is Kind.NUMBER and (not isinstance(value, int) or isinstance(value, bool)):
            raise TypeError(f"NUMBER payload must be an int, got {value!r}")
        if kind is Kind.VARIABLE and not isinstance(value, str):
            raise TypeError(f"VARIABLE payload must be a str, got {value!r}")
        if not kind.is_leaf and value is not None:
            raise TypeError(f"{kind.name} carries no payload")
        object.__setattr__(self, 'kind', kind)
        object.__setattr__(self, 'value', value)
        object.__setattr__(self, 'args', args)
        object.__setattr__(self, 'span', span)

    def __setattr__(self, name, value):
        raise AttributeError("Expr nodes are immutable")

    def __delattr__(self, name):
        raise AttributeError("Expr nodes are immutable")

    # Constructors

    @classmethod
    def number(cls, value: int, span: Optional[str] = None) -> 'Expr':
        return cls(Kind.NUMBER, value=value, span=str(value) if span is None else span)

    @classmethod
    def variable(cls, name: str, span: Optional[str] = None) -> 'Expr':
        return cls(Kind.VARIABLE, value=name, span=name if span is None else span)

    @classmethod
    def unary(cls, kind: Kind, operand: 'Expr', span: str = "") -> 'Expr':
        return cls(kind, (operand,), span=span)

    @classmethod
    def binary(cls, kind: Kind, left: 'Expr', right: 'Expr', span: str = "") -> 'Expr':
        return cls(kind, (left, right), span=span)

    def with_args(self, args: Iterable['Expr']) -> 'Expr':
        """Copy of this node with new children (same kind, payload and span)."""
        return Expr(self.kind, args, self.value, self.span)

    # Queries

    @property
    def is_number(self) -> bool:
        return self.kind is Kind.NUMBER

    @property
    def is_variable(self) -> bool:
        return self.kind is Kind.VARIABLE

    def variables(self) -> List[str]:
        """Names of the variables in this tree, in first-occurrence order."""
        seen: List[str] = []
        stack = [self]
        while stack:
            node = stack.pop()
            if node.kind is Kind.VARIABLE:
                if node.value not in seen:
                    seen.append(node.value)
            else:
                stack.extend(reversed(node.args))
        return seen

    def to_sexpr(self) -> SexprType:
        """
        Convert to nested-list form.

        Examples:
            E("x + 2*y").to_sexpr()  # => ["+", "x", ["*", 2, "y"]]
            E("-x").to_sexpr()       # => ["neg", "x"]
        """
        if self.kind is Kind.NUMBER or self.kind is Kind.VARIABLE:
            return self.value
        return [self.kind.value] + [arg.to_sexpr() for arg in self.args]

    # Protocols

    def _key(self) -> Tuple:
        return (self.kind, self.value, self.args)

    def __eq__(self, other):
        if isinstance(other, Expr):
            return self is other or self._key() == other._key()
        return NotImplemented

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        # Pieces are pushed in reverse output order; strings are literal text
        parts: List[str] = []
        stack: List[Union['Expr', str]] = [self]
        while stack:
            item = stack.pop()
            if isinstance(item, str):
                parts.append(item)
            elif item.kind is Kind.NUMBER:
                parts.append(str(item.value))
            elif item.kind is Kind.VARIABLE:
                parts.append(item.value)
            elif item.kind.is_unary:
                stack.extend((item.args[0], f"{item.kind.symbol} "))
            else:
                left, right = item.args
                stack.extend((")", right, f" {item.kind.symbol} ", left, "("))
        return "".join(parts)

    def __repr__(self) -> str:
        return f"Expr({self})"


def format_expr(expr: Expr) -> str:
    """Render an expression as text (same as str(expr))."""
    return str(expr)
