"""
Core rewriter module for cas.

This module provides pattern matching, instantiation, built-in integer
evaluation and the fixpoint driver that rewrites an expression tree to
normal form.

A rule is a (pattern, replacement) pair of expression trees. Variables in
the pattern match any subtree; variables in the replacement are filled in
from the bindings of a successful match.
"""

import logging
import operator
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .errors import ArityError, EvaluationError
from .expr import Expr, Kind

logger = logging.getLogger(__name__)

# Type aliases
BindingsType = Dict[str, Expr]
# A fold handler receives the integer arguments of a node and returns an
# integer, a (numerator, denominator) pair for a fraction, or None (no change)
FoldResult = Optional[Union[int, Tuple[int, int]]]
FoldHandler = Callable[[List[int]], FoldResult]
FoldFuncsType = Dict[Kind, FoldHandler]
# on_step(rule, before, after); rule is None for a built-in evaluation
StepCallback = Callable[[Any, Expr, Expr], None]

INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1
UINT32_MAX = 2 ** 32 - 1


# ============================================================
# Bindings Class - Dict-like interface for match results
# ============================================================

class Bindings:
    """
    Read-only dict-like view of the bindings from a successful match.

        if bindings := engine.match("a + b", expr):
            print(bindings["a"], bindings["b"])

    Bindings objects are always truthy; a failed match is NoMatch.
    """

    __slots__ = ('_dict',)

    def __init__(self, bindings: BindingsType):
        self._dict = dict(bindings)

    def __bool__(self) -> bool:
        return True

    def __getitem__(self, key: str) -> Expr:
        return self._dict[key]

    def get(self, key: str, default=None):
        return self._dict.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        inner = ", ".join(f"{name}: {value}" for name, value in self._dict.items())
        return f"Bindings({{{inner}}})"

    def __eq__(self, other):
        if isinstance(other, Bindings):
            return self._dict == other._dict
        return False

    def to_dict(self) -> BindingsType:
        """Convert to a plain dictionary."""
        return self._dict.copy()


class _NoMatch:
    """
    Singleton representing a failed pattern match.

    NoMatch is falsy, allowing natural use in conditionals.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key: str):
        raise KeyError(f"NoMatch has no binding for '{key}'")

    def get(self, key: str, default=None):
        return default

    def __contains__(self, key: str) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter([])


NoMatch = _NoMatch()


# ============================================================
# Pattern Matching
# ============================================================

def match(pattern: Expr, expr: Expr, bindings: BindingsType) -> bool:
    """
    Match a pattern against an expression, recording bindings.

    A VARIABLE in the pattern matches any subtree and binds its name,
    replacing any earlier binding of that name. Repeated pattern variables
    are therefore not checked for consistency: in "a - a" the second
    occurrence simply wins. Every other pattern node matches only a node
    of the same kind and payload, with all children matching pairwise.

    Args:
        pattern: The pattern tree
        expr: The candidate subtree
        bindings: Dict to record bindings in (holds references into expr)

    Returns:
        True on a match. On failure, bindings may hold partial entries and
        should be discarded.
    """
    if pattern.kind is Kind.VARIABLE:
        bindings[pattern.value] = expr
        return True

    if pattern.kind is not expr.kind or pattern.value != expr.value:
        return False

    if len(pattern.args) != len(expr.args):
        raise ArityError(
            f"{pattern.kind.name} pattern has {len(pattern.args)} argument(s), "
            f"expression has {len(expr.args)}")

    return all(match(sub_pattern, sub_expr, bindings)
               for sub_pattern, sub_expr in zip(pattern.args, expr.args))


# ============================================================
# Instantiation
# ============================================================

def instantiate(skeleton: Expr, bindings: BindingsType) -> Expr:
    """
    Substitute bindings into a replacement tree.

    Bound variables are replaced by their subtree (shared, nodes are
    immutable). Unbound variables are kept as free variables. All other
    nodes are rebuilt with substituted children and keep the replacement's
    span.
    """
    if skeleton.kind is Kind.VARIABLE:
        return bindings.get(skeleton.value, skeleton)
    if not skeleton.args:
        return skeleton
    return skeleton.with_args(instantiate(arg, bindings) for arg in skeleton.args)


# ============================================================
# Built-in arithmetic
# ============================================================

def checked(value: int) -> int:
    """Return value if it fits a signed 64-bit integer, else raise."""
    if not INT64_MIN <= value <= INT64_MAX:
        raise EvaluationError(f"Integer overflow: {value} does not fit in 64 bits")
    return value


def _trailing_zeros(n: int) -> int:
    return (n & -n).bit_length() - 1


def gcd_binary(u: int, v: int) -> int:
    """
    Greatest common divisor by Stein's algorithm (shifts and subtraction).

    Both arguments must be non-negative. gcd_binary(0, v) is v.
    """
    if u < 0 or v < 0:
        raise ValueError("gcd_binary: arguments must be non-negative")
    if u == 0:
        return v
    if v == 0:
        return u

    shift = _trailing_zeros(u | v)
    u >>= shift
    v >>= shift
    u >>= _trailing_zeros(u)

    while True:
        v >>= _trailing_zeros(v)
        if u > v:
            u, v = v, u
        v -= u
        if v == 0:
            break

    return u << shift


def reduce_fraction(numerator: int, denominator: int) -> Optional[Tuple[int, int]]:
    """
    Reduce numerator/denominator to lowest terms with a positive denominator.

    Returns:
        The reduced pair, or None if the input is already canonical.

    Raises:
        EvaluationError: on a zero denominator, or when a sign flip or
            absolute value leaves the 64-bit range.
    """
    if denominator == 0:
        raise EvaluationError("Division by zero")

    original = (numerator, denominator)
    if denominator < 0:
        numerator = checked(-numerator)
        denominator = checked(-denominator)

    divisor = gcd_binary(checked(abs(numerator)), denominator)
    if divisor != 1:
        numerator //= divisor
        denominator //= divisor

    if (numerator, denominator) == original:
        return None
    return numerator, denominator


def truncated_mod(a: int, b: int) -> int:
    """Remainder with the sign of the dividend (truncating division)."""
    if b == 0:
        raise EvaluationError("Modulo by zero")
    remainder = abs(a) % abs(b)
    return -remainder if a < 0 else remainder


def checked_pow(base: int, exponent: int) -> int:
    """Integer power with an unsigned 32-bit exponent and a 64-bit result."""
    if exponent < 0:
        raise EvaluationError(f"Negative exponent {exponent}")
    if exponent > UINT32_MAX:
        raise EvaluationError(f"Exponent {exponent} out of range")
    if base in (0, 1):
        return 1 if exponent == 0 else base
    if base == -1:
        return 1 if exponent % 2 == 0 else -1
    # |base| >= 2, so anything past 2**63 is out of range
    if exponent >= 64:
        raise EvaluationError(f"Integer overflow: {base}^{exponent}")
    return checked(base ** exponent)


# ============================================================
# Fold Operation Builders
# ============================================================

def unary_only(f: Callable[[int], FoldResult]) -> FoldHandler:
    """Create a unary-only folder (e.g., negation)."""
    def handler(args: List[int]) -> FoldResult:
        if len(args) != 1:
            return None
        return f(args[0])
    return handler


def binary_only(f: Callable[[int, int], FoldResult]) -> FoldHandler:
    """Create a binary-only folder (e.g., +, ^, /)."""
    def handler(args: List[int]) -> FoldResult:
        if len(args) != 2:
            return None
        return f(args[0], args[1])
    return handler


# Arithmetic prelude: integer folding plus exact fraction reduction for /
ARITHMETIC_PRELUDE: FoldFuncsType = {
    Kind.NEGATE: unary_only(operator.neg),
    Kind.ADD: binary_only(operator.add),
    Kind.SUB: binary_only(operator.sub),
    Kind.MUL: binary_only(operator.mul),
    Kind.MOD: binary_only(truncated_mod),
    Kind.POW: binary_only(checked_pow),
    Kind.DIV: binary_only(reduce_fraction),
}

# Empty prelude (no constant folding at all)
NO_PRELUDE: FoldFuncsType = {}


def evaluate(expr: Expr, fold_funcs: Optional[FoldFuncsType] = None) -> Optional[Expr]:
    """
    Evaluate a node whose children are all NUMBER leaves.

    Args:
        expr: The node to evaluate
        fold_funcs: Fold table to use (default: ARITHMETIC_PRELUDE)

    Returns:
        The folded node (a NUMBER, or a reduced DIV for fractions), or None
        if the node is not foldable or is already in canonical form.
    """
    if fold_funcs is None:
        fold_funcs = ARITHMETIC_PRELUDE

    handler = fold_funcs.get(expr.kind)
    if handler is None or not expr.args:
        return None
    if not all(arg.kind is Kind.NUMBER for arg in expr.args):
        return None

    result = handler([arg.value for arg in expr.args])
    if result is None:
        return None
    if isinstance(result, tuple):
        numerator, denominator = result
        return Expr.binary(
            Kind.DIV,
            Expr.number(numerator, span=expr.span),
            Expr.number(denominator, span=expr.span),
            span=expr.span,
        )
    return Expr.number(checked(result), span=expr.span)


# ============================================================
# Rewriter Factory
# ============================================================

def rewrite_once(
    expr: Expr,
    rules: Sequence[Any],
    fold_funcs: Optional[FoldFuncsType] = None,
) -> Optional[Tuple[Expr, Any]]:
    """
    Apply one rewrite step at the root of expr.

    Rules are tried in order and the first whose pattern matches wins. If
    none matches, built-in evaluation is tried.

    Args:
        expr: Node to rewrite
        rules: Sequence of objects with .pattern and .replacement
        fold_funcs: Fold table for built-in evaluation

    Returns:
        (new_expr, rule) for a rule step, (new_expr, None) for a built-in
        step, or None when no step applies.
    """
    for rule in rules:
        bindings: BindingsType = {}
        if match(rule.pattern, expr, bindings):
            return instantiate(rule.replacement, bindings), rule

    folded = evaluate(expr, fold_funcs)
    if folded is not None:
        return folded, None
    return None


def rewriter(
    rules: Sequence[Any],
    fold_funcs: Optional[FoldFuncsType] = None,
    on_step: Optional[StepCallback] = None,
) -> Callable[[Expr], Tuple[Expr, bool]]:
    """
    Create a normalizing function for the given rules.

    The returned function rewrites a tree to a fixpoint: children are
    normalized first, then steps are applied at the root until none applies.
    If any step fired at the root, the new node may contain fresh redexes
    below it, so the whole pass repeats. It stops when a pass changes
    nothing and returns (result, changed); an already-normal input comes
    back as the same object with changed=False.

    There is no step limit: a rule set that never reaches a fixpoint makes
    normalization loop forever.

    Args:
        rules: Ordered rules (objects with .pattern and .replacement; an
            optional .name labels the DEBUG log records)
        fold_funcs: Fold table for built-in evaluation.
            Default: None (ARITHMETIC_PRELUDE). Pass NO_PRELUDE for pure
            rule rewriting.
        on_step: Optional callback on_step(rule, before, after) called for
            every rewrite step (rule is None for built-in evaluation)

    Returns:
        A function normalize(expr) -> (expr, changed)

    Examples:
        normalize = rewriter(rules)
        result, changed = normalize(parse("x * 1"))
    """
    active_fold_funcs = ARITHMETIC_PRELUDE if fold_funcs is None else fold_funcs

    def rewrite_root(expr: Expr) -> Tuple[Expr, bool]:
        """Apply steps at the root of expr until none applies."""
        current = expr
        rewrote = False
        step = rewrite_once(current, rules, active_fold_funcs)
        while step is not None:
            after, rule = step
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("rewrite %s to %s (%s)", current, after,
                             "builtin" if rule is None else getattr(rule, "name", rule))
            if on_step is not None:
                on_step(rule, current, after)
            current = after
            rewrote = True
            step = rewrite_once(current, rules, active_fold_funcs)
        return current, rewrote

    def normalize(expr: Expr) -> Tuple[Expr, bool]:
        """Rewrite expr to normal form."""
        # Post-order walk on an explicit stack, depth is unbounded.
        # Each frame is [node, normalized child results, changed].
        stack = [[expr, [], False]]
        finished = None
        while True:
            frame = stack[-1]
            node, results = frame[0], frame[1]
            if finished is not None:
                results.append(finished)
                finished = None
            if len(results) < len(node.args):
                stack.append([node.args[len(results)], [], False])
                continue

            if any(changed for _, changed in results):
                node = node.with_args(result for result, _ in results)
                frame[2] = True

            node, rewrote = rewrite_root(node)
            if rewrote:
                # The new node may hold fresh redexes below its root
                frame[0], frame[1], frame[2] = node, [], True
                continue

            stack.pop()
            finished = (node, frame[2])
            if not stack:
                return finished

    return normalize
