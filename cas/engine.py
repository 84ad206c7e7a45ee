"""
Rule Engine and rule database loader for cas.

This module loads rewrite rules from text, holds them in an immutable,
ordered rule table and drives the rewriter over it.

Rule database format (.txt files):
    one rule per non-empty line, split at the first '=':

        a+0=a
        a*(b/c)=(a*b)/c

    Both sides use the ordinary expression grammar. Variables on the left
    are pattern variables; variables on the right refer to their bindings.
    There is no comment syntax. Line order is priority order: the first
    rule whose pattern matches wins.

Tracing:
    Use RuleEngine.simplify(expr, trace=True) to see which rules are applied.
"""

import functools
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .errors import CasError, RuleError
from .expr import Expr, Kind
from .parser import parse
from .rewriter import (
    ARITHMETIC_PRELUDE, Bindings, FoldFuncsType, NoMatch, _NoMatch, evaluate, instantiate,
    match as _match_internal, rewriter,
)

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).with_name("rules_db.txt")

ExprLike = Union[Expr, str, int]


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder for cas.

    Examples:
        from cas import E

        # Parse expression text
        expr = E("x + 2*y")

        # Build programmatically with E.op()
        expr = E.op("+", "x", E.op("*", 2, "y"))

        # Create variables
        x, y = E.vars("x", "y")
        expr = E.op(Kind.ADD, x, E.op(Kind.MUL, 2, y))
    """

    def __call__(self, s: str) -> Expr:
        """
        Parse expression text.

        Examples:
            E("x + 1")   -> Expr((x + 1))
            E("sin x")   -> Expr(sin x)
        """
        return parse(s)

    def op(self, kind: Union[Kind, str], *args: ExprLike) -> Expr:
        """
        Build an operator node. Ints become numbers and strings variables.

        Examples:
            E.op("+", "x", 1)  -> Expr((x + 1))
            E.op("neg", "x")   -> Expr(- x)
        """
        if isinstance(kind, str):
            kind = Kind.lookup(kind)
        return Expr(kind, [self.wrap(arg) for arg in args])

    def wrap(self, value: ExprLike) -> Expr:
        """Coerce an int or variable name to an Expr; Exprs pass through."""
        if isinstance(value, Expr):
            return value
        if isinstance(value, int):
            return Expr.number(value)
        if isinstance(value, str):
            return Expr.variable(value)
        raise TypeError(f"Cannot build an expression from {value!r}")

    def var(self, name: str) -> Expr:
        """Create a variable. Example: E.var("x") -> Expr(x)"""
        return Expr.variable(name)

    def vars(self, *names: str) -> Tuple[Expr, ...]:
        """
        Create multiple variables for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(Expr.variable(name) for name in names)

    def const(self, value: int) -> Expr:
        """Create a numeric constant. Example: E.const(5) -> Expr(5)"""
        return Expr.number(value)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()


# ============================================================
# Rules and rule loading
# ============================================================

class Rule:
    """An immutable pattern/replacement pair with its position in the table."""

    __slots__ = ('pattern', 'replacement', 'index', 'lineno', 'source')

    def __init__(self, pattern: Expr, replacement: Expr, index: int = 0,
                 lineno: Optional[int] = None, source: Optional[str] = None):
        object.__setattr__(self, 'pattern', pattern)
        object.__setattr__(self, 'replacement', replacement)
        object.__setattr__(self, 'index', index)
        object.__setattr__(self, 'lineno', lineno)
        object.__setattr__(self, 'source', source)

    def __setattr__(self, name, value):
        raise AttributeError("Rule objects are immutable")

    def __delattr__(self, name):
        raise AttributeError("Rule objects are immutable")

    @property
    def name(self) -> str:
        return f"rule[{self.index}]"

    def renumbered(self, index: int) -> 'Rule':
        """Copy of this rule at a different table position."""
        return Rule(self.pattern, self.replacement, index, self.lineno, self.source)

    def to_text(self) -> str:
        """The rule in database syntax: pattern=replacement."""
        return f"{self.pattern}={self.replacement}"

    def __eq__(self, other):
        if isinstance(other, Rule):
            return (self.pattern, self.replacement) == (other.pattern, other.replacement)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.pattern, self.replacement))

    def __repr__(self) -> str:
        return f"{self.name}: {self.pattern} = {self.replacement}"


def parse_rule_line(line: str, index: int = 0,
                    lineno: Optional[int] = None) -> Optional[Rule]:
    """
    Parse a single rule line.

    Format:
        pattern=replacement

    Returns: the Rule, or None for a blank line

    Raises:
        RuleError: if the line has no '=' or either side does not parse
    """
    if not line.strip():
        return None

    if '=' not in line:
        raise RuleError(f"Expected 'pattern=replacement', got {line.strip()!r}", lineno)

    pattern_str, replacement_str = line.split('=', 1)
    try:
        pattern = parse(pattern_str)
        replacement = parse(replacement_str)
    except CasError as e:
        raise RuleError(f"Malformed rule {line.strip()!r}: {e}", lineno) from e

    return Rule(pattern, replacement, index=index, lineno=lineno, source=line.strip())


def load_rules_from_text(text: str) -> Tuple[Rule, ...]:
    """
    Load rules from rule database text, preserving line order.

    Returns:
        Tuple of Rules, indexed in priority order
    """
    rules: List[Rule] = []
    for lineno, line in enumerate(text.splitlines(), 1):
        rule = parse_rule_line(line, index=len(rules), lineno=lineno)
        if rule is not None:
            rules.append(rule)
    return tuple(rules)


def load_rules_from_file(path: Union[str, Path]) -> Tuple[Rule, ...]:
    """Load rules from a rule database file."""
    path = Path(path)
    rules = load_rules_from_text(path.read_text())
    logger.debug("loaded %d rules from %s", len(rules), path)
    return rules


@functools.lru_cache(maxsize=None)
def load_default_rules() -> Tuple[Rule, ...]:
    """Load the packaged rule database (parsed once per process)."""
    return load_rules_from_file(DEFAULT_RULES_PATH)


# ============================================================
# Tracing
# ============================================================

class RewriteStep:
    """A single step in a rewriting trace (rule is None for a built-in)."""

    def __init__(self, rule: Optional[Rule], before: Expr, after: Expr):
        self.rule = rule
        self.before = before
        self.after = after

    @property
    def name(self) -> str:
        return self.rule.name if self.rule is not None else "builtin"

    def __repr__(self) -> str:
        return f"{self.name}: {self.before} → {self.after}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "rule_index": self.rule.index if self.rule is not None else None,
            "rule": self.rule.to_text() if self.rule is not None else None,
            "before": self.before.to_sexpr(),
            "after": self.after.to_sexpr(),
        }


class RewriteTrace:
    """
    A trace of all rewriting steps applied.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line showing rule chain
        - format("rules"): just the rule names applied
        - format("chain"): the rewritten subexpressions step by step
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self, initial: Optional[Expr] = None):
        self.steps: List[RewriteStep] = []
        self.initial: Optional[Expr] = initial
        self.final: Optional[Expr] = None

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "rules", "chain"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            return f"{self.initial} --[{', '.join(self.rules_applied())}]--> {self.final}"

        elif style == "rules":
            rules = self.rules_applied()
            return " -> ".join(rules) if rules else "(no rules applied)"

        elif style == "chain":
            if not self.steps:
                return str(self.initial)
            parts = [str(self.initial)]
            for step in self.steps:
                parts.append(f"  {step.before} --({step.name})--> {step.after}")
            parts.append(str(self.final))
            return "\n".join(parts)

        elif style == "verbose":
            return repr(self)

        raise ValueError(f"Unknown trace style: {style}. "
                         f"Valid options: verbose, compact, rules, chain")

    def __repr__(self) -> str:
        lines = [f"Initial: {self.initial}"]
        for i, step in enumerate(self.steps, 1):
            lines.append(f"  {i}. {step}")
        lines.append(f"Final: {self.final}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": self.initial.to_sexpr() if self.initial is not None else None,
            "final": self.final.to_sexpr() if self.final is not None else None,
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each rule was applied."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.name] = counts.get(step.name, 0) + 1
        return counts

    def rules_applied(self) -> List[str]:
        """Get list of rule names in order of application."""
        return [step.name for step in self.steps]

    def summary(self) -> str:
        """Get a brief summary of the rewriting."""
        if not self.steps:
            return "No rewriting performed"
        counts = self.rule_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {most_used[0]} ({most_used[1]}x)")


# ============================================================
# Rule Engine
# ============================================================

class RuleEngine:
    """
    A rule engine holding an ordered, immutable rule table.

    The table is searched linearly and the first matching rule wins, so
    rule order is part of the engine's behavior. Engines are never mutated
    after construction and can be shared freely.

    Example:
        from cas import RuleEngine

        engine = RuleEngine.from_text('''
            a+0=a
            a*1=a
        ''')
        engine("(y + 0) * 1")   # => Expr(y)

        # Packaged rules with arithmetic folding
        RuleEngine.default().simplify_text("(2/3)*(9/6)")  # => "1"
    """

    def __init__(self, rules: Iterable[Rule] = (),
                 fold_funcs: Optional[FoldFuncsType] = None):
        """
        Initialize a RuleEngine.

        Args:
            rules: Rules in priority order (renumbered by position).
            fold_funcs: Fold functions for built-in evaluation.
                Default: None (ARITHMETIC_PRELUDE).
                Use NO_PRELUDE for pure rule rewriting.
        """
        self._rules: Tuple[Rule, ...] = tuple(
            rule if rule.index == i else rule.renumbered(i)
            for i, rule in enumerate(rules))
        self._fold_funcs: FoldFuncsType = (
            ARITHMETIC_PRELUDE if fold_funcs is None else fold_funcs)
        self._normalize = rewriter(self._rules, fold_funcs=self._fold_funcs)

    # Class method constructors
    @classmethod
    def from_text(cls, text: str, fold_funcs: Optional[FoldFuncsType] = None) -> 'RuleEngine':
        """Create engine from rule database text."""
        return cls(load_rules_from_text(text), fold_funcs=fold_funcs)

    @classmethod
    def from_file(cls, path: Union[str, Path],
                  fold_funcs: Optional[FoldFuncsType] = None) -> 'RuleEngine':
        """Create engine from a rule database file."""
        return cls(load_rules_from_file(path), fold_funcs=fold_funcs)

    @classmethod
    def default(cls, fold_funcs: Optional[FoldFuncsType] = None) -> 'RuleEngine':
        """Create engine from the packaged rule database."""
        return cls(load_default_rules(), fold_funcs=fold_funcs)

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    @property
    def fold_funcs(self) -> FoldFuncsType:
        return self._fold_funcs

    def with_prelude(self, fold_funcs: FoldFuncsType) -> 'RuleEngine':
        """Same rules, different fold functions."""
        return RuleEngine(self._rules, fold_funcs=fold_funcs)

    def match(self, pattern: Union[str, Expr], expr: Union[str, Expr]) -> Union[Bindings, _NoMatch]:
        """
        Match a pattern against an expression.

        Returns Bindings if matched, NoMatch if not.

        Example:
            if bindings := engine.match("a + b", expr):
                print(bindings["a"], bindings["b"])
        """
        if isinstance(pattern, str):
            pattern = parse(pattern)
        if isinstance(expr, str):
            expr = parse(expr)

        bindings: Dict[str, Expr] = {}
        if _match_internal(pattern, expr, bindings):
            return Bindings(bindings)
        return NoMatch

    def apply_once(self, expr: Expr) -> Optional[RewriteStep]:
        """
        Apply at most one rewrite step at the root of the expression.

        Tries each rule in order, then built-in evaluation. Does not recurse
        into subexpressions.

        Returns:
            The RewriteStep taken, or None if no step applies.

        Example:
            step = engine.apply_once(expr)
            if step:
                print(f"Applied {step.name}: {step.after}")
        """
        for rule in self._rules:
            bindings: Dict[str, Expr] = {}
            if _match_internal(rule.pattern, expr, bindings):
                return RewriteStep(rule, expr, instantiate(rule.replacement, bindings))

        folded = evaluate(expr, self._fold_funcs)
        if folded is not None:
            return RewriteStep(None, expr, folded)
        return None

    def rules_matching(self, expr: Expr) -> List[Tuple[Rule, Bindings]]:
        """
        Find all rules whose pattern matches the root of an expression.

        Useful for debugging rule order: only the first entry would fire.
        """
        matching = []
        for rule in self._rules:
            bindings: Dict[str, Expr] = {}
            if _match_internal(rule.pattern, expr, bindings):
                matching.append((rule, Bindings(bindings)))
        return matching

    def normalize(self, expr: Expr) -> Tuple[Expr, bool]:
        """Rewrite to normal form; returns (result, changed)."""
        return self._normalize(expr)

    def simplify(self, expr: Union[str, Expr], trace: bool = False):
        """
        Simplify an expression using all loaded rules.

        Args:
            expr: Expression tree, or text to parse first
            trace: If True, return (result, trace) tuple

        Returns:
            Simplified expression, or (expression, trace) if trace=True
        """
        if isinstance(expr, str):
            expr = parse(expr)

        if not trace:
            result, _ = self._normalize(expr)
            return result

        trace_obj = RewriteTrace(initial=expr)
        normalize = rewriter(
            self._rules,
            fold_funcs=self._fold_funcs,
            on_step=lambda rule, before, after: trace_obj.add_step(
                RewriteStep(rule, before, after)),
        )
        result, _ = normalize(expr)
        trace_obj.final = result
        return result, trace_obj

    def simplify_text(self, text: str) -> str:
        """Parse, simplify and render."""
        return str(self.simplify(text))

    def list_rules(self) -> List[str]:
        """List all rules as 'rule[i]: pattern = replacement'."""
        return [repr(rule) for rule in self._rules]

    def to_text(self) -> str:
        """Export rules in rule database format."""
        return "\n".join(rule.to_text() for rule in self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleEngine({len(self._rules)} rules)"

    def __call__(self, expr: Union[str, Expr], **kwargs):
        """Make engine callable: engine(expr) is shorthand for engine.simplify(expr)."""
        return self.simplify(expr, **kwargs)

    def __iter__(self):
        return iter(self._rules)

    def __getitem__(self, index: int) -> Rule:
        return self._rules[index]

    def __or__(self, other: 'RuleEngine') -> 'RuleEngine':
        """Union of two engines: self's rules first, then other's."""
        return RuleEngine(self._rules + other._rules, fold_funcs=self._fold_funcs)


def simplify(text: str, engine: Optional[RuleEngine] = None) -> str:
    """
    Simplify expression text to its rendered normal form.

    Uses the packaged rule database unless an engine is given.

    Examples:
        simplify("2+2")            # => "4"
        simplify("(2/3)*(9/2/6)")  # => "(1 / 2)"

    Raises:
        LexError, ParseError: on malformed input
        EvaluationError: on an undefined built-in operation (e.g. 1/0)
    """
    if engine is None:
        engine = RuleEngine.default()
    return engine.simplify_text(text)