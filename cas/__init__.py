"""
cas - a rule-driven simplifier for integer arithmetic expressions

Parses expressions over integers, variables and the operators
+ - * / % ^ (plus negation and sin/cos/tan), then rewrites them to a normal
form using an ordered database of rewrite rules and built-in integer
evaluation. Division is kept as an exact fraction in lowest terms.

Quick Start:
    from cas import simplify, RuleEngine

    simplify("2*(9/2)")          # => "9"
    simplify("(2/3)*(9/2/6)")    # => "(1 / 2)"

    engine = RuleEngine.from_text('''
        a+0=a
        a*1=a
    ''')
    engine("(y + 0) * 1")        # => Expr(y)

Rule Syntax (one rule per line):
    pattern=replacement

    Variables in the pattern match any subtree; variables in the
    replacement are substituted with what they matched. The first rule
    (in file order) whose pattern matches wins.

Example Rules File:
    a+0=a
    a*0=0
    a/1=a
    (a/b)*(c/d)=(a*c)/(b*d)
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    CasError,
    LexError,
    ParseError,
    RuleError,
    ArityError,
    EvaluationError,
)

# Expression tree, lexer and parser
from .expr import Expr, Kind, format_expr
from .lexer import Lexer, Token, TokenKind, tokenize
from .parser import Parser, parse

# Core rewriter components
from .rewriter import (
    rewriter,
    rewrite_once,
    match,
    instantiate,
    evaluate,
    gcd_binary,
    reduce_fraction,
    BindingsType,
    FoldHandler,
    FoldFuncsType,
    Bindings,
    NoMatch,
    unary_only,
    binary_only,
    ARITHMETIC_PRELUDE,
    NO_PRELUDE,
)

# Engine and rule database
from .engine import (
    RuleEngine,
    Rule,
    RewriteStep,
    RewriteTrace,
    E,
    DEFAULT_RULES_PATH,
    parse_rule_line,
    load_rules_from_text,
    load_rules_from_file,
    load_default_rules,
    simplify,
)

# Public API
__all__ = [
    "__version__",
    # Errors
    "CasError",
    "LexError",
    "ParseError",
    "RuleError",
    "ArityError",
    "EvaluationError",
    # Tree
    "Expr",
    "Kind",
    "format_expr",
    # Lexer / parser
    "Lexer",
    "Token",
    "TokenKind",
    "tokenize",
    "Parser",
    "parse",
    # Core
    "rewriter",
    "rewrite_once",
    "match",
    "instantiate",
    "evaluate",
    "gcd_binary",
    "reduce_fraction",
    # Types
    "BindingsType",
    "FoldHandler",
    "FoldFuncsType",
    # Bindings
    "Bindings",
    "NoMatch",
    # Fold operation builders and preludes
    "unary_only",
    "binary_only",
    "ARITHMETIC_PRELUDE",
    "NO_PRELUDE",
    # Engine
    "RuleEngine",
    "Rule",
    "RewriteStep",
    "RewriteTrace",
    "E",
    # Rule database
    "DEFAULT_RULES_PATH",
    "parse_rule_line",
    "load_rules_from_text",
    "load_rules_from_file",
    "load_default_rules",
    "simplify",
]
