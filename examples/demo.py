#!/usr/bin/env python3
"""
cas Feature Demonstration

This script walks through the main features of the cas library.
"""

from pathlib import Path
from cas import RuleEngine, E, NO_PRELUDE, CasError, simplify


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_basic_usage():
    """Simplify with the packaged rule database."""
    section("Basic Usage")

    examples = [
        "2+2",
        "2*(9/2)",
        "(2/3)*(9/2/6)",
        "(2/3)*(9/6)",
        "x*1 + 0",
        "1/2 + 1/3",
    ]

    for expr_str in examples:
        print(f"  {expr_str} => {simplify(expr_str)}")


def demo_parsing():
    """Show how precedence and associativity group the input."""
    section("Parsing")

    for expr_str in ["2^3^2", "2-3-2", "-2^2", "sin x * y", "9/2/6"]:
        print(f"  {expr_str:12} parses as {E(expr_str)}")


def demo_custom_rules():
    """Rule order is priority order."""
    section("Custom Rules")

    engine = RuleEngine.from_text('''
        a+0=a
        a*1=a
        a*0=0
    ''')

    for expr_str in ["(y + 0) * 1", "(a + b) * 0", "x + y"]:
        print(f"  {expr_str} => {engine.simplify_text(expr_str)}")

    print("\n  Without built-in folding:")
    pure = engine.with_prelude(NO_PRELUDE)
    print(f"    (2 + 3) * 1 => {pure.simplify_text('(2 + 3) * 1')}")


def demo_tracing():
    """Show each rewrite step."""
    section("Tracing")

    engine = RuleEngine.default()
    result, trace = engine.simplify("2*(9/2)", trace=True)
    print(trace.format("chain"))
    print(f"\n  Rules: {trace.format('rules')}")
    print(f"  {trace.summary()}")


def demo_errors():
    """Undefined arithmetic is reported, not wrapped."""
    section("Errors")

    for expr_str in ["1/0", "2^-1", "3037000500*3037000500", "2 +", "2 $ 2"]:
        try:
            simplify(expr_str)
        except CasError as e:
            print(f"  {expr_str:24} {type(e).__name__}: {e}")


def demo_file_loading():
    """Load an extra rule file on top of the default database."""
    section("Rule Files")

    rules_file = Path(__file__).parent / "trig.txt"
    engine = RuleEngine.default() | RuleEngine.from_file(rules_file)
    print(f"  Loaded {len(engine)} rules")

    for expr_str in ["sin 0 + cos 0", "tan(2 - 2) * 3", "x + sin(-y)", "cos(-x)"]:
        print(f"  {expr_str} => {engine.simplify_text(expr_str)}")


def main():
    """Run all demonstrations."""
    print("cas - rule-driven arithmetic simplifier")
    print("Feature Demonstration")

    demo_basic_usage()
    demo_parsing()
    demo_custom_rules()
    demo_tracing()
    demo_errors()
    demo_file_loading()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
