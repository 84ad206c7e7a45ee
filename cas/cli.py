#!/usr/bin/env python3
"""
cas Command-Line Interface

Provides interactive REPL, one-shot evaluation and pipe/filter modes.

Usage:
    cas                             # Start REPL
    cas -e "2*(9/2)"                # Simplify one expression
    cas -r rules.txt                # REPL with a custom rule database
    cas -r rules.txt -e "x*1"       # One-shot with custom rules
    echo "x + 0" | cas              # Filter mode

REPL Commands:
    :help              Show help
    :load FILE         Append rules from a rule database file
    :rules             List loaded rules
    :trace on|off      Toggle tracing
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from . import __version__
from .engine import RuleEngine, load_default_rules, load_rules_from_file
from .errors import CasError
from .rewriter import ARITHMETIC_PRELUDE, NO_PRELUDE, FoldFuncsType

try:
    import readline  # noqa: F401  (line editing for input())
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

# Built-in preludes
BUILTIN_PRELUDES: Dict[str, FoldFuncsType] = {
    "none": NO_PRELUDE,
    "arithmetic": ARITHMETIC_PRELUDE,
}


class CasREPL:
    """Interactive REPL for cas."""

    def __init__(self, engine: Optional[RuleEngine] = None):
        self.engine = engine if engine is not None else RuleEngine.default()
        self.trace = False
        self.running = True

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            path = Path(arg)
            try:
                loaded = RuleEngine(load_rules_from_file(path))
            except (OSError, CasError) as e:
                return f"Error loading {arg}: {e}"
            self.engine = self.engine | loaded
            return f"Loaded {len(loaded)} rules from {path} ({len(self.engine)} total)"

        elif cmd == "rules":
            rules = self.engine.list_rules()
            if not rules:
                return "No rules loaded"
            return "\n".join(rules)

        elif cmd == "trace":
            if arg.lower() in ("on", "true", "1"):
                self.trace = True
            elif arg.lower() in ("off", "false", "0"):
                self.trace = False
            else:
                self.trace = not self.trace
            return f"Tracing {'enabled' if self.trace else 'disabled'}"

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """cas REPL Commands:
  :help              Show this help
  :load FILE         Append rules from a rule database file
  :rules             List all loaded rules
  :trace on|off      Toggle tracing
  :quit              Exit

Syntax:
  2*(9/2)            Simplify an expression
  + - * / % ^ ( )    Operators, ^ is right-associative
  -x  sin x          Negation and sin/cos/tan
"""

    def evaluate(self, line: str) -> str:
        """
        Simplify one expression and format it (with the trace when enabled).

        Raises:
            CasError: if the expression does not lex, parse or evaluate
        """
        if self.trace:
            result, trace = self.engine(line, trace=True)
            if trace.steps:
                return f"{result}\n{trace.format('chain')}"
            return str(result)
        return str(self.engine(line))

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()
        if not line:
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        try:
            return self.evaluate(line)
        except CasError as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print(f"cas {__version__} - rule-driven arithmetic simplifier")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                line = input("cas> ")
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

            result = self.process_line(line)
            if result:
                print(result)


class ScriptRunner:
    """Runs one-shot and filter mode evaluations."""

    def __init__(self, engine: Optional[RuleEngine] = None):
        self.repl = CasREPL(engine)

    def _output(self, line: str) -> Optional[str]:
        """Run a command or simplify an expression; CasError propagates."""
        if line.startswith(":"):
            return self.repl.handle_command(line)
        return self.repl.evaluate(line)

    def run_expression(self, expr_str: str) -> int:
        """
        Evaluate a single expression.

        Returns:
            Exit code (0 for success)
        """
        line = expr_str.strip()
        if not line:
            return 0
        try:
            result = self._output(line)
        except CasError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        if result is not None:
            print(result)
        return 0

    def run_stdin(self) -> int:
        """
        Read expressions from stdin, one per line, and evaluate them.

        Returns:
            Exit code (0 for success)
        """
        for lineno, line in enumerate(sys.stdin, 1):
            line = line.strip()
            if not line:
                continue

            try:
                result = self._output(line)
            except CasError as e:
                print(f"<stdin>:{lineno}: Error: {e}", file=sys.stderr)
                return 1
            if result is not None:
                print(result)

        return 0


def build_engine(rule_files: List[str], prelude: str) -> RuleEngine:
    """Build the engine from -r files (or the packaged rules) and a prelude name."""
    if rule_files:
        rules = []
        for rules_file in rule_files:
            rules.extend(load_rules_from_file(Path(rules_file)))
    else:
        rules = load_default_rules()
    return RuleEngine(rules, fold_funcs=BUILTIN_PRELUDES[prelude])


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="cas",
        description="cas - simplify integer arithmetic with rewrite rules",
        epilog="Examples:\n"
               "  cas                          Start REPL\n"
               "  cas -e '2*(9/2)'             Simplify expression\n"
               "  cas -r rules.txt             REPL with custom rules\n"
               "  echo 'x + 0' | cas           Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "-e", "--expr",
        help="Simplify a single expression"
    )

    parser.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        help="Rule database file to use instead of the packaged one "
             "(can be specified multiple times)"
    )

    parser.add_argument(
        "-p", "--prelude",
        default="arithmetic",
        choices=sorted(BUILTIN_PRELUDES),
        help="Built-in evaluation to use (default: arithmetic)"
    )

    parser.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Show each rewrite step"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log rewrite steps to stderr"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s",
                            stream=sys.stderr)

    try:
        engine = build_engine(args.rules, args.prelude)
    except (OSError, CasError) as e:
        print(f"Error loading rules: {e}", file=sys.stderr)
        return 1

    runner = ScriptRunner(engine)
    runner.repl.trace = args.trace

    if args.expr is not None:
        return runner.run_expression(args.expr)

    if not sys.stdin.isatty():
        return runner.run_stdin()

    runner.repl.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
