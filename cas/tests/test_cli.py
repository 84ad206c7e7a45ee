"""Tests for CLI module."""

import io
import subprocess
import sys

import pytest

from cas import RuleEngine, NO_PRELUDE, ARITHMETIC_PRELUDE
from cas.cli import CasREPL, ScriptRunner, BUILTIN_PRELUDES, build_engine, main


class TestBuiltinPreludes:
    """Tests for built-in prelude names."""

    def test_builtin_prelude_names(self):
        """All expected built-in preludes exist."""
        assert set(BUILTIN_PRELUDES.keys()) == {"none", "arithmetic"}
        assert BUILTIN_PRELUDES["none"] is NO_PRELUDE
        assert BUILTIN_PRELUDES["arithmetic"] is ARITHMETIC_PRELUDE


class TestREPLCommands:
    """Tests for REPL command handling."""

    def test_help_command(self):
        """Help command returns help text."""
        repl = CasREPL()
        result = repl.handle_command(":help")
        assert "help" in result.lower()
        assert "load" in result.lower()

    def test_trace_command(self):
        """Trace command toggles tracing."""
        repl = CasREPL()
        assert repl.trace == False

        result = repl.handle_command(":trace on")
        assert repl.trace == True
        assert "enabled" in result.lower()

        result = repl.handle_command(":trace off")
        assert repl.trace == False
        assert "disabled" in result.lower()

    def test_trace_toggle(self):
        """Trace command without arg toggles."""
        repl = CasREPL()
        repl.handle_command(":trace")
        assert repl.trace == True
        repl.handle_command(":trace")
        assert repl.trace == False

    def test_rules_command_empty(self):
        """Rules command with no rules."""
        repl = CasREPL(RuleEngine())
        assert repl.handle_command(":rules") == "No rules loaded"

    def test_rules_command_with_rules(self):
        """Rules command lists rules in priority order."""
        repl = CasREPL(RuleEngine.from_text("a+0=a\na*1=a"))
        result = repl.handle_command(":rules")
        assert result.splitlines() == ["rule[0]: (a + 0) = a", "rule[1]: (a * 1) = a"]

    def test_load_command(self, tmp_path):
        """Load appends rules after the existing ones."""
        path = tmp_path / "extra.txt"
        path.write_text("a*2=a+a\n")
        repl = CasREPL(RuleEngine.from_text("a+0=a"))
        result = repl.handle_command(f":load {path}")
        assert "Loaded 1 rules" in result
        assert "(2 total)" in result
        assert str(repl.engine[1].pattern) == "(a * 2)"
        assert repl.process_line("x * 2") == "(x + x)"

    def test_load_missing_file(self, tmp_path):
        repl = CasREPL(RuleEngine())
        result = repl.handle_command(f":load {tmp_path / 'missing.txt'}")
        assert result.startswith("Error loading")
        assert len(repl.engine) == 0

    def test_load_bad_rules(self, tmp_path):
        path = tmp_path / "bad.txt"
        path.write_text("a+0=a\na+0\n")
        repl = CasREPL(RuleEngine())
        result = repl.handle_command(f":load {path}")
        assert "line 2" in result
        assert len(repl.engine) == 0

    def test_load_without_argument(self):
        repl = CasREPL(RuleEngine())
        assert repl.handle_command(":load").startswith("Usage")

    def test_quit_command(self):
        """Quit command stops the REPL."""
        repl = CasREPL()
        assert repl.running
        assert repl.handle_command(":quit") is None
        assert not repl.running

    def test_unknown_command(self):
        repl = CasREPL()
        assert repl.handle_command(":frobnicate").startswith("Unknown command")
        assert repl.handle_command(":").startswith("Unknown command")


class TestREPLProcessLine:
    """Tests for REPL line processing."""

    def test_empty_line(self):
        """Empty line returns None."""
        repl = CasREPL()
        assert repl.process_line("") is None
        assert repl.process_line("   ") is None

    def test_expression_evaluation(self):
        """Expressions are simplified with the default rules."""
        repl = CasREPL()
        assert repl.process_line("2*(9/2)") == "9"
        assert repl.process_line("(2/3)*(9/2/6)") == "(1 / 2)"

    def test_expression_unchanged(self):
        """A normal form is printed as-is."""
        repl = CasREPL()
        assert repl.process_line("x + y") == "(x + y)"

    def test_errors_reported(self):
        """Errors become messages instead of exceptions."""
        repl = CasREPL()
        assert repl.process_line("1/0").startswith("Error: Division by zero")
        assert repl.process_line("2 +").startswith("Error:")
        assert repl.process_line("2 # 3").startswith("Error:")

    def test_traced_output(self):
        """With tracing on, the rewrite chain follows the result."""
        repl = CasREPL(RuleEngine.from_text("a*1=a"))
        repl.handle_command(":trace on")
        lines = repl.process_line("(2 + 3) * 1").splitlines()
        assert lines[0] == "5"
        assert lines[1] == "((2 + 3) * 1)"
        assert "--(builtin)-->" in lines[2]
        assert "--(rule[0])-->" in lines[3]

    def test_traced_output_without_steps(self):
        repl = CasREPL()
        repl.handle_command(":trace on")
        assert repl.process_line("x") == "x"


class TestScriptRunner:
    """Tests for one-shot and filter modes."""

    def test_run_expression(self, capsys):
        """Run single expression."""
        runner = ScriptRunner()
        assert runner.run_expression("2+2") == 0
        assert capsys.readouterr().out == "4\n"

    def test_run_expression_error(self, capsys):
        runner = ScriptRunner()
        assert runner.run_expression("1/0") == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Division by zero" in captured.err

    def test_run_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "stdin", io.StringIO("2+2\n\nx*1\n(2/3)*(9/6)\n"))
        runner = ScriptRunner()
        assert runner.run_stdin() == 0
        assert capsys.readouterr().out == "4\nx\n1\n"

    def test_run_stdin_stops_at_error(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "stdin", io.StringIO("2+2\n1/0\n3+3\n"))
        runner = ScriptRunner()
        assert runner.run_stdin() == 1
        captured = capsys.readouterr()
        assert captured.out == "4\n"
        assert captured.err.startswith("<stdin>:2: Error")

    def test_variable_named_error(self, capsys):
        """A result that happens to start with 'Error' is still a success."""
        runner = ScriptRunner()
        assert runner.run_expression("Error") == 0
        assert runner.run_expression("Errorx*1") == 0
        captured = capsys.readouterr()
        assert captured.out == "Error\nErrorx\n"
        assert captured.err == ""

    def test_run_stdin_variable_named_error(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "stdin", io.StringIO("Error\nErrorx*1\n2+2\n"))
        runner = ScriptRunner()
        assert runner.run_stdin() == 0
        assert capsys.readouterr().out == "Error\nErrorx\n4\n"


class TestMain:
    """Tests for argument handling in main()."""

    def test_expression(self, capsys):
        assert main(["-e", "2*(9/2)"]) == 0
        assert capsys.readouterr().out == "9\n"

    def test_expression_named_error(self, capsys):
        assert main(["-e", "Error"]) == 0
        captured = capsys.readouterr()
        assert captured.out == "Error\n"
        assert captured.err == ""

    def test_long_sum(self, capsys):
        assert main(["-e", "+".join(["1"] * 1000)]) == 0
        assert capsys.readouterr().out == "1000\n"

    def test_custom_rules_replace_default(self, tmp_path, capsys):
        path = tmp_path / "rules.txt"
        path.write_text("a*1=a\n")
        assert main(["-r", str(path), "-e", "x + 0"]) == 0
        assert capsys.readouterr().out == "(x + 0)\n"

    def test_multiple_rule_files(self, tmp_path):
        first = tmp_path / "first.txt"
        second = tmp_path / "second.txt"
        first.write_text("a*1=a\n")
        second.write_text("a+0=a\n")
        engine = build_engine([str(first), str(second)], "arithmetic")
        assert [str(rule.pattern) for rule in engine] == ["(a * 1)", "(a + 0)"]
        assert [rule.index for rule in engine] == [0, 1]

    def test_no_prelude(self, capsys):
        assert main(["-p", "none", "-e", "2+2"]) == 0
        assert capsys.readouterr().out == "(2 + 2)\n"

    def test_trace_flag(self, capsys):
        assert main(["-t", "-e", "x*1"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("x\n")
        assert "--(rule[4])-->" in out

    def test_bad_rules_file(self, tmp_path, capsys):
        path = tmp_path / "bad.txt"
        path.write_text("a+0\n")
        assert main(["-r", str(path), "-e", "1"]) == 1
        assert "Error loading rules" in capsys.readouterr().err

    def test_missing_rules_file(self, tmp_path, capsys):
        assert main(["-r", str(tmp_path / "nope.txt"), "-e", "1"]) == 1
        assert "Error loading rules" in capsys.readouterr().err

    def test_unknown_prelude(self):
        with pytest.raises(SystemExit):
            main(["-p", "bogus", "-e", "1"])


class TestCLIIntegration:
    """Integration tests using subprocess."""

    def test_help_flag(self):
        """--help flag works."""
        result = subprocess.run(
            [sys.executable, "-m", "cas.cli", "--help"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "rewrite rules" in result.stdout

    def test_version_flag(self):
        """--version flag works."""
        result = subprocess.run(
            [sys.executable, "-m", "cas.cli", "--version"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "0.1.0" in result.stdout

    def test_expression_mode(self):
        """Expression mode prints the normal form."""
        result = subprocess.run(
            [sys.executable, "-m", "cas.cli", "-e", "(2/3)*(9/6)"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.strip() == "1"

    def test_pipe_mode(self):
        """Pipe mode simplifies each line of stdin."""
        result = subprocess.run(
            [sys.executable, "-m", "cas.cli"],
            input="2+2\n2*(9/2)\n",
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.splitlines() == ["4", "9"]

    def test_verbose_logs_steps(self):
        """-v logs each rewrite to stderr."""
        result = subprocess.run(
            [sys.executable, "-m", "cas.cli", "-v", "-e", "x*1"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.strip() == "x"
        assert "rewrite (x * 1) to x (rule[4])" in result.stderr
