"""
Tests for the ezr² command line interface.
"""

import pytest

from ezrsquared.__main__ import main


@pytest.fixture
def script(tmp_path):
    """Write a script file and return its path as a string."""
    def write(source, name="script.ezr"):
        path = tmp_path / name
        path.write_text(source)
        return str(path)
    return write


def feed_input(monkeypatch, lines):
    """Replace input() with a reader over ``lines`` that ends with EOF."""
    remaining = list(lines)

    def fake_input(prompt=""):
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    monkeypatch.setattr("builtins.input", fake_input)


class TestRunCommand:
    """Test 'run'."""

    def test_run_prints_output(self, script, capsys):
        """Script output reaches stdout and the exit code is 0."""
        path = script('show("hello")\nshow(1 + 2)')
        assert main(["run", path]) == 0
        assert capsys.readouterr().out == "hello\n3\n"

    def test_run_error_exit_code(self, script, capsys):
        """Language errors are printed and give exit code 1."""
        path = script("1 / 0")
        assert main(["run", path]) == 1
        out = capsys.readouterr().out
        assert "(error) math-error: Division by zero" in out
        assert "Traceback - most recent call last:" in out

    def test_run_missing_file(self, tmp_path, capsys):
        """A missing file is reported on stderr."""
        assert main(["run", str(tmp_path / "missing.ezr")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_run_include_path(self, tmp_path, script, capsys):
        """-I adds include search directories."""
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "greet.ezr").write_text('message : "hi"')
        path = script("include greet\nshow(greet.message)")
        assert main(["run", path, "-I", str(lib)]) == 0
        assert capsys.readouterr().out == "hi\n"

    def test_run_include_path_from_environment(self, tmp_path, script, capsys, monkeypatch):
        """EZRSQUARED_PATH adds include search directories."""
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "greet.ezr").write_text('message : "env"')
        monkeypatch.setenv("EZRSQUARED_PATH", str(lib))
        path = script("include greet\nshow(greet.message)")
        assert main(["run", path]) == 0
        assert capsys.readouterr().out == "env\n"

    def test_run_loop_limit(self, script, capsys):
        """--loop-limit stops runaway loops."""
        path = script("while true do 1")
        assert main(["run", path, "--loop-limit", "10"]) == 1
        assert "Loop iteration limit exceeded" in capsys.readouterr().out


class TestInspectionCommands:
    """Test 'tokens' and 'ast'."""

    def test_tokens(self, script, capsys):
        """Tokens are listed with their positions."""
        path = script("x : 1")
        assert main(["tokens", path]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("1:1\t")
        assert "IDENTIFIER" in lines[0]
        assert "EOF" in lines[-1]

    def test_tokens_lexer_error(self, script, capsys):
        """Lexer errors are printed with exit code 1."""
        path = script("x : $")
        assert main(["tokens", path]) == 1
        assert "Unknown character" in capsys.readouterr().out

    def test_ast_prints_verbose_source(self, script, capsys):
        """Quick syntax is printed in verbose form."""
        path = script("!fd double n k: k * 2")
        assert main(["ast", path]) == 0
        assert capsys.readouterr().out.strip() == "function double with k do (k * 2)"

    def test_ast_dump(self, script, capsys):
        """--dump prints the structural form."""
        path = script("x : 1")
        assert main(["ast", "--dump", path]) == 0
        out = capsys.readouterr().out
        assert "IDENTIFIER" in out
        assert "INTEGER" in out

    def test_ast_parse_error(self, script, capsys):
        """Parse errors are printed with exit code 1."""
        path = script("x :")
        assert main(["ast", path]) == 1
        assert "Invalid grammar" in capsys.readouterr().out


class TestShell:
    """Test the interactive shell."""

    def test_shell_shares_context(self, monkeypatch, capsys):
        """Names persist between inputs and single results are printed."""
        feed_input(monkeypatch, ["x : 2", "x * 3", "quit shell"])
        assert main(["shell"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[-2:] == ["2", "6"]

    def test_shell_hides_nothing(self, monkeypatch, capsys):
        """A single nothing result is not printed."""
        feed_input(monkeypatch, ['show("hi")', "quit shell"])
        assert main(["shell"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[-1] == "hi"

    def test_shell_script_mode(self, monkeypatch, capsys):
        """Script mode collects lines until 'run code'."""
        feed_input(monkeypatch, ["switch mode", "a : 1", "a + 1", "run code", "quit shell"])
        assert main(["shell"]) == 0
        assert capsys.readouterr().out.splitlines()[-1] == "(1, 2)"

    def test_shell_reports_errors(self, monkeypatch, capsys):
        """Errors are printed and the shell keeps going."""
        feed_input(monkeypatch, ["missing", "1 + 1"])
        assert main(["shell"]) == 0
        out = capsys.readouterr().out
        assert "(error) undefined-error: 'missing' is not defined" in out
        assert out.splitlines()[-2] == "2"

    def test_shell_end_of_input(self, monkeypatch, capsys):
        """End of input leaves the shell cleanly."""
        feed_input(monkeypatch, [])
        assert main(["shell"]) == 0


class TestArguments:
    """Test argument handling."""

    def test_action_required(self):
        """A subcommand must be given."""
        with pytest.raises(SystemExit):
            main([])
