"""
Tests for ezr² error rendering and diagnostics.
"""

import pytest
import textwrap

from ezrsquared import run, tokenize, Diagnostic, EvaluationError, LexerError, ParserError, RuntimeTag
from ezrsquared.errors import error_runtime, underline


def run_failing(source):
    error, value = run("<test>", textwrap.dedent(source).strip())
    assert value is None
    assert error is not None
    return error


# --- Rendering Tests ---

class TestRendering:
    """Test the caret-underlined error layout."""

    def test_runtime_error_format(self):
        """Runtime errors carry a traceback and underline the offending operand."""
        error = run_failing("1 / 0")
        assert error.format() == (
            "Traceback - most recent call last:\n"
            "\t File '<test>', line 1 - In '<main>'\n"
            "(error) math-error: Division by zero -> File '<test>', line 1\n"
            "1 / 0\n"
            "    ~"
        )

    def test_str_matches_format(self):
        """str() of an error is its rendered form."""
        error = run_failing("1 / 0")
        assert str(error) == error.format()

    def test_traceback_through_function(self):
        """Each function call adds a frame, outermost first."""
        error = run_failing("""
            function boom do 1 / 0
            boom()
        """)
        assert error.format() == (
            "Traceback - most recent call last:\n"
            "\t File '<test>', line 2 - In '<main>'\n"
            "\t File '<test>', line 1 - In 'boom'\n"
            "(error) math-error: Division by zero -> File '<test>', line 1\n"
            "function boom do 1 / 0\n"
            + " " * 21 + "~"
        )

    def test_undefined_name_format(self):
        """Undefined names underline the whole name."""
        error = run_failing("value : missing")
        assert error.format().endswith(
            "(error) undefined-error: 'missing' is not defined -> File '<test>', line 1\n"
            "value : missing\n"
            "        ~~~~~~~"
        )

    def test_lexer_error_has_no_traceback(self):
        """Lexer errors render without a traceback."""
        error = run_failing("x : $")
        assert isinstance(error, LexerError)
        assert error.format() == (
            "(error) Unknown character: '$' -> File '<test>', line 1\n"
            "x : $\n"
            "    ~"
        )

    def test_parser_error_format(self):
        """Parser errors use the 'Invalid grammar' kind."""
        error = run_failing("x :")
        assert isinstance(error, ParserError)
        assert error.format().startswith("(error) Invalid grammar: ")
        assert "Traceback" not in error.format()

    def test_custom_tag_is_the_kind(self):
        """User tags from show_error appear as the error kind."""
        error = run_failing('show_error("disk-full", "No space left")')
        assert "(error) disk-full: No space left -> File '<test>', line 1" in error.format()


class TestUnderline:
    """Test the underline helper."""

    def test_tabs_become_spaces(self):
        """Tabs in the source line are shown as single spaces."""
        token = tokenize("\tx")[0]
        assert underline(token.span) == " x\n ~"

    def test_multiline_span_runs_to_end_of_line(self):
        """A span over several lines underlines the rest of its first line."""
        tokens = tokenize("abc\ndef")
        span = tokens[0].span.to(tokens[2].span)
        assert underline(span) == "abc\n~~~"

    def test_second_line(self):
        """Underlines refer to the line the span starts on."""
        tokens = tokenize("a\n  bc")
        assert underline(tokens[2].span) == "  bc\n  ~~"


# --- Diagnostic Tests ---

class TestDiagnostic:
    """Test Diagnostic data and serialization."""

    def test_format_without_span(self):
        """A diagnostic without a span is just its header."""
        diagnostic = Diagnostic(code="E200", name="custom", details="Something happened")
        assert diagnostic.format() == "(error) custom: Something happened"

    def test_to_json(self):
        """JSON form carries the code, kind and range."""
        token = tokenize("abc", "script.ezr")[0]
        diagnostic = Diagnostic(code="E202", name="undefined-error", details="'abc' is not defined",
                                span=token.span)
        data = diagnostic.to_json()
        assert data["code"] == "E202"
        assert data["name"] == "undefined-error"
        assert data["hints"] == []
        assert data["range"]["file"] == "script.ezr"
        assert data["range"]["start"] == {"line": 1, "column": 1, "offset": 0}
        assert data["range"]["end"]["column"] == 4

    def test_to_json_without_span(self):
        """No range is emitted without a span."""
        assert "range" not in Diagnostic(code="E200", name="x", details="y").to_json()

    def test_unterminated_literal_hint(self):
        """Lexer diagnostics can carry hints."""
        with pytest.raises(LexerError) as exc_info:
            tokenize("'abc")
        assert exc_info.value.diagnostic.hints


class TestRuntimeErrors:
    """Test runtime error construction."""

    @pytest.mark.parametrize("tag,code", [
        (RuntimeTag.ILLEGAL_OPERATION, "E201"),
        (RuntimeTag.MATH, "E207"),
        (RuntimeTag.IO, "E209"),
        ("my-error", "E200"),
    ])
    def test_codes(self, tag, code):
        """Built-in tags map to their own codes; user tags share E200."""
        error = error_runtime(tag, "details", None)
        assert isinstance(error, EvaluationError)
        assert error.diagnostic.code == code
        assert error.tag == tag

    def test_traceback_without_context(self):
        """An error with no context has an empty traceback."""
        error = error_runtime(RuntimeTag.RUN, "details", None)
        assert error.traceback() == "Traceback - most recent call last:\n"

    def test_errors_are_exceptions(self):
        """Runtime errors can be raised and caught as Python exceptions."""
        with pytest.raises(EvaluationError) as exc_info:
            raise error_runtime(RuntimeTag.KEY, "missing", None)
        assert exc_info.value.details == "missing"
