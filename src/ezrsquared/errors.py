"""
ezr² exceptions and error rendering.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E2xx: Runtime errors

Every error renders in the same caret-underlined form::

    (error) <kind>: <details> -> File '<file>', line <line>
    <source line>
    <spaces up to the start column><tildes spanning the range>

Runtime errors additionally prepend a traceback built from the context chain
and use their tag as the kind.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional

from .tokens import SourceSpan

if TYPE_CHECKING:
    from .runtime.context import Context


class RuntimeTag:
    """Tags attached to runtime errors, matched by ``try``/``error`` clauses."""
    ANY = "any"
    ILLEGAL_OPERATION = "operation-error"
    UNDEFINED = "undefined-error"
    KEY = "key-error"
    INDEX = "index-error"
    ARGUMENTS = "arguments-error"
    TYPE = "type-error"
    MATH = "math-error"
    RUN = "run-error"
    IO = "io-error"


def source_line(span: SourceSpan) -> str:
    """Return the source line a span starts on, with tabs replaced by spaces."""
    lines = span.start.source.split("\n")
    index = span.start.line - 1
    if 0 <= index < len(lines):
        return lines[index].replace("\t", " ")
    return ""


def underline(span: SourceSpan) -> str:
    """Render the source line of a span followed by a tilde underline."""
    line = source_line(span)
    start = span.start.column - 1
    if span.end.line == span.start.line:
        width = span.end.column - span.start.column
    else:
        width = len(line) - start
    return f"{line}\n{' ' * start}{'~' * max(1, width)}"


@dataclass
class Diagnostic:
    """A single positioned error message."""
    code: str                       # E001, E101, E201, ...
    name: str                       # Error kind, or the tag for runtime errors
    details: str                    # Human-readable message
    span: Optional[SourceSpan] = None
    hints: List[str] = field(default_factory=list)

    def format(self) -> str:
        """Format the diagnostic for display."""
        header = f"(error) {self.name}: {self.details}"
        if self.span is None:
            return header
        start = self.span.start
        return f"{header} -> File '{start.filename}', line {start.line}\n{underline(self.span)}"

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        data = {
            "code": self.code,
            "name": self.name,
            "details": self.details,
            "hints": self.hints,
        }
        if self.span is not None:
            data["range"] = {
                "file": self.span.start.filename,
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            }
        return data


class EzrError(Exception):
    """Base exception for ezr² errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.details)

    @property
    def name(self) -> str:
        return self.diagnostic.name

    @property
    def details(self) -> str:
        return self.diagnostic.details

    @property
    def span(self) -> Optional[SourceSpan]:
        return self.diagnostic.span

    def format(self) -> str:
        return self.diagnostic.format()

    def __str__(self) -> str:
        return self.format()


class LexerError(EzrError):
    """Error during lexical analysis (E0xx)."""
    pass


class ParserError(EzrError):
    """
    Error during parsing (E1xx).

    ``priority`` ranks competing failures while the parser backtracks; a
    higher priority marks a more specific grammar error. ``cause`` is the
    failure of a nested construct that this error wraps.
    """

    def __init__(self, diagnostic: Diagnostic, priority: int = 0,
                 cause: Optional["ParserError"] = None):
        super().__init__(diagnostic)
        self.priority = priority
        self.cause = cause

    def format(self) -> str:
        if self.cause is None:
            return self.diagnostic.format()
        return f"{self.cause.format()}\n\n{self.diagnostic.format()}"


class EvaluationError(EzrError):
    """
    Runtime error (E2xx).

    Carries the tag used by ``try``/``error`` matching and the context that
    was active when it was raised, from which the traceback is rendered.
    """

    def __init__(self, diagnostic: Diagnostic, context: Optional["Context"] = None):
        super().__init__(diagnostic)
        self.context = context

    @property
    def tag(self) -> str:
        return self.diagnostic.name

    def traceback(self) -> str:
        """Render the call stack, outermost frame first; the locked global context is not a frame."""
        frames = ""
        span = self.span
        context = self.context
        while context is not None and not context.locked:
            if span is None:
                frames = f"\t File '<unknown>', line ? - In '{context.name}'\n" + frames
            else:
                frames = f"\t File '{span.start.filename}', line {span.start.line} - In '{context.name}'\n" + frames
            span = context.parent_entry_span
            context = context.parent
        return f"Traceback - most recent call last:\n{frames}"

    def format(self) -> str:
        return self.traceback() + self.diagnostic.format()


# --- Lexer error codes ---

def error_unexpected_character(char: str, span: SourceSpan) -> LexerError:
    """E001: Unknown character."""
    diag = Diagnostic(
        code="E001",
        name="Unknown character",
        details=f"'{char}'",
        span=span,
    )
    return LexerError(diag)


def error_invalid_hex_value(details: str, span: SourceSpan) -> LexerError:
    """E002: Malformed unicode escape."""
    diag = Diagnostic(
        code="E002",
        name="Invalid hex value",
        details=details,
        span=span,
    )
    return LexerError(diag)


def error_unterminated_literal(kind: str, span: SourceSpan) -> LexerError:
    """E003: String, character or character list without a closing quote."""
    diag = Diagnostic(
        code="E003",
        name="Unterminated literal",
        details=f"Expected the end of the {kind}",
        span=span,
        hints=[f"{kind} literals must be closed with the quote that opened them"],
    )
    return LexerError(diag)


# --- Parser error codes ---

def error_invalid_grammar(details: str, span: SourceSpan, priority: int = 0,
                          cause: Optional[ParserError] = None) -> ParserError:
    """E101: Grammar expectation failure."""
    diag = Diagnostic(
        code="E101",
        name="Invalid grammar",
        details=details,
        span=span,
    )
    return ParserError(diag, priority, cause)


# --- Runtime error codes ---

_RUNTIME_CODES = {
    RuntimeTag.ILLEGAL_OPERATION: "E201",
    RuntimeTag.UNDEFINED: "E202",
    RuntimeTag.KEY: "E203",
    RuntimeTag.INDEX: "E204",
    RuntimeTag.ARGUMENTS: "E205",
    RuntimeTag.TYPE: "E206",
    RuntimeTag.MATH: "E207",
    RuntimeTag.RUN: "E208",
    RuntimeTag.IO: "E209",
}


def error_runtime(
    tag: str,
    details: str,
    span: Optional[SourceSpan],
    context: Optional["Context"] = None,
) -> EvaluationError:
    """E2xx: Runtime error; user-chosen tags share code E200."""
    diag = Diagnostic(
        code=_RUNTIME_CODES.get(tag, "E200"),
        name=tag,
        details=details,
        span=span,
    )
    return EvaluationError(diag, context)


def error_illegal_operation(
    left: Any, right: Any = None, span: Optional[SourceSpan] = None,
    context: Optional["Context"] = None,
) -> EvaluationError:
    """E201: Operation not supported by the operand types."""
    if right is None:
        details = f"Illegal operation for type '{left}'"
    else:
        details = f"Illegal operation for types '{left}' and '{right}'"
    return error_runtime(RuntimeTag.ILLEGAL_OPERATION, details, span, context)


def error_undefined(name: str, span: Optional[SourceSpan], context: Optional["Context"] = None) -> EvaluationError:
    """E202: Name lookup failure."""
    return error_runtime(RuntimeTag.UNDEFINED, f"'{name}' is not defined", span, context)
