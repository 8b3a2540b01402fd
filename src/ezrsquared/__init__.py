"""
ezr² (ezrSquared) scripting language.

This package provides:
- Lexer: Tokenizes ezr² source code
- Parser: Builds an AST from either the verbose or the quick (``!``) syntax
- Printer: Renders an AST back to verbose source
- Runtime: Tree-walking interpreter, values, contexts and includes

Usage:
    from ezrsquared import run

    error, value = run("<stdin>", 'show("hello")')
    if error is not None:
        print(error)
"""

__version__ = "0.1.0"

from .tokens import (
    Token,
    TokenType,
    SourceLocation,
    SourceSpan,
    KEYWORDS,
    QEYWORDS,
)

from .lexer import (
    Lexer,
    tokenize,
)

from .parser import (
    Parser,
    parse,
)

from .printer import (
    SourcePrinter,
    format_node,
    dump,
)

from .errors import (
    EzrError,
    LexerError,
    ParserError,
    EvaluationError,
    Diagnostic,
    RuntimeTag,
)

from .runtime import (
    Interpreter,
    Context,
    ModuleLoader,
    get_global_context,
    run,
)

__all__ = [
    "__version__",
    # Tokens
    "Token",
    "TokenType",
    "SourceLocation",
    "SourceSpan",
    "KEYWORDS",
    "QEYWORDS",
    # Lexer
    "Lexer",
    "tokenize",
    # Parser
    "Parser",
    "parse",
    # Printer
    "SourcePrinter",
    "format_node",
    "dump",
    # Errors
    "EzrError",
    "LexerError",
    "ParserError",
    "EvaluationError",
    "Diagnostic",
    "RuntimeTag",
    # Runtime
    "Interpreter",
    "Context",
    "ModuleLoader",
    "get_global_context",
    "run",
]
