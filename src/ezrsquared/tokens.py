"""
Token types for the ezr² lexer.

Tokens fall into six groups (see ``TokenGroup``):
- VALUE: literals and identifiers
- KEYWORD: verbose syntax keywords
- QEYWORD: quick syntax pseudo-keywords (``f``, ``fd``, ``s``, ...)
- ASSIGNMENT: ``:`` and the compound assignment symbols
- SYMBOL: operators and punctuation
- SPECIAL: statement separators and end of file
"""

from enum import Enum, auto
from dataclasses import dataclass, field
from typing import Any, Optional


class TokenGroup(Enum):
    """Broad classification of token types."""
    VALUE = "value"
    KEYWORD = "keyword"
    QEYWORD = "qeyword"
    ASSIGNMENT = "assignment"
    SYMBOL = "symbol"
    SPECIAL = "special"


class TokenType(Enum):
    """All token types recognized by the ezr² lexer."""

    # --- Values ---
    INTEGER = auto()            # 42
    FLOAT = auto()              # 3.14
    STRING = auto()             # "hello"
    CHARACTER = auto()          # `a`
    CHARACTER_LIST = auto()     # 'hello'
    IDENTIFIER = auto()         # user-defined names

    # --- Keywords ---
    ITEM = auto()               # item
    AND = auto()                # and
    OR = auto()                 # or
    INVERT = auto()             # invert
    NOT = auto()                # not
    IN = auto()                 # in
    GLOBAL = auto()             # global
    IF = auto()                 # if
    ELSE = auto()               # else
    COUNT = auto()              # count
    FROM = auto()               # from
    TO = auto()                 # to
    STEP = auto()               # step
    AS = auto()                 # as
    WHILE = auto()              # while
    SKIP = auto()               # skip
    STOP = auto()               # stop
    FUNCTION = auto()           # function
    SPECIAL = auto()            # special
    OBJECT = auto()             # object
    WITH = auto()               # with
    RETURN = auto()             # return
    TRY = auto()                # try
    ERROR = auto()              # error
    DO = auto()                 # do
    END = auto()                # end
    INCLUDE = auto()            # include
    ALL = auto()                # all

    # --- Qeywords (quick syntax) ---
    QEYWORD_F = auto()          # f   (if)
    QEYWORD_L = auto()          # l   (else if)
    QEYWORD_E = auto()          # e   (else / error)
    QEYWORD_C = auto()          # c   (count)
    QEYWORD_T = auto()          # t   (try / step)
    QEYWORD_N = auto()          # n   (as / with)
    QEYWORD_W = auto()          # w   (while)
    QEYWORD_FD = auto()         # fd  (function definition)
    QEYWORD_SD = auto()         # sd  (special definition)
    QEYWORD_OD = auto()         # od  (object definition)
    QEYWORD_I = auto()          # i   (include)
    QEYWORD_S = auto()          # s   (end)
    QEYWORD_D = auto()          # d   (item)
    QEYWORD_G = auto()          # g   (global)
    QEYWORD_V = auto()          # v   (invert)

    # --- Assignment symbols ---
    COLON = auto()              # :
    COLON_PLUS = auto()         # :+
    COLON_MINUS = auto()        # :-
    COLON_STAR = auto()         # :*
    COLON_SLASH = auto()        # :/
    COLON_PERCENT = auto()      # :%
    COLON_CARET = auto()        # :^
    COLON_AMPERSAND = auto()    # :&
    COLON_PIPE = auto()         # :|
    COLON_BACKSLASH = auto()    # :\
    COLON_LESS = auto()         # :<
    COLON_GREATER = auto()      # :>

    # --- Symbols ---
    PLUS = auto()               # +
    MINUS = auto()              # -
    STAR = auto()               # *
    SLASH = auto()              # /
    PERCENT = auto()            # %
    CARET = auto()              # ^
    AMPERSAND = auto()          # &
    PIPE = auto()               # |
    BACKSLASH = auto()          # \
    TILDE = auto()              # ~
    LEFT_SHIFT = auto()         # <<
    RIGHT_SHIFT = auto()        # >>
    EQUAL = auto()              # =
    EXCLAMATION = auto()        # !  (not-equal, quick syntax sentinel)
    LESS = auto()               # <
    GREATER = auto()            # >
    LESS_EQUAL = auto()         # <=
    GREATER_EQUAL = auto()      # >=
    ARROW = auto()              # ->
    COMMA = auto()              # ,
    PERIOD = auto()             # .
    LPAREN = auto()             # (
    RPAREN = auto()             # )
    LBRACKET = auto()           # [
    RBRACKET = auto()           # ]
    LBRACE = auto()             # {
    RBRACE = auto()             # }

    # --- Special ---
    NEWLINE = auto()            # newline or ;
    EOF = auto()                # end of file

    @property
    def group(self) -> TokenGroup:
        """The broad group this token type belongs to."""
        return _GROUPS[self]


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source code."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None
    source: str = field(default="", repr=False, compare=False)

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a range in source code."""
    start: SourceLocation
    end: SourceLocation

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"

    def to(self, other: "SourceSpan") -> "SourceSpan":
        """Span from the start of this span to the end of another."""
        return SourceSpan(self.start, other.end)


@dataclass(frozen=True)
class Token:
    """A single token from the lexer."""
    type: TokenType
    value: Any              # int, float or str payload; None for symbols
    lexeme: str             # The original source text
    span: SourceSpan        # Location in source

    def __str__(self) -> str:
        if self.type.group == TokenGroup.VALUE:
            return f"{self.type.name}({self.value!r})"
        return self.type.name


KEYWORDS: dict[str, TokenType] = {
    "item": TokenType.ITEM,
    "and": TokenType.AND,
    "or": TokenType.OR,
    "invert": TokenType.INVERT,
    "not": TokenType.NOT,
    "in": TokenType.IN,
    "global": TokenType.GLOBAL,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "count": TokenType.COUNT,
    "from": TokenType.FROM,
    "to": TokenType.TO,
    "step": TokenType.STEP,
    "as": TokenType.AS,
    "while": TokenType.WHILE,
    "skip": TokenType.SKIP,
    "stop": TokenType.STOP,
    "function": TokenType.FUNCTION,
    "special": TokenType.SPECIAL,
    "object": TokenType.OBJECT,
    "with": TokenType.WITH,
    "return": TokenType.RETURN,
    "try": TokenType.TRY,
    "error": TokenType.ERROR,
    "do": TokenType.DO,
    "end": TokenType.END,
    "include": TokenType.INCLUDE,
    "all": TokenType.ALL,
}


QEYWORDS: dict[str, TokenType] = {
    "f": TokenType.QEYWORD_F,
    "l": TokenType.QEYWORD_L,
    "e": TokenType.QEYWORD_E,
    "c": TokenType.QEYWORD_C,
    "t": TokenType.QEYWORD_T,
    "n": TokenType.QEYWORD_N,
    "w": TokenType.QEYWORD_W,
    "fd": TokenType.QEYWORD_FD,
    "sd": TokenType.QEYWORD_SD,
    "od": TokenType.QEYWORD_OD,
    "i": TokenType.QEYWORD_I,
    "s": TokenType.QEYWORD_S,
    "d": TokenType.QEYWORD_D,
    "g": TokenType.QEYWORD_G,
    "v": TokenType.QEYWORD_V,
}


# Compound assignment symbol -> binary operator it applies
ASSIGNMENT_OPERATORS: dict[TokenType, Optional[TokenType]] = {
    TokenType.COLON: None,
    TokenType.COLON_PLUS: TokenType.PLUS,
    TokenType.COLON_MINUS: TokenType.MINUS,
    TokenType.COLON_STAR: TokenType.STAR,
    TokenType.COLON_SLASH: TokenType.SLASH,
    TokenType.COLON_PERCENT: TokenType.PERCENT,
    TokenType.COLON_CARET: TokenType.CARET,
    TokenType.COLON_AMPERSAND: TokenType.AMPERSAND,
    TokenType.COLON_PIPE: TokenType.PIPE,
    TokenType.COLON_BACKSLASH: TokenType.BACKSLASH,
    TokenType.COLON_LESS: TokenType.LEFT_SHIFT,
    TokenType.COLON_GREATER: TokenType.RIGHT_SHIFT,
}


# Source text for every fixed-spelling token type
SYMBOL_TEXT: dict[TokenType, str] = {
    **{token_type: text for text, token_type in KEYWORDS.items()},
    **{token_type: text for text, token_type in QEYWORDS.items()},
    TokenType.COLON: ":",
    TokenType.COLON_PLUS: ":+",
    TokenType.COLON_MINUS: ":-",
    TokenType.COLON_STAR: ":*",
    TokenType.COLON_SLASH: ":/",
    TokenType.COLON_PERCENT: ":%",
    TokenType.COLON_CARET: ":^",
    TokenType.COLON_AMPERSAND: ":&",
    TokenType.COLON_PIPE: ":|",
    TokenType.COLON_BACKSLASH: ":\\",
    TokenType.COLON_LESS: ":<",
    TokenType.COLON_GREATER: ":>",
    TokenType.PLUS: "+",
    TokenType.MINUS: "-",
    TokenType.STAR: "*",
    TokenType.SLASH: "/",
    TokenType.PERCENT: "%",
    TokenType.CARET: "^",
    TokenType.AMPERSAND: "&",
    TokenType.PIPE: "|",
    TokenType.BACKSLASH: "\\",
    TokenType.TILDE: "~",
    TokenType.LEFT_SHIFT: "<<",
    TokenType.RIGHT_SHIFT: ">>",
    TokenType.EQUAL: "=",
    TokenType.EXCLAMATION: "!",
    TokenType.LESS: "<",
    TokenType.GREATER: ">",
    TokenType.LESS_EQUAL: "<=",
    TokenType.GREATER_EQUAL: ">=",
    TokenType.ARROW: "->",
    TokenType.COMMA: ",",
    TokenType.PERIOD: ".",
    TokenType.LPAREN: "(",
    TokenType.RPAREN: ")",
    TokenType.LBRACKET: "[",
    TokenType.RBRACKET: "]",
    TokenType.LBRACE: "{",
    TokenType.RBRACE: "}",
}


_VALUE_TYPES = {
    TokenType.INTEGER, TokenType.FLOAT, TokenType.STRING,
    TokenType.CHARACTER, TokenType.CHARACTER_LIST, TokenType.IDENTIFIER,
}

_GROUPS: dict[TokenType, TokenGroup] = {}
for _token_type in TokenType:
    if _token_type in _VALUE_TYPES:
        _GROUPS[_token_type] = TokenGroup.VALUE
    elif _token_type in KEYWORDS.values():
        _GROUPS[_token_type] = TokenGroup.KEYWORD
    elif _token_type in QEYWORDS.values():
        _GROUPS[_token_type] = TokenGroup.QEYWORD
    elif _token_type in ASSIGNMENT_OPERATORS:
        _GROUPS[_token_type] = TokenGroup.ASSIGNMENT
    elif _token_type in (TokenType.NEWLINE, TokenType.EOF):
        _GROUPS[_token_type] = TokenGroup.SPECIAL
    else:
        _GROUPS[_token_type] = TokenGroup.SYMBOL
del _token_type


def is_assignment_symbol(token_type: TokenType) -> bool:
    """Check if a token type is ``:`` or a compound assignment symbol."""
    return token_type in ASSIGNMENT_OPERATORS


def is_name_token(token_type: TokenType) -> bool:
    """Check if a token can name a variable (identifiers and qeywords)."""
    return token_type == TokenType.IDENTIFIER or token_type.group == TokenGroup.QEYWORD
