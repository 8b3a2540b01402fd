"""
Lexer for ezr².

Converts source text into a flat stream of tokens for the parser.
Supports:
- ``@`` comments running to the end of the line
- Newlines and ``;`` folded into a single NEWLINE separator
- String (``"``), character (`````) and character list (``'``) literals with
  backslash escapes, including ``\\uXXXX`` and ``\\UXXXXXX``
- Integer and float literals (a ``.`` is only consumed when a digit follows)
- Keywords, quick syntax qeywords and identifiers
- Single and compound operators (``:+``, ``<=``, ``<<``, ``->``, ...)

Scanning stops at the first lexical error, which is raised as a LexerError.
"""

from typing import List, Optional, Iterator
from .tokens import (
    Token, TokenType, SourceLocation, SourceSpan, KEYWORDS, QEYWORDS,
)
from .errors import (
    LexerError,
    error_unexpected_character,
    error_invalid_hex_value,
    error_unterminated_literal,
)


DIGITS = "0123456789"
HEX_DIGITS = "0123456789abcdefABCDEF"

ESCAPE_CHARACTERS = {
    'n': '\n',
    't': '\t',
    'b': '\b',
    'r': '\r',
    '0': '\0',
    'f': '\f',
    'v': '\v',
}

# Quote character -> (token type, literal kind used in error messages)
QUOTES = {
    '"': (TokenType.STRING, "string"),
    '`': (TokenType.CHARACTER, "character"),
    "'": (TokenType.CHARACTER_LIST, "character list"),
}

# Characters following ':' in compound assignment symbols
COLON_COMPOUNDS = {
    '+': TokenType.COLON_PLUS,
    '-': TokenType.COLON_MINUS,
    '*': TokenType.COLON_STAR,
    '/': TokenType.COLON_SLASH,
    '%': TokenType.COLON_PERCENT,
    '^': TokenType.COLON_CARET,
    '&': TokenType.COLON_AMPERSAND,
    '|': TokenType.COLON_PIPE,
    '\\': TokenType.COLON_BACKSLASH,
    '<': TokenType.COLON_LESS,
    '>': TokenType.COLON_GREATER,
}

SINGLE_CHARACTER_TOKENS = {
    '+': TokenType.PLUS,
    '*': TokenType.STAR,
    '/': TokenType.SLASH,
    '%': TokenType.PERCENT,
    '^': TokenType.CARET,
    '=': TokenType.EQUAL,
    '!': TokenType.EXCLAMATION,
    ',': TokenType.COMMA,
    '.': TokenType.PERIOD,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    '&': TokenType.AMPERSAND,
    '|': TokenType.PIPE,
    '\\': TokenType.BACKSLASH,
    '~': TokenType.TILDE,
}


class Lexer:
    """
    Tokenizer for ezr² source text.

    Usage:
        lexer = Lexer(source_code, "script.ezr")
        tokens = lexer.tokenize()

    Or for streaming:
        lexer = Lexer(source_code)
        for token in lexer:
            process(token)
    """

    def __init__(self, source: str, filename: Optional[str] = None):
        self.source = source
        self.filename = filename or "<stdin>"
        self.pos = 0            # Current position in source
        self.line = 1           # Current line (1-indexed)
        self.column = 1         # Current column (1-indexed)
        self._done = False

    def _location(self) -> SourceLocation:
        """Get current source location."""
        return SourceLocation(self.line, self.column, self.pos, self.filename, self.source)

    def _span(self, start: SourceLocation) -> SourceSpan:
        """Create a span from start to current position."""
        return SourceSpan(start, self._location())

    def _peek(self, offset: int = 0) -> str:
        """Look at character at current position + offset without consuming."""
        idx = self.pos + offset
        if idx >= len(self.source):
            return '\0'
        return self.source[idx]

    def _advance(self) -> str:
        """Consume and return current character."""
        if self.pos >= len(self.source):
            return '\0'
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _match(self, expected: str) -> bool:
        """Consume character if it matches expected."""
        if not self._is_at_end() and self._peek() == expected:
            self._advance()
            return True
        return False

    def _is_at_end(self) -> bool:
        """Check if we've reached end of source."""
        return self.pos >= len(self.source)

    def _skip_comment(self) -> None:
        """Skip an @ comment up to (not including) the newline."""
        while not self._is_at_end() and self._peek() != '\n':
            self._advance()

    def _make_token(self, token_type: TokenType, value, start: SourceLocation,
                    lexeme: Optional[str] = None) -> Token:
        """Create a token."""
        span = self._span(start)
        if lexeme is None:
            lexeme = self.source[start.offset:self.pos]
        return Token(token_type, value, lexeme, span)

    def _scan_string_like(self) -> Token:
        """Scan a string, character or character list literal."""
        start = self._location()
        quote = self._advance()
        token_type, kind = QUOTES[quote]

        chars = []
        while not self._is_at_end() and self._peek() != quote:
            if self._peek() == '\\':
                self._advance()
                chars.append(self._scan_escape_sequence())
            else:
                chars.append(self._advance())

        if self._is_at_end():
            raise error_unterminated_literal(kind, self._span(start))

        self._advance()  # closing quote
        return self._make_token(token_type, ''.join(chars), start)

    def _scan_escape_sequence(self) -> str:
        """Decode the escape sequence following a backslash."""
        ch = self._advance()
        if ch in ESCAPE_CHARACTERS:
            return ESCAPE_CHARACTERS[ch]
        if ch == 'u':
            return self._scan_hex_escape(4, "UTF-16 hexadecimal values must be 4 characters long "
                                            "and only contain digits and/or the letters A to F")
        if ch == 'U':
            return self._scan_hex_escape(6, "UTF-32 hexadecimal values must be 6 characters long "
                                            "and only contain digits and/or the letters A to F")
        return ch

    def _scan_hex_escape(self, length: int, message: str) -> str:
        """Scan exactly ``length`` hex digits and return the code point."""
        start = self._location()
        digits = []
        for _ in range(length):
            if self._is_at_end() or self._peek() not in HEX_DIGITS:
                self._advance()
                raise error_invalid_hex_value(message, self._span(start))
            digits.append(self._advance())

        code_point = int(''.join(digits), 16)
        if code_point > 0x10FFFF:
            raise error_invalid_hex_value(
                "UTF-32 hexadecimal values must be in range 000000 - 10FFFF", self._span(start)
            )
        return chr(code_point)

    def _scan_number(self) -> Token:
        """Scan an integer or float literal."""
        start = self._location()
        has_period = False

        while self._peek() in DIGITS or self._peek() == '.':
            if self._peek() == '.':
                if has_period or self._peek(1) not in DIGITS:
                    break
                has_period = True
            self._advance()

        lexeme = self.source[start.offset:self.pos]
        if has_period:
            return self._make_token(TokenType.FLOAT, float(lexeme), start, lexeme)
        return self._make_token(TokenType.INTEGER, int(lexeme), start, lexeme)

    def _scan_identifier_or_keyword(self) -> Token:
        """Scan an identifier, keyword or qeyword."""
        start = self._location()

        while self._peek().isalnum() or self._peek() == '_':
            self._advance()

        lexeme = self.source[start.offset:self.pos]
        if lexeme in KEYWORDS:
            return self._make_token(KEYWORDS[lexeme], lexeme, start, lexeme)
        if lexeme in QEYWORDS:
            return self._make_token(QEYWORDS[lexeme], lexeme, start, lexeme)
        return self._make_token(TokenType.IDENTIFIER, lexeme, start, lexeme)

    def _scan_colon(self) -> Token:
        """Scan ':' or a compound assignment symbol."""
        start = self._location()
        self._advance()
        next_ch = self._peek()
        if not self._is_at_end() and next_ch in COLON_COMPOUNDS:
            self._advance()
            return self._make_token(COLON_COMPOUNDS[next_ch], None, start)
        return self._make_token(TokenType.COLON, None, start)

    def _scan_token(self) -> Optional[Token]:
        """Scan the next token, or return None for skipped input."""
        start = self._location()
        ch = self._peek()

        if ch in ' \t\r':
            self._advance()
            return None
        if ch == '@':
            self._skip_comment()
            return None
        if ch in '\n;':
            self._advance()
            return self._make_token(TokenType.NEWLINE, None, start)

        if ch in QUOTES:
            return self._scan_string_like()
        if ch == ':':
            return self._scan_colon()
        if ch.isalpha() or ch == '_':
            return self._scan_identifier_or_keyword()
        if ch in DIGITS:
            return self._scan_number()

        self._advance()

        # Two-character operators
        if ch == '<':
            if self._match('='):
                return self._make_token(TokenType.LESS_EQUAL, None, start)
            if self._match('<'):
                return self._make_token(TokenType.LEFT_SHIFT, None, start)
            return self._make_token(TokenType.LESS, None, start)
        if ch == '>':
            if self._match('='):
                return self._make_token(TokenType.GREATER_EQUAL, None, start)
            if self._match('>'):
                return self._make_token(TokenType.RIGHT_SHIFT, None, start)
            return self._make_token(TokenType.GREATER, None, start)
        if ch == '-':
            if self._match('>'):
                return self._make_token(TokenType.ARROW, None, start)
            return self._make_token(TokenType.MINUS, None, start)

        if ch in SINGLE_CHARACTER_TOKENS:
            return self._make_token(SINGLE_CHARACTER_TOKENS[ch], None, start)

        raise error_unexpected_character(ch, self._span(start))

    def _next_token(self) -> Token:
        """Return the next significant token, ending with EOF."""
        while not self._is_at_end():
            token = self._scan_token()
            if token is not None:
                return token
        self._done = True
        return self._make_token(TokenType.EOF, None, self._location(), "")

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source, returning a list of tokens."""
        return list(self)

    def __iter__(self) -> Iterator[Token]:
        """Iterate over tokens."""
        while not self._done:
            yield self._next_token()


def tokenize(source: str, filename: Optional[str] = None) -> List[Token]:
    """
    Convenience function to tokenize source code.

    Args:
        source: The source code to tokenize
        filename: Optional filename for error messages

    Returns:
        List of tokens, always ending with an EOF token

    Raises:
        LexerError: If tokenization fails
    """
    lexer = Lexer(source, filename)
    return lexer.tokenize()
