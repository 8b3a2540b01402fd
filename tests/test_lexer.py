"""
Unit tests for the ezr² lexer.
"""

import pytest
from ezrsquared import tokenize, Lexer, TokenType, LexerError


def types_of(source):
    return [token.type for token in tokenize(source)]


class TestLexerBasics:
    """Test basic lexer functionality."""

    def test_empty_source(self):
        """Empty source produces only EOF."""
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.EOF

    def test_whitespace_only(self):
        """Spaces and tabs produce no tokens."""
        assert types_of("   \t  ") == [TokenType.EOF]

    def test_simple_assignment(self):
        """Basic assignment tokenization."""
        assert types_of("x : 42") == [
            TokenType.IDENTIFIER,
            TokenType.COLON,
            TokenType.INTEGER,
            TokenType.EOF,
        ]

    def test_identifier_value(self):
        """Identifier token keeps its text as value and lexeme."""
        token = tokenize("foo_bar123")[0]
        assert token.type == TokenType.IDENTIFIER
        assert token.value == "foo_bar123"
        assert token.lexeme == "foo_bar123"

    def test_position_tracking(self):
        """Token positions are tracked correctly."""
        tokens = tokenize("x : 5")
        assert tokens[0].span.start.line == 1
        assert tokens[0].span.start.column == 1
        assert tokens[1].span.start.column == 3
        assert tokens[2].span.start.column == 5

    def test_multiline_position_tracking(self):
        """Position tracking across multiple lines."""
        tokens = tokenize("x : 5\ny : 10")
        names = [t for t in tokens if t.type == TokenType.IDENTIFIER]
        assert names[0].span.start.line == 1
        assert names[1].span.start.line == 2
        assert names[1].span.start.column == 1

    def test_filename_recorded(self):
        """The filename is carried on every token span."""
        tokens = tokenize("x", "script.ezr")
        assert tokens[0].span.start.filename == "script.ezr"

    def test_iteration(self):
        """Iterating a Lexer yields the same tokens as tokenize()."""
        streamed = [token.type for token in Lexer("a + b")]
        assert streamed == types_of("a + b")


class TestSeparatorsAndComments:
    """Test statement separators and comments."""

    def test_newline_and_semicolon_are_separators(self):
        """Both newlines and ';' become NEWLINE tokens."""
        assert types_of("a\nb;z") == [
            TokenType.IDENTIFIER, TokenType.NEWLINE,
            TokenType.IDENTIFIER, TokenType.NEWLINE,
            TokenType.IDENTIFIER, TokenType.EOF,
        ]

    def test_comment_skipped(self):
        """'@' comments run to the end of the line."""
        assert types_of("@ a comment\nx") == [TokenType.NEWLINE, TokenType.IDENTIFIER, TokenType.EOF]

    def test_trailing_comment(self):
        """A comment after code leaves the code tokens intact."""
        assert types_of("x @ note") == [TokenType.IDENTIFIER, TokenType.EOF]


class TestNumbers:
    """Test integer and float literals."""

    def test_integer(self):
        """Integer literal value."""
        token = tokenize("1234")[0]
        assert token.type == TokenType.INTEGER
        assert token.value == 1234

    def test_float(self):
        """Float literal value."""
        token = tokenize("3.25")[0]
        assert token.type == TokenType.FLOAT
        assert token.value == 3.25

    def test_period_without_digit_not_consumed(self):
        """'1.' is an integer followed by a period."""
        assert types_of("1.x") == [
            TokenType.INTEGER, TokenType.PERIOD, TokenType.IDENTIFIER, TokenType.EOF,
        ]

    def test_second_period_ends_float(self):
        """Only one decimal point belongs to a number."""
        tokens = tokenize("1.5.2")
        assert tokens[0].type == TokenType.FLOAT
        assert tokens[0].value == 1.5
        assert tokens[1].type == TokenType.PERIOD
        assert tokens[2].type == TokenType.INTEGER


class TestTextLiterals:
    """Test string, character and character list literals."""

    def test_string(self):
        """Double quotes make a string."""
        token = tokenize('"hello"')[0]
        assert token.type == TokenType.STRING
        assert token.value == "hello"
        assert token.lexeme == '"hello"'

    def test_character(self):
        """Backticks make a character."""
        token = tokenize("`a`")[0]
        assert token.type == TokenType.CHARACTER
        assert token.value == "a"

    def test_character_list(self):
        """Single quotes make a character list."""
        token = tokenize("'abc'")[0]
        assert token.type == TokenType.CHARACTER_LIST
        assert token.value == "abc"

    def test_escape_sequences(self):
        """Backslash escapes are decoded."""
        token = tokenize(r'"a\nb\tc\\d\"e"')[0]
        assert token.value == 'a\nb\tc\\d"e'

    def test_unicode_escapes(self):
        """\\u takes four hex digits and \\U six."""
        assert tokenize(r'"\u0041"')[0].value == "A"
        assert tokenize(r'"\U01F600"')[0].value == "\U0001F600"

    def test_short_unicode_escape(self):
        """A \\u escape with too few digits is an error."""
        with pytest.raises(LexerError) as exc_info:
            tokenize(r'"\u00G1"')
        assert exc_info.value.diagnostic.code == "E002"

    def test_out_of_range_unicode_escape(self):
        """Code points above 10FFFF are rejected."""
        with pytest.raises(LexerError) as exc_info:
            tokenize(r'"\U110000"')
        assert "000000 - 10FFFF" in exc_info.value.details

    def test_unterminated_string(self):
        """A string without a closing quote is an error."""
        with pytest.raises(LexerError) as exc_info:
            tokenize('"abc')
        assert exc_info.value.diagnostic.code == "E003"
        assert exc_info.value.details == "Expected the end of the string"


class TestKeywords:
    """Test keyword and qeyword classification."""

    def test_keywords(self):
        """Verbose keywords get their own token types."""
        assert types_of("if else count while function object") == [
            TokenType.IF, TokenType.ELSE, TokenType.COUNT,
            TokenType.WHILE, TokenType.FUNCTION, TokenType.OBJECT, TokenType.EOF,
        ]

    def test_qeywords(self):
        """Quick syntax qeywords are recognised."""
        assert types_of("f fd od s") == [
            TokenType.QEYWORD_F, TokenType.QEYWORD_FD,
            TokenType.QEYWORD_OD, TokenType.QEYWORD_S, TokenType.EOF,
        ]

    def test_keyword_prefix_is_identifier(self):
        """Names that merely start with a keyword are identifiers."""
        assert types_of("iffy counter") == [TokenType.IDENTIFIER, TokenType.IDENTIFIER, TokenType.EOF]


class TestOperators:
    """Test single and compound operators."""

    def test_compound_assignment(self):
        """':' followed by an operator character is one token."""
        assert types_of(":+ :- :* :/ :% :^ :& :| :\\ :< :>") == [
            TokenType.COLON_PLUS, TokenType.COLON_MINUS, TokenType.COLON_STAR,
            TokenType.COLON_SLASH, TokenType.COLON_PERCENT, TokenType.COLON_CARET,
            TokenType.COLON_AMPERSAND, TokenType.COLON_PIPE, TokenType.COLON_BACKSLASH,
            TokenType.COLON_LESS, TokenType.COLON_GREATER, TokenType.EOF,
        ]

    def test_two_character_operators(self):
        """'<=', '<<', '>=', '>>' and '->' are single tokens."""
        assert types_of("<= << >= >> -> < > -") == [
            TokenType.LESS_EQUAL, TokenType.LEFT_SHIFT, TokenType.GREATER_EQUAL,
            TokenType.RIGHT_SHIFT, TokenType.ARROW, TokenType.LESS,
            TokenType.GREATER, TokenType.MINUS, TokenType.EOF,
        ]

    def test_symbols(self):
        """Punctuation and bitwise symbols."""
        assert types_of("( ) [ ] { } , . ! ~ \\") == [
            TokenType.LPAREN, TokenType.RPAREN, TokenType.LBRACKET, TokenType.RBRACKET,
            TokenType.LBRACE, TokenType.RBRACE, TokenType.COMMA, TokenType.PERIOD,
            TokenType.EXCLAMATION, TokenType.TILDE, TokenType.BACKSLASH, TokenType.EOF,
        ]

    def test_unknown_character(self):
        """Unknown characters stop the scan with E001."""
        with pytest.raises(LexerError) as exc_info:
            tokenize("x : $")
        error = exc_info.value
        assert error.diagnostic.code == "E001"
        assert error.details == "'$'"
        assert error.span.start.column == 5
