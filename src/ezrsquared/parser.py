"""
Recursive descent parser for ezr².

Converts a token stream into an Abstract Syntax Tree (AST). Two surface
syntaxes share one grammar: the verbose keyword form (``if x do ... end``)
and the quick syntax introduced by ``!`` (``!f x: ... s``).

Every parse routine returns a ParseResult rather than raising, so that
alternatives can be attempted and abandoned. When several attempts fail the
error kept is decided by ``ParseResult.failure``: deeper, higher-priority
failures win over shallow ones.
"""

from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

from .tokens import (
    Token, TokenType, TokenGroup, SourceSpan, SourceLocation,
    is_assignment_symbol, is_name_token,
)
from .ast import (
    AstNode, ValueNode, ArrayLikeNode, DictionaryNode, StatementsNode,
    VariableAccessNode, TokenVariableAssignmentNode, NodeVariableAssignmentNode,
    BinaryOperationNode, UnaryOperationNode, CallNode,
    IfCase, IfNode, CountNode, WhileNode, ErrorCase, TryNode,
    ReturnNode, SkipNode, StopNode,
    FunctionDefinitionNode, SpecialDefinitionNode, ObjectDefinitionNode, IncludeNode,
)
from .errors import ParserError, error_invalid_grammar


# Failure priorities: a generic "expected X" fallback versus a construct
# that has committed to a specific form.
PRIORITY_GENERIC = 4
PRIORITY_SPECIFIC = 10

BLOCK_TERMINATORS = {TokenType.EOF, TokenType.END, TokenType.ELSE, TokenType.ERROR}
QUICK_BLOCK_TERMINATORS = {TokenType.QEYWORD_L, TokenType.QEYWORD_E, TokenType.QEYWORD_S}

COMPARISON_OPERATORS = (
    TokenType.EQUAL, TokenType.EXCLAMATION, TokenType.LESS, TokenType.GREATER,
    TokenType.LESS_EQUAL, TokenType.GREATER_EQUAL, TokenType.NOT, TokenType.IN,
)

# Qeywords after '!' that never start an assignment target
QUICK_CONSTRUCTS = {
    TokenType.QEYWORD_F, TokenType.QEYWORD_C, TokenType.QEYWORD_W, TokenType.QEYWORD_T,
    TokenType.QEYWORD_FD, TokenType.QEYWORD_SD, TokenType.QEYWORD_OD, TokenType.QEYWORD_I,
    TokenType.QEYWORD_V,
}


class ParseResult:
    """
    Outcome of one parse attempt.

    ``advance_count`` is the number of tokens consumed, which lets callers
    rewind after a failed alternative and decides which error survives.
    ``reverse_count`` is set by ``try_register`` when an optional
    sub-parse fails, so the caller can step back over what it consumed.
    """

    def __init__(self):
        self.error: Optional[ParserError] = None
        self.node: Optional[AstNode] = None
        self.advance_count = 0
        self.reverse_count = 0
        self.error_priority = 0

    def reset(self) -> None:
        self.error = None
        self.node = None
        self.advance_count = 0
        self.reverse_count = 0
        self.error_priority = 0

    def register_advance(self) -> None:
        self.advance_count += 1

    def reverse(self, count: int = 1) -> None:
        self.advance_count -= count

    def register(self, result: "ParseResult") -> Optional[AstNode]:
        """Absorb a sub-result's consumption and error; return its node."""
        self.advance_count += result.advance_count
        if result.error is not None:
            self.error_priority = result.error_priority
            self.error = result.error
        return result.node

    def try_register(self, result: "ParseResult") -> Optional[AstNode]:
        """Like register, but a failed sub-result is dropped instead of kept."""
        if result.error is not None:
            self.reverse_count = result.advance_count
            return None
        return self.register(result)

    def success(self, node: AstNode) -> "ParseResult":
        self.node = node
        return self

    def failure(self, priority: int, error: ParserError) -> "ParseResult":
        """Record an error unless a more specific one is already held."""
        if self.error is None or self.error_priority <= priority or self.advance_count == 0:
            self.error = error
            self.error_priority = priority
        return self


class Parser:
    """
    Recursive descent parser for ezr².

    Usage:
        parser = Parser(tokens)
        result = parser.parse()
        if result.error:
            raise result.error

    Precedence, loosest first:
        and or
        invert / !v
        = ! < > <= >= in, not in
        |  (bitwise or)
        \\  (bitwise xor)
        &  (bitwise and)
        << >>
        + -
        * / %
        unary + - ~
        ^
        .  (attribute access, right-recursive)
        call
        atom
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0
        self.using_quick_syntax = False

    # =========================================================================
    # Token Navigation
    # =========================================================================

    @property
    def current(self) -> Token:
        """The token under the cursor (EOF past the end)."""
        if self.index >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[self.index]

    def _peek(self, offset: int = 1) -> Token:
        """Look at the token ``offset`` places ahead."""
        idx = self.index + offset
        if idx >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[idx]

    def _previous(self) -> Token:
        """The most recently consumed token."""
        return self.tokens[max(0, min(self.index, len(self.tokens)) - 1)]

    def _check(self, *token_types: TokenType) -> bool:
        return self.current.type in token_types

    def _advance(self, result: ParseResult) -> Token:
        """Consume the current token and count it on ``result``."""
        token = self.current
        result.register_advance()
        self.index += 1
        return token

    def _reverse(self, result: ParseResult, count: int = 1) -> None:
        """Step back ``count`` tokens and uncount them on ``result``."""
        self.index -= count
        result.reverse(count)

    def _skip_newlines(self, result: ParseResult) -> int:
        """Consume statement separators, returning how many were skipped."""
        count = 0
        while self._check(TokenType.NEWLINE):
            self._advance(result)
            count += 1
        return count

    def _span_from(self, start: SourceLocation) -> SourceSpan:
        """Span from ``start`` to the end of the last consumed token."""
        return SourceSpan(start, self._previous().span.end)

    def _fail(self, result: ParseResult, details: str,
              priority: int = PRIORITY_SPECIFIC, span: Optional[SourceSpan] = None,
              cause: Optional[ParserError] = None) -> ParseResult:
        """Fail ``result`` with a grammar error at ``span`` (default: current token)."""
        error = error_invalid_grammar(details, span or self.current.span, priority, cause)
        return result.failure(priority, error)

    @contextmanager
    def _syntax(self, quick: bool) -> Iterator[None]:
        """Switch between quick and verbose syntax for a nested parse."""
        saved = self.using_quick_syntax
        self.using_quick_syntax = quick
        try:
            yield
        finally:
            self.using_quick_syntax = saved

    def _at_block_end(self) -> bool:
        """Check for a token that closes the current statement list."""
        if self.current.type in BLOCK_TERMINATORS:
            return True
        return self.using_quick_syntax and self.current.type in QUICK_BLOCK_TERMINATORS

    def _name(self, result: ParseResult, what: str) -> Optional[Token]:
        """Consume an identifier (or qeyword used as a name)."""
        if not is_name_token(self.current.type):
            self._fail(result, f"Expected {what}")
            return None
        return self._advance(result)

    def _names(self, result: ParseResult, what: str) -> Optional[List[Token]]:
        """Consume a comma-separated list of names; newlines are allowed around commas."""
        self._skip_newlines(result)
        first = self._name(result, what)
        if first is None:
            return None
        names = [first]
        self._skip_newlines(result)
        while self._check(TokenType.COMMA):
            self._advance(result)
            self._skip_newlines(result)
            name = self._name(result, what)
            if name is None:
                return None
            names.append(name)
            self._skip_newlines(result)
        return names

    # =========================================================================
    # Entry Point
    # =========================================================================

    def parse(self) -> ParseResult:
        """Parse the whole token stream as a statement list."""
        if all(token.type in (TokenType.NEWLINE, TokenType.EOF) for token in self.tokens):
            eof = self.tokens[-1]
            return ParseResult().success(StatementsNode(eof.span, []))

        result = self._statements()
        if result.error is None and not self._check(TokenType.EOF):
            return self._fail(result, "Did not expect this!")
        return result

    # =========================================================================
    # Statements
    # =========================================================================

    def _statements(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start

        self._skip_newlines(result)
        statement = result.register(self._statement())
        if result.error:
            return result
        statements = [statement]
        end = self._previous().span.end

        while True:
            newlines = self._skip_newlines(result)
            if newlines == 0 or self._at_block_end():
                break

            statement = result.register(self._statement())
            if result.error:
                return result
            statements.append(statement)
            end = self._previous().span.end

        return result.success(StatementsNode(SourceSpan(start, end), statements))

    def _statement(self) -> ParseResult:
        result = ParseResult()
        start_token = self.current

        if self._check(TokenType.RETURN):
            self._advance(result)
            if self._check(TokenType.NEWLINE) or self._at_block_end():
                return result.success(ReturnNode(start_token.span, None))

            value = result.try_register(self._expression())
            if value is None:
                self.index -= result.reverse_count
                return result.success(ReturnNode(start_token.span, None))
            return result.success(ReturnNode(self._span_from(start_token.span.start), value))

        if self._check(TokenType.SKIP):
            self._advance(result)
            return result.success(SkipNode(start_token.span))
        if self._check(TokenType.STOP):
            self._advance(result)
            return result.success(StopNode(start_token.span))

        node = result.register(self._expression())
        if result.error:
            return self._fail(result, "Expected a statement!", PRIORITY_GENERIC)
        return result.success(node)

    # =========================================================================
    # Expressions and Assignment
    # =========================================================================

    def _expression(self, item_keyword_required: bool = False) -> ParseResult:
        """
        Parse an assignment or a plain expression.

        With ``item_keyword_required`` a bare ``name : value`` is not taken as
        an assignment, which keeps ``:`` free for dictionary pairs and quick
        syntax bodies.
        """
        result = ParseResult()
        start = self.current.span.start

        global_assignment = False
        used_item = False
        if self._check(TokenType.GLOBAL):
            global_assignment = True
            self._advance(result)

        if self._check(TokenType.ITEM):
            used_item = True
            self._advance(result)
        elif item_keyword_required or self._check(TokenType.EXCLAMATION):
            self._reverse(result, result.advance_count)
            result.reset()
            node = result.register(self._quick_expression())
            if result.error:
                return self._fail(result, "Expected an expression!", PRIORITY_GENERIC)
            return result.success(node)

        target = result.register(self._junction())
        if result.error:
            return self._fail(result, "Expected an expression!", PRIORITY_GENERIC)

        if is_assignment_symbol(self.current.type):
            return self._assignment(result, start, target, global_assignment)
        if used_item:
            return self._fail(result, "Expected an assignment symbol! "
                                      "The assignment symbol separates the variable name and value.")
        if not global_assignment:
            return result.success(target)

        # 'global name' without an assignment is a global lookup
        self._reverse(result, result.advance_count)
        result.reset()
        node = result.register(self._quick_expression())
        if result.error:
            return self._fail(result, "Expected an expression!", PRIORITY_GENERIC)
        return result.success(node)

    def _quick_expression(self) -> ParseResult:
        """Parse ``! [g] [d] target : value`` or fall through to a junction."""
        result = ParseResult()
        start = self.current.span.start

        if self._check(TokenType.EXCLAMATION) and self._peek().type not in QUICK_CONSTRUCTS:
            self._advance(result)

            global_assignment = False
            used_item = False
            if self._check(TokenType.QEYWORD_G):
                global_assignment = True
                self._advance(result)
            if self._check(TokenType.QEYWORD_D):
                used_item = True
                self._advance(result)

            target = result.register(self._junction())
            if result.error:
                return result
            if is_assignment_symbol(self.current.type):
                return self._assignment(result, start, target, global_assignment)
            if used_item:
                return self._fail(result, "Expected an assignment symbol! "
                                          "The assignment symbol separates the variable name and value.")

            # '!g name' is a global lookup, handled as an atom
            self._reverse(result, result.advance_count)
            result.reset()

        node = result.register(self._junction())
        if result.error:
            return self._fail(result, "Expected a QuickSyntax expression!", PRIORITY_GENERIC)
        return result.success(node)

    def _assignment(self, result: ParseResult, start: SourceLocation,
                    target: AstNode, global_assignment: bool) -> ParseResult:
        """Finish an assignment whose target has been parsed; the symbol is current."""
        operator = self._advance(result).type
        value = result.register(self._expression())
        if result.error:
            return result

        span = self._span_from(start)
        if isinstance(target, VariableAccessNode) and not target.global_access:
            return result.success(TokenVariableAssignmentNode(
                span, target.name, operator, value, global_assignment))
        return result.success(NodeVariableAssignmentNode(span, target, operator, value, global_assignment))

    # =========================================================================
    # Operator Precedence Levels
    # =========================================================================

    def _binary_operation(self, left: Callable[[], ParseResult],
                          operators: Tuple[TokenType, ...],
                          right: Optional[Callable[[], ParseResult]] = None) -> ParseResult:
        """Parse ``left (op right)*``, folding left-associatively."""
        result = ParseResult()
        start = self.current.span.start
        right = right or left

        node = result.register(left())
        if result.error:
            return result

        reverse_to = result.advance_count
        self._skip_newlines(result)
        while self.current.type in operators:
            operator = self._advance(result).type
            self._skip_newlines(result)

            right_node = result.register(right())
            if result.error:
                return result

            node = BinaryOperationNode(self._span_from(start), node, right_node, operator)
            reverse_to = result.advance_count
            self._skip_newlines(result)

        self._reverse(result, result.advance_count - reverse_to)
        return result.success(node)

    def _junction(self) -> ParseResult:
        return self._binary_operation(self._inversion, (TokenType.AND, TokenType.OR))

    def _inversion(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start

        if self._check(TokenType.INVERT) or (
                self._check(TokenType.EXCLAMATION) and self._peek().type == TokenType.QEYWORD_V):
            if self._check(TokenType.EXCLAMATION):
                self._advance(result)
            self._advance(result)

            operand = result.register(self._expression())
            if result.error:
                return result
            return result.success(UnaryOperationNode(self._span_from(start), operand, TokenType.INVERT))

        node = result.register(self._comparison())
        if result.error:
            return self._fail(result, "Expected an inversion expression!", PRIORITY_GENERIC)
        return result.success(node)

    def _comparison(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start

        node = result.register(self._bitwise_or())
        if result.error:
            return result

        reverse_to = result.advance_count
        newlines = self._skip_newlines(result)
        while self.current.type in COMPARISON_OPERATORS:
            # '!' on a fresh line opens a quick construct, not a comparison
            if newlines and self._check(TokenType.EXCLAMATION):
                break

            operator = self._advance(result).type
            self._skip_newlines(result)
            if operator == TokenType.NOT:
                if not self._check(TokenType.IN):
                    return self._fail(result, "Expected the 'in' keyword! "
                                              "'not in' checks that a value is absent from another.")
                self._advance(result)

            right_node = result.register(self._bitwise_or())
            if result.error:
                return result

            node = BinaryOperationNode(self._span_from(start), node, right_node, operator)
            reverse_to = result.advance_count
            newlines = self._skip_newlines(result)

        self._reverse(result, result.advance_count - reverse_to)
        return result.success(node)

    def _bitwise_or(self) -> ParseResult:
        return self._binary_operation(self._bitwise_xor, (TokenType.PIPE,))

    def _bitwise_xor(self) -> ParseResult:
        return self._binary_operation(self._bitwise_and, (TokenType.BACKSLASH,))

    def _bitwise_and(self) -> ParseResult:
        return self._binary_operation(self._bitwise_shift, (TokenType.AMPERSAND,))

    def _bitwise_shift(self) -> ParseResult:
        return self._binary_operation(self._arithmetic, (TokenType.LEFT_SHIFT, TokenType.RIGHT_SHIFT))

    def _arithmetic(self) -> ParseResult:
        return self._binary_operation(self._term, (TokenType.PLUS, TokenType.MINUS))

    def _term(self) -> ParseResult:
        return self._binary_operation(self._factor, (TokenType.STAR, TokenType.SLASH, TokenType.PERCENT))

    def _factor(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start

        if self._check(TokenType.PLUS, TokenType.MINUS, TokenType.TILDE):
            operator = self._advance(result).type
            operand = result.register(self._factor())
            if result.error:
                return result
            return result.success(UnaryOperationNode(self._span_from(start), operand, operator))

        return self._power()

    def _power(self) -> ParseResult:
        return self._binary_operation(self._attribute_access, (TokenType.CARET,))

    def _attribute_access(self) -> ParseResult:
        return self._binary_operation(self._call, (TokenType.PERIOD,), self._attribute_access)

    def _call(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start

        node = result.register(self._atom())
        if result.error:
            return result

        if not self._check(TokenType.LPAREN):
            return result.success(node)

        self._advance(result)
        arguments = result.register(self._sequence(
            TokenType.RPAREN,
            "Expected a comma or right-parenthesis symbol! "
            "Commas separate the arguments of a call and the right-parenthesis ends it.",
        ))
        if result.error:
            return result
        return result.success(CallNode(self._span_from(start), node, arguments))

    def _sequence(self, closing: TokenType, message: str) -> ParseResult:
        """
        Parse comma-separated expressions up to ``closing``.

        The node of the returned result is a plain list of AST nodes. A
        trailing comma before the closing token is accepted.
        """
        result = ParseResult()
        elements: List[AstNode] = []
        opening_span = self._previous().span

        self._skip_newlines(result)
        while not self._check(closing):
            element_result = self._expression()
            element = result.register(element_result)
            if result.error:
                return self._fail(result, message, span=opening_span.to(self.current.span),
                                  cause=element_result.error)
            elements.append(element)

            self._skip_newlines(result)
            if not self._check(TokenType.COMMA):
                break
            self._advance(result)
            self._skip_newlines(result)

        if not self._check(closing):
            return self._fail(result, message)
        self._advance(result)
        result.node = elements
        return result

    # =========================================================================
    # Atoms
    # =========================================================================

    def _atom(self) -> ParseResult:
        result = ParseResult()
        token = self.current

        if token.type == TokenType.IDENTIFIER or token.type.group == TokenGroup.QEYWORD:
            self._advance(result)
            return result.success(VariableAccessNode(token.span, token))
        if token.type.group == TokenGroup.VALUE:
            self._advance(result)
            return result.success(ValueNode(token.span, token))

        if token.type == TokenType.GLOBAL:
            self._advance(result)
            name = self._name(result, "a variable name or the 'item' keyword after 'global'")
            if name is None:
                return result
            return result.success(VariableAccessNode(self._span_from(token.span.start), name, True))

        if token.type == TokenType.EXCLAMATION:
            return self._quick_atom()

        structures = {
            TokenType.LPAREN: self._array_structure,
            TokenType.LBRACKET: self._list_structure,
            TokenType.LBRACE: self._dictionary_structure,
            TokenType.IF: self._if_structure,
            TokenType.COUNT: self._count_structure,
            TokenType.WHILE: self._while_structure,
            TokenType.TRY: self._try_structure,
            TokenType.FUNCTION: self._function_structure,
            TokenType.SPECIAL: self._special_structure,
            TokenType.OBJECT: self._object_structure,
            TokenType.INCLUDE: self._include_structure,
        }
        if token.type in structures:
            node = result.register(structures[token.type]())
            if result.error:
                return result
            return result.success(node)

        return self._fail(result, "Expected an integer, float, string, character, character list, "
                                  "identifier, 'if' expression, 'count' expression, 'while' expression "
                                  "and so on.", PRIORITY_GENERIC)

    def _quick_atom(self) -> ParseResult:
        """Dispatch ``!`` followed by a construct qeyword."""
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)
        token = self.current

        if token.type == TokenType.QEYWORD_G:
            self._advance(result)
            name = self._name(result, "a variable name after '!g'")
            if name is None:
                return result
            return result.success(VariableAccessNode(self._span_from(start), name, True))

        structures = {
            TokenType.QEYWORD_F: self._quick_if_structure,
            TokenType.QEYWORD_C: self._quick_count_structure,
            TokenType.QEYWORD_W: self._quick_while_structure,
            TokenType.QEYWORD_T: self._quick_try_structure,
            TokenType.QEYWORD_FD: self._quick_function_structure,
            TokenType.QEYWORD_SD: self._quick_special_structure,
            TokenType.QEYWORD_OD: self._quick_object_structure,
            TokenType.QEYWORD_I: self._quick_include_structure,
        }
        if token.type not in structures:
            return self._fail(result, "Expected 'f', 'c', 'w', 't', 'fd', 'sd', 'od', 'i', 'g', 'd' or 'v' "
                                      "after '!'")

        with self._syntax(quick=True):
            node = result.register(structures[token.type](start))
        if result.error:
            return result
        return result.success(node)

    def _array_structure(self) -> ParseResult:
        """Parse ``()``, ``(x)``, ``(x,)`` or ``(a, b, ...)``."""
        result = ParseResult()
        start = self.current.span.start
        opening_span = self._advance(result).span

        self._skip_newlines(result)
        if self._check(TokenType.RPAREN):
            self._advance(result)
            return result.success(ArrayLikeNode(self._span_from(start), []))

        first_result = self._expression()
        first = result.register(first_result)
        if result.error:
            return self._fail(result, "Expected a right-parenthesis symbol! "
                                      "An array or parenthetical expression must end with a right-parenthesis.",
                              span=opening_span.to(self.current.span), cause=first_result.error)

        self._skip_newlines(result)
        if self._check(TokenType.RPAREN):
            self._advance(result)
            return result.success(first)

        if not self._check(TokenType.COMMA):
            return self._fail(result, "Expected a comma or a right-parenthesis symbol! "
                                      "A comma creates an array, a right-parenthesis ends the expression.")

        self._advance(result)
        elements = result.register(self._sequence(
            TokenType.RPAREN,
            "Expected a comma or a right-parenthesis symbol! "
            "Commas separate the elements of the array, while the right-parenthesis ends it.",
        ))
        if result.error:
            return result
        return result.success(ArrayLikeNode(self._span_from(start), [first] + elements))

    def _list_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)

        elements = result.register(self._sequence(
            TokenType.RBRACKET,
            "Expected a comma or a right-square-bracket symbol! "
            "Commas separate elements in the list, while the right-square-bracket ends it.",
        ))
        if result.error:
            return result
        return result.success(ArrayLikeNode(self._span_from(start), elements, True))

    def _dictionary_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        opening_span = self._advance(result).span
        pairs: List[Tuple[AstNode, AstNode]] = []

        self._skip_newlines(result)
        while not self._check(TokenType.RBRACE):
            key_result = self._expression(item_keyword_required=True)
            key = result.register(key_result)
            if result.error:
                return self._fail(result, "Expected a right-curly-bracket symbol! "
                                          "A dictionary expression must end with a right-curly-bracket.",
                                  span=opening_span.to(self.current.span), cause=key_result.error)

            self._skip_newlines(result)
            if not self._check(TokenType.COLON):
                return self._fail(result, "Expected a colon symbol! "
                                          "The colon separates a key from its value in a dictionary.")
            self._advance(result)
            self._skip_newlines(result)

            value = result.register(self._expression())
            if result.error:
                return result
            pairs.append((key, value))

            self._skip_newlines(result)
            if not self._check(TokenType.COMMA):
                break
            self._advance(result)
            self._skip_newlines(result)

        if not self._check(TokenType.RBRACE):
            return self._fail(result, "Expected a comma or right-curly-bracket symbol! "
                                      "Commas separate key-value pairs and the right-curly-bracket ends the dictionary.")
        self._advance(result)
        return result.success(DictionaryNode(self._span_from(start), pairs))

    # =========================================================================
    # Bodies
    # =========================================================================

    def _body(self, result: ParseResult, closing: TokenType, construct: str) -> Tuple[Optional[AstNode], bool]:
        """
        Parse a construct body after ``do`` or ``:``.

        A newline opens a block (a statement list closed by ``closing``);
        otherwise a single inline statement follows. Returns the body and
        whether it was a block.
        """
        if not self._check(TokenType.NEWLINE):
            body = result.register(self._statement())
            return body, False

        self._advance(result)
        body = result.register(self._statements())
        if result.error:
            return None, True
        if not self._check(closing):
            keyword = "end" if closing == TokenType.END else "s"
            self._fail(result, f"Expected the '{keyword}' keyword! It declares the end of the {construct}.")
            return None, True
        self._advance(result)
        return body, True

    def _expect(self, result: ParseResult, token_type: TokenType, details: str) -> bool:
        """Consume ``token_type`` or fail ``result``."""
        if not self._check(token_type):
            self._fail(result, details)
            return False
        self._advance(result)
        return True

    # =========================================================================
    # Verbose Structures
    # =========================================================================

    def _if_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)
        cases: List[IfCase] = []
        else_case: Optional[AstNode] = None

        with self._syntax(quick=False):
            condition = result.register(self._expression())
            if result.error:
                return result
            if not self._expect(result, TokenType.DO, "Expected the 'do' keyword! "
                                                      "It declares the start of the body of the \"if\" expression."):
                return result

            block = self._check(TokenType.NEWLINE)
            if block:
                self._advance(result)
                body = result.register(self._statements())
            else:
                body = result.register(self._statement())
            if result.error:
                return result
            cases.append(IfCase(condition, body))

            while self._check(TokenType.ELSE):
                else_span = self._advance(result).span
                if self._check(TokenType.IF):
                    if else_case is not None:
                        return self._fail(result, "The \"else-if\" expression cannot be declared after the "
                                                  "\"else\" expression!", span=else_span.to(self.current.span))
                    self._advance(result)
                    condition = result.register(self._expression())
                    if result.error:
                        return result
                    if not self._expect(result, TokenType.DO, "Expected the 'do' keyword! It declares the "
                                                              "start of the body of the \"else if\" expression."):
                        return result
                    body = result.register(self._statements() if block else self._statement())
                    if result.error:
                        return result
                    cases.append(IfCase(condition, body))
                elif self._check(TokenType.DO):
                    if else_case is not None:
                        return self._fail(result, "There should only be one \"else\" expression!",
                                          span=else_span.to(self.current.span))
                    self._advance(result)
                    else_case = result.register(self._statements() if block else self._statement())
                    if result.error:
                        return result
                else:
                    return self._fail(result, "Expected the 'if' or 'do' keywords after 'else'!")

            if block:
                if not self._check(TokenType.END):
                    if else_case is None:
                        return self._fail(result, "Expected the 'else' or 'end' keywords!")
                    return self._fail(result, "Expected the 'end' keyword! "
                                              "It declares the end of the whole \"if\" expression.")
                self._advance(result)

        return result.success(IfNode(self._span_from(start), cases, else_case, block))

    def _count_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)
        start_node = step = None
        variable = None

        with self._syntax(quick=False):
            if self._check(TokenType.FROM):
                self._advance(result)
                start_node = result.register(self._expression())
                if result.error:
                    return result

            if not self._check(TokenType.TO):
                if start_node is None:
                    return self._fail(result, "Expected the 'to' or 'from' keyword!")
                return self._fail(result, "Expected the 'to' keyword!")
            self._advance(result)

            end = result.register(self._expression())
            if result.error:
                return result

            if self._check(TokenType.STEP):
                self._advance(result)
                step = result.register(self._expression())
                if result.error:
                    return result

            if self._check(TokenType.AS):
                self._advance(result)
                variable = self._name(result, "a variable name after 'as'")
                if variable is None:
                    return result

            if not self._expect(result, TokenType.DO, "Expected the 'do' keyword! "
                                                      "It declares the start of the body of the count loop."):
                return result
            body, block = self._body(result, TokenType.END, "count loop")
            if result.error:
                return result

        return result.success(CountNode(self._span_from(start), end, body, start_node, step, variable, block))

    def _while_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)

        with self._syntax(quick=False):
            condition = result.register(self._expression())
            if result.error:
                return result
            if not self._expect(result, TokenType.DO, "Expected the 'do' keyword! "
                                                      "It declares the start of the body of the while loop."):
                return result
            body, block = self._body(result, TokenType.END, "while loop")
            if result.error:
                return result

        return result.success(WhileNode(self._span_from(start), condition, body, block))

    def _try_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)

        with self._syntax(quick=False):
            if not self._expect(result, TokenType.DO, "Expected the 'do' keyword! "
                                                      "It declares the start of the body of the \"try\" expression."):
                return result

            block = self._check(TokenType.NEWLINE)
            if block:
                self._advance(result)
                body = result.register(self._statements())
            else:
                body = result.register(self._statement())
            if result.error:
                return result

            cases: List[ErrorCase] = []
            catch_all: Optional[ErrorCase] = None
            while self._check(TokenType.ERROR):
                error_span = self._advance(result).span
                tag = None
                if not self._check(TokenType.AS, TokenType.DO):
                    if catch_all is not None:
                        return self._fail(result, "There can't be any \"error\" expressions after an empty "
                                                  "\"error\" expression!", span=error_span)
                    if self._check(TokenType.NEWLINE, TokenType.EOF):
                        return self._fail(result, "Expected an expression or the 'as' or 'do' keywords!")
                    tag = result.register(self._expression())
                    if result.error:
                        return result
                elif catch_all is not None:
                    return self._fail(result, "There should only be one empty \"error\" expression!",
                                      span=error_span.to(self.current.span))

                variable = None
                if self._check(TokenType.AS):
                    self._advance(result)
                    variable = self._name(result, "a variable name after 'as'")
                    if variable is None:
                        return result

                if not self._expect(result, TokenType.DO, "Expected the 'as' or 'do' keywords!"):
                    return result
                handler = result.register(self._statements() if block else self._statement())
                if result.error:
                    return result

                if tag is None:
                    catch_all = ErrorCase(None, variable, handler)
                else:
                    cases.append(ErrorCase(tag, variable, handler))

            if block:
                if not self._check(TokenType.END):
                    if catch_all is None:
                        return self._fail(result, "Expected the 'error' or 'end' keywords!")
                    return self._fail(result, "Expected the 'end' keyword! "
                                              "It declares the end of the whole \"try\" expression.")
                self._advance(result)

        return result.success(TryNode(self._span_from(start), body, cases, catch_all, block))

    def _function_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)

        name = None
        if is_name_token(self.current.type):
            name = self._advance(result)
        elif not self._check(TokenType.WITH, TokenType.DO):
            return self._fail(result, "Expected a name or the 'with' or 'do' keywords!")

        parameters = result.register(self._parameters(TokenType.WITH, "a parameter name"))
        if result.error:
            return result
        if not self._expect(result, TokenType.DO, "Expected the 'with' or 'do' keywords!"):
            return result

        with self._syntax(quick=False):
            body, block = self._body(result, TokenType.END, "\"function\" definition")
        if result.error:
            return result
        return result.success(FunctionDefinitionNode(self._span_from(start), name, parameters, body, block))

    def _special_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)

        name = self._name(result, "the name of the special method")
        if name is None:
            return result
        parameters = result.register(self._parameters(TokenType.WITH, "a parameter name"))
        if result.error:
            return result
        if not self._expect(result, TokenType.DO, "Expected the 'with' or 'do' keywords!"):
            return result

        with self._syntax(quick=False):
            body, block = self._body(result, TokenType.END, "\"special\" definition")
        if result.error:
            return result
        return result.success(SpecialDefinitionNode(self._span_from(start), name, parameters, body, block))

    def _object_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)

        name = None
        if is_name_token(self.current.type):
            name = self._advance(result)
        elif not self._check(TokenType.WITH, TokenType.FROM, TokenType.DO):
            return self._fail(result, "Expected a name or the 'with', 'from' or 'do' keywords!")

        parameters = result.register(self._parameters(TokenType.WITH, "a parameter name"))
        if result.error:
            return result
        parents = result.register(self._parents(TokenType.FROM))
        if result.error:
            return result
        if not self._expect(result, TokenType.DO, "Expected the 'with', 'from' or 'do' keywords!"):
            return result

        with self._syntax(quick=False):
            body, _ = self._body(result, TokenType.END, "\"object\" definition")
        if result.error:
            return result
        return result.success(ObjectDefinitionNode(self._span_from(start), name, parameters, parents, body))

    def _include_structure(self) -> ParseResult:
        result = ParseResult()
        start = self.current.span.start
        self._advance(result)

        with self._syntax(quick=False):
            member, dump_all = self._include_selection(result, TokenType.FROM)
            if dump_all or member is not None:
                if not self._expect(result, TokenType.FROM, "Expected the 'from' keyword! "
                                                            "It must be followed by the script to include from."):
                    return result
            script = result.register(self._expression())
            if result.error:
                return result

            nickname = None
            if self._check(TokenType.AS):
                self._advance(result)
                nickname = self._nickname(result)
                if nickname is None:
                    return result

        return result.success(IncludeNode(self._span_from(start), script, member, dump_all, nickname))

    # =========================================================================
    # Shared Definition Helpers
    # =========================================================================

    def _parameters(self, marker: TokenType, what: str) -> ParseResult:
        """Parse ``marker name, name, ...``; the node is a list of name tokens."""
        result = ParseResult()
        result.node = []
        if self._check(marker):
            self._advance(result)
            names = self._names(result, what)
            if names is None:
                return result
            result.node = names
        return result

    def _parents(self, marker: TokenType) -> ParseResult:
        """Parse ``marker Parent, Parent, ...``; the node is a list of expressions."""
        result = ParseResult()
        parents: List[AstNode] = []
        if self._check(marker):
            self._advance(result)
            self._skip_newlines(result)
            while True:
                parent = result.register(self._expression(item_keyword_required=self.using_quick_syntax))
                if result.error:
                    return result
                parents.append(parent)
                self._skip_newlines(result)
                if not self._check(TokenType.COMMA):
                    break
                self._advance(result)
                self._skip_newlines(result)
        result.node = parents
        return result

    def _include_selection(self, result: ParseResult, marker: TokenType) -> Tuple[Optional[Token], bool]:
        """Parse the optional ``member`` or ``all``/``,`` before the script marker."""
        if self._check(TokenType.ALL, TokenType.COMMA):
            self._advance(result)
            return None, True
        if is_name_token(self.current.type) and self._peek().type == marker:
            return self._advance(result), False
        return None, False

    def _nickname(self, result: ParseResult) -> Optional[Token]:
        if self._check(TokenType.STRING, TokenType.CHARACTER_LIST) or is_name_token(self.current.type):
            return self._advance(result)
        self._fail(result, "Expected a name or string for the include nickname!")
        return None

    # =========================================================================
    # Quick Syntax Structures
    # =========================================================================

    def _quick_body(self, result: ParseResult, construct: str) -> Tuple[Optional[AstNode], bool]:
        """Parse ``: body`` where a newline after the colon opens an ``s`` block."""
        if not self._expect(result, TokenType.COLON, f"Expected ':' to start the body of the {construct}!"):
            return None, False
        return self._body(result, TokenType.QEYWORD_S, construct)

    def _quick_if_structure(self, start: SourceLocation) -> ParseResult:
        """``!f cond: ... [l cond: ...]* [e ...] [s]``"""
        result = ParseResult()
        self._advance(result)
        cases: List[IfCase] = []
        else_case: Optional[AstNode] = None

        condition = result.register(self._expression(item_keyword_required=True))
        if result.error:
            return result
        if not self._expect(result, TokenType.COLON, "Expected ':'"):
            return result

        block = self._check(TokenType.NEWLINE)
        if block:
            self._advance(result)
            body = result.register(self._statements())
        else:
            body = result.register(self._statement())
        if result.error:
            return result
        cases.append(IfCase(condition, body))

        while self._check(TokenType.QEYWORD_L):
            self._advance(result)
            condition = result.register(self._expression(item_keyword_required=True))
            if result.error:
                return result
            if not self._expect(result, TokenType.COLON, "Expected ':'"):
                return result
            body = result.register(self._statements() if block else self._statement())
            if result.error:
                return result
            cases.append(IfCase(condition, body))

        if self._check(TokenType.QEYWORD_E):
            self._advance(result)
            else_case = result.register(self._statements() if block else self._statement())
            if result.error:
                return result

        if block:
            if not self._check(TokenType.QEYWORD_S):
                if else_case is None:
                    return self._fail(result, "Expected 'l', 'e' or 's'")
                return self._fail(result, "Expected 's'")
            self._advance(result)

        return result.success(IfNode(self._span_from(start), cases, else_case, block))

    def _quick_count_structure(self, start: SourceLocation) -> ParseResult:
        """``!c [- start] -> end [t step] [n name]: ...``"""
        result = ParseResult()
        self._advance(result)
        start_node = step = None
        variable = None

        if self._check(TokenType.MINUS):
            self._advance(result)
            start_node = result.register(self._expression(item_keyword_required=True))
            if result.error:
                return result

        if not self._check(TokenType.ARROW):
            if start_node is None:
                return self._fail(result, "Expected '-' or '->'")
            return self._fail(result, "Expected '->'")
        self._advance(result)

        end = result.register(self._expression(item_keyword_required=True))
        if result.error:
            return result

        if self._check(TokenType.QEYWORD_T):
            self._advance(result)
            step = result.register(self._expression(item_keyword_required=True))
            if result.error:
                return result

        if self._check(TokenType.QEYWORD_N):
            self._advance(result)
            variable = self._name(result, "a variable name after 'n'")
            if variable is None:
                return result

        body, block = self._quick_body(result, "count loop")
        if result.error:
            return result
        return result.success(CountNode(self._span_from(start), end, body, start_node, step, variable, block))

    def _quick_while_structure(self, start: SourceLocation) -> ParseResult:
        """``!w cond: ...``"""
        result = ParseResult()
        self._advance(result)

        condition = result.register(self._expression(item_keyword_required=True))
        if result.error:
            return result
        body, block = self._quick_body(result, "while loop")
        if result.error:
            return result
        return result.success(WhileNode(self._span_from(start), condition, body, block))

    def _quick_try_structure(self, start: SourceLocation) -> ParseResult:
        """``!t ... [e [tag] [-> name]: ...]* [s]``"""
        result = ParseResult()
        self._advance(result)

        block = self._check(TokenType.NEWLINE)
        if block:
            self._advance(result)
            body = result.register(self._statements())
        else:
            body = result.register(self._statement())
        if result.error:
            return result

        cases: List[ErrorCase] = []
        catch_all: Optional[ErrorCase] = None
        while self._check(TokenType.QEYWORD_E):
            error_span = self._advance(result).span
            tag = None
            if self._check(TokenType.STRING, TokenType.CHARACTER_LIST) or is_name_token(self.current.type):
                if catch_all is not None:
                    return self._fail(result, "There can't be any \"error\" expressions after an empty "
                                              "\"error\" expression!", span=error_span)
                tag = result.register(self._atom())
                if result.error:
                    return result
            elif catch_all is not None:
                return self._fail(result, "There should only be one empty \"error\" expression!",
                                  span=error_span.to(self.current.span))

            variable = None
            if self._check(TokenType.ARROW):
                self._advance(result)
                variable = self._name(result, "a variable name after '->'")
                if variable is None:
                    return result

            if not self._expect(result, TokenType.COLON, "Expected '->' or ':'"):
                return result
            handler = result.register(self._statements() if block else self._statement())
            if result.error:
                return result

            if tag is None:
                catch_all = ErrorCase(None, variable, handler)
            else:
                cases.append(ErrorCase(tag, variable, handler))

        if block:
            if not self._check(TokenType.QEYWORD_S):
                return self._fail(result, "Expected 'e' or 's'")
            self._advance(result)

        return result.success(TryNode(self._span_from(start), body, cases, catch_all, block))

    def _quick_function_structure(self, start: SourceLocation) -> ParseResult:
        """``!fd [name] [n params]: ...``"""
        result = ParseResult()
        self._advance(result)

        name = None
        if is_name_token(self.current.type) and not self._check(TokenType.QEYWORD_N):
            name = self._advance(result)
        parameters = result.register(self._parameters(TokenType.QEYWORD_N, "a parameter name"))
        if result.error:
            return result

        body, block = self._quick_body(result, "function definition")
        if result.error:
            return result
        return result.success(FunctionDefinitionNode(self._span_from(start), name, parameters, body, block))

    def _quick_special_structure(self, start: SourceLocation) -> ParseResult:
        """``!sd name [n params]: ...``"""
        result = ParseResult()
        self._advance(result)

        name = self._name(result, "the name of the special method")
        if name is None:
            return result
        parameters = result.register(self._parameters(TokenType.QEYWORD_N, "a parameter name"))
        if result.error:
            return result

        body, block = self._quick_body(result, "special definition")
        if result.error:
            return result
        return result.success(SpecialDefinitionNode(self._span_from(start), name, parameters, body, block))

    def _quick_object_structure(self, start: SourceLocation) -> ParseResult:
        """``!od Name [n params] [- Parent, ...]: ...``"""
        result = ParseResult()
        self._advance(result)

        name = None
        if is_name_token(self.current.type) and not self._check(TokenType.QEYWORD_N):
            name = self._advance(result)
        parameters = result.register(self._parameters(TokenType.QEYWORD_N, "a parameter name"))
        if result.error:
            return result
        parents = result.register(self._parents(TokenType.MINUS))
        if result.error:
            return result

        body, _ = self._quick_body(result, "object definition")
        if result.error:
            return result
        return result.success(ObjectDefinitionNode(self._span_from(start), name, parameters, parents, body))

    def _quick_include_structure(self, start: SourceLocation) -> ParseResult:
        """``!i [member | ,] [- script] [n nickname]``"""
        result = ParseResult()
        self._advance(result)

        member, dump_all = self._include_selection(result, TokenType.MINUS)
        if dump_all or member is not None:
            if not self._expect(result, TokenType.MINUS, "Expected '-' followed by the script to include from"):
                return result
        script = result.register(self._expression(item_keyword_required=True))
        if result.error:
            return result

        nickname = None
        if self._check(TokenType.QEYWORD_N):
            self._advance(result)
            nickname = self._nickname(result)
            if nickname is None:
                return result

        return result.success(IncludeNode(self._span_from(start), script, member, dump_all, nickname))


def parse(tokens: List[Token]) -> StatementsNode:
    """
    Parse a token list into a program AST.

    Args:
        tokens: Tokens from the lexer, ending with EOF

    Returns:
        The program's StatementsNode

    Raises:
        ParserError: If the tokens do not form a valid program
    """
    result = Parser(tokens).parse()
    if result.error is not None:
        raise result.error
    return result.node
