"""
Render an AST back to verbose ezr² source.

The output re-parses to an equivalent tree: binary and unary operations are
fully parenthesized, and compound forms used as operands are wrapped in
parentheses (which the grammar treats as transparent). Quick syntax nodes are
printed in their verbose spelling.
"""

import dataclasses
from typing import Any, List

from .tokens import Token, TokenType, SYMBOL_TEXT
from .ast import (
    AstNode, AstVisitor, ValueNode, ArrayLikeNode, DictionaryNode, StatementsNode,
    VariableAccessNode, TokenVariableAssignmentNode, NodeVariableAssignmentNode,
    BinaryOperationNode, UnaryOperationNode, CallNode,
    IfNode, CountNode, WhileNode, TryNode, ReturnNode, SkipNode, StopNode,
    FunctionDefinitionNode, SpecialDefinitionNode, ObjectDefinitionNode, IncludeNode,
)


INDENT = "    "

# Nodes that need parentheses when they appear as an operand
_WRAPPED_OPERANDS = (
    TokenVariableAssignmentNode, NodeVariableAssignmentNode,
    IfNode, CountNode, WhileNode, TryNode,
    FunctionDefinitionNode, SpecialDefinitionNode, ObjectDefinitionNode, IncludeNode,
)


def _is_attribute_access(node: AstNode) -> bool:
    return isinstance(node, BinaryOperationNode) and node.operator == TokenType.PERIOD


class SourcePrinter(AstVisitor):
    """Visitor producing verbose source text for a node."""

    def __init__(self):
        self.depth = 0

    def format(self, node: AstNode) -> str:
        return node.accept(self)

    def _operand(self, node: AstNode) -> str:
        text = self.format(node)
        if isinstance(node, _WRAPPED_OPERANDS):
            return f"({text})"
        return text

    def _names(self, tokens: List[Token]) -> str:
        return ", ".join(token.lexeme for token in tokens)

    def _block(self, body: AstNode) -> str:
        """Render a statement list one level deeper, each statement on its own line."""
        statements = body.statements if isinstance(body, StatementsNode) else [body]
        self.depth += 1
        try:
            lines = [INDENT * self.depth + self.format(statement) for statement in statements]
        finally:
            self.depth -= 1
        return "\n" + "\n".join(lines) + "\n" + INDENT * self.depth

    def _body(self, body: AstNode, block: bool) -> str:
        """Render the part after ``do``: an indented block ending in ``end``, or one statement."""
        if block:
            return self._block(body) + "end"
        return " " + self.format(body)

    # -------------------------------------------------------------------------
    # Literals and collections
    # -------------------------------------------------------------------------

    def visit_ValueNode(self, node: ValueNode) -> str:
        return node.token.lexeme

    def visit_ArrayLikeNode(self, node: ArrayLikeNode) -> str:
        elements = ", ".join(self.format(element) for element in node.elements)
        if node.create_list:
            return f"[{elements}]"
        if len(node.elements) == 1:
            return f"({elements},)"
        return f"({elements})"

    def visit_DictionaryNode(self, node: DictionaryNode) -> str:
        pairs = ", ".join(f"{self._operand(key)} : {self.format(value)}" for key, value in node.pairs)
        return "{" + pairs + "}"

    def visit_StatementsNode(self, node: StatementsNode) -> str:
        return "\n".join(self.format(statement) for statement in node.statements)

    # -------------------------------------------------------------------------
    # Variables
    # -------------------------------------------------------------------------

    def visit_VariableAccessNode(self, node: VariableAccessNode) -> str:
        if node.global_access:
            return f"global {node.name.lexeme}"
        return node.name.lexeme

    def visit_TokenVariableAssignmentNode(self, node: TokenVariableAssignmentNode) -> str:
        prefix = "global " if node.global_assignment else ""
        return f"{prefix}{node.name.lexeme} {SYMBOL_TEXT[node.operator]} {self.format(node.value)}"

    def visit_NodeVariableAssignmentNode(self, node: NodeVariableAssignmentNode) -> str:
        prefix = "global " if node.global_assignment else ""
        target = self.format(node.target)
        if isinstance(node.target, _WRAPPED_OPERANDS) or isinstance(node.target, VariableAccessNode):
            target = f"({target})"
        return f"{prefix}{target} {SYMBOL_TEXT[node.operator]} {self.format(node.value)}"

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def visit_BinaryOperationNode(self, node: BinaryOperationNode) -> str:
        left = self._operand(node.left)
        right = self._operand(node.right)
        if node.operator == TokenType.PERIOD:
            if _is_attribute_access(node.left):
                left = f"({left})"
            return f"{left}.{right}"
        if node.operator == TokenType.NOT:
            return f"({left} not in {right})"
        return f"({left} {SYMBOL_TEXT[node.operator]} {right})"

    def visit_UnaryOperationNode(self, node: UnaryOperationNode) -> str:
        operand = self._operand(node.operand)
        if node.operator == TokenType.INVERT:
            return f"(invert {operand})"
        return f"({SYMBOL_TEXT[node.operator]}{operand})"

    def visit_CallNode(self, node: CallNode) -> str:
        callee = self._operand(node.callee)
        if _is_attribute_access(node.callee) or isinstance(node.callee, CallNode):
            callee = f"({callee})"
        arguments = ", ".join(self.format(argument) for argument in node.arguments)
        return f"{callee}({arguments})"

    # -------------------------------------------------------------------------
    # Control flow
    # -------------------------------------------------------------------------

    def visit_IfNode(self, node: IfNode) -> str:
        parts = []
        for index, case in enumerate(node.cases):
            keyword = "if" if index == 0 else "else if"
            header = f"{keyword} {self.format(case.condition)} do"
            if node.discard_result:
                parts.append(header + self._block(case.body))
            else:
                parts.append(f"{header} {self.format(case.body)}")
        if node.else_case is not None:
            if node.discard_result:
                parts.append("else do" + self._block(node.else_case))
            else:
                parts.append(f"else do {self.format(node.else_case)}")
        if node.discard_result:
            return "".join(parts) + "end"
        return " ".join(parts)

    def visit_CountNode(self, node: CountNode) -> str:
        text = "count"
        if node.start is not None:
            text += f" from {self.format(node.start)}"
        text += f" to {self.format(node.end)}"
        if node.step is not None:
            text += f" step {self.format(node.step)}"
        if node.variable is not None:
            text += f" as {node.variable.lexeme}"
        return text + " do" + self._body(node.body, node.discard_result)

    def visit_WhileNode(self, node: WhileNode) -> str:
        return f"while {self.format(node.condition)} do" + self._body(node.body, node.discard_result)

    def visit_TryNode(self, node: TryNode) -> str:
        block = node.discard_result
        cases = list(node.cases)
        if node.catch_all is not None:
            cases.append(node.catch_all)

        def section(header: str, body: AstNode) -> str:
            if block:
                return header + self._block(body)
            return f"{header} {self.format(body)}"

        parts = [section("try do", node.body)]
        for case in cases:
            header = "error"
            if case.tag is not None:
                header += f" {self.format(case.tag)}"
            if case.variable is not None:
                header += f" as {case.variable.lexeme}"
            parts.append(section(header + " do", case.body))
        if block:
            return "".join(parts) + "end"
        return " ".join(parts)

    def visit_ReturnNode(self, node: ReturnNode) -> str:
        if node.value is None:
            return "return"
        return f"return {self.format(node.value)}"

    def visit_SkipNode(self, node: SkipNode) -> str:
        return "skip"

    def visit_StopNode(self, node: StopNode) -> str:
        return "stop"

    # -------------------------------------------------------------------------
    # Definitions
    # -------------------------------------------------------------------------

    def visit_FunctionDefinitionNode(self, node: FunctionDefinitionNode) -> str:
        text = "function"
        if node.name is not None:
            text += f" {node.name.lexeme}"
        if node.parameters:
            text += f" with {self._names(node.parameters)}"
        return text + " do" + self._body(node.body, node.discard_result)

    def visit_SpecialDefinitionNode(self, node: SpecialDefinitionNode) -> str:
        text = f"special {node.name.lexeme}"
        if node.parameters:
            text += f" with {self._names(node.parameters)}"
        return text + " do" + self._body(node.body, node.discard_result)

    def visit_ObjectDefinitionNode(self, node: ObjectDefinitionNode) -> str:
        text = "object"
        if node.name is not None:
            text += f" {node.name.lexeme}"
        if node.parameters:
            text += f" with {self._names(node.parameters)}"
        if node.parents:
            text += " from " + ", ".join(self.format(parent) for parent in node.parents)
        return text + " do" + self._body(node.body, isinstance(node.body, StatementsNode))

    def visit_IncludeNode(self, node: IncludeNode) -> str:
        text = "include"
        if node.dump_all:
            text += " all from"
        elif node.member is not None:
            text += f" {node.member.lexeme} from"
        text += f" {self.format(node.script)}"
        if node.nickname is not None:
            text += f" as {node.nickname.lexeme}"
        return text


def format_node(node: AstNode) -> str:
    """Render a node (usually a whole program) as verbose source."""
    return SourcePrinter().format(node)


def dump(node: Any) -> Any:
    """
    Convert an AST into nested tuples without source spans.

    Two trees are structurally equal exactly when their dumps compare equal,
    which makes this the comparison used for print/re-parse checks.
    """
    if isinstance(node, Token):
        return (node.type.name, node.value)
    if isinstance(node, TokenType):
        return node.name
    if isinstance(node, (list, tuple)):
        return tuple(dump(item) for item in node)
    if dataclasses.is_dataclass(node):
        fields = tuple(
            (field.name, dump(getattr(node, field.name)))
            for field in dataclasses.fields(node)
            if field.name != "span"
        )
        return (type(node).__name__,) + fields
    return node
