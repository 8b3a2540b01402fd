"""
Abstract Syntax Tree (AST) node definitions for ezr².

Both surface syntaxes (verbose keywords and the ``!`` quick syntax) parse to
the same nodes. Block-style constructs (bodies opened by a newline and
closed by ``end`` or ``s``) set ``discard_result`` so that the interpreter
returns Nothing for them instead of their collected value.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Any
from abc import ABC
from .tokens import SourceSpan, Token, TokenType


# =============================================================================
# Base Classes
# =============================================================================

@dataclass
class AstNode(ABC):
    """Base class for all AST nodes."""
    span: SourceSpan  # Source location for error reporting

    def accept(self, visitor: "AstVisitor") -> Any:
        """Accept a visitor for traversal."""
        method_name = f"visit_{self.__class__.__name__}"
        method = getattr(visitor, method_name, visitor.generic_visit)
        return method(self)


class AstVisitor(ABC):
    """Base class for AST visitors."""

    def generic_visit(self, node: AstNode) -> Any:
        """Default visit method."""
        raise NotImplementedError(f"No visitor for {node.__class__.__name__}")


# =============================================================================
# Literal and Collection Nodes
# =============================================================================

@dataclass
class ValueNode(AstNode):
    """An integer, float, string, character or character list literal."""
    token: Token


@dataclass
class ArrayLikeNode(AstNode):
    """An array ``(a, b)`` or, with ``create_list``, a list ``[a, b]``."""
    elements: List[AstNode]
    create_list: bool = False


@dataclass
class DictionaryNode(AstNode):
    """A dictionary literal ``{key : value, ...}``."""
    pairs: List[Tuple[AstNode, AstNode]]


@dataclass
class StatementsNode(AstNode):
    """A newline-separated statement list; evaluates to an array of results."""
    statements: List[AstNode]


# =============================================================================
# Variable Nodes
# =============================================================================

@dataclass
class VariableAccessNode(AstNode):
    """A name lookup, optionally ``global``-qualified."""
    name: Token
    global_access: bool = False


@dataclass
class TokenVariableAssignmentNode(AstNode):
    """Assignment to a plain name (``x : 1``, ``global x :+ 1``)."""
    name: Token
    operator: TokenType     # COLON or a compound assignment symbol
    value: AstNode
    global_assignment: bool = False


@dataclass
class NodeVariableAssignmentNode(AstNode):
    """Assignment to an attribute chain (``a.b.c : 1``)."""
    target: AstNode
    operator: TokenType
    value: AstNode
    global_assignment: bool = False


# =============================================================================
# Operation Nodes
# =============================================================================

@dataclass
class BinaryOperationNode(AstNode):
    """A binary operation; PERIOD denotes attribute access."""
    left: AstNode
    right: AstNode
    operator: TokenType


@dataclass
class UnaryOperationNode(AstNode):
    """A prefix operation (``-x``, ``~x``, ``invert x``)."""
    operand: AstNode
    operator: TokenType


@dataclass
class CallNode(AstNode):
    """A call ``callee(arg, ...)``."""
    callee: AstNode
    arguments: List[AstNode]


# =============================================================================
# Control Flow Nodes
# =============================================================================

@dataclass
class IfCase:
    """One ``if``/``else if`` branch."""
    condition: AstNode
    body: AstNode


@dataclass
class IfNode(AstNode):
    """An if expression with optional else-if and else branches."""
    cases: List[IfCase]
    else_case: Optional[AstNode] = None
    discard_result: bool = False


@dataclass
class CountNode(AstNode):
    """A ``count [from a] to b [step s] [as v] do ...`` loop."""
    end: AstNode
    body: AstNode
    start: Optional[AstNode] = None
    step: Optional[AstNode] = None
    variable: Optional[Token] = None
    discard_result: bool = False


@dataclass
class WhileNode(AstNode):
    """A ``while condition do ...`` loop."""
    condition: AstNode
    body: AstNode
    discard_result: bool = False


@dataclass
class ErrorCase:
    """One ``error [tag] [as name] do ...`` clause; a missing tag catches all."""
    tag: Optional[AstNode]
    variable: Optional[Token]
    body: AstNode


@dataclass
class TryNode(AstNode):
    """A try expression; ``catch_all`` is the single tag-less clause."""
    body: AstNode
    cases: List[ErrorCase] = field(default_factory=list)
    catch_all: Optional[ErrorCase] = None
    discard_result: bool = False


@dataclass
class ReturnNode(AstNode):
    """``return [value]``."""
    value: Optional[AstNode] = None


@dataclass
class SkipNode(AstNode):
    """``skip``: abandon the current loop iteration."""
    pass


@dataclass
class StopNode(AstNode):
    """``stop``: leave the innermost loop."""
    pass


# =============================================================================
# Definition Nodes
# =============================================================================

@dataclass
class FunctionDefinitionNode(AstNode):
    """A function definition; anonymous when ``name`` is None."""
    name: Optional[Token]
    parameters: List[Token]
    body: AstNode
    discard_result: bool = False


@dataclass
class SpecialDefinitionNode(AstNode):
    """An operator-overloading method defined inside an object body."""
    name: Token
    parameters: List[Token]
    body: AstNode
    discard_result: bool = False


@dataclass
class ObjectDefinitionNode(AstNode):
    """A class definition with optional parameters and parent classes."""
    name: Optional[Token]
    parameters: List[Token]
    parents: List[AstNode]
    body: AstNode


@dataclass
class IncludeNode(AstNode):
    """
    An include of another script.

    ``member`` selects a single name from the script, ``dump_all`` copies
    every name into the including scope and ``nickname`` renames the binding.
    """
    script: AstNode
    member: Optional[Token] = None
    dump_all: bool = False
    nickname: Optional[Token] = None
