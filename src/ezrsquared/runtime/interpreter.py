"""
Tree-walking interpreter for ezr².

Evaluates AST nodes in a Context and returns a RuntimeResult. Errors and
control flow (return, skip, stop) travel up as result flags; value
operations raise EvaluationError, which is converted into a failed result
where the operation is applied.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from ..ast import (
    AstNode, ValueNode, ArrayLikeNode, DictionaryNode, StatementsNode,
    VariableAccessNode, TokenVariableAssignmentNode, NodeVariableAssignmentNode,
    BinaryOperationNode, UnaryOperationNode, CallNode,
    IfNode, CountNode, WhileNode, ErrorCase, TryNode, ReturnNode, SkipNode, StopNode,
    FunctionDefinitionNode, SpecialDefinitionNode, ObjectDefinitionNode, IncludeNode,
)
from ..errors import (
    EzrError, EvaluationError, RuntimeTag, error_runtime, error_undefined,
)
from ..lexer import tokenize
from ..parser import parse
from ..tokens import ASSIGNMENT_OPERATORS, SourceSpan, TokenType
from .builtins import get_global_context
from .context import Context
from .loader import ModuleLoader, binding_name
from .results import RuntimeResult
from .values import (
    Value, DataValue, NothingValue, IntegerValue, FloatValue, NumberValue,
    StringValue, CharacterListValue, ArrayValue, ListValue, DictionaryValue,
    FunctionValue, ClassValue,
    BINARY_OPERATIONS, UNARY_OPERATIONS, SPECIAL_METHODS,
)

log = logging.getLogger(__name__)

# Containers whose compound assignment updates them in place
_IN_PLACE_TYPES = (ListValue, CharacterListValue, DictionaryValue)


class Interpreter:
    """
    Tree-walking interpreter for ezr² programs.

    Evaluates AST nodes by dispatching to type-specific methods.
    """

    def __init__(self, loader: Optional[ModuleLoader] = None, loop_limit: Optional[int] = None):
        """
        Initialize the interpreter.

        Args:
            loader: Resolves ``include`` targets; a loader with an empty
                search path is created when omitted
            loop_limit: Optional bound on the iterations of any single loop
        """
        self.loader = loader if loader is not None else ModuleLoader()
        self.loop_limit = loop_limit

    def evaluate(self, node: AstNode, context: Context) -> RuntimeResult:
        """Evaluate a node in a context."""
        if isinstance(node, ValueNode):
            return self._eval_value(node, context)
        elif isinstance(node, ArrayLikeNode):
            return self._eval_array_like(node, context)
        elif isinstance(node, DictionaryNode):
            return self._eval_dictionary(node, context)
        elif isinstance(node, StatementsNode):
            return self._eval_statements(node, context)
        elif isinstance(node, VariableAccessNode):
            return self._eval_variable_access(node, context)
        elif isinstance(node, TokenVariableAssignmentNode):
            return self._eval_token_assignment(node, context)
        elif isinstance(node, NodeVariableAssignmentNode):
            return self._eval_node_assignment(node, context)
        elif isinstance(node, BinaryOperationNode):
            return self._eval_binary_operation(node, context)
        elif isinstance(node, UnaryOperationNode):
            return self._eval_unary_operation(node, context)
        elif isinstance(node, CallNode):
            return self._eval_call(node, context)
        elif isinstance(node, IfNode):
            return self._eval_if(node, context)
        elif isinstance(node, CountNode):
            return self._eval_count(node, context)
        elif isinstance(node, WhileNode):
            return self._eval_while(node, context)
        elif isinstance(node, TryNode):
            return self._eval_try(node, context)
        elif isinstance(node, ReturnNode):
            return self._eval_return(node, context)
        elif isinstance(node, SkipNode):
            return RuntimeResult().success_skip()
        elif isinstance(node, StopNode):
            return RuntimeResult().success_stop()
        elif isinstance(node, FunctionDefinitionNode):
            return self._eval_function_definition(node, context)
        elif isinstance(node, SpecialDefinitionNode):
            return self._eval_special_definition(node, context)
        elif isinstance(node, ObjectDefinitionNode):
            return self._eval_object_definition(node, context)
        elif isinstance(node, IncludeNode):
            return self._eval_include(node, context)
        else:
            raise TypeError(f"Unknown node type: {type(node).__name__}")

    # =========================================================================
    # Literals and Collections
    # =========================================================================

    def _eval_value(self, node: ValueNode, context: Context) -> RuntimeResult:
        """Evaluate a literal; characters become one-character strings."""
        token = node.token
        if token.type == TokenType.INTEGER:
            value: Value = IntegerValue(token.value)
        elif token.type == TokenType.FLOAT:
            value = FloatValue(token.value)
        elif token.type == TokenType.CHARACTER_LIST:
            value = CharacterListValue(token.value)
        else:
            value = StringValue(token.value)
        return RuntimeResult().success(value.set_position(node.span).set_context(context))

    def _eval_array_like(self, node: ArrayLikeNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        elements: List[Value] = []
        for element in node.elements:
            elements.append(result.register(self.evaluate(element, context)))
            if result.should_return():
                return result

        value = ListValue(elements) if node.create_list else ArrayValue(elements)
        return result.success(value.set_position(node.span).set_context(context))

    def _eval_dictionary(self, node: DictionaryNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        pairs = {}
        for key_node, value_node in node.pairs:
            key = result.register(self.evaluate(key_node, context))
            if result.should_return():
                return result
            value = result.register(self.evaluate(value_node, context))
            if result.should_return():
                return result
            try:
                pairs[DictionaryValue.check_key(key)] = value
            except EvaluationError as error:
                return result.failure(error)

        return result.success(DictionaryValue(pairs).set_position(node.span).set_context(context))

    def _eval_statements(self, node: StatementsNode, context: Context) -> RuntimeResult:
        """Evaluate statements in order; the value is an array of their results."""
        result = RuntimeResult()
        values: List[Value] = []
        for statement in node.statements:
            values.append(result.register(self.evaluate(statement, context)))
            if result.should_return():
                return result

        return result.success(ArrayValue(values).set_position(node.span).set_context(context))

    # =========================================================================
    # Variables
    # =========================================================================

    def _eval_variable_access(self, node: VariableAccessNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        name = node.name.lexeme

        if node.global_access:
            value = None
            root = context.root()
            if root.locked:
                value = root.symbols.get_local(name)
            if value is None:
                value = context.global_target().symbols.get(name)
        else:
            value = context.symbols.get(name)

        if value is None:
            return result.failure(error_undefined(name, node.span, context))
        return result.success(value.copy().set_position(node.span).set_context(context))

    def _eval_token_assignment(self, node: TokenVariableAssignmentNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        value = result.register(self.evaluate(node.value, context))
        if result.should_return():
            return result

        target = context.global_target() if node.global_assignment else context
        return self._assign(target, node.name.lexeme, node.operator, value, node.span, context)

    def _eval_node_assignment(self, node: NodeVariableAssignmentNode, context: Context) -> RuntimeResult:
        """Assign through an attribute chain (``a.b.c : value``)."""
        result = RuntimeResult()
        target = node.target

        if isinstance(target, VariableAccessNode):
            value = result.register(self.evaluate(node.value, context))
            if result.should_return():
                return result
            scope = context.global_target() if node.global_assignment or target.global_access else context
            return self._assign(scope, target.name.lexeme, node.operator, value, node.span, context)

        if node.global_assignment:
            return result.failure(error_runtime(
                RuntimeTag.RUN, "Attribute chains cannot be assigned globally", node.span, context))
        if not (isinstance(target, BinaryOperationNode) and target.operator == TokenType.PERIOD):
            return result.failure(error_runtime(
                RuntimeTag.ILLEGAL_OPERATION, "Invalid assignment target", target.span, context))

        owner = result.register(self._materialize(self.evaluate(target.left, context)))
        if result.should_return():
            return result
        member = target.right
        while isinstance(member, BinaryOperationNode) and member.operator == TokenType.PERIOD:
            owner = result.register(self._materialize(self._retrieve(owner, member.left, context)))
            if result.should_return():
                return result
            member = member.right

        if not isinstance(member, VariableAccessNode):
            return result.failure(error_runtime(
                RuntimeTag.ILLEGAL_OPERATION, "Invalid assignment target", member.span, context))
        if isinstance(owner, DataValue):
            return result.failure(error_runtime(
                RuntimeTag.ILLEGAL_OPERATION, f"Cannot assign attributes of type '{owner.type_name}'",
                target.span, context))

        value = result.register(self.evaluate(node.value, context))
        if result.should_return():
            return result
        return self._assign(owner.internal_context, member.name.lexeme, node.operator, value, node.span,
                            context, local=True)

    def _assign(self, scope: Context, name: str, operator: TokenType, value: Value, span: SourceSpan,
                context: Context, local: bool = False) -> RuntimeResult:
        """Bind ``name`` in ``scope``, applying a compound operator to the old value first."""
        result = RuntimeResult()
        operation = ASSIGNMENT_OPERATORS[operator]
        if operation is not None:
            old = scope.symbols.get_local(name) if local else scope.symbols.get(name)
            if old is None:
                return result.failure(error_undefined(name, span, context))
            old = old.copy().set_position(span).set_context(context)
            new = result.register(self._operate(old, operation, value, span, context))
            if result.should_return():
                return result
            if isinstance(old, _IN_PLACE_TYPES) and isinstance(new, NothingValue):
                new = old
            value = new

        scope.symbols.set(name, value)
        return result.success(value)

    # =========================================================================
    # Operations
    # =========================================================================

    def _operate(self, left: Value, operator: TokenType, right: Value, span: SourceSpan,
                 context: Context) -> RuntimeResult:
        """Apply a binary operator through the value operation table."""
        result = RuntimeResult()
        try:
            if operator == TokenType.NOT:
                value = left.check_in(right).invert()
            else:
                value = getattr(left, BINARY_OPERATIONS[operator])(right)
        except EvaluationError as error:
            return result.failure(error)
        return result.success(value.copy().set_position(span).set_context(context))

    def _eval_binary_operation(self, node: BinaryOperationNode, context: Context) -> RuntimeResult:
        if node.operator == TokenType.PERIOD:
            return self._eval_attribute_access(node, context)

        result = RuntimeResult()
        left = result.register(self.evaluate(node.left, context))
        if result.should_return():
            return result
        right = result.register(self.evaluate(node.right, context))
        if result.should_return():
            return result
        return self._operate(left, node.operator, right, node.span, context)

    def _eval_unary_operation(self, node: UnaryOperationNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        operand = result.register(self.evaluate(node.operand, context))
        if result.should_return():
            return result

        try:
            if node.operator == TokenType.MINUS:
                value = operand.multiplied_by(IntegerValue(-1).set_position(node.span))
            elif node.operator == TokenType.PLUS:
                value = operand.multiplied_by(IntegerValue(1).set_position(node.span))
            else:
                value = getattr(operand, UNARY_OPERATIONS[node.operator])()
        except EvaluationError as error:
            return result.failure(error)
        return result.success(value.copy().set_position(node.span).set_context(context))

    def _materialize(self, evaluated: RuntimeResult) -> RuntimeResult:
        """Expose the members of an evaluated value through its internal context."""
        result = RuntimeResult()
        value = result.register(evaluated)
        if result.should_return():
            return result
        if isinstance(value, DataValue):
            result.register(value.execute([]))
            if result.should_return():
                return result
        if value.internal_context is None:
            return result.failure(error_runtime(
                RuntimeTag.ILLEGAL_OPERATION, "'retrieve' method called on uninitialized object",
                value.span, value.context))
        return result.success(value)

    def _eval_attribute_access(self, node: BinaryOperationNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        owner = result.register(self._materialize(self.evaluate(node.left, context)))
        if result.should_return():
            return result

        value = result.register(self._retrieve(owner, node.right, context))
        if result.should_return():
            return result
        return result.success(value.copy().set_position(node.span))

    def _retrieve(self, owner: Value, node: AstNode, caller: Context) -> RuntimeResult:
        """
        Resolve ``node`` against a materialized value.

        Names are looked up in the owner's internal context; call arguments
        are evaluated in the caller's context.
        """
        result = RuntimeResult()
        internal = owner.internal_context

        if isinstance(node, VariableAccessNode):
            name = node.name.lexeme
            value = internal.symbols.get_local(name)
            if value is None:
                return result.failure(error_undefined(name, node.span, internal))
            return result.success(value.copy().set_position(node.span).set_context(internal))

        if isinstance(node, CallNode):
            callee = result.register(self._retrieve(owner, node.callee, caller))
            if result.should_return():
                return result
            return self._call(callee, node, caller, internal)

        if isinstance(node, BinaryOperationNode) and node.operator == TokenType.PERIOD:
            inner = result.register(self._materialize(self._retrieve(owner, node.left, caller)))
            if result.should_return():
                return result
            return self._retrieve(inner, node.right, caller)

        return self.evaluate(node, internal)

    def _eval_call(self, node: CallNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        callee = result.register(self.evaluate(node.callee, context))
        if result.should_return():
            return result
        return self._call(callee, node, context, context)

    def _call(self, callee: Value, node: CallNode, caller: Context, scope: Context) -> RuntimeResult:
        """Call ``callee`` with arguments evaluated in ``caller``; ``scope`` becomes its context."""
        result = RuntimeResult()
        callee = callee.copy().set_position(node.span).set_context(scope)

        args: List[Value] = []
        for argument in node.arguments:
            args.append(result.register(self.evaluate(argument, caller)))
            if result.should_return():
                return result

        value = result.register(callee.execute(args))
        if result.should_return():
            return result
        return result.success(value.copy().set_position(node.span).set_context(caller))

    # =========================================================================
    # Control Flow
    # =========================================================================

    def _eval_if(self, node: IfNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        for case in node.cases:
            condition = result.register(self.evaluate(case.condition, context))
            if result.should_return():
                return result
            try:
                matched = condition.is_true()
            except EvaluationError as error:
                return result.failure(error)

            if matched:
                value = result.register(self.evaluate(case.body, context))
                if result.should_return():
                    return result
                return result.success(NothingValue() if node.discard_result else value)

        if node.else_case is not None:
            value = result.register(self.evaluate(node.else_case, context))
            if result.should_return():
                return result
            return result.success(NothingValue() if node.discard_result else value)

        return result.success(NothingValue())

    def _loop_limit_error(self, node: AstNode, context: Context) -> EvaluationError:
        return error_runtime(RuntimeTag.RUN, "Loop iteration limit exceeded", node.span, context)

    def _count_bound(self, result: RuntimeResult, node: Optional[AstNode], default: Value, what: str,
                     context: Context) -> Optional[Value]:
        """Evaluate one numeric bound of a count loop; None when ``result`` failed."""
        if node is None:
            return default
        value = result.register(self.evaluate(node, context))
        if result.should_return():
            return None
        if not isinstance(value, NumberValue):
            result.failure(error_runtime(
                RuntimeTag.TYPE, f"Count '{what}' value must be an integer or float", node.span, context))
            return None
        return value

    def _eval_count(self, node: CountNode, context: Context) -> RuntimeResult:
        """
        Evaluate ``count [from a] to b [step s] [as v]``.

        The loop runs while the counter is below the end (above it for a
        negative step). The variable takes the kind of the step.
        """
        result = RuntimeResult()
        start = self._count_bound(result, node.start, IntegerValue(0), "from", context)
        if start is None:
            return result
        end = self._count_bound(result, node.end, IntegerValue(0), "to", context)
        if end is None:
            return result
        step = self._count_bound(result, node.step, IntegerValue(1), "step", context)
        if step is None:
            return result
        if step.value == 0:
            return result.failure(error_runtime(RuntimeTag.MATH, "Count step cannot be zero", node.span, context))

        kind = IntegerValue if isinstance(step, IntegerValue) else FloatValue
        counter = start.value
        iterations = 0
        values: List[Value] = []

        while (counter < end.value) if step.value > 0 else (counter > end.value):
            iterations += 1
            if self.loop_limit is not None and iterations > self.loop_limit:
                return result.failure(self._loop_limit_error(node, context))

            if node.variable is not None:
                context.symbols.set(node.variable.lexeme, kind(counter).set_position(node.span).set_context(context))
            counter += step.value

            value = result.register(self.evaluate(node.body, context))
            if result.error is not None or result.function_return_value is not None:
                return result
            if result.loop_should_skip:
                continue
            if result.loop_should_stop:
                break
            values.append(value)

        if node.discard_result:
            return result.success(NothingValue())
        return result.success(ArrayValue(values).set_position(node.span).set_context(context))

    def _eval_while(self, node: WhileNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        iterations = 0
        values: List[Value] = []

        while True:
            condition = result.register(self.evaluate(node.condition, context))
            if result.should_return():
                return result
            try:
                if not condition.is_true():
                    break
            except EvaluationError as error:
                return result.failure(error)

            iterations += 1
            if self.loop_limit is not None and iterations > self.loop_limit:
                return result.failure(self._loop_limit_error(node, context))

            value = result.register(self.evaluate(node.body, context))
            if result.error is not None or result.function_return_value is not None:
                return result
            if result.loop_should_skip:
                continue
            if result.loop_should_stop:
                break
            values.append(value)

        if node.discard_result:
            return result.success(NothingValue())
        return result.success(ArrayValue(values).set_position(node.span).set_context(context))

    def _eval_try(self, node: TryNode, context: Context) -> RuntimeResult:
        """
        Evaluate a try expression.

        Clauses are tried in order; a tag matches when it equals the error's
        tag or is ``"any"``. Unmatched errors propagate unchanged.
        """
        result = RuntimeResult()
        value = result.register(self.evaluate(node.body, context))
        if result.error is None:
            if result.should_return():
                return result
            return result.success(NothingValue() if node.discard_result else value)

        error = result.error
        for case in node.cases:
            tag = result.register(self.evaluate(case.tag, context))
            if result.should_return():
                return result
            if not isinstance(tag, (StringValue, CharacterListValue)):
                return result.failure(error_runtime(
                    RuntimeTag.TYPE, "Error tag must be a string or character_list", case.tag.span, context))
            if tag.pure_string() in (error.tag, RuntimeTag.ANY):
                return self._handle_error(case, error, node, context)

        if node.catch_all is not None:
            return self._handle_error(node.catch_all, error, node, context)
        return result.failure(error)

    def _handle_error(self, case: ErrorCase, error: EvaluationError, node: TryNode,
                      context: Context) -> RuntimeResult:
        result = RuntimeResult()
        if case.variable is not None:
            context.symbols.set(case.variable.lexeme, StringValue(error.tag).set_context(context))

        value = result.register(self.evaluate(case.body, context))
        if result.should_return():
            return result
        return result.success(NothingValue() if node.discard_result else value)

    def _eval_return(self, node: ReturnNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        if node.value is None:
            return result.success_return(NothingValue().set_position(node.span).set_context(context))

        value = result.register(self.evaluate(node.value, context))
        if result.should_return():
            return result
        return result.success_return(value)

    # =========================================================================
    # Definitions
    # =========================================================================

    def _eval_function_definition(self, node: FunctionDefinitionNode, context: Context) -> RuntimeResult:
        name = node.name.lexeme if node.name is not None else None
        parameters = [parameter.lexeme for parameter in node.parameters]
        function = FunctionValue(name, parameters, node.body, node.discard_result, self)
        function.set_position(node.span).set_context(context)

        if name is not None:
            context.symbols.set(name, function)
        return RuntimeResult().success(function)

    def _eval_special_definition(self, node: SpecialDefinitionNode, context: Context) -> RuntimeResult:
        """Define an operator overload; the name and arity must match SPECIAL_METHODS."""
        result = RuntimeResult()
        name = node.name.lexeme
        if name not in SPECIAL_METHODS:
            return result.failure(error_runtime(
                RuntimeTag.TYPE, f"'{name}' is not a special method", node.name.span, context))

        parameters = [parameter.lexeme for parameter in node.parameters]
        if len(parameters) != SPECIAL_METHODS[name]:
            return result.failure(error_runtime(
                RuntimeTag.ARGUMENTS,
                f"Special method '{name}' takes {SPECIAL_METHODS[name]} parameters, not {len(parameters)}",
                node.span, context))

        method = FunctionValue(name, parameters, node.body, node.discard_result, self, special=True)
        method.set_position(node.span).set_context(context)
        context.symbols.set(name, method)
        return result.success(method)

    def _eval_object_definition(self, node: ObjectDefinitionNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        name = node.name.lexeme if node.name is not None else None
        parameters = [parameter.lexeme for parameter in node.parameters]

        parents: List[ClassValue] = []
        for parent_node in node.parents:
            parent = result.register(self.evaluate(parent_node, context))
            if result.should_return():
                return result
            if not isinstance(parent, ClassValue):
                return result.failure(error_runtime(
                    RuntimeTag.TYPE, "Parent must be an object definition", parent_node.span, context))
            missing = [parameter for parameter in parent.parameters if parameter not in parameters]
            if missing:
                return result.failure(error_runtime(
                    RuntimeTag.TYPE,
                    f"Parameters of '{name or '<anonymous>'}' must include the parameters of parent "
                    f"'{parent.name}' (missing {', '.join(missing)})",
                    parent_node.span, context))
            parents.append(parent)

        klass = ClassValue(name, parameters, node.body, parents, self)
        klass.set_position(node.span).set_context(context)
        if name is not None:
            context.symbols.set(name, klass)
        return result.success(klass)

    def _eval_include(self, node: IncludeNode, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        if isinstance(node.script, VariableAccessNode):
            script_name = node.script.name.lexeme
        else:
            script = result.register(self.evaluate(node.script, context))
            if result.should_return():
                return result
            if not isinstance(script, StringValue):
                return result.failure(error_runtime(
                    RuntimeTag.TYPE, "Script name must be a string", node.script.span, context))
            script_name = script.value

        log.debug("Including %r from context %s", script_name, context.name)
        loaded = result.register(self.loader.load(script_name, node.span, context, self))
        if result.should_return():
            return result
        members = loaded.internal_context.symbols if loaded.internal_context is not None else None

        if node.dump_all:
            if members is not None:
                for name in members.names():
                    context.symbols.set(name, members.get_local(name))
            return result.success(NothingValue())

        nickname = None
        if node.nickname is not None:
            token = node.nickname
            nickname = token.value if token.type in (TokenType.STRING, TokenType.CHARACTER_LIST) else token.lexeme

        if node.member is not None:
            member_name = node.member.lexeme
            value = members.get_local(member_name) if members is not None else None
            if value is None:
                return result.failure(error_undefined(member_name, node.member.span, context))
            context.symbols.set(nickname or member_name, value)
            return result.success(value)

        context.symbols.set(nickname or binding_name(script_name), loaded)
        return result.success(loaded)


def run(
    file_name: str,
    source: str,
    context: Optional[Context] = None,
    interpreter: Optional[Interpreter] = None,
) -> Tuple[Optional[EzrError], Optional[Value]]:
    """
    Lex, parse and evaluate a script.

    With no context, a fresh ``<main>`` context is chained to the global
    context. The script's own directory is added to the loader's search
    path.

    Returns:
        ``(error, None)`` on failure, ``(None, value)`` on success, where the
        value is an array holding the result of each top-level statement
    """
    if interpreter is None:
        interpreter = Interpreter()

    path = Path(file_name)
    if path.is_file():
        directory = str(path.resolve().parent)
        if directory != os.getcwd():
            interpreter.loader.add_search_path(directory)

    log.debug("Running %s", file_name)
    try:
        program = parse(tokenize(source, file_name))
    except EzrError as error:
        return error, None

    if context is None:
        context = Context("<main>", get_global_context())
    if context.interpreter is None:
        context.interpreter = interpreter

    result = interpreter.evaluate(program, context)
    if result.error is not None:
        return result.error, None
    if result.should_return():
        return error_runtime(
            RuntimeTag.ILLEGAL_OPERATION, "'return', 'skip' and 'stop' cannot be used outside functions and loops",
            program.span, context), None
    return None, result.value
