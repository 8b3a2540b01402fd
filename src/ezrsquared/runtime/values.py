"""
Runtime values for the ezr² interpreter.

Every value implements the same operation contract (``added_to``,
``compare_equal``, ``check_in``, ...). An operation either returns a new
Value or raises EvaluationError; the interpreter turns the raised error into
a failed RuntimeResult. Operations a type does not support fall through to
the base class and report an illegal operation.

Built-in data values (numbers, strings, containers) expose their members by
being called with no arguments, which fills an ``<<type> internal>``
context. Attribute access then looks names up in that context.
"""

import copy
import math
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from ..errors import (
    EvaluationError, RuntimeTag, error_runtime, error_illegal_operation,
)
from ..tokens import SourceSpan, TokenType
from .context import Context
from .results import RuntimeResult

if TYPE_CHECKING:
    from ..ast import AstNode
    from .interpreter import Interpreter


# Name -> arity of the operations an object may override with ``special``
SPECIAL_METHODS: Dict[str, int] = {
    "added_to": 1,
    "subbed_by": 1,
    "multiplied_by": 1,
    "divided_by": 1,
    "modulo_by": 1,
    "powered_by": 1,
    "compare_equal": 1,
    "compare_not_equal": 1,
    "compare_less_than": 1,
    "compare_greater_than": 1,
    "compare_less_than_or_equal": 1,
    "compare_greater_than_or_equal": 1,
    "compare_and": 1,
    "compare_or": 1,
    "bitwise_or": 1,
    "bitwise_xor": 1,
    "bitwise_and": 1,
    "bitwise_left_shift": 1,
    "bitwise_right_shift": 1,
    "check_in": 1,
    "bitwise_not": 0,
    "invert": 0,
    "is_true": 0,
    "hash": 0,
    "as_string": 0,
}

# Binary operator -> Value method
BINARY_OPERATIONS: Dict[TokenType, str] = {
    TokenType.PLUS: "added_to",
    TokenType.MINUS: "subbed_by",
    TokenType.STAR: "multiplied_by",
    TokenType.SLASH: "divided_by",
    TokenType.PERCENT: "modulo_by",
    TokenType.CARET: "powered_by",
    TokenType.EQUAL: "compare_equal",
    TokenType.EXCLAMATION: "compare_not_equal",
    TokenType.LESS: "compare_less_than",
    TokenType.GREATER: "compare_greater_than",
    TokenType.LESS_EQUAL: "compare_less_than_or_equal",
    TokenType.GREATER_EQUAL: "compare_greater_than_or_equal",
    TokenType.AND: "compare_and",
    TokenType.OR: "compare_or",
    TokenType.PIPE: "bitwise_or",
    TokenType.BACKSLASH: "bitwise_xor",
    TokenType.AMPERSAND: "bitwise_and",
    TokenType.LEFT_SHIFT: "bitwise_left_shift",
    TokenType.RIGHT_SHIFT: "bitwise_right_shift",
    TokenType.IN: "check_in",
}

# Unary operator -> Value method; +/- multiply by a signed integer
UNARY_OPERATIONS: Dict[TokenType, str] = {
    TokenType.TILDE: "bitwise_not",
    TokenType.INVERT: "invert",
}


def fail(context: Context, tag: str, details: str) -> EvaluationError:
    """Build an error raised from inside a built-in call context."""
    return error_runtime(tag, details, context.parent_entry_span, context)


class Value:
    """
    Base class for all runtime values.

    ``span`` and ``context`` record where the value was produced; both are
    set after construction with the chaining setters.
    """

    type_name = "value"

    def __init__(self):
        self.span: Optional[SourceSpan] = None
        self.context: Optional[Context] = None
        self.internal_context: Optional[Context] = None

    def set_position(self, span: Optional[SourceSpan]) -> "Value":
        self.span = span
        return self

    def set_context(self, context: Optional[Context]) -> "Value":
        self.context = context
        return self

    def copy(self) -> "Value":
        """Shallow copy; mutable storage is shared with the original."""
        return copy.copy(self)

    def pure_string(self) -> str:
        """Text used by ``show`` and conversions (strings without quotes)."""
        return str(self)

    def __str__(self) -> str:
        return f"<{self.type_name}>"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self})"

    # --- Errors ---

    def illegal_operation(self, other: Optional["Value"] = None) -> EvaluationError:
        if other is None:
            return error_illegal_operation(self.type_name, span=self.span, context=self.context)
        span = self.span
        if span is not None and other.span is not None:
            span = span.to(other.span)
        return error_illegal_operation(self.type_name, other.type_name, span or other.span, self.context)

    def runtime_error(self, tag: str, details: str, at: Optional["Value"] = None) -> EvaluationError:
        """Error positioned at ``at`` (or this value), raised in this value's context."""
        span = at.span if at is not None and at.span is not None else self.span
        return error_runtime(tag, details, span, self.context)

    # --- Arithmetic ---

    def added_to(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def subbed_by(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def multiplied_by(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def divided_by(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def modulo_by(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def powered_by(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    # --- Comparison ---

    def compare_equal(self, other: "Value") -> "Value":
        return BooleanValue(self == other).set_context(self.context)

    def compare_not_equal(self, other: "Value") -> "Value":
        return BooleanValue(self != other).set_context(self.context)

    def compare_less_than(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def compare_greater_than(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def compare_less_than_or_equal(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def compare_greater_than_or_equal(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    # --- Boolean ---

    def compare_and(self, other: "Value") -> "Value":
        return BooleanValue(self.is_true() and other.is_true()).set_context(self.context)

    def compare_or(self, other: "Value") -> "Value":
        return BooleanValue(self.is_true() or other.is_true()).set_context(self.context)

    def invert(self) -> "Value":
        raise self.illegal_operation()

    def is_true(self) -> bool:
        return False

    # --- Bitwise ---

    def bitwise_or(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def bitwise_xor(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def bitwise_and(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def bitwise_left_shift(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def bitwise_right_shift(self, other: "Value") -> "Value":
        raise self.illegal_operation(other)

    def bitwise_not(self) -> "Value":
        raise self.illegal_operation()

    # --- Membership ---

    def check_in(self, other: "Value") -> "Value":
        """``self in other``: membership in an array, list or dictionary."""
        if isinstance(other, ObjectValue):
            return other.contains(self)
        if isinstance(other, (ArrayValue, ListValue)):
            return BooleanValue(self in other.elements).set_context(self.context)
        if isinstance(other, DictionaryValue):
            return BooleanValue(self in other.pairs).set_context(self.context)
        raise self.illegal_operation(other)

    # --- Calling ---

    def execute(self, args: List["Value"]) -> RuntimeResult:
        return RuntimeResult().failure(self.illegal_operation())


# =============================================================================
# Built-in Data Values
# =============================================================================

class DataValue(Value):
    """
    A built-in data value.

    Calling one without arguments materializes its members into a fresh
    internal context and returns the value itself.
    """

    def members(self) -> Dict[str, Value]:
        return {}

    def execute(self, args: List[Value]) -> RuntimeResult:
        if args:
            return RuntimeResult().failure(self.illegal_operation())
        context = Context(f"<<{self.type_name}> internal>", self.context, self.span)
        for name, member in self.members().items():
            context.symbols.set(name, member.set_context(context))
        self.internal_context = context
        return RuntimeResult().success(self)

    def _conversions(self, *names: str) -> Dict[str, Value]:
        """Zero-argument conversion members shared by most types."""
        converters: Dict[str, Callable[[Context], Value]] = {
            "as_string": lambda context: StringValue(self.pure_string()),
            "as_character_list": lambda context: CharacterListValue(self.pure_string()),
            "as_boolean": lambda context: BooleanValue(self.is_true()),
        }
        return {name: BuiltinFunction(name, [], converters[name]) for name in names}


class NothingValue(DataValue):
    """The ``nothing`` value."""

    type_name = "nothing"

    def copy(self) -> Value:
        return NothingValue().set_position(self.span).set_context(self.context)

    def members(self) -> Dict[str, Value]:
        members = self._conversions("as_string", "as_character_list", "as_boolean")
        members["as_integer"] = BuiltinFunction("as_integer", [], lambda context: IntegerValue(0))
        members["as_float"] = BuiltinFunction("as_float", [], lambda context: FloatValue(0.0))
        return members

    def __eq__(self, other: object) -> bool:
        return isinstance(other, NothingValue)

    def __hash__(self) -> int:
        return 0

    def __str__(self) -> str:
        return "nothing"


class BooleanValue(DataValue):
    """``true`` or ``false``."""

    type_name = "boolean"

    def __init__(self, value: bool):
        super().__init__()
        self.value = bool(value)

    def copy(self) -> Value:
        return BooleanValue(self.value).set_position(self.span).set_context(self.context)

    def invert(self) -> Value:
        return BooleanValue(not self.value).set_context(self.context)

    def is_true(self) -> bool:
        return self.value

    def members(self) -> Dict[str, Value]:
        members = self._conversions("as_string", "as_character_list")
        members["as_integer"] = BuiltinFunction("as_integer", [], lambda context: IntegerValue(int(self.value)))
        return members

    def __eq__(self, other: object) -> bool:
        return isinstance(other, BooleanValue) and other.value == self.value

    def __hash__(self) -> int:
        return hash(("boolean", self.value))

    def __str__(self) -> str:
        return "true" if self.value else "false"


# =============================================================================
# Numbers
# =============================================================================

def _truncated_division(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


def _whole_number(owner: Value, number: "NumberValue") -> int:
    """Truncate ``number`` toward zero; infinite and NaN floats are math errors."""
    if isinstance(number.value, float) and not math.isfinite(number.value):
        raise owner.runtime_error(RuntimeTag.MATH, f"Cannot convert {number.value} to an integer", number)
    return int(number.value)


def _float_number(owner: Value, number: "NumberValue") -> float:
    """``number`` as a float; integers beyond the float range are math errors."""
    try:
        return float(number.value)
    except OverflowError:
        raise owner.runtime_error(RuntimeTag.MATH, "Integer too large to convert to float", number)


class NumberValue(DataValue):
    """
    Shared behaviour of integers and floats.

    Arithmetic results take the kind of the left operand; an integer combined
    with a float truncates the float first.
    """

    value: Any

    def _make(self, value: Any) -> Value:
        raise NotImplementedError

    def _operand(self, other: Value) -> Any:
        """The Python number used for arithmetic with ``other``."""
        if not isinstance(other, NumberValue):
            raise self.illegal_operation(other)
        return other.value

    def _compared(self, other: Value) -> Any:
        if not isinstance(other, NumberValue):
            raise self.illegal_operation(other)
        return other.value

    def _divide(self, a: Any, b: Any) -> Any:
        raise NotImplementedError

    def _modulo(self, a: Any, b: Any) -> Any:
        raise NotImplementedError

    def _power(self, a: Any, b: Any) -> Any:
        raise NotImplementedError

    def added_to(self, other: Value) -> Value:
        return self._make(self.value + self._operand(other))

    def subbed_by(self, other: Value) -> Value:
        return self._make(self.value - self._operand(other))

    def multiplied_by(self, other: Value) -> Value:
        return self._make(self.value * self._operand(other))

    def divided_by(self, other: Value) -> Value:
        operand = self._operand(other)
        if operand == 0:
            raise self.runtime_error(RuntimeTag.MATH, "Division by zero", other)
        return self._make(self._divide(self.value, operand))

    def modulo_by(self, other: Value) -> Value:
        operand = self._operand(other)
        if operand == 0:
            raise self.runtime_error(RuntimeTag.MATH, "Modulo by zero", other)
        return self._make(self._modulo(self.value, operand))

    def powered_by(self, other: Value) -> Value:
        operand = self._operand(other)
        try:
            return self._make(self._power(self.value, operand))
        except (OverflowError, ValueError, ZeroDivisionError) as exc:
            raise self.runtime_error(RuntimeTag.MATH, f"Invalid power operation: {exc}", other)

    def compare_less_than(self, other: Value) -> Value:
        return BooleanValue(self.value < self._compared(other)).set_context(self.context)

    def compare_greater_than(self, other: Value) -> Value:
        return BooleanValue(self.value > self._compared(other)).set_context(self.context)

    def compare_less_than_or_equal(self, other: Value) -> Value:
        return BooleanValue(self.value <= self._compared(other)).set_context(self.context)

    def compare_greater_than_or_equal(self, other: Value) -> Value:
        return BooleanValue(self.value >= self._compared(other)).set_context(self.context)

    def invert(self) -> Value:
        return self._make(1 if self.value == 0 else 0)

    def is_true(self) -> bool:
        return self.value != 0

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.value == self.value

    def __hash__(self) -> int:
        return hash((self.type_name, self.value))

    def __str__(self) -> str:
        return str(self.value)


class IntegerValue(NumberValue):
    """An arbitrary-precision integer."""

    type_name = "integer"

    def __init__(self, value: int):
        super().__init__()
        self.value = int(value)

    def copy(self) -> Value:
        return IntegerValue(self.value).set_position(self.span).set_context(self.context)

    def _make(self, value: Any) -> Value:
        return IntegerValue(int(value)).set_context(self.context)

    def _operand(self, other: Value) -> Any:
        if not isinstance(other, NumberValue):
            raise self.illegal_operation(other)
        return _whole_number(self, other)

    def _divide(self, a: int, b: int) -> int:
        return _truncated_division(a, b)

    def _modulo(self, a: int, b: int) -> int:
        return a - b * _truncated_division(a, b)

    def _power(self, a: int, b: int) -> int:
        if b < 0:
            return int(a ** b)
        return a ** b

    def _bitwise_operand(self, other: Value) -> int:
        if not isinstance(other, IntegerValue):
            raise self.illegal_operation(other)
        return other.value

    def bitwise_or(self, other: Value) -> Value:
        return self._make(self.value | self._bitwise_operand(other))

    def bitwise_xor(self, other: Value) -> Value:
        return self._make(self.value ^ self._bitwise_operand(other))

    def bitwise_and(self, other: Value) -> Value:
        return self._make(self.value & self._bitwise_operand(other))

    def bitwise_left_shift(self, other: Value) -> Value:
        count = self._bitwise_operand(other)
        if count < 0:
            raise self.runtime_error(RuntimeTag.MATH, "Shift count cannot be negative", other)
        return self._make(self.value << count)

    def bitwise_right_shift(self, other: Value) -> Value:
        count = self._bitwise_operand(other)
        if count < 0:
            raise self.runtime_error(RuntimeTag.MATH, "Shift count cannot be negative", other)
        return self._make(self.value >> count)

    def bitwise_not(self) -> Value:
        return self._make(~self.value)

    def members(self) -> Dict[str, Value]:
        members = self._conversions("as_string", "as_character_list", "as_boolean")
        members["as_float"] = BuiltinFunction(
            "as_float", [], lambda context: FloatValue(_float_number(self, self)))
        return members


class FloatValue(NumberValue):
    """A double precision float."""

    type_name = "float"

    def __init__(self, value: float):
        super().__init__()
        self.value = float(value)

    def copy(self) -> Value:
        return FloatValue(self.value).set_position(self.span).set_context(self.context)

    def _make(self, value: Any) -> Value:
        return FloatValue(float(value)).set_context(self.context)

    def _operand(self, other: Value) -> Any:
        if not isinstance(other, NumberValue):
            raise self.illegal_operation(other)
        return _float_number(self, other)

    def _divide(self, a: float, b: float) -> float:
        return a / b

    def _modulo(self, a: float, b: float) -> float:
        return math.fmod(a, b)

    def _power(self, a: float, b: float) -> float:
        return math.pow(a, b)

    def members(self) -> Dict[str, Value]:
        members = self._conversions("as_string", "as_character_list", "as_boolean")
        members["as_integer"] = BuiltinFunction(
            "as_integer", [], lambda context: IntegerValue(_whole_number(self, self)))
        members["round_to"] = BuiltinFunction("round_to", ["digit"], self._round_to)
        return members

    def _round_to(self, context: Context, digit: Value) -> Value:
        if not isinstance(digit, IntegerValue):
            raise fail(context, RuntimeTag.TYPE, "Digit must be an integer")
        return FloatValue(round(self.value, digit.value))


# =============================================================================
# Sequences
# =============================================================================

def _integer_argument(context: Context, value: Value, name: str) -> int:
    if not isinstance(value, IntegerValue):
        raise fail(context, RuntimeTag.TYPE, f"{name} must be an integer")
    return value.value


def _text_argument(context: Context, value: Value, name: str) -> str:
    if not isinstance(value, (StringValue, CharacterListValue)):
        raise fail(context, RuntimeTag.TYPE, f"{name} must be a string or character_list")
    return value.pure_string()


def _character_argument(context: Context, value: Value) -> str:
    text = _text_argument(context, value, "Value")
    if len(text) != 1:
        raise fail(context, RuntimeTag.TYPE, "Value must be of length 1")
    return text


class SequenceValue(DataValue):
    """
    Shared behaviour of strings, character lists, arrays and lists.

    ``items`` is the underlying Python sequence; ``_from_items`` builds a new
    value of the same kind.
    """

    label = "sequence"

    @property
    def items(self) -> Any:
        raise NotImplementedError

    def _from_items(self, items: Any) -> Value:
        raise NotImplementedError

    def _repeat_count(self, other: Value) -> int:
        if not isinstance(other, NumberValue):
            raise self.illegal_operation(other)
        if other.value < 0:
            raise self.runtime_error(RuntimeTag.MATH, f"{self.label} multiplication by negative value", other)
        return _whole_number(self, other)

    def _divisor(self, other: Value) -> Any:
        if not isinstance(other, NumberValue):
            raise self.illegal_operation(other)
        if other.value == 0:
            raise self.runtime_error(RuntimeTag.MATH, "Division by zero", other)
        if isinstance(other.value, float) and math.isnan(other.value):
            raise self.runtime_error(RuntimeTag.MATH, "Division by nan", other)
        if other.value < 0:
            raise self.runtime_error(RuntimeTag.MATH, f"{self.label} division by negative value", other)
        return other.value

    def _index(self, other: Value, upper: int, inclusive: bool = False) -> int:
        """Validate ``other`` as an index below ``upper`` (or up to it when ``inclusive``)."""
        if not isinstance(other, IntegerValue):
            raise self.illegal_operation(other)
        index = other.value
        if index < 0:
            raise self.runtime_error(RuntimeTag.INDEX, "Index cannot be negative value", other)
        if index > upper or (index == upper and not inclusive):
            raise self.runtime_error(
                RuntimeTag.INDEX, f"Index cannot be greater than or equal to length of {self.type_name}", other)
        return index

    def multiplied_by(self, other: Value) -> Value:
        return self._from_items(self.items * self._repeat_count(other))

    def divided_by(self, other: Value) -> Value:
        divisor = self._divisor(other)
        return self._from_items(self.items[:int(len(self.items) / divisor)])

    def compare_less_than_or_equal(self, other: Value) -> Value:
        return self.element_at(self._index(other, len(self.items)))

    def element_at(self, index: int) -> Value:
        return self.items[index]

    def is_true(self) -> bool:
        return len(self.items) > 0

    def members(self) -> Dict[str, Value]:
        return {
            "length": IntegerValue(len(self.items)),
            "slice": BuiltinFunction("slice", ["start", "end"], self._slice),
        }

    def _slice(self, context: Context, start: Value, end: Value) -> Value:
        """Half-open slice ``[start, end)``."""
        first = _integer_argument(context, start, "Start")
        last = _integer_argument(context, end, "End")
        if first < 0:
            raise fail(context, RuntimeTag.INDEX, "Start cannot be less than zero")
        if last > len(self.items):
            raise fail(context, RuntimeTag.INDEX, f"End cannot be greater than length of {self.type_name}")
        if first > last:
            raise fail(context, RuntimeTag.INDEX, "Start cannot be greater than end")
        return self._from_items(self.items[first:last])

    def _position(self, context: Context, index: Value, inclusive: bool) -> int:
        """Validate a member-call index; ``inclusive`` allows the length itself (insertion)."""
        position = _integer_argument(context, index, "Index")
        if position < 0:
            raise fail(context, RuntimeTag.INDEX, "Index cannot be less than zero")
        if position > len(self.items) or (position == len(self.items) and not inclusive):
            raise fail(context, RuntimeTag.INDEX, f"Index cannot be greater than length of {self.type_name}")
        return position


class StringValue(SequenceValue):
    """An immutable string (``"..."``)."""

    type_name = "string"
    label = "String"

    def __init__(self, value: str):
        super().__init__()
        self.value = value

    @property
    def items(self) -> str:
        return self.value

    def _from_items(self, items: str) -> Value:
        return StringValue(items).set_context(self.context)

    def element_at(self, index: int) -> Value:
        return StringValue(self.value[index]).set_context(self.context)

    def copy(self) -> Value:
        return StringValue(self.value).set_position(self.span).set_context(self.context)

    def added_to(self, other: Value) -> Value:
        if isinstance(other, (StringValue, CharacterListValue)):
            return StringValue(self.value + other.pure_string()).set_context(self.context)
        raise self.illegal_operation(other)

    def check_in(self, other: Value) -> Value:
        if isinstance(other, (StringValue, CharacterListValue)):
            return BooleanValue(self.value in other.pure_string()).set_context(self.context)
        return super().check_in(other)

    def members(self) -> Dict[str, Value]:
        members = super().members()
        members.update(self._conversions("as_boolean", "as_character_list"))
        members.update({
            "insert": BuiltinFunction("insert", ["index", "substring"], self._insert),
            "replace": BuiltinFunction("replace", ["old", "new"], self._replace),
            "split": BuiltinFunction("split", ["substring"], self._split),
            "join": BuiltinFunction("join", ["array"], self._join),
            "as_integer": BuiltinFunction("as_integer", [], self._as_integer),
            "as_float": BuiltinFunction("as_float", [], self._as_float),
        })
        return members

    def _insert(self, context: Context, index: Value, substring: Value) -> Value:
        position = self._position(context, index, inclusive=True)
        text = _text_argument(context, substring, "Substring")
        return StringValue(self.value[:position] + text + self.value[position:])

    def _replace(self, context: Context, old: Value, new: Value) -> Value:
        old_text = _text_argument(context, old, "Old")
        new_text = _text_argument(context, new, "New")
        return StringValue(self.value.replace(old_text, new_text))

    def _split(self, context: Context, substring: Value) -> Value:
        separator = _text_argument(context, substring, "Substring")
        if not separator:
            raise fail(context, RuntimeTag.TYPE, "Substring cannot be empty")
        return ArrayValue([StringValue(part) for part in self.value.split(separator)])

    def _join(self, context: Context, array: Value) -> Value:
        if not isinstance(array, (ArrayValue, ListValue)):
            raise fail(context, RuntimeTag.TYPE, "Array must be an array or list")
        return StringValue(self.value.join(element.pure_string() for element in array.elements))

    def _as_integer(self, context: Context) -> Value:
        try:
            return IntegerValue(int(self.value.strip()))
        except ValueError:
            raise fail(context, RuntimeTag.TYPE, "Could not convert string to integer")

    def _as_float(self, context: Context) -> Value:
        try:
            return FloatValue(float(self.value.strip()))
        except ValueError:
            raise fail(context, RuntimeTag.TYPE, "Could not convert string to float")

    def pure_string(self) -> str:
        return self.value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StringValue) and other.value == self.value

    def __hash__(self) -> int:
        return hash(("string", self.value))

    def __str__(self) -> str:
        return f'"{self.value}"'


class CharacterListValue(SequenceValue):
    """A mutable list of characters (``'...'``)."""

    type_name = "character_list"
    label = "CharacterList"

    def __init__(self, value: Any):
        super().__init__()
        self.characters: List[str] = value if isinstance(value, list) else list(value)

    @property
    def items(self) -> List[str]:
        return self.characters

    def _from_items(self, items: List[str]) -> Value:
        return CharacterListValue(list(items)).set_context(self.context)

    def element_at(self, index: int) -> Value:
        return StringValue(self.characters[index]).set_context(self.context)

    def copy(self) -> Value:
        # Shares storage: in-place edits are visible through every copy
        return CharacterListValue(self.characters).set_position(self.span).set_context(self.context)

    def added_to(self, other: Value) -> Value:
        if isinstance(other, (StringValue, CharacterListValue)):
            self.characters.extend(other.pure_string())
            return NothingValue().set_context(self.context)
        raise self.illegal_operation(other)

    def check_in(self, other: Value) -> Value:
        if isinstance(other, (StringValue, CharacterListValue)):
            return BooleanValue(self.pure_string() in other.pure_string()).set_context(self.context)
        return super().check_in(other)

    def members(self) -> Dict[str, Value]:
        members = super().members()
        members.update(self._conversions("as_string", "as_boolean"))
        members.update({
            "insert": BuiltinFunction("insert", ["index", "value"], self._insert),
            "set": BuiltinFunction("set", ["index", "value"], self._set),
            "remove": BuiltinFunction("remove", ["value"], self._remove),
            "remove_at": BuiltinFunction("remove_at", ["index"], self._remove_at),
            "as_integer": BuiltinFunction("as_integer", [], self._as_integer),
            "as_float": BuiltinFunction("as_float", [], self._as_float),
        })
        return members

    def _insert(self, context: Context, index: Value, value: Value) -> Value:
        position = self._position(context, index, inclusive=True)
        self.characters.insert(position, _character_argument(context, value))
        return NothingValue()

    def _set(self, context: Context, index: Value, value: Value) -> Value:
        position = self._position(context, index, inclusive=False)
        self.characters[position] = _character_argument(context, value)
        return NothingValue()

    def _remove(self, context: Context, value: Value) -> Value:
        character = _character_argument(context, value)
        if character not in self.characters:
            raise fail(context, RuntimeTag.TYPE, "CharacterList does not contain value")
        self.characters.remove(character)
        return NothingValue()

    def _remove_at(self, context: Context, index: Value) -> Value:
        position = self._position(context, index, inclusive=False)
        del self.characters[position]
        return NothingValue()

    def _as_integer(self, context: Context) -> Value:
        try:
            return IntegerValue(int(self.pure_string().strip()))
        except ValueError:
            raise fail(context, RuntimeTag.TYPE, "Could not convert character_list to integer")

    def _as_float(self, context: Context) -> Value:
        try:
            return FloatValue(float(self.pure_string().strip()))
        except ValueError:
            raise fail(context, RuntimeTag.TYPE, "Could not convert character_list to float")

    def pure_string(self) -> str:
        return "".join(self.characters)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CharacterListValue) and other.characters == self.characters

    def __hash__(self) -> int:
        return hash(("character_list", self.pure_string()))

    def __str__(self) -> str:
        return f"'{self.pure_string()}'"


class ArrayValue(SequenceValue):
    """An immutable sequence (``(a, b)``)."""

    type_name = "array"
    label = "Array"

    def __init__(self, elements: Any):
        super().__init__()
        self.elements: Tuple[Value, ...] = tuple(elements)

    @property
    def items(self) -> Tuple[Value, ...]:
        return self.elements

    def _from_items(self, items: Any) -> Value:
        return ArrayValue(items).set_context(self.context)

    def copy(self) -> Value:
        return ArrayValue(self.elements).set_position(self.span).set_context(self.context)

    def members(self) -> Dict[str, Value]:
        members = super().members()
        members.update(self._conversions("as_boolean", "as_string", "as_character_list"))
        return members

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ArrayValue) and other.elements == self.elements

    def __hash__(self) -> int:
        return hash(("array", self.elements))

    def __str__(self) -> str:
        return "(" + ", ".join(str(element) for element in self.elements) + ")"


class ListValue(SequenceValue):
    """A mutable sequence (``[a, b]``)."""

    type_name = "list"
    label = "List"

    def __init__(self, elements: Any):
        super().__init__()
        self.elements: List[Value] = elements if isinstance(elements, list) else list(elements)

    @property
    def items(self) -> List[Value]:
        return self.elements

    def _from_items(self, items: Any) -> Value:
        return ListValue(list(items)).set_context(self.context)

    def copy(self) -> Value:
        # Shares storage: in-place edits are visible through every copy
        return ListValue(self.elements).set_position(self.span).set_context(self.context)

    def added_to(self, other: Value) -> Value:
        """Append ``other`` in place, or extend with another list."""
        if isinstance(other, ListValue):
            self.elements.extend(list(other.elements))
        else:
            self.elements.append(other)
        return NothingValue().set_context(self.context)

    def subbed_by(self, other: Value) -> Value:
        """Remove and return the element at index ``other``."""
        return self.elements.pop(self._index(other, len(self.elements)))

    def members(self) -> Dict[str, Value]:
        members = super().members()
        members.update(self._conversions("as_boolean", "as_string", "as_character_list"))
        members.update({
            "insert": BuiltinFunction("insert", ["index", "value"], self._insert),
            "set": BuiltinFunction("set", ["index", "value"], self._set),
            "remove": BuiltinFunction("remove", ["value"], self._remove),
            "remove_at": BuiltinFunction("remove_at", ["index"], self._remove_at),
            "as_array": BuiltinFunction("as_array", [], lambda context: ArrayValue(self.elements)),
        })
        return members

    def _insert(self, context: Context, index: Value, value: Value) -> Value:
        self.elements.insert(self._position(context, index, inclusive=True), value)
        return NothingValue()

    def _set(self, context: Context, index: Value, value: Value) -> Value:
        self.elements[self._position(context, index, inclusive=False)] = value
        return NothingValue()

    def _remove(self, context: Context, value: Value) -> Value:
        if value not in self.elements:
            raise fail(context, RuntimeTag.TYPE, "List does not contain value")
        self.elements.remove(value)
        return NothingValue()

    def _remove_at(self, context: Context, index: Value) -> Value:
        return self.elements.pop(self._position(context, index, inclusive=False))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ListValue) and other.elements == self.elements

    def __hash__(self) -> int:
        return hash(("list", tuple(self.elements)))

    def __str__(self) -> str:
        return "[" + ", ".join(str(element) for element in self.elements) + "]"


class DictionaryValue(DataValue):
    """A mutable key/value mapping (``{k : v}``)."""

    type_name = "dictionary"

    def __init__(self, pairs: Dict[Value, Value]):
        super().__init__()
        self.pairs = pairs

    def copy(self) -> Value:
        # Shares storage: in-place edits are visible through every copy
        return DictionaryValue(self.pairs).set_position(self.span).set_context(self.context)

    @staticmethod
    def check_key(key: Value) -> Value:
        """Reject keys whose contents can change after insertion."""
        if isinstance(key, (ListValue, CharacterListValue, DictionaryValue)):
            raise key.runtime_error(RuntimeTag.TYPE, f"Type '{key.type_name}' cannot be used as a dictionary key")
        if isinstance(key, ArrayValue):
            for element in key.elements:
                DictionaryValue.check_key(element)
        return key

    def _missing_key(self, key: Value) -> EvaluationError:
        return self.runtime_error(RuntimeTag.KEY, "Key does not correspond to any value in dictionary", key)

    def added_to(self, other: Value) -> Value:
        """Merge another dictionary in place."""
        if not isinstance(other, DictionaryValue):
            raise self.illegal_operation(other)
        self.pairs.update(other.pairs)
        return NothingValue().set_context(self.context)

    def subbed_by(self, other: Value) -> Value:
        """Remove key ``other``."""
        if other not in self.pairs:
            raise self._missing_key(other)
        del self.pairs[other]
        return NothingValue().set_context(self.context)

    def divided_by(self, other: Value) -> Value:
        if not isinstance(other, NumberValue):
            raise self.illegal_operation(other)
        if other.value == 0:
            raise self.runtime_error(RuntimeTag.MATH, "Division by zero", other)
        if isinstance(other.value, float) and math.isnan(other.value):
            raise self.runtime_error(RuntimeTag.MATH, "Division by nan", other)
        if other.value < 0:
            raise self.runtime_error(RuntimeTag.MATH, "Dictionary division by negative value", other)
        kept = list(self.pairs.items())[:int(len(self.pairs) / other.value)]
        return DictionaryValue(dict(kept)).set_context(self.context)

    def compare_less_than_or_equal(self, other: Value) -> Value:
        """Look up key ``other``."""
        if other not in self.pairs:
            raise self._missing_key(other)
        return self.pairs[other]

    def is_true(self) -> bool:
        return len(self.pairs) > 0

    def members(self) -> Dict[str, Value]:
        members = self._conversions("as_boolean", "as_string", "as_character_list")
        members.update({
            "length": IntegerValue(len(self.pairs)),
            "keys": ArrayValue(self.pairs.keys()),
            "values": ArrayValue(self.pairs.values()),
            "pairs": ArrayValue(ArrayValue(pair) for pair in self.pairs.items()),
        })
        return members

    def __eq__(self, other: object) -> bool:
        return isinstance(other, DictionaryValue) and other.pairs == self.pairs

    def __hash__(self) -> int:
        return hash(("dictionary", frozenset(self.pairs.items())))

    def __str__(self) -> str:
        return "{" + ", ".join(f"{key} : {value}" for key, value in self.pairs.items()) + "}"


# =============================================================================
# Callables
# =============================================================================

class BaseFunction(Value):
    """Shared argument handling for everything that can be called."""

    def __init__(self, name: Optional[str]):
        super().__init__()
        self.name = name or "<anonymous>"

    def check_arguments(self, parameters: List[str], args: List[Value]) -> None:
        if len(args) > len(parameters):
            raise self.runtime_error(
                RuntimeTag.ARGUMENTS, f"{len(args) - len(parameters)} too many arguments passed into '{self.name}'")
        if len(args) < len(parameters):
            raise self.runtime_error(
                RuntimeTag.ARGUMENTS, f"{len(parameters) - len(args)} too few arguments passed into '{self.name}'")

    def bind_arguments(self, parameters: List[str], args: List[Value], context: Context) -> None:
        for name, value in zip(parameters, args):
            context.symbols.set(name, value.copy().set_context(context))

    def is_true(self) -> bool:
        return True


class BuiltinFunction(BaseFunction):
    """
    A function implemented in Python.

    The implementation receives the call context followed by the
    arguments, and returns a Value or raises EvaluationError.
    """

    type_name = "builtin_function"

    def __init__(self, name: str, parameters: List[str], implementation: Callable[..., Value], doc: str = ""):
        super().__init__(name)
        self.parameters = parameters
        self.implementation = implementation
        self.doc = doc

    def copy(self) -> Value:
        function = BuiltinFunction(self.name, self.parameters, self.implementation, self.doc)
        return function.set_position(self.span).set_context(self.context)

    def execute(self, args: List[Value]) -> RuntimeResult:
        result = RuntimeResult()
        context = Context(self.name, self.context, self.span)
        try:
            self.check_arguments(self.parameters, args)
            value = self.implementation(context, *args)
        except EvaluationError as error:
            return result.failure(error)
        return result.success(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, BuiltinFunction) and other.implementation == self.implementation

    def __hash__(self) -> int:
        return hash(("builtin_function", self.name))

    def __str__(self) -> str:
        return f"<builtin function {self.name}>"


class FunctionValue(BaseFunction):
    """
    A user-defined function.

    The body runs in a fresh context chained to the context the function
    value was last accessed from.
    """

    type_name = "function"

    def __init__(self, name: Optional[str], parameters: List[str], body: "AstNode",
                 discard_result: bool, interpreter: "Interpreter", special: bool = False):
        super().__init__(name)
        self.parameters = parameters
        self.body = body
        self.discard_result = discard_result
        self.interpreter = interpreter
        self.special = special

    def copy(self) -> Value:
        function = FunctionValue(
            self.name, self.parameters, self.body, self.discard_result, self.interpreter, self.special)
        return function.set_position(self.span).set_context(self.context)

    def execute(self, args: List[Value]) -> RuntimeResult:
        result = RuntimeResult()
        context = Context(self.name, self.context, self.span)
        try:
            self.check_arguments(self.parameters, args)
        except EvaluationError as error:
            return result.failure(error)
        self.bind_arguments(self.parameters, args, context)

        value = result.register(self.interpreter.evaluate(self.body, context))
        if result.error is not None:
            return result
        if result.loop_should_skip or result.loop_should_stop:
            return result.failure(error_runtime(
                RuntimeTag.ILLEGAL_OPERATION, "'skip' and 'stop' can only be used inside loops",
                self.span, context))
        if result.function_return_value is not None:
            return result.success(result.function_return_value)
        if self.discard_result:
            return result.success(NothingValue())
        return result.success(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FunctionValue) and other.body is self.body and other.name == self.name

    def __hash__(self) -> int:
        return hash(("function", self.name, id(self.body)))

    def __str__(self) -> str:
        return f"<function {self.name}>"


class ClassValue(BaseFunction):
    """
    An object definition; calling it creates an ObjectValue.

    Parent class bodies run first, in the same internal context, so their
    members are inherited and can be overridden by the child body.
    """

    type_name = "class"

    def __init__(self, name: Optional[str], parameters: List[str], body: "AstNode",
                 parents: List["ClassValue"], interpreter: "Interpreter"):
        super().__init__(name)
        self.parameters = parameters
        self.body = body
        self.parents = parents
        self.interpreter = interpreter

    def copy(self) -> Value:
        klass = ClassValue(self.name, self.parameters, self.body, self.parents, self.interpreter)
        return klass.set_position(self.span).set_context(self.context)

    def run_body(self, context: Context) -> RuntimeResult:
        """Run parent bodies, then this body, inside ``context``."""
        result = RuntimeResult()
        for parent in self.parents:
            result.register(parent.run_body(context))
            if result.should_return():
                return result

        result.register(self.interpreter.evaluate(self.body, context))
        if result.error is not None:
            return result
        if result.should_return():
            return result.failure(error_runtime(
                RuntimeTag.ILLEGAL_OPERATION, "'return', 'skip' and 'stop' cannot be used in an object body",
                self.span, context))
        return result.success(NothingValue())

    def execute(self, args: List[Value]) -> RuntimeResult:
        result = RuntimeResult()
        context = Context(self.name, self.context, self.span)
        try:
            self.check_arguments(self.parameters, args)
        except EvaluationError as error:
            return result.failure(error)
        self.bind_arguments(self.parameters, args, context)

        result.register(self.run_body(context))
        if result.should_return():
            return result
        instance = ObjectValue(self.name, context, self)
        return result.success(instance.set_position(self.span).set_context(self.context))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ClassValue) and other.body is self.body and other.name == self.name

    def __hash__(self) -> int:
        return hash(("class", self.name, id(self.body)))

    def __str__(self) -> str:
        return f"<class {self.name}>"


class ObjectValue(Value):
    """
    An instance of a ClassValue.

    Operations are dispatched to ``special`` methods defined in the
    instance's internal context. Without one, equality is identity,
    truthiness is true and every other operation is illegal.
    """

    type_name = "object"

    def __init__(self, name: str, internal_context: Context, klass: Optional[ClassValue] = None):
        super().__init__()
        self.name = name
        self.internal_context = internal_context
        self.klass = klass

    def copy(self) -> Value:
        instance = ObjectValue(self.name, self.internal_context, self.klass)
        return instance.set_position(self.span).set_context(self.context)

    def special(self, name: str) -> Optional[FunctionValue]:
        method = self.internal_context.symbols.get_local(name)
        if isinstance(method, FunctionValue) and method.special:
            return method
        return None

    def call_special(self, name: str, *args: Value) -> Optional[Value]:
        """Run special method ``name``; None when the object does not define it."""
        method = self.special(name)
        if method is None:
            return None
        call = method.copy().set_position(self.span).set_context(self.internal_context)
        result = call.execute(list(args))
        if result.error is not None:
            raise result.error
        return result.value

    def _binary(self, name: str, other: Value) -> Value:
        value = self.call_special(name, other)
        if value is None:
            raise self.illegal_operation(other)
        return value

    def added_to(self, other: Value) -> Value:
        return self._binary("added_to", other)

    def subbed_by(self, other: Value) -> Value:
        return self._binary("subbed_by", other)

    def multiplied_by(self, other: Value) -> Value:
        return self._binary("multiplied_by", other)

    def divided_by(self, other: Value) -> Value:
        return self._binary("divided_by", other)

    def modulo_by(self, other: Value) -> Value:
        return self._binary("modulo_by", other)

    def powered_by(self, other: Value) -> Value:
        return self._binary("powered_by", other)

    def compare_equal(self, other: Value) -> Value:
        value = self.call_special("compare_equal", other)
        return super().compare_equal(other) if value is None else value

    def compare_not_equal(self, other: Value) -> Value:
        value = self.call_special("compare_not_equal", other)
        return super().compare_not_equal(other) if value is None else value

    def compare_less_than(self, other: Value) -> Value:
        return self._binary("compare_less_than", other)

    def compare_greater_than(self, other: Value) -> Value:
        return self._binary("compare_greater_than", other)

    def compare_less_than_or_equal(self, other: Value) -> Value:
        return self._binary("compare_less_than_or_equal", other)

    def compare_greater_than_or_equal(self, other: Value) -> Value:
        return self._binary("compare_greater_than_or_equal", other)

    def compare_and(self, other: Value) -> Value:
        value = self.call_special("compare_and", other)
        return super().compare_and(other) if value is None else value

    def compare_or(self, other: Value) -> Value:
        value = self.call_special("compare_or", other)
        return super().compare_or(other) if value is None else value

    def bitwise_or(self, other: Value) -> Value:
        return self._binary("bitwise_or", other)

    def bitwise_xor(self, other: Value) -> Value:
        return self._binary("bitwise_xor", other)

    def bitwise_and(self, other: Value) -> Value:
        return self._binary("bitwise_and", other)

    def bitwise_left_shift(self, other: Value) -> Value:
        return self._binary("bitwise_left_shift", other)

    def bitwise_right_shift(self, other: Value) -> Value:
        return self._binary("bitwise_right_shift", other)

    def bitwise_not(self) -> Value:
        value = self.call_special("bitwise_not")
        if value is None:
            raise self.illegal_operation()
        return value

    def invert(self) -> Value:
        value = self.call_special("invert")
        if value is None:
            raise self.illegal_operation()
        return value

    def contains(self, item: Value) -> Value:
        """``item in self`` through the ``check_in`` special method."""
        value = self.call_special("check_in", item)
        if value is None:
            raise item.illegal_operation(self)
        return value

    def is_true(self) -> bool:
        value = self.call_special("is_true")
        if value is None:
            return True
        if not isinstance(value, BooleanValue):
            raise self.runtime_error(RuntimeTag.TYPE, "Special method 'is_true' must return a boolean")
        return value.value

    def pure_string(self) -> str:
        value = self.call_special("as_string")
        if value is None:
            return str(self)
        return value.pure_string()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ObjectValue) and other.internal_context is self.internal_context

    def __hash__(self) -> int:
        value = self.call_special("hash")
        if value is None:
            return id(self.internal_context)
        if not isinstance(value, IntegerValue):
            raise self.runtime_error(RuntimeTag.TYPE, "Special method 'hash' must return an integer")
        return value.value

    def __str__(self) -> str:
        return f"<object {self.name}>"


def to_python(value: Value) -> Any:
    """Convert a runtime value into plain Python data (for tests and tooling)."""
    if isinstance(value, NothingValue):
        return None
    if isinstance(value, (BooleanValue, IntegerValue, FloatValue, StringValue)):
        return value.value
    if isinstance(value, CharacterListValue):
        return value.pure_string()
    if isinstance(value, ArrayValue):
        return tuple(to_python(element) for element in value.elements)
    if isinstance(value, ListValue):
        return [to_python(element) for element in value.elements]
    if isinstance(value, DictionaryValue):
        return {to_python(key): to_python(item) for key, item in value.pairs.items()}
    return value
