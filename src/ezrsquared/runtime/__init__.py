"""
ezr² Runtime - Tree-walking interpreter.

This module provides:
- Interpreter: Evaluates ASTs in a Context
- Value: The runtime value family and its operation contract
- Context: Named scopes with chained symbol tables
- ModuleLoader: Resolution of ``include`` targets and native extensions
- BuiltinRegistry: Built-in functions of the global context
"""

from .results import RuntimeResult

from .context import (
    SymbolTable,
    Context,
)

from .values import (
    Value,
    DataValue,
    NothingValue,
    BooleanValue,
    NumberValue,
    IntegerValue,
    FloatValue,
    StringValue,
    CharacterListValue,
    ArrayValue,
    ListValue,
    DictionaryValue,
    BuiltinFunction,
    FunctionValue,
    ClassValue,
    ObjectValue,
    SPECIAL_METHODS,
    BINARY_OPERATIONS,
    UNARY_OPERATIONS,
    to_python,
)

from .builtins import (
    BuiltinRegistry,
    get_builtin_registry,
    get_global_context,
)

from .loader import ModuleLoader

from .interpreter import (
    Interpreter,
    run,
)

__all__ = [
    # Results
    "RuntimeResult",
    # Context
    "SymbolTable",
    "Context",
    # Values
    "Value",
    "DataValue",
    "NothingValue",
    "BooleanValue",
    "NumberValue",
    "IntegerValue",
    "FloatValue",
    "StringValue",
    "CharacterListValue",
    "ArrayValue",
    "ListValue",
    "DictionaryValue",
    "BuiltinFunction",
    "FunctionValue",
    "ClassValue",
    "ObjectValue",
    "SPECIAL_METHODS",
    "BINARY_OPERATIONS",
    "UNARY_OPERATIONS",
    "to_python",
    # Builtins
    "BuiltinRegistry",
    "get_builtin_registry",
    "get_global_context",
    # Loader
    "ModuleLoader",
    # Interpreter
    "Interpreter",
    "run",
]
