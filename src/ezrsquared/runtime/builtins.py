"""
Built-in function registry and the global context.

The global context ``<GLC>`` is created once per process and locked; every
``<main>`` context of a run is chained to it.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .. import __version__
from ..errors import RuntimeTag, error_runtime
from .context import Context
from .values import (
    Value, BuiltinFunction, NothingValue, BooleanValue, IntegerValue,
    StringValue, CharacterListValue, fail,
)

log = logging.getLogger(__name__)


# Global names of the error tags
ERROR_TAG_NAMES: Dict[str, str] = {
    "err_any": RuntimeTag.ANY,
    "err_illop": RuntimeTag.ILLEGAL_OPERATION,
    "err_undef": RuntimeTag.UNDEFINED,
    "err_key": RuntimeTag.KEY,
    "err_index": RuntimeTag.INDEX,
    "err_args": RuntimeTag.ARGUMENTS,
    "err_type": RuntimeTag.TYPE,
    "err_math": RuntimeTag.MATH,
    "err_run": RuntimeTag.RUN,
    "err_io": RuntimeTag.IO,
}


def _text(context: Context, value: Value, name: str) -> str:
    if not isinstance(value, (StringValue, CharacterListValue)):
        raise fail(context, RuntimeTag.TYPE, f"{name} must be a string or character_list")
    return value.pure_string()


class BuiltinRegistry:
    """
    Registry of all built-in functions.

    Functions are registered by name and bound into the global context.
    """

    def __init__(self):
        self._functions: Dict[str, BuiltinFunction] = {}
        self._register_all()

    def get_function(self, name: str) -> Optional[BuiltinFunction]:
        """Look up a function by name."""
        return self._functions.get(name)

    def names(self) -> List[str]:
        return list(self._functions)

    def register(self, name: str, parameters: List[str], implementation: Callable[..., Value],
                 doc: str = "") -> None:
        """Register a function."""
        self._functions[name] = BuiltinFunction(name, parameters, implementation, doc)

    def _register_all(self) -> None:
        """Register all built-in functions."""
        self._register_io_functions()
        self._register_value_functions()
        self._register_script_functions()

    # --- Console I/O ---

    def _register_io_functions(self) -> None:
        """Register console functions."""

        def _show(context: Context, message: Value) -> Value:
            print(message.pure_string())
            return NothingValue()

        def _show_error(context: Context, tag: Value, message: Value) -> Value:
            tag_text = _text(context, tag, "Tag")
            message_text = _text(context, message, "Message")
            raise error_runtime(tag_text, message_text, context.parent_entry_span, context)

        def _get(context: Context, message: Value) -> Value:
            prompt = "" if isinstance(message, NothingValue) else message.pure_string()
            try:
                return StringValue(input(prompt))
            except EOFError:
                raise fail(context, RuntimeTag.IO, "Reached the end of input")

        def _clear(context: Context) -> Value:
            print("\033[2J\033[H", end="", flush=True)
            return NothingValue()

        self.register("show", ["message"], _show, "Print a value to stdout")
        self.register("show_error", ["tag", "message"], _show_error, "Raise a runtime error with a custom tag")
        self.register("get", ["message"], _get, "Read a line from stdin")
        self.register("clear", [], _clear, "Clear the terminal")

    # --- Value inspection ---

    def _register_value_functions(self) -> None:
        """Register hashing and type inspection."""

        def _hash(context: Context, value: Value) -> Value:
            return IntegerValue(hash(value))

        def _type_of(context: Context, value: Value) -> Value:
            return StringValue(value.type_name)

        self.register("hash", ["value"], _hash, "Hash of a value")
        self.register("type_of", ["value"], _type_of, "Type name of a value")

    # --- Scripts ---

    def _register_script_functions(self) -> None:
        """Register script execution."""

        def _run(context: Context, file: Value) -> Value:
            from .interpreter import Interpreter, run

            file_name = _text(context, file, "File")
            path = Path(file_name)
            if not path.is_file():
                raise fail(context, RuntimeTag.IO, f'Script "{file_name}" does not exist')

            log.debug("run(%s) from context %s", file_name, context.name)
            interpreter = context.find_interpreter() or Interpreter()
            script_context = Context("<main>", context, context.parent_entry_span)
            error, value = run(file_name, path.read_text(encoding="utf-8"), script_context, interpreter)
            if error is not None:
                raise fail(context, RuntimeTag.RUN, f'Failed to execute script "{file_name}"\n\n{error.format()}')
            return value

        self.register("run", ["file"], _run, "Execute a script file and return its result")


# Global singleton registry
_registry: Optional[BuiltinRegistry] = None
_global_context: Optional[Context] = None


def get_builtin_registry() -> BuiltinRegistry:
    """Get the global built-in function registry."""
    global _registry
    if _registry is None:
        _registry = BuiltinRegistry()
    return _registry


def get_global_context() -> Context:
    """Get the locked process-wide global context, creating it on first use."""
    global _global_context
    if _global_context is None:
        context = Context("<GLC>", locked=True)
        symbols = context.symbols
        symbols.set("nothing", NothingValue())
        symbols.set("true", BooleanValue(True))
        symbols.set("false", BooleanValue(False))
        symbols.set("version__", StringValue(__version__))
        for name, tag in ERROR_TAG_NAMES.items():
            symbols.set(name, StringValue(tag))

        registry = get_builtin_registry()
        for name in registry.names():
            symbols.set(name, registry.get_function(name))

        for value in symbols.symbols.values():
            value.set_context(context)
        _global_context = context
    return _global_context
