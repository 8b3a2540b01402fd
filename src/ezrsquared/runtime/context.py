"""
Execution contexts for the ezr² interpreter.

A Context is a named activation record (module, function call, object
instance, built-in value internals). Each owns a SymbolTable chained to its
parent's table for lexical lookup. The process-wide global context is
``locked``: ``global`` assignments stop below it.
"""

from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from ..tokens import SourceSpan

if TYPE_CHECKING:
    from .interpreter import Interpreter
    from .values import Value


class SymbolTable:
    """
    Name to Value bindings.

    Lookups fall back to the parent table; writes and removals are local.
    """

    def __init__(self, parent: Optional["SymbolTable"] = None):
        self.symbols: Dict[str, "Value"] = {}
        self.parent = parent

    def get(self, name: str) -> Optional["Value"]:
        """Look up a name here or in any parent table."""
        if name in self.symbols:
            return self.symbols[name]
        if self.parent is not None:
            return self.parent.get(name)
        return None

    def get_local(self, name: str) -> Optional["Value"]:
        return self.symbols.get(name)

    def set(self, name: str, value: "Value") -> None:
        self.symbols[name] = value

    def remove(self, name: str) -> None:
        self.symbols.pop(name, None)

    def names(self) -> List[str]:
        """Locally bound names, in binding order."""
        return list(self.symbols)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None


class Context:
    """A named scope activation record."""

    def __init__(
        self,
        name: str,
        parent: Optional["Context"] = None,
        parent_entry_span: Optional[SourceSpan] = None,
        locked: bool = False,
        symbols: Optional[SymbolTable] = None,
    ):
        self.name = name
        self.parent = parent
        self.parent_entry_span = parent_entry_span
        self.locked = locked
        if symbols is None:
            symbols = SymbolTable(parent.symbols if parent is not None else None)
        self.symbols = symbols
        # Set on the entry context of a run so built-ins can reach the interpreter
        self.interpreter: Optional["Interpreter"] = None

    def __repr__(self) -> str:
        return f"Context({self.name!r})"

    def child(self, name: str, entry_span: Optional[SourceSpan] = None) -> "Context":
        """Create a context nested in this one, entered at ``entry_span``."""
        return Context(name, self, entry_span)

    def root(self) -> "Context":
        """The outermost context (the global context when chained to it)."""
        context = self
        while context.parent is not None:
            context = context.parent
        return context

    def global_target(self) -> "Context":
        """The context ``global`` assignments write into: the last one below a locked parent."""
        context = self
        while context.parent is not None and not context.parent.locked:
            context = context.parent
        return context

    def frames(self) -> Iterator["Context"]:
        """Walk from this context outwards."""
        context: Optional[Context] = self
        while context is not None:
            yield context
            context = context.parent

    def find_interpreter(self) -> Optional["Interpreter"]:
        """The interpreter recorded on the nearest enclosing run context."""
        for frame in self.frames():
            if frame.interpreter is not None:
                return frame.interpreter
        return None
