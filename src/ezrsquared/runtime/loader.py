"""
Script resolution and loading for ``include``.

A script is looked up by its literal path, then relative to the current
working directory, then in each directory of ``search_paths``. A name
without a suffix also tries ``name.ezr``.

``.py`` files are native extensions: the module must define exactly one
Value subclass, which is constructed and called with no arguments. Any other
file is ezr² source, evaluated as the body of a parameterless class so that
its names end up in the resulting object's internal context.
"""

import importlib.util
import inspect
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from ..errors import EzrError, RuntimeTag, error_runtime
from ..lexer import tokenize
from ..parser import parse
from ..tokens import SourceSpan
from .context import Context
from .results import RuntimeResult
from .values import Value, ClassValue

if TYPE_CHECKING:
    from .interpreter import Interpreter

log = logging.getLogger(__name__)

SCRIPT_SUFFIX = ".ezr"
NATIVE_SUFFIX = ".py"


def binding_name(name: str) -> str:
    """Name a script is bound under: its stem with non-word characters replaced."""
    return re.sub(r"\W", "_", Path(name).stem)


class ModuleLoader:
    """Resolves and loads included scripts and native extensions."""

    def __init__(self, search_paths: Optional[List[str]] = None):
        self.search_paths: List[str] = list(search_paths or [])

    def add_search_path(self, path: str) -> None:
        if path not in self.search_paths:
            self.search_paths.append(path)
            log.debug("Added %s to the script search path", path)

    def candidates(self, name: str) -> List[Path]:
        """Every path tried for ``name``, in order."""
        names = [name]
        if not Path(name).suffix:
            names.append(name + SCRIPT_SUFFIX)

        paths = []
        for candidate in names:
            paths.append(Path(candidate))
            paths.append(Path.cwd() / candidate)
            paths.extend(Path(directory) / candidate for directory in self.search_paths)
        return paths

    def resolve(self, name: str) -> Optional[Path]:
        """Find the file for ``name``, or None."""
        for path in self.candidates(name):
            if path.is_file():
                log.debug("Resolved include %r to %s", name, path)
                return path
        log.debug("Could not resolve include %r", name)
        return None

    def load(self, name: str, span: SourceSpan, context: Context, interpreter: "Interpreter") -> RuntimeResult:
        """
        Load a script or native extension.

        Returns:
            A RuntimeResult holding the loaded value (an object for scripts,
            the extension's value for native files)
        """
        result = RuntimeResult()
        path = self.resolve(name)
        if path is None:
            return result.failure(error_runtime(RuntimeTag.IO, f'Script "{name}" was not found', span, context))

        if path.suffix == NATIVE_SUFFIX:
            return self._load_native(name, path, span, context)
        if path.suffix not in ("", SCRIPT_SUFFIX):
            return result.failure(error_runtime(
                RuntimeTag.IO, f'Script "{name}" has an unsupported extension "{path.suffix}"', span, context))
        return self._load_script(name, path, span, context, interpreter)

    def _load_script(self, name: str, path: Path, span: SourceSpan, context: Context,
                     interpreter: "Interpreter") -> RuntimeResult:
        result = RuntimeResult()
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return result.failure(error_runtime(
                RuntimeTag.IO, f'Could not read script "{name}": {exc}', span, context))

        try:
            program = parse(tokenize(source, str(path)))
        except EzrError as error:
            return result.failure(error_runtime(
                RuntimeTag.RUN, f'Failed to finish executing script "{name}"\n\n{error.format()}', span, context))

        script = ClassValue(binding_name(name), [], program, [], interpreter)
        script.set_position(span).set_context(context)
        return script.execute([])

    def _load_native(self, name: str, path: Path, span: SourceSpan, context: Context) -> RuntimeResult:
        result = RuntimeResult()
        module_name = f"ezrsquared_extension_{binding_name(name)}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            return result.failure(error_runtime(
                RuntimeTag.IO, f'Could not load native extension "{name}"', span, context))

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            return result.failure(error_runtime(
                RuntimeTag.IO, f'Failed to load native extension "{name}": {exc}', span, context))

        classes = [
            member for member in vars(module).values()
            if inspect.isclass(member) and issubclass(member, Value) and member.__module__ == module_name
        ]
        if len(classes) != 1:
            return result.failure(error_runtime(
                RuntimeTag.IO, f'Native extension "{name}" must define exactly one value class, found {len(classes)}',
                span, context))

        log.debug("Loaded native extension %s from %s", classes[0].__name__, path)
        try:
            value = classes[0]()
        except Exception as exc:
            return result.failure(error_runtime(
                RuntimeTag.IO, f'Failed to create native extension "{name}": {exc}', span, context))
        value.set_position(span).set_context(context)
        return value.execute([])
