"""
Evaluation result carrier.

Control flow (return, skip, stop) and runtime errors travel up the tree as
flags on a RuntimeResult rather than as Python exceptions.
"""

from typing import TYPE_CHECKING, Optional

from ..errors import EvaluationError

if TYPE_CHECKING:
    from .values import Value


class RuntimeResult:
    """
    Outcome of evaluating one node.

    At most one of ``value``, ``error``, ``function_return_value``,
    ``loop_should_skip`` and ``loop_should_stop`` is meaningful at a time.
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.value: Optional["Value"] = None
        self.error: Optional[EvaluationError] = None
        self.function_return_value: Optional["Value"] = None
        self.loop_should_skip = False
        self.loop_should_stop = False

    def register(self, result: "RuntimeResult") -> Optional["Value"]:
        """Absorb a sub-result's control state and return its value."""
        self.error = result.error
        self.function_return_value = result.function_return_value
        self.loop_should_skip = result.loop_should_skip
        self.loop_should_stop = result.loop_should_stop
        return result.value

    def success(self, value: "Value") -> "RuntimeResult":
        self.reset()
        self.value = value
        return self

    def success_return(self, value: "Value") -> "RuntimeResult":
        self.reset()
        self.function_return_value = value
        return self

    def success_skip(self) -> "RuntimeResult":
        self.reset()
        self.loop_should_skip = True
        return self

    def success_stop(self) -> "RuntimeResult":
        self.reset()
        self.loop_should_stop = True
        return self

    def failure(self, error: EvaluationError) -> "RuntimeResult":
        self.reset()
        self.error = error
        return self

    def should_return(self) -> bool:
        """True when evaluation must unwind instead of continuing."""
        return (
            self.error is not None
            or self.function_return_value is not None
            or self.loop_should_skip
            or self.loop_should_stop
        )
