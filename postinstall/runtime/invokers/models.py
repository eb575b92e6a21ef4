"""
models.py - Data passed into and out of plugin invokers.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..progress import ProgressBar


@dataclass(frozen=True)
class Invocation:
    """Everything needed to call one step's entry point.

    Attributes:
        step_name: Display name used in logs.
        module_path: Archive holding the step's code.
        entry_point: ``package.module:callable`` named by the archive metadata.
        classpath: Dependency archives, in declaration order.
        args: Fully resolved argument vector.
    """

    step_name: str
    module_path: Path
    entry_point: str
    classpath: Tuple[Path, ...] = ()
    args: Tuple[str, ...] = ()

    @property
    def scope_entries(self) -> List[str]:
        """Import path entries for the isolated scope: module first, then classpath."""
        return [str(self.module_path)] + [str(p) for p in self.classpath]


@dataclass
class InvocationResult:
    """Outcome of one invocation."""

    success: bool
    duration_ms: int = 0
    exit_code: Optional[int] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    output: str = ""

    @classmethod
    def ok(cls, duration_ms: int = 0, output: str = "") -> "InvocationResult":
        return cls(success=True, duration_ms=duration_ms, exit_code=0, output=output)

    @classmethod
    def from_exception(cls, exc: BaseException, duration_ms: int = 0) -> "InvocationResult":
        exc_type = type(exc)
        if exc_type.__module__ == "builtins":
            error_type = exc_type.__qualname__
        else:
            error_type = f"{exc_type.__module__}.{exc_type.__qualname__}"
        return cls(
            success=False,
            duration_ms=duration_ms,
            error_type=error_type,
            error_message=str(exc) or None,
        )


@dataclass
class ExecutionContext:
    """Scoped context visible to code running inside an isolated scope.

    Step code reaches it through ``get_execution_context()`` and may set a
    definite extent on ``step_progress`` instead of the default
    indeterminate indicator.
    """

    invocation: Invocation
    step_progress: ProgressBar
    run_id: str = ""


_current_context: contextvars.ContextVar[Optional[ExecutionContext]] = contextvars.ContextVar(
    "postinstall_execution_context", default=None
)


def get_execution_context() -> Optional[ExecutionContext]:
    """The context of the step currently being invoked, or None outside a step."""
    return _current_context.get()
