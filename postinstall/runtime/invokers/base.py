"""
base.py - Abstract base class for plugin invokers.

An invoker runs one step's entry point with its argument vector inside an
isolated scope and reports the outcome. Implementations differ in where
the code runs (this interpreter or a child process), not in the contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import ExecutionContext, Invocation, InvocationResult


class PluginInvoker(ABC):
    """Invokes a loaded step.

    Invokers are responsible for:
    - Acquiring the isolated scope immediately before the call
    - Calling the entry point synchronously, with no timeout
    - Releasing the scope on every exit path
    - Turning anything the step raises into a failed InvocationResult

    Invokers do NOT own:
    - Locating archives or entry points (that's the executor's job)
    - Output verification (that's the pipeline's job)
    """

    @property
    @abstractmethod
    def invoker_id(self) -> str:
        """Unique identifier for this invoker (e.g., 'inprocess')."""
        ...

    @abstractmethod
    def invoke(self, invocation: Invocation, context: ExecutionContext) -> InvocationResult:
        """Run the entry point and return the result.

        Args:
            invocation: Resolved module, entry point, classpath and args.
            context: Scoped context published to the running step.

        Returns:
            InvocationResult; failures are reported here, not raised.
        """
        ...


def exit_status(code: object) -> int:
    """Normalise a SystemExit code the way the interpreter does."""
    if code is None:
        return 0
    if isinstance(code, bool):
        return int(code)
    if isinstance(code, int):
        return code
    return 1


def return_status(value: object) -> int:
    """Status of an entry point's return value: ints count, anything else is success."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0
