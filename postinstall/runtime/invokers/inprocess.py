"""
inprocess.py - Run a step's entry point inside the current interpreter.
"""

from __future__ import annotations

import logging
import time
from importlib.metadata import EntryPoint

from .base import PluginInvoker, exit_status, return_status
from .models import ExecutionContext, Invocation, InvocationResult
from .scope import isolated_scope

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "console_scripts"


def load_entry_point(value: str, name: str = "main"):
    """Import and return the callable named by ``package.module:attr``."""
    return EntryPoint(name=name, value=value, group=ENTRY_POINT_GROUP).load()


class InProcessInvoker(PluginInvoker):
    """Imports the entry point from the isolated scope and calls ``fn(args)``.

    A non-zero int return value or ``SystemExit`` code is a failure.
    """

    @property
    def invoker_id(self) -> str:
        return "inprocess"

    def invoke(self, invocation: Invocation, context: ExecutionContext) -> InvocationResult:
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        with isolated_scope(invocation.scope_entries, context):
            try:
                fn = load_entry_point(invocation.entry_point)
                code = return_status(fn(list(invocation.args)))
            except SystemExit as e:
                code = exit_status(e.code)
            except Exception as e:
                logger.exception("Processor %s raised", invocation.step_name)
                return InvocationResult.from_exception(e, elapsed())

        if code != 0:
            return InvocationResult(
                success=False,
                duration_ms=elapsed(),
                exit_code=code,
                error_type="SystemExit",
                error_message=f"exit code {code}",
            )
        return InvocationResult.ok(elapsed())
