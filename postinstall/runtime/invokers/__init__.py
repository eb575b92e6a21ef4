"""
invokers/ - Plugin invocation for processing steps.

Interfaces:
- PluginInvoker: invoke(invocation, context) -> InvocationResult

Models:
- Invocation: module archive, entry point, classpath, args
- InvocationResult: success flag plus failure detail
- ExecutionContext: scoped context visible to the running step

Invokers:
- InProcessInvoker: imports the entry point inside an isolated scope
- SubprocessInvoker: runs the entry point in a child interpreter

Usage:
    >>> from postinstall.runtime.invokers import get_invoker
    >>> invoker = get_invoker("inprocess")
    >>> result = invoker.invoke(invocation, context)
"""

from .base import PluginInvoker
from .factory import get_invoker
from .inprocess import ENTRY_POINT_GROUP, InProcessInvoker, load_entry_point
from .models import ExecutionContext, Invocation, InvocationResult, get_execution_context
from .scope import isolated_scope
from .subprocess_runner import SubprocessInvoker

__all__ = [
    "PluginInvoker",
    "InProcessInvoker",
    "SubprocessInvoker",
    "Invocation",
    "InvocationResult",
    "ExecutionContext",
    "ENTRY_POINT_GROUP",
    "get_execution_context",
    "get_invoker",
    "isolated_scope",
    "load_entry_point",
]
