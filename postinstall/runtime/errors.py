# postinstall/runtime/errors.py
"""Error kinds raised by the post-processing pipeline.

Components raise these; PostProcessors.process is the single place that
catches them, routes the message through the Reporter and returns False.
"""

from __future__ import annotations

from typing import List


class PipelineError(Exception):
    """Base class for every fatal pipeline condition."""

    kind = "pipeline"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationError(PipelineError):
    """Malformed token/output entries or unresolved placeholders."""

    kind = "configuration"


class ResourceError(PipelineError):
    """Missing module archive, classpath dependency or entry point."""

    kind = "resource"


class ExtractionError(PipelineError):
    """Archive extraction or filesystem access failed."""

    kind = "extraction"


class InvocationError(PipelineError):
    """The invoked step raised or exited unsuccessfully."""

    kind = "invocation"


class IntegrityError(PipelineError):
    """Post-execution outputs are missing or have the wrong digest."""

    kind = "integrity"


class ErrorCollector:
    """Collects per-unit problems so they can be raised as one message.

    Each item becomes an indented line under the header, e.g.:

        Missing Processor Dependencies:
          com.example:lib:1.0
          com.example:other:2.0
    """

    def __init__(self, header: str, indent: str = "  "):
        self.header = header
        self.indent = indent
        self.items: List[str] = []

    def add(self, item: str) -> None:
        self.items.append(item)

    def has_errors(self) -> bool:
        return len(self.items) > 0

    def format(self) -> str:
        body = "".join(f"\n{self.indent}{item}" for item in self.items)
        return f"{self.header}{body}"

    def raise_if_any(self, error_cls: type = PipelineError) -> None:
        """Raise ``error_cls`` with the aggregated message if anything was collected."""
        if self.has_errors():
            raise error_cls(self.format())
