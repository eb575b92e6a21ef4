"""Progress tracking and the single error reporting funnel.

The presentation layer (progress bars, message pane, error dialog) is an
external collaborator; it plugs in by implementing ProgressMonitor. The
default LoggingMonitor writes everything through ``logging``.

Usage:
    monitor = LoggingMonitor()
    reporter = Reporter(monitor, headless=True)
    monitor.global_progress.set_max(3)
    reporter.log("=" * 79)
    reporter.error("  Missing Processor Dependencies: \\n  a:b:1.0")
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)


class MessagePriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    ERROR = "error"


class ProgressBar:
    """A single progress indicator (global or per step)."""

    def __init__(self, name: str):
        self.name = name
        self.max_progress = 0
        self.current = 0
        self.indeterminate = False

    def set_max(self, value: int) -> None:
        """Start a new extent; progress restarts at zero."""
        self.max_progress = max(0, int(value))
        self.current = 0
        self.indeterminate = False

    def progress(self, value: int) -> None:
        self.current = max(0, int(value))
        if self.max_progress:
            self.current = min(self.current, self.max_progress)

    def percentage(self, fraction: float) -> None:
        """Set progress as a fraction in [0, 1] of a 100-unit scale."""
        fraction = min(1.0, max(0.0, fraction))
        self.max_progress = 100
        self.current = int(round(fraction * 100))
        self.indeterminate = False

    def set_indeterminate(self, value: bool) -> None:
        self.indeterminate = value

    @property
    def fraction(self) -> Optional[float]:
        """Completed fraction, or None while indeterminate or unbounded."""
        if self.indeterminate or self.max_progress == 0:
            return None
        return self.current / self.max_progress

    def __repr__(self) -> str:
        state = "indeterminate" if self.indeterminate else f"{self.current}/{self.max_progress}"
        return f"ProgressBar({self.name!r}, {state})"


class ProgressMonitor(ABC):
    """Interface for whatever presents progress to the user."""

    def __init__(self):
        self.global_progress = ProgressBar("global")
        self.step_progress = ProgressBar("step")
        self.current_step: Optional[str] = None

    @abstractmethod
    def message(self, text: str, priority: MessagePriority = MessagePriority.NORMAL) -> None:
        ...

    def start(self, label: str) -> None:
        self.message(label, MessagePriority.HIGH)

    def stage(self, label: str) -> None:
        self.message(label, MessagePriority.HIGH)

    def set_current_step(self, label: str) -> None:
        self.current_step = label
        self.step_progress = ProgressBar("step")
        self.message(label)

    def show_error(self, message: str) -> None:
        """Surface an error summary (e.g., a dialog). Headless monitors do nothing."""


class LoggingMonitor(ProgressMonitor):
    """Headless monitor: messages go to the module logger."""

    _LEVELS = {
        MessagePriority.LOW: logging.DEBUG,
        MessagePriority.NORMAL: logging.INFO,
        MessagePriority.HIGH: logging.INFO,
        MessagePriority.ERROR: logging.ERROR,
    }

    def message(self, text: str, priority: MessagePriority = MessagePriority.NORMAL) -> None:
        logger.log(self._LEVELS[priority], "%s", text)


class RecordingMonitor(ProgressMonitor):
    """Keeps every message in memory; handy for embedding and tests."""

    def __init__(self):
        super().__init__()
        self.messages: List[str] = []
        self.errors: List[str] = []
        self.steps: List[str] = []

    def message(self, text: str, priority: MessagePriority = MessagePriority.NORMAL) -> None:
        self.messages.append(text)

    def set_current_step(self, label: str) -> None:
        self.steps.append(label)
        super().set_current_step(label)

    def show_error(self, message: str) -> None:
        self.errors.append(message)


class Reporter:
    """Every user-visible message and error goes through here."""

    def __init__(self, monitor: ProgressMonitor, headless: bool = True):
        self.monitor = monitor
        self.headless = headless

    def log(self, message: str, priority: MessagePriority = MessagePriority.NORMAL) -> None:
        for line in message.split("\n"):
            self.monitor.message(line, priority)

    def debug(self, message: str) -> None:
        self.log(message, MessagePriority.LOW)

    def error(self, message: str) -> None:
        """Log ``message`` line by line and surface it to the presentation layer."""
        for line in message.split("\n"):
            self.monitor.message(line, MessagePriority.ERROR)
        if not self.headless:
            self.monitor.show_error(message)
