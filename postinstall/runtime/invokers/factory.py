"""
factory.py - Invoker factory.

Mode precedence:
1. Explicit ``mode`` argument
2. POSTINSTALL_INVOKER environment variable
3. ``invoker.mode`` in runtime.yaml
4. Default: "inprocess"
"""

from __future__ import annotations

import logging
from typing import Optional

from postinstall.config.runtime_config import VALID_INVOKER_MODES, get_invoker_mode

from .base import PluginInvoker
from .inprocess import InProcessInvoker
from .subprocess_runner import SubprocessInvoker

logger = logging.getLogger(__name__)


def get_invoker(mode: Optional[str] = None) -> PluginInvoker:
    """Get an invoker by mode.

    Raises:
        ValueError: If ``mode`` is not a known invoker.
    """
    mode = (mode or get_invoker_mode()).lower()
    if mode == "inprocess":
        return InProcessInvoker()
    if mode == "subprocess":
        return SubprocessInvoker()
    raise ValueError(f"Unknown invoker mode: {mode!r} (valid: {', '.join(VALID_INVOKER_MODES)})")

