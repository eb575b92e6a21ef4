"""
subprocess_runner.py - Run a step's entry point in a child interpreter.

The child starts with ``-E -s`` (no PYTHON* environment, no user site) and
its bootstrap rebuilds ``sys.path`` as the step's module archive and
classpath followed by the standard library, so neither this process's
imported state nor its installed distributions are visible to the step.
The exit code decides success; stderr is kept for the failure message.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from typing import List, Optional

from .base import PluginInvoker
from .inprocess import ENTRY_POINT_GROUP
from .models import ExecutionContext, Invocation, InvocationResult

logger = logging.getLogger(__name__)

# argv[1] is the scope path, argv[2] the entry point, argv[3:] its args
_BOOTSTRAP = '''
import os
import sys
import sysconfig

paths = sysconfig.get_paths()


def within(entry, roots):
    return any(entry == root or entry.startswith(root + os.sep) for root in roots)


def is_stdlib(entry):
    if not entry or within(entry, [paths["purelib"], paths["platlib"]]):
        return False
    if {"site-packages", "dist-packages"} & set(entry.split(os.sep)):
        return False
    if os.path.basename(entry).startswith("python") and entry.endswith(".zip"):
        return True
    return within(entry, [paths["stdlib"], paths["platstdlib"]])


scope = [entry for entry in sys.argv[1].split(os.pathsep) if entry]
sys.path[:] = scope + [entry for entry in sys.path if is_stdlib(entry)]

from importlib.metadata import EntryPoint

fn = EntryPoint(name="main", value=sys.argv[2], group=%r).load()
rv = fn(sys.argv[3:])
sys.exit(rv if isinstance(rv, int) and not isinstance(rv, bool) else 0)
''' % ENTRY_POINT_GROUP

STDERR_TAIL_CHARS = 500


class SubprocessInvoker(PluginInvoker):
    """Spawns ``python -E -s -c <bootstrap> <scope> <entry_point> <args...>``."""

    def __init__(self, python: Optional[str] = None, cwd: Optional[str] = None):
        self.python = python or sys.executable
        self.cwd = cwd

    @property
    def invoker_id(self) -> str:
        return "subprocess"

    def build_command(self, invocation: Invocation) -> List[str]:
        scope = os.pathsep.join(invocation.scope_entries)
        return [self.python, "-E", "-s", "-c", _BOOTSTRAP, scope, invocation.entry_point, *invocation.args]

    def invoke(self, invocation: Invocation, context: ExecutionContext) -> InvocationResult:
        start = time.monotonic()
        cmd = self.build_command(invocation)
        logger.debug("Spawning %s for %s", cmd[0], invocation.step_name)

        try:
            process = subprocess.Popen(
                cmd,
                cwd=self.cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            logger.exception("Could not start processor %s", invocation.step_name)
            return InvocationResult.from_exception(e)

        try:
            stdout_data, stderr_data = process.communicate()
        except Exception as e:
            process.kill()
            process.wait()
            logger.exception("Lost output of processor %s", invocation.step_name)
            return InvocationResult.from_exception(e, int((time.monotonic() - start) * 1000))
        duration_ms = int((time.monotonic() - start) * 1000)

        if stderr_data:
            for line in stderr_data.rstrip().splitlines():
                logger.debug("[%s] %s", invocation.step_name, line)

        if process.returncode != 0:
            detail = stderr_data.strip()[-STDERR_TAIL_CHARS:] if stderr_data else None
            return InvocationResult(
                success=False,
                duration_ms=duration_ms,
                exit_code=process.returncode,
                error_type="SubprocessError",
                error_message=detail or f"Exit code {process.returncode}",
                output=stdout_data or "",
            )
        return InvocationResult.ok(duration_ms, output=stdout_data or "")
