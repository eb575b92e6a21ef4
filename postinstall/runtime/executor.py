"""Step executor: locate a step's code, build its invocation, run it.

A step's module archive is a zip (wheel-style) whose distribution metadata
names the entry point: the first ``console_scripts`` entry in
``*.dist-info/entry_points.txt``. The entry point is called as
``fn(args: List[str])``.

Usage:
    invocation = prepare_invocation(step, data, library_dir, reporter)
    run_invocation(invocation, get_invoker(), monitor)
"""

from __future__ import annotations

import logging
from importlib.metadata import distributions
from pathlib import Path
from typing import List, Mapping, Optional

from .artifacts import is_bracketed, resolve_artifact_path
from .errors import ErrorCollector, InvocationError, ResourceError
from .invokers import ENTRY_POINT_GROUP, ExecutionContext, Invocation, InvocationResult, PluginInvoker
from .progress import ProgressMonitor, Reporter
from .tokens import replace_tokens
from .types import Step

logger = logging.getLogger(__name__)


def find_entry_point(archive: Path) -> Optional[str]:
    """Return ``module:attr`` of the archive's first console script, if any."""
    for dist in distributions(path=[str(archive)]):
        for ep in dist.entry_points.select(group=ENTRY_POINT_GROUP):
            return ep.value
    return None


def _quote_arg(arg: str) -> str:
    return f'"{arg}"' if (" " in arg or "," in arg) else arg


def resolve_args(step: Step, data: Mapping[str, str], library_dir: Path) -> List[str]:
    """``[coord]`` args become library paths; everything else is token-substituted."""
    args: List[str] = []
    for arg in step.args:
        if is_bracketed(arg):
            args.append(str(resolve_artifact_path(arg, library_dir)))
        else:
            args.append(replace_tokens(data, arg))
    return args


def prepare_invocation(
    step: Step,
    data: Mapping[str, str],
    library_dir: Path,
    reporter: Reporter,
) -> Invocation:
    """Check the step can run and resolve everything it needs.

    Raises:
        ResourceError: Missing module archive, missing entry point metadata,
            or (aggregated) missing classpath dependencies.
        ConfigurationError: An argument template cannot be resolved.
    """
    module_path = step.module.local_path(library_dir)
    if not module_path.is_file():
        raise ResourceError(f"  Missing archive for processor: {module_path}")

    entry_point = find_entry_point(module_path)
    if not entry_point:
        raise ResourceError(f"  Cannot locate entry point: archive declares no {ENTRY_POINT_GROUP} entry: {module_path}")
    reporter.debug(f"  EntryPoint: {entry_point}")

    missing = ErrorCollector("  Missing Processor Dependencies: ")
    classpath: List[Path] = []
    reporter.debug("  Classpath:")
    reporter.debug(f"    {module_path}")
    for dep in step.classpath:
        lib = dep.local_path(library_dir)
        if not lib.is_file():
            missing.add(dep.descriptor)
        classpath.append(lib)
        reporter.debug(f"    {lib}")
    missing.raise_if_any(ResourceError)

    args = resolve_args(step, data, library_dir)
    reporter.debug("  Args: " + ", ".join(_quote_arg(a) for a in args))

    return Invocation(
        step_name=step.display_name,
        module_path=module_path,
        entry_point=entry_point,
        classpath=tuple(classpath),
        args=tuple(args),
    )


def failure_message(result: InvocationResult) -> str:
    head = f"Failed to run processor: {result.error_type or 'UnknownError'}"
    if result.error_message:
        head += f":{result.error_message}"
    return head + "\nSee log for more details."


def run_invocation(
    invocation: Invocation,
    invoker: PluginInvoker,
    monitor: ProgressMonitor,
    run_id: str = "",
) -> InvocationResult:
    """Invoke the step synchronously.

    Raises:
        InvocationError: If the step failed in any way. No retry.
    """
    # Indeterminate until the step sets its own extent
    monitor.step_progress.set_indeterminate(True)
    context = ExecutionContext(
        invocation=invocation,
        step_progress=monitor.step_progress,
        run_id=run_id,
    )

    result = invoker.invoke(invocation, context)
    if not result.success:
        logger.error(
            "Processor %s failed via %s: %s %s",
            invocation.step_name,
            invoker.invoker_id,
            result.error_type,
            result.error_message or "",
        )
        raise InvocationError(failure_message(result))

    logger.debug("Processor %s finished in %d ms", invocation.step_name, result.duration_ms)
    return result
