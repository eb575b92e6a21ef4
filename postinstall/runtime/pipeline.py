"""
pipeline.py - The post-install processing pipeline.

Runs a profile's processing steps for one side, in declaration order:

1. Resolve the data map once (artifacts, literals, archive extraction)
   and inject the environment keys.
2. For each step: check the output cache; on a miss, locate the module
   and classpath, invoke the entry point in an isolated scope, then
   verify the outputs.
3. Any failure is reported through the Reporter and aborts the run.

Usage:
    from postinstall.runtime.pipeline import PostProcessors

    processors = PostProcessors(profile, is_client=True, monitor=LoggingMonitor())
    ok = processors.process(library_dir, minecraft_jar, root, installer)
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from postinstall.config.runtime_config import (
    PipelineModes,
    get_hash_algorithm,
    get_modes,
    get_scratch_cleanup,
    get_scratch_prefix,
)

from .artifacts import Artifact
from .errors import PipelineError
from .executor import prepare_invocation, run_invocation
from .invokers import PluginInvoker, get_invoker
from .outputs import check_cache, resolve_outputs, verify_outputs
from .progress import LoggingMonitor, ProgressMonitor, Reporter
from .tokens import ArchiveExtractor, Extractor, resolve_data, with_environment
from .types import (
    DOWNLOAD_MOJMAPS_TASK,
    INSTALLER_TOOLS,
    InstallProfile,
    RunState,
    Step,
    generate_run_id,
    side_name,
)

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 79
MOJMAPS_KEY = "MOJMAPS"


class LocalSource(ABC):
    """Files bundled with the installer that can stand in for a download."""

    @abstractmethod
    def fetch(self, relative_path: str, target: Path) -> bool:
        """Copy ``relative_path`` to ``target``. Returns False if unavailable."""
        ...


class DirectoryLocalSource(LocalSource):
    """LocalSource backed by a directory tree."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def fetch(self, relative_path: str, target: Path) -> bool:
        source = self.root / relative_path
        if not source.is_file():
            return False
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        return True


class PostProcessors:
    """Runs the processing steps of an install profile for one side."""

    def __init__(
        self,
        profile: InstallProfile,
        is_client: bool,
        monitor: Optional[ProgressMonitor] = None,
        invoker: Optional[PluginInvoker] = None,
        modes: Optional[PipelineModes] = None,
        local_source: Optional[LocalSource] = None,
        extractor_factory: Callable[[Path], Extractor] = ArchiveExtractor,
    ):
        self.profile = profile
        self.is_client = is_client
        self.side = side_name(is_client)
        self.monitor = monitor or LoggingMonitor()
        self.invoker = invoker
        self.modes = modes or get_modes()
        self.local_source = local_source
        self.extractor_factory = extractor_factory

        self.processors: List[Step] = profile.get_processors(self.side)
        self.has_tasks = len(self.processors) > 0
        self.data = profile.get_data(is_client)
        self.reporter = Reporter(self.monitor, headless=self.modes.headless)
        self.last_state: Optional[RunState] = None

    def get_libraries(self) -> List[Artifact]:
        """Libraries the steps need; none when this side has no steps."""
        return list(self.profile.libraries) if self.has_tasks else []

    def get_task_count(self) -> int:
        if not self.has_tasks:
            return 0
        return len(self.profile.libraries) + len(self.processors) + len(self.data)

    # -------------------------------------------------------------------------

    def process(self, library_dir: Path, minecraft_jar: Path, root: Path, installer: Path) -> bool:
        """Run every step. Returns False after reporting the first failure."""
        state = RunState(run_id=generate_run_id(), step_count=len(self.processors))
        self.last_state = state
        scratch_dir: Optional[Path] = None
        success = False
        algorithm = get_hash_algorithm()

        try:
            raw = self.data
            if raw:
                scratch_dir = Path(tempfile.mkdtemp(prefix=get_scratch_prefix()))
                self.monitor.start(f"Created Temporary Directory: {scratch_dir}")
                resolved: Mapping[str, str] = resolve_data(
                    raw,
                    library_dir,
                    scratch_dir,
                    self.extractor_factory(Path(installer)),
                    on_progress=self.monitor.global_progress.percentage,
                    on_message=self.reporter.log,
                )
            else:
                resolved = {}

            data = with_environment(
                resolved,
                side=self.side,
                minecraft_jar=minecraft_jar,
                minecraft_version=self.profile.minecraft,
                root=root,
                installer=installer,
                library_dir=library_dir,
            )

            mojmaps_local = self._fetch_local_mappings(data)

            if len(self.processors) == 1:
                self.monitor.stage("Building Processor")
            else:
                self.monitor.start("Building Processors")
            self.monitor.global_progress.set_max(len(self.processors))

            invoker = self.invoker or get_invoker()
            for step in self.processors:
                self._run_step(step, data, Path(library_dir), state, invoker, mojmaps_local, algorithm)

            success = True
        except PipelineError as e:
            logger.debug("Pipeline %s aborted (%s error)", state.run_id, e.kind)
            state.errors.append(e.message)
            self.reporter.error(e.message)
        except OSError as e:
            logger.exception("I/O failure during post-processing")
            message = f"I/O failure during post-processing: {e}"
            state.errors.append(message)
            self.reporter.error(message)
        finally:
            self._cleanup_scratch(scratch_dir, success)

        return success

    # -------------------------------------------------------------------------

    def _fetch_local_mappings(self, data: Mapping[str, str]) -> bool:
        if self.local_source is None or MOJMAPS_KEY not in data:
            return False
        source = f"minecraft/{self.profile.minecraft}/{self.side}_mappings.txt"
        return self.local_source.fetch(source, Path(data[MOJMAPS_KEY]))

    def _advance(self, state: RunState) -> None:
        self.monitor.global_progress.progress(state.advance())
        logger.debug("Run %s at %.0f%%", state.run_id, state.global_progress * 100)

    def _run_step(
        self,
        step: Step,
        data: Mapping[str, str],
        library_dir: Path,
        state: RunState,
        invoker: PluginInvoker,
        mojmaps_local: bool,
        algorithm: str,
    ) -> None:
        self.reporter.log(SEPARATOR)
        name = step.display_name

        if mojmaps_local and step.module.name == INSTALLER_TOOLS and step.task == DOWNLOAD_MOJMAPS_TASK:
            self.reporter.log("Skipping mojmaps download due to local cache hit.")
            state.cached.append(name)
            self._advance(state)
            return

        self.monitor.set_current_step(f"Processor: {name}")

        records = resolve_outputs(step, data, library_dir)
        if records:
            check = check_cache(records, self.reporter.log, debug=self.modes.debug, algorithm=algorithm)
            if check.hit:
                state.cached.append(name)
                self._advance(state)
                return
            logger.debug("Cache miss for %s: %d of %d outputs valid", name, len(check.validated), len(records))

        invocation = prepare_invocation(step, data, library_dir, self.reporter)
        run_invocation(invocation, invoker, self.monitor, run_id=state.run_id)
        state.executed.append(name)

        if records:
            verify_outputs(
                records,
                self.reporter.log,
                skip_hash_check=self.modes.skip_hash_check,
                debug=self.modes.debug,
                algorithm=algorithm,
            )

        self._advance(state)

    def _cleanup_scratch(self, scratch_dir: Optional[Path], success: bool) -> None:
        if scratch_dir is None:
            return
        policy = get_scratch_cleanup()
        if policy == "never" or (policy == "on_success" and not success):
            logger.info("Keeping scratch directory %s", scratch_dir)
            return
        try:
            shutil.rmtree(scratch_dir)
        except OSError as e:
            logger.warning("Could not remove scratch directory %s: %s", scratch_dir, e)
