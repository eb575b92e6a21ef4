# postinstall/runtime package
# Post-install processing pipeline: resolves the data map, skips steps whose
# outputs are already valid, runs the rest in isolation and verifies them.
#
# Core components:
#   - types: Step, InstallProfile, OutputRecord, RunState
#   - artifacts: coordinate -> library path
#   - tokens: data resolution and {TOKEN} substitution
#   - outputs: cache check and post-execution verification
#   - executor / invokers: locating and running step entry points
#   - progress: progress bars, monitors and the Reporter
#   - pipeline: PostProcessors.process()
#
# Usage:
#     from postinstall.runtime import PostProcessors, profile_from_dict
#     processors = PostProcessors(profile_from_dict(doc), is_client=True)
#     ok = processors.process(library_dir, minecraft_jar, root, installer)

from typing import TYPE_CHECKING

from .artifacts import Artifact, resolve_artifact_path
from .errors import (
    ConfigurationError,
    ExtractionError,
    IntegrityError,
    InvocationError,
    PipelineError,
    ResourceError,
)
from .profile_io import load_profile, parse_profile, validate_profile
from .types import (
    InstallProfile,
    OutputRecord,
    RunState,
    Step,
    profile_from_dict,
    step_from_dict,
)

# The pipeline pulls in config, which imports back into this package
if TYPE_CHECKING:
    from .pipeline import PostProcessors as PostProcessors

__all__ = [
    # Types
    "Artifact",
    "Step",
    "InstallProfile",
    "OutputRecord",
    "RunState",
    "profile_from_dict",
    "step_from_dict",
    "resolve_artifact_path",
    "load_profile",
    "parse_profile",
    "validate_profile",
    # Errors
    "PipelineError",
    "ConfigurationError",
    "ResourceError",
    "ExtractionError",
    "InvocationError",
    "IntegrityError",
    # Pipeline (imported lazily)
    "PostProcessors",
]


def __getattr__(name: str):
    """Lazy import for the pipeline to avoid circular imports."""
    if name == "PostProcessors":
        from .pipeline import PostProcessors

        return PostProcessors
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
