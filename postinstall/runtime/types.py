"""
types.py - Dataclasses for the post-processing pipeline.

These types are the read-only descriptors the pipeline consumes (steps and
the install profile that carries them) plus the per-run state it owns.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .artifacts import Artifact

SIDE_CLIENT = "client"
SIDE_SERVER = "server"

# Step whose work can be satisfied by a locally bundled mappings file
INSTALLER_TOOLS = "installertools"
TASK_FLAG = "--task"
DOWNLOAD_MOJMAPS_TASK = "DOWNLOAD_MOJMAPS"


def side_name(is_client: bool) -> str:
    return SIDE_CLIENT if is_client else SIDE_SERVER


@dataclass(frozen=True)
class Step:
    """One processing step.

    Attributes:
        module: Coordinate of the archive holding the code to run.
        classpath: Coordinates the code needs on its import path, in order.
        args: Argument templates; ``[coord]`` or ``{TOKEN}`` strings.
        outputs: Output path template -> expected digest template.
        sides: Sides this step applies to; empty means every side.
    """

    module: Artifact
    classpath: Tuple[Artifact, ...] = ()
    args: Tuple[str, ...] = ()
    outputs: Dict[str, Optional[str]] = field(default_factory=dict)
    sides: Tuple[str, ...] = ()

    def applies_to(self, side: str) -> bool:
        return not self.sides or side in self.sides

    @property
    def task(self) -> Optional[str]:
        """Value following ``--task`` in the args, if any."""
        try:
            index = self.args.index(TASK_FLAG)
        except ValueError:
            return None
        if index + 1 < len(self.args):
            return self.args[index + 1]
        return None

    @property
    def display_name(self) -> str:
        name = f"{self.module.group}:{self.module.name}"
        task = self.task
        if task:
            name += f" -> {task}"
        return name


@dataclass(frozen=True)
class OutputRecord:
    """A resolved output: where the file lives and the digest it must have."""

    path: str
    expected_hash: str
    key: str = ""
    raw_value: Optional[str] = None


@dataclass
class RunState:
    """Mutable state for one ``process`` call."""

    run_id: str
    step_count: int = 0
    step_index: int = 0
    errors: List[str] = field(default_factory=list)
    # Display names, in order
    executed: List[str] = field(default_factory=list)
    cached: List[str] = field(default_factory=list)

    @property
    def global_progress(self) -> float:
        if self.step_count == 0:
            return 1.0
        return self.step_index / self.step_count

    def advance(self) -> int:
        self.step_index += 1
        return self.step_index


@dataclass(frozen=True)
class InstallProfile:
    """The parts of an install profile the pipeline reads.

    ``data`` maps each variable name to its per-side raw value, e.g.
    ``{"MAPPINGS": {"client": "[de.oceanlabs:mcp:1.0@txt]", "server": "..."}}``.
    """

    minecraft: str
    data: Dict[str, Dict[str, str]] = field(default_factory=dict)
    processors: Tuple[Step, ...] = ()
    libraries: Tuple[Artifact, ...] = ()

    def get_processors(self, side: str) -> List[Step]:
        return [step for step in self.processors if step.applies_to(side)]

    def get_data(self, is_client: bool) -> Dict[str, str]:
        side = side_name(is_client)
        return {key: values[side] for key, values in self.data.items() if side in values}


def generate_run_id() -> str:
    """Generate a run ID: run-YYYYMMDD-HHMMSS-xxxxxx."""
    now = datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%d-%H%M%S")
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(6))
    return f"run-{timestamp}-{suffix}"


# =============================================================================
# Parsing
# =============================================================================


def step_from_dict(data: Dict[str, Any]) -> Step:
    """Parse a Step from a dictionary (e.g., JSON/YAML load).

    Accepts ``jar`` as an alias for ``module``.
    """
    module = data.get("module", data.get("jar"))
    if not module:
        raise KeyError("module")

    outputs = data.get("outputs") or {}
    return Step(
        module=Artifact.parse(module),
        classpath=tuple(Artifact.parse(c) for c in data.get("classpath", [])),
        args=tuple(str(a) for a in data.get("args", [])),
        outputs={str(k): (None if v is None else str(v)) for k, v in outputs.items()},
        sides=tuple(data.get("sides", [])),
    )


def profile_from_dict(data: Dict[str, Any]) -> InstallProfile:
    """Parse an InstallProfile from a dictionary."""
    libraries = []
    for lib in data.get("libraries", []):
        # Library entries are either a bare descriptor or {"name": descriptor, ...}
        name = lib.get("name") if isinstance(lib, dict) else lib
        libraries.append(Artifact.parse(name))

    return InstallProfile(
        minecraft=str(data["minecraft"]),
        data={key: dict(values) for key, values in (data.get("data") or {}).items()},
        processors=tuple(step_from_dict(p) for p in data.get("processors", [])),
        libraries=tuple(libraries),
    )
