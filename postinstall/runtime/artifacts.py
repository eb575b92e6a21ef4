"""Artifact coordinates and their library paths.

A coordinate is written ``group:name:version[:classifier][@extension]`` and
maps to exactly one file under a library root:

    <library_dir>/<group as dirs>/<name>/<version>/<name>-<version>[-<classifier>].<extension>

Usage:
    from postinstall.runtime.artifacts import Artifact, resolve_artifact_path

    art = Artifact.parse("net.example:tools:1.2:fatjar")
    art.local_path(Path("/libs"))
    # PosixPath('/libs/net/example/tools/1.2/tools-1.2-fatjar.jar')

    resolve_artifact_path("[net.example:tools:1.2]", Path("/libs"))
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

DEFAULT_EXTENSION = "jar"


def is_bracketed(value: str) -> bool:
    """True for ``[...]`` artifact references."""
    return len(value) >= 2 and value[0] == "[" and value[-1] == "]"


def strip_brackets(value: str) -> str:
    return value[1:-1] if is_bracketed(value) else value


@dataclass(frozen=True)
class Artifact:
    """A parsed artifact coordinate."""

    group: str
    name: str
    version: str
    classifier: Optional[str] = None
    extension: str = DEFAULT_EXTENSION

    @classmethod
    def parse(cls, descriptor: str) -> "Artifact":
        """Parse ``group:name:version[:classifier][@extension]``.

        Raises:
            ConfigurationError: If the descriptor is not well formed.
        """
        text = strip_brackets(descriptor.strip())
        extension = DEFAULT_EXTENSION
        if "@" in text:
            text, extension = text.split("@", 1)
            if not extension:
                raise ConfigurationError(f"Invalid artifact descriptor (empty extension): {descriptor}")

        parts = text.split(":")
        if len(parts) not in (3, 4) or not all(parts):
            raise ConfigurationError(f"Invalid artifact descriptor: {descriptor}")
        # Separators would let two coordinates share one path
        if any("/" in p or "\\" in p for p in parts) or "/" in extension:
            raise ConfigurationError(f"Invalid artifact descriptor (path separator): {descriptor}")
        # Empty group segments collapse and dot parts escape the library root
        if not all(parts[0].split(".")) or any(p in (".", "..") for p in parts + [extension]):
            raise ConfigurationError(f"Invalid artifact descriptor (bad path segment): {descriptor}")

        classifier = parts[3] if len(parts) == 4 else None
        return cls(
            group=parts[0],
            name=parts[1],
            version=parts[2],
            classifier=classifier,
            extension=extension,
        )

    @property
    def descriptor(self) -> str:
        """Canonical descriptor string, round-trips through ``parse``."""
        text = f"{self.group}:{self.name}:{self.version}"
        if self.classifier:
            text += f":{self.classifier}"
        if self.extension != DEFAULT_EXTENSION:
            text += f"@{self.extension}"
        return text

    @property
    def filename(self) -> str:
        base = f"{self.name}-{self.version}"
        if self.classifier:
            base += f"-{self.classifier}"
        return f"{base}.{self.extension}"

    @property
    def relative_path(self) -> Path:
        return Path(*self.group.split("."), self.name, self.version, self.filename)

    def local_path(self, library_dir: Path) -> Path:
        """Absolute path of this artifact under ``library_dir``. No I/O beyond ``absolute()``."""
        return (Path(library_dir) / self.relative_path).absolute()

    def __str__(self) -> str:
        return self.descriptor


def resolve_artifact_path(descriptor: str, library_dir: Path) -> Path:
    """Resolve a bracketed or bare descriptor to its library path."""
    return Artifact.parse(descriptor).local_path(library_dir)
