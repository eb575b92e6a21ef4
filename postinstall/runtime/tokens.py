"""Token resolution for the pipeline's variable map.

Raw data values come in three forms:

- ``[group:name:version]``  artifact reference -> absolute library path
- ``'text'``                 literal -> ``text``
- anything else             member of the installer archive -> extracted
                            into the run's scratch directory, value becomes
                            the absolute extracted path

Templates (step args and output entries) use ``{KEY}`` placeholders that
are replaced from the resolved map. Inside a template ``'...'`` is copied
verbatim and ``\\`` escapes the next character.

Usage:
    from postinstall.runtime.tokens import resolve_data, replace_tokens

    data = resolve_data(raw, library_dir, scratch_dir, ArchiveExtractor(installer))
    replace_tokens(data, "--input {MAPPINGS}")
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from .artifacts import is_bracketed, resolve_artifact_path
from .errors import ConfigurationError, ErrorCollector, ExtractionError

logger = logging.getLogger(__name__)

# Keys injected after data resolution
KEY_SIDE = "SIDE"
KEY_MINECRAFT_JAR = "MINECRAFT_JAR"
KEY_MINECRAFT_VERSION = "MINECRAFT_VERSION"
KEY_ROOT = "ROOT"
KEY_INSTALLER = "INSTALLER"
KEY_LIBRARY_DIR = "LIBRARY_DIR"


class TokenKind(Enum):
    """How a raw data value is resolved."""
    ARTIFACT = "artifact"
    LITERAL = "literal"
    ARCHIVE_MEMBER = "archive_member"


def classify(value: str) -> TokenKind:
    if not value:
        raise ConfigurationError("Invalid configuration, empty data value")
    if is_bracketed(value):
        return TokenKind.ARTIFACT
    if len(value) >= 2 and value[0] == "'" and value[-1] == "'":
        return TokenKind.LITERAL
    return TokenKind.ARCHIVE_MEMBER


class ArchiveExtractor:
    """Extracts single members of the installer archive on demand."""

    def __init__(self, archive: Path):
        self.archive = Path(archive)

    def __call__(self, member: str, target: Path) -> bool:
        """Copy ``member`` to ``target``. Returns False if it could not be extracted."""
        name = member.lstrip("/")
        try:
            with zipfile.ZipFile(self.archive, "r") as zf:
                try:
                    info = zf.getinfo(name)
                except KeyError:
                    logger.debug("Archive %s has no member %s", self.archive, name)
                    return False
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
            return True
        except (OSError, zipfile.BadZipFile) as e:
            logger.debug("Extraction of %s from %s failed: %s", name, self.archive, e)
            return False


Extractor = Callable[[str, Path], bool]
Progress = Callable[[float], None]
Message = Callable[[str], None]


def resolve_data(
    raw: Mapping[str, str],
    library_dir: Path,
    scratch_dir: Path,
    extractor: Extractor,
    on_progress: Optional[Progress] = None,
    on_message: Optional[Message] = None,
) -> Mapping[str, str]:
    """Resolve every raw data value into a plain string.

    Returns a new read-only mapping; ``raw`` is not modified.

    Raises:
        ConfigurationError: On an empty value or malformed artifact reference.
        ExtractionError: Listing every archive member that failed to extract.
    """
    resolved: Dict[str, str] = {}
    failed = ErrorCollector("Failed to extract files from archive: ")
    total = float(len(raw)) or 1.0

    for index, (key, value) in enumerate(raw.items(), start=1):
        if on_progress:
            on_progress(index / total)

        kind = classify(value)
        if kind is TokenKind.ARTIFACT:
            resolved[key] = str(resolve_artifact_path(value, library_dir))
        elif kind is TokenKind.LITERAL:
            resolved[key] = value[1:-1]
        else:
            target = (Path(scratch_dir) / value.lstrip("/")).absolute()
            if on_message:
                on_message(f"  Extracting: {value}")
            if not extractor(value, target):
                failed.add(value)
            resolved[key] = str(target)

    failed.raise_if_any(ExtractionError)
    return MappingProxyType(resolved)


def with_environment(
    data: Mapping[str, str],
    side: str,
    minecraft_jar: Path,
    minecraft_version: str,
    root: Path,
    installer: Path,
    library_dir: Path,
) -> Mapping[str, str]:
    """Return ``data`` plus the fixed environment keys, as a new read-only mapping."""
    merged = dict(data)
    merged[KEY_SIDE] = side
    merged[KEY_MINECRAFT_JAR] = str(Path(minecraft_jar).absolute())
    merged[KEY_MINECRAFT_VERSION] = minecraft_version
    merged[KEY_ROOT] = str(Path(root).absolute())
    merged[KEY_INSTALLER] = str(Path(installer).absolute())
    merged[KEY_LIBRARY_DIR] = str(Path(library_dir).absolute())
    return MappingProxyType(merged)


def replace_tokens(tokens: Mapping[str, str], template: str) -> str:
    """Substitute ``{KEY}`` placeholders in ``template``.

    Raises:
        ConfigurationError: On a missing key, an unclosed ``{`` or ``'``, or
            a trailing escape.
    """
    out = []
    i = 0
    length = len(template)
    while i < length:
        c = template[i]
        if c == "\\":
            if i == length - 1:
                raise ConfigurationError(f"Illegal pattern (Bad escape): {template}")
            out.append(template[i + 1])
            i += 2
            continue

        if c not in ("{", "'"):
            out.append(c)
            i += 1
            continue

        closer = "}" if c == "{" else "'"
        key = []
        j = i + 1
        while True:
            if j == length:
                raise ConfigurationError(f"Illegal pattern (Unclosed {c}): {template}")
            d = template[j]
            if d == "\\":
                if j == length - 1:
                    raise ConfigurationError(f"Illegal pattern (Bad escape): {template}")
                key.append(template[j + 1])
                j += 2
                continue
            if d == closer:
                break
            key.append(d)
            j += 1

        name = "".join(key)
        if c == "'":
            out.append(name)
        else:
            if name not in tokens:
                raise ConfigurationError(f"Illegal pattern: {template} Missing Key: {name}")
            out.append(tokens[name])
        i = j + 1

    return "".join(out)
