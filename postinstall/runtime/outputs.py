"""Output records: cache checks before a step and verification after it.

A step is skipped only when every declared output exists with the expected
digest. Outputs are not individually skippable: one miss re-runs the step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from .artifacts import is_bracketed, resolve_artifact_path
from .errors import ConfigurationError, ErrorCollector, IntegrityError
from .hashing import DEFAULT_ALGORITHM, file_digest
from .tokens import replace_tokens
from .types import OutputRecord, Step

logger = logging.getLogger(__name__)

Log = Callable[[str], None]


def _bad_output(key: str, value: Optional[str]) -> ConfigurationError:
    return ConfigurationError(f"  Invalid configuration, bad output config: [{key}: {value}]")


def resolve_outputs(step: Step, data: Mapping[str, str], library_dir: Path) -> List[OutputRecord]:
    """Resolve a step's output templates against the token map.

    Raises:
        ConfigurationError: Naming the offending key/value pair when either
            side is empty or cannot be resolved.
    """
    records: List[OutputRecord] = []
    for key, value in step.outputs.items():
        try:
            if key and is_bracketed(key):
                path = str(resolve_artifact_path(key, library_dir))
            else:
                path = replace_tokens(data, key) if key else ""
            expected = replace_tokens(data, value) if value is not None else ""
        except ConfigurationError as e:
            raise ConfigurationError(f"{_bad_output(key, value)}\n  {e}") from e

        if not path or not expected:
            raise _bad_output(key, value)

        records.append(OutputRecord(path=path, expected_hash=expected, key=key, raw_value=value))
    return records


def _delete(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Could not delete %s: %s", path, e)
        return False


@dataclass
class CacheCheck:
    """Result of checking a step's outputs before running it."""

    hit: bool
    validated: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    mismatched: List[str] = field(default_factory=list)


def check_cache(
    records: List[OutputRecord],
    log: Log,
    debug: bool = False,
    algorithm: str = DEFAULT_ALGORITHM,
) -> CacheCheck:
    """Decide whether a step can be skipped.

    Stale files are deleted as soon as they are found (kept in debug mode).
    A step without declared outputs never hits.
    """
    check = CacheCheck(hit=False)
    if not records:
        return check

    log("  Cache: ")
    for record in records:
        artifact = Path(record.path)
        if not artifact.exists():
            log(f"    {record.path} Missing")
            check.missing.append(record.path)
            continue

        actual = file_digest(artifact, algorithm)
        if actual == record.expected_hash:
            log(f"    {record.path} Validated: {record.expected_hash}")
            check.validated.append(record.path)
        else:
            log(f"    {record.path}\n      Expected: {record.expected_hash}\n      Actual:   {actual}")
            check.mismatched.append(record.path)
            if not debug:
                _delete(artifact)

    check.hit = not check.missing and not check.mismatched
    if check.hit:
        log("  Cache Hit!")
    return check


def verify_outputs(
    records: List[OutputRecord],
    log: Log,
    skip_hash_check: bool = False,
    debug: bool = False,
    algorithm: str = DEFAULT_ALGORITHM,
) -> None:
    """Re-check outputs after a step ran.

    Raises:
        IntegrityError: Listing every missing output and every digest
            mismatch (mismatches only when ``skip_hash_check`` is off).
    """
    errors = ErrorCollector("  Processor failed, invalid outputs:", indent="    ")
    for record in records:
        artifact = Path(record.path)
        if not artifact.exists():
            errors.add(f"{record.path} missing")
            continue

        actual = file_digest(artifact, algorithm)
        if actual == record.expected_hash:
            log(f"  Output: {record.path} Checksum Validated: {actual}")
        elif skip_hash_check:
            logger.warning(
                "Output %s digest mismatch ignored (expected %s, actual %s)",
                record.path,
                record.expected_hash,
                actual,
            )
            log(f"    {record.path}\n      Expected: {record.expected_hash}\n      Actual:   {actual}")
        else:
            entry = f"{record.path}\n      Expected: {record.expected_hash}\n      Actual:   {actual}"
            if not debug and not _delete(artifact):
                entry += "\n      Could not delete file"
            errors.add(entry)

    errors.raise_if_any(IntegrityError)
