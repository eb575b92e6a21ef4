"""Content digests for cached step outputs."""

from __future__ import annotations

import hashlib
from pathlib import Path

DEFAULT_ALGORITHM = "sha1"

CHUNK_SIZE = 1024 * 1024


def file_digest(path: Path, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Stream ``path`` and return the lowercase hex digest.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If ``algorithm`` is not known to hashlib.
    """
    h = hashlib.new(algorithm)
    with open(path, "rb") as f:
        while True:
            chunk = f.read(CHUNK_SIZE)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def is_supported_algorithm(algorithm: str) -> bool:
    return algorithm.lower() in hashlib.algorithms_available
