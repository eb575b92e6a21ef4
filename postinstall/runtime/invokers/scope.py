"""
scope.py - The isolated loading scope a step runs in.

Entering the scope narrows ``sys.path`` to the standard library plus the
step's module archive and classpath, hides already imported host modules
whose top-level names the scope provides, and publishes the step's
ExecutionContext. Leaving it, on every exit path, restores ``sys.path``
and the hidden modules, resets the context and evicts the modules and
importer caches that came from the scope's entries.

Name lookups and ``importlib.metadata`` discovery inside the scope see
only the scope's own entries and the standard library.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import os
import sys
import sysconfig
import zipfile
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence, Set

from .models import ExecutionContext, _current_context

logger = logging.getLogger(__name__)

_SITE_DIR_NAMES = ("site-packages", "dist-packages")


def _within(location: Optional[str], entries: Sequence[str]) -> bool:
    if not location:
        return False
    for entry in entries:
        if location == entry or location.startswith(entry + os.sep):
            return True
    return False


def stdlib_entries(path: Sequence[str]) -> List[str]:
    """The entries of ``path`` that belong to the standard library.

    Site directories (and anything a ``.pth`` file added) are dropped.
    """
    paths = sysconfig.get_paths()
    stdlib = [paths["stdlib"], paths["platstdlib"]]
    site_dirs = [paths["purelib"], paths["platlib"]]
    entries: List[str] = []
    for entry in path:
        if not entry:
            continue
        if _within(entry, site_dirs) or any(part in _SITE_DIR_NAMES for part in entry.split(os.sep)):
            continue
        stdlib_zip = os.path.basename(entry).startswith("python") and entry.endswith(".zip")
        if _within(entry, stdlib) or stdlib_zip:
            entries.append(entry)
    return entries


def top_level_names(entry: str) -> Set[str]:
    """Importable top-level module and package names an entry provides."""
    try:
        if os.path.isdir(entry):
            members = os.listdir(entry)
        else:
            with zipfile.ZipFile(entry) as zf:
                members = [name.split("/", 1)[0] for name in zf.namelist()]
    except (OSError, zipfile.BadZipFile):
        return set()

    names: Set[str] = set()
    for member in members:
        name = inspect.getmodulename(member) or member
        if name.isidentifier():
            names.add(name)
    return names


def _module_locations(module: object) -> List[str]:
    locations: List[str] = []
    spec = getattr(module, "__spec__", None)
    origin = getattr(spec, "origin", None) or getattr(module, "__file__", None)
    if origin:
        locations.append(str(origin))
    locations.extend(str(p) for p in (getattr(module, "__path__", None) or []))
    return locations


def _hide_modules(names: Set[str]) -> Dict[str, object]:
    hidden: Dict[str, object] = {}
    for name in list(sys.modules):
        if name.partition(".")[0] in names:
            hidden[name] = sys.modules.pop(name)
    return hidden


def _evict_modules(entries: Sequence[str], preexisting: Set[str]) -> int:
    evicted = 0
    for name in list(sys.modules):
        if name in preexisting:
            continue
        module = sys.modules.get(name)
        if any(_within(loc, entries) for loc in _module_locations(module)):
            del sys.modules[name]
            evicted += 1
    return evicted


@contextmanager
def isolated_scope(entries: Sequence[str], context: ExecutionContext) -> Iterator[ExecutionContext]:
    """Run the body with only ``entries`` (and the stdlib) importable and ``context`` current."""
    entries = [os.path.abspath(e) for e in entries]
    saved_path = list(sys.path)
    provided: Set[str] = set()
    for entry in entries:
        provided |= top_level_names(entry)
    hidden = _hide_modules(provided)
    preexisting = set(sys.modules)

    sys.path[:] = entries + stdlib_entries(saved_path)
    importlib.invalidate_caches()
    token = _current_context.set(context)
    try:
        yield context
    finally:
        _current_context.reset(token)
        sys.path[:] = saved_path
        evicted = _evict_modules(entries, preexisting)
        # Anything the step left under a hidden name is replaced by the host's module
        sys.modules.update(hidden)
        importlib.invalidate_caches()
        for entry in entries:
            sys.path_importer_cache.pop(entry, None)
        logger.debug(
            "Released scope for %s (%d modules evicted, %d restored)",
            context.invocation.step_name,
            evicted,
            len(hidden),
        )
