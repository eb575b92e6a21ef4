"""
Test fixtures and utilities for the post-processing pipeline tests.

Provides builders for plugin archives (zip + dist-info entry points),
library artifacts and installer archives, plus fixtures that isolate the
runtime configuration from the environment.
"""

import hashlib
import sys
import textwrap
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

_REPO_ROOT = Path(__file__).resolve().parent.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from postinstall.config import runtime_config
from postinstall.config.runtime_config import PipelineModes
from postinstall.runtime.artifacts import Artifact
from postinstall.runtime.progress import RecordingMonitor

# ============================================================================
# Plugin sources
# ============================================================================

# Writes --content to every --output and appends its name to --log
WRITER_SOURCE = '''
import argparse
from pathlib import Path

NAME = {name!r}


def main(args):
    parser = argparse.ArgumentParser(prog=NAME)
    parser.add_argument("--output", action="append", default=[])
    parser.add_argument("--content", default="")
    parser.add_argument("--log")
    parser.add_argument("--task")
    ns = parser.parse_args(args)
    for out in ns.output:
        path = Path(out)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(ns.content.encode("utf-8"))
    if ns.log:
        with open(ns.log, "a", encoding="utf-8") as f:
            f.write(NAME + "\\n")
'''

RAISING_SOURCE = '''
def main(args):
    raise RuntimeError("boom: " + " ".join(args))
'''

EXITING_SOURCE = '''
import sys


def main(args):
    sys.exit(int(args[0]) if args else 3)
'''

# Records what the running step can see of its scoped context
CONTEXT_SOURCE = '''
import sys
from pathlib import Path

from postinstall.runtime.invokers import get_execution_context


def main(args):
    ctx = get_execution_context()
    ctx.step_progress.set_max(5)
    ctx.step_progress.progress(5)
    Path(args[0]).write_text(
        ctx.invocation.step_name + "\\n" + str(ctx.invocation.module_path in [Path(p) for p in sys.path]),
        encoding="utf-8",
    )
'''

# Imports a helper module that only exists on the classpath
DEPENDENT_SOURCE = '''
from pathlib import Path

import helperlib


def main(args):
    Path(args[0]).write_text(helperlib.VALUE, encoding="utf-8")
'''


# ============================================================================
# Helpers
# ============================================================================


def sha1_bytes(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def sha1_text(text: str) -> str:
    return sha1_bytes(text.encode("utf-8"))


def build_plugin_archive(
    path: Path,
    package: str,
    source: str,
    entry: Optional[str] = "main",
    extra_modules: Optional[Dict[str, str]] = None,
) -> Path:
    """Write a wheel-style zip holding ``package`` and its console_scripts entry."""
    path.parent.mkdir(parents=True, exist_ok=True)
    dist_info = f"{package}-1.0.dist-info"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(f"{package}/__init__.py", textwrap.dedent(source))
        for name, module_source in (extra_modules or {}).items():
            zf.writestr(name, textwrap.dedent(module_source))
        zf.writestr(
            f"{dist_info}/METADATA",
            f"Metadata-Version: 2.1\nName: {package}\nVersion: 1.0\n",
        )
        if entry:
            zf.writestr(
                f"{dist_info}/entry_points.txt",
                f"[console_scripts]\n{package} = {package}:{entry}\n",
            )
    return path


def build_library_archive(path: Path, modules: Dict[str, str]) -> Path:
    """Write a plain zip of modules (a classpath dependency)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, module_source in modules.items():
            zf.writestr(name, textwrap.dedent(module_source))
    return path


def install_plugin(library_dir: Path, descriptor: str, source: str, **kwargs) -> Path:
    """Build a plugin archive at the library path of ``descriptor``."""
    art = Artifact.parse(descriptor)
    package = kwargs.pop("package", art.name.replace("-", "_"))
    return build_plugin_archive(art.local_path(library_dir), package, source, **kwargs)


def install_writer(library_dir: Path, descriptor: str) -> Path:
    art = Artifact.parse(descriptor)
    return install_plugin(library_dir, descriptor, WRITER_SOURCE.format(name=art.name))


def install_file(library_dir: Path, descriptor: str, content: bytes = b"lib") -> Path:
    """Place an arbitrary file at the library path of ``descriptor``."""
    target = Artifact.parse(descriptor).local_path(library_dir)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
    return target


def build_installer(path: Path, members: Dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


def writer_step(
    descriptor: str,
    outputs: Dict[str, str],
    content: str,
    log: Path,
    classpath: Optional[List[str]] = None,
    expected: Optional[Dict[str, str]] = None,
) -> Dict:
    """Step dict for a writer plugin producing ``outputs`` (template -> path arg)."""
    args: List[str] = []
    for template in outputs:
        args += ["--output", template]
    args += ["--content", content, "--log", str(log)]
    digest = sha1_text(content)
    return {
        "module": descriptor,
        "classpath": classpath or [],
        "args": args,
        "outputs": {template: (expected or {}).get(template, digest) for template in outputs},
    }


def read_log(log: Path) -> List[str]:
    if not log.exists():
        return []
    return log.read_text(encoding="utf-8").split()


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_runtime_config(monkeypatch):
    """Clear POSTINSTALL_* env vars and the cached runtime.yaml around each test."""
    import os

    for key in list(os.environ):
        if key.startswith(runtime_config.ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    runtime_config.reset_config()
    yield
    runtime_config.reset_config()


@pytest.fixture
def library_dir(tmp_path: Path) -> Path:
    path = tmp_path / "libraries"
    path.mkdir()
    return path


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    path = tmp_path / "root"
    path.mkdir()
    return path


@pytest.fixture
def minecraft_jar(tmp_path: Path) -> Path:
    path = tmp_path / "minecraft.jar"
    path.write_bytes(b"vanilla")
    return path


@pytest.fixture
def installer(tmp_path: Path) -> Path:
    return build_installer(
        tmp_path / "installer.jar",
        {"data/client.lzma": b"client-binpatch", "data/server.lzma": b"server-binpatch"},
    )


@pytest.fixture
def step_log(tmp_path: Path) -> Path:
    """File every writer plugin appends its name to when invoked."""
    return tmp_path / "invocations.log"


@pytest.fixture
def monitor() -> RecordingMonitor:
    return RecordingMonitor()


@pytest.fixture
def modes() -> PipelineModes:
    return PipelineModes(skip_hash_check=False, debug=False, headless=False)
