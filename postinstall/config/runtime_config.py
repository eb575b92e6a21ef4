"""Runtime configuration for the post-processing pipeline.

Provides centralized configuration for pipeline modes and settings.
Environment variables take precedence over YAML config.

Usage:
    from postinstall.config.runtime_config import (
        is_skip_hash_check,
        is_debug,
        is_headless,
        get_invoker_mode,
        get_scratch_cleanup,
        get_hash_algorithm,
    )

    if is_skip_hash_check():
        # Integrity mismatches after a step are only logged
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from postinstall.runtime.hashing import DEFAULT_ALGORITHM, is_supported_algorithm

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "runtime.yaml"
_cached_config: Optional[Dict[str, Any]] = None

ENV_PREFIX = "POSTINSTALL_"

VALID_INVOKER_MODES = ("inprocess", "subprocess")
VALID_SCRATCH_CLEANUP = ("on_success", "always", "never")

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True)
class PipelineModes:
    """Snapshot of the global modes for one pipeline run."""

    skip_hash_check: bool = False
    debug: bool = False
    headless: bool = True


def _load_config() -> Dict[str, Any]:
    """Load runtime.yaml configuration, with caching."""
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH, encoding="utf-8") as f:
            _cached_config = yaml.safe_load(f) or _default_config()
    else:
        _cached_config = _default_config()

    return _cached_config


def _default_config() -> Dict[str, Any]:
    """Return default configuration if runtime.yaml doesn't exist."""
    return {
        "version": "1.0",
        "modes": {
            "skip_hash_check": False,
            "debug": False,
            "headless": True,
        },
        "invoker": {"mode": "inprocess"},
        "scratch": {"cleanup": "on_success", "prefix": "postinstall_"},
        "hashing": {"algorithm": DEFAULT_ALGORITHM},
    }


def reset_config() -> None:
    """Reset cached config (for testing)."""
    global _cached_config
    _cached_config = None


def _section(name: str) -> Dict[str, Any]:
    return _load_config().get(name) or {}


def _env_flag(name: str) -> Optional[bool]:
    """Read a boolean env var; unrecognised values are ignored with a warning."""
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    logger.warning("Ignoring %s%s=%r (expected one of %s)", ENV_PREFIX, name, raw, ", ".join(_TRUTHY + _FALSY))
    return None


def _get_mode(key: str, default: bool) -> bool:
    # 1. Environment
    env_value = _env_flag(key.upper())
    if env_value is not None:
        return env_value

    # 2. Config file
    value = _section("modes").get(key)
    if isinstance(value, bool):
        return value

    # 3. Default
    return default


def is_skip_hash_check() -> bool:
    """Post-execution hash mismatches degrade to warnings.

    Environment variable precedence (highest to lowest):
    1. POSTINSTALL_SKIP_HASH_CHECK
    2. Config file ``modes.skip_hash_check``
    3. Default: False
    """
    return _get_mode("skip_hash_check", False)


def is_debug() -> bool:
    """Invalid cached or produced files are kept on disk for inspection."""
    return _get_mode("debug", False)


def is_headless() -> bool:
    """No presentation layer is attached; errors are only logged."""
    return _get_mode("headless", True)


def get_modes() -> PipelineModes:
    return PipelineModes(
        skip_hash_check=is_skip_hash_check(),
        debug=is_debug(),
        headless=is_headless(),
    )


def _get_choice(env_name: str, section: str, key: str, valid: tuple, default: str) -> str:
    """Read an enumerated setting; invalid values log a warning and fall back."""
    env_value = os.environ.get(ENV_PREFIX + env_name)
    if env_value:
        lowered = env_value.lower()
        if lowered in valid:
            return lowered
        logger.warning(
            "Invalid %s%s value '%s' (valid: %s). Falling back to '%s'.",
            ENV_PREFIX,
            env_name,
            env_value,
            ", ".join(valid),
            default,
        )
        return default

    config_value = _section(section).get(key)
    if config_value:
        lowered = str(config_value).lower()
        if lowered in valid:
            return lowered
        logger.warning(
            "Invalid %s.%s value '%s' in config (valid: %s). Falling back to '%s'.",
            section,
            key,
            config_value,
            ", ".join(valid),
            default,
        )
    return default


def get_invoker_mode() -> str:
    """How step entry points are run: "inprocess" or "subprocess"."""
    return _get_choice("INVOKER", "invoker", "mode", VALID_INVOKER_MODES, "inprocess")


def get_scratch_cleanup() -> str:
    """When the per-run extraction directory is removed.

    - on_success: delete after a successful run, keep on failure
    - always: delete on every exit
    - never: leave it for the caller
    """
    return _get_choice("SCRATCH_CLEANUP", "scratch", "cleanup", VALID_SCRATCH_CLEANUP, "on_success")


def get_scratch_prefix() -> str:
    return str(_section("scratch").get("prefix") or "postinstall_")


def get_hash_algorithm() -> str:
    """Digest used for output records (hashlib name, default sha1)."""
    value = os.environ.get(ENV_PREFIX + "HASH_ALGORITHM") or _section("hashing").get("algorithm")
    if not value:
        return DEFAULT_ALGORITHM
    value = str(value).lower()
    if not is_supported_algorithm(value):
        logger.warning("Unsupported hash algorithm '%s'. Falling back to '%s'.", value, DEFAULT_ALGORITHM)
        return DEFAULT_ALGORITHM
    return value
