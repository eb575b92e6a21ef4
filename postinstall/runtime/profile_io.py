"""
profile_io.py - Load install profiles from JSON or YAML.

The profile document is validated against
``postinstall/schemas/install_profile.schema.json`` before it is turned
into an InstallProfile.

Usage:
    from postinstall.runtime.profile_io import load_profile, validate_profile

    profile = load_profile(Path("install_profile.json"))
    errors = validate_profile(doc)  # [] when valid
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import jsonschema
import yaml

from .errors import ConfigurationError
from .types import InstallProfile, profile_from_dict

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "install_profile.schema.json"


@lru_cache(maxsize=1)
def _load_profile_schema() -> Dict[str, Any]:
    with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_profile(doc: Dict[str, Any]) -> List[str]:
    """Validate a profile document.

    Returns:
        One message per validation error, in document order (empty if valid).
    """
    validator = jsonschema.Draft7Validator(_load_profile_schema())
    errors: List[str] = []
    for error in sorted(validator.iter_errors(doc), key=lambda e: [str(p) for p in e.absolute_path]):
        location = "/".join(str(p) for p in error.absolute_path) or "<root>"
        errors.append(f"Validation error at {location}: {error.message}")
    return errors


def parse_profile(doc: Dict[str, Any]) -> InstallProfile:
    """Validate and parse a profile document.

    Raises:
        ConfigurationError: With every schema violation, or a malformed
            artifact descriptor.
    """
    errors = validate_profile(doc)
    if errors:
        raise ConfigurationError("Invalid install profile:" + "".join(f"\n  {e}" for e in errors))
    return profile_from_dict(doc)


def load_profile(path: Path) -> InstallProfile:
    """Load a profile from ``.json``, ``.yaml`` or ``.yml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the document is unreadable or invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Install profile not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                doc = yaml.safe_load(f)
            else:
                doc = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Invalid install profile {path}: {e}") from e

    if not isinstance(doc, dict):
        raise ConfigurationError(f"Invalid install profile {path}: expected a mapping")

    logger.debug("Loaded install profile %s", path)
    return parse_profile(doc)
