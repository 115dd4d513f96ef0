"""Defaults and project-level settings.

Settings come from three layers, lowest precedence first:
1. Module constants below
2. An optional ``.depguard.toml`` in the project root
3. Command-line flags

Uses tomlkit for the settings file so the same parser reads it that we would
use to write it back, should ``dep-guard`` ever grow an ``init`` command.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

# Minimum number of days a version must have been public before it is
# eligible for installation.
SAFETY_BUFFER_DAYS = 7

NPM_REGISTRY_URL = "https://registry.npmjs.org"
REGISTRY_TIMEOUT_SECONDS = 10.0
MAX_FETCH_ATTEMPTS = 3

# Upper bound for batched registry lookups. The resolver is sequential today.
MAX_CONCURRENT_REQUESTS = 5

MANIFEST_FILE = "package.json"
SETTINGS_FILE = ".depguard.toml"


class ScriptNames(BaseModel):
    """package.json script keys used by the quality gates."""

    model_config = {"frozen": True}

    lint: str = "lint"
    typecheck: str = "typecheck"
    test: str = "test"
    build: str = "build"


class Settings(BaseModel):
    """Resolved configuration for a single invocation."""

    days: int = Field(default=SAFETY_BUFFER_DAYS, ge=0)
    scripts: ScriptNames = Field(default_factory=ScriptNames)
    allow_npm_install: bool = False
    registry: str = NPM_REGISTRY_URL


def load_settings_file(path: Path) -> dict[str, Any]:
    """Read ``.depguard.toml`` and return its values keyed like ``Settings``.

    A missing file yields an empty dict. Keys this tool does not know about
    are ignored.

    Raises:
        ConfigError: If the file is not valid TOML.
    """
    if not path.exists():
        return {}

    try:
        doc = tomlkit.parse(path.read_text())
    except ParseError as exc:
        raise ConfigError(f"Invalid {path.name}: {exc}") from exc

    values: dict[str, Any] = {}
    if "days" in doc:
        values["days"] = doc["days"]
    if "allow-npm-install" in doc:
        values["allow_npm_install"] = doc["allow-npm-install"]
    if "registry" in doc:
        values["registry"] = str(doc["registry"]).rstrip("/")
    scripts = doc.get("scripts")
    if isinstance(scripts, dict):
        values["scripts"] = {
            key: str(value)
            for key, value in scripts.items()
            if key in ScriptNames.model_fields
        }
    # tomlkit items wrap plain values; unwrap before validation
    return {
        key: value.unwrap() if hasattr(value, "unwrap") else value
        for key, value in values.items()
    }


def resolve_settings(
    root: Path,
    *,
    days: int | None = None,
    scripts: dict[str, str | None] | None = None,
    allow_npm_install: bool = False,
) -> Settings:
    """Merge defaults, the settings file, and command-line overrides.

    Args:
        root: Project directory containing the optional settings file.
        days: ``--days`` value, or None when the flag was not given.
        scripts: Script-name flags; None values mean "not given".
        allow_npm_install: ``--allow-npm-install`` flag. The flag can only
            turn the fallback on, never off.

    Raises:
        ConfigError: If the merged values fail validation.
    """
    values = load_settings_file(root / SETTINGS_FILE)

    if days is not None:
        values["days"] = days
    if allow_npm_install:
        values["allow_npm_install"] = True

    script_values = dict(values.get("scripts", {}))
    for key, value in (scripts or {}).items():
        if value:
            script_values[key] = value
    values["scripts"] = script_values

    try:
        return Settings.model_validate(values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"Invalid settings: {problems}") from exc
