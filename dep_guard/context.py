"""Per-invocation execution context.

The context is a read-only snapshot of package.json plus the safety-buffer
cutoff. It is built once when a command starts and handed to every service
that needs it. The cutoff is computed at construction and never again, so
every age comparison in a run uses the same instant even if the user spends
a long time at a prompt.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .config import MANIFEST_FILE, SAFETY_BUFFER_DAYS, ScriptNames
from .errors import ManifestError


def utc_now() -> datetime:
    return datetime.now(UTC)


def read_manifest(path: Path) -> dict[str, Any]:
    """Load package.json as a dict.

    Raises:
        ManifestError: If the file is missing or is not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ManifestError(f"No {path.name} found in {path.parent}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{path} must contain a JSON object")
    return data


def _string_map(data: dict[str, Any], key: str) -> dict[str, str]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ManifestError(f'"{key}" in {MANIFEST_FILE} must be an object')
    return {str(k): str(v) for k, v in section.items()}


class ExecutionContext(BaseModel):
    """Manifest snapshot and safety-buffer settings for one run.

    Attributes:
        scripts: ``scripts`` section of package.json.
        dependencies: ``dependencies`` section.
        dev_dependencies: ``devDependencies`` section.
        cutoff: Versions published after this instant are too new.
        days: Safety buffer in days.
        script_names: Script keys used for the quality gates.
        manifest_path: Where package.json was read from.
    """

    model_config = ConfigDict(frozen=True)

    scripts: dict[str, str] = Field(default_factory=dict)
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    cutoff: datetime
    days: int = Field(default=SAFETY_BUFFER_DAYS, ge=0)
    script_names: ScriptNames = Field(default_factory=ScriptNames)
    manifest_path: Path = Path(MANIFEST_FILE)

    @classmethod
    def from_manifest(
        cls,
        path: Path,
        *,
        days: int = SAFETY_BUFFER_DAYS,
        script_names: ScriptNames | None = None,
        now: Callable[[], datetime] = utc_now,
    ) -> ExecutionContext:
        """Read package.json at ``path`` and compute the cutoff from ``now()``."""
        data = read_manifest(path)
        return cls(
            scripts=_string_map(data, "scripts"),
            dependencies=_string_map(data, "dependencies"),
            dev_dependencies=_string_map(data, "devDependencies"),
            cutoff=now() - timedelta(days=days),
            days=days,
            script_names=script_names or ScriptNames(),
            manifest_path=path,
        )

    @property
    def all_dependencies(self) -> dict[str, str]:
        """Dependencies merged with devDependencies; dev entries win on collision."""
        return {**self.dependencies, **self.dev_dependencies}

    @property
    def cutoff_iso(self) -> str:
        """Cutoff as an ISO-8601 UTC string for ``npm install --before``."""
        return (
            self.cutoff.astimezone(UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

    def has_script(self, name: str) -> bool:
        return bool(self.scripts.get(name))
