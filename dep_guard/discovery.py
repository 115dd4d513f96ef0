"""Update discovery and grouping.

Finding newer versions is delegated to npm-check-updates (``ncu``), which
already knows how to read every dependency section of package.json. This
module runs it, then organises the result by semver bump for display.
"""

from __future__ import annotations

import json

from .context import ExecutionContext
from .errors import DiscoveryError
from .models import GroupedUpdates, PromptChoice, PackageSelection, VersionBumpType
from .shell import capture

GROUP_LABELS: dict[VersionBumpType, tuple[str, str]] = {
    VersionBumpType.PATCH: ("Patch", "Backwards-compatible bug fixes"),
    VersionBumpType.MINOR: ("Minor", "Backwards-compatible features"),
    VersionBumpType.MAJOR: ("Major", "Potentially breaking API changes"),
}


class UpdateDiscovery:
    """Asks npm-check-updates which dependencies have newer versions."""

    def __init__(self, context: ExecutionContext) -> None:
        self.context = context

    def command(self) -> list[str]:
        return [
            "ncu",
            "--jsonUpgraded",
            "--packageFile",
            str(self.context.manifest_path),
        ]

    def load_updates(self) -> dict[str, str]:
        """Return package name → newest version for every outdated dependency.

        Raises:
            DiscoveryError: If ncu is missing, fails, or prints something
                other than a JSON object.
        """
        try:
            result = capture(*self.command())
        except FileNotFoundError as exc:
            raise DiscoveryError(
                "npm-check-updates is not installed (npm install -g npm-check-updates)"
            ) from exc

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise DiscoveryError(f"npm-check-updates failed: {detail}")

        output = result.stdout.strip()
        if not output:
            return {}
        try:
            data = json.loads(output)
        except json.JSONDecodeError as exc:
            raise DiscoveryError("Could not parse npm-check-updates output") from exc
        if not isinstance(data, dict):
            raise DiscoveryError("npm-check-updates did not return a JSON object")
        return {str(name): str(version) for name, version in data.items()}


def format_version_change(current: str, new: str) -> str:
    return f"{current} → {new}"


def build_choices(grouped: GroupedUpdates) -> list[PromptChoice]:
    """Build the selection list: one header per non-empty group, then its rows.

    Groups appear patch, minor, major. Nothing is pre-selected.
    """
    width = grouped.max_name_length()
    choices: list[PromptChoice] = []

    for bump, updates in grouped.in_display_order():
        if not updates:
            continue
        label, description = GROUP_LABELS[bump]
        choices.append(PromptChoice(label=f"\n{label} ({len(updates)}) - {description}"))
        for update in updates:
            padding = " " * (width - len(update.name) + 2)
            change = format_version_change(update.current_version, update.new_version)
            choices.append(
                PromptChoice(
                    label=f"{update.name}{padding}{change}  npmjs.com/package/{update.name}",
                    value=PackageSelection(name=update.name, version=update.new_version),
                )
            )
    return choices
