"""Safety-buffer filtering of discovered updates.

For each candidate, the latest version that has been public for at least
``days`` days replaces the suggested version. Candidates with no such version,
or whose safe version is the one already in package.json, are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .context import ExecutionContext
from .errors import RegistryError
from .registry import VersionResolver
from .shell import info, skip, success, warning
from .versions import clean_version

logger = logging.getLogger(__name__)


class SafetyFilter:
    def __init__(self, context: ExecutionContext, resolver: VersionResolver) -> None:
        self.context = context
        self.resolver = resolver

    def filter_updates(self, updates: Mapping[str, str]) -> dict[str, str]:
        """Return only the updates that satisfy the safety buffer.

        Candidates are checked one at a time, in discovery order. A registry
        failure drops the candidate: an unverified version is never offered.

        Args:
            updates: Package name → version suggested by the update checker.

        Returns:
            Package name → safe version, in the same order.
        """
        current_versions = self.context.all_dependencies
        days = self.context.days
        filtered: dict[str, str] = {}

        info(f"Checking publish dates for {len(updates)} package(s)...")
        for name, suggested in updates.items():
            try:
                result = self.resolver.resolve_latest_safe_version(name)
            except RegistryError as exc:
                logger.debug("Safety check failed for %s", name, exc_info=exc)
                warning(f"{name} (could not verify publish date: {exc})")
                continue

            if result.version is None:
                skip(f"{name} (no version old enough found)")
                continue

            current = clean_version(current_versions.get(name, ""))
            if clean_version(result.version) == current:
                skip(f"{name} (safe version matches current)")
                continue

            filtered[name] = result.version
            if result.version != suggested:
                info(
                    f"📅 {name}: {result.version} "
                    f"(newer {suggested} not yet {days} days old)"
                )
            else:
                success(f"{name}: {result.version}")

        return filtered
