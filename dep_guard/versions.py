"""Version parsing and bump classification.

npm versions in package.json usually carry a range operator (``^1.2.3``,
``~1.2.3``). Comparisons strip one leading operator and only consider strict
``major.minor.patch`` strings; anything with a prerelease or build suffix is
treated as unparsable.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

import semver

from .models import GroupedUpdates, PackageUpdate, VersionBumpType

STABLE_VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")
PACKAGE_NAME_PATTERN = re.compile(r"^[a-z0-9._-]+$")
SCOPED_PACKAGE_PATTERN = re.compile(r"^@[a-z0-9._-]+/[a-z0-9._-]+$")


def clean_version(version: str) -> str:
    """Strip a single leading ``^`` or ``~`` range operator.

    Examples:
        "^1.2.3" → "1.2.3"
        "~0.4.0" → "0.4.0"
        "1.2.3" → "1.2.3"
    """
    if version[:1] in ("^", "~"):
        return version[1:]
    return version


def is_stable(version: str) -> bool:
    """Return True for exactly three dot-separated integers, no suffix."""
    return STABLE_VERSION_PATTERN.match(version) is not None


def parse_version(version: str) -> semver.Version | None:
    """Parse a cleaned ``N.N.N`` string into a semver.Version.

    Returns None for anything else, including prereleases like
    ``2.0.0-beta.1``. Built from the integer components rather than
    ``semver.Version.parse`` so that leading zeros ("01.2.3") still parse.
    """
    cleaned = clean_version(version)
    if not is_stable(cleaned):
        return None
    major, minor, patch = (int(part) for part in cleaned.split("."))
    return semver.Version(major, minor, patch)


def get_bump_type(current: str | None, new: str | None) -> VersionBumpType:
    """Classify an update by the most significant component that increased.

    Falls back to PATCH when either side is missing or unparsable, and when
    no component increased (same version or a downgrade).
    """
    if not current or not new:
        return VersionBumpType.PATCH

    current_parsed = parse_version(current)
    new_parsed = parse_version(new)
    if current_parsed is None or new_parsed is None:
        return VersionBumpType.PATCH

    if new_parsed.major > current_parsed.major:
        return VersionBumpType.MAJOR
    if new_parsed.minor > current_parsed.minor:
        return VersionBumpType.MINOR
    return VersionBumpType.PATCH


def group_by_type(
    updates: Mapping[str, str], current_versions: Mapping[str, str]
) -> GroupedUpdates:
    """Partition updates into major/minor/patch buckets.

    Args:
        updates: Map of package name → new version, in discovery order.
        current_versions: Map of package name → version range from
            package.json (dependencies and devDependencies merged).

    Returns:
        GroupedUpdates with each bucket in the same order as ``updates``.
    """
    grouped = GroupedUpdates()
    for name, new_version in updates.items():
        current = current_versions.get(name, "")
        grouped.bucket(get_bump_type(current, new_version)).append(
            PackageUpdate(name=name, current_version=current, new_version=new_version)
        )
    return grouped


def is_valid_package_name(name: str) -> bool:
    """Check a name against npm's naming rules (plain or ``@scope/name``)."""
    if name.startswith("@"):
        return SCOPED_PACKAGE_PATTERN.match(name) is not None
    return PACKAGE_NAME_PATTERN.match(name) is not None
