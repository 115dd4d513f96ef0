"""Data models for dep-guard.

These Pydantic models are the records that flow between workflow stages.
Records describing a package are frozen: a stage that needs to add
information builds a new record from the previous one instead of mutating it.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class VersionBumpType(StrEnum):
    """Which semver component an update increases."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


# Ascending risk; used everywhere updates are listed
BUMP_DISPLAY_ORDER = (VersionBumpType.PATCH, VersionBumpType.MINOR, VersionBumpType.MAJOR)


class ExitReason(StrEnum):
    """Why a workflow stopped."""

    USER_CANCELLED = "user_cancelled"
    NO_UPDATES_AVAILABLE = "no_updates_available"
    ALL_UPDATES_FILTERED = "all_updates_filtered"
    NO_PACKAGES_SELECTED = "no_packages_selected"
    NO_PACKAGES_CONFIRMED = "no_packages_confirmed"
    COMPLETED = "completed"


class PackageUpdate(BaseModel):
    """A dependency with a newer version available.

    Attributes:
        name: Package name, possibly scoped (``@scope/name``).
        current_version: Version range from package.json, e.g. ``^1.2.0``.
            Kept as written for display.
        new_version: Exact version the update would install.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    current_version: str
    new_version: str


class PackageSelection(BaseModel):
    """A package and exact version the user chose to install."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str

    @property
    def spec(self) -> str:
        return f"{self.name}@{self.version}"


class GroupedUpdates(BaseModel):
    """Updates partitioned by bump type, each bucket in discovery order."""

    major: list[PackageUpdate] = Field(default_factory=list)
    minor: list[PackageUpdate] = Field(default_factory=list)
    patch: list[PackageUpdate] = Field(default_factory=list)

    def bucket(self, bump: VersionBumpType) -> list[PackageUpdate]:
        return getattr(self, bump.value)

    def in_display_order(self) -> Iterator[tuple[VersionBumpType, list[PackageUpdate]]]:
        """Yield (bump type, updates) pairs as patch, minor, major."""
        for bump in BUMP_DISPLAY_ORDER:
            yield bump, self.bucket(bump)

    @property
    def total(self) -> int:
        return len(self.major) + len(self.minor) + len(self.patch)

    def max_name_length(self) -> int:
        names = [u.name for _, bucket in self.in_display_order() for u in bucket]
        return max((len(n) for n in names), default=0)


class PromptChoice(BaseModel):
    """One row of the package selection list.

    Rows without a value are group headers and cannot be selected.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    value: PackageSelection | None = None

    @property
    def selectable(self) -> bool:
        return self.value is not None


class VersionResolutionResult(BaseModel):
    """Outcome of resolving or validating a version against the safety buffer.

    ``version=None`` with ``too_new=True`` means no version is old enough.
    ``age_in_days`` is measured against the current time, not the cutoff.
    """

    model_config = ConfigDict(frozen=True)

    version: str | None
    too_new: bool
    age_in_days: int | None = None


class WorkflowStats(BaseModel):
    """Counters accumulated while the update pipeline runs."""

    packages_found: int = 0
    packages_after_filter: int = 0
    packages_selected: int = 0
    packages_installed: int = 0
    packages_skipped: int = 0
    duration_ms: int = 0
    checks_failed: list[str] = Field(default_factory=list)


class WorkflowResult(BaseModel):
    """Final outcome of a workflow, returned instead of calling sys.exit()."""

    success: bool
    exit_code: Literal[0, 1, 130]
    reason: ExitReason
    stats: WorkflowStats | None = None


class QualityCheckResults(BaseModel):
    """Per-gate outcome: True passed, False failed, None skipped."""

    lint: bool | None = None
    typecheck: bool | None = None
    tests: bool | None = None

    def failures(self) -> list[str]:
        labels = {"lint": "lint", "typecheck": "type checks", "tests": "tests"}
        return [label for key, label in labels.items() if getattr(self, key) is False]


# Add workflow records, in the order the add pipeline produces them


class PackageSpec(BaseModel):
    """A package as typed on the command line. No version means "latest safe"."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str | None = None


class ResolvedPackage(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    was_specified: bool
    age_in_days: int | None = None


class ExistingPackageInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    exists: bool
    current_version: str | None = None
    location: Literal["dependencies", "devDependencies"] | None = None


class PackageToAdd(ResolvedPackage):
    save_dev: bool
    existing: ExistingPackageInfo

    @property
    def target_location(self) -> str:
        return "devDependencies" if self.save_dev else "dependencies"


class ConfirmedPackage(PackageToAdd):
    scan_passed: bool
    user_confirmed: bool


class InstalledPackage(ConfirmedPackage):
    install_success: bool


class AddWorkflowResult(BaseModel):
    success: bool
    exit_code: Literal[0, 1, 130]
    error_message: str | None = None
    package: InstalledPackage | None = None
