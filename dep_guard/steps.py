"""Stages of the update pipeline.

Each stage consumes the payload produced by the stage before it and returns a
:class:`StepResult`: either the payload for the next stage, or an exit reason
that ends the run. Only stages 1-5 ever exit early; once the user has agreed
to install something, the remaining stages always run to completion or fail
hard.

Payloads are tagged with a ``stage`` literal so a payload's type can be
checked against the stage that is about to consume it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, Field, model_validator

from .context import ExecutionContext
from .discovery import UpdateDiscovery, build_choices
from .install import Installer
from .models import (
    ExitReason,
    GroupedUpdates,
    PackageSelection,
    PromptChoice,
    WorkflowStats,
)
from .prompts import ConfirmationGate
from .quality import QualityService
from .safety import SafetyFilter
from .security import SecurityService
from .shell import info, success, warning
from .versions import group_by_type


# Stage payloads


class Start(BaseModel):
    stage: Literal["start"] = "start"


class DiscoveredUpdates(BaseModel):
    stage: Literal["discovered"] = "discovered"
    updates: dict[str, str]


class SafeUpdates(BaseModel):
    stage: Literal["filtered"] = "filtered"
    updates: dict[str, str]


class OrganizedUpdates(BaseModel):
    stage: Literal["organized"] = "organized"
    grouped: GroupedUpdates
    choices: list[PromptChoice]


class SelectedPackages(BaseModel):
    stage: Literal["selected"] = "selected"
    packages: list[PackageSelection]


class ConfirmedPackages(BaseModel):
    stage: Literal["confirmed"] = "confirmed"
    packages: list[PackageSelection]


class InstalledPackages(BaseModel):
    stage: Literal["installed"] = "installed"
    packages: list[PackageSelection]


class ReconciledPackages(BaseModel):
    stage: Literal["reconciled"] = "reconciled"
    packages: list[PackageSelection]


class CheckedPackages(BaseModel):
    stage: Literal["checked"] = "checked"
    packages: list[PackageSelection]


class VerifiedPackages(BaseModel):
    stage: Literal["verified"] = "verified"
    packages: list[PackageSelection]


StepData = Annotated[
    Union[
        Start,
        DiscoveredUpdates,
        SafeUpdates,
        OrganizedUpdates,
        SelectedPackages,
        ConfirmedPackages,
        InstalledPackages,
        ReconciledPackages,
        CheckedPackages,
        VerifiedPackages,
    ],
    Field(discriminator="stage"),
]


class StepResult(BaseModel):
    """Outcome of one stage: a payload to continue with, or a reason to stop."""

    proceed: bool
    exit_reason: ExitReason | None = None
    data: StepData | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> StepResult:
        if self.proceed:
            if self.data is None:
                raise ValueError("a continuing step must carry a payload")
            if self.exit_reason is not None:
                raise ValueError("a continuing step cannot carry an exit reason")
        else:
            if self.exit_reason is None:
                raise ValueError("an exiting step must carry an exit reason")
            if self.data is not None:
                raise ValueError("an exiting step cannot carry a payload")
        return self


def continue_with(data: BaseModel) -> StepResult:
    return StepResult(proceed=True, data=data)


def exit_with(reason: ExitReason) -> StepResult:
    return StepResult(proceed=False, exit_reason=reason)


@dataclass
class StepContext:
    """What every stage can reach: the run's context, its services, and stats."""

    context: ExecutionContext
    gate: ConfirmationGate
    discovery: UpdateDiscovery
    safety: SafetyFilter
    security: SecurityService
    installer: Installer
    quality: QualityService
    stats: WorkflowStats = field(default_factory=WorkflowStats)


class WorkflowStep:
    """Base class for pipeline stages.

    Subclasses set ``num``, ``label`` and ``accepts`` (the payload type the
    stage consumes) and implement :meth:`execute`.
    """

    num: ClassVar[int]
    label: ClassVar[str]
    accepts: ClassVar[type[BaseModel]]

    def execute(self, data, ctx: StepContext) -> StepResult:
        raise NotImplementedError


class CheckUpdatesStep(WorkflowStep):
    num = 1
    label = "Checking for available updates"
    accepts = Start

    def execute(self, data: Start, ctx: StepContext) -> StepResult:
        updates = ctx.discovery.load_updates()
        ctx.stats.packages_found = len(updates)

        if not updates:
            success("All dependencies are up to date!")
            return exit_with(ExitReason.NO_UPDATES_AVAILABLE)

        info(f"Found {len(updates)} potential updates")
        return continue_with(DiscoveredUpdates(updates=updates))


class SafetyBufferStep(WorkflowStep):
    num = 2
    label = "Applying safety buffer"
    accepts = DiscoveredUpdates

    def execute(self, data: DiscoveredUpdates, ctx: StepContext) -> StepResult:
        safe = ctx.safety.filter_updates(data.updates)
        ctx.stats.packages_after_filter = len(safe)

        if not safe:
            warning(
                "No updates available (all recent versions are less than "
                f"{ctx.context.days} days old)"
            )
            return exit_with(ExitReason.ALL_UPDATES_FILTERED)

        success(f"{len(safe)} safe updates available")
        return continue_with(SafeUpdates(updates=safe))


class OrganizeUpdatesStep(WorkflowStep):
    num = 3
    label = "Organizing updates by type"
    accepts = SafeUpdates

    def execute(self, data: SafeUpdates, ctx: StepContext) -> StepResult:
        grouped = group_by_type(data.updates, ctx.context.all_dependencies)
        info(
            f"Major: {len(grouped.major)}, "
            f"Minor: {len(grouped.minor)}, "
            f"Patch: {len(grouped.patch)}"
        )
        return continue_with(
            OrganizedUpdates(grouped=grouped, choices=build_choices(grouped))
        )


class SelectPackagesStep(WorkflowStep):
    num = 4
    label = "Select packages to update"
    accepts = OrganizedUpdates

    def execute(self, data: OrganizedUpdates, ctx: StepContext) -> StepResult:
        selected = ctx.gate.checkbox("Select packages to update", data.choices)
        ctx.stats.packages_selected = len(selected)

        if not selected:
            warning("No packages selected")
            return exit_with(ExitReason.NO_PACKAGES_SELECTED)

        return continue_with(SelectedPackages(packages=selected))


class SecurityValidationStep(WorkflowStep):
    num = 5
    label = "Security validation"
    accepts = SelectedPackages

    def execute(self, data: SelectedPackages, ctx: StepContext) -> StepResult:
        confirmed = ctx.security.process_selection(data.packages)

        if not confirmed:
            warning("No packages confirmed for installation")
            return exit_with(ExitReason.NO_PACKAGES_CONFIRMED)

        return continue_with(ConfirmedPackages(packages=confirmed))


class InstallPackagesStep(WorkflowStep):
    num = 6
    label = "Installing packages"
    accepts = ConfirmedPackages

    def execute(self, data: ConfirmedPackages, ctx: StepContext) -> StepResult:
        # InstallationFailureError propagates and ends the run
        if ctx.installer.install(data.packages):
            ctx.stats.packages_installed = len(data.packages)
        return continue_with(InstalledPackages(packages=data.packages))


class ReinstallDependenciesStep(WorkflowStep):
    num = 7
    label = "Reinstalling all dependencies"
    accepts = InstalledPackages

    def execute(self, data: InstalledPackages, ctx: StepContext) -> StepResult:
        ctx.installer.reinstall()
        return continue_with(ReconciledPackages(packages=data.packages))


class QualityChecksStep(WorkflowStep):
    num = 8
    label = "Quality checks"
    accepts = ReconciledPackages

    def execute(self, data: ReconciledPackages, ctx: StepContext) -> StepResult:
        results = ctx.quality.run_all()
        ctx.stats.checks_failed.extend(results.failures())
        return continue_with(CheckedPackages(packages=data.packages))


class BuildVerificationStep(WorkflowStep):
    num = 9
    label = "Build verification"
    accepts = CheckedPackages

    def execute(self, data: CheckedPackages, ctx: StepContext) -> StepResult:
        if ctx.quality.run_build() is False:
            ctx.stats.checks_failed.append("build")
        return continue_with(VerifiedPackages(packages=data.packages))


UPDATE_STEPS: tuple[WorkflowStep, ...] = (
    CheckUpdatesStep(),
    SafetyBufferStep(),
    OrganizeUpdatesStep(),
    SelectPackagesStep(),
    SecurityValidationStep(),
    InstallPackagesStep(),
    ReinstallDependenciesStep(),
    QualityChecksStep(),
    BuildVerificationStep(),
)
