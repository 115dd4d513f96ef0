"""Update pipeline: discover → filter → organize → select → scan → install.

This module runs the update workflow:
1. Ask npm-check-updates which dependencies have newer versions
2. Replace each candidate with its newest version old enough to trust
3. Group candidates by semver bump
4. Let the user pick what to update
5. Scan each pick with npq and confirm it individually
6. Install everything confirmed in one scfw invocation
7. Reinstall the whole tree with ``npm ci``
8. Optionally lint, type check, and test
9. Optionally build

Stages 1-5 may stop the run early; nothing is installed before stage 6.
The bootstrap workflow behind ``dep-guard install`` lives here as well.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from .discovery import GROUP_LABELS, format_version_change
from .errors import EXIT_CODE_CANCELLED, EXIT_CODE_SUCCESS, UserCancelledError, log_cancellation
from .install import Installer
from .models import ExitReason, WorkflowResult, WorkflowStats
from .shell import header, info, step, success, warning
from .steps import UPDATE_STEPS, OrganizedUpdates, Start, StepContext, WorkflowStep


class UpdateWorkflow:
    """Runs the update stages in order, stopping at the first early exit.

    Args:
        ctx: Context and services shared by every stage.
        steps: Stages to run, in order.
        dry_run: Stop after grouping and print what would be offered.
        clock: Monotonic clock in seconds, for the elapsed-time summary.
    """

    def __init__(
        self,
        ctx: StepContext,
        *,
        steps: Sequence[WorkflowStep] = UPDATE_STEPS,
        dry_run: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ctx = ctx
        self.steps = list(steps)
        self.dry_run = dry_run
        self.clock = clock

    @property
    def stats(self) -> WorkflowStats:
        return self.ctx.stats

    def execute(self) -> WorkflowResult:
        """Run the pipeline and report how it ended.

        Early exits are not failures of the tool: they return exit code 0 with
        ``success=False`` and the stage's reason. Fatal errors such as
        :class:`~dep_guard.errors.InstallationFailureError` propagate.
        """
        started = self.clock()
        try:
            result = self._run()
        except UserCancelledError:
            log_cancellation()
            result = WorkflowResult(
                success=False,
                exit_code=EXIT_CODE_CANCELLED,
                reason=ExitReason.USER_CANCELLED,
            )
        self.stats.duration_ms = int((self.clock() - started) * 1000)
        self.stats.packages_skipped = max(
            self.stats.packages_selected - self.stats.packages_installed, 0
        )
        result.stats = self.stats

        if result.reason is ExitReason.COMPLETED and not self.dry_run:
            self.show_summary()
        return result

    def _run(self) -> WorkflowResult:
        data = Start()
        total = len(self.steps)

        for current in self.steps:
            if not isinstance(data, current.accepts):
                raise TypeError(
                    f"{type(current).__name__} expects {current.accepts.__name__}, "
                    f"got {type(data).__name__}"
                )
            step(current.num, total, current.label)
            outcome = current.execute(data, self.ctx)

            if not outcome.proceed:
                return WorkflowResult(
                    success=False,
                    exit_code=EXIT_CODE_SUCCESS,
                    reason=outcome.exit_reason,
                )
            data = outcome.data

            if self.dry_run and isinstance(data, OrganizedUpdates):
                self.show_dry_run(data)
                break

        return WorkflowResult(
            success=True, exit_code=EXIT_CODE_SUCCESS, reason=ExitReason.COMPLETED
        )

    def show_dry_run(self, data: OrganizedUpdates) -> None:
        header("Available safe updates (dry run)")
        for bump, updates in data.grouped.in_display_order():
            if not updates:
                continue
            label, description = GROUP_LABELS[bump]
            info(f"\n{label} ({len(updates)}) - {description}")
            for update in updates:
                change = format_version_change(update.current_version, update.new_version)
                info(f"  {update.name}  {change}")
        info(f"\n{data.grouped.total} package(s) can be updated. No changes were made.")

    def show_summary(self) -> None:
        header("UPDATE COMPLETE")
        info(f"Packages updated: {self.stats.packages_installed}")
        info(f"Packages skipped: {self.stats.packages_skipped}")
        info(f"Time taken: {self.stats.duration_ms / 1000:.1f}s")
        if self.stats.checks_failed:
            warning(f"Checks failed: {', '.join(self.stats.checks_failed)}")


class BootstrapWorkflow:
    """Installs the project's declared dependencies, respecting the cutoff."""

    def __init__(
        self, installer: Installer, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.installer = installer
        self.clock = clock

    def execute(self) -> WorkflowResult:
        started = self.clock()
        try:
            installed = self.installer.bootstrap()
        except UserCancelledError:
            log_cancellation()
            return WorkflowResult(
                success=False,
                exit_code=EXIT_CODE_CANCELLED,
                reason=ExitReason.USER_CANCELLED,
                stats=self._stats(started),
            )

        if installed is None:
            return WorkflowResult(
                success=False,
                exit_code=EXIT_CODE_SUCCESS,
                reason=ExitReason.NO_PACKAGES_SELECTED,
                stats=self._stats(started),
            )

        success("Install complete")
        return WorkflowResult(
            success=True,
            exit_code=EXIT_CODE_SUCCESS,
            reason=ExitReason.COMPLETED,
            stats=self._stats(started),
        )

    def _stats(self, started: float) -> WorkflowStats:
        return WorkflowStats(duration_ms=int((self.clock() - started) * 1000))
