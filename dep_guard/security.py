"""Per-package security scanning with npq, and the confirmation that follows it.

npq (https://github.com/lirantal/npq) audits a package before install. dep-guard
only runs it in ``--dry-run`` mode and reads its exit status; a failed scan
is reported to the user but is not a veto, the user still decides.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import NamedTuple

from .models import PackageSelection
from .prompts import ConfirmationGate
from .shell import header, info, skip, success, try_run, warning


class SecurityScanner:
    """Runs ``npq install <spec> --dry-run``."""

    def command(self, package_spec: str) -> list[str]:
        return ["npq", "install", package_spec, "--dry-run"]

    def check(self, package_spec: str) -> bool:
        return try_run(*self.command(package_spec))


class ScanResult(NamedTuple):
    selection: PackageSelection
    passed: bool


class SecurityReview:
    """Scan results for a fixed list of selections, produced lazily.

    Each iteration starts over and scans again, one package at a time in
    selection order. Nothing is scanned until the first item is requested.
    """

    def __init__(self, scanner: SecurityScanner, selections: Sequence[PackageSelection]) -> None:
        self.scanner = scanner
        self.selections = list(selections)

    def __len__(self) -> int:
        return len(self.selections)

    def __iter__(self) -> Iterator[ScanResult]:
        for selection in self.selections:
            header(f"🔐 Processing {selection.spec}")
            info(f"Running npq security check for {selection.spec}")
            passed = self.scanner.check(selection.spec)
            if passed:
                success("NPQ security check passed")
            else:
                warning(f"NPQ security check failed for {selection.spec}")
            yield ScanResult(selection, passed)


class SecurityService:
    def __init__(self, scanner: SecurityScanner, gate: ConfirmationGate) -> None:
        self.scanner = scanner
        self.gate = gate

    def confirm_install(self, selection: PackageSelection, passed: bool) -> bool:
        status = "(NPQ: passed)" if passed else "(NPQ: failed)"
        confirmed = self.gate.confirm(f"Install {selection.spec}? {status}", default=False)
        if not confirmed:
            skip(f"Skipping {selection.spec}")
        return confirmed

    def scan_and_confirm(self, selection: PackageSelection) -> tuple[bool, bool]:
        """Scan one package and ask whether to install it.

        Returns:
            (scan passed, user confirmed)
        """
        (result,) = SecurityReview(self.scanner, [selection])
        return result.passed, self.confirm_install(result.selection, result.passed)

    def review(self, results: Iterable[ScanResult]) -> list[PackageSelection]:
        return [
            result.selection
            for result in results
            if self.confirm_install(result.selection, result.passed)
        ]

    def process_selection(
        self, selected: Sequence[PackageSelection]
    ) -> list[PackageSelection]:
        """Scan and confirm each selection; return the confirmed ones in order."""
        return self.review(SecurityReview(self.scanner, selected))
