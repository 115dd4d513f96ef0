"""Tests for dep_guard.models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from dep_guard.models import (
    ExistingPackageInfo,
    GroupedUpdates,
    PackageSelection,
    PackageToAdd,
    PackageUpdate,
    QualityCheckResults,
    VersionBumpType,
    WorkflowResult,
)


class TestPackageSelection:
    """Tests for PackageSelection."""

    def test_spec(self) -> None:
        assert PackageSelection(name="@vue/cli", version="5.0.8").spec == "@vue/cli@5.0.8"

    def test_frozen(self) -> None:
        selection = PackageSelection(name="chalk", version="5.3.0")
        with pytest.raises(ValidationError):
            selection.version = "5.4.0"


class TestGroupedUpdates:
    """Tests for GroupedUpdates."""

    def test_display_order_is_patch_minor_major(self) -> None:
        grouped = GroupedUpdates()
        assert [bump for bump, _ in grouped.in_display_order()] == [
            VersionBumpType.PATCH,
            VersionBumpType.MINOR,
            VersionBumpType.MAJOR,
        ]

    def test_max_name_length(self) -> None:
        grouped = GroupedUpdates(
            patch=[PackageUpdate(name="a", current_version="1.0.0", new_version="1.0.1")],
            major=[PackageUpdate(name="@types/node", current_version="18.0.0", new_version="20.0.0")],
        )
        assert grouped.max_name_length() == len("@types/node")
        assert grouped.total == 2

    def test_empty(self) -> None:
        assert GroupedUpdates().max_name_length() == 0


class TestQualityCheckResults:
    """Tests for QualityCheckResults.failures()."""

    def test_skipped_is_not_a_failure(self) -> None:
        results = QualityCheckResults(lint=None, typecheck=True, tests=None)
        assert results.failures() == []

    def test_lists_failures_in_order(self) -> None:
        results = QualityCheckResults(lint=False, typecheck=True, tests=False)
        assert results.failures() == ["lint", "tests"]

    def test_typecheck_label(self) -> None:
        assert QualityCheckResults(typecheck=False).failures() == ["type checks"]


class TestWorkflowResult:
    """Tests for WorkflowResult."""

    def test_rejects_unknown_exit_code(self) -> None:
        with pytest.raises(ValidationError):
            WorkflowResult(success=False, exit_code=2, reason="completed")


class TestPackageToAdd:
    """Tests for PackageToAdd."""

    @pytest.mark.parametrize(
        ("save_dev", "expected"), [(True, "devDependencies"), (False, "dependencies")]
    )
    def test_target_location(self, save_dev: bool, expected: str) -> None:
        package = PackageToAdd(
            name="chalk",
            version="5.3.0",
            was_specified=False,
            save_dev=save_dev,
            existing=ExistingPackageInfo(exists=False),
        )
        assert package.target_location == expected
