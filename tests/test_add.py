"""Tests for dep_guard.add."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest

from dep_guard.add import (
    AddStopped,
    AddWorkflow,
    CheckExistingPackageStep,
    ResolveVersionStep,
    existing_package_info,
    parse_package_spec,
)
from dep_guard.context import ExecutionContext
from dep_guard.errors import UserCancelledError, VersionNotFoundError
from dep_guard.install import Installer
from dep_guard.models import PackageSpec, ResolvedPackage, VersionResolutionResult
from dep_guard.registry import VersionResolver
from dep_guard.security import SecurityScanner, SecurityService

from conftest import FakeGate, fixed_now, packument, registry_for

SAFE = VersionResolutionResult(version="3.22.0", too_new=False, age_in_days=45)
TOO_NEW = VersionResolutionResult(version="3.23.0", too_new=True, age_in_days=1)


@pytest.fixture
def resolver() -> MagicMock:
    mock = MagicMock(spec=VersionResolver)
    mock.resolve_latest_safe_version.return_value = SAFE
    mock.validate_version.return_value = SAFE
    return mock


@pytest.fixture
def install_run() -> Iterator[MagicMock]:
    with patch("dep_guard.install.try_run", return_value=True) as mock:
        yield mock


def make_workflow(
    context: ExecutionContext, resolver: VersionResolver, gate: FakeGate, *, scan_passes: bool = True
) -> AddWorkflow:
    scanner = MagicMock(spec=SecurityScanner)
    scanner.check.return_value = scan_passes
    return AddWorkflow(
        context,
        resolver=resolver,
        gate=gate,
        security=SecurityService(scanner, gate),
        installer=Installer(context, gate),
    )


class TestParsePackageSpec:
    """Tests for parse_package_spec()."""

    @pytest.mark.parametrize(
        ("raw", "name", "version"),
        [
            ("chalk", "chalk", None),
            ("chalk@5.3.0", "chalk", "5.3.0"),
            ("@vue/cli", "@vue/cli", None),
            ("@vue/cli@5.0.8", "@vue/cli", "5.0.8"),
            ("  lodash@4.17.21 ", "lodash", "4.17.21"),
        ],
    )
    def test_valid(self, raw: str, name: str, version: str | None) -> None:
        assert parse_package_spec(raw) == PackageSpec(name=name, version=version)

    def test_missing_version(self) -> None:
        with pytest.raises(ValueError, match="Missing version"):
            parse_package_spec("chalk@")

    @pytest.mark.parametrize("raw", ["", "Chalk", "has space", "@scope", "../etc"])
    def test_invalid_name(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_package_spec(raw)


class TestResolveVersionStep:
    """Tests for ResolveVersionStep."""

    def test_latest_safe_when_unversioned(
        self, context: ExecutionContext, resolver: MagicMock
    ) -> None:
        resolved = ResolveVersionStep(context, resolver, FakeGate()).execute(
            PackageSpec(name="zod")
        )
        assert resolved == ResolvedPackage(
            name="zod", version="3.22.0", was_specified=False, age_in_days=45
        )

    def test_nothing_old_enough(self, context: ExecutionContext, resolver: MagicMock) -> None:
        resolver.resolve_latest_safe_version.return_value = VersionResolutionResult(
            version=None, too_new=True
        )
        with pytest.raises(AddStopped, match="at least 7 days old") as exc_info:
            ResolveVersionStep(context, resolver, FakeGate()).execute(PackageSpec(name="zod"))
        assert exc_info.value.failed is True

    def test_requested_version_old_enough(
        self, context: ExecutionContext, resolver: MagicMock
    ) -> None:
        gate = FakeGate()
        resolved = ResolveVersionStep(context, resolver, gate).execute(
            PackageSpec(name="zod", version="3.22.0")
        )
        assert resolved.was_specified is True
        assert gate.messages == []

    def test_too_new_offers_three_options(
        self, context: ExecutionContext, resolver: MagicMock
    ) -> None:
        resolver.validate_version.return_value = TOO_NEW
        gate = FakeGate(selects=["continue"])

        resolved = ResolveVersionStep(context, resolver, gate).execute(
            PackageSpec(name="zod", version="3.23.0")
        )

        assert [o.value for o in gate.options_seen[0]] == ["latest_safe", "continue", "cancel"]
        assert resolved.version == "3.23.0"
        assert resolved.age_in_days == 1

    def test_too_new_switch_to_latest_safe(
        self, context: ExecutionContext, resolver: MagicMock
    ) -> None:
        resolver.validate_version.return_value = TOO_NEW
        gate = FakeGate(selects=["latest_safe"])

        resolved = ResolveVersionStep(context, resolver, gate).execute(
            PackageSpec(name="zod", version="3.23.0")
        )

        assert resolved.version == "3.22.0"
        assert resolved.was_specified is False

    def test_too_new_cancel(self, context: ExecutionContext, resolver: MagicMock) -> None:
        resolver.validate_version.return_value = TOO_NEW
        with pytest.raises(AddStopped) as exc_info:
            ResolveVersionStep(context, resolver, FakeGate(selects=["cancel"])).execute(
                PackageSpec(name="zod", version="3.23.0")
            )
        assert exc_info.value.failed is False

    def test_unknown_version(self, context: ExecutionContext, resolver: MagicMock) -> None:
        resolver.validate_version.side_effect = VersionNotFoundError("zod", "9.9.9")
        with pytest.raises(AddStopped, match="Version 9.9.9 not found") as exc_info:
            ResolveVersionStep(context, resolver, FakeGate()).execute(
                PackageSpec(name="zod", version="9.9.9")
            )
        assert exc_info.value.failed is True


class TestCheckExistingPackageStep:
    """Tests for CheckExistingPackageStep and existing_package_info()."""

    def test_lookup_prefers_dependencies(self, context: ExecutionContext) -> None:
        assert existing_package_info(context, "chalk").location == "dependencies"
        assert existing_package_info(context, "typescript").location == "devDependencies"
        assert existing_package_info(context, "zod").exists is False

    def test_new_package_no_prompt(self, context: ExecutionContext) -> None:
        gate = FakeGate()
        package = CheckExistingPackageStep(context, gate).execute(
            ResolvedPackage(name="zod", version="3.22.0", was_specified=False), save_dev=True
        )
        assert package.target_location == "devDependencies"
        assert gate.messages == []

    def test_already_installed(self, context: ExecutionContext) -> None:
        resolved = ResolvedPackage(name="@vue/cli", version="5.0.0", was_specified=True)
        with pytest.raises(AddStopped, match="already installed") as exc_info:
            CheckExistingPackageStep(context, FakeGate()).execute(resolved, save_dev=False)
        assert exc_info.value.failed is False

    def test_different_version_update(self, context: ExecutionContext) -> None:
        gate = FakeGate(selects=["update"])
        resolved = ResolvedPackage(name="chalk", version="5.3.0", was_specified=False)

        package = CheckExistingPackageStep(context, gate).execute(resolved, save_dev=False)

        labels = [o.label for o in gate.options_seen[0]]
        assert labels == ["Update to 5.3.0", "Keep current version", "Cancel"]
        assert package.existing.current_version == "^4.1.0"

    def test_same_version_other_location(self, context: ExecutionContext) -> None:
        gate = FakeGate(selects=["update"])
        resolved = ResolvedPackage(name="@vue/cli", version="5.0.0", was_specified=True)

        CheckExistingPackageStep(context, gate).execute(resolved, save_dev=True)

        assert gate.options_seen[0][0].label == "Move to devDependencies"

    def test_keep_current(self, context: ExecutionContext) -> None:
        gate = FakeGate(selects=["keep"])
        resolved = ResolvedPackage(name="chalk", version="5.3.0", was_specified=False)
        with pytest.raises(AddStopped, match="keep current version"):
            CheckExistingPackageStep(context, gate).execute(resolved, save_dev=False)


class TestAddWorkflow:
    """End-to-end runs of AddWorkflow with scripted prompts."""

    def test_adds_package(
        self, context: ExecutionContext, resolver: MagicMock, install_run: MagicMock
    ) -> None:
        # security confirmation, then npm ci
        gate = FakeGate(confirms=[True, True])

        result = make_workflow(context, resolver, gate).execute(
            PackageSpec(name="zod"), save_dev=True
        )

        assert result.success is True
        assert result.exit_code == 0
        assert result.package.install_success is True
        assert result.package.scan_passed is True
        install_args = install_run.call_args_list[0].args
        assert "zod@3.22.0" in install_args
        assert install_args[-1] == "--save-dev"

    def test_failed_scan_still_installable(
        self, context: ExecutionContext, resolver: MagicMock, install_run: MagicMock
    ) -> None:
        gate = FakeGate(confirms=[True, False])
        result = make_workflow(context, resolver, gate, scan_passes=False).execute(
            PackageSpec(name="zod")
        )
        assert result.success is True
        assert result.package.scan_passed is False
        assert gate.messages[0] == "Install zod@3.22.0? (NPQ: failed)"

    def test_declined_after_scan(
        self, context: ExecutionContext, resolver: MagicMock, install_run: MagicMock
    ) -> None:
        result = make_workflow(context, resolver, FakeGate(confirms=[False])).execute(
            PackageSpec(name="zod")
        )
        assert result.exit_code == 0
        assert result.success is False
        assert result.error_message == "User did not confirm installation after security check"
        install_run.assert_not_called()

    def test_install_failure(
        self, context: ExecutionContext, resolver: MagicMock, install_run: MagicMock
    ) -> None:
        install_run.return_value = False
        result = make_workflow(context, resolver, FakeGate(confirms=[True])).execute(
            PackageSpec(name="zod")
        )
        assert result.exit_code == 1
        assert result.error_message == "Installation failed for zod@3.22.0"

    def test_reinstall_failure(
        self, context: ExecutionContext, resolver: MagicMock, install_run: MagicMock
    ) -> None:
        install_run.side_effect = [True, False]
        result = make_workflow(context, resolver, FakeGate(confirms=[True, True])).execute(
            PackageSpec(name="zod")
        )
        assert result.exit_code == 1
        assert "reinstall" in result.error_message

    def test_cancelled_prompt(
        self,
        context: ExecutionContext,
        resolver: MagicMock,
        install_run: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        gate = FakeGate(confirms=[UserCancelledError()])

        result = make_workflow(context, resolver, gate).execute(PackageSpec(name="zod"))

        assert result.exit_code == 130
        assert result.error_message == "User cancelled"
        assert "No changes were made" in capsys.readouterr().out

    def test_unknown_version_exits_1(
        self, context: ExecutionContext, resolver: MagicMock, install_run: MagicMock
    ) -> None:
        resolver.validate_version.side_effect = VersionNotFoundError("zod", "9.9.9")
        result = make_workflow(context, resolver, FakeGate()).execute(
            PackageSpec(name="zod", version="9.9.9")
        )
        assert result.exit_code == 1
        install_run.assert_not_called()

    def test_already_installed_exits_0(
        self, context: ExecutionContext, resolver: MagicMock, install_run: MagicMock
    ) -> None:
        resolver.validate_version.return_value = VersionResolutionResult(
            version="5.0.0", too_new=False, age_in_days=400
        )
        result = make_workflow(context, resolver, FakeGate()).execute(
            PackageSpec(name="@vue/cli", version="5.0.0")
        )
        assert result.exit_code == 0
        assert result.success is False

    def test_against_registry(self, context: ExecutionContext, install_run: MagicMock) -> None:
        registry = registry_for(
            {
                "zod": packument(
                    {
                        "3.21.0": "2023-10-01T00:00:00.000Z",
                        "3.22.0": "2023-12-01T00:00:00.000Z",
                        "3.23.0-beta.1": "2023-12-20T00:00:00.000Z",
                        "3.23.0": "2024-01-14T00:00:00.000Z",
                    }
                )
            }
        )
        resolver = VersionResolver(context, registry, now=fixed_now)

        result = make_workflow(context, resolver, FakeGate(confirms=[True, False])).execute(
            PackageSpec(name="zod")
        )

        assert result.package.version == "3.22.0"
        assert result.package.age_in_days == 45
