"""Add workflow: resolve → check existing → scan and confirm → install.

``dep-guard add chalk`` installs the newest version of chalk that has been
public for the safety buffer. ``dep-guard add chalk@5.3.0`` asks first if
that exact version is younger than the buffer.

Each step returns the next record, or raises :class:`AddStopped` to end the
workflow with a message. Stopping is not always a failure: keeping the
current version is a normal outcome and exits 0.
"""

from __future__ import annotations

from .context import ExecutionContext
from .errors import (
    EXIT_CODE_CANCELLED,
    EXIT_CODE_ERROR,
    EXIT_CODE_SUCCESS,
    InstallationFailureError,
    RegistryError,
    UserCancelledError,
    log_cancellation,
)
from .install import Installer
from .models import (
    AddWorkflowResult,
    ConfirmedPackage,
    ExistingPackageInfo,
    InstalledPackage,
    PackageSelection,
    PackageSpec,
    PackageToAdd,
    ResolvedPackage,
)
from .prompts import ConfirmationGate, Option
from .registry import VersionResolver
from .security import SecurityService
from .shell import error, info, success, warning
from .versions import is_valid_package_name


class AddStopped(Exception):
    """Ends the add workflow early.

    Attributes:
        failed: True for errors (exit 1); False when the user chose to stop
            or there is nothing to do (exit 0).
    """

    def __init__(self, message: str, *, failed: bool = False) -> None:
        super().__init__(message)
        self.failed = failed


def parse_package_spec(raw: str) -> PackageSpec:
    """Split ``name[@version]`` into a PackageSpec.

    Scoped names keep their leading ``@``.

    Examples:
        "chalk" → PackageSpec(name="chalk")
        "chalk@5.3.0" → PackageSpec(name="chalk", version="5.3.0")
        "@vue/cli@5.0.8" → PackageSpec(name="@vue/cli", version="5.0.8")

    Raises:
        ValueError: If the name is not a valid npm package name, or the
            version after ``@`` is empty.
    """
    raw = raw.strip()
    at = raw.rfind("@")
    if at > 0:
        name, version = raw[:at], raw[at + 1 :]
        if not version:
            raise ValueError(f"Missing version after '@' in {raw!r}")
    else:
        name, version = raw, None

    if not is_valid_package_name(name):
        raise ValueError(f"Invalid package name: {name!r}")
    return PackageSpec(name=name, version=version)


class ResolveVersionStep:
    def __init__(
        self, context: ExecutionContext, resolver: VersionResolver, gate: ConfirmationGate
    ) -> None:
        self.context = context
        self.resolver = resolver
        self.gate = gate

    def execute(self, spec: PackageSpec) -> ResolvedPackage:
        """Pick the version to add.

        Raises:
            AddStopped: If no suitable version exists, the registry lookup
                fails, or the user cancels at the too-new prompt.
        """
        try:
            if spec.version is None:
                return self._latest_safe(spec.name)
            return self._validate(spec.name, spec.version)
        except RegistryError as exc:
            raise AddStopped(str(exc), failed=True) from exc

    def _latest_safe(self, name: str) -> ResolvedPackage:
        info(f"Finding latest safe version for {name}...")
        result = self.resolver.resolve_latest_safe_version(name)
        if result.version is None:
            raise AddStopped(
                f"No version of {name} is at least {self.context.days} days old",
                failed=True,
            )
        success(f"Resolved {name}@{result.version} ({result.age_in_days} days old)")
        return ResolvedPackage(
            name=name,
            version=result.version,
            was_specified=False,
            age_in_days=result.age_in_days,
        )

    def _validate(self, name: str, version: str) -> ResolvedPackage:
        info(f"Validating {name}@{version}...")
        result = self.resolver.validate_version(name, version)

        if result.too_new:
            days = self.context.days
            warning(
                f"Version {version} of {name} was published only "
                f"{result.age_in_days} days ago"
            )
            info(f"Safety buffer requires versions to be at least {days} days old")
            action = self.gate.select(
                "What would you like to do?",
                [
                    Option(
                        "latest_safe",
                        "Find latest safe version instead",
                        f"Use the latest version that is at least {days} days old",
                    ),
                    Option(
                        "continue",
                        "Continue anyway (skip safety check)",
                        "Install the requested version despite being too new",
                    ),
                    Option("cancel", "Cancel", "Don't install this package"),
                ],
            )
            if action == "cancel":
                raise AddStopped("Installation cancelled by user")
            if action == "latest_safe":
                return self._latest_safe(name)
            success(f"Using {name}@{version}")
        else:
            success(f"Validated {name}@{version} ({result.age_in_days} days old)")

        return ResolvedPackage(
            name=name,
            version=version,
            was_specified=True,
            age_in_days=result.age_in_days,
        )


def existing_package_info(context: ExecutionContext, name: str) -> ExistingPackageInfo:
    """Where ``name`` is declared today; dependencies are checked first."""
    if name in context.dependencies:
        return ExistingPackageInfo(
            exists=True,
            current_version=context.dependencies[name],
            location="dependencies",
        )
    if name in context.dev_dependencies:
        return ExistingPackageInfo(
            exists=True,
            current_version=context.dev_dependencies[name],
            location="devDependencies",
        )
    return ExistingPackageInfo(exists=False)


class CheckExistingPackageStep:
    def __init__(self, context: ExecutionContext, gate: ConfirmationGate) -> None:
        self.context = context
        self.gate = gate

    def execute(self, resolved: ResolvedPackage, save_dev: bool) -> PackageToAdd:
        existing = existing_package_info(self.context, resolved.name)
        package = PackageToAdd(
            **resolved.model_dump(), save_dev=save_dev, existing=existing
        )

        if not existing.exists:
            info(f"Package {resolved.name} not found in package.json")
            return package

        target = package.target_location
        info(f"Package {resolved.name} already exists:")
        info(f"  Current: {existing.current_version} in {existing.location}")
        info(f"  New:     {resolved.version}")
        info(f"  Target:  {target}")

        same_version = existing.current_version == resolved.version
        same_location = existing.location == target
        if same_version and same_location:
            info(f"Package {resolved.name}@{resolved.version} is already installed in {target}")
            raise AddStopped("Package already installed with same version and location")

        options: list[Option] = []
        if not same_version:
            options.append(
                Option(
                    "update",
                    f"Update to {resolved.version}",
                    f"Replace {existing.current_version} with {resolved.version}",
                )
            )
        if not same_location:
            verb = "Move" if same_version else "Update and move"
            options.append(
                Option(
                    "update",
                    f"{verb} to {target}",
                    f"Change from {existing.location} to {target}",
                )
            )
        options.append(
            Option(
                "keep",
                "Keep current version",
                f"Leave {existing.current_version} in {existing.location}",
            )
        )
        options.append(Option("cancel", "Cancel", "Don't modify this package"))

        action = self.gate.select("What would you like to do?", options)
        if action == "cancel":
            raise AddStopped("Installation cancelled by user")
        if action == "keep":
            info(f"Keeping {resolved.name}@{existing.current_version}")
            raise AddStopped("User chose to keep current version")

        success(f"Will update {resolved.name} to {resolved.version}")
        return package


class AddSecurityValidationStep:
    def __init__(self, security: SecurityService) -> None:
        self.security = security

    def execute(self, package: PackageToAdd) -> ConfirmedPackage:
        selection = PackageSelection(name=package.name, version=package.version)
        passed, confirmed = self.security.scan_and_confirm(selection)
        if not confirmed:
            warning("Installation cancelled")
            raise AddStopped("User did not confirm installation after security check")
        return ConfirmedPackage(
            **package.model_dump(), scan_passed=passed, user_confirmed=True
        )


class AddInstallPackageStep:
    def __init__(self, installer: Installer) -> None:
        self.installer = installer

    def execute(self, package: ConfirmedPackage) -> InstalledPackage:
        spec = f"{package.name}@{package.version}"
        info(f"Installing {spec}...")
        try:
            self.installer.run_install([spec], save_dev=package.save_dev)
        except InstallationFailureError as exc:
            raise AddStopped(f"Installation failed for {spec}", failed=True) from exc
        success(f"Installed {spec}")

        try:
            self.installer.reinstall()
        except InstallationFailureError as exc:
            raise AddStopped(
                "Failed to reinstall dependencies after adding package", failed=True
            ) from exc

        success(f"Successfully added {spec}!")
        self.show_summary(package)
        return InstalledPackage(**package.model_dump(), install_success=True)

    def show_summary(self, package: ConfirmedPackage) -> None:
        info(f"📦 Installed to: {package.target_location}")
        if package.scan_passed:
            info("🔒 Security: NPQ checks passed")
        else:
            warning("Security: NPQ checks failed (installed on user confirmation)")
        if package.age_in_days is not None:
            info(f"⏱  Version age: {package.age_in_days} days old")


class AddWorkflow:
    """Adds a single package through resolve, check, scan, and install."""

    def __init__(
        self,
        context: ExecutionContext,
        *,
        resolver: VersionResolver,
        gate: ConfirmationGate,
        security: SecurityService,
        installer: Installer,
    ) -> None:
        self.resolve_step = ResolveVersionStep(context, resolver, gate)
        self.check_step = CheckExistingPackageStep(context, gate)
        self.security_step = AddSecurityValidationStep(security)
        self.install_step = AddInstallPackageStep(installer)

    def execute(self, spec: PackageSpec, *, save_dev: bool = False) -> AddWorkflowResult:
        info(f"Adding package: {spec.name}")
        try:
            resolved = self.resolve_step.execute(spec)
            package = self.check_step.execute(resolved, save_dev)
            confirmed = self.security_step.execute(package)
            installed = self.install_step.execute(confirmed)
        except UserCancelledError:
            log_cancellation()
            return AddWorkflowResult(
                success=False,
                exit_code=EXIT_CODE_CANCELLED,
                error_message="User cancelled",
            )
        except AddStopped as stop:
            message = str(stop)
            if stop.failed:
                error(message)
                return AddWorkflowResult(
                    success=False, exit_code=EXIT_CODE_ERROR, error_message=message
                )
            info(message)
            return AddWorkflowResult(
                success=False, exit_code=EXIT_CODE_SUCCESS, error_message=message
            )

        return AddWorkflowResult(
            success=True, exit_code=EXIT_CODE_SUCCESS, package=installed
        )
