"""Package installation through scfw, with an npm fallback.

Every install dep-guard performs is exact (``--save-exact``), skips lifecycle
scripts (``--ignore-scripts``) and passes ``--before <cutoff>`` so that npm
itself refuses anything newer than the safety buffer, transitive
dependencies included.
"""

from __future__ import annotations

from collections.abc import Sequence

from .context import ExecutionContext
from .errors import InstallationFailureError
from .models import PackageSelection
from .prompts import ConfirmationGate
from .shell import error, fatal, header, info, is_available, skip, success, try_run, warning

SCFW_HINTS = (
    "Install with pipx (recommended): pipx install scfw",
    "Or with pip: pip install scfw",
)
SCFW_DOCS_URL = "https://github.com/DataDog/supply-chain-firewall"


def check_prerequisites(allow_npm_install: bool) -> bool:
    """Make sure scfw is installed before any workflow runs.

    Args:
        allow_npm_install: Whether plain ``npm install`` may stand in for scfw.

    Returns:
        True if installs should fall back to plain npm.
    """
    if is_available("scfw"):
        return False

    if allow_npm_install:
        warning("scfw not found; falling back to npm install (--allow-npm-install)")
        return True

    header("❌ Missing Required Security Tool")
    warning("dep-guard requires scfw (Datadog's Supply Chain Firewall) to be installed:")
    error("scfw not found")
    for hint in SCFW_HINTS:
        info(f"  {hint}")
    info(f"For more information, see: {SCFW_DOCS_URL}")
    info("Or re-run with --allow-npm-install to install with plain npm.")
    fatal("scfw is required")


class Installer:
    """Runs installs through scfw, or through plain npm when ``use_npm_fallback``."""

    def __init__(
        self,
        context: ExecutionContext,
        gate: ConfirmationGate,
        *,
        use_npm_fallback: bool = False,
    ) -> None:
        self.context = context
        self.gate = gate
        self.use_npm_fallback = use_npm_fallback

    @property
    def tool(self) -> str:
        return "npm" if self.use_npm_fallback else "scfw"

    def _npm_install(self) -> list[str]:
        prefix = ["npm"] if self.use_npm_fallback else ["scfw", "run", "npm"]
        return [*prefix, "install"]

    def build_install_args(self, specs: Sequence[str], save_dev: bool = False) -> list[str]:
        """Build the full argv for installing ``specs``.

        Examples:
            >>> installer.build_install_args(["chalk@5.3.0"])
            ['scfw', 'run', 'npm', 'install', 'chalk@5.3.0', '--save-exact',
             '--ignore-scripts', '--before', '2024-01-08T12:00:00.000Z']
        """
        args = [
            *self._npm_install(),
            *specs,
            "--save-exact",
            "--ignore-scripts",
            "--before",
            self.context.cutoff_iso,
        ]
        if save_dev:
            args.append("--save-dev")
        return args

    def build_bootstrap_args(self) -> list[str]:
        return [*self._npm_install(), "--ignore-scripts", "--before", self.context.cutoff_iso]

    def install(self, selections: Sequence[PackageSelection], save_dev: bool = False) -> bool:
        """Install all ``selections`` in one invocation, after confirmation.

        Returns:
            True if installed, False if the user declined.

        Raises:
            InstallationFailureError: If the installer exits non-zero.
        """
        specs = [selection.spec for selection in selections]
        header(f"🔐 Installing packages via {self.tool}")
        info(f"Packages to install: {', '.join(specs)}")

        if not self.gate.confirm(
            f"Do you want to install these packages via {self.tool}?", default=False
        ):
            skip(f"Skipping {self.tool} installation")
            return False

        info("Installing packages...")
        self.run_install(specs, save_dev)
        success("All packages installed successfully")
        return True

    def run_install(self, specs: Sequence[str], save_dev: bool = False) -> None:
        """Install ``specs`` without asking.

        Raises:
            InstallationFailureError: If the installer exits non-zero.
        """
        if not try_run(*self.build_install_args(specs, save_dev)):
            error(f"Failed to install {', '.join(specs)}")
            raise InstallationFailureError(f"{self.tool} installation failed")

    def reinstall(self) -> bool | None:
        """Run ``npm ci --ignore-scripts`` if the user agrees.

        Returns:
            True on success, None if skipped.

        Raises:
            InstallationFailureError: If ``npm ci`` fails.
        """
        header("📦 Reinstalling dependencies")
        if not self.gate.confirm(
            "Do you want to reinstall dependencies with npm ci?", default=False
        ):
            skip("Skipping npm ci")
            return None

        info("Reinstalling dependencies via npm ci...")
        if not try_run("npm", "ci", "--ignore-scripts"):
            error("Failed to reinstall dependencies")
            raise InstallationFailureError("CI reinstall failed")
        success("Dependencies reinstalled successfully")
        return True

    def bootstrap(self) -> bool | None:
        """Install everything in package.json, honouring the cutoff.

        Returns:
            True on success, None if skipped.

        Raises:
            InstallationFailureError: If the install fails.
        """
        header(f"📦 Installing dependencies via {self.tool}")
        info(f"Only versions published before {self.context.cutoff_iso} will be installed")
        if not self.gate.confirm(
            f"Do you want to install dependencies via {self.tool}?", default=False
        ):
            skip("Skipping installation")
            return None

        if not try_run(*self.build_bootstrap_args()):
            error("Failed to install dependencies")
            raise InstallationFailureError("Bootstrap installation failed")
        success("Dependencies installed successfully")
        return True
