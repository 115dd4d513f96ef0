"""Exception hierarchy, exit codes, and cancellation handling.

Errors fall into three groups:
- Registry errors, raised by the resolver. 404s and malformed responses are
  terminal; everything else was retried before it reached the caller.
- Fatal execution errors (installer or ``npm ci`` failed). These abort the
  run with exit code 1.
- User cancellation, from an aborted prompt or a signal. Always exit 130.

"No version is old enough" is not an error; the resolver returns it as a
normal result.
"""

from __future__ import annotations

import signal
import sys
from types import FrameType

import click

EXIT_CODE_SUCCESS = 0
EXIT_CODE_ERROR = 1
# POSIX convention for termination by SIGINT
EXIT_CODE_CANCELLED = 130


class DepGuardError(Exception):
    """Base class for all errors raised by dep-guard."""


class ConfigError(DepGuardError):
    """Settings file or flag values are invalid."""


class ManifestError(DepGuardError):
    """package.json is missing or cannot be parsed."""


class RegistryError(DepGuardError):
    """Base class for npm registry failures."""

    def __init__(self, package_name: str, message: str) -> None:
        super().__init__(message)
        self.package_name = package_name


class RegistryFetchError(RegistryError):
    """The registry request failed (network error or non-2xx status)."""

    def __init__(self, package_name: str, status_code: int | None = None) -> None:
        if status_code:
            message = (
                f"Failed to fetch {package_name} from npm registry (HTTP {status_code})"
            )
        else:
            message = f"Failed to fetch {package_name} from npm registry"
        super().__init__(package_name, message)
        self.status_code = status_code


class RegistryParseError(RegistryError):
    """The registry response is missing ``versions``/``time`` or is not JSON."""

    def __init__(self, package_name: str) -> None:
        super().__init__(
            package_name, f"Failed to parse registry response for {package_name}"
        )


class VersionNotFoundError(RegistryError):
    """A requested exact version was never published."""

    def __init__(self, package_name: str, version: str) -> None:
        super().__init__(
            package_name, f"Version {version} not found for package {package_name}"
        )
        self.version = version


class DiscoveryError(DepGuardError):
    """The update checker failed or produced unreadable output."""


class InstallationFailureError(DepGuardError):
    """An installer subprocess exited non-zero."""


class UserCancelledError(DepGuardError):
    """The user aborted an interactive prompt."""

    def __init__(self) -> None:
        super().__init__("Operation cancelled by user")


def is_prompt_cancellation(exc: BaseException) -> bool:
    """Return True if ``exc`` is how a prompt reports Ctrl-C or Ctrl-D."""
    return isinstance(exc, (click.exceptions.Abort, KeyboardInterrupt, EOFError))


def log_cancellation() -> None:
    """Print the notice shown whenever the user cancels."""
    click.echo("\n")
    click.echo("Operation cancelled by user")
    click.echo("No changes were made to your dependencies.")


def handle_shutdown(signum: int, frame: FrameType | None) -> None:
    """Signal handler for SIGINT and SIGTERM."""
    log_cancellation()
    sys.exit(EXIT_CODE_CANCELLED)


def install_signal_handlers() -> None:
    """Route SIGINT and SIGTERM through :func:`handle_shutdown`."""
    signal.signal(signal.SIGINT, handle_shutdown)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, handle_shutdown)
