"""Subprocess and console output utilities.

Provides thin wrappers around subprocess calls for the external tools
dep-guard drives (npm, scfw, npq, ncu), plus the handful of output helpers
every workflow stage uses to talk to the user.
"""

from __future__ import annotations

import logging
import subprocess

import click

logger = logging.getLogger(__name__)


def _wait(proc: subprocess.Popen) -> tuple:
    """Wait for ``proc`` to exit, even when interrupted.

    A signal handler may raise while we are blocked (SIGINT or SIGTERM
    become SystemExit). The child gets the same signal from the terminal and
    is left to finish its own cleanup; it is waited on, never killed.
    """
    try:
        return proc.communicate()
    except BaseException:
        proc.communicate()
        raise


def run(*args: str) -> subprocess.CompletedProcess[bytes]:
    """Run an external command, streaming its output to the terminal.

    Output is not captured so users can follow install and scan progress.
    A missing executable is reported as exit code 127, the shell convention,
    instead of raising.

    Args:
        *args: Command and arguments (e.g., "npm", "ci", "--ignore-scripts").

    Returns:
        CompletedProcess with returncode for checking success.
    """
    logger.debug("Running: %s", " ".join(args))
    try:
        proc = subprocess.Popen(args)
    except FileNotFoundError:
        logger.debug("Executable not found: %s", args[0])
        return subprocess.CompletedProcess(args, 127)
    with proc:
        _wait(proc)
    return subprocess.CompletedProcess(args, proc.returncode)


def try_run(*args: str) -> bool:
    """Run a command and return True if it exited with status 0."""
    return run(*args).returncode == 0


def capture(*args: str) -> subprocess.CompletedProcess[str]:
    """Run a command and capture stdout/stderr as text.

    Raises:
        FileNotFoundError: If the executable does not exist.
    """
    logger.debug("Running (captured): %s", " ".join(args))
    with subprocess.Popen(
        args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True
    ) as proc:
        stdout, stderr = _wait(proc)
    return subprocess.CompletedProcess(args, proc.returncode, stdout, stderr)


def is_available(command: str) -> bool:
    """Check that ``command --version`` runs successfully."""
    try:
        result = subprocess.run(
            [command, "--version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def step(num: int, total: int, label: str) -> None:
    """Print a visually distinct header for a workflow stage."""
    click.echo(f"\n{'─' * 60}\n[{num}/{total}] {label}\n{'─' * 60}")


def header(msg: str) -> None:
    click.echo(f"\n{msg}\n{'=' * 60}")


def info(msg: str) -> None:
    click.echo(msg)


def success(msg: str) -> None:
    click.echo(f"✓ {msg}")


def warning(msg: str) -> None:
    click.echo(f"⚠ {msg}")


def skip(msg: str) -> None:
    click.echo(f"⊘ {msg}")


def error(msg: str) -> None:
    click.echo(f"✗ {msg}", err=True)


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the run.
    """
    click.echo(f"Error: {msg}", err=True)
    raise SystemExit(1)
