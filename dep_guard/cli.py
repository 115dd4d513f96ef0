"""CLI entry point for dep-guard."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Any

import click

from .add import AddWorkflow, parse_package_spec
from .config import MANIFEST_FILE, Settings, resolve_settings
from .context import ExecutionContext
from .discovery import UpdateDiscovery
from .errors import DepGuardError, install_signal_handlers
from .install import Installer, check_prerequisites
from .pipeline import BootstrapWorkflow, UpdateWorkflow
from .prompts import ConfirmationGate
from .quality import QualityService, validate_scripts
from .registry import RegistryClient, VersionResolver
from .safety import SafetyFilter
from .security import SecurityScanner, SecurityService
from .steps import StepContext

__version__ = pkg_version("dep-guard")

SCRIPT_OPTIONS = ("lint", "typecheck", "test", "build")


def _validate_days(ctx: click.Context, param: click.Parameter, value: int | None) -> int | None:
    if value is not None and value < 0:
        raise click.ClickException("--days must be zero or greater")
    return value


def workflow_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every subcommand."""
    options = [
        click.option(
            "-d",
            "--days",
            type=int,
            default=None,
            callback=_validate_days,
            help="Safety buffer: minimum age in days of any version installed [default: 7].",
        ),
        click.option("--lint", default=None, metavar="SCRIPT", help="Lint script name."),
        click.option(
            "--typecheck", default=None, metavar="SCRIPT", help="Type check script name."
        ),
        click.option("--test", default=None, metavar="SCRIPT", help="Test script name."),
        click.option("--build", default=None, metavar="SCRIPT", help="Build script name."),
        click.option(
            "--allow-npm-install",
            is_flag=True,
            help="Fall back to plain npm install when scfw is not available.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@contextmanager
def reporting_errors() -> Iterator[None]:
    """Report dep-guard errors as ``Error: <message>`` with exit code 1."""
    try:
        yield
    except DepGuardError as exc:
        raise click.ClickException(str(exc)) from exc


def prepare(
    *,
    days: int | None,
    allow_npm_install: bool,
    check_tools: bool = True,
    **scripts: str | None,
) -> tuple[Settings, ExecutionContext, bool]:
    """Resolve settings, check for scfw, and read package.json.

    Returns:
        (settings, context, whether to fall back to plain npm)
    """
    root = Path.cwd()
    settings = resolve_settings(
        root, days=days, scripts=scripts, allow_npm_install=allow_npm_install
    )
    use_npm_fallback = (
        check_prerequisites(settings.allow_npm_install) if check_tools else False
    )
    context = ExecutionContext.from_manifest(
        root / MANIFEST_FILE, days=settings.days, script_names=settings.scripts
    )
    return settings, context, use_npm_fallback


@click.group()
@click.version_option(__version__, prog_name="dep-guard")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """Safety layer for npm dependency updates.

    Only installs versions that have been published for a minimum number of
    days, scanned with npq, and installed through scfw.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    install_signal_handlers()


@cli.command()
@workflow_options
@click.option(
    "--dry-run", is_flag=True, help="Show safe updates without prompting or installing."
)
@click.pass_context
def update(ctx: click.Context, dry_run: bool, **options: Any) -> None:
    """Check for and install dependency updates."""
    if dry_run and any(options[name] for name in SCRIPT_OPTIONS):
        raise click.ClickException(
            "--dry-run cannot be combined with --lint, --typecheck, --test or --build"
        )

    with reporting_errors():
        settings, context, use_npm_fallback = prepare(check_tools=not dry_run, **options)
        if not dry_run:
            validate_scripts(context)

        gate = ConfirmationGate()
        with RegistryClient(settings.registry) as registry:
            resolver = VersionResolver(context, registry)
            step_context = StepContext(
                context=context,
                gate=gate,
                discovery=UpdateDiscovery(context),
                safety=SafetyFilter(context, resolver),
                security=SecurityService(SecurityScanner(), gate),
                installer=Installer(context, gate, use_npm_fallback=use_npm_fallback),
                quality=QualityService(context, gate),
            )
            result = UpdateWorkflow(step_context, dry_run=dry_run).execute()

    ctx.exit(result.exit_code)


@cli.command()
@click.argument("package")
@click.option("-D", "--save-dev", is_flag=True, help="Add to devDependencies.")
@workflow_options
@click.pass_context
def add(ctx: click.Context, package: str, save_dev: bool, **options: Any) -> None:
    """Add PACKAGE (name or name@version) at a version old enough to trust."""
    try:
        spec = parse_package_spec(package)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    with reporting_errors():
        settings, context, use_npm_fallback = prepare(**options)

        gate = ConfirmationGate()
        with RegistryClient(settings.registry) as registry:
            workflow = AddWorkflow(
                context,
                resolver=VersionResolver(context, registry),
                gate=gate,
                security=SecurityService(SecurityScanner(), gate),
                installer=Installer(context, gate, use_npm_fallback=use_npm_fallback),
            )
            result = workflow.execute(spec, save_dev=save_dev)

    ctx.exit(result.exit_code)


@cli.command()
@workflow_options
@click.pass_context
def install(ctx: click.Context, **options: Any) -> None:
    """Install the dependencies in package.json, honouring the safety buffer."""
    with reporting_errors():
        _, context, use_npm_fallback = prepare(**options)
        installer = Installer(context, ConfirmationGate(), use_npm_fallback=use_npm_fallback)
        result = BootstrapWorkflow(installer).execute()

    ctx.exit(result.exit_code)
