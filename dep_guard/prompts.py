"""Interactive prompts.

Every prompt goes through :class:`ConfirmationGate` so that workflows can be
driven by a fake gate in tests, and so that Ctrl-C / Ctrl-D at any prompt is
reported the same way: as :class:`~dep_guard.errors.UserCancelledError`.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import NamedTuple

import click

from .errors import UserCancelledError, is_prompt_cancellation
from .models import PackageSelection, PromptChoice


class Option(NamedTuple):
    """One answer of a single-choice prompt."""

    value: str
    label: str
    description: str = ""


@contextmanager
def cancellation_handling() -> Iterator[None]:
    """Translate prompt aborts into UserCancelledError; re-raise anything else."""
    try:
        yield
    except BaseException as exc:
        if is_prompt_cancellation(exc):
            raise UserCancelledError() from exc
        raise


def parse_selection(text: str, count: int) -> list[int]:
    """Parse a selection like ``"1,3-5"`` into zero-based indices.

    ``"all"`` selects everything; an empty string selects nothing. Indices
    keep the order they were typed in, without duplicates.

    Raises:
        ValueError: If a token is not a number or range within 1..count.
    """
    text = text.strip().lower()
    if not text:
        return []
    if text == "all":
        return list(range(count))

    indices: list[int] = []
    for token in text.replace(",", " ").split():
        start_str, sep, end_str = token.partition("-")
        if not start_str.isdigit() or (sep and not end_str.isdigit()):
            raise ValueError(f"Not a number or range: {token}")
        start = int(start_str)
        end = int(end_str) if sep else start
        if start < 1 or end > count or start > end:
            raise ValueError(f"Out of range (1-{count}): {token}")
        for number in range(start, end + 1):
            if number - 1 not in indices:
                indices.append(number - 1)
    return indices


class ConfirmationGate:
    """Yes/no, single-choice, and multi-select prompts on the terminal."""

    def confirm(self, message: str, *, default: bool = False) -> bool:
        with cancellation_handling():
            return click.confirm(message, default=default)

    def select(self, message: str, options: Sequence[Option]) -> str:
        """Ask the user to pick one option; returns its ``value``."""
        click.echo(message)
        for number, option in enumerate(options, start=1):
            suffix = f" - {option.description}" if option.description else ""
            click.echo(f"  {number}) {option.label}{suffix}")
        with cancellation_handling():
            picked = click.prompt(
                "Choice", type=click.IntRange(1, len(options)), default=1
            )
        return options[picked - 1].value

    def checkbox(
        self, message: str, choices: Sequence[PromptChoice]
    ) -> list[PackageSelection]:
        """Let the user pick any number of packages from a grouped list.

        Group headers are shown but not numbered.
        """
        selectable: list[PackageSelection] = []
        for choice in choices:
            if choice.value is None:
                click.echo(choice.label)
                continue
            selectable.append(choice.value)
            click.echo(f"{len(selectable):>3}) {choice.label}")

        if not selectable:
            return []

        click.echo()
        while True:
            with cancellation_handling():
                answer = click.prompt(
                    f"{message} (e.g. 1,3-5, 'all', Enter for none)",
                    default="",
                    show_default=False,
                )
            try:
                indices = parse_selection(answer, len(selectable))
            except ValueError as exc:
                click.echo(f"  {exc}")
                continue
            return [selectable[i] for i in indices]
