"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx
import pytest

from dep_guard.context import ExecutionContext
from dep_guard.models import PackageSelection, PromptChoice
from dep_guard.prompts import Option
from dep_guard.registry import RegistryClient

# Cutoff with the default 7-day buffer is 2024-01-08T12:00:00Z
FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


def fixed_now() -> datetime:
    return FIXED_NOW


class FakeGate:
    """Scripted stand-in for ConfirmationGate.

    Answers are consumed in order. An exception instance in a queue is
    raised instead of returned, to simulate an aborted prompt.
    """

    def __init__(
        self,
        *,
        confirms: Sequence[Any] = (),
        selects: Sequence[Any] = (),
        checkbox: Any = (),
        confirm_default: bool = False,
    ) -> None:
        self.confirms = list(confirms)
        self.selects = list(selects)
        self.checkbox_answer = checkbox
        self.confirm_default = confirm_default
        self.messages: list[str] = []
        self.options_seen: list[list[Option]] = []
        self.choices_seen: list[PromptChoice] = []

    @staticmethod
    def _answer(value: Any) -> Any:
        if isinstance(value, BaseException):
            raise value
        return value

    def confirm(self, message: str, *, default: bool = False) -> bool:
        self.messages.append(message)
        return self._answer(self.confirms.pop(0) if self.confirms else self.confirm_default)

    def select(self, message: str, options: Sequence[Option]) -> str:
        self.messages.append(message)
        self.options_seen.append(list(options))
        return self._answer(self.selects.pop(0) if self.selects else "cancel")

    def checkbox(
        self, message: str, choices: Sequence[PromptChoice]
    ) -> list[PackageSelection]:
        self.messages.append(message)
        self.choices_seen = list(choices)
        return list(self._answer(self.checkbox_answer))


def packument(times: dict[str, str]) -> dict[str, Any]:
    """Build a minimal registry response for the given version → publish time."""
    return {
        "versions": {version: {"version": version} for version in times},
        "time": {"created": "2020-01-01T00:00:00.000Z", **times},
    }


def registry_for(
    responses: dict[str, dict[str, Any]], sleeps: list[float] | None = None
) -> RegistryClient:
    """RegistryClient answering from ``responses`` keyed by encoded package name."""

    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.raw_path.decode().lstrip("/")
        if name in responses:
            return httpx.Response(200, json=responses[name])
        return httpx.Response(404, json={"error": "Not found"})

    return RegistryClient(
        "https://registry.test",
        transport=httpx.MockTransport(handler),
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
    )


@pytest.fixture
def manifest_data() -> dict[str, Any]:
    return {
        "name": "demo-app",
        "version": "1.0.0",
        "scripts": {
            "lint": "eslint .",
            "typecheck": "tsc --noEmit",
            "test": "vitest run",
            "build": "tsc",
        },
        "dependencies": {"chalk": "^4.1.0", "lodash": "~4.17.20", "@vue/cli": "5.0.0"},
        "devDependencies": {"typescript": "^5.2.0"},
    }


@pytest.fixture
def manifest(tmp_path: Path, manifest_data: dict[str, Any]) -> Path:
    """Write package.json into a temporary project directory."""
    path = tmp_path / "package.json"
    path.write_text(json.dumps(manifest_data))
    return path


@pytest.fixture
def make_context(manifest: Path) -> Callable[..., ExecutionContext]:
    def factory(**kwargs: Any) -> ExecutionContext:
        kwargs.setdefault("now", fixed_now)
        return ExecutionContext.from_manifest(manifest, **kwargs)

    return factory


@pytest.fixture
def context(make_context: Callable[..., ExecutionContext]) -> ExecutionContext:
    return make_context()
