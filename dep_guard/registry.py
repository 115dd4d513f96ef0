"""npm registry client and safety-buffer version resolution.

The registry exposes every version of a package together with its publish
time (``GET /<name>`` → ``{"versions": {...}, "time": {...}}``). That is all
the resolver needs: a version is eligible once it is a stable release and
was published on or before the context's cutoff.

Fetches are retried with exponential backoff, except for failures that will
never succeed on retry (404, malformed response).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from .config import MAX_FETCH_ATTEMPTS, NPM_REGISTRY_URL, REGISTRY_TIMEOUT_SECONDS
from .context import ExecutionContext, utc_now
from .errors import RegistryFetchError, RegistryParseError, VersionNotFoundError
from .models import VersionResolutionResult
from .versions import is_stable

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


class RegistryMetadata(BaseModel):
    """The subset of a registry packument dep-guard reads."""

    versions: dict[str, Any]
    time: dict[str, str]


def encode_package_name(name: str) -> str:
    """URL-encode a package name, keeping the leading ``@`` of a scope.

    Examples:
        "chalk" → "chalk"
        "@vue/cli" → "@vue%2Fcli"
    """
    encoded = quote(name, safe="")
    if encoded.startswith("%40"):
        return "@" + encoded[3:]
    return encoded


class RegistryClient:
    """Fetches package metadata with retry and exponential backoff.

    Args:
        base_url: Registry root, without a trailing slash.
        timeout: Per-request timeout in seconds. A timeout counts as a
            retryable network error.
        max_attempts: Total attempts, including the first.
        sleep: Called with the backoff delay in seconds between attempts.
        transport: Optional httpx transport, for tests.
    """

    def __init__(
        self,
        base_url: str = NPM_REGISTRY_URL,
        *,
        timeout: float = REGISTRY_TIMEOUT_SECONDS,
        max_attempts: int = MAX_FETCH_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=timeout, transport=transport, follow_redirects=True
        )

    def __enter__(self) -> RegistryClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch_metadata(self, package_name: str) -> RegistryMetadata:
        """Fetch all versions and publish times for a package.

        404 responses and malformed bodies fail immediately. Network errors
        and other non-2xx statuses are retried, waiting 1s, then 2s, etc.

        Raises:
            RegistryFetchError: On 404, or once all attempts have failed.
            RegistryParseError: If the body lacks ``versions`` or ``time``.
        """
        last_error: RegistryFetchError | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._attempt_fetch(package_name)
            except RegistryFetchError as exc:
                if exc.status_code == 404:
                    raise
                last_error = exc

            if attempt < self.max_attempts:
                delay = 2 ** (attempt - 1)
                logger.warning(
                    "Registry fetch for %s failed (attempt %d/%d): %s (retry in %ds)",
                    package_name,
                    attempt,
                    self.max_attempts,
                    last_error,
                    delay,
                )
                self._sleep(delay)

        status = last_error.status_code if last_error else None
        raise RegistryFetchError(package_name, status) from last_error

    def _attempt_fetch(self, package_name: str) -> RegistryMetadata:
        url = f"{self.base_url}/{encode_package_name(package_name)}"
        logger.debug("GET %s", url)

        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise RegistryFetchError(package_name) from exc

        if not response.is_success:
            raise RegistryFetchError(package_name, response.status_code)

        try:
            return RegistryMetadata.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RegistryParseError(package_name) from exc


def parse_publish_time(package_name: str, value: str) -> datetime:
    """Parse a registry timestamp like ``2021-05-10T14:23:45.123Z``."""
    try:
        published = datetime.fromisoformat(value)
    except ValueError as exc:
        raise RegistryParseError(package_name) from exc
    if published.tzinfo is None:
        published = published.replace(tzinfo=UTC)
    return published


class VersionResolver:
    """Resolves versions of a package that satisfy the safety buffer."""

    def __init__(
        self,
        context: ExecutionContext,
        registry: RegistryClient,
        *,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.context = context
        self.registry = registry
        self._now = now

    def resolve_latest_safe_version(self, package_name: str) -> VersionResolutionResult:
        """Find the most recently published stable version old enough to install.

        Picks by publish time, not by version number: if 2.1.1 is still
        inside the buffer, 2.1.0 wins even when 1.9.9 was published after it.

        Returns:
            The chosen version and its age, or ``version=None, too_new=True``
            when no stable version was published before the cutoff.
        """
        metadata = self.registry.fetch_metadata(package_name)
        cutoff = self.context.cutoff

        eligible: list[tuple[str, datetime]] = []
        for version in metadata.versions:
            if not is_stable(version) or version not in metadata.time:
                continue
            published = parse_publish_time(package_name, metadata.time[version])
            if published <= cutoff:
                eligible.append((version, published))

        if not eligible:
            return VersionResolutionResult(version=None, too_new=True)

        version, published = max(eligible, key=lambda item: item[1])
        return VersionResolutionResult(
            version=version,
            too_new=False,
            age_in_days=self._age_in_days(published),
        )

    def validate_version(self, package_name: str, version: str) -> VersionResolutionResult:
        """Check whether an exact version exists and is old enough.

        Raises:
            VersionNotFoundError: If the registry has no such version.
        """
        metadata = self.registry.fetch_metadata(package_name)
        if version not in metadata.time:
            raise VersionNotFoundError(package_name, version)

        published = parse_publish_time(package_name, metadata.time[version])
        return VersionResolutionResult(
            version=version,
            too_new=published > self.context.cutoff,
            age_in_days=self._age_in_days(published),
        )

    def _age_in_days(self, published: datetime) -> int:
        return (self._now() - published) // ONE_DAY
