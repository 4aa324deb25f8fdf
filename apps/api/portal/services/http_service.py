"""HTTP helpers with retry/backoff for integrations."""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from portal.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_STATUSES = (408, 429, 500, 502, 503, 504)
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0
DEFAULT_MULTIPLIER = 2.0

OnRetry = Callable[[int, BaseException, float], None]


class ApiError(Exception):
    """Non-2xx response from an external API."""

    def __init__(self, message: str, status_code: int, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    def is_retryable(self, statuses=DEFAULT_RETRY_STATUSES) -> bool:
        return self.status_code in statuses

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


def compute_delay(
    attempt: int,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    multiplier: float = DEFAULT_MULTIPLIER,
) -> float:
    """Exponential backoff for ``attempt`` (1-based) with up to 30% jitter, capped."""
    exponential = initial_delay * (multiplier ** (attempt - 1))
    jitter = random.uniform(0, 0.3) * exponential
    return min(exponential + jitter, max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    multiplier: float = DEFAULT_MULTIPLIER,
    retryable_statuses=DEFAULT_RETRY_STATUSES,
    on_retry: OnRetry | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` with exponential backoff.

    At most ``max_retries + 1`` attempts. Auth (401/403), not-found (404) and
    other non-retryable API errors are raised immediately; transport errors
    carry no status and are retried. When attempts are exhausted the last
    original error is raised.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if isinstance(exc, ApiError):
                if exc.is_auth_error or exc.is_not_found:
                    raise
                if not exc.is_retryable(retryable_statuses):
                    raise

            if attempt > max_retries:
                raise

            delay = compute_delay(attempt, initial_delay, max_delay, multiplier)
            logger.warning(
                "Retrying after error (attempt %s/%s, delay %.2fs): %s",
                attempt,
                max_retries,
                delay,
                exc,
            )
            if on_retry:
                on_retry(attempt, exc, delay)
            await sleep(delay)
            attempt += 1


async def fetch_with_retry(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    retry_options: dict | None = None,
    **request_kwargs,
) -> httpx.Response:
    """Issue a request, turning non-2xx responses into ``ApiError`` inside ``with_retry``."""

    async def _do() -> httpx.Response:
        response = await http.request(method, url, **request_kwargs)
        if not response.is_success:
            raise ApiError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                response.status_code,
                response.text,
            )
        return response

    return await with_retry(_do, **(retry_options or {}))


def retry_options_from_settings() -> dict:
    return {
        "max_retries": settings.RETRY_MAX_ATTEMPTS,
        "initial_delay": settings.RETRY_INITIAL_DELAY_SECONDS,
        "max_delay": settings.RETRY_MAX_DELAY_SECONDS,
    }


def parse_iso_datetime(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp from a provider payload into aware UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_retry_after(response: httpx.Response) -> float | None:
    """Seconds to wait from a ``Retry-After`` header (delta-seconds or HTTP date)."""
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(int(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def is_token_expired_error(error: BaseException) -> bool:
    if not isinstance(error, ApiError):
        return False
    if error.is_auth_error:
        return True
    body = error.response_body.lower()
    return (
        "token expired" in body
        or "invalid_token" in body
        or "token has been expired" in body
    )


def is_network_error(error: BaseException) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    message = str(error).lower()
    return any(
        marker in message
        for marker in ("network", "connection refused", "name or service not known", "timed out", "connection reset")
    )


def describe_error(error: BaseException) -> str:
    """Short provider error text for result objects and sync details."""
    if is_token_expired_error(error):
        return f"Authentication expired, reconnect the account ({error})"
    if is_network_error(error):
        return f"Network error: {str(error) or type(error).__name__}"
    if isinstance(error, ApiError):
        return error.response_body or str(error)
    return str(error) or type(error).__name__
