"""Tests for the retry helper and provider error classification."""

import httpx
import pytest

from portal.services.http_service import (
    ApiError,
    compute_delay,
    describe_error,
    fetch_with_retry,
    is_network_error,
    is_token_expired_error,
    parse_iso_datetime,
    parse_retry_after,
    with_retry,
)


async def no_sleep(_delay: float) -> None:
    return None


def flaky(failures: int, error: Exception, value="ok"):
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise error
        return value

    return operation, calls


class TestWithRetry:
    @pytest.mark.parametrize("failures", [0, 1, 2, 3])
    async def test_recovers_after_transient_failures(self, failures):
        operation, calls = flaky(failures, ApiError("unavailable", 503))
        retries: list[int] = []

        result = await with_retry(
            operation,
            max_retries=3,
            on_retry=lambda attempt, exc, delay: retries.append(attempt),
            sleep=no_sleep,
        )

        assert result == "ok"
        assert calls["count"] == failures + 1
        assert len(retries) == failures
        assert retries == sorted(retries)

    @pytest.mark.parametrize("status", [401, 403, 404])
    async def test_auth_and_not_found_are_not_retried(self, status):
        operation, calls = flaky(5, ApiError("nope", status))

        with pytest.raises(ApiError) as exc_info:
            await with_retry(operation, max_retries=3, sleep=no_sleep)

        assert exc_info.value.status_code == status
        assert calls["count"] == 1

    async def test_non_retryable_status_raises_immediately(self):
        operation, calls = flaky(5, ApiError("bad request", 400))

        with pytest.raises(ApiError):
            await with_retry(operation, max_retries=3, sleep=no_sleep)
        assert calls["count"] == 1

    async def test_exhausted_attempts_raise_last_error(self):
        operation, calls = flaky(10, ApiError("rate limited", 429))

        with pytest.raises(ApiError) as exc_info:
            await with_retry(operation, max_retries=2, sleep=no_sleep)

        assert exc_info.value.status_code == 429
        assert calls["count"] == 3

    async def test_transport_errors_are_retried(self):
        operation, calls = flaky(1, httpx.ConnectError("connection refused"))

        assert await with_retry(operation, max_retries=1, sleep=no_sleep) == "ok"
        assert calls["count"] == 2

    async def test_sleeps_for_computed_delays(self):
        operation, _ = flaky(2, ApiError("unavailable", 503))
        delays: list[float] = []

        async def record_sleep(delay: float) -> None:
            delays.append(delay)

        await with_retry(operation, max_retries=3, initial_delay=1.0, max_delay=30.0, sleep=record_sleep)

        assert len(delays) == 2
        assert 1.0 <= delays[0] <= 1.3
        assert 2.0 <= delays[1] <= 2.6


def test_compute_delay_is_capped():
    assert compute_delay(10, initial_delay=1.0, max_delay=30.0) == 30.0


async def test_fetch_with_retry_turns_error_status_into_api_error():
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(502, text="bad gateway")
        return httpx.Response(200, json={"ok": True})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        response = await fetch_with_retry(
            http, "GET", "https://api.test/items", retry_options={"max_retries": 2, "initial_delay": 0}
        )

    assert response.json() == {"ok": True}
    assert attempts["count"] == 2


def test_parse_retry_after_seconds():
    response = httpx.Response(429, headers={"Retry-After": "12"})
    assert parse_retry_after(response) == 12.0
    assert parse_retry_after(httpx.Response(429)) is None


def test_token_expired_detection():
    assert is_token_expired_error(ApiError("unauthorized", 401))
    assert is_token_expired_error(ApiError("bad", 400, '{"error": "invalid_token"}'))
    assert not is_token_expired_error(ApiError("server", 500))
    assert not is_token_expired_error(ValueError("other"))


def test_parse_iso_datetime_normalises_to_utc():
    parsed = parse_iso_datetime("2025-03-01T10:00:00+01:00")
    assert parsed.isoformat() == "2025-03-01T09:00:00+00:00"
    assert parse_iso_datetime("2025-03-01T10:00:00Z").hour == 10
    assert parse_iso_datetime("not a date") is None
    assert parse_iso_datetime(None) is None


def test_network_error_detection():
    request = httpx.Request("GET", "https://graph.microsoft.com/v1.0/me")
    assert is_network_error(httpx.ConnectError("boom", request=request))
    assert is_network_error(RuntimeError("Connection reset by peer"))
    assert not is_network_error(ApiError("server", 500))


def test_describe_error_prefers_provider_body():
    assert describe_error(ApiError("HTTP 400", 400, '{"error": "bad"}')) == '{"error": "bad"}'
    assert describe_error(ApiError("HTTP 401", 401)).startswith("Authentication expired")
    assert describe_error(httpx.ReadTimeout("timed out")).startswith("Network error")
    assert describe_error(KeyError()) == "KeyError"
