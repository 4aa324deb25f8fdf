"""Tests for stored OAuth tokens: refresh margin, single-flight refresh, persistence."""

import asyncio
from datetime import timedelta

import httpx

from portal.core.encryption import decrypt_token
from portal.db.enums import OAuthService, SyncMode
from portal.db.types import utcnow
from portal.services.oauth_service import (
    GoogleOAuthProvider,
    OAuthError,
    TokenService,
    TokenSet,
)


class StubProvider:
    service_key = OAuthService.GOOGLE_CALENDAR.value

    def __init__(self, fail: bool = False, delay: float = 0):
        self.refresh_calls = 0
        self.fail = fail
        self.delay = delay

    def is_configured(self) -> bool:
        return True

    async def refresh(self, refresh_token: str) -> TokenSet:
        self.refresh_calls += 1
        await asyncio.sleep(self.delay)
        if self.fail:
            raise OAuthError("invalid_grant")
        return TokenSet(
            access_token=f"refreshed-{self.refresh_calls}",
            refresh_token=None,
            expires_in=3600,
            scope=None,
        )


def store_token(db, tokens: TokenService, expires_in: int, refresh_token: str | None = "refresh-1"):
    return tokens.save_tokens(
        db,
        TokenSet(access_token="access-1", refresh_token=refresh_token, expires_in=expires_in, scope="calendar"),
        account_email="cabinet@example.test",
    )


async def test_token_far_from_expiry_is_returned_without_refresh(db):
    provider = StubProvider()
    tokens = TokenService(provider, refresh_margin_seconds=300)
    store_token(db, tokens, expires_in=3600)

    assert await tokens.get_valid_access_token(db) == "access-1"
    assert provider.refresh_calls == 0


async def test_token_inside_margin_is_refreshed_once(db):
    provider = StubProvider()
    tokens = TokenService(provider, refresh_margin_seconds=300)
    store_token(db, tokens, expires_in=60)

    assert await tokens.get_valid_access_token(db) == "refreshed-1"
    assert provider.refresh_calls == 1

    # The refreshed token is valid for an hour, no second refresh
    assert await tokens.get_valid_access_token(db) == "refreshed-1"
    assert provider.refresh_calls == 1


async def test_concurrent_callers_share_one_refresh(db):
    provider = StubProvider(delay=0.05)
    tokens = TokenService(provider, refresh_margin_seconds=300)
    store_token(db, tokens, expires_in=10)

    results = await asyncio.gather(*(tokens.get_valid_access_token(db) for _ in range(5)))

    assert provider.refresh_calls == 1
    assert set(results) == {"refreshed-1"}


async def test_refresh_keeps_stored_refresh_token(db):
    provider = StubProvider()
    tokens = TokenService(provider, refresh_margin_seconds=300)
    store_token(db, tokens, expires_in=10)

    await tokens.get_valid_access_token(db)

    record = tokens.get_record(db)
    assert decrypt_token(record.refresh_token_encrypted) == "refresh-1"
    assert record.expires_at > utcnow() + timedelta(minutes=50)


async def test_failed_refresh_returns_none(db):
    provider = StubProvider(fail=True)
    tokens = TokenService(provider, refresh_margin_seconds=300)
    store_token(db, tokens, expires_in=10)

    assert await tokens.get_valid_access_token(db) is None


async def test_missing_refresh_token_returns_none(db):
    provider = StubProvider()
    tokens = TokenService(provider, refresh_margin_seconds=300)
    store_token(db, tokens, expires_in=10, refresh_token=None)

    assert await tokens.get_valid_access_token(db) is None
    assert provider.refresh_calls == 0


async def test_no_record_means_not_connected(db):
    tokens = TokenService(StubProvider())
    assert await tokens.get_valid_access_token(db) is None
    assert tokens.connection_status(db) == {"connected": False}
    assert tokens.get_sync_mode(db) == SyncMode.AUTO.value


def test_tokens_are_encrypted_at_rest(db):
    tokens = TokenService(StubProvider())
    record = store_token(db, tokens, expires_in=3600)

    assert record.access_token_encrypted != "access-1"
    assert decrypt_token(record.access_token_encrypted) == "access-1"


def test_disconnect_removes_record(db):
    tokens = TokenService(StubProvider())
    store_token(db, tokens, expires_in=3600)

    assert tokens.disconnect(db) is True
    assert tokens.get_record(db) is None
    assert tokens.disconnect(db) is False


async def test_google_oauth_flow_stores_profile(db):
    def handler(request: httpx.Request) -> httpx.Response:
        if "oauth2.googleapis.com/token" in str(request.url):
            return httpx.Response(
                200,
                json={"access_token": "ya29.token", "refresh_token": "1//refresh", "expires_in": 3599},
            )
        return httpx.Response(200, json={"email": "cabinet@gmail.test", "name": "Cabinet"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        tokens = TokenService(GoogleOAuthProvider(http))
        record = await tokens.complete_oauth_flow(db, "auth-code")

    assert record.account_email == "cabinet@gmail.test"
    assert record.sync_mode == SyncMode.AUTO.value
    assert decrypt_token(record.refresh_token_encrypted) == "1//refresh"


def test_google_authorization_url_requests_offline_access():
    provider = GoogleOAuthProvider(http=None)
    url = provider.authorization_url("state-123")

    assert "access_type=offline" in url
    assert "state=state-123" in url
    assert "calendar" in url


async def _refresh_against(db, response: httpx.Response) -> str | None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as http:
        tokens = TokenService(GoogleOAuthProvider(http), refresh_margin_seconds=300)
        store_token(db, tokens, expires_in=10)
        return await tokens.get_valid_access_token(db)


async def test_refresh_answer_without_access_token_returns_none(db):
    assert await _refresh_against(db, httpx.Response(200, json={"error": "weird"})) is None


async def test_refresh_answer_not_json_returns_none(db):
    assert await _refresh_against(db, httpx.Response(200, text="<html>maintenance</html>")) is None
