"""
Connect flows: consent URL, state cookie and the public callbacks.
"""
from urllib.parse import parse_qs, urlparse

import httpx

from portal.db.models import OAuthToken

SETTINGS_URL = "http://frontend.test/admin/parametres"


def _redirect_params(response) -> dict[str, str]:
    location = response.headers["location"]
    assert location.startswith(SETTINGS_URL)
    return {k: v[0] for k, v in parse_qs(urlparse(location).query).items()}


def _google_tokens(providers) -> None:
    providers.add(
        "POST",
        "oauth2.googleapis.com/token",
        {"access_token": "access", "refresh_token": "refresh", "expires_in": 3600, "scope": "calendar"},
    )
    providers.add("GET", "/oauth2/v2/userinfo", {"email": "agenda@cabinet-avocats.fr", "name": "Agenda"})


async def test_authorize_requires_super_admin(admin_client):
    response = await admin_client.get("/api/admin/google/authorize")
    assert response.status_code == 403


async def test_authorize_sets_state_cookie(super_admin_client):
    response = await super_admin_client.get("/api/admin/google/authorize")

    assert response.status_code == 200
    auth_url = response.json()["auth_url"]
    state = parse_qs(urlparse(auth_url).query)["state"][0]
    assert response.cookies["portal_oauth_state_google"] == state
    assert "access_type=offline" in auth_url


async def test_callback_with_provider_error(client):
    response = await client.get("/api/admin/google/callback", params={"error": "access_denied"})

    assert response.status_code == 302
    assert _redirect_params(response) == {"tab": "integrations", "google_error": "access_denied"}


async def test_callback_without_code(client):
    response = await client.get("/api/admin/google/callback", params={"state": "abc"})
    assert _redirect_params(response)["google_error"] == "missing_code"


async def test_callback_with_wrong_state(client, db):
    response = await client.get(
        "/api/admin/google/callback",
        params={"code": "auth-code", "state": "forged"},
        headers={"Cookie": "portal_oauth_state_google=expected"},
    )

    assert _redirect_params(response)["google_error"] == "invalid_state"
    assert db.query(OAuthToken).count() == 0


async def test_callback_success_stores_tokens(client, db, providers):
    _google_tokens(providers)

    response = await client.get(
        "/api/admin/google/callback",
        params={"code": "auth-code", "state": "expected"},
        headers={"Cookie": "portal_oauth_state_google=expected"},
    )

    assert _redirect_params(response) == {"tab": "integrations", "google_success": "true"}
    record = db.query(OAuthToken).one()
    assert record.account_email == "agenda@cabinet-avocats.fr"
    assert record.access_token_encrypted != "access"


async def test_failed_exchange_is_reported(client, db, providers):
    providers.add("POST", "oauth2.googleapis.com/token", lambda r: httpx.Response(400, json={"error": "invalid_grant"}))

    response = await client.get(
        "/api/admin/google/callback",
        params={"code": "auth-code", "state": "expected"},
        headers={"Cookie": "portal_oauth_state_google=expected"},
    )

    assert "google_error" in _redirect_params(response)
    assert db.query(OAuthToken).count() == 0


async def test_microsoft_callback_uses_onedrive_keys(client, providers):
    providers.add(
        "POST",
        "login.microsoftonline.com",
        {"access_token": "access", "refresh_token": "refresh", "expires_in": 3600},
    )
    providers.add("GET", "graph.microsoft.com/v1.0/me", {"mail": "docs@cabinet-avocats.fr", "displayName": "Docs"})

    response = await client.get(
        "/api/admin/microsoft/callback",
        params={"code": "auth-code", "state": "s"},
        headers={"Cookie": "portal_oauth_state_microsoft=s"},
    )

    assert _redirect_params(response) == {"tab": "integrations", "onedrive_success": "true"}


async def test_sync_mode_round_trip(super_admin_client, db, providers):
    _google_tokens(providers)
    await super_admin_client.get(
        "/api/admin/google/callback",
        params={"code": "c", "state": "s"},
        headers={"Cookie": "portal_oauth_state_google=s"},
    )

    response = await super_admin_client.put("/api/admin/google/sync-mode", json={"mode": "manual"})

    assert response.json() == {"mode": "manual"}
    assert (await super_admin_client.get("/api/admin/google/sync-mode")).json() == {"mode": "manual"}


async def test_sync_mode_requires_connection(super_admin_client):
    response = await super_admin_client.put("/api/admin/google/sync-mode", json={"mode": "manual"})
    assert response.status_code == 400
