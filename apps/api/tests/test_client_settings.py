"""Client settings: summary, email preferences and resetting the second factor."""

import pyotp
import pytest

from conftest import TEST_PASSWORD
from portal.core.deps import CLIENT_COOKIE_NAME
from portal.services import mfa_service


@pytest.fixture
def totp_secret(db, test_client) -> str:
    secret, _ = mfa_service.setup_totp(db, test_client)
    test_client.totp_enabled = True
    db.commit()
    return secret


async def test_settings_summary(portal_client, test_client):
    response = await portal_client.get("/api/client/settings")

    assert response.status_code == 200
    assert response.json() == {
        "email": test_client.email,
        "nom": "Martin",
        "prenom": "Paul",
        "telephone": None,
        "totp_enabled": True,
        "notif_email_document": True,
        "notif_email_evenement": True,
    }


async def test_notification_preferences_partial_update(portal_client, db, test_client):
    response = await portal_client.put(
        "/api/client/settings/notifications", json={"notif_email_document": False}
    )

    assert response.status_code == 200
    db.refresh(test_client)
    assert test_client.notif_email_document is False
    assert test_client.notif_email_evenement is True


async def test_disable_totp_requires_password(portal_client, db, test_client, totp_secret):
    response = await portal_client.post(
        "/api/client/settings/disable-totp",
        json={"password": "wrong-password", "code": pyotp.TOTP(totp_secret).now()},
    )

    assert response.status_code == 400
    db.refresh(test_client)
    assert test_client.totp_secret is not None


async def test_disable_totp_requires_current_code(portal_client, db, test_client, totp_secret):
    response = await portal_client.post(
        "/api/client/settings/disable-totp",
        json={"password": TEST_PASSWORD, "code": "000000"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid code"


async def test_disable_totp_sends_client_back_to_setup(portal_client, db, test_client, totp_secret):
    response = await portal_client.post(
        "/api/client/settings/disable-totp",
        json={"password": TEST_PASSWORD, "code": pyotp.TOTP(totp_secret).now()},
    )

    assert response.status_code == 200
    db.refresh(test_client)
    assert test_client.totp_enabled is False
    assert test_client.totp_secret is None

    session = response.cookies[CLIENT_COOKIE_NAME]
    portal_client.cookies.clear()
    portal_client.cookies.set(CLIENT_COOKIE_NAME, session)

    portal = await portal_client.get("/api/client/dossiers")
    assert portal.status_code == 428
    assert portal.json()["code"] == "TOTP_SETUP_REQUIRED"
    assert (await portal_client.post("/api/client/auth/setup-totp")).status_code == 200
