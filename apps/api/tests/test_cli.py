"""
CLI commands run against the test database and mocked providers.
"""
import httpx
import pytest
from click.testing import CliRunner

from portal import cli as cli_module
from portal.core.config import settings
from portal.core.providers import build_integrations
from portal.core.security import verify_password
from portal.db.enums import AdminRole, SyncType
from portal.db.models import Admin, SyncLog
from portal.services.oauth_service import GoogleOAuthProvider, TokenService, TokenSet

from conftest import NO_RETRY


@pytest.fixture
def runner(monkeypatch, db, providers) -> CliRunner:
    def mocked_integrations():
        http = httpx.AsyncClient(transport=httpx.MockTransport(providers))
        return build_integrations(http=http, retry_options=NO_RETRY)

    monkeypatch.setattr(cli_module, "build_integrations", mocked_integrations)
    return CliRunner()


def _sync_logs(db) -> list[SyncLog]:
    return db.query(SyncLog).filter_by(type=SyncType.GOOGLE_CALENDAR.value).all()


def test_calendar_sync_not_configured(runner, monkeypatch, db):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "")

    result = runner.invoke(cli_module.cli, ["calendar-sync"])

    assert result.exit_code == 1
    assert "not configured" in result.output
    assert "non configure" in _sync_logs(db)[0].message


def test_calendar_sync_not_connected(runner, db):
    result = runner.invoke(cli_module.cli, ["calendar-sync"])

    assert result.exit_code == 1
    assert "Aucun compte Google" in _sync_logs(db)[0].message


def test_calendar_sync_connected(runner, db, providers):
    TokenService(GoogleOAuthProvider(http=None)).save_tokens(db, TokenSet("token", "refresh", 3600, None))
    providers.add("GET", "/calendars/primary/events", {"items": []})

    result = runner.invoke(cli_module.cli, ["calendar-sync"])

    assert result.exit_code == 0, result.output
    assert "Created: 0" in result.output
    assert len(_sync_logs(db)) == 1


def test_onedrive_sync_not_connected(runner, db):
    result = runner.invoke(cli_module.cli, ["onedrive-sync"])
    assert result.exit_code == 1
    assert "OneDrive not connected" in result.output


def test_create_super_admin(runner, db):
    result = runner.invoke(
        cli_module.cli,
        ["create-super-admin", "--email", "Associe@Cabinet-Avocats.fr", "--nom", "Martin", "--prenom", "Claire"],
        input="Secret123!\nSecret123!\n",
    )

    assert result.exit_code == 0, result.output
    admin = db.query(Admin).filter_by(email="associe@cabinet-avocats.fr").one()
    assert admin.role == AdminRole.SUPER_ADMIN.value
    assert verify_password("Secret123!", admin.password_hash)


def test_create_super_admin_refuses_duplicate(runner, test_admin):
    result = runner.invoke(
        cli_module.cli,
        ["create-super-admin", "--email", test_admin.email, "--nom", "X", "--prenom", "Y", "--password", "pw"],
    )
    assert result.exit_code == 1


def test_seed_parametres_keeps_existing_values(runner, db):
    from portal.db.models import Parametre
    from portal.services.parametre_service import DEFAULT_PARAMETRES

    db.add(Parametre(cle="cabinet_nom", valeur="Cabinet Durand", type="string", categorie="general"))
    db.commit()

    result = runner.invoke(cli_module.cli, ["seed-parametres"])

    assert result.exit_code == 0
    assert f"{len(DEFAULT_PARAMETRES) - 1} parametres created" in result.output
    db.expire_all()
    assert db.query(Parametre).filter_by(cle="cabinet_nom").one().valeur == "Cabinet Durand"
    assert db.query(Parametre).count() == len(DEFAULT_PARAMETRES)
