"""
Staff account management: super admin only, super admin targets protected.
"""
import pytest

from portal.core.security import verify_password
from portal.db.enums import AdminRole
from portal.db.models import Admin

from conftest import TEST_PASSWORD, make_admin


@pytest.fixture
def other_super_admin(db):
    return make_admin(db, role=AdminRole.SUPER_ADMIN, nom="Leroy", prenom="Marc")


class TestAccess:
    async def test_plain_admin_is_forbidden(self, admin_client):
        response = await admin_client.get("/api/admin/admins")
        assert response.status_code == 403

    async def test_super_admin_lists_staff(self, super_admin_client, test_admin, super_admin):
        response = await super_admin_client.get("/api/admin/admins")
        assert response.status_code == 200
        emails = {a["email"] for a in response.json()}
        assert {test_admin.email, super_admin.email} <= emails


class TestProtectedTargets:
    async def test_update_is_refused(self, super_admin_client, db, other_super_admin):
        response = await super_admin_client.put(
            f"/api/admin/admins/{other_super_admin.id}", json={"nom": "Change"}
        )
        assert response.status_code == 403
        db.refresh(other_super_admin)
        assert other_super_admin.nom == "Leroy"

    async def test_delete_is_refused(self, super_admin_client, db, other_super_admin):
        response = await super_admin_client.delete(f"/api/admin/admins/{other_super_admin.id}")
        assert response.status_code == 403
        assert db.get(Admin, other_super_admin.id) is not None

    async def test_toggle_status_is_refused(self, super_admin_client, db, other_super_admin):
        response = await super_admin_client.post(f"/api/admin/admins/{other_super_admin.id}/toggle-status")
        assert response.status_code == 403
        db.refresh(other_super_admin)
        assert other_super_admin.actif is True

    async def test_reset_password_is_refused(self, super_admin_client, db, other_super_admin):
        response = await super_admin_client.post(f"/api/admin/admins/{other_super_admin.id}/reset-password")
        assert response.status_code == 403
        db.refresh(other_super_admin)
        assert verify_password(TEST_PASSWORD, other_super_admin.password_hash)


class TestPlainAdminTargets:
    async def test_create_returns_generated_password(self, super_admin_client, db):
        response = await super_admin_client.post(
            "/api/admin/admins",
            json={"email": "Nouveau@Cabinet-Avocats.fr", "nom": "Petit", "prenom": "Julie", "username": "jpetit"},
        )
        assert response.status_code == 201
        body = response.json()
        admin = db.query(Admin).filter_by(email="nouveau@cabinet-avocats.fr").one()
        assert admin.role == AdminRole.ADMIN.value
        assert verify_password(body["generated_password"], admin.password_hash)

    async def test_duplicate_email_conflicts(self, super_admin_client, test_admin):
        response = await super_admin_client.post(
            "/api/admin/admins",
            json={"email": test_admin.email, "nom": "Petit", "prenom": "Julie", "username": "jpetit"},
        )
        assert response.status_code == 409

    async def test_toggle_status_revokes_sessions(self, super_admin_client, db, test_admin):
        version = test_admin.token_version
        response = await super_admin_client.post(f"/api/admin/admins/{test_admin.id}/toggle-status")

        assert response.json() == {"actif": False}
        db.refresh(test_admin)
        assert test_admin.token_version == version + 1

    async def test_reset_password(self, super_admin_client, db, test_admin):
        response = await super_admin_client.post(f"/api/admin/admins/{test_admin.id}/reset-password")

        assert response.status_code == 200
        new_password = response.json()["new_password"]
        db.refresh(test_admin)
        assert verify_password(new_password, test_admin.password_hash)
        assert not verify_password(TEST_PASSWORD, test_admin.password_hash)
