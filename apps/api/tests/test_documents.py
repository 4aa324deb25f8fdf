"""Admin document endpoints that reconcile a record with its OneDrive file."""

import uuid

from portal.db.models import Document
from portal.services.oauth_service import TokenSet


def _document(db, dossier, **fields) -> Document:
    document = Document(dossier_id=dossier.id, nom="Assignation", type_document="autre", **fields)
    db.add(document)
    db.commit()
    return document


def _connect_drive(db, integrations):
    integrations.microsoft.save_tokens(
        db, TokenSet(access_token="token", refresh_token="refresh", expires_in=3600, scope=None)
    )


class TestVerify:
    async def test_unsynced_document(self, admin_client, db, test_dossier):
        document = _document(db, test_dossier)

        response = await admin_client.get(f"/api/admin/documents/{document.id}/verify")

        assert response.status_code == 200
        assert response.json() == {"exists": True, "synced": False}

    async def test_file_still_on_onedrive(self, admin_client, db, integrations, providers, test_dossier):
        _connect_drive(db, integrations)
        providers.add("GET", "/me/drive/items/file-1", {"id": "file-1", "name": "Assignation.pdf"})
        document = _document(db, test_dossier, onedrive_file_id="file-1")

        response = await admin_client.get(f"/api/admin/documents/{document.id}/verify")

        assert response.json() == {"exists": True, "synced": True}

    async def test_file_gone_from_onedrive(self, admin_client, db, integrations, test_dossier):
        _connect_drive(db, integrations)
        document = _document(db, test_dossier, onedrive_file_id="file-gone")

        response = await admin_client.get(f"/api/admin/documents/{document.id}/verify")

        assert response.json() == {"exists": True, "synced": False}

    async def test_unknown_document(self, admin_client):
        response = await admin_client.get(f"/api/admin/documents/{uuid.uuid4()}/verify")
        assert response.json() == {"exists": False, "synced": False}


class TestSync:
    async def test_without_onedrive_is_502(self, admin_client, db, test_dossier):
        document = _document(db, test_dossier)

        response = await admin_client.post(
            f"/api/admin/documents/{document.id}/sync",
            files={"file": ("assignation.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 502
        assert response.json()["message"] == "OneDrive not connected"

    async def test_already_synced_document_is_returned_unchanged(self, admin_client, db, providers, test_dossier):
        document = _document(db, test_dossier, onedrive_file_id="file-1")

        response = await admin_client.post(
            f"/api/admin/documents/{document.id}/sync",
            files={"file": ("assignation.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 200
        assert response.json()["id"] == str(document.id)
        assert providers.requests == []

    async def test_unknown_document(self, admin_client):
        response = await admin_client.post(
            f"/api/admin/documents/{uuid.uuid4()}/sync",
            files={"file": ("assignation.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 404
