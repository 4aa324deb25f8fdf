"""Client portal: ownership, document visibility and appointment requests."""

from datetime import date, datetime, timedelta, timezone

from conftest import make_client, make_dossier
from portal.db.models import DemandeRdv, Document, Evenement, Notification


def _document(db, dossier, nom, **fields) -> Document:
    document = Document(dossier_id=dossier.id, nom=nom, type_document="autre", **fields)
    db.add(document)
    db.commit()
    return document


def _demande_payload(**overrides) -> dict:
    payload = {
        "date_souhaitee": (date.today() + timedelta(days=7)).isoformat(),
        "creneau": "matin",
        "motif": "Point sur la procedure en cours",
    }
    payload.update(overrides)
    return payload


async def test_lists_only_own_dossiers(portal_client, db, test_dossier):
    other = make_client(db, nom="Dupont")
    make_dossier(db, other)

    response = await portal_client.get("/api/client/dossiers")

    assert [d["reference"] for d in response.json()] == [test_dossier.reference]


async def test_foreign_dossier_is_404(portal_client, db):
    foreign = make_dossier(db, make_client(db, nom="Dupont"))
    response = await portal_client.get(f"/api/client/dossiers/{foreign.id}")
    assert response.status_code == 404


async def test_hidden_and_sensitive_documents_filtered(portal_client, db, test_dossier):
    _document(db, test_dossier, "Assignation")
    _document(db, test_dossier, "Note interne", visible_client=False)
    _document(db, test_dossier, "Expertise medicale", sensible=True)

    response = await portal_client.get(f"/api/client/dossiers/{test_dossier.id}/documents")

    assert [d["nom"] for d in response.json()] == ["Assignation"]


async def test_sensitive_documents_with_permission(portal_client, db, test_client, test_dossier):
    test_client.acces_documents_sensibles = True
    db.commit()
    _document(db, test_dossier, "Expertise medicale", sensible=True)

    response = await portal_client.get(f"/api/client/dossiers/{test_dossier.id}/documents")

    assert [d["nom"] for d in response.json()] == ["Expertise medicale"]


async def test_hidden_document_download_is_404(portal_client, db, test_dossier):
    hidden = _document(db, test_dossier, "Note interne", visible_client=False, onedrive_file_id="f-1")
    response = await portal_client.get(f"/api/client/documents/{hidden.id}/download")
    assert response.status_code == 404


async def test_upload_forbidden_without_permission(portal_client, db, test_client, test_dossier):
    test_client.peut_uploader = False
    db.commit()

    response = await portal_client.post(
        f"/api/client/dossiers/{test_dossier.id}/documents",
        files={"file": ("piece.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert response.status_code == 403
    assert db.query(Document).count() == 0


async def test_upload_without_onedrive_is_502(portal_client, db, test_dossier):
    response = await portal_client.post(
        f"/api/client/dossiers/{test_dossier.id}/documents",
        files={"file": ("piece.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert response.status_code == 502
    assert response.json()["message"] == "OneDrive not connected"


async def test_demande_notifies_responsable(portal_client, admin_client, db, test_dossier):
    response = await portal_client.post(
        "/api/client/demandes-rdv", json=_demande_payload(dossier_id=str(test_dossier.id))
    )

    assert response.status_code == 201
    assert response.json()["statut"] == "en_attente"
    unread = await admin_client.get("/api/admin/notifications/unread-count")
    assert unread.json() == {"count": 1}


async def test_demande_on_foreign_dossier_is_404(portal_client, db):
    foreign = make_dossier(db, make_client(db, nom="Dupont"))
    response = await portal_client.post(
        "/api/client/demandes-rdv", json=_demande_payload(dossier_id=str(foreign.id))
    )
    assert response.status_code == 404
    assert db.query(DemandeRdv).count() == 0


async def test_demande_forbidden_without_permission(portal_client, db, test_client):
    test_client.peut_demander_rdv = False
    db.commit()
    response = await portal_client.post("/api/client/demandes-rdv", json=_demande_payload())
    assert response.status_code == 403


async def test_accepted_demande_books_event_and_notifies_client(portal_client, admin_client, db, test_dossier):
    created = await portal_client.post(
        "/api/client/demandes-rdv", json=_demande_payload(dossier_id=str(test_dossier.id))
    )
    start = datetime.now(timezone.utc) + timedelta(days=7)

    accepted = await admin_client.post(
        f"/api/admin/demandes-rdv/{created.json()['id']}/accepter",
        json={"date_debut": start.isoformat(), "date_fin": (start + timedelta(hours=1)).isoformat()},
    )

    assert accepted.status_code == 200
    event = db.query(Evenement).one()
    assert event.sync_google is False
    assert event.lieu == "Cabinet"

    again = await admin_client.post(
        f"/api/admin/demandes-rdv/{created.json()['id']}/accepter",
        json={"date_debut": start.isoformat(), "date_fin": (start + timedelta(hours=1)).isoformat()},
    )
    assert again.status_code == 409

    notifications = (await portal_client.get("/api/client/notifications")).json()
    assert [n["type"] for n in notifications["data"]] == ["demande_rdv_acceptee"]
    assert [e["titre"] for e in (await portal_client.get("/api/client/evenements")).json()] == [event.titre]


async def test_client_notifications_are_scoped(portal_client, db, test_client, test_admin):
    db.add(Notification(destinataire_type="admin", destinataire_id=test_admin.id, type="x", titre="Pour l'avocat"))
    db.add(Notification(destinataire_type="client", destinataire_id=test_client.id, type="y", titre="Pour le client"))
    db.commit()

    response = await portal_client.get("/api/client/notifications")

    assert [n["titre"] for n in response.json()["data"]] == ["Pour le client"]
