"""Dossier notes: rich text sanitizing, pinning and ordering."""

from portal.db.models import ActivityLog, Note
from portal.services import note_service


def test_sanitize_keeps_rich_text_and_drops_scripts():
    html = '<p>Audience <strong>confirmee</strong></p><script>alert(1)</script><img src=x onerror=alert(1)>'

    cleaned = note_service.sanitize_html(html)

    assert "<strong>confirmee</strong>" in cleaned
    assert "<script" not in cleaned
    assert "onerror" not in cleaned


def test_sanitize_strips_unsafe_link_attributes():
    cleaned = note_service.sanitize_html('<a href="https://example.com" onclick="x()">lien</a>')
    assert 'href="https://example.com"' in cleaned
    assert "onclick" not in cleaned


async def test_create_note_is_sanitized_and_logged(admin_client, db, test_dossier, test_admin):
    response = await admin_client.post(
        f"/api/admin/dossiers/{test_dossier.id}/notes",
        json={"contenu": "<p>Appeler le greffe</p><script>steal()</script>"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["contenu"] == "<p>Appeler le greffe</p>"
    assert body["author_name"] == test_admin.full_name
    assert db.query(ActivityLog).filter_by(dossier_id=test_dossier.id, action="note.created").count() == 1


async def test_pinned_notes_come_first(admin_client, test_dossier):
    first = await admin_client.post(f"/api/admin/dossiers/{test_dossier.id}/notes", json={"contenu": "<p>Ancienne</p>"})
    await admin_client.post(f"/api/admin/dossiers/{test_dossier.id}/notes", json={"contenu": "<p>Recente</p>"})

    pinned = await admin_client.post(f"/api/admin/notes/{first.json()['id']}/pin")
    assert pinned.json()["is_pinned"] is True

    listing = (await admin_client.get(f"/api/admin/dossiers/{test_dossier.id}/notes")).json()
    assert [n["contenu"] for n in listing] == ["<p>Ancienne</p>", "<p>Recente</p>"]


async def test_update_and_delete_note(admin_client, db, test_dossier):
    created = await admin_client.post(f"/api/admin/dossiers/{test_dossier.id}/notes", json={"contenu": "<p>v1</p>"})
    note_id = created.json()["id"]

    updated = await admin_client.put(f"/api/admin/notes/{note_id}", json={"contenu": "<p>v2</p><iframe></iframe>"})
    assert updated.json()["contenu"] == "<p>v2</p>"

    deleted = await admin_client.delete(f"/api/admin/notes/{note_id}")
    assert deleted.json() == {"message": "Note deleted"}
    assert db.query(Note).count() == 0


async def test_unknown_note_is_404(admin_client):
    response = await admin_client.put(
        "/api/admin/notes/00000000-0000-0000-0000-000000000000", json={"contenu": "<p>x</p>"}
    )
    assert response.status_code == 404
