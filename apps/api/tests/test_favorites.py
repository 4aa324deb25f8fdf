"""
Admin favorites: toggling keeps at most one row per target.
"""
from portal.db.models import AdminFavorite


async def test_toggle_twice(admin_client, db, test_dossier):
    target = {"type": "dossier", "id": str(test_dossier.id)}

    first = await admin_client.post("/api/admin/favoris/toggle", json=target)
    assert first.json() == {"is_favorite": True, "message": "Added to favorites"}
    assert db.query(AdminFavorite).count() == 1

    second = await admin_client.post("/api/admin/favoris/toggle", json=target)
    assert second.json()["is_favorite"] is False
    assert db.query(AdminFavorite).count() == 0


async def test_check_reflects_toggle(admin_client, test_client):
    path = f"/api/admin/favoris/check/client/{test_client.id}"
    assert (await admin_client.get(path)).json() == {"is_favorite": False}

    await admin_client.post("/api/admin/favoris/toggle", json={"type": "client", "id": str(test_client.id)})

    assert (await admin_client.get(path)).json() == {"is_favorite": True}


async def test_duplicate_add_conflicts(admin_client, db, test_dossier):
    target = {"type": "dossier", "id": str(test_dossier.id)}
    assert (await admin_client.post("/api/admin/favoris", json=target)).status_code == 201
    assert (await admin_client.post("/api/admin/favoris", json=target)).status_code == 409
    assert db.query(AdminFavorite).count() == 1


async def test_unknown_target(admin_client):
    response = await admin_client.post(
        "/api/admin/favoris/toggle", json={"type": "dossier", "id": "00000000-0000-0000-0000-000000000000"}
    )
    assert response.status_code == 404


async def test_list_favorites(admin_client, test_dossier):
    await admin_client.post("/api/admin/favoris/toggle", json={"type": "dossier", "id": str(test_dossier.id)})

    response = await admin_client.get("/api/admin/favoris")

    assert len(response.json()) == 1
