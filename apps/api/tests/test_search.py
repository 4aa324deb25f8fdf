"""Global admin search."""

from datetime import date

from conftest import make_client, make_dossier
from portal.db.models import DemandeRdv, Document
from portal.services import search_service


async def test_short_query_returns_nothing(admin_client, test_client):
    response = await admin_client.get("/api/admin/search", params={"q": " M "})

    assert response.status_code == 200
    assert response.json() == []


async def test_matches_every_entity_type(admin_client, db, test_client):
    dossier = make_dossier(db, test_client, intitule="Succession Martin")
    db.add(Document(dossier_id=dossier.id, nom="Contrat Martin signe", type_document="contrat"))
    db.add(
        DemandeRdv(
            client_id=test_client.id, date_souhaitee=date.today(), creneau="matin",
            motif="Question sur le dossier Martin " + "x" * 60,
        )
    )
    db.commit()

    response = await admin_client.get("/api/admin/search", params={"q": "martin"})

    results = response.json()
    assert [r["type"] for r in results] == ["client", "dossier", "document", "demande_rdv"]
    assert results[0]["title"] == "Paul Martin"
    assert results[0]["url"] == f"/admin/clients/{test_client.id}"
    assert results[1]["title"] == dossier.reference
    assert results[2]["subtitle"] == dossier.reference
    assert results[3]["title"].endswith("...")
    assert len(results[3]["title"]) == 53


def test_full_name_matches(db, test_client):
    results = search_service.global_search(db, "paul mar")
    assert [r["id"] for r in results] == [str(test_client.id)]


def test_each_type_is_capped(db):
    for i in range(7):
        make_client(db, nom=f"Lefebvre{i}")
    assert len(search_service.global_search(db, "lefebvre")) == 5


def test_wildcards_are_literal(db, test_client):
    make_dossier(db, test_client, intitule="Taux 100% garanti")

    assert search_service.global_search(db, "%%") == []
    assert search_service.global_search(db, "l_m") == []
    assert [r["type"] for r in search_service.global_search(db, "100%")] == ["dossier"]
