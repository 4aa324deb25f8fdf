"""
Dossier lifecycle: reference generation, folder hand-off and timeline.
"""
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

from portal.db.enums import JobType
from portal.db.models import ActivityLog, Dossier, Job
from portal.services import activity_service, dossier_service, timeline_service

from conftest import make_client, make_dossier


class TestReference:
    def test_first_dossier_of_the_year(self, db):
        assert dossier_service.generate_reference(db, "Martin", year=2025) == "2025-001-MAR"

    def test_sequence_counts_dossiers_of_that_year(self, db, test_client):
        make_dossier(db, test_client, reference="2025-001-MAR", created_at=datetime(2025, 3, 1, tzinfo=timezone.utc))
        make_dossier(db, test_client, reference="2024-007-MAR", created_at=datetime(2024, 6, 1, tzinfo=timezone.utc))

        assert dossier_service.generate_reference(db, "dupont", year=2025) == "2025-002-DUP"

    def test_taken_reference_moves_to_next_sequence(self, db, test_client):
        make_dossier(db, test_client, reference="2025-002-MAR", created_at=datetime(2025, 1, 5, tzinfo=timezone.utc))

        assert dossier_service.generate_reference(db, "Martin", year=2025) == "2025-003-MAR"


class TestDossierApi:
    async def test_create_generates_reference_and_queues_folder(self, admin_client, db, test_client):
        response = await admin_client.post(
            "/api/admin/dossiers", json={"client_id": str(test_client.id), "intitule": "Bail commercial"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["reference"].endswith("-MAR")
        job = db.query(Job).filter_by(idempotency_key=f"onedrive_folder_create:{body['id']}").one()
        assert job.job_type == JobType.ONEDRIVE_FOLDER_CREATE.value
        assert db.query(ActivityLog).filter_by(action="dossier.created").count() == 1

    async def test_reference_is_not_accepted_from_caller(self, admin_client, test_client):
        response = await admin_client.post(
            "/api/admin/dossiers",
            json={"client_id": str(test_client.id), "intitule": "Bail", "reference": "HACK-1"},
        )
        assert response.json()["reference"] != "HACK-1"

    async def test_unknown_client(self, admin_client):
        response = await admin_client.post(
            "/api/admin/dossiers",
            json={"client_id": "00000000-0000-0000-0000-000000000000", "intitule": "Bail"},
        )
        assert response.status_code == 404

    async def test_title_change_queues_folder_rename(self, admin_client, db, test_dossier):
        test_dossier.onedrive_folder_id = "folder-1"
        db.commit()

        response = await admin_client.put(f"/api/admin/dossiers/{test_dossier.id}", json={"intitule": "Nouveau titre"})

        assert response.status_code == 200
        assert db.query(Job).filter_by(idempotency_key=f"onedrive_folder_rename:{test_dossier.id}").count() == 1

    async def test_title_change_without_folder_queues_nothing(self, admin_client, db, test_dossier):
        await admin_client.put(f"/api/admin/dossiers/{test_dossier.id}", json={"intitule": "Nouveau titre"})
        assert db.query(Job).count() == 0

    async def test_status_change_is_logged(self, admin_client, db, test_dossier):
        await admin_client.put(f"/api/admin/dossiers/{test_dossier.id}", json={"statut": "archive"})

        actions = {a for (a,) in db.query(ActivityLog.action).filter_by(dossier_id=test_dossier.id)}
        assert {"dossier.statut_changed", "dossier.archived"} <= actions

    async def test_delete(self, admin_client, db, test_dossier):
        response = await admin_client.delete(f"/api/admin/dossiers/{test_dossier.id}")
        assert response.status_code == 200
        assert db.query(Dossier).count() == 0


class TestTimeline:
    def test_onedrive_filter_groups_integration_actions(self, db, test_dossier, test_admin):
        activity_service.log_dossier_updated(db, test_dossier.id, test_admin.id, ["intitule"])
        activity_service.log_onedrive_sync(
            db, test_dossier.id, None, mode="auto", imported=1, updated=0, deleted=0, errors=0
        )
        activity_service.log_dossier_onedrive_linked(db, test_dossier.id, None, "folder-1", "/Clients/x")
        db.commit()

        timeline = timeline_service.get_timeline(db, test_dossier.id, action="onedrive")

        actions = {entry["action"] for entry in timeline["data"]}
        assert "dossier.updated" not in actions
        assert len(actions) == 2
        assert timeline["meta"] == {"limit": 50, "offset": 0, "has_more": False}

    async def test_timeline_endpoint_renders_entries(self, admin_client, db, test_dossier, test_admin):
        activity_service.log_dossier_updated(db, test_dossier.id, test_admin.id, ["intitule"])
        db.commit()

        response = await admin_client.get(f"/api/admin/dossiers/{test_dossier.id}/timeline")

        entry = response.json()["data"][0]
        assert entry["user"]["id"] == str(test_admin.id)
        assert {"icon", "color", "title", "description", "metadata"} <= entry.keys()

    def test_google_filter_groups_calendar_actions(self, db, test_dossier, test_admin):
        event = SimpleNamespace(
            id=uuid.uuid4(), dossier_id=test_dossier.id, titre="Audience",
            google_event_id="g-1", google_calendar_id="primary", type="audience", date_debut=None,
        )
        activity_service.log_google_calendar_sync(
            db, test_dossier.id, None, mode="auto", imported=1, updated=0, errors=0
        )
        activity_service.log_evenement_synced_google(db, event, test_admin.id)
        activity_service.log_evenement_created(db, event, test_admin.id)
        db.commit()

        timeline = timeline_service.get_timeline(db, test_dossier.id, action="google")

        actions = {entry["action"] for entry in timeline["data"]}
        assert actions == {"google_calendar.sync", "evenement.synced_google"}

    def test_onedrive_filter_includes_document_imports(self, db, test_dossier):
        document = SimpleNamespace(
            id=uuid.uuid4(), dossier_id=test_dossier.id, nom="Contrat", type_document="contrat",
            mime_type="application/pdf", dossier_location="CABINET", onedrive_file_id="file-1",
        )
        activity_service.log_document_imported_onedrive(db, document)
        db.commit()

        timeline = timeline_service.get_timeline(db, test_dossier.id, action="onedrive")

        assert [entry["action"] for entry in timeline["data"]] == ["document.imported_onedrive"]

    def test_action_prefix_is_matched_literally(self, db, test_dossier, test_admin):
        activity_service.log_dossier_updated(db, test_dossier.id, test_admin.id, ["intitule"])
        db.commit()

        assert timeline_service.get_timeline(db, test_dossier.id, action="dossier_")["data"] == []
        assert timeline_service.get_timeline(db, test_dossier.id, action="%updated")["data"] == []
        assert len(timeline_service.get_timeline(db, test_dossier.id, action="dossier.")["data"]) == 1

    def test_unknown_action_gets_generic_rendering(self):
        rendered = timeline_service.render_activity("archive.exported_pdf", {"pages": 3})
        assert rendered == ("activity", "gray", "archive exported pdf", "")

    def test_non_dict_details_render_with_defaults(self):
        rendered = timeline_service.render_activity("task.created", ["unexpected"])
        assert rendered.title == "Tache creee"
        assert rendered.description == "Nouvelle tache"

    def test_dossier_without_activity(self, db):
        client = make_client(db)
        dossier = make_dossier(db, client)
        assert timeline_service.get_timeline(db, dossier.id)["data"] == []
