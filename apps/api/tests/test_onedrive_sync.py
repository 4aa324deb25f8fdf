"""
OneDrive reconciliation: dossier sync, reverse sync and folder initialisation.
"""
from portal.db.enums import DocumentLocation, SyncType
from portal.db.models import ActivityLog, Document, SyncLog
from portal.services import folder_service, onedrive_sync_service

from fakes import FakeDrive


async def _drive_with_dossier_folder(db, dossier) -> tuple[FakeDrive, str, str, str]:
    drive = FakeDrive()
    folder = await folder_service.create_dossier_folder(db, drive, dossier.id)
    cabinet = drive.add_folder("CABINET", folder.folder_id)
    client = drive.add_folder("CLIENT", folder.folder_id)
    return drive, folder.folder_id, cabinet, client


class TestSyncDossier:
    async def test_imports_new_files_with_location(self, db, test_dossier):
        drive, root, cabinet, client = await _drive_with_dossier_folder(db, test_dossier)
        drive.add_file("note interne.docx", cabinet)
        drive.add_file("facture.pdf", client)
        drive.add_file("a la racine.pdf", root)

        result = await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        assert result.success
        assert result.created == 3
        docs = {d.nom_original: d for d in db.query(Document).filter_by(dossier_id=test_dossier.id)}
        assert docs["note interne.docx"].dossier_location == DocumentLocation.CABINET.value
        assert docs["note interne.docx"].visible_client is False
        assert docs["facture.pdf"].dossier_location == DocumentLocation.CLIENT.value
        assert docs["a la racine.pdf"].dossier_location == DocumentLocation.CLIENT.value
        assert docs["facture.pdf"].extension == "pdf"

    async def test_second_run_changes_nothing(self, db, test_dossier):
        drive, _, cabinet, _ = await _drive_with_dossier_folder(db, test_dossier)
        drive.add_file("piece.pdf", cabinet)

        await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)
        second = await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        assert (second.created, second.updated, second.deleted) == (0, 0, 0)
        assert db.query(Document).filter_by(dossier_id=test_dossier.id).count() == 1

    async def test_remote_modification_updates_metadata(self, db, test_dossier):
        drive, _, cabinet, _ = await _drive_with_dossier_folder(db, test_dossier)
        file_id = drive.add_file("piece.pdf", cabinet, modified="2025-01-10T10:00:00Z", size=100)
        await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        drive.items[file_id]["lastModifiedDateTime"] = "2025-02-01T09:00:00Z"
        drive.items[file_id]["size"] = 2048
        result = await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        assert result.updated == 1
        document = db.query(Document).filter_by(onedrive_file_id=file_id).one()
        assert document.taille_octets == 2048

    async def test_removed_file_clears_references_but_keeps_record(self, db, test_dossier):
        drive, _, cabinet, _ = await _drive_with_dossier_folder(db, test_dossier)
        file_id = drive.add_file("piece.pdf", cabinet)
        await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        drive.remove(file_id)
        result = await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        assert result.deleted == 1
        document = db.query(Document).filter_by(dossier_id=test_dossier.id).one()
        assert document.onedrive_file_id is None
        assert document.onedrive_web_url is None
        assert db.query(ActivityLog).filter_by(action="document.removed_onedrive").count() == 1

    async def test_listing_failure_reports_error_without_deleting(self, db, test_dossier):
        drive, root, cabinet, _ = await _drive_with_dossier_folder(db, test_dossier)
        drive.add_file("piece.pdf", cabinet)
        await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        drive.failing_listings.add(cabinet)
        result = await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        assert not result.success
        assert result.deleted == 0
        document = db.query(Document).filter_by(dossier_id=test_dossier.id).one()
        assert document.onedrive_file_id is not None

    async def test_creates_missing_folder(self, db, test_dossier):
        drive = FakeDrive()
        result = await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id)

        assert result.success
        db.refresh(test_dossier)
        assert test_dossier.onedrive_folder_id in drive.items

    async def test_not_connected(self, db, test_dossier):
        result = await onedrive_sync_service.sync_dossier(db, FakeDrive(ready=False), test_dossier.id)
        assert result.errors == 1
        assert result.message == onedrive_sync_service.NOT_CONNECTED

    async def test_records_sync_log(self, db, test_dossier, test_admin):
        drive, _, _, client = await _drive_with_dossier_folder(db, test_dossier)
        drive.add_file("piece.pdf", client)

        await onedrive_sync_service.sync_dossier(db, drive, test_dossier.id, triggered_by_id=test_admin.id)

        log = db.query(SyncLog).filter_by(type=SyncType.ONEDRIVE.value).one()
        assert log.elements_crees == 1
        assert log.triggered_by_id == test_admin.id


class TestSyncAll:
    async def test_only_linked_dossiers_are_synced(self, db, test_dossier, test_client):
        from conftest import make_dossier

        drive, _, cabinet, _ = await _drive_with_dossier_folder(db, test_dossier)
        drive.add_file("piece.pdf", cabinet)
        make_dossier(db, test_client)

        result = await onedrive_sync_service.sync_all_dossiers(db, drive)

        assert result.created == 1
        assert db.query(SyncLog).count() == 1


class TestReverseSync:
    async def test_links_dossier_and_imports_files(self, db, test_client, test_dossier):
        drive = FakeDrive()
        clients_root = (await drive.create_folder_by_path(folder_service.clients_root_path())).folder_id
        client_folder = drive.add_folder("martin paul", clients_root)
        dossier_folder = drive.add_folder(f"{test_dossier.reference} - Ancien titre", client_folder)
        client_sub = drive.add_folder("CLIENT", dossier_folder)
        drive.add_file("assignation.pdf", client_sub)
        drive.add_folder("Inconnu Personne", clients_root)

        result = await onedrive_sync_service.reverse_sync(db, drive)

        assert result.linked_dossiers == 1
        assert result.created == 1
        assert result.unmatched_clients == ["Inconnu Personne"]
        db.refresh(test_dossier)
        assert test_dossier.onedrive_folder_id == dossier_folder
        assert test_dossier.onedrive_client_folder_id == client_sub

    async def test_missing_clients_root(self, db):
        result = await onedrive_sync_service.reverse_sync(db, FakeDrive())
        assert result.errors == 1


class TestInitializeAll:
    async def test_creates_folders_for_unlinked_dossiers(self, db, test_dossier):
        drive = FakeDrive()
        result = await onedrive_sync_service.initialize_all_dossiers(db, drive)

        assert result.created == 1
        assert result.success
        db.refresh(test_dossier)
        assert test_dossier.onedrive_folder_id is not None

    async def test_every_dossier_failing_is_an_error_run(self, db, test_dossier):
        drive, root, _, _ = await _drive_with_dossier_folder(db, test_dossier)
        drive.failing_listings.add(root)

        result = await onedrive_sync_service.sync_all_dossiers(db, drive)

        assert result.errors == 1
        log = db.query(SyncLog).one()
        assert log.statut == "error"

    async def test_one_failing_dossier_is_a_partial_run(self, db, test_dossier, test_client):
        from conftest import make_dossier

        drive, root, _, _ = await _drive_with_dossier_folder(db, test_dossier)
        drive.failing_listings.add(root)
        healthy = await folder_service.create_dossier_folder(db, drive, make_dossier(db, test_client).id)
        assert healthy.success

        await onedrive_sync_service.sync_all_dossiers(db, drive)

        assert db.query(SyncLog).one().statut == "partial"
