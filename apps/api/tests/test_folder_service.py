"""
Folder naming, reference extraction and dossier folder management.
"""
import pytest

from portal.db.enums import DocumentLocation
from portal.services import folder_service
from portal.services.calendar_sync_service import extract_dossier_reference
from portal.services.onedrive_sync_service import extract_reference_from_folder_name, split_file_name

from fakes import FakeDrive


class TestNaming:
    def test_sanitize_replaces_forbidden_characters(self):
        assert folder_service.sanitize_folder_name('a"b*c:d<e>f?g/h\\i|j') == "a-b-c-d-e-f-g-h-i-j"

    def test_sanitize_collapses_whitespace_and_caps_length(self):
        assert folder_service.sanitize_folder_name("  Litige    commercial  ") == "Litige commercial"
        assert len(folder_service.sanitize_folder_name("x" * 400)) == 250

    def test_dossier_folder_path(self):
        path = folder_service.dossier_folder_path("Paul Martin", "2025-001-MAR", "Bail / loyers")
        assert path.endswith("/Clients/Paul Martin/2025-001-MAR - Bail - loyers")
        assert path.startswith("/")

    def test_split_file_name(self):
        assert split_file_name("contrat.signe.pdf") == ("contrat.signe", "pdf")
        assert split_file_name("README") == ("README", None)
        assert split_file_name(".hidden") == (".hidden", None)


class TestReferenceExtraction:
    @pytest.mark.parametrize(
        "folder_name, expected",
        [
            ("2025-001-MAR - Litige commercial", "2025-001-MAR"),
            ("DOS-2024-0042 - Succession", "DOS-2024-0042"),
            ("2025-014-DUP", "2025-014-DUP"),
            ("Divers", None),
        ],
    )
    def test_from_folder_name(self, folder_name, expected):
        assert extract_reference_from_folder_name(folder_name) == expected

    def test_from_event_title(self):
        assert extract_dossier_reference("Audience 2025-001-mar TGI") == "2025-001-MAR"
        assert extract_dossier_reference("RDV DOS-2024-0042") == "DOS-2024-0042"
        assert extract_dossier_reference("Dejeuner") is None


class TestDossierFolders:
    async def test_create_dossier_folder_persists_id_and_path(self, db, test_dossier):
        drive = FakeDrive()
        result = await folder_service.create_dossier_folder(db, drive, test_dossier.id)

        assert result.success
        db.refresh(test_dossier)
        assert test_dossier.onedrive_folder_id == result.folder_id
        assert test_dossier.onedrive_folder_path.endswith(f"{test_dossier.reference} - Litige commercial")

    async def test_missing_cached_folder_is_recreated(self, db, test_dossier):
        drive = FakeDrive()
        test_dossier.onedrive_folder_id = "gone"
        db.commit()

        result = await folder_service.create_dossier_folder(db, drive, test_dossier.id)

        assert result.success
        assert result.folder_id != "gone"
        assert result.folder_id in drive.items

    async def test_ensure_location_subfolder_is_cached(self, db, test_dossier):
        drive = FakeDrive()
        cabinet_id = await folder_service.ensure_dossier_folder(
            db, drive, test_dossier.id, DocumentLocation.CABINET
        )

        assert drive.items[cabinet_id]["name"] == "CABINET"
        db.refresh(test_dossier)
        assert test_dossier.onedrive_cabinet_folder_id == cabinet_id
        again = await folder_service.ensure_dossier_folder(
            db, drive, test_dossier.id, DocumentLocation.CABINET
        )
        assert again == cabinet_id

    async def test_rename_dossier_folder(self, db, test_dossier):
        drive = FakeDrive()
        await folder_service.create_dossier_folder(db, drive, test_dossier.id)
        test_dossier.intitule = "Bail commercial"
        db.commit()

        assert await folder_service.rename_dossier_folder(db, drive, test_dossier.id)
        db.refresh(test_dossier)
        assert drive.items[test_dossier.onedrive_folder_id]["name"] == f"{test_dossier.reference} - Bail commercial"
        assert test_dossier.onedrive_folder_path.endswith("Bail commercial")

    async def test_not_connected(self, db, test_dossier):
        result = await folder_service.create_dossier_folder(db, FakeDrive(ready=False), test_dossier.id)
        assert not result.success
        assert result.error == folder_service.NOT_CONNECTED
