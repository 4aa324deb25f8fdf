"""
OneDrive reconciliation.

``sync_dossier`` compares a dossier folder with the document table: new
remote files are imported, files modified remotely get fresh URLs, and
documents whose file disappeared lose their OneDrive references (the
record itself is kept). ``reverse_sync`` walks ``/{root}/Clients`` and links
folders to existing clients and dossiers; it never creates either.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from portal.db.enums import ActorType, DocumentLocation, SyncMode, SyncType
from portal.db.models import Client, Document, Dossier, SyncLog
from portal.db.types import utcnow
from portal.services import activity_service, folder_service, sync_log_service
from portal.services.onedrive_client import OneDriveClient, item_last_modified

logger = logging.getLogger(__name__)

NOT_CONNECTED = "OneDrive not connected"

DOCUMENT_TYPES_BY_EXTENSION = {
    "pdf": "piece_procedure",
    "doc": "piece_procedure",
    "docx": "piece_procedure",
    "xls": "facture",
    "xlsx": "facture",
    "jpg": "photo",
    "jpeg": "photo",
    "png": "photo",
    "gif": "photo",
}

_FOLDER_REFERENCE = re.compile(r"^([A-Z0-9-]+)\s*-\s*")
_BARE_REFERENCE = re.compile(r"^(DOS-\d{4}-\d{4}|\d{4}-\d{3,4}-[A-Z]{2,4})$", re.IGNORECASE)


@dataclass
class OneDriveSyncResult:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: int = 0
    message: str = ""
    details: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.errors == 0

    @property
    def synced(self) -> int:
        return self.created + self.updated + self.deleted


@dataclass
class DossierSyncResult(OneDriveSyncResult):
    dossier_id: UUID | None = None
    dossier_reference: str = "unknown"


@dataclass
class ReverseSyncResult(OneDriveSyncResult):
    linked_dossiers: int = 0
    unmatched_clients: list[str] = field(default_factory=list)
    unmatched_dossiers: list[str] = field(default_factory=list)


def guess_document_type(extension: str | None) -> str:
    return DOCUMENT_TYPES_BY_EXTENSION.get((extension or "").lower(), "autre")


def split_file_name(file_name: str) -> tuple[str, str | None]:
    """``("contrat", "pdf")`` for ``contrat.pdf``; no extension for dotless names."""
    stem, dot, extension = file_name.rpartition(".")
    if not dot or not stem:
        return file_name, None
    return stem, extension


def extract_reference_from_folder_name(folder_name: str) -> str | None:
    """Reference from ``"REFERENCE - Intitule"`` or a folder named by reference alone."""
    match = _FOLDER_REFERENCE.match(folder_name)
    if match:
        return match.group(1).strip()
    match = _BARE_REFERENCE.match(folder_name)
    if match:
        return match.group(1).strip()
    return None


def _is_folder(item: dict[str, Any]) -> bool:
    return item.get("folder") is not None


def _location_for_subfolder(name: str) -> DocumentLocation | None:
    for location, folder_name in folder_service.LOCATION_FOLDER_NAMES.items():
        if name.upper() == folder_name:
            return location
    return None


def import_drive_file(
    db: Session,
    dossier: Dossier,
    item: dict[str, Any],
    location: DocumentLocation,
) -> Document:
    """Create the document record for a file found on OneDrive (flushes, no commit)."""
    file_name = item["name"]
    nom, extension = split_file_name(file_name)
    document = Document(
        dossier_id=dossier.id,
        nom=nom,
        nom_original=file_name,
        type_document=guess_document_type(extension),
        taille_octets=item.get("size"),
        mime_type=(item.get("file") or {}).get("mimeType"),
        extension=extension,
        sensible=False,
        visible_client=location is DocumentLocation.CLIENT,
        uploaded_by_client=False,
        uploaded_by_id=dossier.created_by_id,
        uploaded_by_type=ActorType.ADMIN.value,
        dossier_location=location.value,
        onedrive_file_id=item["id"],
        onedrive_web_url=item.get("webUrl"),
        onedrive_download_url=item.get("@microsoft.graph.downloadUrl"),
        onedrive_last_modified=item_last_modified(item),
    )
    db.add(document)
    db.flush()
    activity_service.log_document_imported_onedrive(db, document)
    return document


async def _collect_remote_files(
    drive: OneDriveClient, dossier: Dossier, folder_id: str
) -> dict[str, tuple[dict[str, Any], DocumentLocation]] | None:
    """
    Files of the dossier folder keyed by item id, with their location.

    CABINET and CLIENT subfolders are scanned and their ids cached on the
    dossier; files placed directly in the dossier folder count as CLIENT.
    Returns None when any listing failed.
    """
    children = await drive.list_children(folder_id)
    if children is None:
        return None

    files: dict[str, tuple[dict[str, Any], DocumentLocation]] = {}
    for child in children:
        if not _is_folder(child):
            files[child["id"]] = (child, DocumentLocation.CLIENT)
            continue
        location = _location_for_subfolder(child.get("name", ""))
        if location is None:
            continue
        if location is DocumentLocation.CABINET:
            dossier.onedrive_cabinet_folder_id = child["id"]
        else:
            dossier.onedrive_client_folder_id = child["id"]
        sub_items = await drive.list_children(child["id"])
        if sub_items is None:
            return None
        for item in sub_items:
            if not _is_folder(item):
                files[item["id"]] = (item, location)
    return files


# =============================================================================
# Dossier sync
# =============================================================================


async def sync_dossier(
    db: Session,
    drive: OneDriveClient,
    dossier_id: UUID,
    triggered_by_id: UUID | None = None,
    record_log: bool = True,
) -> DossierSyncResult:
    started = time.monotonic()
    result = DossierSyncResult(dossier_id=dossier_id)

    dossier = (
        db.query(Dossier)
        .options(joinedload(Dossier.client))
        .filter(Dossier.id == dossier_id)
        .first()
    )
    if not dossier:
        result.errors = 1
        result.message = "Dossier not found"
        result.details.append(result.message)
        return result
    result.dossier_reference = dossier.reference

    if not await drive.is_ready():
        result.errors = 1
        result.message = NOT_CONNECTED
        result.details.append(NOT_CONNECTED)
        return result

    folder_id = dossier.onedrive_folder_id
    if not folder_id:
        created = await folder_service.create_dossier_folder(db, drive, dossier.id)
        if not created.success:
            result.errors = 1
            result.message = "Failed to create OneDrive folder"
            result.details.append(created.error or "Unknown error")
            return result
        folder_id = created.folder_id

    remote = await _collect_remote_files(drive, dossier, folder_id)
    if remote is None:
        result.errors = 1
        result.message = f"Failed to list OneDrive folder for {dossier.reference}"
        result.details.append(result.message)
        return result

    documents = db.query(Document).filter(Document.dossier_id == dossier.id).all()
    by_file_id = {doc.onedrive_file_id: doc for doc in documents if doc.onedrive_file_id}

    for file_id, (item, location) in remote.items():
        name = item.get("name", file_id)
        document = by_file_id.get(file_id)
        try:
            if document is None:
                import_drive_file(db, dossier, item, location)
                db.commit()
                result.created += 1
                result.details.append(f"Importe: {name}")
                continue

            modified = item_last_modified(item)
            if modified and (
                document.onedrive_last_modified is None
                or modified > document.onedrive_last_modified
            ):
                document.onedrive_web_url = item.get("webUrl")
                document.onedrive_download_url = item.get("@microsoft.graph.downloadUrl")
                document.taille_octets = item.get("size", document.taille_octets)
                document.onedrive_last_modified = modified
                activity_service.log_document_synced_onedrive(
                    db, document, changes=["Metadata updated from OneDrive"]
                )
                db.commit()
                result.updated += 1
                result.details.append(f"Mis a jour: {name}")
        except Exception as exc:
            db.rollback()
            logger.exception("Failed to reconcile OneDrive file %s", file_id)
            result.errors += 1
            result.details.append(f"Erreur import {name}: {exc}")

    for document in documents:
        file_id = document.onedrive_file_id
        if not file_id or file_id in remote:
            continue
        document.onedrive_file_id = None
        document.onedrive_web_url = None
        document.onedrive_download_url = None
        document.onedrive_last_modified = None
        activity_service.log_document_removed_onedrive(db, document, file_id)
        db.commit()
        result.deleted += 1
        result.details.append(f"Supprime de OneDrive: {document.nom}")

    dossier.onedrive_last_sync = utcnow()
    mode = SyncMode.MANUAL if triggered_by_id else SyncMode.AUTO
    if result.synced or result.errors:
        activity_service.log_onedrive_sync(
            db,
            dossier.id,
            triggered_by_id,
            mode=mode.value,
            imported=result.created,
            updated=result.updated,
            deleted=result.deleted,
            errors=result.errors,
        )
    db.commit()

    result.message = (
        "Synchronisation terminee" if result.success else "Synchronisation terminee avec erreurs"
    )
    if record_log:
        sync_log_service.record_sync(
            db,
            sync_type=SyncType.ONEDRIVE,
            mode=mode,
            statut=sync_log_service.compute_statut(result.synced, result.errors),
            processed=len(remote),
            created=result.created,
            updated=result.updated,
            deleted=result.deleted,
            errors=result.errors,
            message=f"Sync termine pour {dossier.reference}",
            details={"dossier_reference": dossier.reference, "logs": result.details},
            duration_ms=int((time.monotonic() - started) * 1000),
            triggered_by_id=triggered_by_id,
        )
    return result


async def sync_all_dossiers(
    db: Session, drive: OneDriveClient, triggered_by_id: UUID | None = None
) -> OneDriveSyncResult:
    """Run ``sync_dossier`` on every dossier linked to a folder; one SyncLog for the run."""
    started = time.monotonic()
    result = OneDriveSyncResult()
    if not await drive.is_ready():
        result.errors = 1
        result.message = NOT_CONNECTED
        result.details.append(NOT_CONNECTED)
        return result

    dossiers = (
        db.query(Dossier)
        .filter(Dossier.onedrive_folder_id.isnot(None))
        .order_by(Dossier.created_at)
        .all()
    )
    clean = 0
    for dossier in dossiers:
        outcome = await sync_dossier(db, drive, dossier.id, triggered_by_id, record_log=False)
        if not outcome.errors:
            clean += 1
        result.created += outcome.created
        result.updated += outcome.updated
        result.deleted += outcome.deleted
        result.errors += outcome.errors
        if outcome.synced or outcome.errors:
            result.details.append(
                f"{outcome.dossier_reference}: {outcome.created} created, "
                f"{outcome.updated} updated, {outcome.deleted} deleted, {outcome.errors} errors"
            )

    result.message = f"Synchronisation terminee: {len(dossiers)} dossiers traites"
    sync_log_service.record_sync(
        db,
        sync_type=SyncType.ONEDRIVE,
        mode=SyncMode.MANUAL if triggered_by_id else SyncMode.AUTO,
        statut=sync_log_service.compute_statut(clean, result.errors),
        processed=len(dossiers),
        created=result.created,
        updated=result.updated,
        deleted=result.deleted,
        errors=result.errors,
        message=f"Sync complet termine: {len(dossiers)} dossiers traites",
        details={"total_dossiers": len(dossiers), "logs": result.details},
        duration_ms=int((time.monotonic() - started) * 1000),
        triggered_by_id=triggered_by_id,
    )
    return result


# =============================================================================
# Reverse sync
# =============================================================================


def _clients_by_folder_name(db: Session) -> dict[str, Client]:
    clients: dict[str, Client] = {}
    for client in db.query(Client).all():
        clients[f"{client.prenom} {client.nom}".lower().strip()] = client
        clients[f"{client.nom} {client.prenom}".lower().strip()] = client
    return clients


async def reverse_sync(
    db: Session, drive: OneDriveClient, triggered_by_id: UUID | None = None
) -> ReverseSyncResult:
    """
    Discover folders and files created directly in OneDrive.

    Client folders match "prenom nom" or "nom prenom" (case-insensitive),
    dossier folders match by their leading reference. Unlinked dossiers are
    linked, unknown files imported. Unmatched folders are reported only.
    """
    started = time.monotonic()
    result = ReverseSyncResult()
    if not await drive.is_ready():
        result.errors = 1
        result.message = NOT_CONNECTED
        result.details.append(NOT_CONNECTED)
        return result

    clients_path = folder_service.clients_root_path()
    clients_folder = await drive.get_item_by_path(clients_path)
    if not clients_folder:
        result.errors = 1
        result.message = f"Folder {clients_path}/ not found"
        result.details.append(result.message)
        return result

    client_folders = [i for i in await drive.list_folder(clients_folder["id"]) if _is_folder(i)]
    clients = _clients_by_folder_name(db)

    for client_folder in client_folders:
        client = clients.get(client_folder["name"].lower().strip())
        if client is None:
            result.unmatched_clients.append(client_folder["name"])
            result.details.append(f"Client folder not matched: {client_folder['name']}")
            continue

        dossiers_by_ref = {
            d.reference.lower(): d
            for d in db.query(Dossier).filter(Dossier.client_id == client.id).all()
        }
        dossier_folders = [
            i for i in await drive.list_folder(client_folder["id"]) if _is_folder(i)
        ]
        for dossier_folder in dossier_folders:
            label = f"{client_folder['name']}/{dossier_folder['name']}"
            reference = extract_reference_from_folder_name(dossier_folder["name"])
            if not reference:
                result.unmatched_dossiers.append(label)
                result.details.append(
                    f"Cannot extract reference from folder: {dossier_folder['name']}"
                )
                continue
            dossier = dossiers_by_ref.get(reference.lower())
            if dossier is None:
                result.unmatched_dossiers.append(label)
                result.details.append(f"Dossier not found for reference: {reference}")
                continue

            if not dossier.onedrive_folder_id:
                dossier.onedrive_folder_id = dossier_folder["id"]
                dossier.onedrive_folder_path = f"{clients_path}/{label}"
                activity_service.log_dossier_onedrive_linked(
                    db, dossier.id, triggered_by_id,
                    dossier.onedrive_folder_id, dossier.onedrive_folder_path,
                )
                result.linked_dossiers += 1
                result.details.append(f"Linked dossier {dossier.reference} to OneDrive folder")

            remote = await _collect_remote_files(drive, dossier, dossier_folder["id"])
            if remote is None:
                result.errors += 1
                result.details.append(f"Erreur scan dossier: {label}")
                db.commit()
                continue

            known = {
                file_id
                for (file_id,) in db.query(Document.onedrive_file_id).filter(
                    Document.dossier_id == dossier.id,
                    Document.onedrive_file_id.isnot(None),
                )
            }
            for file_id, (item, location) in remote.items():
                if file_id in known:
                    continue
                try:
                    import_drive_file(db, dossier, item, location)
                    db.commit()
                except Exception as exc:
                    db.rollback()
                    logger.exception("Failed to import OneDrive file %s", file_id)
                    result.errors += 1
                    result.details.append(f"Erreur import {item.get('name')}: {exc}")
                    continue
                result.created += 1
                result.details.append(
                    f"Importe: {item['name']} ({location.value.upper()})"
                )

            dossier.onedrive_last_sync = utcnow()
            db.commit()

    result.message = (
        f"Sync inverse termine: {result.created} fichiers importes, "
        f"{result.linked_dossiers} dossiers lies"
    )
    sync_log_service.record_sync(
        db,
        sync_type=SyncType.ONEDRIVE,
        mode=SyncMode.MANUAL if triggered_by_id else SyncMode.AUTO,
        statut=sync_log_service.compute_statut(
            result.created + result.linked_dossiers, result.errors
        ),
        processed=len(client_folders),
        created=result.created,
        updated=result.updated,
        errors=result.errors,
        message=result.message,
        details={
            "unmatched_clients": result.unmatched_clients,
            "unmatched_dossiers": result.unmatched_dossiers,
            "linked_dossiers": result.linked_dossiers,
            "logs": result.details[:50],
        },
        duration_ms=int((time.monotonic() - started) * 1000),
        triggered_by_id=triggered_by_id,
    )
    return result


async def initialize_all_dossiers(
    db: Session, drive: OneDriveClient, triggered_by_id: UUID | None = None
) -> OneDriveSyncResult:
    """Create the folder of every dossier that has none, and record the run."""
    summary = await folder_service.initialize_all_dossiers(db, drive)
    result = OneDriveSyncResult(
        created=summary.synced,
        errors=summary.errors if summary.success or summary.errors else 1,
        details=summary.details,
        message=f"Initialisation terminee: {summary.synced} dossiers crees",
    )
    sync_log_service.record_sync(
        db,
        sync_type=SyncType.ONEDRIVE,
        mode=SyncMode.MANUAL,
        statut=sync_log_service.compute_statut(result.created, result.errors),
        processed=summary.synced + summary.errors,
        created=summary.synced,
        errors=result.errors,
        message="Initialisation terminee",
        details={"logs": summary.details},
        triggered_by_id=triggered_by_id,
    )
    return result


def get_sync_history(db: Session, limit: int = 20) -> list[SyncLog]:
    return sync_log_service.get_history(db, SyncType.ONEDRIVE, limit)
