"""Dossier folder structure in OneDrive.

Structure::

    /{ONEDRIVE_ROOT_FOLDER}/
      Clients/
        {prenom nom}/
          {REFERENCE} - {intitule}/
            CABINET/   internal documents
            CLIENT/    documents shared with the client
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from portal.core.config import settings
from portal.db.enums import DocumentLocation
from portal.db.models import Client, Dossier
from portal.db.types import utcnow
from portal.services.onedrive_client import FolderResult, OneDriveClient

logger = logging.getLogger(__name__)

CLIENTS_FOLDER_NAME = "Clients"
LOCATION_FOLDER_NAMES = {
    DocumentLocation.CABINET: "CABINET",
    DocumentLocation.CLIENT: "CLIENT",
}

_INVALID_CHARS = re.compile(r'["*:<>?/\\|]')
_WHITESPACE = re.compile(r"\s+")

NOT_CONNECTED = "OneDrive not connected"


@dataclass
class FolderSyncSummary:
    success: bool
    synced: int = 0
    errors: int = 0
    details: list[str] = field(default_factory=list)


def sanitize_folder_name(name: str) -> str:
    """Replace characters OneDrive rejects, collapse whitespace, cap at 250 chars."""
    cleaned = _INVALID_CHARS.sub("-", name)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:250]


def client_folder_name(client: Client) -> str:
    return sanitize_folder_name(f"{client.prenom} {client.nom}")


def dossier_folder_name(reference: str, intitule: str) -> str:
    return sanitize_folder_name(f"{reference} - {intitule}")


def clients_root_path() -> str:
    return f"/{settings.ONEDRIVE_ROOT_FOLDER}/{CLIENTS_FOLDER_NAME}"


def dossier_folder_path(client_name: str, reference: str, intitule: str) -> str:
    return (
        f"{clients_root_path()}/{sanitize_folder_name(client_name)}"
        f"/{dossier_folder_name(reference, intitule)}"
    )


def _load_dossier(db: Session, dossier_id: UUID) -> Dossier | None:
    return (
        db.query(Dossier)
        .options(joinedload(Dossier.client))
        .filter(Dossier.id == dossier_id)
        .first()
    )


async def initialize_root_structure(drive: OneDriveClient) -> FolderResult:
    """Create ``/{root}/Clients`` if missing. Returns the root folder."""
    if not await drive.is_ready():
        return FolderResult(success=False, error=NOT_CONNECTED)

    root = await drive.get_or_create_root_folder(settings.ONEDRIVE_ROOT_FOLDER)
    if not root.success:
        return root
    clients = await drive.create_folder(root.folder_id, CLIENTS_FOLDER_NAME)
    if not clients.success:
        return FolderResult(success=False, error=clients.error)
    return root


async def create_dossier_folder(
    db: Session, drive: OneDriveClient, dossier_id: UUID
) -> FolderResult:
    """
    Create (or find) the dossier folder and persist its id and path.

    A cached folder id is verified first; when the folder was removed on
    OneDrive it is recreated.
    """
    if not await drive.is_ready():
        return FolderResult(success=False, error=NOT_CONNECTED)

    dossier = _load_dossier(db, dossier_id)
    if not dossier:
        return FolderResult(success=False, error="Dossier not found")

    if dossier.onedrive_folder_id:
        if await drive.get_item(dossier.onedrive_folder_id):
            return FolderResult(
                success=True,
                folder_id=dossier.onedrive_folder_id,
                folder_path=dossier.onedrive_folder_path,
            )
        logger.info("OneDrive folder for dossier %s is gone, recreating", dossier.reference)
        dossier.onedrive_cabinet_folder_id = None
        dossier.onedrive_client_folder_id = None

    path = dossier_folder_path(dossier.client.full_name, dossier.reference, dossier.intitule)
    result = await drive.create_folder_by_path(path)
    if result.success:
        dossier.onedrive_folder_id = result.folder_id
        dossier.onedrive_folder_path = result.folder_path
        dossier.onedrive_last_sync = utcnow()
        db.commit()
    return result


async def ensure_dossier_folder(
    db: Session,
    drive: OneDriveClient,
    dossier_id: UUID,
    location: DocumentLocation | None = None,
) -> str | None:
    """
    Return the folder id documents should go into.

    With a ``location`` this is the CABINET or CLIENT subfolder, otherwise
    the dossier folder itself. Cached ids are verified and recreated when
    they no longer exist. Returns None when the folder cannot be provided.
    """
    dossier = db.get(Dossier, dossier_id)
    if not dossier:
        return None

    folder_id = dossier.onedrive_folder_id
    if not folder_id or not await drive.get_item(folder_id):
        result = await create_dossier_folder(db, drive, dossier_id)
        if not result.success:
            return None
        folder_id = result.folder_id

    if location is None:
        return folder_id

    location = DocumentLocation(location)
    cache_attr = (
        "onedrive_cabinet_folder_id"
        if location is DocumentLocation.CABINET
        else "onedrive_client_folder_id"
    )
    cached = getattr(dossier, cache_attr)
    if cached and await drive.get_item(cached):
        return cached

    sub = await drive.create_folder(folder_id, LOCATION_FOLDER_NAMES[location])
    if not sub.success:
        logger.error(
            "Failed to create %s folder for dossier %s: %s",
            LOCATION_FOLDER_NAMES[location],
            dossier.reference,
            sub.error,
        )
        return None
    setattr(dossier, cache_attr, sub.folder_id)
    dossier.onedrive_last_sync = utcnow()
    db.commit()
    return sub.folder_id


async def rename_dossier_folder(db: Session, drive: OneDriveClient, dossier_id: UUID) -> bool:
    """Rename the remote folder after the dossier title changed."""
    dossier = _load_dossier(db, dossier_id)
    if not dossier or not dossier.onedrive_folder_id:
        return False

    new_name = dossier_folder_name(dossier.reference, dossier.intitule)
    result = await drive.rename_item(dossier.onedrive_folder_id, new_name)
    if not result.success:
        return False

    dossier.onedrive_folder_path = dossier_folder_path(
        dossier.client.full_name, dossier.reference, dossier.intitule
    )
    dossier.onedrive_last_sync = utcnow()
    db.commit()
    return True


async def create_client_folder(db: Session, drive: OneDriveClient, client_id: UUID) -> FolderResult:
    client = db.get(Client, client_id)
    if not client:
        return FolderResult(success=False, error="Client not found")
    if not await drive.is_ready():
        return FolderResult(success=False, error=NOT_CONNECTED)

    root = await initialize_root_structure(drive)
    if not root.success:
        return FolderResult(success=False, error=root.error)
    return await drive.create_folder_by_path(f"{clients_root_path()}/{client_folder_name(client)}")


async def initialize_all_dossiers(db: Session, drive: OneDriveClient) -> FolderSyncSummary:
    """Create folders for every dossier that has none yet."""
    if not await drive.is_ready():
        return FolderSyncSummary(success=False, details=[NOT_CONNECTED])

    root = await initialize_root_structure(drive)
    if not root.success:
        return FolderSyncSummary(success=False, details=[root.error or "Failed to initialize"])

    dossiers = (
        db.query(Dossier)
        .filter(Dossier.onedrive_folder_id.is_(None))
        .order_by(Dossier.created_at)
        .all()
    )
    summary = FolderSyncSummary(success=True)
    for dossier in dossiers:
        result = await create_dossier_folder(db, drive, dossier.id)
        if result.success:
            summary.synced += 1
            summary.details.append(f"Created folder for dossier {dossier.reference}")
        else:
            summary.errors += 1
            summary.details.append(
                f"Failed to create folder for {dossier.reference}: {result.error}"
            )
    summary.success = summary.errors == 0
    return summary
