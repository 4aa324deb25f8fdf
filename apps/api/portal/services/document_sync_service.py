"""
Document storage in OneDrive.

Documents live in the dossier's CABINET (internal) or CLIENT
(client-visible) subfolder. The database row holds metadata and the
OneDrive ids; content is never stored locally.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import ActorType, DocumentLocation
from portal.db.models import Document, Dossier
from portal.db.types import utcnow
from portal.services.folder_service import ensure_dossier_folder, sanitize_folder_name
from portal.services.onedrive_client import OneDriveClient, OperationResult
from portal.services.onedrive_sync_service import split_file_name

logger = logging.getLogger(__name__)

NOT_CONNECTED = "OneDrive not connected"
NOT_SYNCED = "Document not synced to OneDrive"
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class UploadedFile:
    file_name: str
    content: bytes
    mime_type: str | None = None


@dataclass
class DocumentMetadata:
    nom: str
    type_document: str | None = None
    sensible: bool = False
    visible_client: bool = True
    date_document: date | None = None
    description: str | None = None


@dataclass
class DocumentResult:
    success: bool
    document: Document | None = None
    error: str | None = None


@dataclass
class FileDownload:
    success: bool
    content: bytes | None = None
    file_name: str | None = None
    mime_type: str | None = None
    error: str | None = None


@dataclass
class UrlResult:
    success: bool
    url: str | None = None
    error: str | None = None


def target_location(
    location: DocumentLocation | str | None, visible_client: bool | None
) -> DocumentLocation:
    """Explicit location wins; otherwise internal documents go to CABINET, the rest to CLIENT."""
    if location:
        return DocumentLocation(location)
    return DocumentLocation.CABINET if visible_client is False else DocumentLocation.CLIENT


def unique_file_name(nom: str, extension: str | None) -> str:
    """``{nom}_{token}.{ext}`` so uploads never collide inside a folder."""
    suffix = f".{extension}" if extension else ""
    return f"{sanitize_folder_name(nom)}_{secrets.token_hex(8)}{suffix}"


async def upload_document(
    db: Session,
    drive: OneDriveClient,
    dossier_id: UUID,
    upload: UploadedFile,
    metadata: DocumentMetadata,
    uploader_id: UUID,
    uploader_type: ActorType,
    location: DocumentLocation | str | None = None,
) -> DocumentResult:
    """Upload to the right subfolder, then create the document row (committed)."""
    if not await drive.is_ready():
        return DocumentResult(success=False, error=NOT_CONNECTED)

    dossier = db.get(Dossier, dossier_id)
    if not dossier:
        return DocumentResult(success=False, error="Dossier not found")

    destination = target_location(location, metadata.visible_client)
    folder_id = await ensure_dossier_folder(db, drive, dossier_id, destination)
    if not folder_id:
        return DocumentResult(success=False, error="Failed to create dossier folder on OneDrive")

    _, extension = split_file_name(upload.file_name)
    mime_type = upload.mime_type or DEFAULT_MIME_TYPE
    uploaded = await drive.upload_file(
        folder_id, unique_file_name(metadata.nom, extension), upload.content, mime_type
    )
    if not uploaded.success:
        return DocumentResult(success=False, error=uploaded.error)

    document = Document(
        dossier_id=dossier_id,
        nom=metadata.nom,
        nom_original=upload.file_name,
        type_document=metadata.type_document or "autre",
        taille_octets=len(upload.content),
        mime_type=mime_type,
        extension=extension,
        sensible=metadata.sensible,
        visible_client=metadata.visible_client,
        uploaded_by_client=ActorType(uploader_type) is ActorType.CLIENT,
        uploaded_by_id=uploader_id,
        uploaded_by_type=ActorType(uploader_type).value,
        date_document=metadata.date_document,
        description=metadata.description,
        dossier_location=destination.value,
        onedrive_file_id=uploaded.file_id,
        onedrive_web_url=uploaded.web_url,
        onedrive_download_url=uploaded.download_url,
        onedrive_last_modified=uploaded.last_modified,
    )
    db.add(document)
    dossier.onedrive_last_sync = utcnow()
    db.commit()
    db.refresh(document)
    return DocumentResult(success=True, document=document)


async def download_document(db: Session, drive: OneDriveClient, document_id: UUID) -> FileDownload:
    document = db.get(Document, document_id)
    if not document:
        return FileDownload(success=False, error="Document not found")
    if not document.onedrive_file_id:
        return FileDownload(success=False, error=NOT_SYNCED)
    if not await drive.is_ready():
        return FileDownload(success=False, error=NOT_CONNECTED)

    downloaded = await drive.download_file(document.onedrive_file_id)
    if not downloaded.success:
        return FileDownload(success=False, error=downloaded.error)

    suffix = f".{document.extension}" if document.extension else ""
    return FileDownload(
        success=True,
        content=downloaded.content,
        file_name=f"{document.nom}{suffix}",
        mime_type=document.mime_type or downloaded.mime_type or DEFAULT_MIME_TYPE,
    )


async def delete_remote_file(drive: OneDriveClient, file_id: str) -> OperationResult:
    """Remove the OneDrive copy of a deleted document."""
    if not await drive.is_ready():
        return OperationResult(success=False, error=NOT_CONNECTED)
    return await drive.delete_item(file_id)


async def sync_document(
    db: Session, drive: OneDriveClient, document_id: UUID, content: bytes
) -> DocumentResult:
    """Upload the content of a document whose first upload never reached OneDrive."""
    document = db.get(Document, document_id)
    if not document:
        return DocumentResult(success=False, error="Document not found")
    if document.onedrive_file_id:
        return DocumentResult(success=True, document=document)
    if not await drive.is_ready():
        return DocumentResult(success=False, error=NOT_CONNECTED)

    destination = target_location(document.dossier_location, document.visible_client)
    folder_id = await ensure_dossier_folder(db, drive, document.dossier_id, destination)
    if not folder_id:
        return DocumentResult(success=False, error="Failed to create dossier folder")

    uploaded = await drive.upload_file(
        folder_id,
        unique_file_name(document.nom, document.extension),
        content,
        document.mime_type or DEFAULT_MIME_TYPE,
    )
    if not uploaded.success:
        return DocumentResult(success=False, error=uploaded.error)

    document.onedrive_file_id = uploaded.file_id
    document.onedrive_web_url = uploaded.web_url
    document.onedrive_download_url = uploaded.download_url
    document.onedrive_last_modified = uploaded.last_modified
    document.dossier_location = destination.value
    db.commit()
    return DocumentResult(success=True, document=document)


async def move_document_location(
    db: Session,
    drive: OneDriveClient,
    document_id: UUID,
    new_location: DocumentLocation | str,
) -> DocumentResult:
    """
    Move a document between CABINET and CLIENT.

    Visibility follows the location: CLIENT documents are client-visible.
    """
    new_location = DocumentLocation(new_location)
    document = db.get(Document, document_id)
    if not document:
        return DocumentResult(success=False, error="Document not found")

    if document.onedrive_file_id:
        if not await drive.is_ready():
            return DocumentResult(success=False, error=NOT_CONNECTED)
        folder_id = await ensure_dossier_folder(db, drive, document.dossier_id, new_location)
        if not folder_id:
            return DocumentResult(success=False, error="Failed to get target folder")
        moved = await drive.move_item(document.onedrive_file_id, folder_id)
        if not moved.success:
            return DocumentResult(success=False, error="Failed to move file on OneDrive")

    document.dossier_location = new_location.value
    document.visible_client = new_location is DocumentLocation.CLIENT
    db.commit()
    return DocumentResult(success=True, document=document)


async def get_download_url(db: Session, drive: OneDriveClient, document_id: UUID) -> UrlResult:
    """Fresh pre-authenticated URL (they expire); the stored one is replaced."""
    document = db.get(Document, document_id)
    if not document:
        return UrlResult(success=False, error="Document not found")
    if not document.onedrive_file_id:
        return UrlResult(success=False, error=NOT_SYNCED)
    if not await drive.is_ready():
        return UrlResult(success=False, error=NOT_CONNECTED)

    info = await drive.get_item(document.onedrive_file_id)
    if not info:
        return UrlResult(success=False, error="File not found on OneDrive")
    url = info.get("@microsoft.graph.downloadUrl")
    if not url:
        return UrlResult(success=False, error="No download URL available")

    document.onedrive_download_url = url
    db.commit()
    return UrlResult(success=True, url=url)


async def verify_document(db: Session, drive: OneDriveClient, document_id: UUID) -> dict:
    document = db.get(Document, document_id)
    if not document:
        return {"exists": False, "synced": False}
    if not document.onedrive_file_id or not await drive.is_ready():
        return {"exists": True, "synced": False}
    return {"exists": True, "synced": await drive.get_item(document.onedrive_file_id) is not None}


async def rename_remote_file(drive: OneDriveClient, file_id: str, new_file_name: str) -> bool:
    if not await drive.is_ready():
        return False
    result = await drive.rename_item(file_id, new_file_name)
    return result.success


async def get_thumbnail_url(
    db: Session, drive: OneDriveClient, document_id: UUID, size: str = "medium"
) -> UrlResult:
    document = db.get(Document, document_id)
    if not document:
        return UrlResult(success=False, error="Document not found")
    if not document.onedrive_file_id:
        return UrlResult(success=False, error=NOT_SYNCED)
    if not await drive.is_ready():
        return UrlResult(success=False, error=NOT_CONNECTED)

    thumbnails = await drive.get_thumbnails(document.onedrive_file_id)
    url = None
    if thumbnails:
        url = thumbnails.get(size) or thumbnails.get("medium") or thumbnails.get("small")
    if not url:
        return UrlResult(success=False, error="No thumbnail available")
    return UrlResult(success=True, url=url)
