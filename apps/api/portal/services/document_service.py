"""Document service - document metadata, visibility and client access.

OneDrive transfers live in ``document_sync_service``; this module owns the
rows, their activity entries and the client notifications.
"""

import logging
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from portal.db.enums import ActorType, DocumentLocation, JobType
from portal.db.models import Client, Document, Dossier
from portal.schemas.document import DocumentCreate, DocumentUpdate
from portal.services import activity_service, job_service, notification_service
from portal.services.document_sync_service import rename_remote_file, target_location
from portal.services.onedrive_client import OneDriveClient

logger = logging.getLogger(__name__)


def get_document(db: Session, document_id: UUID) -> Document | None:
    return db.query(Document).filter(Document.id == document_id).first()


def list_dossier_documents(db: Session, dossier_id: UUID) -> list[Document]:
    return (
        db.query(Document)
        .filter(Document.dossier_id == dossier_id)
        .order_by(Document.created_at.desc())
        .all()
    )


def client_documents_query(db: Session, dossier_id: UUID, client: Client):
    """Documents a client may see: visible ones, sensitive only with permission."""
    query = db.query(Document).filter(
        Document.dossier_id == dossier_id,
        Document.visible_client.is_(True),
    )
    if not client.acces_documents_sensibles:
        query = query.filter(Document.sensible.is_(False))
    return query


def list_client_documents(db: Session, dossier_id: UUID, client: Client) -> list[Document]:
    return client_documents_query(db, dossier_id, client).order_by(Document.created_at.desc()).all()


def client_can_access(db: Session, document: Document, client: Client) -> bool:
    return (
        client_documents_query(db, document.dossier_id, client)
        .filter(Document.id == document.id)
        .first()
        is not None
    )


def notify_new_document(db: Session, dossier: Dossier, document: Document, uploaded_by: ActorType) -> None:
    """
    Tell the other side about a new document.

    Admin uploads notify the client (visible documents, preference on);
    client uploads notify the client's responsible admin.
    """
    client = dossier.client
    if uploaded_by is ActorType.ADMIN:
        if client and client.notif_email_document and document.visible_client:
            notification_service.notify(
                db,
                ActorType.CLIENT,
                client.id,
                "document_added",
                "Nouveau document",
                f"{document.nom} a ete ajoute au dossier {dossier.reference}",
                f"/espace-client/dossiers/{dossier.id}",
            )
    elif client and client.responsable_id:
        notification_service.notify(
            db,
            ActorType.ADMIN,
            client.responsable_id,
            "document_uploaded_by_client",
            "Document depose par un client",
            f"{client.full_name} a depose {document.nom} ({dossier.reference})",
            f"/admin/dossiers/{dossier.id}",
        )


def record_upload(
    db: Session,
    dossier: Dossier,
    document: Document,
    user_id: UUID,
    user_type: ActorType,
    request: Request | None = None,
) -> None:
    """Activity entry and notification after a successful upload."""
    activity_service.log_document_uploaded(db, document, user_id, user_type, request)
    notify_new_document(db, dossier, document, user_type)
    db.commit()


def create_document(
    db: Session,
    dossier: Dossier,
    data: DocumentCreate,
    admin_id: UUID,
    request: Request | None = None,
) -> Document:
    """Metadata-only document (file kept outside the portal)."""
    document = Document(
        **data.model_dump(),
        dossier_id=dossier.id,
        uploaded_by_id=admin_id,
        uploaded_by_type=ActorType.ADMIN.value,
        uploaded_by_client=False,
        dossier_location=target_location(None, data.visible_client).value,
    )
    db.add(document)
    db.flush()
    record_upload(db, dossier, document, admin_id, ActorType.ADMIN, request)
    db.refresh(document)
    return document


async def update_document(
    db: Session,
    drive: OneDriveClient,
    document: Document,
    data: DocumentUpdate,
    admin_id: UUID,
    request: Request | None = None,
) -> Document:
    """
    Update metadata. A new name is also applied to the OneDrive file; a
    failed remote rename is logged and the local update still goes through.
    """
    update_data = data.model_dump(exclude_unset=True)
    old_name = document.nom
    old_visibility = document.visible_client

    new_name = update_data.get("nom")
    if new_name and new_name != old_name and document.onedrive_file_id:
        suffix = f".{document.extension}" if document.extension else ""
        if not await rename_remote_file(drive, document.onedrive_file_id, f"{new_name}{suffix}"):
            logger.warning("OneDrive rename failed for document %s, keeping local rename", document.id)

    for field, value in update_data.items():
        if value is None and field != "description":
            continue
        setattr(document, field, value)

    if document.nom != old_name:
        activity_service.log_document_renamed(db, document, admin_id, old_name, request)
    if document.visible_client != old_visibility:
        activity_service.log_document_visibility_changed(
            db, document, admin_id, old_visibility, request
        )
    db.commit()
    db.refresh(document)
    return document


def record_move(
    db: Session,
    document: Document,
    admin_id: UUID,
    old_location: str,
    request: Request | None = None,
) -> None:
    if document.dossier_location != old_location:
        activity_service.log_document_moved(db, document, admin_id, old_location, request)
        db.commit()


def record_download(db: Session, document: Document, user_id: UUID, user_type: ActorType) -> None:
    activity_service.log_document_downloaded(db, document, user_id, user_type)
    db.commit()


def delete_document(
    db: Session, document: Document, admin_id: UUID, request: Request | None = None
) -> None:
    """Delete the row now; the OneDrive copy is removed by the worker."""
    file_id = document.onedrive_file_id
    activity_service.log_document_deleted(db, document, admin_id, request)
    db.delete(document)
    db.commit()
    if file_id:
        job_service.enqueue_job(
            db,
            JobType.ONEDRIVE_ITEM_DELETE,
            {"file_id": file_id},
            idempotency_key=f"onedrive_item_delete:{file_id}",
        )
