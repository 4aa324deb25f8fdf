"""
Client portal router - what a logged-in client can see and do.

Every route requires a verified two-factor session (``get_current_client``)
and only reaches the client's own dossiers.
"""

from pathlib import PurePath
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session

from portal.core.deps import get_current_client, get_db, get_integrations, require_csrf_header
from portal.core.providers import Integrations
from portal.db.enums import ActorType, DocumentLocation
from portal.db.models import Client, Dossier
from portal.routers.documents import attachment_response
from portal.schemas.common import Page, build_page
from portal.schemas.document import DocumentRead
from portal.schemas.dossier import ClientDossierRead
from portal.schemas.evenement import EvenementRead
from portal.schemas.portal import DemandeRdvCreate, DemandeRdvRead, NotificationRead
from portal.services import (
    client_service,
    dashboard_service,
    demande_rdv_service,
    document_service,
    document_sync_service,
    dossier_service,
    evenement_service,
    notification_service,
)

router = APIRouter()


def _own_dossier(db: Session, dossier_id: UUID, client: Client) -> Dossier:
    dossier = dossier_service.get_dossier(db, dossier_id)
    if not dossier or dossier.client_id != client.id:
        raise HTTPException(status_code=404, detail="Dossier not found")
    return dossier


# =============================================================================
# Dashboard
# =============================================================================

@router.get("/dashboard")
def get_dashboard(client: Client = Depends(get_current_client), db: Session = Depends(get_db)):
    dashboard = dashboard_service.get_client_dashboard(db, client)
    dashboard["dernieres_notifications"] = [
        NotificationRead.model_validate(n) for n in dashboard["dernieres_notifications"]
    ]
    return dashboard


# =============================================================================
# Dossiers and documents
# =============================================================================

@router.get("/dossiers", response_model=list[ClientDossierRead])
def list_dossiers(client: Client = Depends(get_current_client), db: Session = Depends(get_db)):
    return client_service.list_client_dossiers(db, client.id)


@router.get("/dossiers/{dossier_id}", response_model=ClientDossierRead)
def get_dossier(
    dossier_id: UUID,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    return _own_dossier(db, dossier_id, client)


@router.get("/dossiers/{dossier_id}/documents", response_model=list[DocumentRead])
def list_documents(
    dossier_id: UUID,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    """Visible documents; sensitive ones only with the matching permission."""
    _own_dossier(db, dossier_id, client)
    return document_service.list_client_documents(db, dossier_id, client)


@router.post(
    "/dossiers/{dossier_id}/documents",
    response_model=DocumentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
async def upload_document(
    dossier_id: UUID,
    request: Request,
    file: Annotated[UploadFile, File()],
    nom: Annotated[str | None, Form()] = None,
    type_document: Annotated[str, Form()] = "autre",
    description: Annotated[str | None, Form()] = None,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    if not client.peut_uploader:
        raise HTTPException(status_code=403, detail="Upload not allowed for this account")
    dossier = _own_dossier(db, dossier_id, client)
    file_name = file.filename or "document"

    result = await document_sync_service.upload_document(
        db,
        integrations.drive(db),
        dossier.id,
        document_sync_service.UploadedFile(
            file_name=file_name, content=await file.read(), mime_type=file.content_type
        ),
        document_sync_service.DocumentMetadata(
            nom=nom or PurePath(file_name).stem,
            type_document=type_document,
            visible_client=True,
            description=description,
        ),
        uploader_id=client.id,
        uploader_type=ActorType.CLIENT,
        location=DocumentLocation.CLIENT,
    )
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)

    document_service.record_upload(db, dossier, result.document, client.id, ActorType.CLIENT, request)
    db.refresh(result.document)
    return result.document


@router.get("/documents/{document_id}/download")
async def download_document(
    document_id: UUID,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    document = document_service.get_document(db, document_id)
    if (
        not document
        or document.dossier.client_id != client.id
        or not document_service.client_can_access(db, document, client)
    ):
        raise HTTPException(status_code=404, detail="Document not found")
    download = await document_sync_service.download_document(db, integrations.drive(db), document.id)
    if not download.success:
        raise HTTPException(status_code=404, detail=download.error)
    document_service.record_download(db, document, client.id, ActorType.CLIENT)
    return attachment_response(download)


@router.get("/evenements", response_model=list[EvenementRead])
def list_evenements(client: Client = Depends(get_current_client), db: Session = Depends(get_db)):
    return evenement_service.list_client_evenements(db, client.id)


# =============================================================================
# Appointment requests
# =============================================================================

@router.get("/demandes-rdv", response_model=list[DemandeRdvRead])
def list_demandes(client: Client = Depends(get_current_client), db: Session = Depends(get_db)):
    return demande_rdv_service.list_client_demandes(db, client.id)


@router.post(
    "/demandes-rdv",
    response_model=DemandeRdvRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_demande(
    data: DemandeRdvCreate,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    if not client.peut_demander_rdv:
        raise HTTPException(status_code=403, detail="Appointment requests not allowed for this account")
    try:
        return demande_rdv_service.create_demande(db, client, data)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/demandes-rdv/{demande_id}", response_model=DemandeRdvRead)
def get_demande(
    demande_id: UUID,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    demande = demande_rdv_service.get_demande(db, demande_id)
    if not demande or demande.client_id != client.id:
        raise HTTPException(status_code=404, detail="Demande not found")
    return demande


# =============================================================================
# Notifications
# =============================================================================

@router.get("/notifications", response_model=Page)
def list_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    items, total = notification_service.list_notifications(
        db, ActorType.CLIENT, client.id, page=page, per_page=limit, unread_only=unread_only
    )
    return build_page([NotificationRead.model_validate(n) for n in items], total, page, limit)


@router.post(
    "/notifications/{notification_id}/read",
    response_model=NotificationRead,
    dependencies=[Depends(require_csrf_header)],
)
def mark_notification_read(
    notification_id: UUID,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    notification = notification_service.get_notification(db, notification_id, ActorType.CLIENT, client.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification_service.mark_read(db, notification)
