"""Documents router. Mixed paths: /dossiers/{id}/documents and /documents/{id}."""

from pathlib import PurePath
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, get_integrations, require_csrf_header
from portal.core.providers import Integrations
from portal.db.enums import ActorType
from portal.db.models import Admin
from portal.routers.dossiers import get_dossier_or_404
from portal.schemas.common import MessageResponse
from portal.schemas.document import (
    DocumentCreate,
    DocumentMove,
    DocumentRead,
    DocumentUpdate,
    UrlResponse,
)
from portal.services import document_service, document_sync_service

router = APIRouter()


def _get_or_404(db: Session, document_id: UUID):
    document = document_service.get_document(db, document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


def attachment_response(download: document_sync_service.FileDownload) -> Response:
    return Response(
        content=download.content,
        media_type=download.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{download.file_name}"'},
    )


@router.get("/dossiers/{dossier_id}/documents", response_model=list[DocumentRead])
def list_documents(
    dossier_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    get_dossier_or_404(db, dossier_id)
    return document_service.list_dossier_documents(db, dossier_id)


@router.post(
    "/dossiers/{dossier_id}/documents",
    response_model=DocumentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_document(
    dossier_id: UUID,
    data: DocumentCreate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Register a document without content (kept outside the portal)."""
    dossier = get_dossier_or_404(db, dossier_id)
    return document_service.create_document(db, dossier, data, admin.id, request)


@router.post(
    "/dossiers/{dossier_id}/documents/upload",
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
    sensible: Annotated[bool, Form()] = False,
    visible_client: Annotated[bool, Form()] = True,
    description: Annotated[str | None, Form()] = None,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    """Upload to OneDrive, then record the document. The name defaults to the file stem."""
    dossier = get_dossier_or_404(db, dossier_id)
    file_name = file.filename or "document"
    content = await file.read()

    result = await document_sync_service.upload_document(
        db,
        integrations.drive(db),
        dossier.id,
        document_sync_service.UploadedFile(
            file_name=file_name, content=content, mime_type=file.content_type
        ),
        document_sync_service.DocumentMetadata(
            nom=nom or PurePath(file_name).stem,
            type_document=type_document,
            sensible=sensible,
            visible_client=visible_client,
            description=description,
        ),
        uploader_id=admin.id,
        uploader_type=ActorType.ADMIN,
    )
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)

    document_service.record_upload(db, dossier, result.document, admin.id, ActorType.ADMIN, request)
    db.refresh(result.document)
    return result.document


@router.put("/documents/{document_id}", response_model=DocumentRead, dependencies=[Depends(require_csrf_header)])
async def update_document(
    document_id: UUID,
    data: DocumentUpdate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    document = _get_or_404(db, document_id)
    return await document_service.update_document(
        db, integrations.drive(db), document, data, admin.id, request
    )


@router.delete("/documents/{document_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def delete_document(
    document_id: UUID,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    document_service.delete_document(db, _get_or_404(db, document_id), admin.id, request)
    return MessageResponse(message="Document deleted")


@router.get("/documents/{document_id}/download")
async def download_document(
    document_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    document = _get_or_404(db, document_id)
    download = await document_sync_service.download_document(db, integrations.drive(db), document.id)
    if not download.success:
        raise HTTPException(status_code=404, detail=download.error)
    document_service.record_download(db, document, admin.id, ActorType.ADMIN)
    return attachment_response(download)


@router.get("/documents/{document_id}/url", response_model=UrlResponse)
async def get_download_url(
    document_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    document = _get_or_404(db, document_id)
    result = await document_sync_service.get_download_url(db, integrations.drive(db), document.id)
    if not result.success:
        raise HTTPException(status_code=404, detail=result.error)
    return UrlResponse(url=result.url)


@router.get("/documents/{document_id}/thumbnail", response_model=UrlResponse)
async def get_thumbnail(
    document_id: UUID,
    size: str = Query("medium", pattern="^(small|medium|large)$"),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    document = _get_or_404(db, document_id)
    result = await document_sync_service.get_thumbnail_url(
        db, integrations.drive(db), document.id, size=size
    )
    if not result.success:
        raise HTTPException(status_code=404, detail=result.error)
    return UrlResponse(url=result.url)


@router.post("/documents/{document_id}/move", response_model=DocumentRead, dependencies=[Depends(require_csrf_header)])
async def move_document(
    document_id: UUID,
    data: DocumentMove,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    """Move between the CABINET and CLIENT subfolders; visibility follows."""
    document = _get_or_404(db, document_id)
    old_location = document.dossier_location
    result = await document_sync_service.move_document_location(
        db, integrations.drive(db), document.id, data.location
    )
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)
    document_service.record_move(db, result.document, admin.id, old_location, request)
    db.refresh(result.document)
    return result.document


@router.get("/documents/{document_id}/verify")
async def verify_document(
    document_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    """Whether the record exists and its OneDrive file is still there."""
    return await document_sync_service.verify_document(db, integrations.drive(db), document_id)


@router.post("/documents/{document_id}/sync", response_model=DocumentRead, dependencies=[Depends(require_csrf_header)])
async def sync_document(
    document_id: UUID,
    file: Annotated[UploadFile, File()],
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    """Push the content of a document recorded before OneDrive was reachable."""
    document = _get_or_404(db, document_id)
    result = await document_sync_service.sync_document(
        db, integrations.drive(db), document.id, await file.read()
    )
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)
    db.refresh(result.document)
    return result.document
