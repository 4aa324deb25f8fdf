"""Dossiers router - case files, their timeline and events."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.enums import DossierStatut
from portal.db.models import Admin, Dossier
from portal.schemas.common import MessageResponse, Page, build_page
from portal.schemas.dossier import DossierCreate, DossierRead, DossierUpdate
from portal.schemas.evenement import EvenementRead
from portal.services import client_service, dossier_service, timeline_service

router = APIRouter()


def get_dossier_or_404(db: Session, dossier_id: UUID) -> Dossier:
    dossier = dossier_service.get_dossier(db, dossier_id)
    if not dossier:
        raise HTTPException(status_code=404, detail="Dossier not found")
    return dossier


@router.get("", response_model=Page)
def list_dossiers(
    search: str | None = None,
    statut: DossierStatut | None = None,
    client_id: UUID | None = None,
    assigned_admin_id: UUID | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    dossiers, total = dossier_service.list_dossiers(
        db,
        page=page,
        per_page=limit,
        search=search,
        statut=statut.value if statut else None,
        client_id=client_id,
        assigned_admin_id=assigned_admin_id,
    )
    items = [DossierRead.model_validate(d) for d in dossiers]
    return build_page(items, total, page, limit)


@router.post("", response_model=DossierRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_dossier(
    data: DossierCreate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """The reference is generated; the OneDrive folder is created by the worker."""
    client = client_service.get_client(db, data.client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return dossier_service.create_dossier(db, client, data, admin.id, request)


@router.get("/{dossier_id}", response_model=DossierRead)
def get_dossier(
    dossier_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return get_dossier_or_404(db, dossier_id)


@router.put("/{dossier_id}", response_model=DossierRead, dependencies=[Depends(require_csrf_header)])
def update_dossier(
    dossier_id: UUID,
    data: DossierUpdate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    dossier = get_dossier_or_404(db, dossier_id)
    return dossier_service.update_dossier(db, dossier, data, admin.id, request)


@router.delete("/{dossier_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def delete_dossier(
    dossier_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    dossier = get_dossier_or_404(db, dossier_id)
    dossier_service.delete_dossier(db, dossier)
    return MessageResponse(message="Dossier deleted")


@router.get("/{dossier_id}/timeline")
def get_timeline(
    dossier_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    action: str = "",
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    get_dossier_or_404(db, dossier_id)
    return timeline_service.get_timeline(db, dossier_id, limit=limit, offset=offset, action=action)


@router.get("/{dossier_id}/evenements", response_model=list[EvenementRead])
def list_dossier_evenements(
    dossier_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    get_dossier_or_404(db, dossier_id)
    return dossier_service.list_dossier_evenements(db, dossier_id)
