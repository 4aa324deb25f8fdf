"""Clients router - client accounts managed by the firm."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.enums import ClientType
from portal.db.models import Admin
from portal.schemas.client import ClientCreate, ClientRead, ClientUpdate
from portal.schemas.common import MessageResponse, Page, build_page
from portal.schemas.dossier import DossierRead
from portal.services import client_service

router = APIRouter()


def _get_or_404(db: Session, client_id: UUID):
    client = client_service.get_client(db, client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("", response_model=Page)
def list_clients(
    search: str | None = None,
    type: ClientType | None = None,
    responsable_id: UUID | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Admins with ``filter_by_responsable`` only see their own clients by default."""
    if responsable_id is None and admin.filter_by_responsable:
        responsable_id = admin.id
    clients, total = client_service.list_clients(
        db,
        page=page,
        per_page=limit,
        search=search,
        client_type=type.value if type else None,
        responsable_id=responsable_id,
    )
    items = [ClientRead.model_validate(c) for c in clients]
    return build_page(items, total, page, limit)


@router.post("", status_code=201, dependencies=[Depends(require_csrf_header)])
def create_client(
    data: ClientCreate,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Returns the generated password once when none was supplied."""
    try:
        client, password = client_service.create_client(db, data, admin.id)
    except client_service.DuplicateEmailError:
        raise HTTPException(status_code=409, detail="Email already in use")
    return {
        "client": ClientRead.model_validate(client),
        "generated_password": password,
    }


@router.get("/{client_id}", response_model=ClientRead)
def get_client(
    client_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return _get_or_404(db, client_id)


@router.put("/{client_id}", response_model=ClientRead, dependencies=[Depends(require_csrf_header)])
def update_client(
    client_id: UUID,
    data: ClientUpdate,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    client = _get_or_404(db, client_id)
    try:
        return client_service.update_client(db, client, data)
    except client_service.DuplicateEmailError:
        raise HTTPException(status_code=409, detail="Email already in use")


@router.delete("/{client_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def delete_client(
    client_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    client = _get_or_404(db, client_id)
    client_service.delete_client(db, client)
    return MessageResponse(message="Client deleted")


@router.post("/{client_id}/reset-password", dependencies=[Depends(require_csrf_header)])
def reset_password(
    client_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    client = _get_or_404(db, client_id)
    password = client_service.reset_password(db, client)
    return {"message": "Password reset", "new_password": password}


@router.get("/{client_id}/dossiers", response_model=list[DossierRead])
def list_client_dossiers(
    client_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    _get_or_404(db, client_id)
    return client_service.list_client_dossiers(db, client_id)
