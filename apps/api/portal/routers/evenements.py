"""Evenements router - the firm's calendar."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.models import Admin
from portal.routers.dossiers import get_dossier_or_404
from portal.schemas.common import MessageResponse
from portal.schemas.evenement import EvenementCreate, EvenementRead, EvenementUpdate
from portal.services import evenement_service

router = APIRouter()


def _get_or_404(db: Session, evenement_id: UUID):
    event = evenement_service.get_evenement(db, evenement_id)
    if not event:
        raise HTTPException(status_code=404, detail="Evenement not found")
    return event


@router.get("", response_model=list[EvenementRead])
def list_evenements(
    date_from: datetime | None = Query(None, alias="from"),
    date_to: datetime | None = Query(None, alias="to"),
    dossier_id: UUID | None = None,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return evenement_service.list_evenements(db, date_from, date_to, dossier_id)


@router.post("", response_model=EvenementRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_evenement(
    data: EvenementCreate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Google Calendar copy is pushed by the worker when sync is on and in auto mode."""
    if data.dossier_id:
        get_dossier_or_404(db, data.dossier_id)
    return evenement_service.create_evenement(db, data, admin.id, request)


@router.get("/{evenement_id}", response_model=EvenementRead)
def get_evenement(
    evenement_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return _get_or_404(db, evenement_id)


@router.put("/{evenement_id}", response_model=EvenementRead, dependencies=[Depends(require_csrf_header)])
def update_evenement(
    evenement_id: UUID,
    data: EvenementUpdate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    event = _get_or_404(db, evenement_id)
    if data.dossier_id:
        get_dossier_or_404(db, data.dossier_id)
    try:
        return evenement_service.update_evenement(db, event, data, admin.id, request)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{evenement_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def delete_evenement(
    evenement_id: UUID,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    evenement_service.delete_evenement(db, _get_or_404(db, evenement_id), admin.id, request)
    return MessageResponse(message="Evenement deleted")
