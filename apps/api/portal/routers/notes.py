"""Notes router. Mixed paths: /dossiers/{id}/notes and /notes/{id}."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.models import Admin
from portal.routers.dossiers import get_dossier_or_404
from portal.schemas.common import MessageResponse
from portal.schemas.note import NoteCreate, NoteRead, NoteUpdate
from portal.services import note_service

router = APIRouter()


def _get_or_404(db: Session, note_id: UUID):
    note = note_service.get_note(db, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.get("/dossiers/{dossier_id}/notes", response_model=list[NoteRead])
def list_notes(
    dossier_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    get_dossier_or_404(db, dossier_id)
    return [note_service.to_read(n) for n in note_service.list_notes(db, dossier_id)]


@router.post(
    "/dossiers/{dossier_id}/notes",
    response_model=NoteRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_note(
    dossier_id: UUID,
    data: NoteCreate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    get_dossier_or_404(db, dossier_id)
    note = note_service.create_note(db, dossier_id, data, admin.id, request)
    return note_service.to_read(note)


@router.put("/notes/{note_id}", response_model=NoteRead, dependencies=[Depends(require_csrf_header)])
def update_note(
    note_id: UUID,
    data: NoteUpdate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    note = note_service.update_note(db, _get_or_404(db, note_id), data, admin.id, request)
    return note_service.to_read(note)


@router.post("/notes/{note_id}/pin", response_model=NoteRead, dependencies=[Depends(require_csrf_header)])
def toggle_pin(
    note_id: UUID,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    note = note_service.toggle_pin(db, _get_or_404(db, note_id), admin.id, request)
    return note_service.to_read(note)


@router.delete("/notes/{note_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def delete_note(
    note_id: UUID,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    note_service.delete_note(db, _get_or_404(db, note_id), admin.id, request)
    return MessageResponse(message="Note deleted")
