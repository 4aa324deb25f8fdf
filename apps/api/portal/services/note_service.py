"""Note service - internal notes on dossiers."""

from uuid import UUID

import nh3
from fastapi import Request
from sqlalchemy.orm import Session, joinedload

from portal.db.models import Note
from portal.schemas.note import NoteCreate, NoteRead, NoteUpdate
from portal.services import activity_service

# Allowed HTML tags for the rich text editor
ALLOWED_TAGS = {"p", "br", "strong", "em", "u", "ul", "ol", "li", "a", "blockquote", "h2", "h3", "code", "pre"}
ALLOWED_ATTRIBUTES = {"a": {"href", "target"}}


def sanitize_html(html: str) -> str:
    """Sanitize HTML to prevent XSS, allowing only safe rich text tags."""
    return nh3.clean(html, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES)


def get_note(db: Session, note_id: UUID) -> Note | None:
    return db.query(Note).filter(Note.id == note_id).first()


def list_notes(db: Session, dossier_id: UUID) -> list[Note]:
    """Pinned notes first, then newest first."""
    return (
        db.query(Note)
        .options(joinedload(Note.created_by))
        .filter(Note.dossier_id == dossier_id)
        .order_by(Note.is_pinned.desc(), Note.created_at.desc())
        .all()
    )


def to_read(note: Note) -> NoteRead:
    read = NoteRead.model_validate(note)
    read.author_name = note.created_by.full_name if note.created_by else None
    return read


def create_note(
    db: Session, dossier_id: UUID, data: NoteCreate, admin_id: UUID, request: Request | None = None
) -> Note:
    note = Note(
        dossier_id=dossier_id,
        created_by_id=admin_id,
        contenu=sanitize_html(data.contenu),
        is_pinned=data.is_pinned,
    )
    db.add(note)
    db.flush()
    activity_service.log_note_created(db, note, admin_id, request)
    db.commit()
    db.refresh(note)
    return note


def update_note(
    db: Session, note: Note, data: NoteUpdate, admin_id: UUID, request: Request | None = None
) -> Note:
    if data.contenu is not None:
        note.contenu = sanitize_html(data.contenu)
    if data.is_pinned is not None:
        note.is_pinned = data.is_pinned
    activity_service.log_note_updated(db, note, admin_id, request)
    db.commit()
    db.refresh(note)
    return note


def toggle_pin(db: Session, note: Note, admin_id: UUID, request: Request | None = None) -> Note:
    note.is_pinned = not note.is_pinned
    activity_service.log_note_pin_toggled(db, note, admin_id, request)
    db.commit()
    db.refresh(note)
    return note


def delete_note(db: Session, note: Note, admin_id: UUID, request: Request | None = None) -> None:
    activity_service.log_note_deleted(db, note, admin_id, request)
    db.delete(note)
    db.commit()
