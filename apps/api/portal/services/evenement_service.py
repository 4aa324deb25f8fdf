"""Evenement service - calendar events and their hand-off to Google Calendar."""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from portal.db.enums import JobType, OAuthService, SyncMode
from portal.db.models import Dossier, Evenement, OAuthToken
from portal.db.types import utcnow
from portal.schemas.evenement import EvenementCreate, EvenementUpdate
from portal.services import activity_service, job_service

logger = logging.getLogger(__name__)


def prefixed_title(titre: str, dossier: Dossier | None) -> str:
    """Prefix the title with the dossier reference unless it already carries it."""
    if not dossier:
        return titre
    prefix = f"{dossier.reference} - "
    return titre if titre.startswith(prefix) else f"{prefix}{titre}"


def get_evenement(db: Session, evenement_id: UUID) -> Evenement | None:
    return db.query(Evenement).filter(Evenement.id == evenement_id).first()


def list_evenements(
    db: Session,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    dossier_id: UUID | None = None,
) -> list[Evenement]:
    query = db.query(Evenement)
    if date_from:
        query = query.filter(Evenement.date_fin >= date_from)
    if date_to:
        query = query.filter(Evenement.date_debut <= date_to)
    if dossier_id:
        query = query.filter(Evenement.dossier_id == dossier_id)
    return query.order_by(Evenement.date_debut.asc()).all()


def list_client_evenements(db: Session, client_id: UUID) -> list[Evenement]:
    """Upcoming events on the client's dossiers."""
    return (
        db.query(Evenement)
        .join(Dossier, Evenement.dossier_id == Dossier.id)
        .filter(Dossier.client_id == client_id, Evenement.date_fin >= utcnow())
        .order_by(Evenement.date_debut.asc())
        .all()
    )


def auto_sync_enabled(db: Session) -> bool:
    """Writes are pushed by the worker only in auto mode (the default)."""
    record = (
        db.query(OAuthToken)
        .filter(OAuthToken.service == OAuthService.GOOGLE_CALENDAR.value)
        .first()
    )
    return record is None or record.sync_mode == SyncMode.AUTO.value


def enqueue_event_sync(db: Session, event: Evenement) -> None:
    if not event.sync_google or not auto_sync_enabled(db):
        return
    job_service.enqueue_job(
        db,
        JobType.CALENDAR_EVENT_SYNC,
        {"evenement_id": str(event.id)},
        idempotency_key=f"calendar_event_sync:{event.id}",
    )


def enqueue_event_delete(db: Session, google_event_id: str | None) -> None:
    if not google_event_id:
        return
    job_service.enqueue_job(
        db,
        JobType.CALENDAR_EVENT_DELETE,
        {"google_event_id": google_event_id},
        idempotency_key=f"calendar_event_delete:{google_event_id}",
    )


def create_evenement(
    db: Session,
    data: EvenementCreate,
    admin_id: UUID | None,
    request: Request | None = None,
) -> Evenement:
    dossier = db.get(Dossier, data.dossier_id) if data.dossier_id else None
    values = data.model_dump(exclude={"titre", "type", "statut"})
    event = Evenement(
        **values,
        titre=prefixed_title(data.titre, dossier),
        type=data.type.value,
        statut=data.statut.value,
        created_by_id=admin_id,
    )
    db.add(event)
    db.flush()
    activity_service.log_evenement_created(db, event, admin_id, request)
    db.commit()
    db.refresh(event)

    enqueue_event_sync(db, event)
    return event


def update_evenement(
    db: Session,
    event: Evenement,
    data: EvenementUpdate,
    admin_id: UUID,
    request: Request | None = None,
) -> Evenement:
    """
    Partial update. ``updated_at`` is stamped here because it drives the
    last-writer-wins comparison with the Google copy.
    """
    update_data = data.model_dump(exclude_unset=True)
    nullable = {"dossier_id", "description", "lieu", "adresse", "salle"}
    for field, value in update_data.items():
        if value is None and field not in nullable:
            continue
        if hasattr(value, "value"):
            value = value.value
        setattr(event, field, value)

    if event.date_fin < event.date_debut:
        raise ValueError("date_fin must not be before date_debut")

    dossier = db.get(Dossier, event.dossier_id) if event.dossier_id else None
    event.titre = prefixed_title(event.titre, dossier)
    event.updated_at = utcnow()

    activity_service.log_evenement_updated(db, event, admin_id, request)
    db.commit()
    db.refresh(event)

    if event.sync_google:
        enqueue_event_sync(db, event)
    elif event.google_event_id:
        # Sync switched off: drop the remote copy
        google_event_id = event.google_event_id
        event.google_event_id = None
        db.commit()
        enqueue_event_delete(db, google_event_id)
    return event


def delete_evenement(
    db: Session, event: Evenement, admin_id: UUID, request: Request | None = None
) -> None:
    google_event_id = event.google_event_id
    activity_service.log_evenement_deleted(db, event, admin_id, request)
    db.delete(event)
    db.commit()
    enqueue_event_delete(db, google_event_id)
