"""Dossier service - case lifecycle, reference generation and activity."""

import logging
from datetime import date, datetime, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from portal.db.enums import DossierStatut, JobType
from portal.db.models import Admin, Client, Dossier, Evenement
from portal.schemas.dossier import DossierCreate, DossierUpdate
from portal.services import activity_service, job_service

logger = logging.getLogger(__name__)

REFERENCE_PREFIX_LENGTH = 3


# =============================================================================
# Reference
# =============================================================================


def _year_bounds(year: int) -> tuple[datetime, datetime]:
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


def generate_reference(db: Session, client_nom: str, year: int | None = None) -> str:
    """
    Build ``YEAR-SEQ-PREFIX``: SEQ is the 3-digit rank of the dossier among
    those created this year, PREFIX the first three letters of the client's
    surname upper-cased. A taken reference moves on to the next sequence.
    """
    year = year or date.today().year
    start, end = _year_bounds(year)
    count = (
        db.query(func.count(Dossier.id))
        .filter(Dossier.created_at >= start, Dossier.created_at < end)
        .scalar()
    ) or 0
    prefix = client_nom.strip()[:REFERENCE_PREFIX_LENGTH].upper()

    sequence = count + 1
    while True:
        reference = f"{year}-{sequence:03d}-{prefix}"
        taken = db.query(Dossier.id).filter(Dossier.reference == reference).first()
        if not taken:
            return reference
        sequence += 1


# =============================================================================
# Queries
# =============================================================================


def get_dossier(db: Session, dossier_id: UUID) -> Dossier | None:
    return (
        db.query(Dossier)
        .options(joinedload(Dossier.client), joinedload(Dossier.assigned_admin))
        .filter(Dossier.id == dossier_id)
        .first()
    )


def list_dossiers(
    db: Session,
    page: int = 1,
    per_page: int = 20,
    search: str | None = None,
    statut: str | None = None,
    client_id: UUID | None = None,
    assigned_admin_id: UUID | None = None,
) -> tuple[list[Dossier], int]:
    query = db.query(Dossier)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Dossier.reference.ilike(pattern), Dossier.intitule.ilike(pattern)))
    if statut:
        query = query.filter(Dossier.statut == statut)
    if client_id:
        query = query.filter(Dossier.client_id == client_id)
    if assigned_admin_id:
        query = query.filter(Dossier.assigned_admin_id == assigned_admin_id)

    total = query.count()
    dossiers = (
        query.options(joinedload(Dossier.client))
        .order_by(Dossier.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return dossiers, total


def list_dossier_evenements(db: Session, dossier_id: UUID) -> list[Evenement]:
    return (
        db.query(Evenement)
        .filter(Evenement.dossier_id == dossier_id)
        .order_by(Evenement.date_debut.asc())
        .all()
    )


# =============================================================================
# Mutations
# =============================================================================


def create_dossier(
    db: Session,
    client: Client,
    data: DossierCreate,
    admin_id: UUID,
    request: Request | None = None,
) -> Dossier:
    """Create the dossier, log it and hand folder creation to the worker."""
    values = data.model_dump(exclude={"client_id", "statut", "type_affaire", "date_ouverture"})
    dossier = Dossier(
        **values,
        client_id=client.id,
        reference=generate_reference(db, client.nom),
        statut=data.statut.value,
        type_affaire=data.type_affaire.value if data.type_affaire else None,
        date_ouverture=data.date_ouverture or date.today(),
        created_by_id=admin_id,
    )
    db.add(dossier)
    db.flush()
    activity_service.log_dossier_created(
        db,
        dossier.id,
        admin_id,
        {"reference": dossier.reference, "intitule": dossier.intitule, "client": client.full_name},
        request,
    )
    db.commit()
    db.refresh(dossier)

    job_service.enqueue_job(
        db,
        JobType.ONEDRIVE_FOLDER_CREATE,
        {"dossier_id": str(dossier.id)},
        idempotency_key=f"onedrive_folder_create:{dossier.id}",
    )
    return dossier


def _responsable_ref(db: Session, admin_id: UUID | None) -> dict | None:
    if not admin_id:
        return None
    admin = db.get(Admin, admin_id)
    return {"id": str(admin_id), "nom": admin.full_name if admin else None}


def _log_statut_change(db, dossier, admin_id, old, new, request) -> None:
    activity_service.log_dossier_statut_changed(db, dossier.id, admin_id, old, new, request)
    if new == DossierStatut.ARCHIVE.value:
        activity_service.log_dossier_archived(
            db, dossier.id, admin_id, dossier.reference, dossier.intitule, request
        )
    elif DossierStatut(old).is_closed and not DossierStatut(new).is_closed:
        activity_service.log_dossier_reopened(
            db, dossier.id, admin_id, dossier.reference, dossier.intitule, request
        )


def update_dossier(
    db: Session,
    dossier: Dossier,
    data: DossierUpdate,
    admin_id: UUID,
    request: Request | None = None,
) -> Dossier:
    """
    Apply a partial update and log what changed.

    Status, responsible admin and plain field changes are logged as
    separate timeline entries. A new title renames the OneDrive folder.
    """
    update_data = data.model_dump(exclude_unset=True)
    old_statut = dossier.statut
    old_assigned = dossier.assigned_admin_id
    old_intitule = dossier.intitule

    changed: list[str] = []
    for field, value in update_data.items():
        if field in {"intitule", "statut"} and value is None:
            continue
        if hasattr(value, "value"):
            value = value.value
        if getattr(dossier, field) != value:
            setattr(dossier, field, value)
            changed.append(field)

    if "statut" in changed:
        _log_statut_change(db, dossier, admin_id, old_statut, dossier.statut, request)
    if "assigned_admin_id" in changed:
        activity_service.log_dossier_responsable_changed(
            db,
            dossier.id,
            admin_id,
            _responsable_ref(db, old_assigned),
            _responsable_ref(db, dossier.assigned_admin_id),
            request,
        )
    other_changes = [f for f in changed if f not in {"statut", "assigned_admin_id"}]
    if other_changes:
        activity_service.log_dossier_updated(db, dossier.id, admin_id, other_changes, request)

    db.commit()
    db.refresh(dossier)

    if dossier.intitule != old_intitule and dossier.onedrive_folder_id:
        job_service.enqueue_job(
            db,
            JobType.ONEDRIVE_FOLDER_RENAME,
            {"dossier_id": str(dossier.id)},
            idempotency_key=f"onedrive_folder_rename:{dossier.id}",
        )
    return dossier


def delete_dossier(db: Session, dossier: Dossier) -> None:
    """
    Delete the dossier and everything it owns.

    Google copies of its synced events are removed by the worker; the
    OneDrive folder is kept as the firm's archive.
    """
    dossier_id = dossier.id
    google_ids = [e.google_event_id for e in dossier.evenements if e.google_event_id]
    db.delete(dossier)
    db.commit()
    for google_event_id in google_ids:
        job_service.enqueue_job(
            db,
            JobType.CALENDAR_EVENT_DELETE,
            {"google_event_id": google_event_id},
            idempotency_key=f"calendar_event_delete:{google_event_id}",
        )
    logger.info("Deleted dossier %s (%s remote events queued for removal)", dossier_id, len(google_ids))
