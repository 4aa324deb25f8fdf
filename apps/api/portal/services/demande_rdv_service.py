"""Appointment requests - submitted by clients, accepted or refused by the firm."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from portal.db.enums import ActorType, DemandeRdvStatut, EvenementStatut, EvenementType
from portal.db.models import Client, DemandeRdv, Dossier, Evenement
from portal.db.types import utcnow
from portal.schemas.portal import DemandeRdvAccept, DemandeRdvCreate, DemandeRdvRefuse
from portal.services import activity_service, notification_service

logger = logging.getLogger(__name__)

DEFAULT_LIEU = "Cabinet"
TITLE_MOTIF_LENGTH = 50


class DemandeNotPendingError(Exception):
    pass


def get_demande(db: Session, demande_id: UUID) -> DemandeRdv | None:
    return (
        db.query(DemandeRdv)
        .options(joinedload(DemandeRdv.client))
        .filter(DemandeRdv.id == demande_id)
        .first()
    )


def list_demandes(
    db: Session,
    page: int = 1,
    per_page: int = 20,
    statut: DemandeRdvStatut | None = None,
    dossier_id: UUID | None = None,
    responsable_id: UUID | None = None,
) -> tuple[list[DemandeRdv], int]:
    query = db.query(DemandeRdv)
    if statut:
        query = query.filter(DemandeRdv.statut == statut.value)
    if dossier_id:
        query = query.filter(DemandeRdv.dossier_id == dossier_id)
    if responsable_id:
        query = query.join(Client, DemandeRdv.client_id == Client.id).filter(
            Client.responsable_id == responsable_id
        )
    total = query.count()
    items = (
        query.order_by(DemandeRdv.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def list_client_demandes(db: Session, client_id: UUID) -> list[DemandeRdv]:
    return (
        db.query(DemandeRdv)
        .filter(DemandeRdv.client_id == client_id)
        .order_by(DemandeRdv.created_at.desc())
        .all()
    )


def create_demande(db: Session, client: Client, data: DemandeRdvCreate) -> DemandeRdv:
    """Store the request and tell the client's responsible admin."""
    if data.dossier_id:
        dossier = db.get(Dossier, data.dossier_id)
        if not dossier or dossier.client_id != client.id:
            raise ValueError("Dossier not found")

    demande = DemandeRdv(
        client_id=client.id,
        dossier_id=data.dossier_id,
        date_souhaitee=data.date_souhaitee,
        creneau=data.creneau.value,
        motif=data.motif,
        urgence=data.urgence.value,
    )
    db.add(demande)
    db.flush()
    if client.responsable_id:
        notification_service.notify(
            db,
            ActorType.ADMIN,
            client.responsable_id,
            "demande_rdv",
            "Nouvelle demande de rendez-vous",
            f"{client.full_name} souhaite un rendez-vous le {data.date_souhaitee.isoformat()}",
            "/admin/demandes-rdv",
        )
    db.commit()
    db.refresh(demande)
    return demande


def _ensure_pending(demande: DemandeRdv) -> None:
    if demande.statut != DemandeRdvStatut.EN_ATTENTE.value:
        raise DemandeNotPendingError("Request already processed")


def accept_demande(
    db: Session, demande: DemandeRdv, data: DemandeRdvAccept, admin_id: UUID
) -> tuple[DemandeRdv, Evenement]:
    """
    Accept a pending request: book the appointment as a confirmed event
    (kept off Google Calendar) and notify the client.
    """
    _ensure_pending(demande)

    event = Evenement(
        dossier_id=demande.dossier_id,
        titre=f"RDV: {demande.motif[:TITLE_MOTIF_LENGTH]}",
        description=demande.motif,
        type=EvenementType.RDV_CLIENT.value,
        date_debut=data.date_debut,
        date_fin=data.date_fin,
        lieu=data.lieu or DEFAULT_LIEU,
        statut=EvenementStatut.CONFIRME.value,
        sync_google=False,
        created_by_id=admin_id,
    )
    db.add(event)
    db.flush()
    activity_service.log_evenement_created(db, event, admin_id)

    demande.statut = DemandeRdvStatut.ACCEPTE.value
    demande.evenement_id = event.id
    demande.reponse_admin = data.reponse
    demande.traite_par_id = admin_id
    demande.traite_at = utcnow()

    notification_service.notify(
        db,
        ActorType.CLIENT,
        demande.client_id,
        "demande_rdv_acceptee",
        "Rendez-vous confirme",
        f"Votre rendez-vous est fixe au {data.date_debut.strftime('%d/%m/%Y %H:%M')}",
        "/espace-client/rendez-vous",
    )
    db.commit()
    db.refresh(demande)
    db.refresh(event)
    logger.info("Demande %s accepted by %s (event %s)", demande.id, admin_id, event.id)
    return demande, event


def refuse_demande(
    db: Session, demande: DemandeRdv, data: DemandeRdvRefuse, admin_id: UUID
) -> DemandeRdv:
    _ensure_pending(demande)
    demande.statut = DemandeRdvStatut.REFUSE.value
    demande.reponse_admin = data.motif
    demande.traite_par_id = admin_id
    demande.traite_at = utcnow()
    notification_service.notify(
        db,
        ActorType.CLIENT,
        demande.client_id,
        "demande_rdv_refusee",
        "Demande de rendez-vous refusee",
        data.motif,
        "/espace-client/rendez-vous",
    )
    db.commit()
    db.refresh(demande)
    return demande
