"""Dashboard service - counters and short lists for the admin and client home pages."""

from datetime import datetime

from sqlalchemy.orm import Session, joinedload

from portal.db.enums import ActorType, DemandeRdvStatut, DossierStatut
from portal.db.models import Client, DemandeRdv, Dossier, Evenement, Notification
from portal.db.types import utcnow

UPCOMING_LIMIT = 5

OPEN_STATUTS = [s.value for s in DossierStatut if not s.is_closed]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def get_admin_dashboard(db: Session, now: datetime | None = None) -> dict:
    """Firm-wide counters, the next events and the latest dossiers."""
    now = now or utcnow()

    total_clients = db.query(Client).count()
    dossiers_en_cours = db.query(Dossier).filter(Dossier.statut.in_(OPEN_STATUTS)).count()
    dossiers_clotures = db.query(Dossier).filter(Dossier.statut.like("cloture%")).count()
    demandes_en_attente = (
        db.query(DemandeRdv).filter(DemandeRdv.statut == DemandeRdvStatut.EN_ATTENTE.value).count()
    )

    upcoming = (
        db.query(Evenement)
        .options(joinedload(Evenement.dossier).joinedload(Dossier.client))
        .filter(Evenement.date_debut >= now)
        .order_by(Evenement.date_debut.asc())
        .limit(UPCOMING_LIMIT)
        .all()
    )
    latest = (
        db.query(Dossier)
        .options(joinedload(Dossier.client))
        .order_by(Dossier.created_at.desc())
        .limit(UPCOMING_LIMIT)
        .all()
    )

    return {
        "stats": {
            "total_clients": total_clients,
            "dossiers_en_cours": dossiers_en_cours,
            "dossiers_clotures": dossiers_clotures,
            "demandes_en_attente": demandes_en_attente,
        },
        "evenements_a_venir": [
            {
                "id": str(event.id),
                "titre": event.titre,
                "type": event.type,
                "date_debut": _iso(event.date_debut),
                "date_fin": _iso(event.date_fin),
                "lieu": event.lieu,
                "dossier": {
                    "reference": event.dossier.reference,
                    "client": {"nom": event.dossier.client.nom, "prenom": event.dossier.client.prenom},
                }
                if event.dossier
                else None,
            }
            for event in upcoming
        ],
        "derniers_dossiers": [
            {
                "id": str(dossier.id),
                "reference": dossier.reference,
                "intitule": dossier.intitule,
                "statut": dossier.statut,
                "created_at": _iso(dossier.created_at),
                "client": {
                    "id": str(dossier.client.id),
                    "nom": dossier.client.nom,
                    "prenom": dossier.client.prenom,
                },
            }
            for dossier in latest
        ],
    }


def get_client_dashboard(db: Session, client: Client, now: datetime | None = None) -> dict:
    """
    Home page of the client portal.

    Closed dossiers include archived ones. Only events on the client's own
    dossiers are listed, and only the latest unread notifications.
    """
    now = now or utcnow()

    dossiers = db.query(Dossier).filter(Dossier.client_id == client.id).all()
    closed = sum(1 for d in dossiers if DossierStatut(d.statut).is_closed)

    upcoming: list[Evenement] = []
    if dossiers:
        upcoming = (
            db.query(Evenement)
            .options(joinedload(Evenement.dossier))
            .filter(
                Evenement.dossier_id.in_([d.id for d in dossiers]),
                Evenement.date_debut >= now,
            )
            .order_by(Evenement.date_debut.asc())
            .limit(UPCOMING_LIMIT)
            .all()
        )

    unread = db.query(Notification).filter(
        Notification.destinataire_type == ActorType.CLIENT.value,
        Notification.destinataire_id == client.id,
        Notification.lu.is_(False),
    )
    latest_unread = unread.order_by(Notification.created_at.desc()).limit(UPCOMING_LIMIT).all()

    return {
        "client": {"id": str(client.id), "nom": client.nom, "prenom": client.prenom},
        "stats": {
            "total_dossiers": len(dossiers),
            "dossiers_en_cours": len(dossiers) - closed,
            "dossiers_clotures": closed,
            "notifications_non_lues": unread.count(),
        },
        "evenements_a_venir": [
            {
                "id": str(event.id),
                "titre": event.titre,
                "type": event.type,
                "date_debut": _iso(event.date_debut),
                "lieu": event.lieu,
                "dossier": {"reference": event.dossier.reference, "intitule": event.dossier.intitule},
            }
            for event in upcoming
        ],
        "dernieres_notifications": latest_unread,
    }
