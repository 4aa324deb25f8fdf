"""Firm settings (parametres) - typed key/value pairs grouped by category."""

import json
import logging
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import ParametreType
from portal.db.models import Parametre

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "autres"

# (cle, valeur, type, categorie, description)
DEFAULT_PARAMETRES: list[tuple[str, str, ParametreType, str, str]] = [
    ("cabinet_nom", "Cabinet d'Avocats", ParametreType.STRING, "general", "Nom du cabinet"),
    ("cabinet_email", "", ParametreType.STRING, "general", "Email principal"),
    ("cabinet_telephone", "", ParametreType.STRING, "general", "Telephone"),
    ("cabinet_fax", "", ParametreType.STRING, "general", "Fax"),
    ("cabinet_adresse", "", ParametreType.STRING, "general", "Adresse"),
    ("onedrive_enabled", "false", ParametreType.BOOLEAN, "onedrive", "Activer OneDrive"),
    ("onedrive_auto_sync", "true", ParametreType.BOOLEAN, "onedrive", "Sync automatique"),
    ("onedrive_sync_interval", "15", ParametreType.NUMBER, "onedrive", "Intervalle (min)"),
    ("onedrive_create_folder_on_dossier", "true", ParametreType.BOOLEAN, "onedrive", "Creer dossier auto"),
    ("google_calendar_enabled", "false", ParametreType.BOOLEAN, "google", "Activer Google Calendar"),
    ("google_auto_sync", "true", ParametreType.BOOLEAN, "google", "Sync automatique"),
    ("google_sync_interval", "10", ParametreType.NUMBER, "google", "Intervalle (min)"),
    ("google_default_reminder", "60", ParametreType.NUMBER, "google", "Rappel defaut (min)"),
    ("google_event_color", "9", ParametreType.STRING, "google", "Couleur evenements"),
    ("email_enabled", "true", ParametreType.BOOLEAN, "email", "Activer emails"),
    ("email_from_name", "Cabinet", ParametreType.STRING, "email", "Nom expediteur"),
    ("email_from_address", "", ParametreType.STRING, "email", "Email expediteur"),
    ("email_notif_document", "true", ParametreType.BOOLEAN, "email", "Notif nouveau document"),
    ("email_notif_evenement", "true", ParametreType.BOOLEAN, "email", "Notif evenement"),
    ("session_timeout", "60", ParametreType.NUMBER, "securite", "Timeout (min)"),
    ("max_login_attempts", "5", ParametreType.NUMBER, "securite", "Tentatives max"),
    ("password_min_length", "8", ParametreType.NUMBER, "securite", "Longueur mdp min"),
    ("client_default_peut_uploader", "true", ParametreType.BOOLEAN, "clients", "Upload par defaut"),
    ("client_default_peut_rdv", "true", ParametreType.BOOLEAN, "clients", "RDV par defaut"),
    (
        "dossier_types_affaire",
        '["divorce", "succession", "penal", "civil", "commercial", "immobilier", "travail", "autre"]',
        ParametreType.JSON,
        "dossiers",
        "Types affaire",
    ),
]


class InvalidParametreValue(ValueError):
    """Value does not fit the parameter's declared type."""


def typed_value(parametre: Parametre) -> Any:
    """
    Stored text read back per type.

    Unparseable numbers and JSON come back as the raw string.
    """
    raw = parametre.valeur
    if raw is None:
        return None
    kind = parametre.type
    if kind == ParametreType.BOOLEAN.value:
        return raw == "true"
    if kind == ParametreType.NUMBER.value:
        try:
            number = float(raw)
        except ValueError:
            return raw
        return int(number) if number.is_integer() else number
    if kind == ParametreType.JSON.value:
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw


def serialize_value(parametre: Parametre, value: Any) -> str | None:
    """Text form of ``value`` for the parameter's type."""
    if value is None:
        return None
    kind = parametre.type
    if kind == ParametreType.JSON.value:
        return json.dumps(value)
    if kind == ParametreType.BOOLEAN.value:
        return "true" if value else "false"
    if kind == ParametreType.NUMBER.value:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            try:
                value = float(str(value))
            except ValueError:
                raise InvalidParametreValue(f"{parametre.cle} expects a number")
        return str(value)
    return str(value)


def to_dict(parametre: Parametre) -> dict:
    return {
        "id": str(parametre.id),
        "cle": parametre.cle,
        "valeur": typed_value(parametre),
        "type": parametre.type,
        "description": parametre.description,
    }


def list_grouped(db: Session) -> dict[str, list[dict]]:
    """All parameters grouped by category; uncategorised ones go under ``autres``."""
    grouped: dict[str, list[dict]] = {}
    for parametre in db.query(Parametre).order_by(Parametre.categorie, Parametre.cle).all():
        grouped.setdefault(parametre.categorie or DEFAULT_CATEGORY, []).append(to_dict(parametre))
    return grouped


def list_by_categorie(db: Session, categorie: str) -> list[Parametre]:
    return db.query(Parametre).filter(Parametre.categorie == categorie).order_by(Parametre.cle).all()


def get_parametre(db: Session, cle: str) -> Parametre | None:
    return db.query(Parametre).filter(Parametre.cle == cle).first()


def update_parametres(db: Session, updates: list[tuple[str, Any]], admin_id: UUID) -> list[str]:
    """
    Apply (cle, valeur) pairs; unknown keys are skipped.

    Every value is checked before anything is written, so a bad value
    leaves all parameters unchanged.

    Returns:
        The keys that were updated
    """
    pending: list[tuple[Parametre, str | None]] = []
    for cle, valeur in updates:
        parametre = get_parametre(db, cle)
        if parametre is None:
            continue
        pending.append((parametre, serialize_value(parametre, valeur)))

    for parametre, stored in pending:
        parametre.valeur = stored
        parametre.updated_by_id = admin_id
    db.commit()
    updated = [parametre.cle for parametre, _ in pending]
    logger.info("Parametres updated by %s: %s", admin_id, ", ".join(updated) or "none")
    return updated


def seed_defaults(db: Session) -> int:
    """Create the default parameters that are missing. Existing values are kept."""
    existing = {cle for (cle,) in db.query(Parametre.cle).all()}
    created = 0
    for cle, valeur, kind, categorie, description in DEFAULT_PARAMETRES:
        if cle in existing:
            continue
        db.add(
            Parametre(cle=cle, valeur=valeur, type=kind.value, categorie=categorie, description=description)
        )
        created += 1
    db.commit()
    return created
