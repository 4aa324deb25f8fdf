"""Pydantic schemas for favorites, appointment requests and notifications."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from portal.db.enums import Creneau, DemandeRdvStatut, FavoriteType, Urgence


# =============================================================================
# Favorites
# =============================================================================

class FavoriteTarget(BaseModel):
    type: FavoriteType
    id: UUID


class FavoriteRead(BaseModel):
    id: UUID
    type: str
    favori_id: UUID
    ordre: int
    label: str
    sublabel: str | None = None
    client_name: str | None = None


# =============================================================================
# Appointment requests
# =============================================================================

class DemandeRdvCreate(BaseModel):
    dossier_id: UUID | None = None
    date_souhaitee: date
    creneau: Creneau
    motif: str = Field(..., min_length=10, max_length=2000)
    urgence: Urgence = Urgence.NORMAL


class DemandeRdvAccept(BaseModel):
    date_debut: datetime
    date_fin: datetime
    lieu: str | None = Field(None, max_length=255)
    reponse: str | None = None

    @model_validator(mode="after")
    def check_range(self):
        if self.date_fin < self.date_debut:
            raise ValueError("date_fin must not be before date_debut")
        return self


class DemandeRdvRefuse(BaseModel):
    motif: str | None = None


class DemandeRdvRead(BaseModel):
    id: UUID
    client_id: UUID
    dossier_id: UUID | None
    date_souhaitee: date
    creneau: str
    motif: str
    urgence: str
    statut: DemandeRdvStatut
    reponse_admin: str | None
    evenement_id: UUID | None
    traite_par_id: UUID | None
    traite_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Notifications
# =============================================================================

class NotificationRead(BaseModel):
    id: UUID
    type: str
    titre: str
    message: str | None
    lien: str | None
    lu: bool
    created_at: datetime

    model_config = {"from_attributes": True}
