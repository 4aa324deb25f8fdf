"""Pydantic schemas for calendar events."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from portal.db.enums import EvenementStatut, EvenementType


class EvenementCreate(BaseModel):
    dossier_id: UUID | None = None
    titre: str = Field(..., min_length=3, max_length=255)
    description: str | None = None
    type: EvenementType
    date_debut: datetime
    date_fin: datetime
    journee_entiere: bool = False
    lieu: str | None = Field(None, max_length=255)
    adresse: str | None = None
    salle: str | None = Field(None, max_length=100)
    statut: EvenementStatut = EvenementStatut.CONFIRME
    sync_google: bool = True

    @model_validator(mode="after")
    def check_range(self):
        if self.date_fin < self.date_debut:
            raise ValueError("date_fin must not be before date_debut")
        return self


class EvenementUpdate(BaseModel):
    dossier_id: UUID | None = None
    titre: str | None = Field(None, min_length=3, max_length=255)
    description: str | None = None
    type: EvenementType | None = None
    date_debut: datetime | None = None
    date_fin: datetime | None = None
    journee_entiere: bool | None = None
    lieu: str | None = Field(None, max_length=255)
    adresse: str | None = None
    salle: str | None = Field(None, max_length=100)
    statut: EvenementStatut | None = None
    sync_google: bool | None = None


class EvenementRead(BaseModel):
    id: UUID
    dossier_id: UUID | None
    titre: str
    description: str | None
    type: str
    date_debut: datetime
    date_fin: datetime
    journee_entiere: bool
    lieu: str | None
    adresse: str | None
    salle: str | None
    statut: str
    sync_google: bool
    google_event_id: str | None
    google_last_sync: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
