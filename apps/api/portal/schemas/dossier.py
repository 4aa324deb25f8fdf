"""Pydantic schemas for dossiers."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from portal.db.enums import DossierStatut, TypeAffaire


class DossierFields(BaseModel):
    description: str | None = None
    type_affaire: TypeAffaire | None = None
    date_prescription: date | None = None
    honoraires_estimes: Decimal | None = None
    honoraires_factures: Decimal | None = None
    honoraires_payes: Decimal | None = None
    juridiction: str | None = Field(None, max_length=100)
    numero_rg: str | None = Field(None, max_length=50)
    adversaire_nom: str | None = Field(None, max_length=255)
    adversaire_avocat: str | None = Field(None, max_length=255)
    notes_internes: str | None = None
    assigned_admin_id: UUID | None = None


class DossierCreate(DossierFields):
    """The reference is generated; it is never accepted from the caller."""
    client_id: UUID
    intitule: str = Field(..., min_length=2, max_length=255)
    statut: DossierStatut = DossierStatut.NOUVEAU
    date_ouverture: date | None = None


class DossierUpdate(DossierFields):
    intitule: str | None = Field(None, min_length=2, max_length=255)
    statut: DossierStatut | None = None
    date_cloture: date | None = None


class ClientSummary(BaseModel):
    id: UUID
    nom: str
    prenom: str
    email: str

    model_config = {"from_attributes": True}


class DossierRead(BaseModel):
    id: UUID
    reference: str
    intitule: str
    description: str | None
    type_affaire: str | None
    statut: str
    date_ouverture: date | None
    date_cloture: date | None
    date_prescription: date | None
    honoraires_estimes: Decimal | None
    honoraires_factures: Decimal | None
    honoraires_payes: Decimal | None
    juridiction: str | None
    numero_rg: str | None
    adversaire_nom: str | None
    adversaire_avocat: str | None
    notes_internes: str | None
    client_id: UUID
    client: ClientSummary | None = None
    assigned_admin_id: UUID | None
    onedrive_folder_id: str | None
    onedrive_folder_path: str | None
    onedrive_last_sync: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ClientDossierRead(BaseModel):
    """What a client sees of their own dossier (no internal notes or fees)."""
    id: UUID
    reference: str
    intitule: str
    description: str | None
    type_affaire: str | None
    statut: str
    date_ouverture: date | None
    date_cloture: date | None
    juridiction: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
