"""Pydantic schemas for clients."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from portal.db.enums import ClientType


class ClientBase(BaseModel):
    civilite: str | None = Field(None, max_length=10)
    telephone: str | None = Field(None, max_length=20)
    adresse_ligne1: str | None = Field(None, max_length=255)
    adresse_ligne2: str | None = Field(None, max_length=255)
    code_postal: str | None = Field(None, max_length=10)
    ville: str | None = Field(None, max_length=100)
    pays: str | None = Field(None, max_length=50)
    societe_nom: str | None = Field(None, max_length=255)
    peut_uploader: bool | None = None
    peut_demander_rdv: bool | None = None
    acces_documents_sensibles: bool | None = None
    notif_email_document: bool | None = None
    notif_email_evenement: bool | None = None
    notes_internes: str | None = None
    responsable_id: UUID | None = None


class ClientCreate(ClientBase):
    """A password is generated when none is given."""
    email: EmailStr
    nom: str = Field(..., min_length=1, max_length=100)
    prenom: str = Field(..., min_length=1, max_length=100)
    type: ClientType = ClientType.PARTICULIER
    password: str | None = Field(None, min_length=8)


class ClientUpdate(ClientBase):
    email: EmailStr | None = None
    nom: str | None = Field(None, min_length=1, max_length=100)
    prenom: str | None = Field(None, min_length=1, max_length=100)
    type: ClientType | None = None
    actif: bool | None = None


class ClientRead(BaseModel):
    id: UUID
    email: str
    civilite: str | None
    nom: str
    prenom: str
    telephone: str | None
    adresse_ligne1: str | None
    adresse_ligne2: str | None
    code_postal: str | None
    ville: str | None
    pays: str | None
    type: str
    societe_nom: str | None
    totp_enabled: bool
    peut_uploader: bool
    peut_demander_rdv: bool
    acces_documents_sensibles: bool
    notif_email_document: bool
    notif_email_evenement: bool
    actif: bool
    notes_internes: str | None
    responsable_id: UUID | None
    last_login: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPreferences(BaseModel):
    """Client email preferences; omitted fields are left unchanged."""
    notif_email_document: bool | None = None
    notif_email_evenement: bool | None = None


class ClientSettingsRead(BaseModel):
    email: str
    nom: str
    prenom: str
    telephone: str | None
    totp_enabled: bool
    notif_email_document: bool
    notif_email_evenement: bool

    model_config = {"from_attributes": True}
