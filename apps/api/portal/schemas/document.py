"""Pydantic schemas for documents."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from portal.db.enums import DocumentLocation


class DocumentCreate(BaseModel):
    """Metadata-only document (no file content)."""
    nom: str = Field(..., min_length=2, max_length=255)
    nom_original: str | None = Field(None, max_length=255)
    type_document: str = Field("autre", max_length=50)
    taille_octets: int | None = None
    mime_type: str | None = Field(None, max_length=100)
    extension: str | None = Field(None, max_length=20)
    sensible: bool = False
    visible_client: bool = True
    date_document: date | None = None
    description: str | None = None


class DocumentUpdate(BaseModel):
    nom: str | None = Field(None, min_length=2, max_length=255)
    type_document: str | None = Field(None, max_length=50)
    sensible: bool | None = None
    visible_client: bool | None = None
    description: str | None = None


class DocumentMove(BaseModel):
    location: DocumentLocation


class DocumentRead(BaseModel):
    id: UUID
    dossier_id: UUID
    nom: str
    nom_original: str | None
    type_document: str
    taille_octets: int | None
    mime_type: str | None
    extension: str | None
    sensible: bool
    visible_client: bool
    uploaded_by_client: bool
    uploaded_by_id: UUID | None
    uploaded_by_type: str
    description: str | None
    date_document: date | None
    dossier_location: str
    onedrive_file_id: str | None
    onedrive_web_url: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class UrlResponse(BaseModel):
    url: str
