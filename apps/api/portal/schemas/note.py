"""Pydantic schemas for dossier notes."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class NoteCreate(BaseModel):
    contenu: str = Field(..., min_length=1, max_length=10000)
    is_pinned: bool = False


class NoteUpdate(BaseModel):
    contenu: str | None = Field(None, min_length=1, max_length=10000)
    is_pinned: bool | None = None


class NoteRead(BaseModel):
    id: UUID
    dossier_id: UUID
    created_by_id: UUID | None
    author_name: str | None = None
    contenu: str
    is_pinned: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
