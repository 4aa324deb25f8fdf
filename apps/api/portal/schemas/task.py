"""Pydantic schemas for dossier tasks."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from portal.db.enums import TaskPriorite, TaskStatut


class TaskCreate(BaseModel):
    titre: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    priorite: TaskPriorite = TaskPriorite.NORMALE
    assigned_to_id: UUID | None = None
    date_echeance: date | None = None
    rappel_date: datetime | None = None


class TaskUpdate(BaseModel):
    """Partial update. Moving to or away from ``terminee`` stamps or clears completed_at."""
    titre: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    priorite: TaskPriorite | None = None
    statut: TaskStatut | None = None
    assigned_to_id: UUID | None = None
    date_echeance: date | None = None
    rappel_date: datetime | None = None


class TaskRead(BaseModel):
    id: UUID
    dossier_id: UUID
    created_by_id: UUID | None
    assigned_to_id: UUID | None
    titre: str
    description: str | None
    priorite: str
    statut: str
    date_echeance: date | None
    rappel_date: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
