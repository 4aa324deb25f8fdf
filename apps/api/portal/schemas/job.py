"""Pydantic schemas for background jobs."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class JobListItem(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    job_type: str
    status: str
    attempts: int
    run_at: datetime
    created_at: datetime


class JobRead(JobListItem):
    payload: dict
    max_attempts: int
    last_error: str | None
    completed_at: datetime | None
