"""Pydantic schemas for the Google / Microsoft integration endpoints."""

from pydantic import BaseModel, Field

from portal.db.enums import SyncMode


class CalendarSelection(BaseModel):
    calendar_id: str = Field(..., min_length=1)
    calendar_name: str | None = None


class SyncModeUpdate(BaseModel):
    mode: SyncMode


class SyncResponse(BaseModel):
    success: bool
    message: str | None = None
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: int = 0
    details: list[str] = []
