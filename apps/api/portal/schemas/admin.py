"""Pydantic schemas for staff accounts (super admin management)."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class AdminCreate(BaseModel):
    """Only the plain admin role can be created through the API."""
    email: EmailStr
    nom: str = Field(..., min_length=2, max_length=100)
    prenom: str = Field(..., min_length=2, max_length=100)
    username: str = Field(..., min_length=2, max_length=50)
    role: Literal["admin"] = "admin"


class AdminUpdate(BaseModel):
    email: EmailStr | None = None
    nom: str | None = Field(None, min_length=2, max_length=100)
    prenom: str | None = Field(None, min_length=2, max_length=100)
    username: str | None = Field(None, min_length=2, max_length=50)
    actif: bool | None = None


class AdminRead(BaseModel):
    id: UUID
    email: str
    nom: str
    prenom: str
    username: str | None
    role: str
    actif: bool
    totp_enabled: bool
    last_login: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ResponsableRead(BaseModel):
    id: UUID
    nom: str
    prenom: str
    username: str | None

    model_config = {"from_attributes": True}
