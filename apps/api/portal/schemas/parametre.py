"""Pydantic schemas for firm settings."""

from typing import Any

from pydantic import BaseModel, Field


class ParametreValue(BaseModel):
    cle: str = Field(..., min_length=1, max_length=100)
    valeur: Any = None


class ParametresUpdate(BaseModel):
    parametres: list[ParametreValue] = []


class ParametresUpdated(BaseModel):
    message: str
    updated: list[str]
