"""SQLAlchemy ORM model for firm-wide settings."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base
from portal.db.enums import ParametreType
from portal.db.types import utcnow


class Parametre(Base):
    """
    One firm setting, keyed by ``cle``.

    Values are stored as text and read back through ``typed_value`` according
    to ``type`` (string, number, boolean, json).
    """
    __tablename__ = "parametres"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cle: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    valeur: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default=ParametreType.STRING.value, nullable=False)
    categorie: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
    updated_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
