"""SQLAlchemy ORM models for the activity trail and integration sync runs."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base
from portal.db.types import utcnow


class ActivityLog(Base):
    """
    Append-only activity trail.

    ``dossier_id`` is denormalised at write time so a dossier timeline is a
    single indexed query instead of a join over every resource type.
    The metadata payload is stored in the ``metadata`` column and exposed
    as ``details`` (``metadata`` is reserved on declarative classes).
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("idx_activity_dossier", "dossier_id", "created_at"),
        Index("idx_activity_resource", "resource_type", "resource_id"),
        Index("idx_activity_user", "user_type", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    dossier_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    details: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class SyncLog(Base):
    """One run of a OneDrive or Google Calendar reconciliation."""
    __tablename__ = "sync_logs"
    __table_args__ = (
        Index("idx_sync_logs", "type", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    statut: Mapped[str] = mapped_column(String(20), nullable=False)
    elements_traites: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    elements_crees: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    elements_modifies: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    elements_supprimes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    elements_erreur: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    duree_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    triggered_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
