"""SQLAlchemy ORM models for favorites, appointment requests and notifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.enums import DemandeRdvStatut, Urgence
from portal.db.types import utcnow

if TYPE_CHECKING:
    from portal.db.models import Client, Dossier


class AdminFavorite(Base):
    """Pinned dossier or client for one admin. ``favori_id`` is polymorphic."""
    __tablename__ = "admin_favoris"
    __table_args__ = (
        UniqueConstraint("admin_id", "favori_type", "favori_id", name="uq_admin_favori"),
        Index("idx_admin_favoris_admin", "admin_id", "ordre"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="CASCADE"), nullable=False
    )
    favori_type: Mapped[str] = mapped_column(String(20), nullable=False)
    favori_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    ordre: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class DemandeRdv(Base):
    """Appointment request submitted by a client."""
    __tablename__ = "demandes_rdv"
    __table_args__ = (
        Index("idx_demandes_client", "client_id"),
        Index("idx_demandes_statut", "statut"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    dossier_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("dossiers.id", ondelete="SET NULL"), nullable=True
    )
    date_souhaitee: Mapped[date] = mapped_column(Date, nullable=False)
    creneau: Mapped[str] = mapped_column(String(20), nullable=False)
    motif: Mapped[str] = mapped_column(Text, nullable=False)
    urgence: Mapped[str] = mapped_column(String(20), default=Urgence.NORMAL.value, nullable=False)
    statut: Mapped[str] = mapped_column(
        String(20), default=DemandeRdvStatut.EN_ATTENTE.value, nullable=False
    )
    reponse_admin: Mapped[str | None] = mapped_column(Text, nullable=True)
    evenement_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("evenements.id", ondelete="SET NULL"), nullable=True
    )
    traite_par_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    traite_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    client: Mapped["Client"] = relationship()
    dossier: Mapped["Dossier | None"] = relationship()


class Notification(Base):
    """In-app notification for an admin or a client."""
    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notif_destinataire", "destinataire_type", "destinataire_id", "lu"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    destinataire_type: Mapped[str] = mapped_column(String(10), nullable=False)
    destinataire_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    titre: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    lien: Mapped[str | None] = mapped_column(String(500), nullable=True)
    lu: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
