"""SQLAlchemy ORM models for dossiers and the records attached to them."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.enums import (
    DocumentLocation,
    DossierStatut,
    EvenementStatut,
    TaskPriorite,
    TaskStatut,
)
from portal.db.types import utcnow

if TYPE_CHECKING:
    from portal.db.models import Admin, Client


class Dossier(Base):
    """
    A legal case owned by one client.

    ``reference`` is generated once at creation (YEAR-SEQ-PREFIX) and never
    changes. The OneDrive columns cache the ids of the dossier folder and
    its CABINET / CLIENT subfolders.
    """
    __tablename__ = "dossiers"
    __table_args__ = (
        Index("idx_dossiers_client", "client_id"),
        Index("idx_dossiers_statut", "statut"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    reference: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    intitule: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type_affaire: Mapped[str | None] = mapped_column(String(50), nullable=True)
    statut: Mapped[str] = mapped_column(
        String(30), default=DossierStatut.NOUVEAU.value, nullable=False
    )

    date_ouverture: Mapped[date | None] = mapped_column(Date, default=date.today, nullable=True)
    date_cloture: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_prescription: Mapped[date | None] = mapped_column(Date, nullable=True)

    honoraires_estimes: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    honoraires_factures: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), default=Decimal("0"), nullable=True
    )
    honoraires_payes: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), default=Decimal("0"), nullable=True
    )

    juridiction: Mapped[str | None] = mapped_column(String(100), nullable=True)
    numero_rg: Mapped[str | None] = mapped_column(String(50), nullable=True)
    adversaire_nom: Mapped[str | None] = mapped_column(String(255), nullable=True)
    adversaire_avocat: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes_internes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    assigned_admin_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )

    # OneDrive
    onedrive_folder_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    onedrive_folder_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    onedrive_cabinet_folder_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    onedrive_client_folder_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    onedrive_last_sync: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    client: Mapped["Client"] = relationship(back_populates="dossiers")
    assigned_admin: Mapped["Admin | None"] = relationship(foreign_keys=[assigned_admin_id])
    documents: Mapped[list["Document"]] = relationship(
        back_populates="dossier", cascade="all, delete-orphan"
    )
    evenements: Mapped[list["Evenement"]] = relationship(
        back_populates="dossier", cascade="all, delete-orphan"
    )
    notes: Mapped[list["Note"]] = relationship(
        back_populates="dossier", cascade="all, delete-orphan"
    )
    tasks: Mapped[list["Task"]] = relationship(
        back_populates="dossier", cascade="all, delete-orphan"
    )


class Document(Base):
    """
    Document metadata. The bytes live in OneDrive, under the dossier's
    CABINET (internal) or CLIENT (client-visible) subfolder.
    """
    __tablename__ = "documents"
    __table_args__ = (
        Index("idx_documents_dossier", "dossier_id"),
        Index("idx_documents_onedrive", "onedrive_file_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    dossier_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=False
    )
    nom: Mapped[str] = mapped_column(String(255), nullable=False)
    nom_original: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type_document: Mapped[str] = mapped_column(String(50), nullable=False)
    taille_octets: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    extension: Mapped[str | None] = mapped_column(String(20), nullable=True)

    sensible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    visible_client: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    uploaded_by_client: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    uploaded_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    uploaded_by_type: Mapped[str] = mapped_column(String(10), default="admin", nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_document: Mapped[date | None] = mapped_column(Date, nullable=True)
    dossier_location: Mapped[str] = mapped_column(
        String(10), default=DocumentLocation.CABINET.value, nullable=False
    )

    # OneDrive
    onedrive_file_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    onedrive_web_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    onedrive_download_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    onedrive_last_modified: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    dossier: Mapped["Dossier"] = relationship(back_populates="documents")


class Evenement(Base):
    """
    Calendar event, optionally attached to a dossier and mirrored to Google.

    ``google_remote_updated`` is the remote ``updated`` stamp seen at the
    last reconciliation; the calendar pull compares against it.
    """
    __tablename__ = "evenements"
    __table_args__ = (
        Index("idx_evenements_dossier", "dossier_id"),
        Index("idx_evenements_date", "date_debut"),
        Index("idx_evenements_google", "google_event_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    dossier_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=True
    )
    titre: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # audience | rdv_client | rdv_adversaire | expertise | mediation | echeance | autre
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    date_debut: Mapped[datetime] = mapped_column(nullable=False)
    date_fin: Mapped[datetime] = mapped_column(nullable=False)
    journee_entiere: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lieu: Mapped[str | None] = mapped_column(String(255), nullable=True)
    adresse: Mapped[str | None] = mapped_column(Text, nullable=True)
    salle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    statut: Mapped[str] = mapped_column(String(20), default=EvenementStatut.CONFIRME.value, nullable=False)

    # Google Calendar
    sync_google: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    google_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    google_calendar_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    google_last_sync: Mapped[datetime | None] = mapped_column(nullable=True)
    google_remote_updated: Mapped[datetime | None] = mapped_column(nullable=True)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    dossier: Mapped["Dossier | None"] = relationship(back_populates="evenements")


class Note(Base):
    """Internal note on a dossier (HTML sanitised on write)."""
    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_dossier", "dossier_id", "is_pinned"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    dossier_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=False
    )
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    contenu: Mapped[str] = mapped_column(Text, nullable=False)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    dossier: Mapped["Dossier"] = relationship(back_populates="notes")
    created_by: Mapped["Admin | None"] = relationship(foreign_keys=[created_by_id])


class Task(Base):
    """Task on a dossier. ``completed_at`` is set only while statut is terminee."""
    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_dossier", "dossier_id"),
        Index("idx_tasks_assigned", "assigned_to_id", "statut"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    dossier_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=False
    )
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    titre: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priorite: Mapped[str] = mapped_column(
        String(20), default=TaskPriorite.NORMALE.value, nullable=False
    )
    statut: Mapped[str] = mapped_column(
        String(20), default=TaskStatut.A_FAIRE.value, nullable=False
    )
    date_echeance: Mapped[date | None] = mapped_column(Date, nullable=True)
    rappel_date: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    dossier: Mapped["Dossier"] = relationship(back_populates="tasks")
    assigned_to: Mapped["Admin | None"] = relationship(foreign_keys=[assigned_to_id])
