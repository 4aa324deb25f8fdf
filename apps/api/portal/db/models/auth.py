"""SQLAlchemy ORM models for staff and client accounts."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.db.enums import AdminRole, ClientType
from portal.db.types import utcnow

if TYPE_CHECKING:
    from portal.db.models import Dossier


class Admin(Base):
    """
    Law-firm staff account (admin realm).

    The super_admin role is seeded from the CLI and is immutable through
    the API.
    """
    __tablename__ = "admins"
    __table_args__ = (
        Index("idx_admins_role", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    nom: Mapped[str] = mapped_column(String(100), nullable=False)
    prenom: Mapped[str] = mapped_column(String(100), nullable=False)
    username: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), default=AdminRole.ADMIN.value, nullable=False
    )

    # Second factor (secret stored Fernet-encrypted)
    totp_secret: Mapped[str | None] = mapped_column(Text, nullable=True)
    totp_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    actif: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Preferences
    notif_email_document: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_notification: Mapped[str | None] = mapped_column(String(255), nullable=True)
    filter_by_responsable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Session revocation
    token_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    last_login: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.prenom} {self.nom}"

    @property
    def is_super_admin(self) -> bool:
        return self.role == AdminRole.SUPER_ADMIN.value


class Client(Base):
    """Client account (client realm). Owns dossiers."""
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Identity
    civilite: Mapped[str | None] = mapped_column(String(10), nullable=True)
    nom: Mapped[str] = mapped_column(String(100), nullable=False)
    prenom: Mapped[str] = mapped_column(String(100), nullable=False)

    # Contact
    telephone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    adresse_ligne1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    adresse_ligne2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    code_postal: Mapped[str | None] = mapped_column(String(10), nullable=True)
    ville: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pays: Mapped[str | None] = mapped_column(String(50), default="France", nullable=True)

    # Institutional clients
    type: Mapped[str] = mapped_column(
        String(20), default=ClientType.PARTICULIER.value, nullable=False
    )
    societe_nom: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Second factor
    totp_secret: Mapped[str | None] = mapped_column(Text, nullable=True)
    totp_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Permissions
    peut_uploader: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    peut_demander_rdv: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    acces_documents_sensibles: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Notification preferences
    notif_email_document: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notif_email_evenement: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    actif: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes_internes: Mapped[str | None] = mapped_column(Text, nullable=True)

    responsable_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    token_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    last_login: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    responsable: Mapped["Admin | None"] = relationship(foreign_keys=[responsable_id])
    dossiers: Mapped[list["Dossier"]] = relationship(
        back_populates="client",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.prenom} {self.nom}"
