"""SQLAlchemy ORM models for external integrations."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base
from portal.db.enums import SyncMode
from portal.db.types import utcnow


class OAuthToken(Base):
    """
    Firm-wide OAuth connection for one external service.

    One row per service key (``onedrive``, ``google_calendar``). Access and
    refresh tokens are Fernet-encrypted.
    """
    __tablename__ = "oauth_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    service: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    account_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    scopes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Google Calendar only
    selected_calendar_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    selected_calendar_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sync_mode: Mapped[str] = mapped_column(String(20), default=SyncMode.AUTO.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
