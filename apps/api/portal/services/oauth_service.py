"""OAuth integration service.

Handles the OAuth flows for Google Calendar and Microsoft OneDrive.
Tokens are firm-wide (one row per service key) and stored encrypted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.encryption import decrypt_token, encrypt_token
from portal.db.enums import OAuthService, SyncMode
from portal.db.models import OAuthToken
from portal.db.types import utcnow

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """Token exchange, refresh or profile fetch rejected by the provider."""


@dataclass
class TokenSet:
    access_token: str
    refresh_token: str | None
    expires_in: int | None
    scope: str | None


def _parse_token_response(response: httpx.Response) -> TokenSet:
    try:
        data = response.json()
    except ValueError:
        raise OAuthError("Token endpoint returned a non-JSON body")
    if not isinstance(data, dict) or not data.get("access_token"):
        raise OAuthError(f"Token response without access_token: {_error_description(response)}")
    return TokenSet(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_in=data.get("expires_in"),
        scope=data.get("scope"),
    )


def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("error_description") or body.get("error") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"


# ============================================================================
# Providers
# ============================================================================


class GoogleOAuthProvider:
    """Google authorization-code flow (offline access for a refresh token)."""

    service_key = OAuthService.GOOGLE_CALENDAR.value
    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    SCOPES = [
        "https://www.googleapis.com/auth/calendar",
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/userinfo.profile",
    ]

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    def is_configured(self) -> bool:
        return settings.google_configured

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "redirect_uri": settings.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": " ".join(self.SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenSet:
        response = await self.http.post(
            self.TOKEN_URL,
            data={
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": settings.GOOGLE_REDIRECT_URI,
            },
        )
        if not response.is_success:
            raise OAuthError(f"Token exchange failed: {_error_description(response)}")
        return _parse_token_response(response)

    async def refresh(self, refresh_token: str) -> TokenSet:
        response = await self.http.post(
            self.TOKEN_URL,
            data={
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if not response.is_success:
            raise OAuthError(f"Token refresh failed: {_error_description(response)}")
        return _parse_token_response(response)

    async def fetch_profile(self, access_token: str) -> tuple[str | None, str | None]:
        response = await self.http.get(
            self.USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not response.is_success:
            raise OAuthError("Failed to fetch user profile")
        data = response.json()
        return data.get("email"), data.get("name")


class MicrosoftOAuthProvider:
    """Microsoft identity platform v2 flow, tenant from MICROSOFT_TENANT_ID."""

    service_key = OAuthService.ONEDRIVE.value
    PROFILE_URL = "https://graph.microsoft.com/v1.0/me"
    SCOPES = "User.Read Files.ReadWrite.All offline_access"

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    def is_configured(self) -> bool:
        return settings.microsoft_configured

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": settings.MICROSOFT_CLIENT_ID,
            "response_type": "code",
            "redirect_uri": settings.MICROSOFT_REDIRECT_URI,
            "scope": self.SCOPES,
            "response_mode": "query",
            "state": state,
        }
        return f"{settings.microsoft_authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenSet:
        response = await self.http.post(
            settings.microsoft_token_url,
            data={
                "client_id": settings.MICROSOFT_CLIENT_ID,
                "client_secret": settings.MICROSOFT_CLIENT_SECRET,
                "code": code,
                "redirect_uri": settings.MICROSOFT_REDIRECT_URI,
                "grant_type": "authorization_code",
                "scope": self.SCOPES,
            },
        )
        if not response.is_success:
            raise OAuthError(f"Token exchange failed: {_error_description(response)}")
        return _parse_token_response(response)

    async def refresh(self, refresh_token: str) -> TokenSet:
        response = await self.http.post(
            settings.microsoft_token_url,
            data={
                "client_id": settings.MICROSOFT_CLIENT_ID,
                "client_secret": settings.MICROSOFT_CLIENT_SECRET,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
                "scope": self.SCOPES,
            },
        )
        if not response.is_success:
            raise OAuthError(f"Token refresh failed: {_error_description(response)}")
        return _parse_token_response(response)

    async def fetch_profile(self, access_token: str) -> tuple[str | None, str | None]:
        response = await self.http.get(
            self.PROFILE_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not response.is_success:
            raise OAuthError("Failed to fetch user profile")
        data = response.json()
        return data.get("mail") or data.get("userPrincipalName"), data.get("displayName")


# ============================================================================
# Token Service
# ============================================================================


class TokenService:
    """
    Stored-token lifecycle for one service key.

    ``get_valid_access_token`` refreshes tokens that expire within the
    refresh margin. Refreshes are single-flight per service: concurrent
    callers wait on the same lock and re-read the row once they hold it,
    so only one refresh request reaches the provider.
    """

    def __init__(self, provider, refresh_margin_seconds: int | None = None):
        self.provider = provider
        self.service_key: str = provider.service_key
        margin = (
            settings.TOKEN_REFRESH_MARGIN_SECONDS
            if refresh_margin_seconds is None
            else refresh_margin_seconds
        )
        self.refresh_margin = timedelta(seconds=margin)
        self._refresh_lock = asyncio.Lock()

    def is_configured(self) -> bool:
        return self.provider.is_configured()

    def get_record(self, db: Session) -> OAuthToken | None:
        return db.query(OAuthToken).filter(OAuthToken.service == self.service_key).first()

    def save_tokens(
        self,
        db: Session,
        tokens: TokenSet,
        account_email: str | None = None,
        account_name: str | None = None,
    ) -> OAuthToken:
        """Upsert the service row. A missing refresh token keeps the stored one."""
        record = self.get_record(db)
        expires_at = (
            utcnow() + timedelta(seconds=int(tokens.expires_in))
            if tokens.expires_in
            else None
        )
        if record:
            record.access_token_encrypted = encrypt_token(tokens.access_token)
            if tokens.refresh_token:
                record.refresh_token_encrypted = encrypt_token(tokens.refresh_token)
            record.expires_at = expires_at
            if account_email:
                record.account_email = account_email
            if account_name:
                record.account_name = account_name
            if tokens.scope:
                record.scopes = tokens.scope
        else:
            record = OAuthToken(
                service=self.service_key,
                access_token_encrypted=encrypt_token(tokens.access_token),
                refresh_token_encrypted=(
                    encrypt_token(tokens.refresh_token) if tokens.refresh_token else None
                ),
                expires_at=expires_at,
                account_email=account_email,
                account_name=account_name,
                scopes=tokens.scope,
                sync_mode=SyncMode.AUTO.value,
            )
            db.add(record)
        db.commit()
        db.refresh(record)
        return record

    async def complete_oauth_flow(self, db: Session, code: str) -> OAuthToken:
        """Exchange the callback code, fetch the account profile and persist."""
        tokens = await self.provider.exchange_code(code)
        email, name = await self.provider.fetch_profile(tokens.access_token)
        record = self.save_tokens(db, tokens, account_email=email, account_name=name)
        logger.info("OAuth connected for %s (%s)", self.service_key, email)
        return record

    def _needs_refresh(self, record: OAuthToken) -> bool:
        if record.expires_at is None:
            return False
        return record.expires_at <= utcnow() + self.refresh_margin

    async def get_valid_access_token(self, db: Session) -> str | None:
        """
        Return a usable access token, refreshing when it expires within the margin.

        Returns None when no token is stored or the refresh fails.
        """
        record = self.get_record(db)
        if not record:
            return None
        if not self._needs_refresh(record):
            return decrypt_token(record.access_token_encrypted)

        async with self._refresh_lock:
            db.refresh(record)
            if not self._needs_refresh(record):
                return decrypt_token(record.access_token_encrypted)
            if not record.refresh_token_encrypted:
                logger.warning("No refresh token stored for %s", self.service_key)
                return None
            try:
                refreshed = await self.provider.refresh(
                    decrypt_token(record.refresh_token_encrypted)
                )
            except (OAuthError, httpx.HTTPError) as exc:
                logger.error("Token refresh failed for %s: %s", self.service_key, exc)
                return None
            self.save_tokens(db, refreshed)
            logger.info("Refreshed access token for %s", self.service_key)
            return refreshed.access_token

    def is_connected(self, db: Session) -> bool:
        return self.get_record(db) is not None

    def connection_status(self, db: Session) -> dict:
        record = self.get_record(db)
        if not record:
            return {"connected": False}
        return {
            "connected": True,
            "account_email": record.account_email,
            "account_name": record.account_name,
            "selected_calendar_id": record.selected_calendar_id,
            "selected_calendar_name": record.selected_calendar_name,
            "sync_mode": record.sync_mode,
            "expires_at": record.expires_at.isoformat() if record.expires_at else None,
        }

    def disconnect(self, db: Session) -> bool:
        record = self.get_record(db)
        if not record:
            return False
        db.delete(record)
        db.commit()
        logger.info("OAuth disconnected for %s", self.service_key)
        return True

    def set_selected_calendar(
        self, db: Session, calendar_id: str, calendar_name: str | None
    ) -> OAuthToken | None:
        record = self.get_record(db)
        if not record:
            return None
        record.selected_calendar_id = calendar_id
        record.selected_calendar_name = calendar_name
        db.commit()
        return record

    def get_sync_mode(self, db: Session) -> str:
        record = self.get_record(db)
        return record.sync_mode if record else SyncMode.AUTO.value

    def set_sync_mode(self, db: Session, mode: SyncMode) -> OAuthToken | None:
        record = self.get_record(db)
        if not record:
            return None
        record.sync_mode = mode.value
        db.commit()
        return record
