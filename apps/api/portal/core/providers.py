"""
Provider clients shared by the API process and the worker.

One ``Integrations`` container is built at startup (lifespan for the API,
``main()`` for the worker) and injected wherever a provider is needed. It
owns the shared ``httpx.AsyncClient``, one ``TokenService`` per OAuth
service (and so one refresh lock per service) and the health cache.
Calendar and drive clients are cheap and bound to a session, so they are
built per use.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.services.calendar_client import GoogleCalendarClient
from portal.services.http_service import retry_options_from_settings
from portal.services.integration_health_service import IntegrationHealthService
from portal.services.oauth_service import (
    GoogleOAuthProvider,
    MicrosoftOAuthProvider,
    TokenService,
)
from portal.services.onedrive_client import OneDriveClient


@dataclass
class Integrations:
    http: httpx.AsyncClient
    google: TokenService
    microsoft: TokenService
    health: IntegrationHealthService
    retry_options: dict | None = None

    def calendar(self, db: Session) -> GoogleCalendarClient:
        return GoogleCalendarClient(self.http, self.google, db, retry_options=self.retry_options)

    def drive(self, db: Session) -> OneDriveClient:
        return OneDriveClient(self.http, self.microsoft, db, retry_options=self.retry_options)

    async def aclose(self) -> None:
        await self.http.aclose()


def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)


def build_integrations(
    http: httpx.AsyncClient | None = None,
    retry_options: dict | None = None,
) -> Integrations:
    """Wire providers, token services and the health cache around one HTTP client."""
    http = http or create_http_client()
    return Integrations(
        http=http,
        google=TokenService(GoogleOAuthProvider(http)),
        microsoft=TokenService(MicrosoftOAuthProvider(http)),
        health=IntegrationHealthService(),
        retry_options=retry_options if retry_options is not None else retry_options_from_settings(),
    )
