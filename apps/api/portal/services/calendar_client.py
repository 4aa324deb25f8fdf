"""Google Calendar client - event CRUD against the firm's selected calendar.

Handles:
- Health check and calendar listing
- Event creation/update/deletion (portal -> Google)
- Event listing for the pull side of the sync (Google -> portal)

Every call goes through ``fetch_with_retry``. Failures come back as
``CalendarResult`` values, never as exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.db.models import Evenement
from portal.services.http_service import ApiError, describe_error, fetch_with_retry, parse_iso_datetime
from portal.services.oauth_service import TokenService

logger = logging.getLogger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"

# Event types the API refuses to modify
RESTRICTED_EVENT_TYPES = {"birthday", "focusTime", "outOfOffice", "workingLocation"}
RESTRICTION_ERROR_MARKERS = ("eventTypeRestriction", "Event type cannot be changed")

NOT_AUTHENTICATED = "Not authenticated"


# =============================================================================
# Types
# =============================================================================

@dataclass
class CalendarResult:
    """Outcome of a single write against Google Calendar."""
    success: bool
    google_event_id: str | None = None
    remote_updated: datetime | None = None
    error: str | None = None
    skipped: bool = False
    not_found: bool = False


# =============================================================================
# Mapping
# =============================================================================

def _calendar_zone() -> ZoneInfo:
    return ZoneInfo(settings.CALENDAR_TIMEZONE)


def build_location(evenement: Evenement) -> str | None:
    parts = [p for p in (evenement.lieu, evenement.salle, evenement.adresse) if p]
    return " - ".join(parts) if parts else None


def event_to_google(evenement: Evenement) -> dict[str, Any]:
    """
    Build the Google event body for a portal event.

    All-day events use ``date`` with an exclusive end (day after
    ``date_fin``). Timed events use ``dateTime`` plus the configured zone.
    """
    private = {"portalEventId": str(evenement.id), "type": evenement.type}
    if evenement.dossier_id:
        private["dossierId"] = str(evenement.dossier_id)

    body: dict[str, Any] = {
        "summary": evenement.titre,
        "extendedProperties": {"private": private},
    }
    if evenement.description:
        body["description"] = evenement.description
    location = build_location(evenement)
    if location:
        body["location"] = location

    if evenement.journee_entiere:
        zone = _calendar_zone()
        start_day = evenement.date_debut.astimezone(zone).date()
        end_day = evenement.date_fin.astimezone(zone).date() + timedelta(days=1)
        body["start"] = {"date": start_day.isoformat()}
        body["end"] = {"date": end_day.isoformat()}
    else:
        body["start"] = {
            "dateTime": evenement.date_debut.isoformat(),
            "timeZone": settings.CALENDAR_TIMEZONE,
        }
        body["end"] = {
            "dateTime": evenement.date_fin.isoformat(),
            "timeZone": settings.CALENDAR_TIMEZONE,
        }
    return body


def google_to_event_data(item: dict[str, Any]) -> dict[str, Any] | None:
    """
    Convert a Google event into portal event fields.

    All-day ends are exclusive on Google's side, so one day is taken off.
    A timed event without an end lasts one hour. Returns None when the
    start cannot be parsed.
    """
    start = item.get("start") or {}
    end = item.get("end") or {}
    is_all_day = "date" in start and "dateTime" not in start

    if is_all_day:
        zone = _calendar_zone()
        try:
            start_day = date.fromisoformat(start["date"])
            end_day = date.fromisoformat(end["date"]) - timedelta(days=1) if end.get("date") else start_day
        except ValueError:
            return None
        if end_day < start_day:
            end_day = start_day
        date_debut = datetime.combine(start_day, time.min, tzinfo=zone).astimezone(timezone.utc)
        date_fin = datetime.combine(end_day, time.min, tzinfo=zone).astimezone(timezone.utc)
    else:
        date_debut = parse_iso_datetime(start.get("dateTime"))
        if date_debut is None:
            return None
        date_fin = parse_iso_datetime(end.get("dateTime")) or date_debut + timedelta(hours=1)

    return {
        "titre": item.get("summary") or "Sans titre",
        "description": item.get("description") or None,
        "lieu": item.get("location") or None,
        "date_debut": date_debut,
        "date_fin": date_fin,
        "journee_entiere": is_all_day,
    }


def is_restricted(item: dict[str, Any] | None) -> bool:
    return bool(item) and item.get("eventType") in RESTRICTED_EVENT_TYPES


def _is_restriction_error(error: ApiError) -> bool:
    return any(marker in error.response_body for marker in RESTRICTION_ERROR_MARKERS)


# =============================================================================
# Client
# =============================================================================

class GoogleCalendarClient:
    """Calendar API client bound to one session and the firm-wide token."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        tokens: TokenService,
        db: Session,
        retry_options: dict | None = None,
    ):
        self.http = http
        self.tokens = tokens
        self.db = db
        self.retry_options = retry_options

    async def _headers(self) -> dict[str, str] | None:
        access_token = await self.tokens.get_valid_access_token(self.db)
        if not access_token:
            return None
        return {"Authorization": f"Bearer {access_token}"}

    async def _request(self, method: str, path: str, headers: dict, **kwargs) -> httpx.Response:
        return await fetch_with_retry(
            self.http,
            method,
            f"{CALENDAR_API_BASE}{path}",
            headers=headers,
            retry_options=self.retry_options,
            **kwargs,
        )

    def selected_calendar_id(self) -> str | None:
        """Selected calendar, ``primary`` when none chosen, None when disconnected."""
        record = self.tokens.get_record(self.db)
        if not record:
            return None
        return record.selected_calendar_id or "primary"

    def _events_path(self, calendar_id: str, event_id: str | None = None) -> str:
        path = f"/calendars/{quote(calendar_id, safe='')}/events"
        if event_id:
            path += f"/{quote(event_id, safe='')}"
        return path

    async def is_ready(self) -> bool:
        return await self._headers() is not None

    async def check_health(self) -> dict[str, Any]:
        headers = await self._headers()
        if not headers:
            return {"healthy": False, "error": NOT_AUTHENTICATED}
        try:
            response = await self._request(
                "GET", "/users/me/calendarList", headers, params={"maxResults": 10}
            )
        except (ApiError, httpx.HTTPError) as exc:
            if isinstance(exc, ApiError):
                return {"healthy": False, "error": f"HTTP {exc.status_code}"}
            return {"healthy": False, "error": describe_error(exc)}
        items = response.json().get("items") or []
        return {"healthy": True, "calendars_count": len(items)}

    async def list_calendars(self) -> list[dict[str, Any]]:
        headers = await self._headers()
        if not headers:
            return []
        try:
            response = await self._request("GET", "/users/me/calendarList", headers)
        except (ApiError, httpx.HTTPError) as exc:
            logger.error("Failed to list calendars: %s", describe_error(exc))
            return []
        return response.json().get("items") or []

    # -------------------------------------------------------------------------
    # Portal -> Google
    # -------------------------------------------------------------------------

    async def create_event(self, evenement: Evenement) -> CalendarResult:
        headers = await self._headers()
        if not headers:
            return CalendarResult(success=False, error=NOT_AUTHENTICATED)
        calendar_id = self.selected_calendar_id() or "primary"

        try:
            response = await self._request(
                "POST", self._events_path(calendar_id), headers, json=event_to_google(evenement)
            )
        except (ApiError, httpx.HTTPError) as exc:
            if isinstance(exc, ApiError) and _is_restriction_error(exc):
                logger.info("Skipping event %s due to type restriction", evenement.id)
                return CalendarResult(success=True, skipped=True)
            logger.error("Failed to create Google event for %s: %s", evenement.id, describe_error(exc))
            return CalendarResult(success=False, error=describe_error(exc))

        data = response.json()
        return CalendarResult(
            success=True,
            google_event_id=data.get("id"),
            remote_updated=parse_iso_datetime(data.get("updated")),
        )

    async def update_event(self, evenement: Evenement) -> CalendarResult:
        if not evenement.google_event_id:
            return CalendarResult(success=False, error="No Google event ID")
        headers = await self._headers()
        if not headers:
            return CalendarResult(success=False, error=NOT_AUTHENTICATED)
        calendar_id = self.selected_calendar_id() or "primary"

        existing = await self.get_event(evenement.google_event_id)
        if is_restricted(existing):
            logger.info(
                "Skipping restricted event type %s for %s", existing.get("eventType"), evenement.id
            )
            return CalendarResult(success=True, skipped=True, google_event_id=evenement.google_event_id)

        try:
            response = await self._request(
                "PUT",
                self._events_path(calendar_id, evenement.google_event_id),
                headers,
                json=event_to_google(evenement),
            )
        except (ApiError, httpx.HTTPError) as exc:
            if isinstance(exc, ApiError):
                if _is_restriction_error(exc):
                    logger.info("Skipping event %s due to type restriction", evenement.id)
                    return CalendarResult(
                        success=True, skipped=True, google_event_id=evenement.google_event_id
                    )
                if exc.is_not_found:
                    return CalendarResult(success=False, not_found=True, error=describe_error(exc))
            logger.error("Failed to update Google event for %s: %s", evenement.id, describe_error(exc))
            return CalendarResult(success=False, error=describe_error(exc))

        data = response.json()
        return CalendarResult(
            success=True,
            google_event_id=data.get("id") or evenement.google_event_id,
            remote_updated=parse_iso_datetime(data.get("updated")),
        )

    async def delete_event(self, google_event_id: str) -> CalendarResult:
        """Delete a remote event. Already-gone events (404/410) count as deleted."""
        headers = await self._headers()
        if not headers:
            return CalendarResult(success=False, error=NOT_AUTHENTICATED)
        calendar_id = self.selected_calendar_id() or "primary"
        try:
            await self._request("DELETE", self._events_path(calendar_id, google_event_id), headers)
        except ApiError as exc:
            if exc.status_code in (404, 410):
                return CalendarResult(success=True, google_event_id=google_event_id)
            logger.error("Failed to delete Google event %s: %s", google_event_id, describe_error(exc))
            return CalendarResult(success=False, error=describe_error(exc))
        except httpx.HTTPError as exc:
            logger.error("Failed to delete Google event %s: %s", google_event_id, exc)
            return CalendarResult(success=False, error=describe_error(exc))
        return CalendarResult(success=True, google_event_id=google_event_id)

    async def get_event(self, google_event_id: str) -> dict[str, Any] | None:
        headers = await self._headers()
        if not headers:
            return None
        calendar_id = self.selected_calendar_id() or "primary"
        try:
            response = await self._request(
                "GET", self._events_path(calendar_id, google_event_id), headers
            )
        except (ApiError, httpx.HTTPError):
            return None
        return response.json()

    # -------------------------------------------------------------------------
    # Google -> Portal
    # -------------------------------------------------------------------------

    async def list_events(
        self,
        time_min: datetime,
        time_max: datetime,
        max_results: int = 2500,
    ) -> list[dict[str, Any]]:
        """
        List events in a window, recurring events expanded.

        Follows ``nextPageToken`` until ``max_results`` items are collected.
        Returns what was fetched so far when a page fails.
        """
        headers = await self._headers()
        if not headers:
            return []
        calendar_id = self.selected_calendar_id() or "primary"

        events: list[dict[str, Any]] = []
        page_token: str | None = None
        while len(events) < max_results:
            params = {
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": str(min(2500, max_results - len(events))),
            }
            if page_token:
                params["pageToken"] = page_token
            try:
                response = await self._request(
                    "GET", self._events_path(calendar_id), headers, params=params
                )
            except (ApiError, httpx.HTTPError) as exc:
                logger.error("Failed to list Google events: %s", describe_error(exc))
                break
            data = response.json()
            events.extend(data.get("items") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                break
        return events[:max_results]
