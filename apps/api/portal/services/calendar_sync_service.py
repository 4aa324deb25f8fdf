"""
Google Calendar reconciliation.

Push (portal -> Google) mirrors every event with ``sync_google`` set. An
event is pushed again only when it changed since ``google_last_sync``.

Pull (Google -> portal) imports new remote events and applies remote edits
to linked ones. Conflicts are resolved last-writer-wins:

- a remote event is applied only when its ``updated`` stamp is newer than
  ``google_remote_updated``, the stamp recorded at the last reconciliation;
- when the local record was also edited since its last sync, the remote
  stamp must also be newer than the local ``updated_at``.

Both directions record the remote stamp they end on, so a second run with
no changes on either side reports nothing created or updated.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import EvenementType, SyncMode, SyncType
from portal.db.models import Dossier, Evenement, SyncLog
from portal.db.types import utcnow
from portal.services import activity_service, sync_log_service
from portal.services.calendar_client import (
    CalendarResult,
    GoogleCalendarClient,
    google_to_event_data,
    is_restricted,
)
from portal.services.http_service import parse_iso_datetime

logger = logging.getLogger(__name__)

NOT_CONNECTED = "Google Calendar not connected"
IMPORTED_EVENT_TYPE = EvenementType.AUTRE.value
PULL_PAST_DAYS = 90
PULL_FUTURE_DAYS = 365
PULL_MAX_RESULTS = 2500

_DOS_REFERENCE = re.compile(r"\b(DOS-\d{4}-\d{4})\b", re.IGNORECASE)
_CODE_REFERENCE = re.compile(r"\b(\d{4}-\d{3,4}-[A-Z]{2,4})\b", re.IGNORECASE)

SKIPPED_SYNC_MESSAGES = {
    "not_configured": "Google Calendar non configure",
    "no_accounts": "Aucun compte Google connecte",
    "no_calendars": "Aucun calendrier actif configure",
}


@dataclass
class EventPushResult:
    """Outcome of pushing one event: created, updated, unchanged, skipped, disabled or error."""
    success: bool
    action: str
    error: str | None = None


@dataclass
class CalendarSyncResult:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    processed: int = 0
    details: list[str] = field(default_factory=list)
    message: str = ""
    per_dossier: dict[UUID, dict[str, int]] = field(default_factory=dict)

    def tally(self, dossier_id: UUID | None, key: str) -> None:
        """Count one created ('imported'), updated or errored event against its dossier."""
        if dossier_id is None:
            return
        counts = self.per_dossier.setdefault(dossier_id, {"imported": 0, "updated": 0, "errors": 0})
        counts[key] += 1

    @property
    def success(self) -> bool:
        return self.errors == 0

    @property
    def successes(self) -> int:
        return self.created + self.updated + self.unchanged


@dataclass
class FullSyncResult:
    push: CalendarSyncResult
    pull: CalendarSyncResult | None = None
    sync_log: SyncLog | None = None

    def _total(self, attr: str) -> int:
        return getattr(self.push, attr) + (getattr(self.pull, attr) if self.pull else 0)

    @property
    def created(self) -> int:
        return self._total("created")

    @property
    def updated(self) -> int:
        return self._total("updated")

    @property
    def errors(self) -> int:
        return self._total("errors")

    @property
    def success(self) -> bool:
        return self.errors == 0


def extract_dossier_reference(title: str) -> str | None:
    """Dossier reference quoted in an event title (``DOS-YYYY-NNNN`` or ``YYYY-NNN-CODE``)."""
    for pattern in (_DOS_REFERENCE, _CODE_REFERENCE):
        match = pattern.search(title or "")
        if match:
            return match.group(1).upper()
    return None


# =============================================================================
# Portal -> Google
# =============================================================================


def _needs_push(event: Evenement) -> bool:
    if not event.google_event_id or event.google_last_sync is None:
        return True
    return event.updated_at > event.google_last_sync


def _record_push(
    db: Session,
    event: Evenement,
    result: CalendarResult,
    calendar_id: str | None,
    triggered_by_id: UUID | None,
) -> None:
    event.google_event_id = result.google_event_id or event.google_event_id
    event.google_calendar_id = calendar_id
    event.google_last_sync = utcnow()
    if result.remote_updated:
        event.google_remote_updated = result.remote_updated
    activity_service.log_evenement_synced_google(db, event, triggered_by_id)


async def sync_event_to_google(
    db: Session,
    calendar: GoogleCalendarClient,
    event: Evenement,
    force: bool = False,
    triggered_by_id: UUID | None = None,
) -> EventPushResult:
    """
    Create or update the remote copy of ``event``.

    Events unchanged since their last sync are left alone unless ``force``.
    A remote copy deleted on Google (404 on update) is recreated. Every
    successful push writes an ``evenement.synced_google`` activity entry.
    """
    if not event.sync_google:
        return EventPushResult(success=True, action="disabled")
    if not force and not _needs_push(event):
        return EventPushResult(success=True, action="unchanged")

    calendar_id = calendar.selected_calendar_id()
    if calendar_id is None:
        return EventPushResult(success=False, action="error", error=NOT_CONNECTED)

    if event.google_event_id:
        result = await calendar.update_event(event)
        if result.skipped:
            return EventPushResult(success=True, action="skipped")
        if result.success:
            _record_push(db, event, result, calendar_id, triggered_by_id)
            db.commit()
            return EventPushResult(success=True, action="updated")
        if not result.not_found:
            return EventPushResult(success=False, action="error", error=result.error)
        logger.info("Google event %s is gone, recreating for %s", event.google_event_id, event.id)
        event.google_event_id = None

    result = await calendar.create_event(event)
    if result.skipped:
        return EventPushResult(success=True, action="skipped")
    if not result.success or not result.google_event_id:
        return EventPushResult(success=False, action="error", error=result.error)
    _record_push(db, event, result, calendar_id, triggered_by_id)
    db.commit()
    return EventPushResult(success=True, action="created")


async def delete_event_from_google(
    calendar: GoogleCalendarClient, google_event_id: str
) -> CalendarResult:
    if not await calendar.is_ready():
        return CalendarResult(success=False, error=NOT_CONNECTED)
    return await calendar.delete_event(google_event_id)


async def push_to_google(
    db: Session,
    calendar: GoogleCalendarClient,
    force: bool = False,
    triggered_by_id: UUID | None = None,
) -> CalendarSyncResult:
    result = CalendarSyncResult()
    events = (
        db.query(Evenement)
        .filter(Evenement.sync_google.is_(True))
        .order_by(Evenement.date_debut)
        .all()
    )
    result.processed = len(events)
    result.details.append(f"Found {len(events)} events to sync")

    for event in events:
        try:
            outcome = await sync_event_to_google(db, calendar, event, force=force, triggered_by_id=triggered_by_id)
        except Exception as exc:
            db.rollback()
            logger.exception("Error pushing event %s", event.id)
            outcome = EventPushResult(success=False, action="error", error=str(exc))

        if outcome.action == "created":
            result.created += 1
            result.tally(event.dossier_id, "imported")
            result.details.append(f"Created: {event.titre}")
        elif outcome.action == "updated":
            result.updated += 1
            result.tally(event.dossier_id, "updated")
            result.details.append(f"Updated: {event.titre}")
        elif outcome.action == "unchanged":
            result.unchanged += 1
        elif outcome.action == "skipped":
            result.skipped += 1
            result.details.append(f"Skipped (restricted type): {event.titre}")
        else:
            result.errors += 1
            result.tally(event.dossier_id, "errors")
            result.details.append(f"Error syncing {event.titre}: {outcome.error}")

    result.message = (
        f"Push: {result.created} created, {result.updated} updated, "
        f"{result.unchanged} unchanged, {result.errors} errors"
    )
    return result


# =============================================================================
# Google -> Portal
# =============================================================================


def _remote_wins(event: Evenement, remote_updated: datetime | None) -> bool:
    if remote_updated is None:
        return False
    if event.google_remote_updated is not None and remote_updated <= event.google_remote_updated:
        return False
    edited_locally = event.google_last_sync is None or event.updated_at > event.google_last_sync
    if edited_locally and remote_updated <= event.updated_at:
        return False
    return True


def _portal_back_reference(item: dict[str, Any]) -> str | None:
    private = (item.get("extendedProperties") or {}).get("private") or {}
    return private.get("portalEventId")


def _find_by_portal_id(db: Session, portal_id: str) -> Evenement | None:
    try:
        event_id = UUID(portal_id)
    except ValueError:
        return None
    return db.get(Evenement, event_id)


def _apply_remote(event: Evenement, data: dict[str, Any], remote_updated: datetime) -> None:
    for key, value in data.items():
        setattr(event, key, value)
    now = utcnow()
    event.updated_at = now
    event.google_last_sync = now
    event.google_remote_updated = remote_updated


def _import_event(
    db: Session,
    item: dict[str, Any],
    data: dict[str, Any],
    calendar_id: str | None,
    triggered_by_id: UUID | None,
) -> tuple[Evenement, str]:
    reference = extract_dossier_reference(data["titre"])
    dossier_id = None
    info = ""
    if reference:
        dossier = db.query(Dossier).filter(Dossier.reference == reference).first()
        if dossier:
            dossier_id = dossier.id
            info = f" -> Dossier: {reference}"
        else:
            info = f" (ref {reference} non trouvee)"

    now = utcnow()
    event = Evenement(
        id=uuid.uuid4(),
        dossier_id=dossier_id,
        type=IMPORTED_EVENT_TYPE,
        sync_google=True,
        google_event_id=item["id"],
        google_calendar_id=calendar_id,
        google_last_sync=now,
        google_remote_updated=parse_iso_datetime(item.get("updated")),
        created_by_id=triggered_by_id,
        created_at=now,
        updated_at=now,
        **data,
    )
    db.add(event)
    db.flush()
    activity_service.log_evenement_imported_google(db, event, calendar_id=calendar_id)
    return event, info


async def pull_from_google(
    db: Session,
    calendar: GoogleCalendarClient,
    triggered_by_id: UUID | None = None,
) -> CalendarSyncResult:
    """
    Import and update events from the selected calendar.

    Window: 90 days back to 365 days ahead. Remote events are matched by
    ``google_event_id`` first, then by the ``portalEventId`` back-reference
    the push side writes, so nothing is imported twice.
    """
    result = CalendarSyncResult()
    if not await calendar.is_ready():
        result.errors = 1
        result.message = NOT_CONNECTED
        result.details.append("Google Calendar is not connected")
        return result

    now = utcnow()
    time_min = now - timedelta(days=PULL_PAST_DAYS)
    time_max = now + timedelta(days=PULL_FUTURE_DAYS)
    items = await calendar.list_events(time_min, time_max, max_results=PULL_MAX_RESULTS)
    calendar_id = calendar.selected_calendar_id()
    result.processed = len(items)
    result.details.append(
        f"Found {len(items)} events in Google Calendar "
        f"({time_min.date().isoformat()} to {time_max.date().isoformat()})"
    )

    linked = {
        event.google_event_id: event
        for event in db.query(Evenement).filter(Evenement.google_event_id.isnot(None)).all()
    }

    for item in items:
        google_id = item.get("id")
        if not google_id or item.get("status") == "cancelled":
            continue
        title = item.get("summary") or google_id
        if is_restricted(item):
            result.skipped += 1
            result.details.append(f"Skipped (restricted type): {title}")
            continue

        try:
            event = linked.get(google_id)
            if event is None:
                portal_id = _portal_back_reference(item)
                if portal_id:
                    event = _find_by_portal_id(db, portal_id)
                    if event is None:
                        result.skipped += 1
                        result.details.append(f"Skipped (portal origin): {title}")
                        continue
                    event.google_event_id = google_id
                    linked[google_id] = event

            data = google_to_event_data(item)
            if data is None:
                result.skipped += 1
                result.details.append(f"Skipped (no start date): {title}")
                continue

            if event is not None:
                remote_updated = parse_iso_datetime(item.get("updated"))
                if _remote_wins(event, remote_updated):
                    _apply_remote(event, data, remote_updated)
                    result.updated += 1
                    result.tally(event.dossier_id, "updated")
                    result.details.append(f"Updated from Google: {event.titre}")
                else:
                    result.unchanged += 1
                db.commit()
                continue

            imported, info = _import_event(db, item, data, calendar_id, triggered_by_id)
            db.commit()
            linked[google_id] = imported
            result.created += 1
            result.tally(imported.dossier_id, "imported")
            result.details.append(f"Importe: {imported.titre}{info}")
        except Exception as exc:
            db.rollback()
            logger.exception("Error importing Google event %s", google_id)
            result.errors += 1
            result.details.append(f"Error importing {title}: {exc}")

    result.message = (
        f"Import termine: {result.created} importes, {result.updated} mis a jour"
        + (f", {result.skipped} ignores" if result.skipped else "")
    )
    return result


# =============================================================================
# Runs
# =============================================================================


def _log_dossier_runs(
    db: Session,
    runs: list[CalendarSyncResult],
    triggered_by_id: UUID | None,
    mode: SyncMode,
) -> None:
    """One ``google_calendar.sync`` timeline entry per dossier the run touched."""
    totals: dict[UUID, dict[str, int]] = {}
    for run in runs:
        for dossier_id, counts in run.per_dossier.items():
            merged = totals.setdefault(dossier_id, {"imported": 0, "updated": 0, "errors": 0})
            for key, value in counts.items():
                merged[key] += value
    for dossier_id, counts in totals.items():
        activity_service.log_google_calendar_sync(
            db, dossier_id, triggered_by_id, mode=mode.value, **counts
        )


async def full_sync(
    db: Session,
    calendar: GoogleCalendarClient,
    pull: bool = True,
    triggered_by_id: UUID | None = None,
    mode: SyncMode = SyncMode.MANUAL,
) -> FullSyncResult:
    """Push every synced event, then optionally pull, and record the run."""
    started = time.monotonic()
    if not await calendar.is_ready():
        push = CalendarSyncResult(errors=1, message=NOT_CONNECTED)
        push.details.append("Google Calendar is not connected. Please connect first.")
        return FullSyncResult(push=push)

    push = await push_to_google(db, calendar, triggered_by_id=triggered_by_id)
    pulled = await pull_from_google(db, calendar, triggered_by_id) if pull else None
    outcome = FullSyncResult(push=push, pull=pulled)

    successes = push.successes + (pulled.successes if pulled else 0)
    skipped = push.skipped + (pulled.skipped if pulled else 0)
    if outcome.success:
        message = f"Sync completed: {outcome.created} created, {outcome.updated} updated"
        if skipped:
            message += f", {skipped} skipped"
    else:
        message = f"Sync completed with {outcome.errors} errors"

    _log_dossier_runs(db, [push, pulled] if pulled else [push], triggered_by_id, mode)
    outcome.sync_log = sync_log_service.record_sync(
        db,
        sync_type=SyncType.GOOGLE_CALENDAR,
        mode=mode,
        statut=sync_log_service.compute_statut(successes, outcome.errors),
        processed=push.processed + (pulled.processed if pulled else 0),
        created=outcome.created,
        updated=outcome.updated,
        errors=outcome.errors,
        message=message,
        details={"logs": push.details + (pulled.details if pulled else [])},
        duration_ms=int((time.monotonic() - started) * 1000),
        triggered_by_id=triggered_by_id,
    )
    logger.info(
        "Google Calendar sync: %s created, %s updated, %s errors",
        outcome.created,
        outcome.updated,
        outcome.errors,
    )
    return outcome


def log_skipped_sync(db: Session, reason: str, mode: SyncMode = SyncMode.AUTO) -> SyncLog:
    """Record a scheduled run that had nothing to do (not configured, no account, no calendar)."""
    text = SKIPPED_SYNC_MESSAGES[reason]
    return sync_log_service.record_sync(
        db,
        sync_type=SyncType.GOOGLE_CALENDAR,
        mode=mode,
        message=f"{text} - synchronisation ignoree",
        details={"logs": [text]},
        duration_ms=0,
    )


def get_sync_history(db: Session, limit: int = 50) -> list[SyncLog]:
    return sync_log_service.get_history(db, SyncType.GOOGLE_CALENDAR, limit)
