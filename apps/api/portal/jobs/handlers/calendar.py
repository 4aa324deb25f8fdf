"""Google Calendar job handlers."""

from __future__ import annotations

import logging
from uuid import UUID

from portal.core.structured_logging import build_log_context

logger = logging.getLogger(__name__)


async def process_event_sync(db, job, integrations) -> None:
    """
    Push one evenement to Google Calendar.

    Payload:
      - evenement_id (required): evenement UUID

    An evenement deleted before the job ran is ignored.
    """
    from portal.db.models import Evenement
    from portal.services import calendar_sync_service

    raw = (job.payload or {}).get("evenement_id")
    if not raw:
        raise ValueError("Missing evenement_id in calendar_event_sync payload")
    try:
        evenement_id = UUID(str(raw))
    except ValueError as exc:
        raise ValueError("Invalid evenement_id in calendar_event_sync payload") from exc

    event = db.get(Evenement, evenement_id)
    if event is None:
        logger.info("Evenement %s no longer exists, nothing to sync", evenement_id)
        return

    result = await calendar_sync_service.sync_event_to_google(db, integrations.calendar(db), event)
    if not result.success:
        raise RuntimeError(f"Google Calendar sync failed: {result.error}")
    logger.info(
        "Evenement %s pushed to Google (%s)",
        evenement_id,
        result.action,
        extra=build_log_context(job_id=str(job.id), service="google_calendar"),
    )


async def process_event_delete(db, job, integrations) -> None:
    """
    Delete the Google copy of a removed evenement.

    Payload:
      - google_event_id (required)
    """
    from portal.services import calendar_sync_service

    google_event_id = (job.payload or {}).get("google_event_id")
    if not google_event_id:
        raise ValueError("Missing google_event_id in calendar_event_delete payload")

    result = await calendar_sync_service.delete_event_from_google(
        integrations.calendar(db), google_event_id
    )
    if not result.success:
        raise RuntimeError(f"Google Calendar delete failed: {result.error}")
