"""
Integration health reporting for OneDrive and Google Calendar.

The full report is cached in memory for ``cache_seconds`` so the settings
page can poll it without hitting both providers each time.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.db.enums import SyncType
from portal.db.types import utcnow
from portal.services import sync_log_service

if TYPE_CHECKING:
    from portal.core.providers import Integrations

logger = logging.getLogger(__name__)

ONEDRIVE_NOT_CONFIGURED = (
    "OneDrive not configured. Add MICROSOFT_CLIENT_ID and MICROSOFT_CLIENT_SECRET to .env"
)
GOOGLE_NOT_CONFIGURED = (
    "Google Calendar not configured. Add GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET to .env"
)


def _status(name: str, type_: SyncType, **fields) -> dict[str, Any]:
    status = {
        "name": name,
        "type": type_.value,
        "configured": False,
        "connected": False,
        "healthy": False,
        "last_health_check": None,
        "account_email": None,
        "account_name": None,
        "error": None,
        "details": None,
    }
    status.update(fields)
    return status


class IntegrationHealthService:
    """Per-process health cache. One instance lives on the Integrations container."""

    def __init__(
        self,
        cache_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cache_seconds = (
            settings.HEALTH_CACHE_SECONDS if cache_seconds is None else cache_seconds
        )
        self.clock = clock
        self._report: dict[str, Any] | None = None
        self._report_at: float | None = None

    def invalidate(self) -> None:
        self._report = None
        self._report_at = None

    async def onedrive_status(self, db: Session, integrations: "Integrations") -> dict[str, Any]:
        name = "OneDrive / Microsoft"
        tokens = integrations.microsoft
        if not tokens.is_configured():
            return _status(name, SyncType.ONEDRIVE, error=ONEDRIVE_NOT_CONFIGURED)

        connection = tokens.connection_status(db)
        if not connection["connected"]:
            return _status(name, SyncType.ONEDRIVE, configured=True)

        check = await integrations.drive(db).check_health()
        details = None
        quota = check.get("quota")
        if quota:
            used = quota.get("used") or 0
            total = quota.get("total") or 0
            details = {
                "quota_used": used,
                "quota_total": total,
                "quota_percentage": round(used / total * 100) if total > 0 else 0,
            }
        return _status(
            name,
            SyncType.ONEDRIVE,
            configured=True,
            connected=True,
            healthy=check["healthy"],
            last_health_check=utcnow().isoformat(),
            account_email=connection.get("account_email"),
            account_name=connection.get("account_name"),
            error=check.get("error"),
            details=details,
        )

    async def google_calendar_status(
        self, db: Session, integrations: "Integrations"
    ) -> dict[str, Any]:
        name = "Google Calendar"
        tokens = integrations.google
        if not tokens.is_configured():
            return _status(name, SyncType.GOOGLE_CALENDAR, error=GOOGLE_NOT_CONFIGURED)

        connection = tokens.connection_status(db)
        if not connection["connected"]:
            return _status(name, SyncType.GOOGLE_CALENDAR, configured=True)

        check = await integrations.calendar(db).check_health()
        return _status(
            name,
            SyncType.GOOGLE_CALENDAR,
            configured=True,
            connected=True,
            healthy=check["healthy"],
            last_health_check=utcnow().isoformat(),
            account_email=connection.get("account_email"),
            account_name=connection.get("account_name"),
            error=check.get("error"),
            details={
                "calendars_count": check.get("calendars_count"),
                "selected_calendar_id": connection.get("selected_calendar_id"),
                "selected_calendar_name": connection.get("selected_calendar_name"),
                "sync_mode": connection.get("sync_mode"),
            },
        )

    async def get_health_report(
        self, db: Session, integrations: "Integrations", force_refresh: bool = False
    ) -> dict[str, Any]:
        """Status of both integrations plus the last 10 runs, cached for the TTL."""
        now = self.clock()
        if (
            not force_refresh
            and self._report is not None
            and self._report_at is not None
            and now - self._report_at < self.cache_seconds
        ):
            return self._report

        statuses = [
            await self.onedrive_status(db, integrations),
            await self.google_calendar_status(db, integrations),
        ]
        history = [
            sync_log_service.serialize_sync_log(log)
            for log in sync_log_service.get_history(db, limit=10)
        ]
        report = {
            "timestamp": utcnow().isoformat(),
            "overall_healthy": all(
                not s["configured"] or (s["connected"] and s["healthy"]) for s in statuses
            ),
            "integrations": statuses,
            "recent_sync_history": history,
        }
        self._report = report
        self._report_at = now
        return report

    async def perform_health_checks(
        self, db: Session, integrations: "Integrations"
    ) -> dict[str, dict[str, Any]]:
        """Probe both providers now, bypassing the cache."""
        results = {}
        probes = (
            ("onedrive", integrations.microsoft, integrations.drive),
            ("google_calendar", integrations.google, integrations.calendar),
        )
        for key, tokens, build_client in probes:
            if not tokens.is_configured():
                results[key] = {"healthy": False, "error": "Not configured"}
            elif not tokens.is_connected(db):
                results[key] = {"healthy": False, "error": "Not connected"}
            else:
                check = await build_client(db).check_health()
                results[key] = {"healthy": check["healthy"], "error": check.get("error")}
        self.invalidate()
        logger.info(
            "Integration health checks: onedrive=%s google_calendar=%s",
            results["onedrive"]["healthy"],
            results["google_calendar"]["healthy"],
        )
        return results

    def get_sync_history(self, db: Session, limit: int = 20) -> list[dict[str, Any]]:
        return [
            sync_log_service.serialize_sync_log(log)
            for log in sync_log_service.get_history(db, limit=limit)
        ]

    def get_sync_statistics(self, db: Session, days: int = 7) -> dict[str, Any]:
        return sync_log_service.get_statistics(db, days=days)
