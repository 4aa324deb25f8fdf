"""Sync run history for OneDrive and Google Calendar reconciliations."""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import SyncMode, SyncStatut, SyncType
from portal.db.models import SyncLog
from portal.db.types import utcnow


def compute_statut(successes: int, errors: int) -> SyncStatut:
    """success without errors, partial when both, error when nothing succeeded."""
    if errors == 0:
        return SyncStatut.SUCCESS
    if successes > 0:
        return SyncStatut.PARTIAL
    return SyncStatut.ERROR


def record_sync(
    db: Session,
    *,
    sync_type: SyncType,
    mode: SyncMode,
    processed: int = 0,
    created: int = 0,
    updated: int = 0,
    deleted: int = 0,
    errors: int = 0,
    message: str | None = None,
    details: dict | None = None,
    duration_ms: int | None = None,
    triggered_by_id: UUID | None = None,
    statut: SyncStatut | None = None,
) -> SyncLog:
    """Persist one run. ``statut`` defaults to ``compute_statut(processed - errors, errors)``."""
    if statut is None:
        statut = compute_statut(max(processed - errors, created + updated + deleted), errors)
    log = SyncLog(
        type=sync_type.value,
        mode=mode.value,
        statut=statut.value,
        elements_traites=processed,
        elements_crees=created,
        elements_modifies=updated,
        elements_supprimes=deleted,
        elements_erreur=errors,
        message=message,
        details=details,
        duree_ms=duration_ms,
        triggered_by_id=triggered_by_id,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def format_duration(duration_ms: int | None) -> str:
    if not duration_ms:
        return "N/A"
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    return f"{duration_ms / 1000:.1f}s"


def serialize_sync_log(log: SyncLog) -> dict:
    return {
        "id": str(log.id),
        "type": log.type,
        "mode": log.mode,
        "statut": log.statut,
        "elements_traites": log.elements_traites,
        "elements_crees": log.elements_crees,
        "elements_modifies": log.elements_modifies,
        "elements_supprimes": log.elements_supprimes,
        "elements_erreur": log.elements_erreur,
        "message": log.message,
        "details": log.details,
        "duree_ms": log.duree_ms,
        "duree": format_duration(log.duree_ms),
        "triggered_by_id": str(log.triggered_by_id) if log.triggered_by_id else None,
        "created_at": log.created_at.isoformat(),
    }


def get_history(
    db: Session, sync_type: SyncType | None = None, limit: int = 20
) -> list[SyncLog]:
    """Most recent runs first, optionally for one integration."""
    query = db.query(SyncLog)
    if sync_type is not None:
        query = query.filter(SyncLog.type == sync_type.value)
    return query.order_by(SyncLog.created_at.desc()).limit(limit).all()


def get_statistics(db: Session, days: int = 7) -> dict:
    since = utcnow() - timedelta(days=days)
    logs = db.query(SyncLog).filter(SyncLog.created_at >= since).all()

    total = len(logs)
    total_duration = sum(log.duree_ms or 0 for log in logs)
    return {
        "total_syncs": total,
        "successful_syncs": sum(1 for log in logs if log.statut == SyncStatut.SUCCESS.value),
        "failed_syncs": sum(1 for log in logs if log.statut == SyncStatut.ERROR.value),
        "items_processed": sum(log.elements_traites for log in logs),
        "average_duration": round(total_duration / total) if total else 0,
    }
