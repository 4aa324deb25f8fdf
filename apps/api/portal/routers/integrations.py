"""Integration health router - status of OneDrive and Google Calendar."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, get_integrations, require_csrf_header
from portal.core.providers import Integrations
from portal.db.models import Admin

router = APIRouter()


@router.get("/health")
async def get_health(
    force: bool = False,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    """Cached report; ``force`` bypasses the cache."""
    return await integrations.health.get_health_report(db, integrations, force_refresh=force)


@router.get("/sync-history")
def get_sync_history(
    limit: int = Query(20, ge=1, le=100),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    return integrations.health.get_sync_history(db, limit=limit)


@router.get("/statistics")
def get_statistics(
    days: int = Query(7, ge=1, le=90),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    return integrations.health.get_sync_statistics(db, days=days)


@router.post("/health-check", dependencies=[Depends(require_csrf_header)])
async def run_health_check(
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    return await integrations.health.perform_health_checks(db, integrations)
