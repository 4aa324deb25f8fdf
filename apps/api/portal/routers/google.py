"""Google Calendar connection and sync (super admin), plus the public OAuth callback."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from portal.core.deps import get_db, get_integrations, require_csrf_header, require_super_admin
from portal.core.providers import Integrations
from portal.db.models import Admin
from portal.routers import oauth_flow
from portal.schemas.integration import CalendarSelection, SyncModeUpdate, SyncResponse
from portal.services import calendar_sync_service, sync_log_service

logger = logging.getLogger(__name__)

router = APIRouter()

CALLBACK_PATH = "/api/admin/google"
STATE_KEY = "google"


def _require_configured(integrations: Integrations) -> None:
    if not integrations.google.is_configured():
        raise HTTPException(status_code=503, detail="Google Calendar integration not configured")


@router.get("/status")
def get_status(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    status = integrations.google.connection_status(db)
    status["configured"] = integrations.google.is_configured()
    return status


@router.get("/authorize")
def authorize(
    response: Response,
    admin: Admin = Depends(require_super_admin),
    integrations: Integrations = Depends(get_integrations),
):
    """Returns the consent URL; the front-end redirects the browser to it."""
    _require_configured(integrations)
    return oauth_flow.start_authorization(response, integrations.google, STATE_KEY, CALLBACK_PATH)


@router.get("/callback")
async def callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    response = await oauth_flow.complete_authorization(
        request,
        db,
        integrations.google,
        state_key=STATE_KEY,
        redirect_key="google",
        cookie_path=CALLBACK_PATH,
        code=code,
        state=state,
        error=error,
    )
    integrations.health.invalidate()
    return response


@router.post("/disconnect", dependencies=[Depends(require_csrf_header)])
def disconnect(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    disconnected = integrations.google.disconnect(db)
    integrations.health.invalidate()
    return {"success": disconnected}


@router.post("/test", dependencies=[Depends(require_csrf_header)])
async def test_connection(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    return await integrations.calendar(db).check_health()


@router.get("/calendars")
async def list_calendars(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    calendars = await integrations.calendar(db).list_calendars()
    return [
        {
            "id": c.get("id"),
            "summary": c.get("summary"),
            "primary": bool(c.get("primary")),
            "access_role": c.get("accessRole"),
        }
        for c in calendars
    ]


@router.post("/select-calendar", dependencies=[Depends(require_csrf_header)])
def select_calendar(
    data: CalendarSelection,
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    record = integrations.google.set_selected_calendar(db, data.calendar_id, data.calendar_name)
    if not record:
        raise HTTPException(status_code=400, detail="Google Calendar not connected")
    integrations.health.invalidate()
    return {"success": True, "calendar_id": record.selected_calendar_id}


@router.post("/sync", response_model=SyncResponse, dependencies=[Depends(require_csrf_header)])
async def sync(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    """Manual two-way sync (push then pull)."""
    result = await calendar_sync_service.full_sync(
        db, integrations.calendar(db), pull=True, triggered_by_id=admin.id
    )
    details = result.push.details + (result.pull.details if result.pull else [])
    return SyncResponse(
        success=result.success,
        message=result.sync_log.message if result.sync_log else result.push.message,
        created=result.created,
        updated=result.updated,
        errors=result.errors,
        details=details,
    )


@router.get("/sync-history")
def sync_history(
    limit: int = Query(50, ge=1, le=200),
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    return [
        sync_log_service.serialize_sync_log(log)
        for log in calendar_sync_service.get_sync_history(db, limit=limit)
    ]


@router.get("/sync-mode")
def get_sync_mode(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    return {"mode": integrations.google.get_sync_mode(db)}


@router.put("/sync-mode", dependencies=[Depends(require_csrf_header)])
def set_sync_mode(
    data: SyncModeUpdate,
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    record = integrations.google.set_sync_mode(db, data.mode)
    if not record:
        raise HTTPException(status_code=400, detail="Google Calendar not connected")
    return {"mode": record.sync_mode}
