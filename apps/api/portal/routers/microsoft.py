"""OneDrive connection and sync (super admin), plus the public OAuth callback."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from portal.core.deps import get_db, get_integrations, require_csrf_header, require_super_admin
from portal.core.providers import Integrations
from portal.db.models import Admin
from portal.routers import oauth_flow
from portal.routers.dossiers import get_dossier_or_404
from portal.schemas.integration import SyncResponse
from portal.services import folder_service, onedrive_sync_service, sync_log_service

logger = logging.getLogger(__name__)

router = APIRouter()

CALLBACK_PATH = "/api/admin/microsoft"
STATE_KEY = "microsoft"


def _sync_response(result: onedrive_sync_service.OneDriveSyncResult) -> SyncResponse:
    return SyncResponse(
        success=result.success,
        message=result.message,
        created=result.created,
        updated=result.updated,
        deleted=result.deleted,
        errors=result.errors,
        details=result.details,
    )


@router.get("/status")
def get_status(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    status = integrations.microsoft.connection_status(db)
    status["configured"] = integrations.microsoft.is_configured()
    return status


@router.get("/authorize")
def authorize(
    response: Response,
    admin: Admin = Depends(require_super_admin),
    integrations: Integrations = Depends(get_integrations),
):
    if not integrations.microsoft.is_configured():
        raise HTTPException(status_code=503, detail="OneDrive integration not configured")
    return oauth_flow.start_authorization(response, integrations.microsoft, STATE_KEY, CALLBACK_PATH)


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
        integrations.microsoft,
        state_key=STATE_KEY,
        redirect_key="onedrive",
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
    disconnected = integrations.microsoft.disconnect(db)
    integrations.health.invalidate()
    return {"success": disconnected}


@router.post("/test", dependencies=[Depends(require_csrf_header)])
async def test_connection(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    return await integrations.drive(db).check_health()


@router.post("/sync", response_model=SyncResponse, dependencies=[Depends(require_csrf_header)])
async def sync_all(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    result = await onedrive_sync_service.sync_all_dossiers(db, integrations.drive(db), admin.id)
    return _sync_response(result)


@router.post("/sync/{dossier_id}", response_model=SyncResponse, dependencies=[Depends(require_csrf_header)])
async def sync_dossier(
    dossier_id: UUID,
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    get_dossier_or_404(db, dossier_id)
    result = await onedrive_sync_service.sync_dossier(db, integrations.drive(db), dossier_id, admin.id)
    return _sync_response(result)


@router.post("/initialize", dependencies=[Depends(require_csrf_header)])
async def initialize(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    """Create the root structure, then a folder for every dossier that has none."""
    drive = integrations.drive(db)
    root = await folder_service.initialize_root_structure(drive)
    if not root.success:
        raise HTTPException(status_code=502, detail=root.error)
    result = await onedrive_sync_service.initialize_all_dossiers(db, drive, admin.id)
    return _sync_response(result)


@router.post("/reverse-sync", dependencies=[Depends(require_csrf_header)])
async def reverse_sync(
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
):
    result = await onedrive_sync_service.reverse_sync(db, integrations.drive(db), admin.id)
    body = _sync_response(result).model_dump()
    body.update(
        linked_dossiers=result.linked_dossiers,
        unmatched_clients=result.unmatched_clients,
        unmatched_dossiers=result.unmatched_dossiers,
    )
    return body


@router.get("/sync-history")
def sync_history(
    limit: int = Query(20, ge=1, le=200),
    admin: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    return [
        sync_log_service.serialize_sync_log(log)
        for log in onedrive_sync_service.get_sync_history(db, limit=limit)
    ]
