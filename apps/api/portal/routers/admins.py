"""Staff accounts router (super admin only). Super admin targets are read-only."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_db, require_csrf_header, require_super_admin
from portal.db.models import Admin
from portal.schemas.admin import AdminCreate, AdminRead, AdminUpdate
from portal.schemas.common import MessageResponse
from portal.services import admin_service
from portal.services.client_service import DuplicateEmailError

router = APIRouter(dependencies=[Depends(require_super_admin)])


def _get_or_404(db: Session, admin_id: UUID) -> Admin:
    admin = admin_service.get_admin(db, admin_id)
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    return admin


@router.get("", response_model=list[AdminRead])
def list_admins(db: Session = Depends(get_db)):
    return admin_service.list_admins(db)


@router.post("", status_code=201, dependencies=[Depends(require_csrf_header)])
def create_admin(
    data: AdminCreate,
    current: Admin = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    try:
        admin, password = admin_service.create_admin(db, data, current.id)
    except DuplicateEmailError:
        raise HTTPException(status_code=409, detail="Email already in use")
    return {"admin": AdminRead.model_validate(admin), "generated_password": password}


@router.get("/{admin_id}", response_model=AdminRead)
def get_admin(admin_id: UUID, db: Session = Depends(get_db)):
    return _get_or_404(db, admin_id)


@router.put("/{admin_id}", response_model=AdminRead, dependencies=[Depends(require_csrf_header)])
def update_admin(admin_id: UUID, data: AdminUpdate, db: Session = Depends(get_db)):
    admin = _get_or_404(db, admin_id)
    if data.email and data.email.lower() != admin.email:
        if admin_service.get_admin_by_email(db, data.email):
            raise HTTPException(status_code=409, detail="Email already in use")
    try:
        return admin_service.update_admin(db, admin, data)
    except admin_service.ProtectedAccountError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.delete("/{admin_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def delete_admin(admin_id: UUID, db: Session = Depends(get_db)):
    admin = _get_or_404(db, admin_id)
    try:
        admin_service.delete_admin(db, admin)
    except admin_service.ProtectedAccountError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return MessageResponse(message="Admin deleted")


@router.post("/{admin_id}/toggle-status", dependencies=[Depends(require_csrf_header)])
def toggle_status(admin_id: UUID, db: Session = Depends(get_db)):
    admin = _get_or_404(db, admin_id)
    try:
        admin = admin_service.toggle_status(db, admin)
    except admin_service.ProtectedAccountError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return {"actif": admin.actif}


@router.post("/{admin_id}/reset-password", dependencies=[Depends(require_csrf_header)])
def reset_password(admin_id: UUID, db: Session = Depends(get_db)):
    admin = _get_or_404(db, admin_id)
    try:
        password = admin_service.reset_password(db, admin)
    except admin_service.ProtectedAccountError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return {"message": "Password reset", "new_password": password}
