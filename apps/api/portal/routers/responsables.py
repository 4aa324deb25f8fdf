"""Staff that can be made responsible for a client or dossier."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db
from portal.db.models import Admin
from portal.schemas.admin import ResponsableRead
from portal.services import admin_service

router = APIRouter()


@router.get("", response_model=list[ResponsableRead])
def list_responsables(admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    return admin_service.list_responsables(db)
