"""Dashboard router - admin home page counters and lists."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db
from portal.db.models import Admin
from portal.services import dashboard_service

router = APIRouter()


@router.get("")
def get_dashboard(admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    return dashboard_service.get_admin_dashboard(db)
