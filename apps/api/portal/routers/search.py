"""Search router - global admin search."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.deps import get_current_admin, get_db
from portal.core.rate_limit import limiter
from portal.db.models import Admin
from portal.services import search_service

router = APIRouter()


@router.get("")
@limiter.limit(settings.RATE_LIMIT_SEARCH)
def global_search(
    request: Request,  # Required for slowapi rate limiter
    q: str = Query("", max_length=200, description="Search query"),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Search clients, dossiers, documents and appointment requests.

    Queries shorter than two characters return an empty list.
    """
    return search_service.global_search(db, q)
