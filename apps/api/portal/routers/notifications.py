"""Notifications router (admin inbox)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.enums import ActorType
from portal.db.models import Admin
from portal.schemas.common import MessageResponse, Page, build_page
from portal.schemas.portal import NotificationRead
from portal.services import notification_service

router = APIRouter()


def _get_or_404(db: Session, notification_id: UUID, admin: Admin):
    notification = notification_service.get_notification(db, notification_id, ActorType.ADMIN, admin.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.get("", response_model=Page)
def list_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    items, total = notification_service.list_notifications(
        db, ActorType.ADMIN, admin.id, page=page, per_page=limit, unread_only=unread_only
    )
    return build_page([NotificationRead.model_validate(n) for n in items], total, page, limit)


@router.get("/unread-count")
def unread_count(admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    return {"count": notification_service.unread_count(db, ActorType.ADMIN, admin.id)}


@router.post("/read-all", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def mark_all_read(admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    count = notification_service.mark_all_read(db, ActorType.ADMIN, admin.id)
    return MessageResponse(message=f"{count} notifications marked as read")


@router.post("/{notification_id}/read", response_model=NotificationRead, dependencies=[Depends(require_csrf_header)])
def mark_read(
    notification_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return notification_service.mark_read(db, _get_or_404(db, notification_id, admin))


@router.delete("/{notification_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def delete_notification(
    notification_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    notification_service.delete_notification(db, _get_or_404(db, notification_id, admin))
    return MessageResponse(message="Notification deleted")
