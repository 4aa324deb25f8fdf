"""Notification service - in-app notifications for admins and clients."""

from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import ActorType
from portal.db.models import Notification


def notify(
    db: Session,
    recipient_type: ActorType,
    recipient_id: UUID,
    notification_type: str,
    titre: str,
    message: str | None = None,
    lien: str | None = None,
) -> Notification:
    """Queue a notification row. Flushes only; the caller commits."""
    notification = Notification(
        destinataire_type=recipient_type.value,
        destinataire_id=recipient_id,
        type=notification_type,
        titre=titre,
        message=message,
        lien=lien,
    )
    db.add(notification)
    db.flush()
    return notification


def _scoped(db: Session, recipient_type: ActorType, recipient_id: UUID):
    return db.query(Notification).filter(
        Notification.destinataire_type == recipient_type.value,
        Notification.destinataire_id == recipient_id,
    )


def list_notifications(
    db: Session,
    recipient_type: ActorType,
    recipient_id: UUID,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    query = _scoped(db, recipient_type, recipient_id)
    if unread_only:
        query = query.filter(Notification.lu.is_(False))
    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def unread_count(db: Session, recipient_type: ActorType, recipient_id: UUID) -> int:
    return _scoped(db, recipient_type, recipient_id).filter(Notification.lu.is_(False)).count()


def get_notification(
    db: Session, notification_id: UUID, recipient_type: ActorType, recipient_id: UUID
) -> Notification | None:
    return (
        _scoped(db, recipient_type, recipient_id)
        .filter(Notification.id == notification_id)
        .first()
    )


def mark_read(db: Session, notification: Notification) -> Notification:
    notification.lu = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, recipient_type: ActorType, recipient_id: UUID) -> int:
    count = (
        _scoped(db, recipient_type, recipient_id)
        .filter(Notification.lu.is_(False))
        .update({Notification.lu: True}, synchronize_session=False)
    )
    db.commit()
    return count


def delete_notification(db: Session, notification: Notification) -> None:
    db.delete(notification)
    db.commit()
