"""
In-app notifications.
"""
from typing import Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session

from database.models import Notification, NotificationType
from core.exceptions import NotFoundError


class NotificationService:
    """Create and read per-account notifications."""

    @staticmethod
    def notify(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.SYSTEM,
        reference_id: Optional[int] = None,
        reference_table: Optional[str] = None,
    ) -> Notification:
        """Queue a notification in the current transaction (caller commits)."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            reference_id=reference_id,
            reference_table=reference_table,
        )
        db.add(notification)
        return notification

    @staticmethod
    def notify_many(
        db: Session,
        user_ids: Iterable[int],
        title: str,
        message: str,
        notification_type: NotificationType,
        reference_id: Optional[int] = None,
        reference_table: Optional[str] = None,
    ) -> List[Notification]:
        return [
            NotificationService.notify(db, uid, title, message, notification_type, reference_id, reference_table)
            for uid in user_ids
        ]

    @staticmethod
    def list_for_user(
        db: Session,
        user_id: int,
        notification_type: Optional[NotificationType] = None,
        is_read: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Notification], int]:
        """
        Own notifications, newest first.

        Returns:
            Tuple of (page, total matching)
        """
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if notification_type is not None:
            query = query.filter(Notification.type == notification_type)
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        total = query.count()
        rows = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def mark_read(db: Session, user_id: int, notification_id: int) -> Notification:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            raise NotFoundError("Notification not found")
        notification.is_read = True
        db.commit()
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        """Mark every unread notification read; returns how many changed."""
        count = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).update({Notification.is_read: True}, synchronize_session=False)
        db.commit()
        return count

    @staticmethod
    def unread_count(db: Session, user_id: int) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).count()
