"""
Notification endpoints for every signed-in role.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from database.models import Account, NotificationType
from auth.dependencies import get_db_session, require_any_role
from services.notification_service import NotificationService
from services.serializers import notification_to_dict
from core.validators import parse_enum


router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    type_filter: Optional[str] = Query(None, alias="type"),
    read: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: Account = Depends(require_any_role),
    db: Session = Depends(get_db_session)
):
    """Own notifications, newest first."""
    notification_type = parse_enum(type_filter, NotificationType, "type") if type_filter else None
    rows, total = NotificationService.list_for_user(
        db, current_user.id, notification_type=notification_type, is_read=read, limit=limit, offset=offset
    )
    return {
        "success": True,
        "data": [notification_to_dict(n) for n in rows],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }


@router.get("/unread-count")
async def unread_count(
    current_user: Account = Depends(require_any_role),
    db: Session = Depends(get_db_session)
):
    return {"success": True, "data": {"count": NotificationService.unread_count(db, current_user.id)}}


@router.put("/mark-all-read")
async def mark_all_read(
    current_user: Account = Depends(require_any_role),
    db: Session = Depends(get_db_session)
):
    count = NotificationService.mark_all_read(db, current_user.id)
    return {
        "success": True,
        "data": {"count": count},
        "message": f"{count} notification(s) marked as read",
    }


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    current_user: Account = Depends(require_any_role),
    db: Session = Depends(get_db_session)
):
    """Mark one of the caller's own notifications read."""
    notification = NotificationService.mark_read(db, current_user.id, notification_id)
    return {"success": True, "data": notification_to_dict(notification)}
