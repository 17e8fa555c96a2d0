"""
Staff home: own profile, dashboard counters and announcements.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List, Optional

from database.models import Account, AccountRole
from auth.dependencies import get_db_session, require_staff_or_above
from services.announcement_service import AnnouncementService
from services.audit_service import AuditService
from services.company_scope import CompanyScope
from services.serializers import announcement_to_dict, staff_to_dict
from services.staff_service import StaffService


router = APIRouter(prefix="/api/staff", tags=["staff"])


class AnnouncementPayload(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    priority: Optional[str] = None
    target_companies: Optional[List[str]] = None
    target_roles: Optional[List[str]] = None
    is_active: Optional[bool] = None
    publish_now: Optional[bool] = None
    expires_at: Optional[str] = None


@router.get("/me")
async def get_staff_profile(
    current_user: Account = Depends(require_staff_or_above)
):
    """Staff profile with assigned companies."""
    if current_user.role == AccountRole.STAFF and current_user.staff_details is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff account not found")
    return {"success": True, "data": staff_to_dict(current_user)}


@router.get("/dashboard-stats")
async def dashboard_stats(
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    return {"success": True, "data": StaffService.dashboard_stats(db, CompanyScope.for_account(current_user))}


@router.get("/announcements")
async def list_announcements(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Announcements that are untargeted or target one of the caller's companies."""
    rows, total = AnnouncementService.list_announcements(
        db, CompanyScope.for_account(current_user), status=status_filter, priority=priority,
        limit=limit, offset=offset
    )
    return {
        "success": True,
        "data": [announcement_to_dict(a) for a in rows],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }


@router.post("/announcements", status_code=status.HTTP_201_CREATED)
async def create_announcement(
    body: AnnouncementPayload,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    announcement, sent = AnnouncementService.create(
        db, current_user, CompanyScope.for_account(current_user), body.model_dump(exclude_unset=True)
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="announcement_create",
        user_id=current_user.id,
        resource_type="announcement",
        resource_id=announcement.id,
        details={"published": announcement.published_at is not None, "notifications_sent": sent}
    )
    return {
        "success": True,
        "data": announcement_to_dict(announcement),
        "notifications_sent": sent,
        "message": "Announcement created successfully",
    }


@router.get("/announcements/{announcement_id}")
async def get_announcement(
    announcement_id: int,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    announcement = AnnouncementService.get_announcement(db, CompanyScope.for_account(current_user), announcement_id)
    return {"success": True, "data": announcement_to_dict(announcement)}


@router.put("/announcements/{announcement_id}")
async def update_announcement(
    announcement_id: int,
    body: AnnouncementPayload,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    changes = body.model_dump(exclude_unset=True)
    announcement, sent = AnnouncementService.update(
        db, current_user, CompanyScope.for_account(current_user), announcement_id, changes
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="announcement_update",
        user_id=current_user.id,
        resource_type="announcement",
        resource_id=announcement.id,
        details={"new_values": changes, "notifications_sent": sent}
    )
    return {"success": True, "data": announcement_to_dict(announcement), "message": "Announcement updated successfully"}


@router.delete("/announcements/{announcement_id}")
async def delete_announcement(
    announcement_id: int,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    AnnouncementService.delete(db, current_user, CompanyScope.for_account(current_user), announcement_id)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="announcement_delete",
        user_id=current_user.id,
        resource_type="announcement",
        resource_id=announcement_id
    )
    return {"success": True, "message": "Announcement deleted successfully"}
