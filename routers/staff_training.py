"""
Staff training management: sessions, attendance and completion.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Any, List, Optional

from database.models import Account
from auth.dependencies import get_db_session, require_staff_or_above
from services.audit_service import AuditService
from services.company_scope import CompanyScope
from services.serializers import registration_to_dict, training_hours_to_dict, training_to_dict
from services.training_service import TrainingService


router = APIRouter(prefix="/api/staff/training", tags=["staff-training"])


class TrainingPayload(BaseModel):
    """Create/update body; dates are ISO strings."""
    title: Optional[str] = None
    description: Optional[str] = None
    company: Optional[str] = None
    training_category: Optional[str] = None
    scheduled_date: Optional[str] = None
    end_date: Optional[str] = None
    location: Optional[str] = None
    capacity: Optional[Any] = None
    prerequisites: Optional[str] = None
    status: Optional[str] = None


class AttendanceRequest(BaseModel):
    reservist_ids: Optional[Any] = None


class CompleteRequest(BaseModel):
    awards: Optional[Any] = None
    training_category: Optional[str] = None


def _with_stats(session, stats: dict) -> dict:
    data = training_to_dict(session)
    data.update(stats)
    return data


@router.get("")
async def list_training(
    status_filter: Optional[str] = Query(None, alias="status"),
    company: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Sessions for the caller's companies plus system-wide ones, with registration counters."""
    sessions, total = TrainingService.list_sessions(
        db, CompanyScope.for_account(current_user), status=status_filter, company=company,
        limit=limit, offset=offset
    )
    stats = TrainingService.registration_stats(db, [s.id for s in sessions])
    return {
        "success": True,
        "data": [_with_stats(s, stats[s.id]) for s in sessions],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_training(
    body: TrainingPayload,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    session = TrainingService.create(
        db, current_user, CompanyScope.for_account(current_user), body.model_dump(exclude_unset=True)
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="training_create",
        user_id=current_user.id,
        resource_type="training_session",
        resource_id=session.id,
        details={"title": session.title, "company": session.company}
    )
    return {"success": True, "data": training_to_dict(session), "message": "Training session created successfully"}


@router.get("/{session_id}")
async def get_training(
    session_id: int,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Session detail with its registrations."""
    session = TrainingService.get_session(db, CompanyScope.for_account(current_user), session_id)
    data = _with_stats(session, TrainingService.registration_stats(db, [session.id])[session.id])
    data["registrations"] = [registration_to_dict(r) for r in TrainingService.registrations(db, session.id)]
    return {"success": True, "data": data}


@router.put("/{session_id}")
async def update_training(
    session_id: int,
    body: TrainingPayload,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    changes = body.model_dump(exclude_unset=True)
    session = TrainingService.update(db, current_user, CompanyScope.for_account(current_user), session_id, changes)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="training_update",
        user_id=current_user.id,
        resource_type="training_session",
        resource_id=session.id,
        details={"new_values": changes}
    )
    return {"success": True, "data": training_to_dict(session), "message": "Training session updated successfully"}


@router.delete("/{session_id}")
async def delete_training(
    session_id: int,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    TrainingService.delete(db, current_user, CompanyScope.for_account(current_user), session_id)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="training_delete",
        user_id=current_user.id,
        resource_type="training_session",
        resource_id=session_id
    )
    return {"success": True, "message": "Training session deleted successfully"}


@router.post("/{session_id}/attendance")
async def mark_attendance(
    session_id: int,
    body: AttendanceRequest,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Listed reservists attended; other registrants become no-shows."""
    result = TrainingService.mark_attendance(
        db, current_user, CompanyScope.for_account(current_user), session_id, body.reservist_ids
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="training_attendance",
        user_id=current_user.id,
        resource_type="training_session",
        resource_id=session_id,
        details={"attended": [r.reservist_id for r in result["marked"]],
                 "no_show": [r.reservist_id for r in result["no_show"]]}
    )
    return {
        "success": True,
        "data": {
            "marked_count": len(result["marked"]),
            "no_show_count": len(result["no_show"]),
            "registrations": [registration_to_dict(r) for r in result["marked"]],
        },
        "message": f"Marked {len(result['marked'])} reservist(s) as attended",
    }


@router.post("/{session_id}/complete")
async def complete_training(
    session_id: int,
    body: CompleteRequest,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Award training hours and close the session."""
    result = TrainingService.complete(
        db, current_user, CompanyScope.for_account(current_user), session_id,
        body.awards, training_category=body.training_category
    )
    hours: List = result["hours"]
    AuditService.log_from_request(
        db=db,
        request=request,
        action="training_complete",
        user_id=current_user.id,
        resource_type="training_session",
        resource_id=session_id,
        details={"awards": [
            {"reservist_id": h.reservist_id, "hours": h.hours_completed, "status": h.completion_status.value}
            for h in hours
        ]}
    )
    return {
        "success": True,
        "data": {
            "training_session": training_to_dict(result["session"]),
            "hours_awarded": [training_hours_to_dict(h) for h in hours],
            "notifications_sent": result["notifications_sent"],
        },
        "message": "Training completed successfully",
    }
