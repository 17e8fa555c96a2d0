"""
Staff RIDS (Reservist Information Data Sheet) endpoints.
"""
from fastapi import APIRouter, Body, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Any, Dict, Optional

from database.models import Account
from auth.dependencies import get_db_session, require_staff_or_above
from services.audit_service import AuditService
from services.company_scope import CompanyScope
from services.rids_service import RidsService
from services.serializers import rids_to_dict, row_to_dict
import config


router = APIRouter(prefix="/api/staff/rids", tags=["staff-rids"])


class RidsPersonalInfo(BaseModel):
    """Section 2 personal information and biometric URLs."""
    present_occupation: Optional[str] = None
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    office_tel_nr: Optional[str] = None
    home_address_street: Optional[str] = None
    home_address_city: Optional[str] = None
    home_address_province: Optional[str] = None
    home_address_zip: Optional[str] = None
    res_tel_nr: Optional[str] = None
    mobile_tel_nr: Optional[str] = None
    birth_place: Optional[str] = None
    religion: Optional[str] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    marital_status: Optional[str] = None
    sex: Optional[str] = None
    fb_account: Optional[str] = None
    special_skills: Optional[str] = None
    languages_spoken: Optional[str] = None
    photo_url: Optional[str] = None
    thumbmark_url: Optional[str] = None
    signature_url: Optional[str] = None


class RidsCreate(RidsPersonalInfo):
    reservist_id: Optional[int] = None


class RejectRequest(BaseModel):
    rejection_reason: Optional[str] = None


class RidsStatusChange(BaseModel):
    new_status: Optional[str] = None
    reason: Optional[str] = None


def _audit(db: Session, request: Request, user: Account, action: str, rids_id: int, details: dict = None):
    AuditService.log_from_request(
        db=db,
        request=request,
        action=action,
        user_id=user.id,
        resource_type="rids",
        resource_id=rids_id,
        details=details
    )


@router.get("")
async def list_rids(
    status_filter: Optional[str] = Query(None, alias="status"),
    company: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    rows, pagination = RidsService.list_rids(
        db, CompanyScope.for_account(current_user), status=status_filter, company=company,
        search=search, page=page, limit=limit
    )
    return {"success": True, "data": [rids_to_dict(r) for r in rows], "pagination": pagination}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_rids(
    body: RidsCreate,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Create a draft RIDS for a reservist (one per reservist)."""
    rids = RidsService.create(db, current_user, CompanyScope.for_account(current_user),
                              body.model_dump(exclude_unset=True))
    _audit(db, request, current_user, "rids_create", rids.id, {"reservist_id": rids.reservist_id})
    return {"success": True, "data": rids_to_dict(rids), "message": "RIDS created successfully"}


@router.get("/{rids_id}")
async def get_rids(
    rids_id: int,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """RIDS header with all eight sections."""
    rids = RidsService.get_rids(db, CompanyScope.for_account(current_user), rids_id)
    return {"success": True, "data": rids_to_dict(rids, RidsService.get_sections(db, rids))}


@router.put("/{rids_id}")
async def update_rids(
    rids_id: int,
    body: RidsPersonalInfo,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    changes = body.model_dump(exclude_unset=True)
    rids = RidsService.update(db, current_user, CompanyScope.for_account(current_user), rids_id, changes)
    _audit(db, request, current_user, "rids_update", rids.id, {"new_values": changes})
    return {"success": True, "data": rids_to_dict(rids), "message": "RIDS updated successfully"}


@router.delete("/{rids_id}")
async def delete_rids(
    rids_id: int,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Delete a draft RIDS and its sections."""
    RidsService.delete(db, current_user, CompanyScope.for_account(current_user), rids_id)
    _audit(db, request, current_user, "rids_delete", rids_id)
    return {"success": True, "message": "RIDS deleted successfully"}


@router.get("/{rids_id}/history")
async def get_rids_history(
    rids_id: int,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    rids = RidsService.get_rids(db, CompanyScope.for_account(current_user), rids_id)
    return {"success": True, "data": [row_to_dict(h) for h in RidsService.history(db, rids)]}


@router.put("/{rids_id}/submit")
async def submit_rids(
    rids_id: int,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    rids = RidsService.transition(db, current_user, CompanyScope.for_account(current_user), rids_id, "submit")
    _audit(db, request, current_user, "rids_submit", rids.id)
    return {"success": True, "data": rids_to_dict(rids), "message": "RIDS submitted successfully"}


@router.put("/{rids_id}/approve")
async def approve_rids(
    rids_id: int,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    rids = RidsService.transition(db, current_user, CompanyScope.for_account(current_user), rids_id, "approve")
    _audit(db, request, current_user, "rids_approve", rids.id)
    return {"success": True, "data": rids_to_dict(rids), "message": "RIDS approved successfully"}


@router.put("/{rids_id}/reject")
async def reject_rids(
    rids_id: int,
    body: RejectRequest,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Reject a submitted RIDS; a non-empty reason is required."""
    rids = RidsService.transition(
        db, current_user, CompanyScope.for_account(current_user), rids_id, "reject", body.rejection_reason
    )
    _audit(db, request, current_user, "rids_reject", rids.id, {"rejection_reason": rids.rejection_reason})
    return {"success": True, "data": rids_to_dict(rids), "message": "RIDS rejected"}


@router.put("/{rids_id}/change-status")
async def change_rids_status(
    rids_id: int,
    body: RidsStatusChange,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Administrator override of the RIDS status."""
    scope = CompanyScope.for_account(current_user)
    old_status = RidsService.get_rids(db, scope, rids_id).status.value
    rids = RidsService.change_status(db, current_user, scope, rids_id, body.new_status, body.reason)
    _audit(db, request, current_user, "rids_status_change", rids.id, {
        "old_values": {"status": old_status},
        "new_values": {"status": rids.status.value, "reason": body.reason},
    })
    return {"success": True, "data": rids_to_dict(rids), "message": f"RIDS status changed to {rids.status.value}"}


@router.post("/{rids_id}/sections/{section}", status_code=status.HTTP_201_CREATED)
async def add_section_entry(
    rids_id: int,
    section: str,
    request: Request,
    body: Dict[str, Any] = Body(...),
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    entry = RidsService.add_entry(db, current_user, CompanyScope.for_account(current_user), rids_id, section, body)
    _audit(db, request, current_user, "rids_section_add", rids_id, {"section": section, "entry_id": entry.id})
    return {"success": True, "data": row_to_dict(entry)}


@router.put("/{rids_id}/sections/{section}/{entry_id}")
async def update_section_entry(
    rids_id: int,
    section: str,
    entry_id: int,
    request: Request,
    body: Dict[str, Any] = Body(...),
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    entry = RidsService.update_entry(
        db, current_user, CompanyScope.for_account(current_user), rids_id, section, entry_id, body
    )
    _audit(db, request, current_user, "rids_section_update", rids_id, {"section": section, "entry_id": entry_id})
    return {"success": True, "data": row_to_dict(entry)}


@router.delete("/{rids_id}/sections/{section}/{entry_id}")
async def delete_section_entry(
    rids_id: int,
    section: str,
    entry_id: int,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    RidsService.delete_entry(db, current_user, CompanyScope.for_account(current_user), rids_id, section, entry_id)
    _audit(db, request, current_user, "rids_section_delete", rids_id, {"section": section, "entry_id": entry_id})
    return {"success": True, "message": "Entry deleted successfully"}


@router.post("/{rids_id}/upload-biometric")
async def upload_biometric(
    rids_id: int,
    request: Request,
    file: UploadFile = File(...),
    file_type: str = Form(...),
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Upload a photo, thumbmark or signature image (max 5 MB)."""
    content = await file.read()
    rids, url = RidsService.upload_biometric(
        db, current_user, CompanyScope.for_account(current_user), rids_id,
        file_type, content, file.content_type, file.filename
    )
    _audit(db, request, current_user, "rids_biometric_upload", rids.id, {"file_type": file_type})
    return {"success": True, "data": {"file_type": file_type, "url": url, "rids": rids_to_dict(rids)}}
