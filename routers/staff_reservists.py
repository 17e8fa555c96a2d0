"""
Staff reservist management, scoped to the caller's assigned companies.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from database.models import Account
from auth.dependencies import get_db_session, require_staff_or_above
from services.account_service import AccountService
from services.audit_service import AuditService
from services.company_scope import CompanyScope
from services.serializers import reservist_to_dict
from core.pagination import empty_page
import config


router = APIRouter(prefix="/api/staff/reservists", tags=["staff-reservists"])


class ReservistUpdate(BaseModel):
    """Editable profile and reservist details."""
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    rank: Optional[str] = None
    company: Optional[str] = None
    reservist_status: Optional[str] = None
    mos: Optional[str] = None
    date_of_birth: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None


class StatusChangeRequest(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = None


@router.get("")
async def list_reservists(
    status_filter: Optional[str] = Query(None, alias="status"),
    company: Optional[str] = Query(None),
    rank: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """
    Reservists in the caller's companies.
    Staff without assignments get an empty page; filtering by another company is refused.
    """
    scope = CompanyScope.for_account(current_user)
    if scope.is_empty:
        return {"success": True, "data": [], "pagination": empty_page(page, limit)}

    rows, pagination = AccountService.list_reservists(
        db, scope, status=status_filter, company=company, rank=rank, search=search,
        sort_by=sort_by, sort_order=sort_order, page=page, limit=limit
    )
    return {"success": True, "data": [reservist_to_dict(a) for a in rows], "pagination": pagination}


@router.get("/{reservist_id}")
async def get_reservist(
    reservist_id: int,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    account = AccountService.get_reservist(db, CompanyScope.for_account(current_user), reservist_id)
    return {"success": True, "data": reservist_to_dict(account)}


@router.put("/{reservist_id}")
async def update_reservist(
    reservist_id: int,
    body: ReservistUpdate,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    account, old_values = AccountService.update_reservist(
        db, current_user, CompanyScope.for_account(current_user), reservist_id,
        body.model_dump(exclude_unset=True)
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="reservist_update",
        user_id=current_user.id,
        resource_type="account",
        resource_id=account.id,
        details={"old_values": old_values, "new_values": body.model_dump(exclude_unset=True)}
    )
    return {"success": True, "data": reservist_to_dict(account), "message": "Reservist updated successfully"}


@router.put("/{reservist_id}/change-status")
async def change_status(
    reservist_id: int,
    body: StatusChangeRequest,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Toggle a reservist between active and inactive with a reason."""
    account, old = AccountService.staff_change_status(
        db, current_user, CompanyScope.for_account(current_user), reservist_id, body.status, body.reason
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="reservist_status_change",
        user_id=current_user.id,
        resource_type="account",
        resource_id=account.id,
        details={"old_values": {"status": old.value},
                 "new_values": {"status": account.status.value, "reason": body.reason}}
    )
    return {"success": True, "data": reservist_to_dict(account), "message": "Account status updated successfully"}
