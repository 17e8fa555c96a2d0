"""
Administrator endpoints: reservist approval workflow, staff accounts and statistics.
Admin or super admin only.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import List, Optional

from database.models import Account
from auth.dependencies import get_db_session, require_admin
from services.account_service import AccountService
from services.admin_service import portal_stats
from services.audit_service import AuditService
from services.company_scope import CompanyScope
from services.serializers import account_to_dict, reservist_to_dict, staff_to_dict
from services.staff_service import StaffService
import config


router = APIRouter(prefix="/api/admin", tags=["admin"])


class ReasonRequest(BaseModel):
    reason: Optional[str] = None


class AccountStatusChange(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = None


class StaffCreate(BaseModel):
    """Create staff request."""
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    firstName: Optional[str] = None
    middleName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    employeeId: Optional[str] = None
    position: Optional[str] = None
    assignedCompanies: Optional[List[str]] = None


class StaffUpdate(BaseModel):
    """Update staff request."""
    firstName: Optional[str] = None
    middleName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    employeeId: Optional[str] = None
    position: Optional[str] = None
    assignedCompanies: Optional[List[str]] = None
    status: Optional[str] = None


def _audit_status(db: Session, request: Request, user: Account, action: str, account: Account, old, reason=None):
    AuditService.log_from_request(
        db=db,
        request=request,
        action=action,
        user_id=user.id,
        resource_type="account",
        resource_id=account.id,
        details={"old_values": {"status": old.value},
                 "new_values": {"status": account.status.value, "reason": reason}}
    )


# ---------------------------------------------------------------------------
# Reservists
# ---------------------------------------------------------------------------

@router.get("/reservists")
async def list_reservists(
    status_filter: Optional[str] = Query(None, alias="status"),
    company: Optional[str] = Query(None),
    rank: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """All reservists across companies."""
    rows, pagination = AccountService.list_reservists(
        db, CompanyScope.for_account(current_user), status=status_filter, company=company, rank=rank,
        search=search, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit
    )
    return {"success": True, "data": [reservist_to_dict(a) for a in rows], "pagination": pagination}


@router.put("/reservists/{reservist_id}/approve")
async def approve_reservist(
    reservist_id: int,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    account, old = AccountService.approve(db, current_user, reservist_id)
    _audit_status(db, request, current_user, "reservist_approve", account, old)
    return {"success": True, "data": reservist_to_dict(account), "message": "Reservist account approved successfully"}


@router.put("/reservists/{reservist_id}/reject")
async def reject_reservist(
    reservist_id: int,
    request: Request,
    body: Optional[ReasonRequest] = None,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    account, old = AccountService.reject(db, current_user, reservist_id, body.reason if body else None)
    _audit_status(db, request, current_user, "reservist_reject", account, old, account.rejection_reason)
    return {"success": True, "data": reservist_to_dict(account), "message": "Reservist account rejected successfully"}


@router.put("/reservists/{reservist_id}/reactivate")
async def reactivate_reservist(
    reservist_id: int,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    account, old = AccountService.reactivate(db, current_user, reservist_id)
    _audit_status(db, request, current_user, "reservist_reactivate", account, old)
    return {
        "success": True,
        "data": reservist_to_dict(account),
        "previousStatus": old.value,
        "message": "Reservist account reactivated successfully",
    }


@router.put("/reservists/{reservist_id}/revert-to-pending")
async def revert_reservist_to_pending(
    reservist_id: int,
    request: Request,
    body: Optional[ReasonRequest] = None,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    reason = body.reason if body else None
    account, old = AccountService.revert_to_pending(db, current_user, reservist_id, reason)
    _audit_status(db, request, current_user, "reservist_revert_to_pending", account, old, reason)
    return {
        "success": True,
        "data": reservist_to_dict(account),
        "message": "Reservist account reverted to pending successfully",
    }


@router.put("/reservists/{account_id}/change-status")
async def change_reservist_status(
    account_id: int,
    body: AccountStatusChange,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Set any status on a reservist account."""
    account, old = AccountService.admin_change_status(
        db, current_user, account_id, body.status, body.reason, reservists_only=True
    )
    _audit_status(db, request, current_user, "account_status_change", account, old, body.reason)
    return {"success": True, "data": account_to_dict(account), "message": "Account status updated successfully"}


@router.put("/accounts/{account_id}/change-status")
async def change_account_status(
    account_id: int,
    body: AccountStatusChange,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Set any status on any account.
    Administrator accounts are left to super admins, and nobody can deactivate themselves.
    """
    account, old = AccountService.admin_change_status(db, current_user, account_id, body.status, body.reason)
    _audit_status(db, request, current_user, "account_status_change", account, old, body.reason)
    return {"success": True, "data": account_to_dict(account), "message": "Account status updated successfully"}


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------

@router.get("/staff")
async def list_staff(
    status_filter: Optional[str] = Query(None, alias="status"),
    company: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    rows, pagination = StaffService.list_staff(
        db, status=status_filter, company=company, search=search,
        sort_by=sort_by, sort_order=sort_order, page=page, limit=limit
    )
    return {"success": True, "data": [staff_to_dict(a) for a in rows], "pagination": pagination}


@router.post("/staff", status_code=status.HTTP_201_CREATED)
async def create_staff(
    body: StaffCreate,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    account = StaffService.create_staff(db, current_user, body.model_dump(exclude_unset=True))
    AuditService.log_from_request(
        db=db,
        request=request,
        action="staff_create",
        user_id=current_user.id,
        resource_type="account",
        resource_id=account.id,
        details={"email": account.email, "assigned_companies": account.staff_details.assigned_companies}
    )
    return {"success": True, "data": staff_to_dict(account), "message": "Staff account created successfully"}


@router.get("/staff/{staff_id}")
async def get_staff(
    staff_id: int,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    return {"success": True, "data": staff_to_dict(StaffService.get_staff(db, staff_id))}


@router.put("/staff/{staff_id}")
async def update_staff(
    staff_id: int,
    body: StaffUpdate,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    changes = body.model_dump(exclude_unset=True)
    account = StaffService.update_staff(db, current_user, staff_id, changes)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="staff_update",
        user_id=current_user.id,
        resource_type="account",
        resource_id=account.id,
        details={"new_values": changes}
    )
    return {"success": True, "data": staff_to_dict(account), "message": "Staff member updated successfully"}


@router.delete("/staff/{staff_id}")
async def delete_staff(
    staff_id: int,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    email = StaffService.delete_staff(db, current_user, staff_id)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="staff_delete",
        user_id=current_user.id,
        resource_type="account",
        resource_id=staff_id,
        details={"email": email}
    )
    return {"success": True, "message": "Staff member deleted successfully"}


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

@router.get("/stats")
async def get_stats(
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Account, document, RIDS and training counters."""
    return {"success": True, "data": portal_stats(db)}
