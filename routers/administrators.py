"""
Administrator account management (super admin only).
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional

from database.models import Account
from auth.dependencies import get_db_session, require_super_admin
from services.admin_service import AdministratorService
from services.audit_service import AuditService
from services.serializers import account_summary
import config


router = APIRouter(prefix="/api/admin/administrators", tags=["administrators"])


class AdministratorCreate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    firstName: Optional[str] = None
    middleName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None


class AdministratorUpdate(BaseModel):
    firstName: Optional[str] = None
    middleName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None


def _admin_to_dict(account: Account) -> dict:
    data = account_summary(account)
    creator = account.creator
    data["creator"] = {"id": creator.id, "full_name": creator.full_name} if creator else None
    return data


@router.get("")
async def list_administrators(
    role: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: Account = Depends(require_super_admin),
    db: Session = Depends(get_db_session)
):
    rows, pagination = AdministratorService.list_administrators(
        db, role=role, status=status_filter, search=search, sort_order=sort_order, page=page, limit=limit
    )
    return {"success": True, "data": [_admin_to_dict(a) for a in rows], "pagination": pagination}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_administrator(
    body: AdministratorCreate,
    request: Request,
    current_user: Account = Depends(require_super_admin),
    db: Session = Depends(get_db_session)
):
    account = AdministratorService.create(db, current_user, body.model_dump(exclude_unset=True))
    AuditService.log_from_request(
        db=db,
        request=request,
        action="administrator_create",
        user_id=current_user.id,
        resource_type="account",
        resource_id=account.id,
        details={"email": account.email, "role": account.role.value}
    )
    return {"success": True, "data": _admin_to_dict(account), "message": "Administrator created successfully"}


@router.get("/{admin_id}")
async def get_administrator(
    admin_id: int,
    current_user: Account = Depends(require_super_admin),
    db: Session = Depends(get_db_session)
):
    return {"success": True, "data": _admin_to_dict(AdministratorService.get_administrator(db, admin_id))}


@router.put("/{admin_id}")
async def update_administrator(
    admin_id: int,
    body: AdministratorUpdate,
    request: Request,
    current_user: Account = Depends(require_super_admin),
    db: Session = Depends(get_db_session)
):
    """Update an administrator; deactivating one's own account is refused."""
    changes = body.model_dump(exclude_unset=True)
    account = AdministratorService.update(db, current_user, admin_id, changes)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="administrator_update",
        user_id=current_user.id,
        resource_type="account",
        resource_id=account.id,
        details={"new_values": changes}
    )
    return {"success": True, "data": _admin_to_dict(account), "message": "Administrator updated successfully"}


@router.delete("/{admin_id}")
async def delete_administrator(
    admin_id: int,
    request: Request,
    current_user: Account = Depends(require_super_admin),
    db: Session = Depends(get_db_session)
):
    email = AdministratorService.delete(db, current_user, admin_id)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="administrator_delete",
        user_id=current_user.id,
        resource_type="account",
        resource_id=admin_id,
        details={"email": email}
    )
    return {"success": True, "message": "Administrator deleted successfully"}
