"""
Company registry endpoints.
Listing is open to every signed-in role; changes are for administrators.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Any, Optional

from database.models import Account
from auth.dependencies import get_db_session, require_admin, require_any_role, require_super_admin
from services.audit_service import AuditService
from services.company_service import CompanyService
from services.serializers import company_to_dict


router = APIRouter(prefix="/api/admin/companies", tags=["companies"])


class CompanyCreate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class CompanyUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[Any] = None


@router.get("")
async def list_companies(
    active: bool = Query(False),
    current_user: Account = Depends(require_any_role),
    db: Session = Depends(get_db_session)
):
    return {"success": True, "data": [company_to_dict(c) for c in CompanyService.list_companies(db, active)]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_company(
    body: CompanyCreate,
    request: Request,
    current_user: Account = Depends(require_super_admin),
    db: Session = Depends(get_db_session)
):
    """Create a company (super admin only); codes are stored uppercase."""
    company = CompanyService.create(db, current_user, body.model_dump(exclude_unset=True))
    AuditService.log_from_request(
        db=db,
        request=request,
        action="company_create",
        user_id=current_user.id,
        resource_type="company",
        resource_id=company.code,
        details={"name": company.name}
    )
    return {"success": True, "data": company_to_dict(company), "message": "Company created successfully"}


@router.put("/{code}")
async def update_company(
    code: str,
    body: CompanyUpdate,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    changes = body.model_dump(exclude_unset=True)
    company, old_values = CompanyService.update(db, current_user, code, changes)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="company_update",
        user_id=current_user.id,
        resource_type="company",
        resource_id=company.code,
        details={"old_values": old_values, "new_values": changes}
    )
    return {"success": True, "data": company_to_dict(company), "message": "Company updated successfully"}


@router.delete("/{code}")
async def deactivate_company(
    code: str,
    request: Request,
    current_user: Account = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Soft delete: the company is deactivated and its assignments are left in place."""
    company, remaining = CompanyService.deactivate(db, current_user, code)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="company_deactivate",
        user_id=current_user.id,
        resource_type="company",
        resource_id=company.code,
        details={"old_values": {"is_active": True}, "new_values": {"is_active": False}}
    )
    suffix = f" ({remaining} assignments remain)" if remaining > 0 else ""
    return {"success": True, "data": company_to_dict(company), "message": f"Company deactivated successfully{suffix}"}
