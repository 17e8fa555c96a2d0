"""
Staff document review.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from database.models import Account
from auth.dependencies import get_db_session, require_staff_or_above
from services.audit_service import AuditService
from services.company_scope import CompanyScope
from services.document_service import DocumentService
from services.serializers import document_to_dict
import config


router = APIRouter(prefix="/api/staff/documents", tags=["staff-documents"])


class ValidateRequest(BaseModel):
    notes: Optional[str] = None


class DocumentStatusChange(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


@router.get("")
async def list_documents(
    status_filter: Optional[str] = Query(None, alias="status"),
    document_type: Optional[str] = Query(None),
    company: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Current document versions of reservists in the caller's companies."""
    rows, pagination = DocumentService.list_documents(
        db, CompanyScope.for_account(current_user), status=status_filter, document_type=document_type,
        company=company, search=search, page=page, limit=limit
    )
    return {"success": True, "data": [document_to_dict(d) for d in rows], "pagination": pagination}


@router.get("/{document_id}")
async def get_document(
    document_id: int,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    document = DocumentService.get_document(db, CompanyScope.for_account(current_user), document_id)
    return {"success": True, "data": document_to_dict(document)}


@router.put("/{document_id}/validate")
async def validate_document(
    document_id: int,
    request: Request,
    body: Optional[ValidateRequest] = None,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Verify a pending document."""
    notes = body.notes if body else None
    document = DocumentService.validate(db, current_user, CompanyScope.for_account(current_user), document_id, notes)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="document_validate",
        user_id=current_user.id,
        resource_type="document",
        resource_id=document.id,
        details={"old_values": {"status": "pending"}, "new_values": {"status": "verified", "notes": notes}}
    )
    return {"success": True, "data": document_to_dict(document), "message": "Document validated successfully"}


@router.put("/{document_id}/change-status")
async def change_document_status(
    document_id: int,
    body: DocumentStatusChange,
    request: Request,
    current_user: Account = Depends(require_staff_or_above),
    db: Session = Depends(get_db_session)
):
    """Move a document to any other status; a reason is always required."""
    document, old = DocumentService.change_status(
        db, current_user, CompanyScope.for_account(current_user), document_id,
        body.status, body.reason, body.notes
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="document_status_change",
        user_id=current_user.id,
        resource_type="document",
        resource_id=document.id,
        details={"old_values": {"status": old.value},
                 "new_values": {"status": document.status.value, "reason": body.reason}}
    )
    return {
        "success": True,
        "data": document_to_dict(document),
        "message": f"Document status changed from {old.value} to {document.status.value}",
    }
