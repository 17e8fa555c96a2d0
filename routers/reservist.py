"""
Reservist self-service: profile, documents, training and RIDS.
"""
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.orm import Session

from database.models import Account
from auth.dependencies import get_db_session, require_reservist
from services.announcement_service import AnnouncementService
from services.audit_service import AuditService
from services.document_service import DocumentService
from services.rids_service import RidsService
from services.serializers import (
    announcement_to_dict, document_to_dict, registration_to_dict, reservist_to_dict, rids_to_dict,
    training_hours_to_dict, training_to_dict
)
from services.training_service import TrainingService


router = APIRouter(prefix="/api/reservist", tags=["reservist"])


@router.get("/me")
async def get_my_profile(
    current_user: Account = Depends(require_reservist)
):
    return {"success": True, "data": reservist_to_dict(current_user)}


@router.get("/documents")
async def list_my_documents(
    include_history: bool = False,
    current_user: Account = Depends(require_reservist),
    db: Session = Depends(get_db_session)
):
    """Own documents; earlier versions only when include_history is set."""
    rows = DocumentService.list_for_reservist(db, current_user.id, include_history=include_history)
    return {"success": True, "data": [document_to_dict(d) for d in rows]}


@router.post("/documents", status_code=status.HTTP_201_CREATED)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    document_type: str = Form(...),
    current_user: Account = Depends(require_reservist),
    db: Session = Depends(get_db_session)
):
    """Upload a new document version; it starts pending validation."""
    content = await file.read()
    document = DocumentService.upload(
        db, current_user, document_type, file.filename, content, file.content_type
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action="document_upload",
        user_id=current_user.id,
        resource_type="document",
        resource_id=document.id,
        details={"document_type": document.document_type, "version": document.version}
    )
    return {"success": True, "data": document_to_dict(document), "message": "Document uploaded successfully"}


@router.get("/training")
async def list_available_training(
    current_user: Account = Depends(require_reservist),
    db: Session = Depends(get_db_session)
):
    """Open sessions for the reservist's company and system-wide sessions, plus own registrations."""
    sessions = TrainingService.available_for(db, current_user)
    registrations = TrainingService.registrations_for(db, current_user.id)
    return {
        "success": True,
        "data": {
            "sessions": [training_to_dict(s) for s in sessions],
            "registrations": [registration_to_dict(r) for r in registrations],
        },
    }


@router.post("/training/{session_id}/register", status_code=status.HTTP_201_CREATED)
async def register_for_training(
    session_id: int,
    request: Request,
    current_user: Account = Depends(require_reservist),
    db: Session = Depends(get_db_session)
):
    registration = TrainingService.register(db, current_user, session_id)
    AuditService.log_from_request(
        db=db,
        request=request,
        action="training_register",
        user_id=current_user.id,
        resource_type="training_session",
        resource_id=session_id
    )
    return {"success": True, "data": registration_to_dict(registration), "message": "Registered successfully"}


@router.get("/training-hours")
async def list_training_hours(
    current_user: Account = Depends(require_reservist),
    db: Session = Depends(get_db_session)
):
    rows, total = TrainingService.hours_for(db, current_user.id)
    return {
        "success": True,
        "data": [training_hours_to_dict(h) for h in rows],
        "total_hours": total,
    }


@router.get("/rids")
async def get_my_rids(
    current_user: Account = Depends(require_reservist),
    db: Session = Depends(get_db_session)
):
    """Own RIDS with its sections (null when none exists yet)."""
    rids = RidsService.get_for_reservist(db, current_user.id)
    if rids is None:
        return {"success": True, "data": None}
    return {"success": True, "data": rids_to_dict(rids, RidsService.get_sections(db, rids))}


@router.get("/announcements")
async def list_my_announcements(
    current_user: Account = Depends(require_reservist),
    db: Session = Depends(get_db_session)
):
    rows = AnnouncementService.for_reservist(db, current_user)
    return {"success": True, "data": [announcement_to_dict(a) for a in rows]}
