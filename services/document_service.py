"""
Reservist document uploads and staff validation.

Status machine: pending -> verified via validate; any -> any other state via
change-status with a reason. Validator fields are set when a document leaves
pending and cleared when it returns there.
"""
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import (
    Account, Document, DocumentStatus, NotificationType, Profile, ReservistDetail
)
from core.exceptions import NotFoundError, ValidationError
from core.logger import logger
from core.pagination import empty_page, paginate
from core.validators import parse_enum, require_reason, sanitize_filename, validate_upload
from services.company_scope import CompanyScope
from services.notification_service import NotificationService
from services.storage_service import StorageService
from storage.s3_paths import document_key, documents_object_key
import config


STATUS_MESSAGES = {
    DocumentStatus.PENDING: "Your {doc_type} document status was changed to Pending. Reason: {reason}",
    DocumentStatus.VERIFIED: "Your {doc_type} document has been verified and approved. Note: {reason}",
    DocumentStatus.REJECTED: "Your {doc_type} document was rejected. Reason: {reason}",
}


class DocumentService:
    """Document listing, validation and upload."""

    @staticmethod
    def _scoped_query(db: Session):
        return (
            db.query(Document)
            .join(Account, Document.reservist_id == Account.id)
            .outerjoin(ReservistDetail, ReservistDetail.account_id == Account.id)
            .outerjoin(Profile, Profile.account_id == Account.id)
        )

    @staticmethod
    def list_documents(
        db: Session,
        scope: CompanyScope,
        status: Optional[str] = None,
        document_type: Optional[str] = None,
        company: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Document], Dict[str, int]]:
        """
        Current document versions within scope, newest first.

        Staff without assigned companies get an empty page.
        """
        if scope.is_empty:
            return [], empty_page(page, limit)

        query = DocumentService._scoped_query(db).filter(Document.is_current == True)
        query = scope.narrow(query, ReservistDetail.company, company)
        if status:
            query = query.filter(Document.status == parse_enum(status, DocumentStatus, "status"))
        if document_type:
            query = query.filter(Document.document_type == document_type)
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                Profile.first_name.ilike(term),
                Profile.last_name.ilike(term),
                Account.email.ilike(term),
                ReservistDetail.service_number.ilike(term),
                Document.document_type.ilike(term),
            ))
        query = query.order_by(Document.created_at.desc(), Document.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def get_document(db: Session, scope: CompanyScope, document_id: int) -> Document:
        """
        Raises:
            ForbiddenError: staff without assignments, or document outside scope
            NotFoundError: no such document
        """
        scope.require_assignments()
        document = db.query(Document).filter(Document.id == document_id).first()
        if not document:
            raise NotFoundError("Document not found")
        details = document.reservist.reservist_details if document.reservist else None
        scope.check(details.company if details else None,
                    message="Forbidden - Document not in your assigned companies")
        return document

    @staticmethod
    def _notify(db: Session, document: Document, title: str, message: str):
        NotificationService.notify(
            db, document.reservist_id, title, message, NotificationType.DOCUMENT,
            reference_id=document.id, reference_table="documents"
        )

    @staticmethod
    def validate(db: Session, actor: Account, scope: CompanyScope, document_id: int,
                 notes: Optional[str] = None) -> Document:
        """
        Verify a pending document.

        Raises:
            ValidationError: document is not pending
        """
        document = DocumentService.get_document(db, scope, document_id)
        if document.status != DocumentStatus.PENDING:
            raise ValidationError(f"Only pending documents can be validated (current status: {document.status.value})")

        document.status = DocumentStatus.VERIFIED
        document.validated_by = actor.id
        document.validated_at = datetime.utcnow()
        document.rejection_reason = None
        document.notes = notes or None
        DocumentService._notify(
            db, document, "Document Verified",
            f"Your {document.document_type} document has been verified and approved."
        )
        db.commit()
        logger.info(f"Document {document.id} verified by {actor.id}")
        return document

    @staticmethod
    def change_status(db: Session, actor: Account, scope: CompanyScope, document_id: int,
                      new_status: Optional[str], reason: Optional[str],
                      notes: Optional[str] = None) -> Tuple[Document, DocumentStatus]:
        """
        Move a document to another status with a mandatory reason.

        Returns:
            Tuple of (document, previous status)
        """
        if not new_status:
            raise ValidationError("new_status is required")
        reason = require_reason(reason, "reason is required for status changes")
        target = parse_enum(new_status, DocumentStatus, "status")

        document = DocumentService.get_document(db, scope, document_id)
        old = document.status
        if old == target:
            raise ValidationError(f"Document is already {target.value}")

        document.status = target
        if target == DocumentStatus.PENDING:
            document.validated_by = None
            document.validated_at = None
        else:
            document.validated_by = actor.id
            document.validated_at = datetime.utcnow()
        document.rejection_reason = reason if target == DocumentStatus.REJECTED else None
        if notes:
            document.notes = notes

        DocumentService._notify(
            db, document, "Document Status Changed",
            STATUS_MESSAGES[target].format(doc_type=document.document_type, reason=reason)
        )
        db.commit()
        logger.info(f"Document {document.id}: {old.value} -> {target.value} by {actor.id}")
        return document, old

    @staticmethod
    def list_for_reservist(db: Session, reservist_id: int, include_history: bool = False) -> List[Document]:
        query = db.query(Document).filter(Document.reservist_id == reservist_id)
        if not include_history:
            query = query.filter(Document.is_current == True)
        return query.order_by(Document.created_at.desc(), Document.id.desc()).all()

    @staticmethod
    def upload(db: Session, reservist: Account, document_type: str, filename: str,
               content: bytes, content_type: Optional[str]) -> Document:
        """
        Store a new document version; earlier versions of the same type stop being current.
        """
        if not document_type or not document_type.strip():
            raise ValidationError("document_type is required")
        document_type = document_type.strip()
        safe_name = sanitize_filename(filename)
        validate_upload(content_type, len(content), config.ALLOWED_DOCUMENT_TYPES, config.MAX_DOCUMENT_SIZE_MB)

        previous = db.query(Document).filter(
            Document.reservist_id == reservist.id,
            Document.document_type == document_type
        ).all()
        version = max((d.version for d in previous), default=0) + 1
        for doc in previous:
            doc.is_current = False

        key = documents_object_key(document_key(reservist.id, document_type, safe_name))
        url = StorageService.save(content, key, content_type=content_type,
                                  metadata={"reservist_id": reservist.id, "document_type": document_type})
        document = Document(
            reservist_id=reservist.id,
            document_type=document_type,
            file_url=url,
            file_name=safe_name,
            file_size=len(content),
            mime_type=content_type,
            status=DocumentStatus.PENDING,
            version=version,
            is_current=True,
        )
        db.add(document)
        db.commit()
        logger.info(f"Document uploaded: reservist={reservist.id} type={document_type} v{version}")
        return document
