"""
Audit trail service: every portal mutation is recorded with its actor.
"""
from datetime import datetime
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session, Query
from fastapi import Request

from database.models import AuditLog


class AuditService:
    """Service for audit logging."""

    @staticmethod
    def log_action(
        db: Session,
        action: str,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """
        Record an action.

        Args:
            db: Database session
            action: Action name (e.g. "rids_approve", "document_validate")
            user_id: Acting account
            resource_type: Type of resource (e.g. "rids", "document", "account")
            resource_id: ID of resource
            ip_address: Client IP
            user_agent: User agent string
            details: Extra context, usually old_values / new_values

        Returns:
            Created AuditLog
        """
        audit_log = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
            details=details
        )
        db.add(audit_log)
        db.commit()
        return audit_log

    @staticmethod
    def log_from_request(
        db: Session,
        request: Request,
        action: str,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """Record an action, taking IP and user agent from the request."""
        return AuditService.log_action(
            db=db,
            action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            details=details
        )

    @staticmethod
    def search(
        db: Session,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        user_id: Optional[int] = None,
        from_dt: Optional[datetime] = None,
        to_dt: Optional[datetime] = None
    ) -> Query:
        """Filtered audit log query, newest first."""
        query = db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == action)
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if from_dt:
            query = query.filter(AuditLog.created_at >= from_dt)
        if to_dt:
            query = query.filter(AuditLog.created_at <= to_dt)
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
