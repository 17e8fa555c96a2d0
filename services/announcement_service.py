"""
Announcements published by staff and administrators.

An announcement with no target companies is visible to every company.
Publishing notifies the reservists of the targeted companies.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from database.models import (
    Account, AccountRole, Announcement, AnnouncementPriority, NotificationType, ReservistDetail
)
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from core.logger import logger
from core.validators import parse_datetime
from services.company_scope import CompanyScope
from services.notification_service import NotificationService


PREVIEW_LENGTH = 200


class AnnouncementService:
    """Announcement CRUD with company targeting."""

    @staticmethod
    def _visible(announcement: Announcement, scope: CompanyScope) -> bool:
        if scope.unrestricted or not announcement.target_companies:
            return True
        return bool(set(announcement.target_companies) & set(scope.companies))

    @staticmethod
    def list_announcements(
        db: Session,
        scope: CompanyScope,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Announcement], int]:
        """
        Announcements visible to the caller, newest first.

        status: active (published and active), inactive, draft (never published).
        """
        query = db.query(Announcement)
        if status == "active":
            query = query.filter(Announcement.is_active == True, Announcement.published_at.isnot(None))
        elif status == "inactive":
            query = query.filter(Announcement.is_active == False)
        elif status == "draft":
            query = query.filter(Announcement.published_at.is_(None))
        elif status and status != "all":
            raise ValidationError("Invalid status. Must be: active, inactive, or draft")
        if priority:
            query = query.filter(Announcement.priority == AnnouncementService._priority(priority))

        # Target lists are JSON, so visibility is resolved after loading
        rows = [
            a for a in query.order_by(Announcement.created_at.desc(), Announcement.id.desc()).all()
            if AnnouncementService._visible(a, scope)
        ]
        return rows[offset:offset + limit], len(rows)

    @staticmethod
    def get_announcement(db: Session, scope: CompanyScope, announcement_id: int) -> Announcement:
        announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
        if not announcement:
            raise NotFoundError("Announcement not found")
        if not AnnouncementService._visible(announcement, scope):
            raise ForbiddenError("Access denied - Company not assigned")
        return announcement

    @staticmethod
    def _priority(value: Any) -> AnnouncementPriority:
        try:
            return AnnouncementPriority(value)
        except ValueError:
            raise ValidationError("Invalid priority. Must be: low, normal, high, or urgent")

    @staticmethod
    def _validate(data: Dict[str, Any], scope: CompanyScope, creating: bool):
        if creating or "title" in data:
            if len((data.get("title") or "").strip()) < 3:
                raise ValidationError("Title must be at least 3 characters long")
        if creating or "content" in data:
            if len((data.get("content") or "").strip()) < 10:
                raise ValidationError("Content must be at least 10 characters long")
        if creating or "priority" in data:
            AnnouncementService._priority(data.get("priority"))
        targets = data.get("target_companies") or []
        if not scope.unrestricted and any(c not in scope.companies for c in targets):
            logger.warning(f"Attempt to target unassigned companies: {targets}")
            raise ForbiddenError("You can only target companies you are assigned to")

    @staticmethod
    def _notify_recipients(db: Session, announcement: Announcement) -> int:
        query = (
            db.query(Account.id)
            .join(ReservistDetail, ReservistDetail.account_id == Account.id)
            .filter(Account.role == AccountRole.RESERVIST)
        )
        if announcement.target_companies:
            query = query.filter(ReservistDetail.company.in_(announcement.target_companies))
        recipients = [row.id for row in query.all()]
        content = announcement.content
        preview = content[:PREVIEW_LENGTH] + ("..." if len(content) > PREVIEW_LENGTH else "")
        NotificationService.notify_many(
            db, recipients, announcement.title, preview, NotificationType.ANNOUNCEMENT,
            reference_id=announcement.id, reference_table="announcements"
        )
        return len(recipients)

    @staticmethod
    def create(db: Session, actor: Account, scope: CompanyScope, data: Dict[str, Any]) -> Tuple[Announcement, int]:
        """
        Returns:
            Tuple of (announcement, notifications sent)
        """
        AnnouncementService._validate(data, scope, creating=True)
        publish_now = bool(data.get("publish_now"))
        is_active = data.get("is_active")
        announcement = Announcement(
            title=data["title"].strip(),
            content=data["content"].strip(),
            priority=AnnouncementService._priority(data["priority"]),
            target_companies=data.get("target_companies") or None,
            target_roles=data.get("target_roles") or None,
            is_active=is_active if is_active is not None else publish_now,
            published_at=datetime.utcnow() if publish_now else None,
            expires_at=parse_datetime(data.get("expires_at"), "expires_at"),
            created_by=actor.id,
        )
        db.add(announcement)
        db.flush()

        sent = 0
        if publish_now and announcement.is_active:
            sent = AnnouncementService._notify_recipients(db, announcement)
        db.commit()
        logger.info(f"Announcement {announcement.id} created by {actor.id} (notified {sent})")
        return announcement, sent

    @staticmethod
    def _check_owner(announcement: Announcement, actor: Account, verb: str):
        if actor.role == AccountRole.STAFF and announcement.created_by != actor.id:
            raise ForbiddenError(f"You can only {verb} your own announcements")

    @staticmethod
    def update(db: Session, actor: Account, scope: CompanyScope, announcement_id: int,
               data: Dict[str, Any]) -> Tuple[Announcement, int]:
        """Staff edit their own announcements; publishing a draft notifies recipients."""
        announcement = AnnouncementService.get_announcement(db, scope, announcement_id)
        AnnouncementService._check_owner(announcement, actor, "update")
        AnnouncementService._validate(data, scope, creating=False)

        if "title" in data:
            announcement.title = data["title"].strip()
        if "content" in data:
            announcement.content = data["content"].strip()
        if "priority" in data:
            announcement.priority = AnnouncementService._priority(data["priority"])
        if "target_companies" in data:
            announcement.target_companies = data["target_companies"] or None
        if "target_roles" in data:
            announcement.target_roles = data["target_roles"] or None
        if "expires_at" in data:
            announcement.expires_at = parse_datetime(data["expires_at"], "expires_at")
        if data.get("is_active") is not None:
            announcement.is_active = bool(data["is_active"])

        sent = 0
        if data.get("publish_now") and announcement.published_at is None:
            announcement.published_at = datetime.utcnow()
            if data.get("is_active") is None:
                announcement.is_active = True
            if announcement.is_active:
                sent = AnnouncementService._notify_recipients(db, announcement)
        db.commit()
        logger.info(f"Announcement {announcement.id} updated by {actor.id}")
        return announcement, sent

    @staticmethod
    def delete(db: Session, actor: Account, scope: CompanyScope, announcement_id: int):
        announcement = AnnouncementService.get_announcement(db, scope, announcement_id)
        AnnouncementService._check_owner(announcement, actor, "delete")
        db.delete(announcement)
        db.commit()
        logger.info(f"Announcement {announcement_id} deleted by {actor.id}")

    @staticmethod
    def for_reservist(db: Session, reservist: Account) -> List[Announcement]:
        """Active, published, unexpired announcements for the reservist's company."""
        company = reservist.reservist_details.company if reservist.reservist_details else None
        now = datetime.utcnow()
        rows = (
            db.query(Announcement)
            .filter(Announcement.is_active == True, Announcement.published_at.isnot(None))
            .order_by(Announcement.published_at.desc())
            .all()
        )
        return [
            a for a in rows
            if (a.expires_at is None or a.expires_at > now)
            and (not a.target_companies or company in a.target_companies)
        ]
