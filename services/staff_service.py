"""
Staff accounts: administrator CRUD, the staff self-profile and dashboard counters.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import (
    Account, AccountRole, AccountStatus, Announcement, AnnouncementPriority, Document, DocumentStatus,
    Profile, ReservistDetail, RidsForm, RidsStatus, StaffCompanyAssignment, StaffDetail,
    TrainingSession, TrainingStatus
)
from core.exceptions import NotFoundError, ValidationError
from core.logger import logger
from core.pagination import paginate
from core.validators import parse_enum
from services.account_service import AccountService
from services.auth_service import AuthService
from services.company_scope import CompanyScope


STAFF_SORT_COLUMNS = {
    "created_at": Account.created_at,
    "email": Account.email,
    "status": Account.status,
    "last_name": Profile.last_name,
    "first_name": Profile.first_name,
}


class StaffService:
    """Staff account management."""

    @staticmethod
    def _staff_query(db: Session):
        return (
            db.query(Account)
            .join(StaffDetail, StaffDetail.account_id == Account.id)
            .outerjoin(Profile, Profile.account_id == Account.id)
            .filter(Account.role == AccountRole.STAFF)
        )

    @staticmethod
    def list_staff(
        db: Session,
        status: Optional[str] = None,
        company: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Account], Dict[str, int]]:
        query = StaffService._staff_query(db)
        if status and status != "all":
            query = query.filter(Account.status == parse_enum(status, AccountStatus, "status"))
        if company and company != "all":
            query = query.filter(StaffDetail.assignments.any(StaffCompanyAssignment.company_code == company))
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                Profile.first_name.ilike(term),
                Profile.last_name.ilike(term),
                Account.email.ilike(term),
                StaffDetail.employee_id.ilike(term),
            ))
        column = STAFF_SORT_COLUMNS.get(sort_by, Account.created_at)
        query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), Account.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def get_staff(db: Session, staff_id: int) -> Account:
        account = StaffService._staff_query(db).filter(Account.id == staff_id).first()
        if not account:
            raise NotFoundError("Staff member not found")
        return account

    @staticmethod
    def create_staff(db: Session, actor: Account, data: Dict[str, Any]) -> Account:
        """
        Create an active staff account with its company assignments.

        Raises:
            ValidationError: missing fields, weak password, unknown company
            ConflictError: email already registered
        """
        missing = [f for f in ("email", "firstName", "lastName", "password") if not data.get(f)]
        if missing:
            raise ValidationError("Missing required fields: email, firstName, lastName, password")
        companies = data.get("assignedCompanies") or []
        if not isinstance(companies, list):
            raise ValidationError("assignedCompanies must be an array")

        account = AuthService.create_account(
            db, data["email"], data["password"], AccountRole.STAFF,
            data["firstName"], data["lastName"],
            middle_name=data.get("middleName"), phone=data.get("phone"),
            status=AccountStatus.ACTIVE, created_by=actor.id, commit=False
        )
        account.staff_details = StaffDetail(
            employee_id=data.get("employeeId"),
            position=data.get("position"),
        )
        AuthService.set_staff_companies(db, account.staff_details, companies)
        db.commit()
        logger.info(f"Staff account {account.email} created by {actor.id}")
        return account

    @staticmethod
    def update_staff(db: Session, actor: Account, staff_id: int, data: Dict[str, Any]) -> Account:
        if not data:
            raise ValidationError("No fields to update")
        account = StaffService.get_staff(db, staff_id)
        profile = account.profile
        details = account.staff_details

        for key, field in (("firstName", "first_name"), ("middleName", "middle_name"),
                           ("lastName", "last_name"), ("phone", "phone")):
            if key in data:
                setattr(profile, field, data[key])
        if "employeeId" in data:
            details.employee_id = data["employeeId"]
        if "position" in data:
            details.position = data["position"]
        if "assignedCompanies" in data:
            if not isinstance(data["assignedCompanies"], list):
                raise ValidationError("assignedCompanies must be an array")
            AuthService.set_staff_companies(db, details, data["assignedCompanies"])
        if data.get("status"):
            target = parse_enum(data["status"], AccountStatus, "status")
            if target != account.status:
                AccountService.record_status_change(db, account, target, actor.id, "Updated by administrator")
        db.commit()
        logger.info(f"Staff account {account.id} updated by {actor.id}")
        return account

    @staticmethod
    def delete_staff(db: Session, actor: Account, staff_id: int) -> str:
        account = StaffService.get_staff(db, staff_id)
        email = account.email
        db.delete(account)
        db.commit()
        logger.info(f"Staff account {email} deleted by {actor.id}")
        return email

    @staticmethod
    def dashboard_stats(db: Session, scope: CompanyScope) -> Dict[str, Any]:
        """Counters for the staff home page, limited to the caller's companies."""
        stats = {
            "totalReservists": 0,
            "activeReservists": 0,
            "pendingActions": 0,
            "pendingDocuments": 0,
            "upcomingTrainings": 0,
            "urgentAnnouncements": 0,
            "rids": {s.value: 0 for s in RidsStatus},
        }
        if scope.is_empty:
            return stats

        reservists = scope.apply(
            db.query(Account).join(ReservistDetail, ReservistDetail.account_id == Account.id)
            .filter(Account.role == AccountRole.RESERVIST),
            ReservistDetail.company
        )
        stats["totalReservists"] = reservists.count()
        stats["activeReservists"] = reservists.filter(Account.status == AccountStatus.ACTIVE).count()
        stats["pendingActions"] = reservists.filter(Account.status == AccountStatus.PENDING).count()

        stats["pendingDocuments"] = scope.apply(
            db.query(Document).join(ReservistDetail, ReservistDetail.account_id == Document.reservist_id)
            .filter(Document.status == DocumentStatus.PENDING, Document.is_current == True),
            ReservistDetail.company
        ).count()

        stats["upcomingTrainings"] = scope.apply(
            db.query(TrainingSession).filter(
                TrainingSession.status.in_([TrainingStatus.SCHEDULED, TrainingStatus.ONGOING])
            ),
            TrainingSession.company, allow_global=True
        ).count()

        rids_rows = scope.apply(
            db.query(RidsForm).join(ReservistDetail, ReservistDetail.account_id == RidsForm.reservist_id),
            ReservistDetail.company
        ).all()
        for rids in rids_rows:
            stats["rids"][rids.status.value] += 1

        # JSON target lists are filtered in Python so SQLite and PostgreSQL behave alike
        urgent = db.query(Announcement).filter(
            Announcement.is_active == True,
            Announcement.priority == AnnouncementPriority.URGENT
        ).all()
        stats["urgentAnnouncements"] = sum(
            1 for a in urgent
            if not a.target_companies or scope.unrestricted or set(a.target_companies) & set(scope.companies)
        )
        return stats
