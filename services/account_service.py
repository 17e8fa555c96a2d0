"""
Reservist account management for staff and administrators.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import (
    Account, AccountRole, AccountStatus, AccountStatusHistory, Company, NotificationType,
    Profile, ReservistDetail, ReservistStatus
)
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from core.logger import logger
from core.pagination import paginate
from core.validators import parse_date, parse_enum, require_reason
from services.company_scope import CompanyScope
from services.notification_service import NotificationService


SORT_COLUMNS = {
    "created_at": Account.created_at,
    "updated_at": Account.updated_at,
    "email": Account.email,
    "status": Account.status,
    "first_name": Profile.first_name,
    "last_name": Profile.last_name,
    "rank": ReservistDetail.rank,
    "company": ReservistDetail.company,
    "service_number": ReservistDetail.service_number,
}

PROFILE_FIELDS = ("first_name", "middle_name", "last_name", "phone")
DETAIL_FIELDS = ("rank", "mos", "address", "emergency_contact_name", "emergency_contact_phone")

# Staff may only toggle between these two
STAFF_SETTABLE = (AccountStatus.ACTIVE, AccountStatus.INACTIVE)
ADMIN_ROLES = (AccountRole.ADMIN, AccountRole.SUPER_ADMIN)

STAFF_STATUS_MESSAGES = {
    AccountStatus.ACTIVE: "Your account has been reactivated. You can now log in to the system.",
    AccountStatus.INACTIVE: (
        "Your account has been temporarily deactivated. "
        "Please contact your administrator if you have questions."
    ),
}


class AccountService:
    """Reservist listing, profile edits and account status transitions."""

    @staticmethod
    def record_status_change(db: Session, account: Account, new_status: AccountStatus,
                             changed_by: Optional[int], reason: Optional[str] = None) -> AccountStatus:
        """Set the status and append a history row; returns the previous status (caller commits)."""
        old = account.status
        account.status = new_status
        db.add(AccountStatusHistory(
            account_id=account.id,
            old_status=old,
            new_status=new_status,
            reason=reason,
            changed_by=changed_by,
        ))
        logger.info(f"Account {account.id} status {old.value} -> {new_status.value} by {changed_by}")
        return old

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def _reservist_query(db: Session):
        return (
            db.query(Account)
            .join(ReservistDetail, ReservistDetail.account_id == Account.id)
            .outerjoin(Profile, Profile.account_id == Account.id)
            .filter(Account.role == AccountRole.RESERVIST)
        )

    @staticmethod
    def list_reservists(
        db: Session,
        scope: CompanyScope,
        status: Optional[str] = None,
        company: Optional[str] = None,
        rank: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Account], Dict[str, int]]:
        """
        Reservists within scope.

        Raises:
            ForbiddenError: a company filter outside the caller's companies
            ValidationError: unknown status or sort column
        """
        query = scope.narrow(AccountService._reservist_query(db), ReservistDetail.company, company)
        if status and status != "all":
            query = query.filter(Account.status == parse_enum(status, AccountStatus, "status"))
        if rank:
            query = query.filter(ReservistDetail.rank == rank)
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                Profile.first_name.ilike(term),
                Profile.last_name.ilike(term),
                Account.email.ilike(term),
                ReservistDetail.service_number.ilike(term),
            ))

        column = SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(f"Invalid sortBy. Must be one of: {', '.join(SORT_COLUMNS)}")
        ordering = column.asc() if sort_order == "asc" else column.desc()
        query = query.order_by(ordering, Account.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def get_reservist(db: Session, scope: CompanyScope, reservist_id: int) -> Account:
        """
        Raises:
            ForbiddenError: staff with no companies, or reservist outside them
            NotFoundError: no such reservist
        """
        scope.require_assignments()
        account = AccountService._reservist_query(db).filter(Account.id == reservist_id).first()
        if not account:
            raise NotFoundError("Reservist not found")
        scope.check(account.reservist_details.company,
                    message="Forbidden - Reservist not in your assigned companies")
        return account

    # ------------------------------------------------------------------
    # Staff mutations
    # ------------------------------------------------------------------

    @staticmethod
    def update_reservist(db: Session, actor: Account, scope: CompanyScope, reservist_id: int,
                         data: Dict[str, Any]) -> Tuple[Account, Dict[str, Any]]:
        """
        Edit profile and reservist details.

        A company move must land in one of the caller's companies.

        Returns:
            Tuple of (account, changed fields with their old values)
        """
        account = AccountService.get_reservist(db, scope, reservist_id)
        details = account.reservist_details
        profile = account.profile
        old_values: Dict[str, Any] = {}

        for field in PROFILE_FIELDS:
            if field in data:
                value = data[field]
                if field in ("first_name", "last_name") and (not value or not str(value).strip()):
                    raise ValidationError(f"{field} cannot be empty")
                old_values[field] = getattr(profile, field)
                setattr(profile, field, value.strip() if isinstance(value, str) else value)

        if "company" in data and data["company"] != details.company:
            company = (data["company"] or "").strip().upper() or None
            if company is None:
                raise ValidationError("company cannot be empty")
            scope.check(company, message="Cannot move reservist to a company not assigned to you")
            if not db.query(Company).filter(Company.code == company, Company.is_active == True).first():
                raise ValidationError("Invalid company")
            old_values["company"] = details.company
            details.company = company

        if data.get("reservist_status"):
            old_values["reservist_status"] = details.reservist_status.value
            details.reservist_status = parse_enum(data["reservist_status"], ReservistStatus, "reservist_status")

        if "date_of_birth" in data:
            old_values["date_of_birth"] = details.date_of_birth.isoformat() if details.date_of_birth else None
            details.date_of_birth = parse_date(data["date_of_birth"], "date_of_birth")

        for field in DETAIL_FIELDS:
            if field in data:
                old_values[field] = getattr(details, field)
                setattr(details, field, data[field])

        if not old_values:
            raise ValidationError("No fields to update")
        db.commit()
        logger.info(f"Reservist {account.id} updated by {actor.id}: {sorted(old_values)}")
        return account, old_values

    @staticmethod
    def staff_change_status(db: Session, actor: Account, scope: CompanyScope, reservist_id: int,
                            new_status: Optional[str], reason: Optional[str]) -> Tuple[Account, AccountStatus]:
        """
        Staff toggle between active and inactive.

        Pending and deactivated accounts belong to administrators.
        """
        if not new_status or reason is None:
            raise ValidationError("Status and reason are required")
        try:
            target = AccountStatus(new_status)
        except ValueError:
            target = None
        if target not in STAFF_SETTABLE:
            raise ValidationError("Staff can only set status to active or inactive")
        reason = require_reason(reason, "Reason cannot be empty")

        account = AccountService.get_reservist(db, scope, reservist_id)
        if account.status == target:
            raise ValidationError(f"Account is already {target.value}")
        if account.status not in STAFF_SETTABLE:
            logger.warning(f"Staff {actor.id} tried to change {account.status.value} account {account.id}")
            raise ForbiddenError(f"Cannot modify {account.status.value} accounts. Contact an administrator.")

        old = AccountService.record_status_change(db, account, target, actor.id, reason)
        NotificationService.notify(
            db, account.id, f"Account Status Changed to {target.value.capitalize()}",
            STAFF_STATUS_MESSAGES[target], NotificationType.SYSTEM,
            reference_id=account.id, reference_table="accounts"
        )
        db.commit()
        return account, old

    # ------------------------------------------------------------------
    # Administrator actions
    # ------------------------------------------------------------------

    @staticmethod
    def _admin_target(db: Session, reservist_id: int) -> Account:
        account = db.query(Account).filter(Account.id == reservist_id).first()
        if not account:
            raise NotFoundError("Reservist account not found")
        if account.role != AccountRole.RESERVIST:
            raise ValidationError("This account is not a reservist account")
        return account

    @staticmethod
    def approve(db: Session, actor: Account, reservist_id: int) -> Tuple[Account, AccountStatus]:
        account = AccountService._admin_target(db, reservist_id)
        if account.status == AccountStatus.ACTIVE:
            raise ValidationError("This account is already approved")
        old = AccountService.record_status_change(db, account, AccountStatus.ACTIVE, actor.id, "Account approved")
        account.approved_by = actor.id
        account.approved_at = datetime.utcnow()
        account.rejection_reason = None
        NotificationService.notify(
            db, account.id, "Account Approved",
            "Your account registration has been approved. You can now sign in.",
            NotificationType.ACCOUNT, reference_id=account.id, reference_table="accounts"
        )
        db.commit()
        return account, old

    @staticmethod
    def reject(db: Session, actor: Account, reservist_id: int,
               reason: Optional[str] = None) -> Tuple[Account, AccountStatus]:
        """Reject a registration; the account becomes deactivated."""
        reason = (reason or "").strip() or "Account rejected by administrator"
        account = AccountService._admin_target(db, reservist_id)
        if account.status == AccountStatus.DEACTIVATED:
            raise ValidationError("This account is already deactivated")
        old = AccountService.record_status_change(db, account, AccountStatus.DEACTIVATED, actor.id, reason)
        account.rejection_reason = reason
        NotificationService.notify(
            db, account.id, "Account Rejected",
            f"Your account registration has been rejected. Reason: {reason}",
            NotificationType.ACCOUNT, reference_id=account.id, reference_table="accounts"
        )
        db.commit()
        return account, old

    @staticmethod
    def reactivate(db: Session, actor: Account, reservist_id: int) -> Tuple[Account, AccountStatus]:
        account = AccountService._admin_target(db, reservist_id)
        if account.status not in (AccountStatus.DEACTIVATED, AccountStatus.INACTIVE):
            raise ValidationError("Only deactivated or inactive accounts can be reactivated")
        old = AccountService.record_status_change(db, account, AccountStatus.ACTIVE, actor.id, "Account reactivated")
        account.rejection_reason = None
        NotificationService.notify(
            db, account.id, "Account Reactivated",
            "Your account has been reactivated. You can now log in to the system.",
            NotificationType.ACCOUNT, reference_id=account.id, reference_table="accounts"
        )
        db.commit()
        return account, old

    @staticmethod
    def revert_to_pending(db: Session, actor: Account, reservist_id: int,
                          reason: Optional[str] = None) -> Tuple[Account, AccountStatus]:
        reason = (reason or "").strip() or "Account reverted to pending for re-evaluation"
        account = AccountService._admin_target(db, reservist_id)
        if account.status != AccountStatus.ACTIVE:
            raise ValidationError("Only active accounts can be reverted to pending")
        old = AccountService.record_status_change(db, account, AccountStatus.PENDING, actor.id, reason)
        account.approved_by = None
        account.approved_at = None
        NotificationService.notify(
            db, account.id, "Account Pending Review",
            f"Your account has been returned to pending for re-evaluation. Reason: {reason}",
            NotificationType.ACCOUNT, reference_id=account.id, reference_table="accounts"
        )
        db.commit()
        return account, old

    @staticmethod
    def admin_change_status(db: Session, actor: Account, account_id: int, new_status: Optional[str],
                            reason: Optional[str], reservists_only: bool = False) -> Tuple[Account, AccountStatus]:
        """
        Set any status on an account.

        Administrator accounts may only be changed by a super admin.

        Raises:
            ValidationError: missing reason, unchanged status, deactivating oneself,
                or a non-reservist target when `reservists_only` is set
            ForbiddenError: a plain admin targeting an administrator account
        """
        if not new_status:
            raise ValidationError("status is required")
        target = parse_enum(new_status, AccountStatus, "status")
        reason = require_reason(reason, "reason is required for status changes")
        if reservists_only:
            account = AccountService._admin_target(db, account_id)
        else:
            account = db.query(Account).filter(Account.id == account_id).first()
            if not account:
                raise NotFoundError("Account not found")
        if account.id == actor.id and target != AccountStatus.ACTIVE:
            logger.warning(f"Administrator {actor.id} attempted to change their own status to {target.value}")
            raise ValidationError("Cannot deactivate your own account")
        if account.role in ADMIN_ROLES and actor.role != AccountRole.SUPER_ADMIN:
            logger.warning(f"Administrator {actor.id} attempted to change the status of administrator {account.id}")
            raise ForbiddenError("Only a super admin can change the status of administrator accounts")
        if account.status == target:
            raise ValidationError(f"Account is already {target.value}")

        old = AccountService.record_status_change(db, account, target, actor.id, reason)
        if target == AccountStatus.DEACTIVATED:
            account.rejection_reason = reason
        NotificationService.notify(
            db, account.id, f"Account Status Changed to {target.value.capitalize()}",
            f"Your account status was changed from {old.value} to {target.value}. Reason: {reason}",
            NotificationType.ACCOUNT, reference_id=account.id, reference_table="accounts"
        )
        db.commit()
        return account, old
