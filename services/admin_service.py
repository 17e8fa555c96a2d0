"""
Administrator accounts (super admin only) and portal-wide statistics.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from database.models import (
    Account, AccountRole, AccountStatus, Company, Document, Profile, RidsForm, TrainingSession
)
from core.exceptions import NotFoundError, ValidationError
from core.logger import logger
from core.pagination import paginate
from core.validators import parse_enum
from services.account_service import AccountService
from services.auth_service import AuthService


ADMIN_ACCOUNT_ROLES = (AccountRole.ADMIN, AccountRole.SUPER_ADMIN)


def _admin_role(value: Any, message: str) -> AccountRole:
    try:
        role = AccountRole(value)
    except ValueError:
        raise ValidationError(message)
    if role not in ADMIN_ACCOUNT_ROLES:
        raise ValidationError(message)
    return role


class AdministratorService:
    """Admin and super admin account management."""

    @staticmethod
    def _query(db: Session):
        return (
            db.query(Account)
            .outerjoin(Profile, Profile.account_id == Account.id)
            .filter(Account.role.in_(ADMIN_ACCOUNT_ROLES))
        )

    @staticmethod
    def list_administrators(
        db: Session,
        role: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Account], Dict[str, int]]:
        query = AdministratorService._query(db)
        if role and role != "all":
            query = query.filter(Account.role == _admin_role(role, "Invalid role"))
        if status and status != "all":
            query = query.filter(Account.status == parse_enum(status, AccountStatus, "status"))
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                Account.email.ilike(term), Profile.first_name.ilike(term), Profile.last_name.ilike(term)
            ))
        ordering = Account.created_at.asc() if sort_order == "asc" else Account.created_at.desc()
        return paginate(query.order_by(ordering, Account.id.desc()), page, limit)

    @staticmethod
    def get_administrator(db: Session, admin_id: int) -> Account:
        account = AdministratorService._query(db).filter(Account.id == admin_id).first()
        if not account:
            raise NotFoundError("Administrator not found")
        return account

    @staticmethod
    def create(db: Session, actor: Account, data: Dict[str, Any]) -> Account:
        if any(not data.get(f) for f in ("email", "firstName", "lastName", "role", "password")):
            raise ValidationError("Missing required fields: email, firstName, lastName, role, password")
        role = _admin_role(data["role"], "Invalid role. Must be admin or super_admin")
        account = AuthService.create_account(
            db, data["email"], data["password"], role, data["firstName"], data["lastName"],
            middle_name=data.get("middleName"), phone=data.get("phone"),
            status=AccountStatus.ACTIVE, created_by=actor.id
        )
        logger.info(f"Administrator {account.email} ({role.value}) created by {actor.id}")
        return account

    @staticmethod
    def update(db: Session, actor: Account, admin_id: int, data: Dict[str, Any]) -> Account:
        """
        Update names, phone and status.

        The role of an account never changes; a super admin cannot move
        their own account away from active.
        """
        if not any(data.get(f) is not None for f in ("firstName", "middleName", "lastName", "phone", "status")):
            raise ValidationError("No fields to update")
        account = AdministratorService.get_administrator(db, admin_id)

        if data.get("status"):
            target = parse_enum(data["status"], AccountStatus, "status")
            if account.id == actor.id and target != AccountStatus.ACTIVE:
                logger.warning(f"Administrator {actor.id} attempted to deactivate their own account")
                raise ValidationError("Cannot deactivate your own account")
            if target != account.status:
                AccountService.record_status_change(db, account, target, actor.id, "Updated by super administrator")

        for key, field in (("firstName", "first_name"), ("middleName", "middle_name"),
                           ("lastName", "last_name"), ("phone", "phone")):
            if data.get(key) is not None:
                setattr(account.profile, field, data[key])
        db.commit()
        logger.info(f"Administrator {account.id} updated by {actor.id}")
        return account

    @staticmethod
    def delete(db: Session, actor: Account, admin_id: int) -> str:
        if admin_id == actor.id:
            raise ValidationError("Cannot delete your own account")
        account = AdministratorService.get_administrator(db, admin_id)
        email = account.email
        db.delete(account)
        db.commit()
        logger.info(f"Administrator {email} deleted by {actor.id}")
        return email


def _count_by(db: Session, column, *filters) -> Dict[str, int]:
    query = db.query(column, func.count()).filter(*filters).group_by(column)
    return {getattr(value, "value", value): count for value, count in query.all()}


def portal_stats(db: Session) -> Dict[str, Any]:
    """Headline counters plus per-status breakdowns for the admin dashboard."""
    by_role = _count_by(db, Account.role)
    accounts = {
        role.value: _count_by(db, Account.status, Account.role == role) for role in AccountRole
    }
    return {
        "totalCompanies": db.query(Company).filter(Company.is_active == True).count(),
        "activeStaff": accounts[AccountRole.STAFF.value].get(AccountStatus.ACTIVE.value, 0),
        "totalReservists": by_role.get(AccountRole.RESERVIST.value, 0),
        "pendingActions": accounts[AccountRole.RESERVIST.value].get(AccountStatus.PENDING.value, 0),
        "accounts": accounts,
        "documents": _count_by(db, Document.status, Document.is_current == True),
        "rids": _count_by(db, RidsForm.status),
        "training": _count_by(db, TrainingSession.status),
    }
