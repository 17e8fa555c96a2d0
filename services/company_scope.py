"""
Company scoping for staff-facing endpoints.

Every staff list/detail/mutation goes through a CompanyScope built from the
caller's account. Staff are limited to their assigned companies; admin and
super_admin are unrestricted.
"""
from typing import Iterable, List, Optional

from sqlalchemy import false
from sqlalchemy.orm import Query

from database.models import Account, AccountRole
from core.exceptions import ForbiddenError


class CompanyScope:
    """The set of companies an account may read or modify."""

    def __init__(self, companies: Optional[Iterable[str]] = None, unrestricted: bool = False):
        self.companies: List[str] = sorted(set(companies or []))
        self.unrestricted = unrestricted

    @classmethod
    def for_account(cls, account: Account) -> "CompanyScope":
        if account.role in (AccountRole.ADMIN, AccountRole.SUPER_ADMIN):
            return cls(unrestricted=True)
        if account.role == AccountRole.STAFF and account.staff_details:
            return cls(account.staff_details.assigned_companies)
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.unrestricted and not self.companies

    def allows(self, company: Optional[str], allow_global: bool = False) -> bool:
        """
        Whether a record in `company` is visible.

        Args:
            company: Company code of the record (None for unassigned records)
            allow_global: Treat a None company as system-wide and visible to everyone
        """
        if self.unrestricted:
            return True
        if company is None:
            return allow_global
        return company in self.companies

    def check(self, company: Optional[str], message: str = "Access denied - Company not assigned",
              allow_global: bool = False):
        """Raise ForbiddenError unless `company` is in scope."""
        if not self.allows(company, allow_global=allow_global):
            raise ForbiddenError(message)

    def require_assignments(self):
        """Staff with no assigned companies may not act on scoped records at all."""
        if self.is_empty:
            raise ForbiddenError("No assigned companies")

    def apply(self, query: Query, column, allow_global: bool = False) -> Query:
        """Restrict a query to rows whose `column` is in scope."""
        if self.unrestricted:
            return query
        if not self.companies:
            if allow_global:
                return query.filter(column.is_(None))
            return query.filter(false())
        if allow_global:
            return query.filter((column.in_(self.companies)) | (column.is_(None)))
        return query.filter(column.in_(self.companies))

    def narrow(self, query: Query, column, company: Optional[str], allow_global: bool = False) -> Query:
        """
        Apply an optional company filter on top of the scope.

        A filter naming a company outside the scope is rejected rather than
        silently returning an empty page.
        """
        if company:
            self.check(company, message="Access denied - Company not assigned to you")
            return query.filter(column == company)
        return self.apply(query, column, allow_global=allow_global)
