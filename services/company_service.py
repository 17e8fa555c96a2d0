"""
Company registry. Companies are deactivated, never hard-deleted.
"""
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from database.models import Account, Company, ReservistDetail, StaffCompanyAssignment
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.logger import logger


class CompanyService:
    """Company CRUD."""

    @staticmethod
    def list_companies(db: Session, active_only: bool = False) -> List[Company]:
        query = db.query(Company)
        if active_only:
            query = query.filter(Company.is_active == True)
        return query.order_by(Company.code.asc()).all()

    @staticmethod
    def get_company(db: Session, code: str) -> Company:
        company = db.query(Company).filter(Company.code == code.strip().upper()).first()
        if not company:
            raise NotFoundError("Company not found")
        return company

    @staticmethod
    def create(db: Session, actor: Account, data: Dict[str, Any]) -> Company:
        """
        Raises:
            ValidationError: missing code/name or code shorter than 2 characters
            ConflictError: code already used
        """
        code = (data.get("code") or "").strip().upper()
        name = (data.get("name") or "").strip()
        if not code or not name:
            raise ValidationError("Missing required fields: code, name")
        if len(code) < 2:
            raise ValidationError("Company code must be at least 2 characters")
        if db.query(Company).filter(Company.code == code).first():
            raise ConflictError("A company with this code already exists")

        company = Company(code=code, name=name, description=(data.get("description") or None), is_active=True)
        db.add(company)
        db.commit()
        logger.info(f"Company {code} created by {actor.id}")
        return company

    @staticmethod
    def update(db: Session, actor: Account, code: str, data: Dict[str, Any]) -> Tuple[Company, Dict[str, Any]]:
        """
        Returns:
            Tuple of (company, previous values of changed fields)
        """
        company = CompanyService.get_company(db, code)
        old_values = {}
        if "name" in data and data["name"] is not None:
            if not data["name"].strip():
                raise ValidationError("name cannot be empty")
            old_values["name"] = company.name
            company.name = data["name"].strip()
        if "description" in data:
            old_values["description"] = company.description
            company.description = data["description"] or None
        if "is_active" in data and data["is_active"] is not None:
            if not isinstance(data["is_active"], bool):
                raise ValidationError("is_active must be a boolean")
            old_values["is_active"] = company.is_active
            company.is_active = data["is_active"]
        if not old_values:
            raise ValidationError("No fields to update")
        db.commit()
        logger.info(f"Company {company.code} updated by {actor.id}")
        return company, old_values

    @staticmethod
    def deactivate(db: Session, actor: Account, code: str) -> Tuple[Company, int]:
        """
        Soft delete.

        Returns:
            Tuple of (company, staff and reservist assignments still pointing at it)
        """
        company = CompanyService.get_company(db, code)
        if not company.is_active:
            raise ValidationError("Company is already deactivated")
        staff_count = db.query(StaffCompanyAssignment).filter(
            StaffCompanyAssignment.company_code == company.code
        ).count()
        reservist_count = db.query(ReservistDetail).filter(ReservistDetail.company == company.code).count()
        company.is_active = False
        db.commit()
        remaining = staff_count + reservist_count
        logger.info(f"Company {company.code} deactivated by {actor.id} ({remaining} assignments remain)")
        return company, remaining
