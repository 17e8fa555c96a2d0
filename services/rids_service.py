"""
RIDS (Reservist Information Data Sheet) service.

Lifecycle:

    (create) -> draft -> submitted -> approved
                  ^          |
                  |          v
                  +----- rejected   (editing a rejected form reverts it to draft)

Only draft forms can be deleted. Every status change writes a
rids_status_history row.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import (
    Account, AccountRole, Profile, ReservistDetail, RidsForm, RidsStatus, RidsStatusHistory,
    RidsPromotionHistory, RidsMilitaryTraining, RidsAward, RidsDependent, RidsEducation,
    RidsActiveDuty, RidsUnitAssignment, RidsDesignation, PromotionAction, NotificationType
)
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from core.logger import logger
from core.pagination import paginate
from core.validators import (
    file_extension, parse_date, parse_enum, require_fields, require_reason, validate_upload
)
from services.company_scope import CompanyScope
from services.notification_service import NotificationService
from services.storage_service import StorageService
from storage.s3_paths import biometric_key, biometrics_object_key
import config


# Section 2 (personal information) columns editable on the header row
PERSONAL_FIELDS = (
    "present_occupation", "company_name", "company_address", "office_tel_nr",
    "home_address_street", "home_address_city", "home_address_province", "home_address_zip",
    "res_tel_nr", "mobile_tel_nr", "birth_place", "religion", "height_cm", "weight_kg",
    "marital_status", "sex", "fb_account", "special_skills", "languages_spoken",
)
NUMERIC_FIELDS = ("height_cm", "weight_kg")
BIOMETRIC_TYPES = ("photo", "thumbmark", "signature")
BIOMETRIC_FIELDS = tuple(f"{t}_url" for t in BIOMETRIC_TYPES)
EDITABLE_STATUSES = (RidsStatus.DRAFT, RidsStatus.REJECTED)

# action -> (allowed source states, target state)
TRANSITIONS = {
    "submit": ((RidsStatus.DRAFT, RidsStatus.REJECTED), RidsStatus.SUBMITTED),
    "approve": ((RidsStatus.SUBMITTED,), RidsStatus.APPROVED),
    "reject": ((RidsStatus.SUBMITTED,), RidsStatus.REJECTED),
}

_IMAGE_EXTENSIONS = {"image/jpeg": "jpg", "image/jpg": "jpg", "image/png": "png", "image/svg+xml": "svg"}


class SectionTable:
    """How one 1:N RIDS section is validated, stored and ordered."""

    def __init__(self, model, fields: Dict[str, str], required: Tuple[str, ...],
                 order_by: Callable, defaults: Optional[Dict[str, Any]] = None):
        self.model = model
        self.fields = fields
        self.required = required
        self.order_by = order_by
        self.defaults = defaults or {}


SECTIONS: Dict[str, SectionTable] = {
    "promotion-history": SectionTable(
        RidsPromotionHistory,
        {"entry_number": "int", "rank": "str", "date_of_rank": "date", "authority": "str",
         "action_type": "promotion_action", "notes": "str"},
        ("rank", "date_of_rank", "authority", "entry_number"),
        lambda m: (m.entry_number.asc(), m.id.asc()),
        defaults={"action_type": PromotionAction.PROMOTION},
    ),
    "military-training": SectionTable(
        RidsMilitaryTraining,
        {"training_name": "str", "school": "str", "date_graduated": "date",
         "certificate_number": "str", "training_category": "str", "duration_days": "int",
         "verification_status": "str"},
        ("training_name",),
        lambda m: (m.date_graduated.desc(), m.id.asc()),
    ),
    "awards": SectionTable(
        RidsAward,
        {"award_name": "str", "authority": "str", "date_awarded": "date", "citation": "str",
         "award_category": "str"},
        ("award_name",),
        lambda m: (m.date_awarded.desc(), m.id.asc()),
    ),
    "dependents": SectionTable(
        RidsDependent,
        {"relation": "str", "full_name": "str", "birthdate": "date", "contact_info": "str"},
        ("relation", "full_name"),
        lambda m: (m.id.asc(),),
    ),
    "education": SectionTable(
        RidsEducation,
        {"course": "str", "school": "str", "date_graduated": "date", "level": "str", "honors": "str"},
        ("course", "school"),
        lambda m: (m.date_graduated.desc(), m.id.asc()),
    ),
    "active-duty": SectionTable(
        RidsActiveDuty,
        {"unit": "str", "purpose": "str", "authority": "str", "date_start": "date", "date_end": "date",
         "efficiency_rating": "str", "evaluator": "str", "remarks": "str", "verification_status": "str"},
        ("unit", "date_start", "date_end"),
        lambda m: (m.date_start.desc(), m.id.asc()),
    ),
    "unit-assignments": SectionTable(
        RidsUnitAssignment,
        {"unit": "str", "authority": "str", "date_from": "date", "date_to": "date",
         "is_current": "bool", "assignment_reason": "str"},
        ("unit", "date_from"),
        lambda m: (m.date_from.desc(), m.id.asc()),
    ),
    "designations": SectionTable(
        RidsDesignation,
        {"position": "str", "authority": "str", "date_from": "date", "date_to": "date",
         "is_current": "bool", "responsibilities": "list"},
        ("position", "date_from"),
        lambda m: (m.date_from.desc(), m.id.asc()),
    ),
}

# Response keys for the detail view, in form order
SECTION_KEYS = {
    "promotion-history": "promotion_history",
    "military-training": "military_training",
    "awards": "awards",
    "dependents": "dependents",
    "education": "education",
    "active-duty": "active_duty",
    "unit-assignments": "unit_assignments",
    "designations": "designations",
}


def _text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValidationError(f"{field} must be a string")
    return str(value).strip()


def _coerce(value: Any, kind: str, field: str) -> Any:
    if value is None:
        return None
    if kind == "date":
        return parse_date(value, field)
    if kind == "int":
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be an integer")
    if kind == "bool":
        if not isinstance(value, bool):
            raise ValidationError(f"{field} must be a boolean")
        return value
    if kind == "list":
        if not isinstance(value, list):
            raise ValidationError(f"{field} must be a list")
        return [str(v) for v in value]
    if kind == "promotion_action":
        return parse_enum(value, PromotionAction, field)
    return _text(value, field)


class RidsService:
    """RIDS lifecycle, Section 2 data, child sections and biometrics."""

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @staticmethod
    def get_rids(db: Session, scope: CompanyScope, rids_id: int) -> RidsForm:
        """
        Load a RIDS form the caller may see.

        Raises:
            NotFoundError: no such form
            ForbiddenError: reservist's company outside the caller's scope
        """
        rids = db.query(RidsForm).filter(RidsForm.id == rids_id).first()
        if not rids:
            raise NotFoundError("RIDS not found")
        scope.check(RidsService._company_of(rids), message="Forbidden - RIDS not in your assigned companies")
        return rids

    @staticmethod
    def get_for_reservist(db: Session, reservist_id: int) -> Optional[RidsForm]:
        return db.query(RidsForm).filter(RidsForm.reservist_id == reservist_id).first()

    @staticmethod
    def _company_of(rids: RidsForm) -> Optional[str]:
        details = rids.reservist.reservist_details if rids.reservist else None
        return details.company if details else None

    @staticmethod
    def list_rids(
        db: Session,
        scope: CompanyScope,
        status: Optional[str] = None,
        company: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[RidsForm], Dict[str, int]]:
        """Scoped RIDS list, newest first."""
        query = (
            db.query(RidsForm)
            .join(Account, RidsForm.reservist_id == Account.id)
            .join(ReservistDetail, ReservistDetail.account_id == Account.id)
            .outerjoin(Profile, Profile.account_id == Account.id)
        )
        query = scope.narrow(query, ReservistDetail.company, company)
        if status:
            query = query.filter(RidsForm.status == parse_enum(status, RidsStatus, "status"))
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                Profile.first_name.ilike(term),
                Profile.last_name.ilike(term),
                Account.email.ilike(term),
                ReservistDetail.service_number.ilike(term),
            ))
        query = query.order_by(RidsForm.created_at.desc(), RidsForm.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def get_sections(db: Session, rids: RidsForm) -> Dict[str, list]:
        """All eight sections, each in its display order."""
        sections = {}
        for name, section in SECTIONS.items():
            sections[SECTION_KEYS[name]] = (
                db.query(section.model)
                .filter(section.model.rids_id == rids.id)
                .order_by(*section.order_by(section.model))
                .all()
            )
        return sections

    # ------------------------------------------------------------------
    # Header CRUD
    # ------------------------------------------------------------------

    @staticmethod
    def create(db: Session, actor: Account, scope: CompanyScope, data: Dict[str, Any]) -> RidsForm:
        """
        Create a draft RIDS (version 1) for a reservist.

        Raises:
            ValidationError: reservist_id missing
            NotFoundError: unknown reservist
            ForbiddenError: reservist outside scope
            ConflictError: the reservist already has a RIDS
        """
        reservist_id = data.get("reservist_id")
        if not reservist_id:
            raise ValidationError("reservist_id is required")

        reservist = db.query(Account).filter(
            Account.id == reservist_id,
            Account.role == AccountRole.RESERVIST
        ).first()
        if not reservist:
            raise NotFoundError("Reservist not found")
        company = reservist.reservist_details.company if reservist.reservist_details else None
        scope.check(company, message="Forbidden - Reservist not in your assigned companies")

        if RidsService.get_for_reservist(db, reservist.id):
            raise ConflictError("RIDS already exists for this reservist")

        rids = RidsForm(
            reservist_id=reservist.id,
            status=RidsStatus.DRAFT,
            version=1,
            created_by=actor.id,
            updated_by=actor.id,
        )
        RidsService._apply_personal_fields(rids, data)
        db.add(rids)
        db.commit()
        logger.info(f"RIDS {rids.id} created for reservist {reservist.id} by {actor.id}")
        return rids

    @staticmethod
    def _apply_personal_fields(rids: RidsForm, data: Dict[str, Any]):
        for field in PERSONAL_FIELDS + BIOMETRIC_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field not in NUMERIC_FIELDS:
                value = _text(value, field)
            elif value is not None:
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    raise ValidationError(f"{field} must be a number")
            setattr(rids, field, value)

    @staticmethod
    def _ensure_editable(db: Session, rids: RidsForm, actor: Account):
        """Allow edits in draft/rejected; the first edit of a rejected form reverts it to draft."""
        if rids.status not in EDITABLE_STATUSES:
            raise ValidationError(f"Cannot edit RIDS with status: {rids.status.value}")
        if rids.status == RidsStatus.REJECTED:
            RidsService._set_status(db, rids, RidsStatus.DRAFT, "revert", actor,
                                    reason="Edited after rejection")
            rids.rejection_reason = None
        rids.updated_by = actor.id
        rids.updated_at = datetime.utcnow()

    @staticmethod
    def update(db: Session, actor: Account, scope: CompanyScope, rids_id: int, data: Dict[str, Any]) -> RidsForm:
        """Update Section 2 fields and biometric URLs of an editable form."""
        rids = RidsService.get_rids(db, scope, rids_id)
        RidsService._ensure_editable(db, rids, actor)
        RidsService._apply_personal_fields(rids, data)
        db.commit()
        logger.info(f"RIDS {rids.id} updated by {actor.id}")
        return rids

    @staticmethod
    def delete(db: Session, actor: Account, scope: CompanyScope, rids_id: int):
        """
        Delete a draft RIDS and all of its section rows.

        Raises:
            ForbiddenError: form is not a draft
        """
        rids = RidsService.get_rids(db, scope, rids_id)
        if rids.status != RidsStatus.DRAFT:
            logger.warning(f"Refused delete of RIDS {rids.id} in status {rids.status.value}")
            raise ForbiddenError("Can only delete draft RIDS")
        db.delete(rids)
        db.commit()
        logger.info(f"RIDS {rids_id} deleted by {actor.id}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _set_status(db: Session, rids: RidsForm, new_status: RidsStatus, action_type: str,
                    actor: Account, reason: Optional[str] = None):
        db.add(RidsStatusHistory(
            rids_id=rids.id,
            old_status=rids.status,
            new_status=new_status,
            action_type=action_type,
            reason=reason,
            changed_by=actor.id,
        ))
        logger.info(f"RIDS {rids.id}: {rids.status.value} -> {new_status.value} ({action_type}) by {actor.id}")
        rids.status = new_status

    @staticmethod
    def transition(db: Session, actor: Account, scope: CompanyScope, rids_id: int, action: str,
                   reason: Optional[str] = None) -> RidsForm:
        """
        Apply a guarded lifecycle action (submit, approve or reject).

        Raises:
            ValidationError: action not allowed from the current status, or reject without a reason
        """
        sources, target = TRANSITIONS[action]
        if action == "reject":
            reason = require_reason(reason, "Rejection reason is required")

        rids = RidsService.get_rids(db, scope, rids_id)
        if rids.status not in sources:
            raise ValidationError(f"Cannot {action} RIDS with status: {rids.status.value}")

        now = datetime.utcnow()
        if action == "submit":
            rids.submitted_at = now
            rids.submitted_by = actor.id
            rids.rejection_reason = None
        elif action == "approve":
            rids.approved_at = now
            rids.approved_by = actor.id
            rids.rejection_reason = None
        else:
            rids.rejection_reason = reason

        RidsService._set_status(db, rids, target, action, actor, reason=reason)
        rids.updated_by = actor.id

        if action == "approve":
            NotificationService.notify(
                db, rids.reservist_id, "RIDS Approved", "Your RIDS has been approved.",
                NotificationType.RIDS, rids.id, "rids_forms"
            )
        elif action == "reject":
            NotificationService.notify(
                db, rids.reservist_id, "RIDS Rejected", f"Your RIDS has been rejected. Reason: {reason}",
                NotificationType.RIDS, rids.id, "rids_forms"
            )
        db.commit()
        return rids

    @staticmethod
    def change_status(db: Session, actor: Account, scope: CompanyScope, rids_id: int,
                      new_status: Optional[str], reason: Optional[str]) -> RidsForm:
        """
        Administrative override: move a form to any other status with a reason.

        Restricted to admin and super_admin; staff use the guarded actions.
        """
        if actor.role not in (AccountRole.ADMIN, AccountRole.SUPER_ADMIN):
            raise ForbiddenError("Only administrators can override RIDS status")
        if not new_status:
            raise ValidationError("new_status is required")
        reason = require_reason(reason, "reason is required for status changes")
        target = parse_enum(new_status, RidsStatus, "status")

        rids = RidsService.get_rids(db, scope, rids_id)
        if rids.status == target:
            raise ValidationError(f"RIDS is already {target.value}")

        old = rids.status
        now = datetime.utcnow()
        if target == RidsStatus.APPROVED:
            rids.approved_by = actor.id
            rids.approved_at = now
            rids.rejection_reason = None
        elif target == RidsStatus.REJECTED:
            rids.rejection_reason = reason
            rids.approved_by = None
            rids.approved_at = None
        else:
            rids.approved_by = None
            rids.approved_at = None
            rids.rejection_reason = None
            if target == RidsStatus.SUBMITTED:
                rids.submitted_at = now
                rids.submitted_by = actor.id

        if target == RidsStatus.DRAFT and old in (RidsStatus.APPROVED, RidsStatus.REJECTED):
            action_type = "revert"
        else:
            action_type = "manual_change"
        RidsService._set_status(db, rids, target, action_type, actor, reason=reason)
        rids.updated_by = actor.id
        db.commit()
        return rids

    @staticmethod
    def history(db: Session, rids: RidsForm) -> List[RidsStatusHistory]:
        return (
            db.query(RidsStatusHistory)
            .filter(RidsStatusHistory.rids_id == rids.id)
            .order_by(RidsStatusHistory.created_at.asc(), RidsStatusHistory.id.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    @staticmethod
    def _section(name: str) -> SectionTable:
        section = SECTIONS.get(name)
        if not section:
            raise NotFoundError(f"Unknown RIDS section: {name}")
        return section

    @staticmethod
    def _section_values(section: SectionTable, data: Dict[str, Any], partial: bool) -> Dict[str, Any]:
        if not partial:
            require_fields(data, section.required)
        values = {}
        for field, kind in section.fields.items():
            if field in data:
                values[field] = _coerce(data[field], kind, field)
        if partial:
            blank = [f for f in section.required if f in values and values[f] in (None, "")]
            if blank:
                raise ValidationError(f"Missing required fields: {', '.join(blank)}")
        else:
            for field, default in section.defaults.items():
                if values.get(field) is None:
                    values[field] = default
        return values

    @staticmethod
    def _finish_entry(entry):
        if isinstance(entry, RidsActiveDuty) and entry.date_start and entry.date_end:
            if entry.date_end < entry.date_start:
                raise ValidationError("date_end must be on or after date_start")
            entry.days_served = (entry.date_end - entry.date_start).days + 1

    @staticmethod
    def add_entry(db: Session, actor: Account, scope: CompanyScope, rids_id: int, section: str,
                  data: Dict[str, Any]):
        """Add a row to one of the eight sections of an editable form."""
        table = RidsService._section(section)
        rids = RidsService.get_rids(db, scope, rids_id)
        values = RidsService._section_values(table, data, partial=False)
        RidsService._ensure_editable(db, rids, actor)
        entry = table.model(rids_id=rids.id, **values)
        RidsService._finish_entry(entry)
        db.add(entry)
        db.commit()
        return entry

    @staticmethod
    def _get_entry(db: Session, section: SectionTable, rids: RidsForm, entry_id: int):
        entry = db.query(section.model).filter(section.model.id == entry_id, section.model.rids_id == rids.id).first()
        if not entry:
            raise NotFoundError("Entry not found")
        return entry

    @staticmethod
    def update_entry(db: Session, actor: Account, scope: CompanyScope, rids_id: int, section: str,
                     entry_id: int, data: Dict[str, Any]):
        table = RidsService._section(section)
        rids = RidsService.get_rids(db, scope, rids_id)
        entry = RidsService._get_entry(db, table, rids, entry_id)
        values = RidsService._section_values(table, data, partial=True)
        RidsService._ensure_editable(db, rids, actor)
        for field, value in values.items():
            setattr(entry, field, value)
        RidsService._finish_entry(entry)
        db.commit()
        return entry

    @staticmethod
    def delete_entry(db: Session, actor: Account, scope: CompanyScope, rids_id: int, section: str,
                     entry_id: int):
        table = RidsService._section(section)
        rids = RidsService.get_rids(db, scope, rids_id)
        entry = RidsService._get_entry(db, table, rids, entry_id)
        RidsService._ensure_editable(db, rids, actor)
        db.delete(entry)
        db.commit()

    # ------------------------------------------------------------------
    # Biometrics
    # ------------------------------------------------------------------

    @staticmethod
    def upload_biometric(db: Session, actor: Account, scope: CompanyScope, rids_id: int,
                         file_type: str, content: bytes, content_type: Optional[str],
                         filename: Optional[str] = None) -> Tuple[RidsForm, str]:
        """
        Store a photo, thumbmark or signature image and point the form at it.

        Returns:
            Tuple of (form, stored URL)
        """
        if file_type not in BIOMETRIC_TYPES:
            raise ValidationError("Invalid file type. Must be photo, thumbmark, or signature")
        validate_upload(content_type, len(content), config.ALLOWED_BIOMETRIC_TYPES, config.MAX_BIOMETRIC_SIZE_MB)

        rids = RidsService.get_rids(db, scope, rids_id)
        RidsService._ensure_editable(db, rids, actor)

        extension = _IMAGE_EXTENSIONS.get(content_type) or file_extension(filename) or "bin"
        key = biometrics_object_key(biometric_key(rids.reservist_id, file_type, extension))
        previous = getattr(rids, f"{file_type}_url")
        url = StorageService.save(content, key, content_type=content_type,
                                  metadata={"rids_id": rids.id, "file_type": file_type})
        setattr(rids, f"{file_type}_url", url)
        db.commit()
        if previous and previous != url:
            StorageService.delete(previous)
        logger.info(f"RIDS {rids.id}: {file_type} uploaded by {actor.id}")
        return rids, url
