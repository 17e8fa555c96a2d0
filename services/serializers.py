"""
JSON shapes for API responses.
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from database.models import (
    Account, Announcement, AuditLog, Company, Document, Notification, RidsForm,
    TrainingHours, TrainingRegistration, TrainingSession
)
from storage.presigned import get_presigned_url


def iso(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def enum_value(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def row_to_dict(row: Any, exclude: tuple = ()) -> Dict[str, Any]:
    """Column values of an ORM row with dates as ISO strings and enums as values."""
    result = {}
    for column in row.__table__.columns:
        if column.key in exclude:
            continue
        value = getattr(row, column.key)
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        else:
            value = enum_value(value)
        result[column.key] = value
    return result


def account_summary(account: Optional[Account]) -> Optional[Dict[str, Any]]:
    if account is None:
        return None
    profile = account.profile
    return {
        "id": account.id,
        "email": account.email,
        "role": enum_value(account.role),
        "status": enum_value(account.status),
        "first_name": profile.first_name if profile else None,
        "middle_name": profile.middle_name if profile else None,
        "last_name": profile.last_name if profile else None,
        "full_name": account.full_name,
        "phone": profile.phone if profile else None,
        "profile_photo_url": profile.profile_photo_url if profile else None,
        "rejection_reason": account.rejection_reason,
        "approved_at": iso(account.approved_at),
        "last_login_at": iso(account.last_login_at),
        "created_at": iso(account.created_at),
        "updated_at": iso(account.updated_at),
    }


def reservist_to_dict(account: Account) -> Dict[str, Any]:
    data = account_summary(account)
    details = account.reservist_details
    data["reservist_details"] = row_to_dict(details, exclude=("account_id",)) if details else None
    return data


def staff_to_dict(account: Account) -> Dict[str, Any]:
    data = account_summary(account)
    details = account.staff_details
    if details:
        data["staff_details"] = {
            "employee_id": details.employee_id,
            "position": details.position,
            "assigned_companies": details.assigned_companies,
        }
    else:
        data["staff_details"] = None
    return data


def account_to_dict(account: Account) -> Dict[str, Any]:
    """Full account view with whichever role details exist."""
    if account.reservist_details is not None:
        return reservist_to_dict(account)
    if account.staff_details is not None:
        return staff_to_dict(account)
    return account_summary(account)


def person_brief(account: Optional[Account]) -> Optional[Dict[str, Any]]:
    """Compact reservist identity embedded in documents, RIDS and registrations."""
    if account is None:
        return None
    details = account.reservist_details
    return {
        "id": account.id,
        "email": account.email,
        "first_name": account.profile.first_name if account.profile else None,
        "middle_name": account.profile.middle_name if account.profile else None,
        "last_name": account.profile.last_name if account.profile else None,
        "company": details.company if details else None,
        "rank": details.rank if details else None,
        "service_number": details.service_number if details else None,
    }


def company_to_dict(company: Company) -> Dict[str, Any]:
    return row_to_dict(company)


def document_to_dict(document: Document) -> Dict[str, Any]:
    data = row_to_dict(document)
    data["download_url"] = get_presigned_url(document.file_url)
    data["reservist"] = person_brief(document.reservist)
    validator = document.validator
    data["validator"] = (
        {"id": validator.id, "full_name": validator.full_name} if validator else None
    )
    return data


def registration_to_dict(registration: TrainingRegistration) -> Dict[str, Any]:
    data = row_to_dict(registration)
    data["reservist"] = person_brief(registration.reservist)
    return data


def training_to_dict(session: TrainingSession) -> Dict[str, Any]:
    return row_to_dict(session)


def training_hours_to_dict(hours: TrainingHours) -> Dict[str, Any]:
    return row_to_dict(hours)


def notification_to_dict(notification: Notification) -> Dict[str, Any]:
    return row_to_dict(notification)


def announcement_to_dict(announcement: Announcement) -> Dict[str, Any]:
    data = row_to_dict(announcement)
    data["target_companies"] = announcement.target_companies or []
    data["target_roles"] = announcement.target_roles or []
    creator = announcement.creator
    data["creator"] = {"id": creator.id, "full_name": creator.full_name} if creator else None
    return data


def audit_log_to_dict(log: AuditLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "timestamp": iso(log.created_at),
        "action": log.action,
        "resourceType": log.resource_type,
        "resourceId": log.resource_id,
        "userId": log.user_id,
        "ip": log.ip_address,
        "userAgent": log.user_agent,
        "details": log.details,
    }


def rids_to_dict(rids: RidsForm, sections: Optional[Dict[str, list]] = None) -> Dict[str, Any]:
    """RIDS header, the owning reservist, and (for detail views) its ordered sections."""
    data = row_to_dict(rids)
    for field in ("photo_url", "thumbmark_url", "signature_url"):
        data[field.replace("_url", "_download_url")] = get_presigned_url(getattr(rids, field))
    data["reservist"] = person_brief(rids.reservist)
    if sections is not None:
        data["sections"] = {
            name: [row_to_dict(entry) for entry in entries] for name, entries in sections.items()
        }
    return data
