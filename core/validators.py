"""
Input validation utilities for the personnel portal.
"""
import os
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional, Type
import enum

from core.exceptions import ValidationError


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for use
    """
    if not filename:
        raise ValidationError("Filename cannot be empty")

    filename = os.path.basename(filename.replace("\\", "/"))
    sanitized = "".join(c if c.isalnum() or c in "._-" else "_" for c in filename)[:255]

    if not sanitized.strip("._"):
        raise ValidationError("Filename became empty after sanitization")
    return sanitized


def file_extension(filename: str) -> str:
    """Lowercase extension without the dot ("" when absent)."""
    _, ext = os.path.splitext(filename or "")
    return ext.lstrip(".").lower()


def validate_upload(content_type: Optional[str], size: int, allowed_types: Iterable[str], max_size_mb: int):
    """
    Validate an uploaded file's MIME type and size.

    Raises:
        ValidationError: empty file, disallowed type or too large
    """
    if size == 0:
        raise ValidationError("File is empty")
    allowed = set(allowed_types)
    if content_type not in allowed:
        raise ValidationError(f"Invalid file type. Allowed types: {', '.join(sorted(allowed))}")
    if size > max_size_mb * 1024 * 1024:
        raise ValidationError(f"File too large. Maximum size is {max_size_mb}MB")


def require_fields(data: dict, fields: Iterable[str]):
    """Raise ValidationError listing every field that is missing or blank."""
    missing = [f for f in fields if data.get(f) is None or (isinstance(data.get(f), str) and not data[f].strip())]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def require_reason(reason: Optional[str], message: str = "Reason is required") -> str:
    """Return the stripped reason, rejecting empty or whitespace-only text."""
    if reason is None or not str(reason).strip():
        raise ValidationError(message)
    return str(reason).strip()


def parse_enum(value: Any, enum_cls: Type[enum.Enum], field: str):
    """Coerce a raw value into `enum_cls` or raise with the allowed values."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {field}. Must be one of: {allowed}")


def parse_date(value: Any, field: str) -> Optional[date]:
    """Accept a date, a datetime or an ISO string (YYYY-MM-DD...)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid date for {field}")


def parse_datetime(value: Any, field: str) -> Optional[datetime]:
    """Accept a datetime, a date or an ISO string; timezone info is dropped (stored as UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid date for {field}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
