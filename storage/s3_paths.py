"""
Object key layout for portal uploads.

    rids-biometrics/{reservist_id}/{photo|thumbmark|signature}-{timestamp}.{ext}
    documents/{reservist_id}/{document_type}-{timestamp}-{filename}
"""
import re
import time
from typing import Optional

import config


def _timestamp() -> int:
    return int(time.time() * 1000)


def _slug(value: str) -> str:
    value = re.sub(r"[^A-Za-z0-9._-]+", "-", value.strip())
    return value.strip("-").lower() or "file"


def biometric_key(reservist_id: int, file_type: str, extension: str, timestamp: Optional[int] = None) -> str:
    """Key for a RIDS biometric image (relative to the biometrics prefix)."""
    ts = timestamp if timestamp is not None else _timestamp()
    return f"{reservist_id}/{file_type}-{ts}.{extension.lstrip('.').lower()}"


def document_key(reservist_id: int, document_type: str, filename: str, timestamp: Optional[int] = None) -> str:
    """Key for an uploaded reservist document (relative to the documents prefix)."""
    ts = timestamp if timestamp is not None else _timestamp()
    return f"{reservist_id}/{_slug(document_type)}-{ts}-{_slug(filename)}"


def with_prefix(prefix: str, key: str) -> str:
    return f"{prefix.rstrip('/')}/{key}"


def biometrics_object_key(key: str) -> str:
    return with_prefix(config.S3_BIOMETRICS_PREFIX, key)


def documents_object_key(key: str) -> str:
    return with_prefix(config.S3_DOCUMENTS_PREFIX, key)
