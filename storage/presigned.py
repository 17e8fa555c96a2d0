"""
Presigned URL helper for API responses.
Converts stored s3:// URLs to HTTPS presigned URLs so browsers can load them.
"""
from typing import Optional

import config


def get_presigned_url(stored_url: Optional[str], expires_in: int = 3600) -> Optional[str]:
    """
    Resolve a stored file URL for a client.

    Local "/uploads/..." URLs are returned unchanged; "s3://" URLs are presigned
    when an S3 client is configured (None otherwise).
    """
    if not stored_url or not str(stored_url).strip():
        return None
    if not stored_url.startswith("s3://"):
        return stored_url
    if not config.s3_client:
        return None
    return config.s3_client.get_presigned_url_for_path(stored_url, expires_in=expires_in)
