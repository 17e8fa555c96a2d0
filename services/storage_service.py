"""
Upload storage: S3 when configured, otherwise the local uploads directory.
"""
from io import BytesIO
from pathlib import Path
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from core.logger import logger
import config


class StorageService:
    """Persist uploaded bytes and return the URL stored on the owning row."""

    @staticmethod
    def save(content: bytes, object_key: str, content_type: Optional[str] = None,
             metadata: Optional[dict] = None) -> str:
        """
        Store an upload.

        Args:
            content: File bytes (already validated)
            object_key: Key under the bucket / uploads directory
            content_type: MIME type
            metadata: S3 object metadata

        Returns:
            "s3://bucket/key" when S3 is active, "/uploads/key" for local storage
        """
        if config.s3_client:
            return config.s3_client.upload_fileobj(
                BytesIO(content), object_key, content_type=content_type, metadata=metadata
            )

        target = Path(config.UPLOADS_DIR) / object_key
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.info(f"Stored upload locally: {target}")
        return f"/uploads/{object_key}"

    @staticmethod
    def delete(stored_url: Optional[str]) -> bool:
        """
        Remove a replaced upload. Failures are logged and reported as False.

        Returns:
            True when an object or file was removed
        """
        if not stored_url:
            return False
        try:
            if stored_url.startswith("s3://"):
                if not config.s3_client:
                    return False
                bucket, _, key = stored_url[len("s3://"):].partition("/")
                if bucket != config.s3_client.bucket_name or not key:
                    logger.warning(f"Not deleting object outside the configured bucket: {stored_url}")
                    return False
                return config.s3_client.delete_file(key)
            if stored_url.startswith("/uploads/"):
                target = Path(config.UPLOADS_DIR) / stored_url[len("/uploads/"):]
                if target.is_file():
                    target.unlink()
                    logger.info(f"Removed local upload: {target}")
                    return True
        except (ClientError, BotoCoreError, OSError) as e:
            logger.warning(f"Could not remove replaced upload {stored_url}: {e}")
        return False
