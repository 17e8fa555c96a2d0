"""
S3 client for portal uploads (RIDS biometrics and reservist documents).
"""
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from typing import Optional, BinaryIO

from core.logger import logger


class S3Client:
    """S3 client bound to a single portal bucket; objects are separated by key prefix."""

    def __init__(
        self,
        bucket_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,  # For S3-compatible services (MinIO, etc.)
        auto_create_bucket: bool = True
    ):
        """
        Initialize S3 client.

        Args:
            bucket_name: Portal bucket
            aws_access_key_id: AWS access key (or from env)
            aws_secret_access_key: AWS secret key (or from env)
            region_name: AWS region
            endpoint_url: Custom endpoint URL (for MinIO, etc.)
            auto_create_bucket: Create the bucket on startup if it is missing
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.auto_create_bucket = auto_create_bucket

        client_kwargs = {"region_name": region_name}
        if aws_access_key_id:
            client_kwargs["aws_access_key_id"] = aws_access_key_id
        if aws_secret_access_key:
            client_kwargs["aws_secret_access_key"] = aws_secret_access_key
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url

        self.s3_client = boto3.client("s3", **client_kwargs)
        self._ensure_bucket_exists()
        logger.info(f"S3 client initialized (bucket: {bucket_name})")

    def _ensure_bucket_exists(self):
        """Ensure the bucket exists, create it if allowed."""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in ("404", "NoSuchBucket") or not self.auto_create_bucket:
                logger.error(f"Error checking bucket {self.bucket_name}: {e}")
                raise
            if self.region_name == "us-east-1":
                self.s3_client.create_bucket(Bucket=self.bucket_name)
            else:
                self.s3_client.create_bucket(
                    Bucket=self.bucket_name,
                    CreateBucketConfiguration={"LocationConstraint": self.region_name}
                )
            logger.info(f"Created bucket: {self.bucket_name}")

    def upload_fileobj(
        self,
        file_obj: BinaryIO,
        s3_key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> str:
        """
        Upload a file-like object.

        Args:
            file_obj: File-like object (BytesIO, file handle, etc.)
            s3_key: Object key
            content_type: MIME type
            metadata: Additional metadata

        Returns:
            s3:// URL of the uploaded object
        """
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type
        if metadata:
            extra_args["Metadata"] = {str(k): str(v) for k, v in metadata.items()}

        try:
            self.s3_client.upload_fileobj(file_obj, self.bucket_name, s3_key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload file object to S3: {e}")
            raise

        url = f"s3://{self.bucket_name}/{s3_key}"
        logger.info(f"Uploaded file object to S3: {url}")
        return url

    def delete_file(self, s3_key: str) -> bool:
        """Delete an object; True on success."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=s3_key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete file from S3: {e}")
            raise
        logger.info(f"Deleted file from S3: {self.bucket_name}/{s3_key}")
        return True

    def get_presigned_url_for_path(self, s3_path_or_key: str, expires_in: int = 3600) -> Optional[str]:
        """
        Turn "s3://bucket/key" or a bare key into a presigned HTTPS URL.
        Returns None when the path is empty or signing fails.
        """
        if not s3_path_or_key or not s3_path_or_key.strip():
            return None
        s3_path = s3_path_or_key.strip()
        if s3_path.startswith("s3://"):
            parts = s3_path[len("s3://"):].split("/", 1)
            bucket = parts[0]
            key = parts[1] if len(parts) > 1 else ""
        else:
            bucket = self.bucket_name
            key = s3_path
        if not key:
            return None
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except ClientError as e:
            logger.warning(f"Could not presign {s3_path}: {e}")
            return None
