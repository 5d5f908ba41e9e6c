# app/services/storage_service.py

import boto3
import logging
from botocore.exceptions import ClientError, NoCredentialsError
from typing import Optional
from app.core.config import settings
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def get_s3_client():
    return boto3.client(
        "s3",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION,
    )


class StorageService:
    """Thin wrapper over the S3 operations used for KYC documents and product images."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def presigned_upload_url(self, bucket: str, key: str, content_type: str,
                             expiration: int = None) -> str:
        try:
            return self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expiration or settings.SIGNED_URL_EXPIRY_SECONDS,
            )
        except (ClientError, NoCredentialsError) as e:
            logger.error(f"Failed to sign upload for {bucket}/{key}: {e}")
            raise StorageError("Could not create upload URL") from e

    def presigned_download_url(self, bucket: str, key: str, expiration: int = None) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expiration or settings.SIGNED_URL_EXPIRY_SECONDS,
            )
        except (ClientError, NoCredentialsError) as e:
            logger.error(f"Failed to sign download for {bucket}/{key}: {e}")
            raise StorageError("Could not create download URL") from e

    def object_size(self, bucket: str, key: str) -> Optional[int]:
        """Size in bytes, or None when the object does not exist."""
        try:
            response = self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return None
            logger.error(f"head_object failed for {bucket}/{key}: {e}")
            raise StorageError("Could not inspect uploaded file") from e
        return response["ContentLength"]

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> str:
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        except (ClientError, NoCredentialsError) as e:
            logger.error(f"Upload to {bucket}/{key} failed: {e}")
            raise StorageError("File upload failed") from e
        return key

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            logger.error(f"Delete of {bucket}/{key} failed: {e}")
            raise StorageError("File delete failed") from e
