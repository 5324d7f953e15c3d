# src/app/infra/storage/r2_provider.py
"""
Cloudflare R2 storage provider implementation.
R2 is S3-compatible, so we use boto3 with custom endpoint.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from src.app.domain.errors import ObjectAlreadyExistsError, StorageError
from src.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)

_PRECONDITION_CODES = {"PreconditionFailed", "412", "ConditionalRequestConflict"}
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", "Unknown"))


class R2StorageProvider(StorageProvider):
    """
    Cloudflare R2 storage provider using boto3 (S3-compatible).

    Environment variables required:
    - R2_ACCOUNT_ID: Cloudflare account ID
    - R2_ACCESS_KEY_ID: R2 access key ID
    - R2_SECRET_ACCESS_KEY: R2 secret access key
    - R2_BUCKET_NAME: Name of the R2 bucket
    - R2_PUBLIC_URL: Public URL for the bucket (used to build image URLs)
    """

    def __init__(
        self,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        bucket_name: Optional[str] = None,
        public_url: Optional[str] = None,
        client=None,
    ):
        self.account_id = account_id or os.getenv("R2_ACCOUNT_ID")
        self.access_key_id = access_key_id or os.getenv("R2_ACCESS_KEY_ID")
        self.secret_access_key = secret_access_key or os.getenv("R2_SECRET_ACCESS_KEY")
        self.bucket_name = bucket_name or os.getenv("R2_BUCKET_NAME")
        self.public_url = (public_url or os.getenv("R2_PUBLIC_URL") or "").rstrip("/")

        # Saved items link to their image by public URL
        if not self.public_url:
            raise StorageError("Missing R2 configuration. Required: R2_PUBLIC_URL")

        if client is not None:
            self._client = client
            return

        if not all([self.account_id, self.access_key_id, self.secret_access_key, self.bucket_name]):
            raise StorageError(
                "Missing R2 configuration. Required: R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, "
                "R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME"
            )

        self.endpoint_url = f"https://{self.account_id}.r2.cloudflarestorage.com"

        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "adaptive"},
            ),
            region_name="auto",  # R2 uses 'auto' as region
        )

        logger.info(
            "R2StorageProvider initialized: bucket=%s, endpoint=%s",
            self.bucket_name,
            self.endpoint_url,
        )

    def put_object(self, object_key: str, data: bytes, content_type: str) -> str:
        """Upload bytes to R2; IfNoneMatch makes the write fail when the key exists."""
        public_url = self.get_public_url(object_key)

        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=object_key,
                Body=data,
                ContentType=content_type,
                IfNoneMatch="*",
            )
        except ClientError as e:
            if _error_code(e) in _PRECONDITION_CODES:
                raise ObjectAlreadyExistsError(object_key) from e
            logger.error("Failed to upload to R2: key=%s, error=%s", object_key, e)
            raise StorageError(f"Failed to upload file: {e}") from e
        except BotoCoreError as e:
            logger.error("R2 transport error: key=%s, error=%s", object_key, e)
            raise StorageError(f"Failed to upload file: {e}") from e

        logger.info("Uploaded to R2: key=%s, size=%d bytes", object_key, len(data))
        return public_url

    def get_public_url(self, object_key: str) -> str:
        if not self.public_url:
            raise StorageError("R2_PUBLIC_URL is not configured")
        return f"{self.public_url}/{object_key}"

    def delete_object(self, object_key: str) -> bool:
        """Delete an object from R2."""
        try:
            self._client.delete_object(
                Bucket=self.bucket_name,
                Key=object_key,
            )
            logger.info("Deleted object from R2: key=%s", object_key)
            return True

        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to delete object from R2: %s", e)
            return False

    def object_exists(self, object_key: str) -> bool:
        """Check if an object exists in R2."""
        try:
            self._client.head_object(
                Bucket=self.bucket_name,
                Key=object_key,
            )
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            logger.error("Error checking object existence: %s", e)
            raise StorageError(f"Failed to check object existence: {e}") from e
