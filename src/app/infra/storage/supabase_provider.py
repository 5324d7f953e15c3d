# src/app/infra/storage/supabase_provider.py
"""
Supabase Storage provider implementation.
Images live in a public bucket, keyed by account id.
"""
from __future__ import annotations

import logging
import posixpath

import httpx
from storage3.exceptions import StorageApiError
from supabase import Client

from src.app.domain.errors import ObjectAlreadyExistsError, StorageError
from src.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "saved-items"


def _is_duplicate(error: StorageApiError) -> bool:
    status = str(getattr(error, "status", "") or "")
    code = str(getattr(error, "code", "") or "")
    return status in ("400", "409") and ("Duplicate" in code or "already exists" in str(error))


class SupabaseStorageProvider(StorageProvider):
    def __init__(self, client: Client, bucket_name: str = DEFAULT_BUCKET):
        self._client = client
        self.bucket_name = bucket_name

    def _bucket(self):
        return self._client.storage.from_(self.bucket_name)

    def put_object(self, object_key: str, data: bytes, content_type: str) -> str:
        try:
            self._bucket().upload(
                object_key,
                data,
                file_options={"content-type": content_type, "upsert": "false"},
            )
        except StorageApiError as e:
            if _is_duplicate(e):
                raise ObjectAlreadyExistsError(object_key) from e
            logger.error("Failed to upload to Supabase Storage: key=%s, error=%s", object_key, e)
            raise StorageError(f"Failed to upload file: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Network error uploading to Supabase Storage: key=%s, error=%s", object_key, e)
            raise StorageError(f"Failed to upload file: {e}") from e

        logger.info("Uploaded to Supabase Storage: bucket=%s, key=%s, size=%d bytes", self.bucket_name, object_key, len(data))
        return self.get_public_url(object_key)

    def get_public_url(self, object_key: str) -> str:
        return self._bucket().get_public_url(object_key)

    def delete_object(self, object_key: str) -> bool:
        try:
            self._bucket().remove([object_key])
        except (StorageApiError, httpx.HTTPError) as e:
            logger.error("Failed to delete object from Supabase Storage: key=%s, error=%s", object_key, e)
            return False

        logger.info("Deleted object from Supabase Storage: key=%s", object_key)
        return True

    def object_exists(self, object_key: str) -> bool:
        folder, name = posixpath.split(object_key)
        try:
            entries = self._bucket().list(folder, {"search": name})
        except (StorageApiError, httpx.HTTPError) as e:
            raise StorageError(f"Failed to check object existence: {e}") from e
        return any(entry.get("name") == name for entry in entries or [])
