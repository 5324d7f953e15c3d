# src/app/services/upload_service.py
"""
Upload stage: moves screenshot bytes into durable blob storage.
"""
from __future__ import annotations

import logging

from src.app.domain.errors import ObjectAlreadyExistsError, StorageError, UploadError
from src.app.domain.models import ResolvedAsset, UploadResult
from src.app.infra.storage.base import StorageProvider

logger = logging.getLogger(__name__)


class UploadService:
    def __init__(self, storage: StorageProvider):
        self.storage = storage

    def upload(self, asset: ResolvedAsset, account_id: str) -> UploadResult:
        """
        Store one image under a fresh key owned by the account.

        Exactly one blob is created on success; nothing is overwritten.

        Raises:
            UploadError: On storage faults or a key collision
        """
        object_key = self.storage.generate_object_key(account_id, asset.extension)

        try:
            data = asset.read_bytes()
        except OSError as e:
            raise UploadError(f"cannot read {asset.path}: {e}", object_key) from e

        try:
            public_url = self.storage.put_object(object_key, data, asset.content_type)
        except ObjectAlreadyExistsError as e:
            logger.error("Upload key collision: key=%s", object_key)
            raise UploadError("storage key already exists", object_key) from e
        except StorageError as e:
            raise UploadError(str(e), object_key) from e

        logger.info("Uploaded screenshot: user=%s, key=%s, size=%d bytes", account_id, object_key, len(data))
        return UploadResult(storage_path=object_key, public_url=public_url)

    def delete(self, storage_path: str) -> bool:
        """Best-effort blob removal; failures are logged, never raised."""
        try:
            deleted = self.storage.delete_object(storage_path)
        except Exception:
            logger.exception("Blob deletion raised: key=%s", storage_path)
            return False

        if not deleted:
            logger.error("Blob deletion failed, orphan left behind: key=%s", storage_path)
        return deleted
