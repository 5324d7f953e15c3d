# src/app/services/persistence_service.py
"""
Persistence stage: one saved_items row per processed screenshot.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from src.app.domain.errors import ItemRepositoryError, PersistenceError
from src.app.domain.models import (
    ClassificationResult,
    GeneratedContent,
    SavedItem,
    UploadResult,
)
from src.app.infra.db.base import SavedItemRepository
from src.app.services.quota_service import QuotaService
from src.app.services.upload_service import UploadService

logger = logging.getLogger(__name__)


def build_item_record(
    upload: UploadResult,
    classification: ClassificationResult,
    account_id: str,
    generated: Optional[GeneratedContent] = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "user_id": account_id,
        "image_url": upload.public_url,
        "storage_path": upload.storage_path,
        "category": classification.category.value,
        "source_platform": classification.source_platform.value,
        "extracted_text": classification.extracted_text,
        "ai_confidence": classification.confidence,
    }

    if generated is not None:
        record.update({
            "generated_title": generated.title or None,
            "generated_hook": generated.hook or None,
            "generated_outline": list(generated.outline),
            "suggested_format": generated.suggested_format.value,
            "suggested_platform": generated.suggested_platform.value,
        })

    return record


class PersistenceService:
    def __init__(
        self,
        repository: SavedItemRepository,
        uploads: UploadService,
        quota: QuotaService,
    ):
        self._repo = repository
        self._uploads = uploads
        self._quota = quota

    def persist(
        self,
        upload: UploadResult,
        classification: ClassificationResult,
        account_id: str,
        generated: Optional[GeneratedContent] = None,
    ) -> SavedItem:
        """
        Write the saved item for an uploaded screenshot.

        On failure the uploaded blob is deleted before the error surfaces.
        A failed deletion is logged and does not replace the original error.

        Raises:
            PersistenceError: If the row could not be written
        """
        record = build_item_record(upload, classification, account_id, generated)

        try:
            item = self._repo.insert_item(record)
        except ItemRepositoryError as e:
            logger.error("Persist failed, removing blob: key=%s, error=%s", upload.storage_path, e)
            self._uploads.delete(upload.storage_path)
            raise PersistenceError(upload.storage_path, e.reason) from e

        self._quota.confirm_save(account_id, item.id)
        return item

    def discard(self, item: SavedItem) -> bool:
        """
        Roll back a saved item: the row goes first, then its blob.

        Returns:
            False if the row could not be removed; the blob is then kept
        """
        try:
            removed = self._repo.delete_item(item.user_id, item.id)
        except ItemRepositoryError as e:
            logger.error("Rollback failed, keeping item: id=%s, error=%s", item.id, e)
            return False

        if not removed:
            logger.error("Rollback found no row, keeping blob: id=%s", item.id)
            return False

        self._uploads.delete(item.storage_path)
        logger.info("Rolled back item: id=%s, key=%s", item.id, item.storage_path)
        return True
