# src/app/services/library_service.py
"""
Library operations on saved items: browse, count, edit, delete.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from src.app.domain.errors import InvalidCategoryError, ItemNotFoundError
from src.app.domain.models import Category, SavedItem
from src.app.domain.normalize import parse_category
from src.app.infra.db.base import SavedItemRepository
from src.app.services.upload_service import UploadService

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
ALL_CATEGORIES = "all"

# Sentinel so update_item can tell "clear the note" from "leave it alone"
_UNSET: Any = object()


class LibraryService:
    def __init__(self, repository: SavedItemRepository, uploads: UploadService):
        self._repo = repository
        self._uploads = uploads

    def list_items(
        self,
        account_id: str,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SavedItem]:
        category_filter: Optional[Category] = None
        if category and category != ALL_CATEGORIES:
            category_filter = parse_category(category)
            if category_filter is None:
                raise InvalidCategoryError(category)

        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        search = search.strip() if search else None

        return self._repo.list_items(
            account_id,
            category=category_filter,
            search=search or None,
            limit=limit,
            offset=offset,
        )

    def category_counts(self, account_id: str) -> dict[str, int]:
        counts = self._repo.count_by_category(account_id)
        return {category.value: counts.get(category.value, 0) for category in Category}

    def get_item(self, account_id: str, item_id: str) -> SavedItem:
        item = self._repo.get_item(account_id, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def update_item(
        self,
        account_id: str,
        item_id: str,
        user_note: Optional[str] = _UNSET,
        category_override: Optional[str] = _UNSET,
    ) -> SavedItem:
        """
        Apply user edits. Classification fields are never touched.

        Raises:
            InvalidCategoryError: If category_override is not a known category
            ItemNotFoundError: If the item does not exist for this account
        """
        patch: dict[str, Any] = {}

        if user_note is not _UNSET:
            patch["user_note"] = user_note.strip() if user_note else None

        if category_override is not _UNSET:
            if category_override is None:
                patch["category_override"] = None
            else:
                parsed = parse_category(category_override)
                if parsed is None:
                    raise InvalidCategoryError(category_override)
                patch["category_override"] = parsed.value

        if not patch:
            return self.get_item(account_id, item_id)

        item = self._repo.update_item(account_id, item_id, patch)
        if item is None:
            raise ItemNotFoundError(item_id)

        logger.info("Item updated: id=%s, fields=%s", item_id, sorted(patch))
        return item

    def delete_item(self, account_id: str, item_id: str) -> None:
        """Delete the row first, then its blob (best effort)."""
        item = self.get_item(account_id, item_id)

        if not self._repo.delete_item(account_id, item_id):
            raise ItemNotFoundError(item_id)

        if item.storage_path:
            self._uploads.delete(item.storage_path)

        logger.info("Item deleted: id=%s, user=%s", item_id, account_id)
