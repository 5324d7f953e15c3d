# src/app/infra/db/base.py
"""
Abstract base classes for the quota ledger and the saved-item store.
These interfaces allow easy swapping between different relational backends.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from src.app.domain.models import Category, QuotaCheck, QuotaRecord, SavedItem


class QuotaRepository(ABC):
    """
    Abstract interface for the per-account save counter.

    Implementations:
    - SupabaseQuotaRepository: Postgres row + increment_save_count RPC
    """

    @abstractmethod
    def check_and_increment(
        self,
        account_id: str,
        limit: int,
    ) -> QuotaCheck:
        """
        Atomically check the limit and increment the counter in one round trip.

        Args:
            account_id: The account to charge
            limit: Max saves per period for free accounts

        Returns:
            QuotaCheck; allowed=False leaves the counter unchanged

        Raises:
            QuotaLedgerError: If the ledger cannot answer
        """
        pass

    @abstractmethod
    def get_quota_record(self, account_id: str) -> QuotaRecord:
        """
        Read the current counter and plan (non-atomic, display only).

        Raises:
            QuotaLedgerError: If the ledger cannot answer
        """
        pass


class SavedItemRepository(ABC):
    """
    Abstract interface for saved-item persistence.

    Implementations:
    - SupabaseSavedItemRepository: saved_items table
    """

    @abstractmethod
    def insert_item(self, record: dict[str, Any]) -> SavedItem:
        """
        Insert one saved item and return the stored row.

        Raises:
            ItemRepositoryError: If the insert fails or returns nothing
        """
        pass

    @abstractmethod
    def update_item(
        self,
        account_id: str,
        item_id: str,
        patch: dict[str, Any],
    ) -> Optional[SavedItem]:
        """
        Apply a patch to an item owned by account_id.

        Returns:
            The updated item, or None if no such item
        """
        pass

    @abstractmethod
    def delete_item(self, account_id: str, item_id: str) -> bool:
        """
        Delete an item owned by account_id.

        Returns:
            True if a row was deleted
        """
        pass

    @abstractmethod
    def get_item(self, account_id: str, item_id: str) -> Optional[SavedItem]:
        pass

    @abstractmethod
    def list_items(
        self,
        account_id: str,
        category: Optional[Category] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SavedItem]:
        """
        List items newest first.

        Args:
            account_id: Owner
            category: Only this category (None = all)
            search: Full-text query over extracted text
            limit: Page size
            offset: Pagination offset
        """
        pass

    @abstractmethod
    def count_by_category(self, account_id: str) -> dict[str, int]:
        """Grouped count of the account's items per category."""
        pass
