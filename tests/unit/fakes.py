from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from PIL import Image

from src.app.domain.errors import (
    ClassificationError,
    ItemRepositoryError,
    ObjectAlreadyExistsError,
    QuotaLedgerError,
    StorageError,
)
from src.app.domain.models import (
    Category,
    ClassificationResult,
    GeneratedContent,
    Plan,
    QuotaCheck,
    QuotaRecord,
    SavedItem,
    SourcePlatform,
)
from src.app.infra.db.base import QuotaRepository, SavedItemRepository
from src.app.infra.db.supabase_repo import _row_to_item
from src.app.infra.storage.base import StorageProvider


class InMemoryQuotaRepository(QuotaRepository):
    """Ledger stub with the same conditional update the SQL function runs."""

    def __init__(self, count: int = 0, plan: Plan = Plan.FREE) -> None:
        self.count = count
        self.plan = plan
        self.calls = 0
        self.error: Optional[Exception] = None
        self._lock = threading.Lock()

    def check_and_increment(self, account_id: str, limit: int) -> QuotaCheck:
        self.calls += 1
        if self.error is not None:
            raise self.error
        with self._lock:
            if self.plan == Plan.PRO or self.count < limit:
                self.count += 1
                return QuotaCheck(allowed=True, count=self.count, plan=self.plan)
            return QuotaCheck(allowed=False, count=self.count, plan=self.plan, reason="Monthly limit reached")

    def get_quota_record(self, account_id: str) -> QuotaRecord:
        if self.error is not None:
            raise QuotaLedgerError("get_quota_record", str(self.error))
        return QuotaRecord(account_id=account_id, period_saves_count=self.count, plan=self.plan)


class InMemorySavedItemRepository(SavedItemRepository):
    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.fail_inserts = False

    def insert_item(self, record: dict[str, Any]) -> SavedItem:
        if self.fail_inserts:
            raise ItemRepositoryError("insert", "connection reset")
        row = {"id": str(uuid4()), **record}
        self.rows[row["id"]] = row
        return _row_to_item(row)

    def update_item(self, account_id: str, item_id: str, patch: dict[str, Any]) -> Optional[SavedItem]:
        row = self.rows.get(item_id)
        if row is None or row["user_id"] != account_id:
            return None
        row.update(patch)
        return _row_to_item(row)

    def delete_item(self, account_id: str, item_id: str) -> bool:
        row = self.rows.get(item_id)
        if row is None or row["user_id"] != account_id:
            return False
        del self.rows[item_id]
        return True

    def get_item(self, account_id: str, item_id: str) -> Optional[SavedItem]:
        row = self.rows.get(item_id)
        if row is None or row["user_id"] != account_id:
            return None
        return _row_to_item(row)

    def list_items(
        self,
        account_id: str,
        category: Optional[Category] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SavedItem]:
        rows = [row for row in self.rows.values() if row["user_id"] == account_id]
        if category is not None:
            rows = [row for row in rows if row["category"] == category.value]
        if search:
            rows = [row for row in rows if search.lower() in row.get("extracted_text", "").lower()]
        return [_row_to_item(row) for row in rows[offset:offset + limit]]

    def count_by_category(self, account_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for row in self.rows.values():
            if row["user_id"] == account_id:
                counts[row["category"]] = counts.get(row["category"], 0) + 1
        return counts


class InMemoryStorage(StorageProvider):
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_puts_on: set[int] = set()
        self.fail_deletes = False
        self.put_calls = 0

    def put_object(self, object_key: str, data: bytes, content_type: str) -> str:
        self.put_calls += 1
        if self.put_calls in self.fail_puts_on:
            raise StorageError("bucket unavailable")
        if object_key in self.objects:
            raise ObjectAlreadyExistsError(object_key)
        self.objects[object_key] = data
        return self.get_public_url(object_key)

    def get_public_url(self, object_key: str) -> str:
        return f"https://cdn.example.com/{object_key}"

    def delete_object(self, object_key: str) -> bool:
        self.deleted.append(object_key)
        if self.fail_deletes:
            return False
        return self.objects.pop(object_key, None) is not None

    def object_exists(self, object_key: str) -> bool:
        return object_key in self.objects


class FakeClassifier:
    def __init__(
        self,
        result: Optional[ClassificationResult] = None,
        generated: Optional[GeneratedContent] = None,
        generate_error: Optional[Exception] = None,
    ) -> None:
        self.result = result or ClassificationResult(
            category=Category.HOOK,
            source_platform=SourcePlatform.TIKTOK,
            extracted_text="wait for it",
            confidence=0.9,
        )
        self.generated = generated
        self.generate_error = generate_error
        self.classify_calls = 0
        self.generate_calls: list[Category] = []

    async def classify(self, image_bytes: bytes) -> ClassificationResult:
        self.classify_calls += 1
        return self.result

    async def generate(self, image_bytes: bytes, category: Category) -> GeneratedContent:
        self.generate_calls.append(category)
        if self.generate_error is not None:
            raise self.generate_error
        if self.generated is None:
            raise ClassificationError("no generated content configured")
        return self.generated


def write_image(path: Path, width: int = 1080, height: int = 2340, fmt: str = "PNG") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (width, height), color=(200, 30, 90)).save(path, format=fmt)
    return path

