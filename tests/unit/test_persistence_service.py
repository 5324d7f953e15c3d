from __future__ import annotations

import pytest

from fakes import InMemoryQuotaRepository, InMemorySavedItemRepository, InMemoryStorage
from src.app.domain.errors import ItemRepositoryError, PersistenceError
from src.app.domain.models import (
    Category,
    ClassificationResult,
    ContentFormat,
    GeneratedContent,
    SourcePlatform,
    SuggestedPlatform,
    UploadResult,
)
from src.app.services.persistence_service import PersistenceService, build_item_record
from src.app.services.quota_service import QuotaService
from src.app.services.upload_service import UploadService

UPLOAD = UploadResult(storage_path="user-1/1_abcd1234.png", public_url="https://cdn.example.com/user-1/1_abcd1234.png")
CLASSIFICATION = ClassificationResult(
    category=Category.ANALYTICS,
    source_platform=SourcePlatform.YOUTUBE,
    extracted_text="42K views",
    confidence=0.7,
)


def _service(storage: InMemoryStorage, repo: InMemorySavedItemRepository, quota_repo: InMemoryQuotaRepository):
    return PersistenceService(repo, UploadService(storage), QuotaService(quota_repo))


class TestBuildItemRecord:
    def test_classification_fields(self) -> None:
        record = build_item_record(UPLOAD, CLASSIFICATION, "user-1")

        assert record == {
            "user_id": "user-1",
            "image_url": UPLOAD.public_url,
            "storage_path": UPLOAD.storage_path,
            "category": "analytics",
            "source_platform": "youtube",
            "extracted_text": "42K views",
            "ai_confidence": 0.7,
        }

    def test_generated_fields(self) -> None:
        generated = GeneratedContent(
            title="Title",
            hook="",
            outline=("a", "b"),
            suggested_format=ContentFormat.LONG,
            suggested_platform=SuggestedPlatform.YOUTUBE,
            extracted_text="",
            confidence=0.5,
        )

        record = build_item_record(UPLOAD, CLASSIFICATION, "user-1", generated)

        assert record["generated_title"] == "Title"
        assert record["generated_hook"] is None
        assert record["generated_outline"] == ["a", "b"]
        assert record["suggested_format"] == "long"
        assert record["suggested_platform"] == "youtube"


class TestPersist:
    def test_success(self) -> None:
        storage = InMemoryStorage()
        storage.objects[UPLOAD.storage_path] = b"img"
        repo = InMemorySavedItemRepository()
        quota_repo = InMemoryQuotaRepository(count=1)

        item = _service(storage, repo, quota_repo).persist(UPLOAD, CLASSIFICATION, "user-1")

        assert item.storage_path == UPLOAD.storage_path
        assert item.category == Category.ANALYTICS
        assert len(repo.rows) == 1
        assert storage.deleted == []
        assert quota_repo.count == 1

    def test_failure_deletes_blob_exactly_once(self) -> None:
        storage = InMemoryStorage()
        storage.objects[UPLOAD.storage_path] = b"img"
        repo = InMemorySavedItemRepository()
        repo.fail_inserts = True

        with pytest.raises(PersistenceError) as exc_info:
            _service(storage, repo, InMemoryQuotaRepository()).persist(UPLOAD, CLASSIFICATION, "user-1")

        assert exc_info.value.storage_path == UPLOAD.storage_path
        assert storage.deleted == [UPLOAD.storage_path]
        assert storage.objects == {}

    def test_failed_delete_keeps_original_error(self) -> None:
        storage = InMemoryStorage()
        storage.fail_deletes = True
        repo = InMemorySavedItemRepository()
        repo.fail_inserts = True

        with pytest.raises(PersistenceError) as exc_info:
            _service(storage, repo, InMemoryQuotaRepository()).persist(UPLOAD, CLASSIFICATION, "user-1")

        assert "connection reset" in exc_info.value.reason
        assert storage.deleted == [UPLOAD.storage_path]


class TestDiscard:
    def test_removes_row_then_blob(self) -> None:
        storage = InMemoryStorage()
        storage.objects[UPLOAD.storage_path] = b"img"
        repo = InMemorySavedItemRepository()
        service = _service(storage, repo, InMemoryQuotaRepository())
        item = service.persist(UPLOAD, CLASSIFICATION, "user-1")

        assert service.discard(item) is True
        assert repo.rows == {}
        assert storage.objects == {}

    def test_keeps_blob_when_row_stays(self) -> None:
        storage = InMemoryStorage()
        storage.objects[UPLOAD.storage_path] = b"img"
        repo = InMemorySavedItemRepository()
        service = _service(storage, repo, InMemoryQuotaRepository())
        item = service.persist(UPLOAD, CLASSIFICATION, "user-1")

        def broken(account_id, item_id):
            raise ItemRepositoryError("delete", "connection reset")

        repo.delete_item = broken

        assert service.discard(item) is False
        assert len(repo.rows) == 1
        assert storage.deleted == []
