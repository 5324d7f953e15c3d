from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.app.domain.models import (
    BatchItem,
    BatchSession,
    Category,
    ClassificationResult,
    ContentFormat,
    GeneratedContent,
    ItemState,
    MediaAsset,
    MediaKind,
    MediaReference,
    Plan,
    QuotaSnapshot,
    ResolvedAsset,
    SavedItem,
    SourcePlatform,
    SuggestedPlatform,
    UploadResult,
)


class TestEnums:
    def test_category_values(self) -> None:
        assert [c.value for c in Category] == [
            "video_idea",
            "hook",
            "thumbnail",
            "script",
            "visual",
            "analytics",
            "other",
        ]

    def test_enums_are_string_enums(self) -> None:
        assert isinstance(Plan.FREE, str)
        assert SourcePlatform.TWITTER == "twitter"
        assert ItemState.BLOCKED == "BLOCKED"


class TestQuotaSnapshot:
    def test_at_limit(self) -> None:
        snapshot = QuotaSnapshot(count=50, plan=Plan.FREE, limit=50, remaining=0)
        assert snapshot.is_at_limit is True

    def test_unlimited_is_never_at_limit(self) -> None:
        snapshot = QuotaSnapshot(count=500, plan=Plan.PRO, limit=None, remaining=None)
        assert snapshot.is_at_limit is False


class TestMediaReference:
    def test_file_reference(self) -> None:
        ref = MediaReference.file(Path("/tmp/a.png"), file_name="a.png", mime_type="image/png")
        assert ref.kind == MediaKind.FILE
        assert ref.locator == "/tmp/a.png"
        assert ref.mime_type == "image/png"

    def test_library_reference(self) -> None:
        ref = MediaReference.library("asset-1")
        assert ref.kind == MediaKind.LIBRARY
        assert ref.locator == "asset-1"

    def test_immutable(self) -> None:
        ref = MediaReference.library("asset-1")
        with pytest.raises(FrozenInstanceError):
            ref.locator = "asset-2"  # type: ignore[misc]


class TestMediaAsset:
    def test_aspect_ratio(self) -> None:
        asset = MediaAsset("id", Path("x.png"), width=100, height=250, created_at=datetime.now(timezone.utc))
        assert asset.aspect_ratio == 2.5

    def test_zero_width(self) -> None:
        asset = MediaAsset("id", Path("x.png"), width=0, height=250, created_at=datetime.now(timezone.utc))
        assert asset.aspect_ratio == 0.0


class TestResolvedAsset:
    def test_read_bytes_is_cached(self, tmp_path: Path) -> None:
        path = tmp_path / "a.png"
        path.write_bytes(b"first")
        asset = ResolvedAsset(path=path, content_type="image/png", extension="png")

        assert asset.read_bytes() == b"first"
        path.write_bytes(b"second")
        assert asset.read_bytes() == b"first"


class TestImmutableResults:
    def test_upload_result_frozen(self) -> None:
        result = UploadResult(storage_path="u/1.png", public_url="https://x/u/1.png")
        with pytest.raises(FrozenInstanceError):
            result.storage_path = "other"  # type: ignore[misc]

    def test_classification_fallback(self) -> None:
        result = ClassificationResult.fallback()
        assert result.category == Category.OTHER
        assert result.source_platform == SourcePlatform.OTHER
        assert result.extracted_text == ""
        assert result.confidence == 0.0

    def test_generated_defaults(self) -> None:
        content = GeneratedContent.defaults()
        assert content.outline == ()
        assert content.suggested_format == ContentFormat.SHORT
        assert content.suggested_platform == SuggestedPlatform.TIKTOK


class TestSavedItem:
    def _item(self, **overrides) -> SavedItem:
        values = dict(
            id="1",
            user_id="user",
            image_url="https://x/u/1.png",
            storage_path="u/1.png",
            category=Category.HOOK,
            source_platform=SourcePlatform.TIKTOK,
        )
        values.update(overrides)
        return SavedItem(**values)

    def test_effective_category_defaults_to_classification(self) -> None:
        assert self._item().effective_category == Category.HOOK

    def test_override_wins_without_touching_category(self) -> None:
        item = self._item(category_override=Category.SCRIPT)
        assert item.effective_category == Category.SCRIPT
        assert item.category == Category.HOOK


class TestBatchSession:
    def test_progress_counters(self) -> None:
        items = [BatchItem(MediaReference.library(str(i))) for i in range(3)]
        session = BatchSession(account_id="user", items=items)

        assert session.total == 3
        assert session.processed == 0

        items[0].state = ItemState.SUCCEEDED
        items[1].state = ItemState.CLASSIFYING
        assert session.processed == 1

    def test_cancel(self) -> None:
        session = BatchSession(account_id="user", items=[])
        session.cancel()
        assert session.cancelled is True
