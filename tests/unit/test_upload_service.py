from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from fakes import InMemoryStorage
from src.app.domain.errors import ObjectAlreadyExistsError, UploadError
from src.app.domain.models import ResolvedAsset
from src.app.services.upload_service import UploadService


def _asset(tmp_path: Path, data: bytes = b"\x89PNG...") -> ResolvedAsset:
    path = tmp_path / "shot.png"
    path.write_bytes(data)
    return ResolvedAsset(path=path, content_type="image/png", extension="png")


class TestUpload:
    def test_stores_under_account_prefix(self, tmp_path: Path) -> None:
        storage = InMemoryStorage()

        result = UploadService(storage).upload(_asset(tmp_path), "user-1")

        assert result.storage_path.startswith("user-1/")
        assert result.storage_path.endswith(".png")
        assert result.public_url == f"https://cdn.example.com/{result.storage_path}"
        assert storage.objects[result.storage_path] == b"\x89PNG..."

    def test_storage_fault(self, tmp_path: Path) -> None:
        storage = InMemoryStorage()
        storage.fail_puts_on = {1}

        with pytest.raises(UploadError) as exc_info:
            UploadService(storage).upload(_asset(tmp_path), "user-1")

        assert "bucket unavailable" in exc_info.value.cause
        assert storage.objects == {}

    def test_collision_fails_loudly(self, tmp_path: Path) -> None:
        storage = MagicMock()
        storage.generate_object_key.return_value = "user-1/1_deadbeef.png"
        storage.put_object.side_effect = ObjectAlreadyExistsError("user-1/1_deadbeef.png")

        with pytest.raises(UploadError) as exc_info:
            UploadService(storage).upload(_asset(tmp_path), "user-1")

        assert exc_info.value.object_key == "user-1/1_deadbeef.png"

    def test_unreadable_asset(self, tmp_path: Path) -> None:
        asset = ResolvedAsset(path=tmp_path / "gone.png", content_type="image/png", extension="png")

        with pytest.raises(UploadError):
            UploadService(InMemoryStorage()).upload(asset, "user-1")


class TestDelete:
    def test_delete_success(self, tmp_path: Path) -> None:
        storage = InMemoryStorage()
        service = UploadService(storage)
        result = service.upload(_asset(tmp_path), "user-1")

        assert service.delete(result.storage_path) is True
        assert storage.objects == {}

    def test_delete_failure_is_swallowed(self) -> None:
        storage = MagicMock()
        storage.delete_object.side_effect = RuntimeError("network down")

        assert UploadService(storage).delete("user-1/1.png") is False
