from __future__ import annotations

import re
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError
from storage3.exceptions import StorageApiError

from src.app.domain.errors import ObjectAlreadyExistsError, StorageError
from src.app.infra.storage.r2_provider import R2StorageProvider
from src.app.infra.storage.supabase_provider import SupabaseStorageProvider


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "PutObject")


class TestGenerateObjectKey:
    def test_key_format(self) -> None:
        provider = R2StorageProvider(bucket_name="b", public_url="https://cdn", client=MagicMock())

        key = provider.generate_object_key("user-1", "PNG", now_ms=1700000000000)

        assert re.fullmatch(r"user-1/1700000000000_[0-9a-f]{8}\.png", key)

    def test_same_millisecond_keys_differ(self) -> None:
        provider = R2StorageProvider(bucket_name="b", public_url="https://cdn", client=MagicMock())

        keys = {provider.generate_object_key("user-1", "jpg", now_ms=1) for _ in range(50)}

        assert len(keys) == 50


class TestR2StorageProvider:
    def _provider(self, client: MagicMock) -> R2StorageProvider:
        return R2StorageProvider(bucket_name="shots", public_url="https://cdn.example.com/", client=client)

    def test_put_is_conditional(self) -> None:
        client = MagicMock()
        url = self._provider(client).put_object("u/1.png", b"data", "image/png")

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["IfNoneMatch"] == "*"
        assert kwargs["Bucket"] == "shots"
        assert kwargs["ContentType"] == "image/png"
        assert url == "https://cdn.example.com/u/1.png"

    def test_precondition_failure_is_collision(self) -> None:
        client = MagicMock()
        client.put_object.side_effect = _client_error("PreconditionFailed")

        with pytest.raises(ObjectAlreadyExistsError):
            self._provider(client).put_object("u/1.png", b"data", "image/png")

    def test_other_client_error(self) -> None:
        client = MagicMock()
        client.put_object.side_effect = _client_error("AccessDenied")

        with pytest.raises(StorageError) as exc_info:
            self._provider(client).put_object("u/1.png", b"data", "image/png")

        assert not isinstance(exc_info.value, ObjectAlreadyExistsError)

    def test_missing_public_url_rejected_at_startup(self, monkeypatch) -> None:
        monkeypatch.delenv("R2_PUBLIC_URL", raising=False)
        with pytest.raises(StorageError, match="R2_PUBLIC_URL"):
            R2StorageProvider(bucket_name="shots", public_url="", client=MagicMock())

    def test_put_without_public_url_writes_nothing(self) -> None:
        client = MagicMock()
        provider = self._provider(client)
        provider.public_url = ""

        with pytest.raises(StorageError):
            provider.put_object("u/1.png", b"data", "image/png")

        client.put_object.assert_not_called()

    def test_delete_failure_returns_false(self) -> None:
        client = MagicMock()
        client.delete_object.side_effect = _client_error("InternalError")
        assert self._provider(client).delete_object("u/1.png") is False

    def test_object_exists_not_found(self) -> None:
        client = MagicMock()
        client.head_object.side_effect = _client_error("404")
        assert self._provider(client).object_exists("u/1.png") is False

    def test_missing_configuration(self, monkeypatch) -> None:
        for name in ("R2_ACCOUNT_ID", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY", "R2_BUCKET_NAME"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(StorageError, match="R2_ACCOUNT_ID"):
            R2StorageProvider(public_url="https://cdn.example.com")


class TestSupabaseStorageProvider:
    def _provider(self) -> tuple[SupabaseStorageProvider, MagicMock]:
        client = MagicMock()
        bucket = client.storage.from_.return_value
        bucket.get_public_url.return_value = "https://x.supabase.co/storage/v1/object/public/saved-items/u/1.png"
        return SupabaseStorageProvider(client), bucket

    def test_upload_never_upserts(self) -> None:
        provider, bucket = self._provider()

        url = provider.put_object("u/1.png", b"data", "image/png")

        provider._client.storage.from_.assert_called_with("saved-items")
        bucket.upload.assert_called_once_with(
            "u/1.png",
            b"data",
            file_options={"content-type": "image/png", "upsert": "false"},
        )
        assert url.endswith("saved-items/u/1.png")

    def test_duplicate_is_collision(self) -> None:
        provider, bucket = self._provider()
        bucket.upload.side_effect = StorageApiError("The resource already exists", "Duplicate", 409)

        with pytest.raises(ObjectAlreadyExistsError):
            provider.put_object("u/1.png", b"data", "image/png")

    def test_network_error(self) -> None:
        provider, bucket = self._provider()
        bucket.upload.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(StorageError):
            provider.put_object("u/1.png", b"data", "image/png")

    def test_delete(self) -> None:
        provider, bucket = self._provider()

        assert provider.delete_object("u/1.png") is True
        bucket.remove.assert_called_once_with(["u/1.png"])

    def test_delete_failure(self) -> None:
        provider, bucket = self._provider()
        bucket.remove.side_effect = StorageApiError("gone", "InternalError", 500)

        assert provider.delete_object("u/1.png") is False

    def test_object_exists(self) -> None:
        provider, bucket = self._provider()
        bucket.list.return_value = [{"name": "1.png"}]

        assert provider.object_exists("u/1.png") is True
        bucket.list.assert_called_once_with("u", {"search": "1.png"})
