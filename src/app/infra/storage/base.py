# src/app/infra/storage/base.py
"""
Abstract base class for blob storage providers.
This interface allows easy swapping between different storage backends (Supabase Storage, R2, ...)
"""
from __future__ import annotations

import secrets
import time
from abc import ABC, abstractmethod


class StorageProvider(ABC):
    """
    Abstract interface for image blob operations.

    Writes never overwrite: putting an existing key must fail with
    ObjectAlreadyExistsError instead of clobbering the blob.

    Implementations:
    - SupabaseStorageProvider: Supabase Storage bucket
    - R2StorageProvider: Cloudflare R2 (S3-compatible)
    """

    @abstractmethod
    def put_object(
        self,
        object_key: str,
        data: bytes,
        content_type: str,
    ) -> str:
        """
        Store a new object.

        Args:
            object_key: The key/path where the object will be stored
            data: Raw bytes
            content_type: MIME type of the content (e.g., "image/jpeg")

        Returns:
            The public URL of the stored object

        Raises:
            ObjectAlreadyExistsError: If the key is taken
            StorageError: On any other storage fault
        """
        pass

    @abstractmethod
    def get_public_url(self, object_key: str) -> str:
        pass

    @abstractmethod
    def delete_object(self, object_key: str) -> bool:
        """
        Delete an object from storage.

        Args:
            object_key: The key/path of the object to delete

        Returns:
            True if deletion was successful
        """
        pass

    @abstractmethod
    def object_exists(self, object_key: str) -> bool:
        pass

    def generate_object_key(
        self,
        account_id: str,
        extension: str,
        now_ms: int | None = None,
    ) -> str:
        """
        Generate the key for a new screenshot.

        Format: {account_id}/{epoch_millis}_{8 hex}.{ext}
        """
        timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
        suffix = secrets.token_hex(4)
        ext = extension.lstrip(".").lower() or "jpg"
        return f"{account_id}/{timestamp}_{suffix}.{ext}"
