from __future__ import annotations


class LibraryImportError(Exception):
    pass


class QuotaLedgerError(LibraryImportError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Quota ledger error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class ResolutionError(LibraryImportError):
    def __init__(self, locator: str, reason: str = "Asset not found"):
        super().__init__(f"Cannot resolve {locator}: {reason}")
        self.locator = locator
        self.reason = reason


class StorageError(LibraryImportError):
    pass


class ObjectAlreadyExistsError(StorageError):
    def __init__(self, object_key: str):
        super().__init__(f"Object already exists: {object_key}")
        self.object_key = object_key


class UploadError(LibraryImportError):
    def __init__(self, cause: str, object_key: str | None = None):
        super().__init__(f"Upload failed: {cause}")
        self.cause = cause
        self.object_key = object_key


class ClassificationError(LibraryImportError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(LibraryImportError):
    def __init__(self, storage_path: str, reason: str):
        super().__init__(f"Failed to persist item for {storage_path}: {reason}")
        self.storage_path = storage_path
        self.reason = reason


class StageTimeoutError(LibraryImportError):
    def __init__(self, stage: str, timeout_seconds: float):
        super().__init__(f"Stage {stage} timed out after {timeout_seconds}s")
        self.stage = stage
        self.timeout_seconds = timeout_seconds


class ItemNotFoundError(LibraryImportError):
    def __init__(self, item_id: str):
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class InvalidCategoryError(LibraryImportError):
    def __init__(self, category: str):
        super().__init__(f"Unknown category: {category}")
        self.category = category


class ItemRepositoryError(LibraryImportError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Item repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class ImportConfigurationError(LibraryImportError):
    def __init__(self, errors: list[str]):
        super().__init__(f"Import configuration errors: {', '.join(errors)}")
        self.errors = errors
