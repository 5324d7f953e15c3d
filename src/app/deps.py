# src/app/deps.py
"""
FastAPI dependencies: Supabase client, current user and the import services.
"""
from __future__ import annotations

import logging
import os
import secrets
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Optional
from urllib.parse import urlparse

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from supabase import Client, create_client

from src.app.config import ImportConfig, settings
from src.app.domain.errors import ImportConfigurationError, StorageError
from src.app.infra.db.supabase_repo import SupabaseQuotaRepository, SupabaseSavedItemRepository
from src.app.infra.media.base import MediaIndex
from src.app.infra.media.directory_index import DirectoryMediaIndex
from src.app.infra.storage.base import StorageProvider
from src.app.infra.storage.r2_provider import R2StorageProvider
from src.app.infra.storage.supabase_provider import SupabaseStorageProvider
from src.app.services.asset_resolver import AssetResolver
from src.app.services.classification_service import ClassificationService
from src.app.services.import_pipeline import ImportPipeline
from src.app.services.library_service import LibraryService
from src.app.services.persistence_service import PersistenceService
from src.app.services.quota_service import QuotaService
from src.app.services.upload_service import UploadService
from src.services.errors import VisionConfigurationError
from src.services.gemini_client import GeminiVisionClient

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        _client = create_client(str(settings.SUPABASE_URL), settings.SUPABASE_SERVICE_ROLE_KEY)
    return _client


auth_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: str | None = None
    name: str | None = None


async def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser:
    """
    Take `Authorization: Bearer <access_token>` from Supabase,
    validate it against GoTrue and return the minimal user data.
    """
    if cred is None or cred.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    token = cred.credentials
    try:
        res = supa.auth.get_user(token)
        user = res.user
        if not user:
            raise HTTPException(status_code=401, detail="Invalid token")

        name = None
        meta = getattr(user, "user_metadata", None) or {}
        if isinstance(meta, dict):
            name = meta.get("name")

        return CurrentUser(id=str(user.id), email=user.email, name=name)
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid/expired token")


def require_vision_key(cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> None:
    """Vision endpoints stay closed until VISION_API_KEY is set."""
    if settings.VISION_API_KEY is None:
        logger.error("Vision request refused: VISION_API_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vision service unavailable",
        )
    expected = settings.VISION_API_KEY.get_secret_value()
    if cred is None or not secrets.compare_digest(cred.credentials, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid vision API key")


@lru_cache(maxsize=1)
def get_image_hosts() -> frozenset[str]:
    """Hosts /analyze-image may fetch from: the storage public URLs plus VISION_IMAGE_HOSTS."""
    hosts = {host.lower() for host in settings.VISION_IMAGE_HOSTS}
    for url in (str(settings.SUPABASE_URL), os.getenv("R2_PUBLIC_URL", "")):
        host = urlparse(url).hostname
        if host:
            hosts.add(host.lower())
    return frozenset(hosts)


@lru_cache(maxsize=1)
def get_import_config() -> ImportConfig:
    config = ImportConfig.from_settings(settings)
    errors = config.validate()
    if errors:
        raise ImportConfigurationError(errors)
    return config


def get_storage(
    supa: Client = Depends(get_supabase),
    config: ImportConfig = Depends(get_import_config),
) -> StorageProvider:
    try:
        if config.storage_backend == "r2":
            return R2StorageProvider()
        return SupabaseStorageProvider(supa, bucket_name=config.storage_bucket)
    except StorageError as e:
        logger.error("Failed to initialize storage: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage service unavailable",
        )


_media_indexes: dict[str, MediaIndex] = {}
_media_lock = Lock()


def get_media_index(
    current_user: CurrentUser = Depends(get_current_user),
    config: ImportConfig = Depends(get_import_config),
) -> Optional[MediaIndex]:
    """
    Each account browses MEDIA_LIBRARY_DIR/<account_id> only.

    Asset ids are minted per index instance, so indexes are kept for the
    life of the process.
    """
    if not config.media_library_dir:
        return None

    account_id = current_user.id
    if not account_id or Path(account_id).name != account_id or account_id in (".", ".."):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid account id")

    with _media_lock:
        index = _media_indexes.get(account_id)
        if index is None:
            index = DirectoryMediaIndex(Path(config.media_library_dir) / account_id)
            _media_indexes[account_id] = index
    return index


def get_quota_service(
    supa: Client = Depends(get_supabase),
    config: ImportConfig = Depends(get_import_config),
) -> QuotaService:
    return QuotaService(SupabaseQuotaRepository(supa), monthly_limit=config.monthly_limit)


def get_item_repository(supa: Client = Depends(get_supabase)) -> SupabaseSavedItemRepository:
    return SupabaseSavedItemRepository(supa)


def get_upload_service(storage: StorageProvider = Depends(get_storage)) -> UploadService:
    return UploadService(storage)


def get_asset_resolver(media_index: Optional[MediaIndex] = Depends(get_media_index)) -> AssetResolver:
    return AssetResolver(media_index)


def get_classification_service(config: ImportConfig = Depends(get_import_config)) -> ClassificationService:
    return ClassificationService(
        config.vision_base_url,
        api_key=config.vision_api_key,
        timeout_seconds=config.stage_timeout_seconds,
    )


def get_library_service(
    repository: SupabaseSavedItemRepository = Depends(get_item_repository),
    uploads: UploadService = Depends(get_upload_service),
) -> LibraryService:
    return LibraryService(repository, uploads)


def get_import_pipeline(
    config: ImportConfig = Depends(get_import_config),
    quota: QuotaService = Depends(get_quota_service),
    resolver: AssetResolver = Depends(get_asset_resolver),
    uploads: UploadService = Depends(get_upload_service),
    classifier: ClassificationService = Depends(get_classification_service),
    repository: SupabaseSavedItemRepository = Depends(get_item_repository),
) -> ImportPipeline:
    persistence = PersistenceService(repository, uploads, quota)
    return ImportPipeline(
        quota,
        resolver,
        uploads,
        classifier,
        persistence,
        stage_timeout_seconds=config.stage_timeout_seconds,
    )


@lru_cache(maxsize=1)
def _build_vision_client() -> GeminiVisionClient:
    return GeminiVisionClient(
        api_key=settings.GEMINI_API_KEY.get_secret_value(),
        model_name=settings.GEMINI_MODEL,
    )


def get_vision_client() -> GeminiVisionClient:
    try:
        return _build_vision_client()
    except VisionConfigurationError as e:
        logger.error("Vision client unavailable: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vision service unavailable",
        )
