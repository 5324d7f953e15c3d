from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import AnyUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.app.domain.models import FREE_TIER_LIMIT


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    SUPABASE_URL: AnyUrl
    SUPABASE_SERVICE_ROLE_KEY: str
    APP_ENV: str = "local"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:8081", "http://localhost:19006"],
    )

    GEMINI_API_KEY: SecretStr = SecretStr("")
    GEMINI_MODEL: str = "gemini-2.5-flash"

    STORAGE_BACKEND: Literal["supabase", "r2"] = "supabase"
    STORAGE_BUCKET: str = "saved-items"

    FREE_TIER_LIMIT: int = Field(default=FREE_TIER_LIMIT, ge=1)
    STAGE_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Where the pipeline reaches the vision endpoints; defaults to this app
    VISION_BASE_URL: str = "http://localhost:8000"
    VISION_API_KEY: Optional[SecretStr] = None
    # Extra hosts /analyze-image may fetch imageUrl from, besides storage
    VISION_IMAGE_HOSTS: list[str] = Field(default_factory=list)

    MEDIA_LIBRARY_DIR: Optional[str] = None


settings = Settings()


@dataclass
class ImportConfig:
    """Knobs for one import pipeline instance."""

    monthly_limit: int = FREE_TIER_LIMIT
    stage_timeout_seconds: float = 30.0
    storage_backend: str = "supabase"
    storage_bucket: str = "saved-items"
    vision_base_url: str = ""
    vision_api_key: Optional[str] = None
    media_library_dir: Optional[str] = None

    @classmethod
    def from_settings(cls, source: Settings) -> "ImportConfig":
        return cls(
            monthly_limit=source.FREE_TIER_LIMIT,
            stage_timeout_seconds=source.STAGE_TIMEOUT_SECONDS,
            storage_backend=source.STORAGE_BACKEND,
            storage_bucket=source.STORAGE_BUCKET,
            vision_base_url=source.VISION_BASE_URL,
            vision_api_key=source.VISION_API_KEY.get_secret_value() if source.VISION_API_KEY else None,
            media_library_dir=source.MEDIA_LIBRARY_DIR,
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.monthly_limit < 1:
            errors.append("FREE_TIER_LIMIT must be at least 1")
        if self.stage_timeout_seconds <= 0:
            errors.append("STAGE_TIMEOUT_SECONDS must be positive")
        if self.storage_backend not in ("supabase", "r2"):
            errors.append(f"STORAGE_BACKEND must be 'supabase' or 'r2', got '{self.storage_backend}'")
        if self.storage_backend == "supabase" and not self.storage_bucket:
            errors.append("STORAGE_BUCKET is required")
        if not self.vision_base_url:
            errors.append("VISION_BASE_URL is required")
        elif not self.vision_base_url.startswith(("http://", "https://")):
            errors.append("VISION_BASE_URL must be an http(s) URL")
        if not self.vision_api_key:
            errors.append("VISION_API_KEY is required")

        return errors
