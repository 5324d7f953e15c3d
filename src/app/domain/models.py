# src/app/domain/models.py
"""
Domain models for the screenshot import pipeline and the saved-item library.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

FREE_TIER_LIMIT = 50
MAX_EXTRACTED_TEXT_CHARS = 1000


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"


class Category(str, Enum):
    VIDEO_IDEA = "video_idea"
    HOOK = "hook"
    THUMBNAIL = "thumbnail"
    SCRIPT = "script"
    VISUAL = "visual"
    ANALYTICS = "analytics"
    OTHER = "other"


class SourcePlatform(str, Enum):
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    OTHER = "other"


class ContentFormat(str, Enum):
    SHORT = "short"
    LONG = "long"


class SuggestedPlatform(str, Enum):
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    REELS = "reels"
    OTHER = "other"


# Generated ideas that name no platform target short-form video
DEFAULT_SUGGESTED_PLATFORM = SuggestedPlatform.TIKTOK


class MediaKind(str, Enum):
    """How a media reference must be turned into readable bytes."""
    FILE = "file"
    LIBRARY = "library"


class ItemState(str, Enum):
    """Per-item state inside a batch session."""
    PENDING = "PENDING"
    QUOTA_CHECKING = "QUOTA_CHECKING"
    BLOCKED = "BLOCKED"
    RESOLVING = "RESOLVING"
    UPLOADING = "UPLOADING"
    CLASSIFYING = "CLASSIFYING"
    PERSISTING = "PERSISTING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


TERMINAL_STATES = frozenset({ItemState.SUCCEEDED, ItemState.FAILED, ItemState.BLOCKED})


class ReportOutcome(str, Enum):
    """What the client should show once a batch is over."""
    SUMMARY = "SUMMARY"
    DETAIL = "DETAIL"
    UPGRADE_PROMPT = "UPGRADE_PROMPT"
    EMPTY = "EMPTY"


@dataclass
class QuotaRecord:
    account_id: str
    period_saves_count: int = 0
    plan: Plan = Plan.FREE


@dataclass
class QuotaCheck:
    """Result of the atomic check-and-increment."""
    allowed: bool
    count: int
    plan: Plan
    reason: Optional[str] = None


@dataclass
class QuotaSnapshot:
    """Display-only view of the ledger. Never use it to gate writes."""
    count: int
    plan: Plan
    limit: Optional[int]
    remaining: Optional[int]

    @property
    def is_at_limit(self) -> bool:
        return self.remaining is not None and self.remaining <= 0


@dataclass(frozen=True)
class MediaReference:
    """
    Ephemeral handle to an image picked for import.
    FILE references carry a path or file:// URI, LIBRARY references an
    opaque asset id that only the media index can turn into a path.
    """
    kind: MediaKind
    locator: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None

    @classmethod
    def file(cls, path: str | Path, file_name: str | None = None, mime_type: str | None = None) -> "MediaReference":
        return cls(kind=MediaKind.FILE, locator=str(path), file_name=file_name, mime_type=mime_type)

    @classmethod
    def library(cls, asset_id: str) -> "MediaReference":
        return cls(kind=MediaKind.LIBRARY, locator=asset_id)


@dataclass
class MediaAsset:
    """An entry of the platform media index."""
    asset_id: str
    path: Path
    width: int
    height: int
    created_at: datetime

    @property
    def aspect_ratio(self) -> float:
        return self.height / self.width if self.width else 0.0


@dataclass
class MediaPage:
    assets: list[MediaAsset]
    has_more: bool
    end_cursor: Optional[str] = None


@dataclass
class ResolvedAsset:
    """A byte-readable local resource."""
    path: Path
    content_type: str
    extension: str
    _data: Optional[bytes] = field(default=None, repr=False, compare=False)

    def read_bytes(self) -> bytes:
        if self._data is None:
            self._data = self.path.read_bytes()
        return self._data


@dataclass(frozen=True)
class UploadResult:
    storage_path: str
    public_url: str


@dataclass(frozen=True)
class ClassificationResult:
    category: Category
    source_platform: SourcePlatform
    extracted_text: str
    confidence: float

    @classmethod
    def fallback(cls) -> "ClassificationResult":
        return cls(
            category=Category.OTHER,
            source_platform=SourcePlatform.OTHER,
            extracted_text="",
            confidence=0.0,
        )


@dataclass(frozen=True)
class GeneratedContent:
    title: str
    hook: str
    outline: tuple[str, ...]
    suggested_format: ContentFormat
    suggested_platform: SuggestedPlatform
    extracted_text: str
    confidence: float

    @classmethod
    def defaults(cls) -> "GeneratedContent":
        return cls(
            title="",
            hook="",
            outline=(),
            suggested_format=ContentFormat.SHORT,
            suggested_platform=DEFAULT_SUGGESTED_PLATFORM,
            extracted_text="",
            confidence=0.0,
        )


@dataclass
class SavedItem:
    """
    A persisted screenshot: upload result + classification + owner.
    user_note and category_override are user-authored and never overwrite
    the classification fields.
    """
    id: str
    user_id: str
    image_url: str
    storage_path: str
    category: Category
    source_platform: SourcePlatform
    extracted_text: str = ""
    ai_confidence: float = 0.0

    # Category-driven generation
    generated_title: Optional[str] = None
    generated_hook: Optional[str] = None
    generated_outline: list[str] = field(default_factory=list)
    suggested_format: Optional[ContentFormat] = None
    suggested_platform: Optional[SuggestedPlatform] = None

    # User-authored
    user_note: Optional[str] = None
    category_override: Optional[Category] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def effective_category(self) -> Category:
        return self.category_override or self.category


@dataclass
class BatchItem:
    reference: MediaReference
    requested_category: Optional[Category] = None
    state: ItemState = ItemState.PENDING
    saved_item: Optional[SavedItem] = None
    error: Optional[str] = None
    partial: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass
class BatchTally:
    succeeded: int = 0
    failed: int = 0
    blocked: int = 0
    partial: int = 0


@dataclass
class BatchSession:
    """
    Ephemeral orchestration state of one import. Owned exclusively by the
    pipeline run that created it.
    """
    account_id: str
    items: list[BatchItem]
    current_index: int = 0
    tally: BatchTally = field(default_factory=BatchTally)
    saved_items: list[SavedItem] = field(default_factory=list)
    cancelled: bool = False
    halted_on_quota: bool = False

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def processed(self) -> int:
        return sum(1 for item in self.items if item.is_terminal)

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class BatchReport:
    tally: BatchTally
    saved_items: list[SavedItem]
    outcome: ReportOutcome
    halted_on_quota: bool = False
    detail_item_id: Optional[str] = None
