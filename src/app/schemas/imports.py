from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.app.domain.models import BatchItem, BatchReport, BatchSession, MediaAsset
from src.app.schemas.items import SavedItemResponse


class LibraryImportRequest(BaseModel):
    asset_ids: list[str] = Field(..., min_length=1, max_length=50)
    category: Optional[str] = None


class ImportItemStatus(BaseModel):
    index: int
    state: str
    itemId: Optional[str] = None
    error: Optional[str] = None
    partial: bool = False

    @classmethod
    def from_item(cls, index: int, item: BatchItem) -> "ImportItemStatus":
        return cls(
            index=index,
            state=item.state.value,
            itemId=item.saved_item.id if item.saved_item else None,
            error=item.error,
            partial=item.partial,
        )


class ImportReportResponse(BaseModel):
    outcome: str
    succeeded: int
    failed: int
    blocked: int
    partial: int
    haltedOnQuota: bool = False
    detailItemId: Optional[str] = None
    items: list[ImportItemStatus] = Field(default_factory=list)
    savedItems: list[SavedItemResponse] = Field(default_factory=list)

    @classmethod
    def build(cls, session: BatchSession, report: BatchReport) -> "ImportReportResponse":
        return cls(
            outcome=report.outcome.value,
            succeeded=report.tally.succeeded,
            failed=report.tally.failed,
            blocked=report.tally.blocked,
            partial=report.tally.partial,
            haltedOnQuota=report.halted_on_quota,
            detailItemId=report.detail_item_id,
            items=[ImportItemStatus.from_item(i, item) for i, item in enumerate(session.items)],
            savedItems=[SavedItemResponse.from_item(item) for item in report.saved_items],
        )


class ScreenshotAsset(BaseModel):
    assetId: str
    width: int
    height: int
    createdAt: str

    @classmethod
    def from_asset(cls, asset: MediaAsset) -> "ScreenshotAsset":
        return cls(
            assetId=asset.asset_id,
            width=asset.width,
            height=asset.height,
            createdAt=asset.created_at.isoformat(),
        )


class ScreenshotPageResponse(BaseModel):
    assets: list[ScreenshotAsset]
    hasMore: bool
    endCursor: Optional[str] = None
