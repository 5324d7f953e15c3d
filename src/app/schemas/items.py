from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.app.domain.models import QuotaSnapshot, SavedItem


class SavedItemResponse(BaseModel):
    id: str
    imageUrl: str
    storagePath: str
    category: str
    effectiveCategory: str
    sourcePlatform: str
    extractedText: str = ""
    aiConfidence: float = 0.0
    generatedTitle: Optional[str] = None
    generatedHook: Optional[str] = None
    generatedOutline: list[str] = Field(default_factory=list)
    suggestedFormat: Optional[str] = None
    suggestedPlatform: Optional[str] = None
    userNote: Optional[str] = None
    categoryOverride: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    @classmethod
    def from_item(cls, item: SavedItem) -> "SavedItemResponse":
        return cls(
            id=item.id,
            imageUrl=item.image_url,
            storagePath=item.storage_path,
            category=item.category.value,
            effectiveCategory=item.effective_category.value,
            sourcePlatform=item.source_platform.value,
            extractedText=item.extracted_text,
            aiConfidence=item.ai_confidence,
            generatedTitle=item.generated_title,
            generatedHook=item.generated_hook,
            generatedOutline=list(item.generated_outline),
            suggestedFormat=item.suggested_format.value if item.suggested_format else None,
            suggestedPlatform=item.suggested_platform.value if item.suggested_platform else None,
            userNote=item.user_note,
            categoryOverride=item.category_override.value if item.category_override else None,
            createdAt=item.created_at.isoformat() if item.created_at else None,
            updatedAt=item.updated_at.isoformat() if item.updated_at else None,
        )


class ItemListResponse(BaseModel):
    items: list[SavedItemResponse]
    limit: int
    offset: int


class UpdateItemRequest(BaseModel):
    userNote: Optional[str] = Field(None, max_length=2000)
    categoryOverride: Optional[str] = None


class QuotaResponse(BaseModel):
    count: int
    plan: str
    limit: Optional[int] = None
    remaining: Optional[int] = None
    atLimit: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: QuotaSnapshot) -> "QuotaResponse":
        return cls(
            count=snapshot.count,
            plan=snapshot.plan.value,
            limit=snapshot.limit,
            remaining=snapshot.remaining,
            atLimit=snapshot.is_at_limit,
        )
