from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from src.app.domain.models import ClassificationResult, GeneratedContent


class AnalyzeImageRequest(BaseModel):
    imageBase64: Optional[str] = None
    imageUrl: Optional[str] = None


class AnalyzeImageResponse(BaseModel):
    category: str
    source_platform: str
    extracted_text: str = ""
    confidence: float = 0.0
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: ClassificationResult, error: Optional[str] = None) -> "AnalyzeImageResponse":
        return cls(
            category=result.category.value,
            source_platform=result.source_platform.value,
            extracted_text=result.extracted_text,
            confidence=result.confidence,
            error=error,
        )


class GenerateContentRequest(BaseModel):
    imageBase64: Optional[str] = None
    category: str = "other"


class GenerateContentResponse(BaseModel):
    title: str = ""
    hook: str = ""
    outline: list[str] = Field(default_factory=list)
    format: str = "short"
    platform: str = "tiktok"
    extractedText: str = ""
    confidence: float = 0.0

    @classmethod
    def from_result(cls, result: GeneratedContent) -> "GenerateContentResponse":
        return cls(
            title=result.title,
            hook=result.hook,
            outline=list(result.outline),
            format=result.suggested_format.value,
            platform=result.suggested_platform.value,
            extractedText=result.extracted_text,
            confidence=result.confidence,
        )
