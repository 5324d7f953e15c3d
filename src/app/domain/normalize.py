# src/app/domain/normalize.py
"""
Allow-list validation for payloads coming out of the vision model.
The remote capability is untrusted input: anything outside the known
enums becomes "other", confidence is clamped and text is truncated.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, TypeVar

from src.app.domain.models import (
    DEFAULT_SUGGESTED_PLATFORM,
    MAX_EXTRACTED_TEXT_CHARS,
    Category,
    ClassificationResult,
    ContentFormat,
    GeneratedContent,
    SourcePlatform,
    SuggestedPlatform,
)

E = TypeVar("E", bound=Enum)


def coerce_enum(value: Any, enum_cls: type[E], default: E) -> E:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return default
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        return default


def clamp_confidence(value: Any, default: float = 0.0) -> float:
    # bool is an int subclass; "true" is not a confidence
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value != value:  # NaN
        return default
    return min(1.0, max(0.0, float(value)))


def clean_text(value: Any, limit: int = MAX_EXTRACTED_TEXT_CHARS) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()[:limit]


def clean_outline(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def normalize_classification(
    payload: Mapping[str, Any],
    default_confidence: float = 0.0,
) -> ClassificationResult:
    return ClassificationResult(
        category=coerce_enum(payload.get("category"), Category, Category.OTHER),
        source_platform=coerce_enum(payload.get("source_platform"), SourcePlatform, SourcePlatform.OTHER),
        extracted_text=clean_text(payload.get("extracted_text")),
        confidence=clamp_confidence(payload.get("confidence"), default_confidence),
    )


def normalize_generated_content(
    payload: Mapping[str, Any],
    default_confidence: float = 0.0,
) -> GeneratedContent:
    # The model answers snake_case, the endpoint answers camelCase
    extracted = payload.get("extracted_text")
    if extracted is None:
        extracted = payload.get("extractedText")

    platform = payload.get("platform")
    if platform:
        suggested_platform = coerce_enum(platform, SuggestedPlatform, SuggestedPlatform.OTHER)
    else:
        suggested_platform = DEFAULT_SUGGESTED_PLATFORM

    return GeneratedContent(
        title=clean_text(payload.get("title")),
        hook=clean_text(payload.get("hook")),
        outline=clean_outline(payload.get("outline")),
        suggested_format=coerce_enum(payload.get("format"), ContentFormat, ContentFormat.SHORT),
        suggested_platform=suggested_platform,
        extracted_text=clean_text(extracted),
        confidence=clamp_confidence(payload.get("confidence"), default_confidence),
    )


def parse_category(value: Any) -> Category | None:
    """Strict variant used for user input: unknown values are rejected, not coerced."""
    if isinstance(value, Category):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Category(value.strip().lower())
    except ValueError:
        return None
