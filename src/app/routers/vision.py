# src/app/routers/vision.py
"""
Vision endpoints consumed by the import pipeline's classification stage.
"""
from __future__ import annotations

import logging
from typing import AbstractSet, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.concurrency import run_in_threadpool

from src.app.deps import get_image_hosts, get_vision_client, require_vision_key
from src.app.domain.models import Category, ClassificationResult
from src.app.domain.normalize import coerce_enum
from src.app.schemas.vision import (
    AnalyzeImageRequest,
    AnalyzeImageResponse,
    GenerateContentRequest,
    GenerateContentResponse,
)
from src.services import vision
from src.services.errors import RateLimitedError, ServiceError
from src.services.gemini_client import GeminiVisionClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Vision"], dependencies=[Depends(require_vision_key)])


async def _load_image(
    image_base64: Optional[str],
    image_url: Optional[str] = None,
    allowed_hosts: AbstractSet[str] = frozenset(),
) -> tuple[bytes, str]:
    try:
        return await run_in_threadpool(vision.load_image, image_base64, image_url, allowed_hosts)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/analyze-image", response_model=AnalyzeImageResponse)
async def analyze_image(
    request: AnalyzeImageRequest,
    client: GeminiVisionClient = Depends(get_vision_client),
    image_hosts: frozenset[str] = Depends(get_image_hosts),
):
    """
    Auto-categorize a screenshot.

    imageUrl is only fetched over https from the storage hosts. Model
    failures answer the fallback payload with HTTP 200 so the caller can
    still save the item.
    """
    try:
        image_bytes, mime_type = await _load_image(request.imageBase64, request.imageUrl, image_hosts)
        result = await run_in_threadpool(vision.analyze_image, client, image_bytes, mime_type)
    except ServiceError as e:
        logger.warning("Image analysis failed, answering fallback: %s", e)
        return AnalyzeImageResponse.from_result(ClassificationResult.fallback(), error=str(e))

    return AnalyzeImageResponse.from_result(result)


@router.post("/generate-content", response_model=GenerateContentResponse)
async def generate_content(
    request: GenerateContentRequest,
    client: GeminiVisionClient = Depends(get_vision_client),
):
    category = coerce_enum(request.category, Category, Category.OTHER)

    if not request.imageBase64:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="imageBase64 is required")

    try:
        image_bytes, mime_type = await _load_image(request.imageBase64)
        result = await run_in_threadpool(vision.generate_content, client, image_bytes, category, mime_type)
    except RateLimitedError as e:
        logger.warning("Content generation rate limited: category=%s", category.value)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ServiceError as e:
        logger.error("Content generation failed: category=%s, error=%s", category.value, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Content generation failed")

    return GenerateContentResponse.from_result(result)
