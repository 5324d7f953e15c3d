# src/app/routers/v2/media.py
"""
Browse the device-side media library for screenshot-like images.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from src.app.deps import CurrentUser, get_asset_resolver, get_current_user
from src.app.schemas.imports import ScreenshotAsset, ScreenshotPageResponse
from src.app.services.asset_resolver import AssetResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v2/media", tags=["Media V2"])


@router.get("/screenshots", response_model=ScreenshotPageResponse)
async def list_screenshots(
    limit: int = Query(50, ge=1, le=200),
    after: Optional[str] = Query(None, description="Cursor from a previous page"),
    current_user: CurrentUser = Depends(get_current_user),
    resolver: AssetResolver = Depends(get_asset_resolver),
):
    page = await run_in_threadpool(resolver.list_screenshots, limit, after)
    return ScreenshotPageResponse(
        assets=[ScreenshotAsset.from_asset(asset) for asset in page.assets],
        hasMore=page.has_more,
        endCursor=page.end_cursor,
    )
