# src/app/routers/v2/quota.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.concurrency import run_in_threadpool

from src.app.deps import CurrentUser, get_current_user, get_quota_service
from src.app.domain.errors import QuotaLedgerError
from src.app.schemas.items import QuotaResponse
from src.app.services.quota_service import QuotaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v2/quota", tags=["Quota V2"])


@router.get("", response_model=QuotaResponse)
async def get_quota(
    current_user: CurrentUser = Depends(get_current_user),
    quota: QuotaService = Depends(get_quota_service),
):
    try:
        snapshot = await run_in_threadpool(quota.snapshot, current_user.id)
    except QuotaLedgerError as e:
        logger.error("Failed to read quota: user=%s, error=%s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Quota service unavailable",
        )
    return QuotaResponse.from_snapshot(snapshot)
