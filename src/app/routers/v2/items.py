# src/app/routers/v2/items.py
"""
Saved item library: list, counts, detail, user edits and delete.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from starlette.concurrency import run_in_threadpool

from src.app.deps import CurrentUser, get_current_user, get_library_service
from src.app.domain.errors import InvalidCategoryError, ItemNotFoundError, ItemRepositoryError
from src.app.schemas.items import ItemListResponse, SavedItemResponse, UpdateItemRequest
from src.app.services.library_service import LibraryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v2/items", tags=["Items V2"])


def _translate(e: Exception) -> HTTPException:
    if isinstance(e, ItemNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    if isinstance(e, InvalidCategoryError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.error("Item repository failure: %s", e)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Item store unavailable")


_HANDLED = (ItemNotFoundError, InvalidCategoryError, ItemRepositoryError)


@router.get("", response_model=ItemListResponse)
async def list_items(
    category: Optional[str] = Query(None, description="Category filter, or 'all'"),
    q: Optional[str] = Query(None, max_length=200, description="Search over extracted text"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library_service),
):
    try:
        items = await run_in_threadpool(library.list_items, current_user.id, category, q, limit, offset)
    except _HANDLED as e:
        raise _translate(e)

    return ItemListResponse(
        items=[SavedItemResponse.from_item(item) for item in items],
        limit=limit,
        offset=offset,
    )


@router.get("/category-counts", response_model=dict[str, int])
async def category_counts(
    current_user: CurrentUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library_service),
):
    try:
        return await run_in_threadpool(library.category_counts, current_user.id)
    except _HANDLED as e:
        raise _translate(e)


@router.get("/{item_id}", response_model=SavedItemResponse)
async def get_item(
    item_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library_service),
):
    try:
        item = await run_in_threadpool(library.get_item, current_user.id, item_id)
    except _HANDLED as e:
        raise _translate(e)
    return SavedItemResponse.from_item(item)


@router.patch("/{item_id}", response_model=SavedItemResponse)
async def update_item(
    item_id: str,
    request: UpdateItemRequest,
    current_user: CurrentUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library_service),
):
    # Only fields present in the body are applied; an explicit null clears
    edits = {}
    if "userNote" in request.model_fields_set:
        edits["user_note"] = request.userNote
    if "categoryOverride" in request.model_fields_set:
        edits["category_override"] = request.categoryOverride

    try:
        item = await run_in_threadpool(lambda: library.update_item(current_user.id, item_id, **edits))
    except _HANDLED as e:
        raise _translate(e)
    return SavedItemResponse.from_item(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    library: LibraryService = Depends(get_library_service),
):
    try:
        await run_in_threadpool(library.delete_item, current_user.id, item_id)
    except _HANDLED as e:
        raise _translate(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
