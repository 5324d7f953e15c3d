# src/app/routers/v2/imports.py
"""
Batch screenshot imports.

Two entry points: share-style uploads (multipart files) and picks from the
media library (asset ids). Both run the same pipeline and return its report.
"""
from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from src.app.deps import CurrentUser, get_current_user, get_import_pipeline, get_media_index
from src.app.domain.models import Category, MediaReference
from src.app.domain.normalize import parse_category
from src.app.infra.media.base import MediaIndex
from src.app.schemas.imports import ImportReportResponse, LibraryImportRequest
from src.app.services.import_pipeline import ImportPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v2/imports", tags=["Imports V2"])

MAX_FILES_PER_IMPORT = 50
MAX_FILE_SIZE_BYTES = 20 * 1024 * 1024


def _sanitize_filename(filename: str) -> str:
    filename = os.path.basename(filename)
    filename = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)
    if len(filename) > 100:
        name, ext = os.path.splitext(filename)
        filename = name[:95] + ext
    return filename or "image"


def _parse_requested_category(category: Optional[str]) -> Optional[Category]:
    if not category:
        return None
    parsed = parse_category(category)
    if parsed is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown category '{category}'",
        )
    return parsed


async def _run_batch(
    pipeline: ImportPipeline,
    account_id: str,
    references: list[MediaReference],
    category: Optional[Category],
) -> ImportReportResponse:
    categories = [category] * len(references) if category else None
    session = pipeline.create_session(account_id, references, categories)
    report = await pipeline.run(session)
    return ImportReportResponse.build(session, report)


@router.post("", response_model=ImportReportResponse)
async def import_files(
    files: list[UploadFile] = File(...),
    category: Optional[str] = Form(None),
    current_user: CurrentUser = Depends(get_current_user),
    pipeline: ImportPipeline = Depends(get_import_pipeline),
):
    """
    Import screenshots shared into the app.

    Files are spooled to a temp directory that lives for the duration of
    the batch, then handed to the pipeline as file references.
    """
    if len(files) > MAX_FILES_PER_IMPORT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Maximum per import: {MAX_FILES_PER_IMPORT}",
        )
    requested = _parse_requested_category(category)

    with tempfile.TemporaryDirectory(prefix="screenshot-import-") as temp_dir:
        references = []
        for index, upload in enumerate(files):
            if upload.content_type and not upload.content_type.startswith("image/"):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"File '{upload.filename}' is not an image",
                )
            data = await upload.read()
            if len(data) > MAX_FILE_SIZE_BYTES:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"File too large. Maximum size: {MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB",
                )

            name = _sanitize_filename(upload.filename or "image")
            path = Path(temp_dir) / f"{index:03d}_{name}"
            path.write_bytes(data)
            references.append(MediaReference.file(path, file_name=upload.filename, mime_type=upload.content_type))

        logger.info("Share import: user=%s, files=%d, category=%s", current_user.id, len(references), category)
        return await _run_batch(pipeline, current_user.id, references, requested)


@router.post("/library", response_model=ImportReportResponse)
async def import_from_library(
    request: LibraryImportRequest,
    current_user: CurrentUser = Depends(get_current_user),
    media_index: Optional[MediaIndex] = Depends(get_media_index),
    pipeline: ImportPipeline = Depends(get_import_pipeline),
):
    if media_index is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Media library is not configured",
        )
    requested = _parse_requested_category(request.category)

    references = [MediaReference.library(asset_id) for asset_id in request.asset_ids]
    logger.info("Library import: user=%s, assets=%d, category=%s", current_user.id, len(references), request.category)
    return await _run_batch(pipeline, current_user.id, references, requested)
