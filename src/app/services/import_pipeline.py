# src/app/services/import_pipeline.py
"""
Batch orchestrator for screenshot imports.

Items run one at a time in selection order:

    PENDING -> QUOTA_CHECKING -> BLOCKED
                              -> RESOLVING -> UPLOADING -> CLASSIFYING -> PERSISTING
                                 -> SUCCEEDED | FAILED

A blocked item halts the batch. A failed item is tallied and the batch
moves on. Cancellation is honoured before the next quota check only.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional, Sequence

from starlette.concurrency import run_in_threadpool

from src.app.domain.errors import (
    ClassificationError,
    LibraryImportError,
    PersistenceError,
    StageTimeoutError,
)
from src.app.domain.models import (
    BatchItem,
    BatchReport,
    BatchSession,
    Category,
    ClassificationResult,
    GeneratedContent,
    ItemState,
    MediaReference,
    Plan,
    QuotaCheck,
    ReportOutcome,
    ResolvedAsset,
    SavedItem,
    SourcePlatform,
    UploadResult,
)
from src.app.services.asset_resolver import AssetResolver
from src.app.services.classification_service import ClassificationService
from src.app.services.persistence_service import PersistenceService
from src.app.services.quota_service import QuotaService
from src.app.services.upload_service import UploadService

logger = logging.getLogger(__name__)

DEFAULT_STAGE_TIMEOUT_SECONDS = float(os.getenv("STAGE_TIMEOUT_SECONDS", "30"))

ProgressCallback = Callable[[BatchSession, BatchItem], None]
RefreshHook = Callable[[str], Awaitable[None]]


class ImportPipeline:
    def __init__(
        self,
        quota: QuotaService,
        resolver: AssetResolver,
        uploads: UploadService,
        classifier: ClassificationService,
        persistence: PersistenceService,
        stage_timeout_seconds: float = DEFAULT_STAGE_TIMEOUT_SECONDS,
        on_progress: Optional[ProgressCallback] = None,
        refresh_hooks: Sequence[RefreshHook] = (),
    ):
        self.quota = quota
        self.resolver = resolver
        self.uploads = uploads
        self.classifier = classifier
        self.persistence = persistence
        self.stage_timeout_seconds = stage_timeout_seconds
        self.on_progress = on_progress
        self.refresh_hooks = list(refresh_hooks)

    def create_session(
        self,
        account_id: str,
        references: Sequence[MediaReference],
        categories: Optional[Sequence[Optional[Category]]] = None,
    ) -> BatchSession:
        """
        Build a batch with every item PENDING.

        Args:
            account_id: Owner of the imported items
            references: Selected media, in selection order
            categories: Optional user-chosen category per item; items with a
                category go through content generation instead of auto-categorize
        """
        if categories is not None and len(categories) != len(references):
            raise ValueError("categories must match references one to one")

        chosen = list(categories) if categories is not None else [None] * len(references)
        items = [
            BatchItem(reference=reference, requested_category=category)
            for reference, category in zip(references, chosen)
        ]
        return BatchSession(account_id=account_id, items=items)

    async def run(self, session: BatchSession) -> BatchReport:
        logger.info("Import started: user=%s, items=%d", session.account_id, session.total)

        for index, item in enumerate(session.items):
            if session.cancelled:
                logger.info("Import cancelled before item %d/%d", index + 1, session.total)
                break

            session.current_index = index
            check = await self._check_quota(session, item)

            if not check.allowed:
                item.state = ItemState.BLOCKED
                item.error = check.reason
                session.tally.blocked += 1
                session.halted_on_quota = True
                self._notify(session, item)
                logger.info(
                    "Import halted by quota at item %d/%d: user=%s, reason=%s",
                    index + 1,
                    session.total,
                    session.account_id,
                    check.reason,
                )
                break

            await self._process_item(session, item)
            self._notify(session, item)

        return await self._report(session)

    async def _check_quota(self, session: BatchSession, item: BatchItem) -> QuotaCheck:
        item.state = ItemState.QUOTA_CHECKING

        try:
            return await self._run_stage("quota", self.quota.check_and_increment, session.account_id)
        except StageTimeoutError as e:
            logger.error("Quota check timed out, denying save: user=%s", session.account_id)
            return QuotaCheck(allowed=False, count=0, plan=Plan.FREE, reason=str(e))
        except Exception as e:
            logger.exception("Quota check raised, denying save: user=%s", session.account_id)
            return QuotaCheck(allowed=False, count=0, plan=Plan.FREE, reason=f"Quota check failed: {e}")

    async def _process_item(self, session: BatchSession, item: BatchItem) -> None:
        upload: Optional[UploadResult] = None

        try:
            item.state = ItemState.RESOLVING
            asset = await self._run_stage("resolve", self.resolver.resolve, item.reference)

            item.state = ItemState.UPLOADING
            upload, late = await self._run_settled("upload", self.uploads.upload, asset, session.account_id)
            if late:
                raise StageTimeoutError("upload", self.stage_timeout_seconds)

            item.state = ItemState.CLASSIFYING
            classification, generated = await self._classify(item, asset)

            item.state = ItemState.PERSISTING
            saved, late = await self._run_settled(
                "persist",
                self.persistence.persist,
                upload,
                classification,
                session.account_id,
                generated,
            )
            if late:
                saved = await self._roll_back_late_insert(saved)
        except LibraryImportError as e:
            logger.warning("Import item failed: index=%d, state=%s, error=%s", session.current_index, item.state.value, e)
            await self._fail_item(session, item, e, upload)
            return
        except Exception as e:
            logger.exception("Unexpected error importing item %d", session.current_index)
            await self._fail_item(session, item, e, upload)
            return

        item.state = ItemState.SUCCEEDED
        item.saved_item = saved
        session.saved_items.append(saved)
        session.tally.succeeded += 1
        if item.partial:
            session.tally.partial += 1

    async def _fail_item(
        self,
        session: BatchSession,
        item: BatchItem,
        error: Exception,
        upload: Optional[UploadResult],
    ) -> None:
        # PersistenceError already removed its blob
        if upload is not None and not isinstance(error, PersistenceError):
            await run_in_threadpool(self.uploads.delete, upload.storage_path)

        item.state = ItemState.FAILED
        item.error = str(error)
        session.tally.failed += 1

    async def _classify(
        self,
        item: BatchItem,
        asset: ResolvedAsset,
    ) -> tuple[ClassificationResult, Optional[GeneratedContent]]:
        data = asset.read_bytes()

        if item.requested_category is None:
            try:
                result = await asyncio.wait_for(self.classifier.classify(data), self.stage_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("Classification timed out, using fallback")
                result = ClassificationResult.fallback()
            return result, None

        try:
            generated = await asyncio.wait_for(
                self.classifier.generate(data, item.requested_category),
                self.stage_timeout_seconds,
            )
        except (ClassificationError, asyncio.TimeoutError) as e:
            logger.warning(
                "Generation failed for category=%s, saving with defaults: %s",
                item.requested_category.value,
                str(e) or "timeout",
            )
            generated = GeneratedContent.defaults()
            item.partial = True

        classification = ClassificationResult(
            category=item.requested_category,
            source_platform=SourcePlatform.OTHER,
            extracted_text=generated.extracted_text,
            confidence=generated.confidence,
        )
        return classification, generated

    async def _run_stage(self, stage: str, func, *args):
        try:
            return await asyncio.wait_for(
                run_in_threadpool(func, *args),
                timeout=self.stage_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise StageTimeoutError(stage, self.stage_timeout_seconds) from e

    async def _run_settled(self, stage: str, func, *args) -> tuple[Any, bool]:
        """
        Run a stage that writes somewhere, returning (result, timed_out).

        A worker thread cannot be cancelled, so on timeout the write is
        awaited to completion and handed back for the caller to undo.
        Errors raised by the late write propagate unchanged.
        """
        task = asyncio.ensure_future(run_in_threadpool(func, *args))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.stage_timeout_seconds), False
        except asyncio.TimeoutError:
            logger.warning("Stage %s timed out after %ss, waiting for it to settle", stage, self.stage_timeout_seconds)
            return await task, True

    async def _roll_back_late_insert(self, saved: SavedItem) -> SavedItem:
        if await run_in_threadpool(self.persistence.discard, saved):
            # Row and blob are gone; PersistenceError keeps _fail_item from deleting again
            raise PersistenceError(saved.storage_path, f"timed out after {self.stage_timeout_seconds}s")

        logger.error("Late insert could not be rolled back, keeping item: id=%s", saved.id)
        return saved

    def _notify(self, session: BatchSession, item: BatchItem) -> None:
        if self.on_progress is not None:
            self.on_progress(session, item)

    async def _report(self, session: BatchSession) -> BatchReport:
        for hook in self.refresh_hooks:
            try:
                await hook(session.account_id)
            except Exception:
                logger.exception("Refresh hook failed: user=%s", session.account_id)

        tally = session.tally
        detail_item_id = None

        if tally.succeeded == 1 and len(session.saved_items) == 1:
            outcome = ReportOutcome.DETAIL
            detail_item_id = session.saved_items[0].id
        elif tally.succeeded == 0 and tally.failed == 0 and session.halted_on_quota:
            outcome = ReportOutcome.UPGRADE_PROMPT
        elif tally.succeeded == 0 and tally.failed == 0:
            outcome = ReportOutcome.EMPTY
        else:
            outcome = ReportOutcome.SUMMARY

        logger.info(
            "Import finished: user=%s, succeeded=%d, failed=%d, blocked=%d, partial=%d, outcome=%s",
            session.account_id,
            tally.succeeded,
            tally.failed,
            tally.blocked,
            tally.partial,
            outcome.value,
        )

        return BatchReport(
            tally=tally,
            saved_items=list(session.saved_items),
            outcome=outcome,
            halted_on_quota=session.halted_on_quota,
            detail_item_id=detail_item_id,
        )
