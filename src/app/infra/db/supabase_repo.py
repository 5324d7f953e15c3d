from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.app.domain.errors import ItemRepositoryError, QuotaLedgerError
from src.app.domain.models import (
    Category,
    ContentFormat,
    Plan,
    QuotaCheck,
    QuotaRecord,
    SavedItem,
    SourcePlatform,
    SuggestedPlatform,
)
from src.app.domain.normalize import coerce_enum
from src.app.infra.db.base import QuotaRepository, SavedItemRepository

logger = logging.getLogger(__name__)

_DB_ERRORS = (APIError, httpx.HTTPError, ConnectionError, TimeoutError)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    try:
        normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _safe_int(value: object, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _safe_str(value: object) -> str | None:
    return str(value) if value else None


def _first_row(data: list | dict | None) -> dict | None:
    if not data:
        return None
    return data[0] if isinstance(data, list) else data


def _row_to_item(row: dict[str, Any]) -> SavedItem:
    outline = row.get("generated_outline")
    return SavedItem(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        image_url=str(row.get("image_url") or ""),
        storage_path=str(row.get("storage_path") or ""),
        category=coerce_enum(row.get("category"), Category, Category.OTHER),
        source_platform=coerce_enum(row.get("source_platform"), SourcePlatform, SourcePlatform.OTHER),
        extracted_text=str(row.get("extracted_text") or ""),
        ai_confidence=float(row.get("ai_confidence") or 0.0),
        generated_title=_safe_str(row.get("generated_title")),
        generated_hook=_safe_str(row.get("generated_hook")),
        generated_outline=[str(point) for point in outline] if isinstance(outline, list) else [],
        suggested_format=ContentFormat(row["suggested_format"]) if row.get("suggested_format") in ("short", "long") else None,
        suggested_platform=(
            coerce_enum(row.get("suggested_platform"), SuggestedPlatform, SuggestedPlatform.OTHER)
            if row.get("suggested_platform")
            else None
        ),
        user_note=_safe_str(row.get("user_note")),
        category_override=(
            coerce_enum(row.get("category_override"), Category, Category.OTHER)
            if row.get("category_override")
            else None
        ),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def _create_supabase_client() -> Client:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, key)


class SupabaseQuotaRepository(QuotaRepository):
    TABLE_NAME = "subscriptions"
    INCREMENT_RPC = "increment_save_count"

    def __init__(self, client: Client | None = None):
        self._client = client or _create_supabase_client()

    def check_and_increment(self, account_id: str, limit: int) -> QuotaCheck:
        try:
            result = self._client.rpc(
                self.INCREMENT_RPC,
                {"p_user_id": account_id, "p_limit": limit},
            ).execute()
        except _DB_ERRORS as error:
            logger.error("Ledger RPC failed: user=%s, error=%s", account_id, error)
            raise QuotaLedgerError("check_and_increment", str(error)) from error

        return self._parse_increment_result(result.data)

    def _parse_increment_result(self, data: list | dict | None) -> QuotaCheck:
        parsed = _first_row(data)
        if parsed is None or "allowed" not in parsed:
            raise QuotaLedgerError("check_and_increment", "empty or malformed RPC response")

        allowed = bool(parsed.get("allowed"))
        return QuotaCheck(
            allowed=allowed,
            count=_safe_int(parsed.get("count")),
            plan=coerce_enum(parsed.get("plan"), Plan, Plan.FREE),
            reason=None if allowed else "Monthly limit reached",
        )

    def get_quota_record(self, account_id: str) -> QuotaRecord:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*")
                .eq("user_id", account_id)
                .limit(1)
                .execute()
            )
            row = _first_row(result.data)
            if row is None:
                row = self._create_default_record(account_id)
        except _DB_ERRORS as error:
            logger.error("Network error reading quota: user=%s, error=%s", account_id, error)
            raise QuotaLedgerError("get_quota_record", str(error)) from error

        return QuotaRecord(
            account_id=account_id,
            period_saves_count=max(0, _safe_int(row.get("saves_this_month"))),
            plan=coerce_enum(row.get("plan"), Plan, Plan.FREE),
        )

    def _create_default_record(self, account_id: str) -> dict[str, Any]:
        result = self._client.table(self.TABLE_NAME).insert({"user_id": account_id}).execute()
        row = _first_row(result.data)
        logger.info("Created quota record: user=%s", account_id)
        return row or {"plan": Plan.FREE.value, "saves_this_month": 0}


class SupabaseSavedItemRepository(SavedItemRepository):
    TABLE_NAME = "saved_items"
    COUNT_RPC = "count_saved_items_by_category"

    def __init__(self, client: Client | None = None):
        self._client = client or _create_supabase_client()

    def insert_item(self, record: dict[str, Any]) -> SavedItem:
        data = {"created_at": _now_utc().isoformat(), **record}

        try:
            result = self._client.table(self.TABLE_NAME).insert(data).execute()
        except _DB_ERRORS as error:
            logger.error("Insert failed: storage_path=%s, error=%s", record.get("storage_path"), error)
            raise ItemRepositoryError("insert", str(error)) from error

        row = _first_row(result.data)
        if row is None:
            raise ItemRepositoryError("insert", "no row returned")

        item = _row_to_item(row)
        logger.info("Saved item created: id=%s, user=%s, category=%s", item.id, item.user_id, item.category.value)
        return item

    def update_item(self, account_id: str, item_id: str, patch: dict[str, Any]) -> SavedItem | None:
        data = {**patch, "updated_at": _now_utc().isoformat()}

        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .update(data)
                .eq("id", item_id)
                .eq("user_id", account_id)
                .execute()
            )
        except _DB_ERRORS as error:
            raise ItemRepositoryError("update", str(error)) from error

        row = _first_row(result.data)
        return _row_to_item(row) if row else None

    def delete_item(self, account_id: str, item_id: str) -> bool:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .delete()
                .eq("id", item_id)
                .eq("user_id", account_id)
                .execute()
            )
        except _DB_ERRORS as error:
            raise ItemRepositoryError("delete", str(error)) from error

        return bool(result.data)

    def get_item(self, account_id: str, item_id: str) -> SavedItem | None:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*")
                .eq("id", item_id)
                .eq("user_id", account_id)
                .limit(1)
                .execute()
            )
        except _DB_ERRORS as error:
            raise ItemRepositoryError("get", str(error)) from error

        row = _first_row(result.data)
        return _row_to_item(row) if row else None

    def list_items(
        self,
        account_id: str,
        category: Category | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SavedItem]:
        query = self._client.table(self.TABLE_NAME).select("*").eq("user_id", account_id)

        if category is not None:
            query = query.eq("category", category.value)

        if search:
            query = query.text_search("extracted_text", search)

        try:
            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except _DB_ERRORS as error:
            raise ItemRepositoryError("list", str(error)) from error

        return [_row_to_item(row) for row in (result.data or [])]

    def count_by_category(self, account_id: str) -> dict[str, int]:
        try:
            result = self._client.rpc(self.COUNT_RPC, {"p_user_id": account_id}).execute()
        except _DB_ERRORS as error:
            raise ItemRepositoryError("count_by_category", str(error)) from error

        return {
            str(row["category"]): _safe_int(row.get("count"))
            for row in (result.data or [])
            if row.get("category")
        }
