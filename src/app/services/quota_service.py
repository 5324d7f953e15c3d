# src/app/services/quota_service.py
"""
Quota management service.
Handles the monthly save limit per account.
"""
from __future__ import annotations

import logging
import os

from src.app.domain.errors import QuotaLedgerError
from src.app.domain.models import FREE_TIER_LIMIT, Plan, QuotaCheck, QuotaSnapshot
from src.app.infra.db.base import QuotaRepository

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_LIMIT = int(os.getenv("FREE_TIER_LIMIT", str(FREE_TIER_LIMIT)))


class QuotaService:
    """
    Service for managing the save quota.

    Responsibilities:
    - Gate each save with the atomic check-and-increment (fail closed)
    - Record successful saves
    - Provide a display-only usage snapshot
    """

    def __init__(
        self,
        repository: QuotaRepository,
        monthly_limit: int = DEFAULT_MONTHLY_LIMIT,
    ):
        self._repo = repository
        self.monthly_limit = monthly_limit

    def check_and_increment(self, account_id: str) -> QuotaCheck:
        """
        Charge one save against the account.

        Any ledger failure is reported as not allowed; the caller never
        proceeds on an unknown answer.

        Args:
            account_id: The account to charge

        Returns:
            QuotaCheck with result
        """
        try:
            result = self._repo.check_and_increment(account_id, self.monthly_limit)
        except QuotaLedgerError as e:
            logger.error("Quota check failed, denying save: user=%s, error=%s", account_id, e)
            return QuotaCheck(
                allowed=False,
                count=0,
                plan=Plan.FREE,
                reason=f"Quota check failed: {e.reason}",
            )

        if not result.allowed:
            logger.info("Save blocked by quota: user=%s, count=%d", account_id, result.count)
        return result

    def confirm_save(self, account_id: str, item_id: str) -> None:
        """
        Bookkeeping after a save was persisted.

        The counter was already charged by check_and_increment, so nothing
        is written here.
        """
        logger.info("Save recorded: user=%s, item=%s", account_id, item_id)

    def snapshot(self, account_id: str) -> QuotaSnapshot:
        """
        Get the current usage for display.

        Not atomic with respect to concurrent imports; never use it to
        decide whether a save may proceed.

        Raises:
            QuotaLedgerError: If the ledger cannot be read
        """
        record = self._repo.get_quota_record(account_id)

        if record.plan == Plan.PRO:
            return QuotaSnapshot(count=record.period_saves_count, plan=record.plan, limit=None, remaining=None)

        return QuotaSnapshot(
            count=record.period_saves_count,
            plan=record.plan,
            limit=self.monthly_limit,
            remaining=max(0, self.monthly_limit - record.period_saves_count),
        )
