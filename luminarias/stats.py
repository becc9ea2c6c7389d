"""
stats.py - Read-only aggregates over the journal and the workflow tables.
"""

import time
from typing import TYPE_CHECKING, List

from luminarias.errors import InvalidRequest
from luminarias.ledger import CREDIT_TYPES, DEBIT_TYPES

if TYPE_CHECKING:
    from luminarias.storage import StorageManager

DAY = 86400


class StatsService:
    def __init__(self, storage: "StorageManager"):
        self._storage = storage

    async def _by_category(self, user_id: int, types, period_days: int) -> List[dict]:
        if period_days < 1:
            raise InvalidRequest("period_days must be >= 1")
        since = time.time() - period_days * DAY
        async with self._storage.snapshot():
            return await self._storage.transactions.summary_by_category(user_id, types, since)

    async def earnings_by_category(self, user_id: int, period_days: int = 30) -> List[dict]:
        return await self._by_category(user_id, CREDIT_TYPES, period_days)

    async def spending_by_category(self, user_id: int, period_days: int = 30) -> List[dict]:
        return await self._by_category(user_id, DEBIT_TYPES, period_days)

    async def system_stats(self) -> dict:
        now = time.time()
        s = self._storage
        async with s.snapshot():
            return {
                "accounts": await s.accounts.count(),
                "luminarias_in_circulation": await s.accounts.total_balance(),
                "transactions": await s.transactions.count(),
                "pending_conversions": await s.conversions.count_by_status("pending"),
                "pending_withdrawals": await s.withdrawals.count_by_status("pending"),
                "purchases_24h": await s.purchases.count_since(now - DAY),
                "bookings_7d": await s.bookings.count_since(now - 7 * DAY),
            }
