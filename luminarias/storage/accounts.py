import logging
import time
from typing import List, Optional

import aiosqlite

logger = logging.getLogger("storage")

_COLS = ("user_id, current_balance, total_earned, total_spent, lifetime_earnings, "
         "last_activity, created_at, updated_at")


def _row_to_account(row) -> dict:
    return {
        "user_id": row[0],
        "current_balance": row[1],
        "total_earned": row[2],
        "total_spent": row[3],
        "lifetime_earnings": row[4],
        "last_activity": row[5],
        "created_at": row[6],
        "updated_at": row[7],
    }


class AccountRepo:
    """Balance rows. Mutations are only issued by the ledger, inside a unit of work."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get(self, user_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} FROM user_luminarias WHERE user_id = ?",
            (user_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_account(row)

    async def exists(self, user_id: int) -> bool:
        async with self._db.execute(
            "SELECT 1 FROM user_luminarias WHERE user_id = ?", (user_id,)
        ) as cursor:
            return await cursor.fetchone() is not None

    async def insert(self, user_id: int) -> bool:
        """Create a zero-balance account. Returns False if it already existed."""
        now = time.time()
        cursor = await self._db.execute(
            "INSERT OR IGNORE INTO user_luminarias (user_id, current_balance, created_at, updated_at) "
            "VALUES (?, 0, ?, ?)",
            (user_id, now, now),
        )
        return cursor.rowcount == 1

    async def apply_delta(
        self,
        user_id: int,
        delta: int,
        earned: int = 0,
        spent: int = 0,
        allow_negative: bool = False,
    ) -> bool:
        """Add ``delta`` to the balance in one conditional UPDATE.

        Returns False when the row is missing or, unless ``allow_negative``,
        when the result would drop below zero. Nothing is written in that case.
        """
        now = time.time()
        query = (
            "UPDATE user_luminarias SET "
            "current_balance = current_balance + ?, "
            "total_earned = total_earned + ?, "
            "total_spent = total_spent + ?, "
            "lifetime_earnings = lifetime_earnings + ?, "
            "last_activity = ?, updated_at = ? "
            "WHERE user_id = ?"
        )
        params: tuple = (delta, earned, spent, earned, now, now, user_id)
        if not allow_negative:
            query += " AND current_balance + ? >= 0"
            params += (delta,)
        cursor = await self._db.execute(query, params)
        return cursor.rowcount == 1

    async def balance(self, user_id: int) -> Optional[int]:
        async with self._db.execute(
            "SELECT current_balance FROM user_luminarias WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def list_all(self, limit: int = 100, offset: int = 0) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLS} FROM user_luminarias ORDER BY user_id LIMIT ? OFFSET ?",
            (limit, offset),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_account(row))
        return results

    async def count(self) -> int:
        async with self._db.execute("SELECT COUNT(*) FROM user_luminarias") as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def total_balance(self) -> int:
        async with self._db.execute(
            "SELECT COALESCE(SUM(current_balance), 0) FROM user_luminarias"
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
