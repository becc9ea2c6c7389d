import time
from typing import List

import aiosqlite


class AdjustmentRepo:
    """Audit trail for administrator balance adjustments."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self,
        transaction_id: int,
        user_id: int,
        admin_id: int,
        amount: int,
        reason: str,
        allow_negative: bool,
    ) -> int:
        cursor = await self._db.execute(
            "INSERT INTO admin_adjustments (transaction_id, user_id, admin_id, amount, reason, "
            "allow_negative, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (transaction_id, user_id, admin_id, amount, reason, int(allow_negative), time.time()),
        )
        return cursor.lastrowid

    async def list_for_user(self, user_id: int) -> List[dict]:
        results = []
        async with self._db.execute(
            "SELECT id, transaction_id, user_id, admin_id, amount, reason, allow_negative, created_at "
            "FROM admin_adjustments WHERE user_id = ? ORDER BY id DESC",
            (user_id,),
        ) as cursor:
            async for row in cursor:
                results.append({
                    "id": row[0],
                    "transaction_id": row[1],
                    "user_id": row[2],
                    "admin_id": row[3],
                    "amount": row[4],
                    "reason": row[5],
                    "allow_negative": bool(row[6]),
                    "created_at": row[7],
                })
        return results
