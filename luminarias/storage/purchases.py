import time
from typing import List, Optional

import aiosqlite

_COLS = ("p.id, p.user_id, p.store_item_id, p.transaction_id, p.quantity, p.unit_price, "
         "p.total_price, p.expires_at, p.uses_remaining, p.created_at, i.name")


def _row_to_purchase(row) -> dict:
    return {
        "id": row[0],
        "user_id": row[1],
        "store_item_id": row[2],
        "transaction_id": row[3],
        "quantity": row[4],
        "unit_price": row[5],
        "total_price": row[6],
        "expires_at": row[7],
        "uses_remaining": row[8],
        "created_at": row[9],
        "item_name": row[10],
    }


class PurchaseRepo:
    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self,
        user_id: int,
        store_item_id: int,
        transaction_id: int,
        quantity: int,
        unit_price: int,
        expires_at: Optional[float] = None,
        uses_remaining: Optional[int] = None,
    ) -> int:
        cursor = await self._db.execute(
            "INSERT INTO luminarias_purchases (user_id, store_item_id, transaction_id, quantity, "
            "unit_price, total_price, expires_at, uses_remaining, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (user_id, store_item_id, transaction_id, quantity, unit_price,
             unit_price * quantity, expires_at, uses_remaining, time.time()),
        )
        return cursor.lastrowid

    async def get(self, purchase_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} FROM luminarias_purchases p "
            "LEFT JOIN luminarias_store_items i ON i.id = p.store_item_id WHERE p.id = ?",
            (purchase_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_purchase(row) if row else None

    async def list_for_user(self, user_id: int, limit: int = 50, offset: int = 0) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLS} FROM luminarias_purchases p "
            "LEFT JOIN luminarias_store_items i ON i.id = p.store_item_id "
            "WHERE p.user_id = ? ORDER BY p.created_at DESC, p.id DESC LIMIT ? OFFSET ?",
            (user_id, limit, offset),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_purchase(row))
        return results

    async def count_since(self, since: float) -> int:
        async with self._db.execute(
            "SELECT COUNT(*) FROM luminarias_purchases WHERE created_at >= ?", (since,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
