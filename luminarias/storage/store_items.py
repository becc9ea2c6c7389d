import time
from typing import List, Optional

import aiosqlite

_COLS = ("id, name, description, category, subcategory, item_type, target_role, "
         "price_luminarias, limited_quantity, stock_remaining, duration_days, max_uses, "
         "is_active, created_at")


def _row_to_item(row) -> dict:
    return {
        "id": row[0],
        "name": row[1],
        "description": row[2],
        "category": row[3],
        "subcategory": row[4],
        "item_type": row[5],
        "target_role": row[6],
        "price_luminarias": row[7],
        "limited_quantity": bool(row[8]),
        "stock_remaining": row[9],
        "duration_days": row[10],
        "max_uses": row[11],
        "is_active": bool(row[12]),
        "created_at": row[13],
    }


class StoreItemRepo:
    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self,
        name: str,
        description: str,
        category: str,
        price_luminarias: int,
        subcategory: str = "",
        item_type: str = "consumable",
        target_role: str = "both",
        stock: Optional[int] = None,
        duration_days: Optional[int] = None,
        max_uses: Optional[int] = None,
    ) -> int:
        cursor = await self._db.execute(
            "INSERT INTO luminarias_store_items (name, description, category, subcategory, "
            "item_type, target_role, price_luminarias, limited_quantity, stock_remaining, "
            "duration_days, max_uses, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (name, description, category, subcategory, item_type, target_role,
             price_luminarias, int(stock is not None), stock, duration_days, max_uses,
             time.time()),
        )
        return cursor.lastrowid

    async def get(self, item_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} FROM luminarias_store_items WHERE id = ?", (item_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_item(row) if row else None

    async def list_active(
        self, category: Optional[str] = None, target_role: Optional[str] = None,
    ) -> List[dict]:
        query = f"SELECT {_COLS} FROM luminarias_store_items WHERE is_active = 1"
        params: tuple = ()
        if category:
            query += " AND category = ?"
            params += (category,)
        if target_role:
            query += " AND target_role IN (?, 'both')"
            params += (target_role,)
        query += " ORDER BY category, price_luminarias, id"
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_item(row))
        return results

    async def take_stock(self, item_id: int, quantity: int) -> bool:
        """Decrement limited stock. Unlimited items always succeed."""
        cursor = await self._db.execute(
            "UPDATE luminarias_store_items SET stock_remaining = stock_remaining - ? "
            "WHERE id = ? AND (limited_quantity = 0 OR stock_remaining >= ?)",
            (quantity, item_id, quantity),
        )
        return cursor.rowcount == 1
