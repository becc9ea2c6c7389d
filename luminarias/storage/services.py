import time
from typing import List, Optional

import aiosqlite

_COLS = ("id, provider_id, service_name, service_description, category, price_luminarias, "
         "service_type, duration_minutes, max_clients, current_clients, delivery_method, "
         "is_active, created_at")


def _row_to_service(row) -> dict:
    return {
        "id": row[0],
        "provider_id": row[1],
        "service_name": row[2],
        "service_description": row[3],
        "category": row[4],
        "price_luminarias": row[5],
        "service_type": row[6],
        "duration_minutes": row[7],
        "max_clients": row[8],
        "current_clients": row[9],
        "delivery_method": row[10],
        "is_active": bool(row[11]),
        "created_at": row[12],
    }


class ServiceRepo:
    """Marketplace listings and their active-client counters."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self,
        provider_id: int,
        service_name: str,
        service_description: str,
        category: str,
        price_luminarias: int,
        service_type: str = "one_time",
        duration_minutes: Optional[int] = None,
        max_clients: Optional[int] = None,
        delivery_method: str = "",
    ) -> int:
        cursor = await self._db.execute(
            "INSERT INTO luminarias_marketplace (provider_id, service_name, service_description, "
            "category, price_luminarias, service_type, duration_minutes, max_clients, "
            "delivery_method, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (provider_id, service_name, service_description, category, price_luminarias,
             service_type, duration_minutes, max_clients, delivery_method, time.time()),
        )
        return cursor.lastrowid

    async def get(self, service_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} FROM luminarias_marketplace WHERE id = ?", (service_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_service(row) if row else None

    async def list_active(
        self, category: Optional[str] = None, provider_id: Optional[int] = None,
        limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        query = f"SELECT {_COLS} FROM luminarias_marketplace WHERE is_active = 1"
        params: tuple = ()
        if category:
            query += " AND category = ?"
            params += (category,)
        if provider_id is not None:
            query += " AND provider_id = ?"
            params += (provider_id,)
        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params += (limit, offset)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_service(row))
        return results

    async def set_active(self, service_id: int, active: bool) -> bool:
        cursor = await self._db.execute(
            "UPDATE luminarias_marketplace SET is_active = ? WHERE id = ?",
            (int(active), service_id),
        )
        return cursor.rowcount == 1

    async def claim_slot(self, service_id: int) -> bool:
        """Increment current_clients unless the listing is full."""
        cursor = await self._db.execute(
            "UPDATE luminarias_marketplace SET current_clients = current_clients + 1 "
            "WHERE id = ? AND (max_clients IS NULL OR current_clients < max_clients)",
            (service_id,),
        )
        return cursor.rowcount == 1

    async def release_slot(self, service_id: int):
        await self._db.execute(
            "UPDATE luminarias_marketplace SET current_clients = MAX(current_clients - 1, 0) "
            "WHERE id = ?",
            (service_id,),
        )
