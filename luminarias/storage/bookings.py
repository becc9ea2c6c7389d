import time
from typing import List, Optional

import aiosqlite

_COLS = ("b.id, b.service_id, b.client_id, b.provider_id, b.transaction_id, b.total_price, "
         "b.status, b.commission_amount, b.provider_amount, b.payout_transaction_id, "
         "b.refund_transaction_id, b.scheduled_at, b.delivery_notes, b.completion_notes, "
         "b.created_at, b.completed_at, b.cancelled_at, s.service_name")

_FROM = ("FROM luminarias_marketplace_bookings b "
         "LEFT JOIN luminarias_marketplace s ON s.id = b.service_id")


def _row_to_booking(row) -> dict:
    return {
        "id": row[0],
        "service_id": row[1],
        "client_id": row[2],
        "provider_id": row[3],
        "transaction_id": row[4],
        "total_price": row[5],
        "status": row[6],
        "commission_amount": row[7],
        "provider_amount": row[8],
        "payout_transaction_id": row[9],
        "refund_transaction_id": row[10],
        "scheduled_at": row[11],
        "delivery_notes": row[12],
        "completion_notes": row[13],
        "created_at": row[14],
        "completed_at": row[15],
        "cancelled_at": row[16],
        "service_name": row[17],
    }


class BookingRepo:
    """Escrowed bookings. Status moves only out of 'confirmed'."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self,
        service_id: int,
        client_id: int,
        provider_id: int,
        transaction_id: int,
        total_price: int,
        scheduled_at: Optional[float] = None,
        delivery_notes: Optional[str] = None,
    ) -> int:
        cursor = await self._db.execute(
            "INSERT INTO luminarias_marketplace_bookings (service_id, client_id, provider_id, "
            "transaction_id, total_price, status, scheduled_at, delivery_notes, created_at) "
            "VALUES (?, ?, ?, ?, ?, 'confirmed', ?, ?, ?)",
            (service_id, client_id, provider_id, transaction_id, total_price,
             scheduled_at, delivery_notes, time.time()),
        )
        return cursor.lastrowid

    async def get(self, booking_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} {_FROM} WHERE b.id = ?", (booking_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_booking(row) if row else None

    async def mark_completed(
        self, booking_id: int, commission_amount: int, provider_amount: int,
        payout_transaction_id: int, completion_notes: Optional[str] = None,
    ) -> bool:
        cursor = await self._db.execute(
            "UPDATE luminarias_marketplace_bookings SET status = 'completed', "
            "commission_amount = ?, provider_amount = ?, payout_transaction_id = ?, "
            "completion_notes = ?, completed_at = ? WHERE id = ? AND status = 'confirmed'",
            (commission_amount, provider_amount, payout_transaction_id, completion_notes,
             time.time(), booking_id),
        )
        return cursor.rowcount == 1

    async def mark_cancelled(
        self, booking_id: int, refund_transaction_id: int, reason: Optional[str] = None,
    ) -> bool:
        cursor = await self._db.execute(
            "UPDATE luminarias_marketplace_bookings SET status = 'cancelled', "
            "refund_transaction_id = ?, completion_notes = ?, cancelled_at = ? "
            "WHERE id = ? AND status = 'confirmed'",
            (refund_transaction_id, reason, time.time(), booking_id),
        )
        return cursor.rowcount == 1

    async def _list(self, where: str, params: tuple, limit: int, offset: int) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLS} {_FROM} WHERE {where} "
            "ORDER BY b.created_at DESC, b.id DESC LIMIT ? OFFSET ?",
            params + (limit, offset),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_booking(row))
        return results

    async def list_for_client(
        self, client_id: int, status: Optional[str] = None, limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        where, params = "b.client_id = ?", (client_id,)
        if status:
            where += " AND b.status = ?"
            params += (status,)
        return await self._list(where, params, limit, offset)

    async def list_for_provider(
        self, provider_id: int, status: Optional[str] = None, limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        where, params = "b.provider_id = ?", (provider_id,)
        if status:
            where += " AND b.status = ?"
            params += (status,)
        return await self._list(where, params, limit, offset)

    async def count_since(self, since: float) -> int:
        async with self._db.execute(
            "SELECT COUNT(*) FROM luminarias_marketplace_bookings WHERE created_at >= ?",
            (since,),
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
