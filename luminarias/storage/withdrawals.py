import json
import time
from typing import List, Optional

import aiosqlite

_COLS = ("id, user_id, transaction_id, original_amount, processing_fee, final_amount, "
         "withdrawal_type, payment_method, payment_details, notes, status, reviewed_by, "
         "review_notes, refund_transaction_id, created_at, processed_at")


def _row_to_withdrawal(row) -> dict:
    return {
        "id": row[0],
        "user_id": row[1],
        "transaction_id": row[2],
        "original_amount": row[3],
        "processing_fee": row[4],
        "final_amount": row[5],
        "withdrawal_type": row[6],
        "payment_method": row[7],
        "payment_details": json.loads(row[8]) if row[8] else {},
        "notes": row[9],
        "status": row[10],
        "reviewed_by": row[11],
        "review_notes": row[12],
        "refund_transaction_id": row[13],
        "created_at": row[14],
        "processed_at": row[15],
    }


class WithdrawalRepo:
    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self,
        user_id: int,
        original_amount: int,
        processing_fee: int,
        final_amount: int,
        withdrawal_type: str,
        payment_method: str,
        payment_details: Optional[dict] = None,
        notes: Optional[str] = None,
    ) -> int:
        cursor = await self._db.execute(
            "INSERT INTO luminarias_withdrawals (user_id, original_amount, processing_fee, "
            "final_amount, withdrawal_type, payment_method, payment_details, notes, status, "
            "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?)",
            (user_id, original_amount, processing_fee, final_amount, withdrawal_type,
             payment_method, json.dumps(payment_details or {}), notes, time.time()),
        )
        return cursor.lastrowid

    async def set_transaction_id(self, withdrawal_id: int, transaction_id: int):
        await self._db.execute(
            "UPDATE luminarias_withdrawals SET transaction_id = ? WHERE id = ?",
            (transaction_id, withdrawal_id),
        )

    async def resolve(
        self, withdrawal_id: int, status: str, reviewed_by: int,
        review_notes: Optional[str] = None, refund_transaction_id: Optional[int] = None,
    ) -> bool:
        cursor = await self._db.execute(
            "UPDATE luminarias_withdrawals SET status = ?, reviewed_by = ?, review_notes = ?, "
            "refund_transaction_id = ?, processed_at = ? WHERE id = ? AND status = 'pending'",
            (status, reviewed_by, review_notes, refund_transaction_id, time.time(), withdrawal_id),
        )
        return cursor.rowcount == 1

    async def get(self, withdrawal_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} FROM luminarias_withdrawals WHERE id = ?", (withdrawal_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def list_all(
        self, status: Optional[str] = None, user_id: Optional[int] = None,
        limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        query = f"SELECT {_COLS} FROM luminarias_withdrawals WHERE 1 = 1"
        params: tuple = ()
        if status:
            query += " AND status = ?"
            params += (status,)
        if user_id is not None:
            query += " AND user_id = ?"
            params += (user_id,)
        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params += (limit, offset)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_withdrawal(row))
        return results

    async def count_by_status(self, status: str) -> int:
        async with self._db.execute(
            "SELECT COUNT(*) FROM luminarias_withdrawals WHERE status = ?", (status,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
