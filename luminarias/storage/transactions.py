import json
import time
from typing import List, Optional, Sequence, Tuple

import aiosqlite

_COLS = ("id, user_id, transaction_type, amount, balance_after, user_role, category, "
         "subcategory, action_type, description, reference_id, reference_type, "
         "from_user_id, to_user_id, metadata, created_at")


def _row_to_tx(row) -> dict:
    return {
        "id": row[0],
        "user_id": row[1],
        "transaction_type": row[2],
        "amount": row[3],
        "balance_after": row[4],
        "user_role": row[5],
        "category": row[6],
        "subcategory": row[7],
        "action_type": row[8],
        "description": row[9],
        "reference_id": row[10],
        "reference_type": row[11],
        "from_user_id": row[12],
        "to_user_id": row[13],
        "metadata": json.loads(row[14]) if row[14] else {},
        "created_at": row[15],
    }


def _filter_clause(
    user_id: int,
    category: Optional[str] = None,
    transaction_type: Optional[str] = None,
    user_role: Optional[str] = None,
    date_from: Optional[float] = None,
    date_to: Optional[float] = None,
) -> Tuple[str, tuple]:
    where = "WHERE user_id = ?"
    params: tuple = (user_id,)
    if category:
        where += " AND category = ?"
        params += (category,)
    if transaction_type:
        where += " AND transaction_type = ?"
        params += (transaction_type,)
    if user_role:
        where += " AND user_role = ?"
        params += (user_role,)
    if date_from is not None:
        where += " AND created_at >= ?"
        params += (date_from,)
    if date_to is not None:
        where += " AND created_at <= ?"
        params += (date_to,)
    return where, params


class TransactionRepo:
    """Append-only journal. Inserts happen inside the ledger's unit of work."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self,
        user_id: int,
        transaction_type: str,
        amount: int,
        balance_after: int,
        user_role: str,
        category: str,
        subcategory: Optional[str],
        action_type: str,
        description: str,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        from_user_id: Optional[int] = None,
        to_user_id: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> int:
        now = time.time()
        cursor = await self._db.execute(
            "INSERT INTO luminarias_transactions (user_id, transaction_type, amount, balance_after, "
            "user_role, category, subcategory, action_type, description, reference_id, "
            "reference_type, from_user_id, to_user_id, metadata, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (user_id, transaction_type, amount, balance_after, user_role, category, subcategory,
             action_type, description, reference_id, reference_type, from_user_id, to_user_id,
             json.dumps(metadata or {}, default=str), now),
        )
        return cursor.lastrowid

    async def get(self, tx_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} FROM luminarias_transactions WHERE id = ?", (tx_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_tx(row) if row else None

    async def list_for_user(
        self, user_id: int, limit: int = 50, offset: int = 0, **filters,
    ) -> List[dict]:
        where, params = _filter_clause(user_id, **filters)
        results = []
        async with self._db.execute(
            f"SELECT {_COLS} FROM luminarias_transactions {where} "
            "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            params + (limit, offset),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_tx(row))
        return results

    async def count_for_user(self, user_id: int, **filters) -> int:
        where, params = _filter_clause(user_id, **filters)
        async with self._db.execute(
            f"SELECT COUNT(*) FROM luminarias_transactions {where}", params
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def sum_for_user(self, user_id: int) -> int:
        async with self._db.execute(
            "SELECT COALESCE(SUM(amount), 0) FROM luminarias_transactions WHERE user_id = ?",
            (user_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def list_by_reference(self, reference_type: str, reference_id: str) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLS} FROM luminarias_transactions "
            "WHERE reference_type = ? AND reference_id = ? ORDER BY id",
            (reference_type, reference_id),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_tx(row))
        return results

    async def count(self) -> int:
        async with self._db.execute("SELECT COUNT(*) FROM luminarias_transactions") as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def summary_by_category(
        self, user_id: int, types: Sequence[str], since: float,
    ) -> List[dict]:
        placeholders = ", ".join("?" for _ in types)
        results = []
        async with self._db.execute(
            "SELECT user_role, category, subcategory, COUNT(*), SUM(ABS(amount)), "
            "AVG(ABS(amount)), MIN(ABS(amount)), MAX(ABS(amount)) "
            "FROM luminarias_transactions "
            f"WHERE user_id = ? AND transaction_type IN ({placeholders}) AND created_at >= ? "
            "GROUP BY user_role, category, subcategory ORDER BY SUM(ABS(amount)) DESC",
            (user_id, *types, since),
        ) as cursor:
            async for row in cursor:
                results.append({
                    "user_role": row[0],
                    "category": row[1],
                    "subcategory": row[2],
                    "transaction_count": row[3],
                    "total": row[4],
                    "avg_amount": round(row[5], 2),
                    "min_amount": row[6],
                    "max_amount": row[7],
                })
        return results
