import time
from typing import Optional

import aiosqlite

_COLS = "user_id, nickname, role, creator_level, api_key, created_at"


def _row_to_user(row) -> dict:
    return {
        "user_id": row[0],
        "nickname": row[1],
        "role": row[2],
        "creator_level": row[3],
        "api_key": row[4],
        "created_at": row[5],
    }


class UserRepo:
    """Minimal user directory backing auth and creator-level lookups."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def insert(
        self, nickname: str, role: str = "user", creator_level: str = "",
        api_key: str = "", user_id: Optional[int] = None,
    ) -> int:
        cursor = await self._db.execute(
            "INSERT INTO users (user_id, nickname, role, creator_level, api_key, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, nickname, role, creator_level, api_key, time.time()),
        )
        return cursor.lastrowid

    async def get(self, user_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} FROM users WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    async def get_by_nickname(self, nickname: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLS} FROM users WHERE nickname = ?", (nickname,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    async def get_by_api_key(self, api_key: str) -> Optional[dict]:
        if not api_key:
            return None
        async with self._db.execute(
            f"SELECT {_COLS} FROM users WHERE api_key = ? AND api_key != ''", (api_key,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    async def set_creator_level(self, user_id: int, creator_level: str) -> bool:
        cursor = await self._db.execute(
            "UPDATE users SET creator_level = ? WHERE user_id = ?", (creator_level, user_id)
        )
        return cursor.rowcount == 1

    async def creator_level(self, user_id: int) -> Optional[str]:
        async with self._db.execute(
            "SELECT creator_level FROM users WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def set_role(self, user_id: int, role: str) -> bool:
        cursor = await self._db.execute(
            "UPDATE users SET role = ? WHERE user_id = ?", (role, user_id)
        )
        return cursor.rowcount == 1
