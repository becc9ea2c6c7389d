import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiosqlite

from luminarias.errors import Indeterminate, StorageFailure

from ._migrate import run_migrations
from .accounts import AccountRepo
from .adjustments import AdjustmentRepo
from .bookings import BookingRepo
from .conversions import ConversionRepo
from .purchases import PurchaseRepo
from .services import ServiceRepo
from .store_items import StoreItemRepo
from .transactions import TransactionRepo
from .users import UserRepo
from .withdrawals import WithdrawalRepo

logger = logging.getLogger("storage")


class StorageManager:
    """Top-level manager: opens the database, runs migrations, exposes repos.

    All writes go through ``transaction()``: one unit of work at a time on
    the shared connection, committed or rolled back as a whole.
    """

    def __init__(self, db_path: str = "luminarias.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None
        self.accounts: Optional[AccountRepo] = None
        self.transactions: Optional[TransactionRepo] = None
        self.adjustments: Optional[AdjustmentRepo] = None
        self.users: Optional[UserRepo] = None
        self.services: Optional[ServiceRepo] = None
        self.bookings: Optional[BookingRepo] = None
        self.conversions: Optional[ConversionRepo] = None
        self.withdrawals: Optional[WithdrawalRepo] = None
        self.store_items: Optional[StoreItemRepo] = None
        self.purchases: Optional[PurchaseRepo] = None

    async def initialize(self):
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")
        await self._db.execute("PRAGMA busy_timeout=5000")
        await run_migrations(self._db, logger)

        self.accounts = AccountRepo(self._db)
        self.transactions = TransactionRepo(self._db)
        self.adjustments = AdjustmentRepo(self._db)
        self.users = UserRepo(self._db)
        self.services = ServiceRepo(self._db)
        self.bookings = BookingRepo(self._db)
        self.conversions = ConversionRepo(self._db)
        self.withdrawals = WithdrawalRepo(self._db)
        self.store_items = StoreItemRepo(self._db)
        self.purchases = PurchaseRepo(self._db)

        logger.info("Storage initialized: %s", self.db_path)

    async def close(self):
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Storage closed")

    def _owns_transaction(self) -> bool:
        return self._owner is not None and self._owner is asyncio.current_task()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run one unit of work inside ``BEGIN IMMEDIATE`` ... ``COMMIT``.

        Any exception rolls everything back. Database errors raised while
        statements run become ``StorageFailure``; a failed commit or rollback
        becomes ``Indeterminate``.
        """
        if self._owns_transaction():
            raise RuntimeError("Nested unit of work on the same task")
        async with self._write_lock:
            self._owner = asyncio.current_task()
            try:
                try:
                    await self._db.execute("BEGIN IMMEDIATE")
                except aiosqlite.Error as exc:
                    logger.exception("Could not open write transaction")
                    raise StorageFailure(f"Could not open transaction: {exc}") from exc

                try:
                    yield self._db
                except aiosqlite.Error as exc:
                    logger.exception("Unit of work failed, rolling back")
                    await self._rollback()
                    raise StorageFailure(f"Operation rolled back: {exc}") from exc
                except BaseException:
                    await self._rollback()
                    raise

                try:
                    await self._db.commit()
                except aiosqlite.Error as exc:
                    logger.exception("Commit failed, outcome unknown")
                    try:
                        await self._db.rollback()
                    except aiosqlite.Error:
                        logger.exception("Rollback after failed commit also failed")
                    raise Indeterminate(
                        "Commit did not confirm; check balance/history before retrying"
                    ) from exc
            finally:
                self._owner = None

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[aiosqlite.Connection]:
        """Read committed state: waits for any in-flight unit of work."""
        if self._owns_transaction():
            yield self._db
            return
        async with self._write_lock:
            yield self._db

    async def _rollback(self):
        try:
            await self._db.rollback()
        except aiosqlite.Error as exc:
            logger.exception("Rollback failed")
            raise Indeterminate(
                "Rollback failed; check balance/history before retrying"
            ) from exc
