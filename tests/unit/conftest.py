"""Shared fixtures for the Luminarias unit tests."""

import pytest
import pytest_asyncio

from luminarias.config import LedgerConfig
from luminarias.ledger import Classification, Ledger
from luminarias.storage import StorageManager


# ── Classifications ─────────────────────────────────────────────────────────

EARN = Classification("challenges", "daily", "challenge_completed", "Daily challenge")
SPEND = Classification("store_purchase", "cosmetics", "buy_item", "Profile frame")


class StaticLevels:
    """LevelProvider backed by a plain dict."""

    def __init__(self, levels: dict):
        self.levels = levels

    async def creator_level(self, user_id: int):
        return self.levels.get(user_id)


# ── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def config():
    return LedgerConfig()


@pytest_asyncio.fixture
async def storage():
    sm = StorageManager(":memory:")
    await sm.initialize()
    yield sm
    await sm.close()


@pytest_asyncio.fixture
async def ledger(storage, config):
    return Ledger(storage, config)


@pytest.fixture
def fund(ledger):
    """Open an account for ``user_id`` holding exactly ``balance``."""

    async def _fund(user_id: int, balance: int = 0):
        await ledger.open_account(user_id, starting_grant=balance)
        return user_id

    return _fund
