"""
test_store.py - Unit tests for StoreService and StatsService.
"""

import pytest
import pytest_asyncio

from luminarias.errors import InsufficientBalance, InvalidAmount, InvalidRequest, NotFound, OutOfStock
from luminarias.stats import StatsService
from luminarias.store import StoreService
from luminarias.transfer import TransferService

from .conftest import EARN

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def store(ledger):
    return StoreService(ledger)


@pytest_asyncio.fixture
async def stats(storage):
    return StatsService(storage)


class TestStore:

    async def test_purchase_debits_and_records(self, store, ledger, fund):
        await fund(1, 500)
        item = await store.create_item("Boost x2", "boosts", 150, duration_days=7, max_uses=3)
        purchase = await store.purchase(1, item["id"], quantity=2)
        assert purchase["total_price"] == 300
        assert purchase["item_name"] == "Boost x2"
        assert purchase["expires_at"] is not None
        assert purchase["uses_remaining"] == 6
        assert (await ledger.get_balance(1))["current"] == 200
        tx = await ledger.get_transaction(purchase["transaction_id"])
        assert tx["category"] == "store_purchase"
        assert tx["amount"] == -300

    async def test_limited_stock(self, store, fund):
        await fund(1, 1000)
        item = await store.create_item("Golden frame", "cosmetics", 100, stock=1)
        await store.purchase(1, item["id"])
        with pytest.raises(OutOfStock):
            await store.purchase(1, item["id"])

    async def test_insufficient_balance_keeps_stock(self, store, storage, fund):
        await fund(1, 50)
        item = await store.create_item("Golden frame", "cosmetics", 100, stock=3)
        with pytest.raises(InsufficientBalance):
            await store.purchase(1, item["id"])
        assert (await storage.store_items.get(item["id"]))["stock_remaining"] == 3
        assert await store.list_purchases(1) == []

    async def test_bad_inputs(self, store, fund):
        await fund(1, 500)
        item = await store.create_item("Frame", "cosmetics", 100)
        with pytest.raises(InvalidAmount):
            await store.purchase(1, item["id"], quantity=0)
        with pytest.raises(NotFound):
            await store.purchase(1, 999)
        with pytest.raises(InvalidRequest):
            await store.create_item("Frame", "cosmetics", 100, target_role="robots")

    async def test_list_items_by_role(self, store):
        await store.create_item("Creator kit", "tools", 100, target_role="creator")
        await store.create_item("Frame", "cosmetics", 100)
        names = [i["name"] for i in await store.list_items(target_role="user")]
        assert names == ["Frame"]
        assert len(await store.list_items(target_role="creator")) == 2


class TestStats:

    async def test_earnings_and_spending_grouped(self, ledger, store, stats, fund):
        await fund(1, 200)
        await fund(2, 0)
        await ledger.apply_transaction(1, "earn", 30, EARN)
        await ledger.apply_transaction(1, "earn", 70, EARN)
        await TransferService(ledger).transfer(1, 2, 40)

        earnings = {e["category"]: e for e in await stats.earnings_by_category(1)}
        assert earnings["challenges"]["total"] == 100
        assert earnings["challenges"]["transaction_count"] == 2
        assert earnings["challenges"]["min_amount"] == 30
        assert earnings["challenges"]["max_amount"] == 70
        assert earnings["welcome_bonus"]["total"] == 200

        spending = await stats.spending_by_category(1)
        assert spending[0]["category"] == "transfers"
        assert spending[0]["total"] == 40

    async def test_system_stats(self, ledger, store, stats, fund):
        await fund(1, 500)
        await fund(2, 300)
        item = await store.create_item("Frame", "cosmetics", 100)
        await store.purchase(1, item["id"])
        snapshot = await stats.system_stats()
        assert snapshot["accounts"] == 2
        assert snapshot["luminarias_in_circulation"] == 700
        assert snapshot["transactions"] == 3
        assert snapshot["purchases_24h"] == 1
        assert snapshot["pending_conversions"] == 0

    async def test_period_must_be_positive(self, stats):
        with pytest.raises(InvalidRequest):
            await stats.earnings_by_category(1, period_days=0)
