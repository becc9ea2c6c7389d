"""
test_ledger.py - Unit tests for the ledger core.

Covers entry posting, the non-negative balance check, counters, account
opening, admin adjustments, history queries and the Σ(amount) invariant.
"""

import asyncio

import pytest

from luminarias.errors import (
    AccountNotFound,
    InsufficientBalance,
    InvalidAmount,
    InvalidClassification,
    InvalidRequest,
    StorageFailure,
)
from luminarias.ledger import Classification

from .conftest import EARN, SPEND

pytestmark = pytest.mark.asyncio


# ── Account opening ──

class TestOpenAccount:

    async def test_grant_is_journaled(self, ledger, storage):
        tx_id = await ledger.open_account(1)
        assert tx_id is not None
        balance = await ledger.get_balance(1)
        assert balance["current"] == 200
        assert balance["total_earned"] == 200
        assert balance["lifetime_earnings"] == 200
        assert balance["total_spent"] == 0
        assert balance["transactions_count"] == 1
        tx = await ledger.get_transaction(tx_id)
        assert tx["category"] == "welcome_bonus"
        assert tx["transaction_type"] == "earn"
        assert tx["balance_after"] == 200

    async def test_reopen_is_noop(self, ledger):
        await ledger.open_account(1)
        assert await ledger.open_account(1) is None
        assert (await ledger.get_balance(1))["current"] == 200

    async def test_zero_grant_writes_no_row(self, ledger):
        assert await ledger.open_account(1, starting_grant=0) is None
        balance = await ledger.get_balance(1)
        assert balance["current"] == 0
        assert balance["transactions_count"] == 0

    async def test_negative_grant_rejected(self, ledger):
        with pytest.raises(InvalidAmount):
            await ledger.open_account(1, starting_grant=-5)


# ── apply_transaction ──

class TestApplyTransaction:

    async def test_earn_and_spend(self, ledger, fund):
        await fund(1, 100)
        await ledger.apply_transaction(1, "earn", 25, EARN)
        tx_id = await ledger.apply_transaction(1, "spend", 40, SPEND)
        tx = await ledger.get_transaction(tx_id)
        assert tx["amount"] == -40
        assert tx["balance_after"] == 85
        balance = await ledger.get_balance(1)
        assert balance["current"] == 85
        assert balance["total_earned"] == 125
        assert balance["total_spent"] == 40
        assert balance["last_activity"] is not None

    async def test_insufficient_balance_writes_nothing(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(InsufficientBalance) as exc:
            await ledger.apply_transaction(1, "spend", 150, SPEND)
        assert exc.value.balance == 100
        assert exc.value.required == 150
        balance = await ledger.get_balance(1)
        assert balance["current"] == 100
        assert balance["total_spent"] == 0
        assert balance["transactions_count"] == 1

    async def test_spend_to_exactly_zero(self, ledger, fund):
        await fund(1, 100)
        await ledger.apply_transaction(1, "spend", 100, SPEND)
        assert (await ledger.get_balance(1))["current"] == 0

    @pytest.mark.parametrize("amount", [0, -10, 1.5, True, "10"])
    async def test_invalid_amounts(self, ledger, fund, amount):
        await fund(1, 100)
        with pytest.raises(InvalidAmount):
            await ledger.apply_transaction(1, "earn", amount, EARN)

    async def test_unknown_type(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(InvalidRequest):
            await ledger.apply_transaction(1, "gift", 10, EARN)

    async def test_missing_account(self, ledger):
        with pytest.raises(AccountNotFound):
            await ledger.apply_transaction(99, "earn", 10, EARN)

    async def test_create_missing(self, ledger):
        await ledger.apply_transaction(99, "earn", 10, EARN, create_missing=True)
        assert (await ledger.get_balance(99))["current"] == 10

    async def test_unknown_classification(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(InvalidClassification):
            await ledger.apply_transaction(
                1, "earn", 10, Classification("lottery", "weekly", "jackpot"),
            )

    async def test_unknown_role(self, ledger, fund):
        await fund(1, 100)
        bad = Classification("challenges", "daily", "done", user_role="admin")
        with pytest.raises(InvalidClassification):
            await ledger.apply_transaction(1, "earn", 10, bad)

    async def test_reference_and_metadata_stored(self, ledger, fund):
        await fund(1, 100)
        tx_id = await ledger.apply_transaction(
            1, "earn", 10, EARN, reference_id=42, reference_type="challenge",
            metadata={"streak": 3},
        )
        tx = await ledger.get_transaction(tx_id)
        assert tx["reference_id"] == "42"
        assert tx["reference_type"] == "challenge"
        assert tx["metadata"] == {"streak": 3}


# ── Unit of work ──

class TestUnitOfWork:

    async def test_exception_rolls_back_all_entries(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(RuntimeError):
            async with ledger.unit_of_work() as uow:
                await uow.apply(1, "earn", 50, EARN)
                raise RuntimeError("boom")
        balance = await ledger.get_balance(1)
        assert balance["current"] == 100
        assert balance["transactions_count"] == 1

    async def test_nested_unit_rejected(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(RuntimeError):
            async with ledger.unit_of_work():
                async with ledger.unit_of_work():
                    pass

    async def test_journal_is_append_only(self, ledger, storage, fund):
        await fund(1, 100)
        with pytest.raises(StorageFailure):
            async with storage.transaction() as db:
                await db.execute("UPDATE luminarias_transactions SET amount = 1000")
        with pytest.raises(StorageFailure):
            async with storage.transaction() as db:
                await db.execute("DELETE FROM luminarias_transactions")
        assert (await ledger.reconcile(1))["consistent"]

    async def test_concurrent_spends_never_overdraw(self, ledger, fund):
        await fund(1, 200)
        results = await asyncio.gather(
            *[ledger.apply_transaction(1, "spend", 30, SPEND) for _ in range(20)],
            return_exceptions=True,
        )
        ok = [r for r in results if isinstance(r, int)]
        failed = [r for r in results if isinstance(r, InsufficientBalance)]
        assert len(ok) == 6
        assert len(failed) == 14
        assert (await ledger.get_balance(1))["current"] == 20
        assert (await ledger.reconcile(1))["consistent"]


# ── Admin adjustments ──

class TestAdminAdjust:

    async def test_positive_adjustment_posts_earn(self, ledger, storage, fund):
        await fund(1, 100)
        tx_id = await ledger.admin_adjust(1, 50, admin_id=7, reason="Compensation")
        tx = await ledger.get_transaction(tx_id)
        assert tx["transaction_type"] == "earn"
        assert tx["category"] == "admin_adjustment"
        audit = await storage.adjustments.list_for_user(1)
        assert audit[0]["transaction_id"] == tx_id
        assert audit[0]["admin_id"] == 7
        assert audit[0]["amount"] == 50

    async def test_negative_adjustment_respects_balance(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(InsufficientBalance):
            await ledger.admin_adjust(1, -150, admin_id=7, reason="Chargeback")
        assert (await ledger.get_balance(1))["current"] == 100

    async def test_override_allows_negative_balance(self, ledger, storage, fund):
        await fund(1, 100)
        await ledger.admin_adjust(1, -150, admin_id=7, reason="Chargeback", allow_negative=True)
        assert (await ledger.get_balance(1))["current"] == -50
        assert (await ledger.reconcile(1))["consistent"]
        audit = await storage.adjustments.list_for_user(1)
        assert audit[0]["allow_negative"] is True

    async def test_reason_required(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(InvalidRequest):
            await ledger.admin_adjust(1, 10, admin_id=7, reason="  ")

    async def test_zero_rejected(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(InvalidAmount):
            await ledger.admin_adjust(1, 0, admin_id=7, reason="noop")


# ── Queries ──

class TestQueries:

    async def test_get_balance_unknown_user(self, ledger):
        with pytest.raises(AccountNotFound):
            await ledger.get_balance(5)

    async def test_list_transactions_filters_and_pages(self, ledger, fund):
        await fund(1, 100)
        for _ in range(5):
            await ledger.apply_transaction(1, "earn", 10, EARN)
        await ledger.apply_transaction(1, "spend", 20, SPEND)

        page = await ledger.list_transactions(1, limit=3)
        assert page["total"] == 7
        assert len(page["transactions"]) == 3
        assert page["has_more"] is True
        assert page["transactions"][0]["transaction_type"] == "spend"

        last = await ledger.list_transactions(1, limit=3, offset=6)
        assert len(last["transactions"]) == 1
        assert last["has_more"] is False

        spends = await ledger.list_transactions(1, transaction_type="spend")
        assert spends["total"] == 1
        challenges = await ledger.list_transactions(1, category="challenges")
        assert challenges["total"] == 5

    async def test_list_transactions_date_range(self, ledger, fund):
        await fund(1, 100)
        page = await ledger.list_transactions(1, date_from=0, date_to=1)
        assert page["total"] == 0

    async def test_list_transactions_bad_paging(self, ledger, fund):
        await fund(1, 100)
        with pytest.raises(InvalidRequest):
            await ledger.list_transactions(1, limit=0)

    async def test_list_by_reference(self, ledger, fund):
        await fund(1, 100)
        first = await ledger.apply_transaction(
            1, "spend", 10, SPEND, reference_id="7", reference_type="store_item",
        )
        await ledger.apply_transaction(1, "spend", 10, SPEND, reference_id="8", reference_type="store_item")
        second = await ledger.apply_transaction(
            1, "earn", 5, EARN, reference_id=7, reference_type="store_item",
        )
        rows = await ledger.list_by_reference("store_item", 7)
        assert [r["id"] for r in rows] == [first, second]
        assert await ledger.list_by_reference("store_item", 99) == []

    async def test_reconcile_detects_drift(self, ledger, storage, fund):
        await fund(1, 100)
        async with storage.transaction() as db:
            await db.execute("UPDATE user_luminarias SET current_balance = 999 WHERE user_id = 1")
        report = await ledger.reconcile(1)
        assert report["consistent"] is False
        assert report["journal_sum"] == 100
