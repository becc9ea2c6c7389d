"""
test_transfer.py - Unit tests for TransferService.

Checks both legs commit together, cross-references, validation and that
concurrent opposite-direction transfers conserve the pair's total.
"""

import asyncio
import random

import pytest
import pytest_asyncio

from luminarias.errors import AccountNotFound, InsufficientBalance, InvalidAmount, InvalidTarget
from luminarias.transfer import TransferService

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def transfers(ledger):
    return TransferService(ledger)


class TestTransfer:

    async def test_moves_funds_and_links_legs(self, ledger, fund, transfers):
        await fund(1, 200)
        await fund(2, 10)
        result = await transfers.transfer(1, 2, 50, "Thanks!")
        assert (await ledger.get_balance(1))["current"] == 150
        assert (await ledger.get_balance(2))["current"] == 60

        out_tx = await ledger.get_transaction(result["out_tx_id"])
        in_tx = await ledger.get_transaction(result["in_tx_id"])
        assert out_tx["transaction_type"] == "transfer_out"
        assert in_tx["transaction_type"] == "transfer_in"
        assert out_tx["amount"] == -50
        assert in_tx["amount"] == 50
        for tx in (out_tx, in_tx):
            assert tx["from_user_id"] == 1
            assert tx["to_user_id"] == 2
            assert tx["category"] == "transfers"
            assert tx["subcategory"] == "user_to_user"
            assert tx["reference_type"] == "user_transfer"
        assert out_tx["action_type"] == "send_transfer"
        assert in_tx["action_type"] == "receive_transfer"
        assert "Thanks!" in out_tx["description"]

    async def test_higher_id_sender(self, ledger, fund, transfers):
        await fund(2, 10)
        await fund(5, 100)
        await transfers.transfer(5, 2, 100)
        assert (await ledger.get_balance(5))["current"] == 0
        assert (await ledger.get_balance(2))["current"] == 110

    async def test_insufficient_leaves_both_untouched(self, ledger, fund, transfers):
        await fund(1, 30)
        await fund(2, 10)
        with pytest.raises(InsufficientBalance):
            await transfers.transfer(2, 1, 50)
        assert (await ledger.get_balance(1))["current"] == 30
        assert (await ledger.get_balance(2))["current"] == 10
        assert (await ledger.get_balance(1))["transactions_count"] == 1
        assert (await ledger.get_balance(2))["transactions_count"] == 1

    async def test_self_transfer(self, fund, transfers):
        await fund(1, 100)
        with pytest.raises(InvalidTarget):
            await transfers.transfer(1, 1, 10)

    async def test_missing_recipient(self, fund, transfers):
        await fund(1, 100)
        with pytest.raises(InvalidTarget):
            await transfers.transfer(1, 2, 10)

    async def test_missing_sender(self, fund, transfers):
        await fund(2, 100)
        with pytest.raises(AccountNotFound):
            await transfers.transfer(1, 2, 10)

    @pytest.mark.parametrize("amount", [0, -5, 2.5])
    async def test_invalid_amount(self, fund, transfers, amount):
        await fund(1, 100)
        await fund(2, 100)
        with pytest.raises(InvalidAmount):
            await transfers.transfer(1, 2, amount)


class TestConcurrentTransfers:

    async def test_opposite_directions_conserve_total(self, ledger, storage, fund, transfers):
        await fund(1, 500)
        await fund(2, 500)
        rng = random.Random(7)
        calls = []
        for _ in range(40):
            amount = rng.randint(1, 120)
            calls.append(transfers.transfer(1, 2, amount))
            calls.append(transfers.transfer(2, 1, amount))
        results = await asyncio.gather(*calls, return_exceptions=True)

        committed = [r for r in results if isinstance(r, dict)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert all(isinstance(e, InsufficientBalance) for e in errors)

        a = (await ledger.get_balance(1))["current"]
        b = (await ledger.get_balance(2))["current"]
        assert a + b == 1000
        assert a >= 0 and b >= 0
        assert (await ledger.reconcile(1))["consistent"]
        assert (await ledger.reconcile(2))["consistent"]

        for user_id in (1, 2):
            page = await ledger.list_transactions(user_id, category="transfers", limit=500)
            assert page["total"] == len(committed)
