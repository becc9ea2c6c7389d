"""
test_escrow.py - Unit tests for EscrowService.

Booking debits, commission split on completion, refunds on cancellation,
capacity accounting and single-resolution of terminal states.
"""

from decimal import Decimal

import pytest
import pytest_asyncio

from luminarias.config import LedgerConfig
from luminarias.errors import (
    CapacityExceeded,
    InsufficientBalance,
    InvalidAmount,
    InvalidState,
    InvalidTarget,
    NotAuthorized,
    NotFound,
)
from luminarias.escrow import EscrowService, split_commission
from luminarias.ledger import Ledger

pytestmark = pytest.mark.asyncio

PROVIDER = 10
CLIENT = 20
OTHER = 30


@pytest_asyncio.fixture
async def escrow(ledger):
    return EscrowService(ledger)


@pytest_asyncio.fixture
async def service(escrow, fund):
    await fund(PROVIDER, 0)
    await fund(CLIENT, 2000)
    return await escrow.create_service(PROVIDER, "Portfolio review", "1h call", "mentoring", 1000)


class TestSplitCommission:

    @pytest.mark.parametrize("total,commission,net", [
        (1000, 50, 950),
        (999, 49, 950),
        (19, 0, 19),
        (20, 1, 19),
    ])
    async def test_floor(self, total, commission, net):
        assert split_commission(total, Decimal("0.05")) == (commission, net)


class TestListings:

    async def test_create_and_list(self, escrow, service):
        assert service["price_luminarias"] == 1000
        assert service["current_clients"] == 0
        listed = await escrow.list_services(category="mentoring")
        assert [s["id"] for s in listed] == [service["id"]]
        assert await escrow.list_services(provider_id=OTHER) == []

    async def test_price_must_be_positive(self, escrow):
        with pytest.raises(InvalidAmount):
            await escrow.create_service(PROVIDER, "Free", "", "mentoring", 0)

    async def test_unknown_service(self, escrow):
        with pytest.raises(NotFound):
            await escrow.get_service(404)

    async def test_deactivated_service_cannot_be_booked(self, escrow, service):
        with pytest.raises(NotAuthorized):
            await escrow.deactivate_service(service["id"], OTHER)
        await escrow.deactivate_service(service["id"], PROVIDER)
        with pytest.raises(NotFound):
            await escrow.book(service["id"], CLIENT)


class TestBooking:

    async def test_book_debits_client(self, escrow, ledger, service):
        booking = await escrow.book(service["id"], CLIENT, delivery_notes="Friday")
        assert booking["status"] == "confirmed"
        assert booking["total_price"] == 1000
        assert booking["provider_id"] == PROVIDER
        assert (await ledger.get_balance(CLIENT))["current"] == 1000
        assert (await escrow.get_service(service["id"]))["current_clients"] == 1
        tx = await ledger.get_transaction(booking["transaction_id"])
        assert tx["transaction_type"] == "spend"
        assert tx["action_type"] == "book_service"

    async def test_self_booking(self, escrow, service):
        with pytest.raises(InvalidTarget):
            await escrow.book(service["id"], PROVIDER)

    async def test_capacity(self, escrow, ledger, fund):
        await fund(PROVIDER, 0)
        await fund(CLIENT, 500)
        await fund(OTHER, 500)
        svc = await escrow.create_service(PROVIDER, "Group class", "", "coaching", 100, max_clients=1)
        await escrow.book(svc["id"], CLIENT)
        with pytest.raises(CapacityExceeded):
            await escrow.book(svc["id"], OTHER)
        assert (await ledger.get_balance(OTHER))["current"] == 500

    async def test_insufficient_balance_releases_slot(self, escrow, ledger, fund):
        await fund(PROVIDER, 0)
        await fund(CLIENT, 50)
        svc = await escrow.create_service(PROVIDER, "Group class", "", "coaching", 100, max_clients=1)
        with pytest.raises(InsufficientBalance):
            await escrow.book(svc["id"], CLIENT)
        assert (await escrow.get_service(svc["id"]))["current_clients"] == 0
        assert await escrow.list_bookings_for_client(CLIENT) == []


class TestCompletion:

    async def test_provider_paid_minus_commission(self, escrow, ledger, service):
        booking = await escrow.book(service["id"], CLIENT)
        done = await escrow.complete(booking["id"], PROVIDER, completion_notes="Great session")
        assert done["status"] == "completed"
        assert done["commission_amount"] == 50
        assert done["provider_amount"] == 950
        assert (await ledger.get_balance(PROVIDER))["current"] == 950
        assert (await ledger.get_balance(CLIENT))["current"] == 1000
        assert (await escrow.get_service(service["id"]))["current_clients"] == 0
        payout = await ledger.get_transaction(done["payout_transaction_id"])
        assert payout["metadata"]["commission"] == 50
        assert payout["metadata"]["gross_amount"] == 1000

    async def test_complete_twice(self, escrow, ledger, service):
        booking = await escrow.book(service["id"], CLIENT)
        await escrow.complete(booking["id"], PROVIDER)
        with pytest.raises(InvalidState):
            await escrow.complete(booking["id"], PROVIDER)
        balance = await ledger.get_balance(PROVIDER)
        assert balance["current"] == 950
        assert balance["transactions_count"] == 1

    async def test_only_provider_completes(self, escrow, ledger, service):
        booking = await escrow.book(service["id"], CLIENT)
        with pytest.raises(NotAuthorized):
            await escrow.complete(booking["id"], CLIENT)
        assert (await escrow.get_booking(booking["id"]))["status"] == "confirmed"

    async def test_unknown_booking(self, escrow):
        with pytest.raises(NotFound):
            await escrow.complete(77, PROVIDER)

    async def test_platform_commission_recorded_when_enabled(self, storage):
        ledger = Ledger(storage, LedgerConfig(record_platform_commission=True))
        escrow = EscrowService(ledger)
        await ledger.open_account(PROVIDER, starting_grant=0)
        await ledger.open_account(CLIENT, starting_grant=1000)
        svc = await escrow.create_service(PROVIDER, "Mix", "", "audio", 1000)
        booking = await escrow.book(svc["id"], CLIENT)
        await escrow.complete(booking["id"], PROVIDER)
        platform = await ledger.get_balance(0)
        assert platform["current"] == 50
        total = sum([
            (await ledger.get_balance(uid))["current"] for uid in (0, PROVIDER, CLIENT)
        ])
        assert total == 1000


class TestCancellation:

    async def test_cancel_refunds_client(self, escrow, ledger, service):
        booking = await escrow.book(service["id"], CLIENT)
        cancelled = await escrow.cancel(booking["id"], acting_user_id=CLIENT, reason="Conflict")
        assert cancelled["status"] == "cancelled"
        assert cancelled["refund_transaction_id"] is not None
        assert (await ledger.get_balance(CLIENT))["current"] == 2000
        assert (await escrow.get_service(service["id"]))["current_clients"] == 0
        assert (await ledger.reconcile(CLIENT))["consistent"]

    async def test_provider_and_admin_may_cancel(self, escrow, service):
        first = await escrow.book(service["id"], CLIENT)
        await escrow.cancel(first["id"], acting_user_id=PROVIDER)
        second = await escrow.book(service["id"], CLIENT)
        assert (await escrow.cancel(second["id"]))["status"] == "cancelled"

    async def test_stranger_cannot_cancel(self, escrow, service):
        booking = await escrow.book(service["id"], CLIENT)
        with pytest.raises(NotAuthorized):
            await escrow.cancel(booking["id"], acting_user_id=OTHER)

    async def test_terminal_states_are_final(self, escrow, ledger, service):
        booking = await escrow.book(service["id"], CLIENT)
        await escrow.cancel(booking["id"], acting_user_id=CLIENT)
        with pytest.raises(InvalidState):
            await escrow.cancel(booking["id"], acting_user_id=CLIENT)
        with pytest.raises(InvalidState):
            await escrow.complete(booking["id"], PROVIDER)
        assert (await ledger.get_balance(CLIENT))["current"] == 2000
        assert (await ledger.get_balance(PROVIDER))["current"] == 0

    async def test_booking_lists(self, escrow, service):
        booking = await escrow.book(service["id"], CLIENT)
        assert [b["id"] for b in await escrow.list_bookings_for_client(CLIENT)] == [booking["id"]]
        assert [b["id"] for b in await escrow.list_bookings_for_provider(PROVIDER)] == [booking["id"]]
        assert await escrow.list_bookings_for_provider(PROVIDER, status="completed") == []
