"""
escrow.py - Marketplace escrow.

Clients pay for a provider's listing up front (the booking holds the funds);
completion releases the price minus commission to the provider, cancellation
refunds the client. Bookings move out of 'confirmed' exactly once.
"""

import logging
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING, List, Optional

from luminarias.errors import (
    CapacityExceeded,
    InvalidAmount,
    InvalidRequest,
    InvalidState,
    InvalidTarget,
    NotAuthorized,
    NotFound,
)
from luminarias.ledger import Classification

if TYPE_CHECKING:
    from luminarias.ledger import Ledger

logger = logging.getLogger("escrow")

REFERENCE_TYPE = "marketplace_booking"


def split_commission(total_price: int, rate: Decimal) -> tuple:
    """Return (commission, provider_amount); commission is floored."""
    commission = int((Decimal(total_price) * rate).to_integral_value(rounding=ROUND_FLOOR))
    return commission, total_price - commission


class EscrowService:
    """Listings, bookings and the confirmed -> completed | cancelled machine."""

    def __init__(self, ledger: "Ledger"):
        self.ledger = ledger
        self.config = ledger.config
        self._storage = ledger.storage

    # ── Listings ─────────────────────────────────────────────────

    async def create_service(
        self,
        provider_id: int,
        name: str,
        description: str,
        category: str,
        price: int,
        max_clients: Optional[int] = None,
        service_type: str = "one_time",
        duration_minutes: Optional[int] = None,
        delivery_method: str = "",
    ) -> dict:
        if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
            raise InvalidAmount(f"Price must be a positive integer, got {price!r}")
        if not name or not category:
            raise InvalidRequest("Service name and category are required")
        if max_clients is not None and max_clients < 1:
            raise InvalidRequest("max_clients must be at least 1 when set")

        async with self._storage.transaction():
            service_id = await self._storage.services.insert(
                provider_id, name, description, category, price,
                service_type=service_type, duration_minutes=duration_minutes,
                max_clients=max_clients, delivery_method=delivery_method,
            )
            service = await self._storage.services.get(service_id)
        logger.info("Provider %s listed service %d (%s) at %d", provider_id, service_id, name, price)
        return service

    async def get_service(self, service_id: int) -> dict:
        async with self._storage.snapshot():
            service = await self._storage.services.get(service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found")
        return service

    async def list_services(
        self, category: Optional[str] = None, provider_id: Optional[int] = None,
        limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.services.list_active(
                category=category, provider_id=provider_id, limit=limit, offset=offset,
            )

    async def deactivate_service(self, service_id: int, provider_id: int) -> dict:
        async with self._storage.transaction():
            service = await self._storage.services.get(service_id)
            if service is None:
                raise NotFound(f"Service {service_id} not found")
            if service["provider_id"] != provider_id:
                raise NotAuthorized("Only the provider can withdraw a listing")
            await self._storage.services.set_active(service_id, False)
            service = await self._storage.services.get(service_id)
        logger.info("Service %d deactivated by provider %s", service_id, provider_id)
        return service

    # ── Bookings ─────────────────────────────────────────────────

    async def book(
        self,
        service_id: int,
        client_id: int,
        scheduled_at: Optional[float] = None,
        delivery_notes: Optional[str] = None,
    ) -> dict:
        """Debit the client the full price and open a confirmed booking."""
        storage = self._storage
        async with self.ledger.unit_of_work() as uow:
            service = await storage.services.get(service_id)
            if service is None or not service["is_active"]:
                raise NotFound(f"Service {service_id} not found or inactive")
            if service["provider_id"] == client_id:
                raise InvalidTarget("Cannot book your own service")
            if not await storage.services.claim_slot(service_id):
                raise CapacityExceeded(
                    f"Service {service_id} is at capacity ({service['max_clients']} clients)"
                )

            price = service["price_luminarias"]
            tx_id = await uow.apply(
                client_id, "spend", price,
                Classification(
                    "marketplace", service["category"], "book_service",
                    f"Booked service: {service['service_name']}",
                ),
                reference_id=str(service_id),
                reference_type="marketplace_service",
                metadata={"service_id": service_id, "provider_id": service["provider_id"]},
            )
            booking_id = await storage.bookings.insert(
                service_id, client_id, service["provider_id"], tx_id, price,
                scheduled_at=scheduled_at, delivery_notes=delivery_notes,
            )
            booking = await storage.bookings.get(booking_id)

        logger.info(
            "Booking %d: client %s paid %d for service %d (provider %s)",
            booking_id, client_id, price, service_id, service["provider_id"],
        )
        return booking

    async def complete(
        self, booking_id: int, acting_provider_id: int, completion_notes: Optional[str] = None,
    ) -> dict:
        """Release escrow to the provider, minus the platform commission."""
        storage = self._storage
        async with self.ledger.unit_of_work() as uow:
            booking = await self._confirmed_booking(booking_id)
            if booking["provider_id"] != acting_provider_id:
                logger.warning(
                    "User %s tried to complete booking %d owned by provider %s",
                    acting_provider_id, booking_id, booking["provider_id"],
                )
                raise NotAuthorized("Only the booking's provider can complete it")

            total = booking["total_price"]
            commission, provider_amount = split_commission(
                total, self.config.marketplace_commission_rate,
            )
            payout_tx = await uow.apply(
                booking["provider_id"], "earn", provider_amount,
                Classification(
                    "marketplace", "service_payment", "complete_service",
                    f"Payment for service: {booking['service_name']}",
                    user_role="creator",
                ),
                reference_id=str(booking_id),
                reference_type=REFERENCE_TYPE,
                metadata={
                    "gross_amount": total,
                    "commission": commission,
                    "net_amount": provider_amount,
                    "client_id": booking["client_id"],
                },
            )
            if commission > 0 and self.config.record_platform_commission:
                await uow.apply(
                    self.config.platform_user_id, "earn", commission,
                    Classification(
                        "marketplace", "platform_commission", "collect_commission",
                        f"Commission on booking {booking_id}",
                    ),
                    reference_id=str(booking_id),
                    reference_type=REFERENCE_TYPE,
                    metadata={"gross_amount": total, "rate": str(self.config.marketplace_commission_rate)},
                    create_missing=True,
                )
            if not await storage.bookings.mark_completed(
                booking_id, commission, provider_amount, payout_tx, completion_notes,
            ):
                raise InvalidState(f"Booking {booking_id} is no longer confirmed")
            await storage.services.release_slot(booking["service_id"])
            booking = await storage.bookings.get(booking_id)

        logger.info(
            "Booking %d completed: provider %s credited %d (commission %d)",
            booking_id, booking["provider_id"], provider_amount, commission,
        )
        return booking

    async def cancel(
        self, booking_id: int, acting_user_id: Optional[int] = None, reason: Optional[str] = None,
    ) -> dict:
        """Refund the client in full. ``acting_user_id=None`` is an admin action."""
        storage = self._storage
        async with self.ledger.unit_of_work() as uow:
            booking = await self._confirmed_booking(booking_id)
            if acting_user_id is not None and acting_user_id not in (
                booking["client_id"], booking["provider_id"],
            ):
                raise NotAuthorized("Only the client or the provider can cancel a booking")

            refund_tx = await uow.apply(
                booking["client_id"], "earn", booking["total_price"],
                Classification(
                    "marketplace", "booking_refund", "cancel_booking",
                    f"Refund for cancelled booking: {booking['service_name']}",
                ),
                reference_id=str(booking_id),
                reference_type=REFERENCE_TYPE,
                metadata={"reason": reason, "cancelled_by": acting_user_id},
            )
            if not await storage.bookings.mark_cancelled(booking_id, refund_tx, reason):
                raise InvalidState(f"Booking {booking_id} is no longer confirmed")
            await storage.services.release_slot(booking["service_id"])
            booking = await storage.bookings.get(booking_id)

        logger.info(
            "Booking %d cancelled by %s: client %s refunded %d",
            booking_id, "admin" if acting_user_id is None else acting_user_id,
            booking["client_id"], booking["total_price"],
        )
        return booking

    async def _confirmed_booking(self, booking_id: int) -> dict:
        booking = await self._storage.bookings.get(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        if booking["status"] != "confirmed":
            raise InvalidState(f"Booking {booking_id} is already {booking['status']}")
        return booking

    async def get_booking(self, booking_id: int) -> dict:
        async with self._storage.snapshot():
            booking = await self._storage.bookings.get(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    async def list_bookings_for_client(
        self, client_id: int, status: Optional[str] = None, limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.bookings.list_for_client(
                client_id, status=status, limit=limit, offset=offset,
            )

    async def list_bookings_for_provider(
        self, provider_id: int, status: Optional[str] = None, limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.bookings.list_for_provider(
                provider_id, status=status, limit=limit, offset=offset,
            )
