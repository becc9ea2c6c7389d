"""
conversion.py - Luminarias to real-money conversion requests.

Requesting a conversion debits the Luminarias immediately (the funds are
reserved while an administrator reviews) and records the EUR payout quote.
Review resolves the request exactly once: approve finalizes it, reject
refunds the reserved amount in the same unit of work.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, List, Optional, Protocol

from luminarias.errors import (
    AlreadyProcessed,
    InvalidAmount,
    InvalidRequest,
    NotAuthorized,
    NotEligible,
    NotFound,
    OutOfRange,
)
from luminarias.ledger import Classification

if TYPE_CHECKING:
    from luminarias.config import LedgerConfig
    from luminarias.ledger import Ledger
    from luminarias.storage import StorageManager

logger = logging.getLogger("conversion")

CENTS = Decimal("0.01")
REFERENCE_TYPE = "luminarias_conversion"


class LevelProvider(Protocol):
    """Source of a user's creator tier (e.g. 'maestro')."""

    async def creator_level(self, user_id: int) -> Optional[str]:
        ...


class StorageLevelProvider:
    """Reads creator levels from the users directory table."""

    def __init__(self, storage: "StorageManager"):
        self._storage = storage

    async def creator_level(self, user_id: int) -> Optional[str]:
        async with self._storage.snapshot():
            return await self._storage.users.creator_level(user_id)


def quote(luminarias_amount: int, config: "LedgerConfig") -> dict:
    """Linear payout between the band's min and max, minus commission."""
    low, high = config.conversion_min, config.conversion_max
    pay_low, pay_high = config.conversion_payout_min, config.conversion_payout_max
    if high == low:
        gross = pay_low
    else:
        fraction = Decimal(luminarias_amount - low) / Decimal(high - low)
        gross = pay_low + (pay_high - pay_low) * fraction
    gross = gross.quantize(CENTS, rounding=ROUND_HALF_UP)
    commission = (gross * config.conversion_commission_rate).quantize(CENTS, rounding=ROUND_HALF_UP)
    return {
        "gross_amount": gross,
        "commission_amount": commission,
        "net_amount": gross - commission,
    }


class ConversionWorkflow:
    """pending -> processed (approve) | rejected (reject, refunded)."""

    def __init__(self, ledger: "Ledger", levels: Optional[LevelProvider] = None):
        self.ledger = ledger
        self.config = ledger.config
        self._storage = ledger.storage
        self.levels = levels or StorageLevelProvider(ledger.storage)

    async def request_conversion(
        self,
        user_id: int,
        luminarias_amount: int,
        payment_method: str,
        payment_details: Optional[dict] = None,
        notes: Optional[str] = None,
    ) -> dict:
        if isinstance(luminarias_amount, bool) or not isinstance(luminarias_amount, int):
            raise InvalidAmount(f"Amount must be an integer, got {luminarias_amount!r}")
        if not self.config.conversion_min <= luminarias_amount <= self.config.conversion_max:
            raise OutOfRange(
                f"Conversion amount must be between {self.config.conversion_min} "
                f"and {self.config.conversion_max} Luminarias"
            )
        if not payment_method:
            raise InvalidRequest("A payment method is required")

        level = await self.levels.creator_level(user_id)
        if level not in self.config.conversion_levels:
            logger.warning("User %s (level %r) not eligible for conversion", user_id, level)
            raise NotEligible(
                "Conversion requires creator level " + ", ".join(self.config.conversion_levels)
            )

        amounts = quote(luminarias_amount, self.config)
        storage = self._storage
        async with self.ledger.unit_of_work() as uow:
            conversion_id = await storage.conversions.insert(
                user_id, luminarias_amount,
                amounts["gross_amount"], amounts["commission_amount"], amounts["net_amount"],
                payment_method, payment_details=payment_details, notes=notes,
            )
            tx_id = await uow.apply(
                user_id, "conversion", luminarias_amount,
                Classification(
                    "conversion", "real_money", "convert_to_money",
                    f"Conversion of {luminarias_amount} Luminarias to EUR {amounts['net_amount']}",
                    user_role="creator",
                ),
                reference_id=str(conversion_id),
                reference_type=REFERENCE_TYPE,
                metadata={
                    "gross_amount": str(amounts["gross_amount"]),
                    "commission_amount": str(amounts["commission_amount"]),
                    "net_amount": str(amounts["net_amount"]),
                    "payment_method": payment_method,
                },
            )
            await storage.conversions.set_transaction_id(conversion_id, tx_id)
            conversion = await storage.conversions.get(conversion_id)

        logger.info(
            "Conversion %d requested: user %s reserved %d for EUR %s net",
            conversion_id, user_id, luminarias_amount, amounts["net_amount"],
        )
        return conversion

    async def review(
        self,
        conversion_id: int,
        action: str,
        admin_id: int,
        admin_role: Optional[str],
        notes: Optional[str] = None,
    ) -> dict:
        if not self.config.is_admin(admin_role):
            logger.warning("User %s (role %r) tried to review conversion %d", admin_id, admin_role, conversion_id)
            raise NotAuthorized("Only administrators can review conversions")
        if action not in ("approve", "reject"):
            raise InvalidRequest(f"Unknown review action {action!r}")

        storage = self._storage
        async with self.ledger.unit_of_work() as uow:
            conversion = await storage.conversions.get(conversion_id)
            if conversion is None:
                raise NotFound(f"Conversion {conversion_id} not found")
            if conversion["status"] != "pending":
                raise AlreadyProcessed(f"Conversion {conversion_id} is already {conversion['status']}")

            refund_tx = None
            if action == "reject":
                refund_tx = await uow.apply(
                    conversion["user_id"], "earn", conversion["luminarias_amount"],
                    Classification(
                        "conversion", "real_money", "conversion_refund",
                        f"Refund for rejected conversion {conversion_id}",
                        user_role="creator",
                    ),
                    reference_id=str(conversion_id),
                    reference_type=REFERENCE_TYPE,
                    metadata={"admin_id": admin_id, "notes": notes},
                )
            status = "processed" if action == "approve" else "rejected"
            if not await storage.conversions.resolve(
                conversion_id, status, admin_id, notes, refund_transaction_id=refund_tx,
            ):
                raise AlreadyProcessed(f"Conversion {conversion_id} is no longer pending")
            conversion = await storage.conversions.get(conversion_id)

        logger.info("Conversion %d %s by admin %s", conversion_id, status, admin_id)
        return conversion

    async def get(self, conversion_id: int) -> dict:
        async with self._storage.snapshot():
            conversion = await self._storage.conversions.get(conversion_id)
        if conversion is None:
            raise NotFound(f"Conversion {conversion_id} not found")
        return conversion

    async def list_for_user(self, user_id: int, limit: int = 50, offset: int = 0) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.conversions.list_all(user_id=user_id, limit=limit, offset=offset)

    async def list_pending(self, limit: int = 50, offset: int = 0) -> List[dict]:
        return await self.list_all(status="pending", limit=limit, offset=offset)

    async def list_all(
        self, status: Optional[str] = None, limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.conversions.list_all(status=status, limit=limit, offset=offset)
