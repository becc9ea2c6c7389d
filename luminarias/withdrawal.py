"""
withdrawal.py - Direct withdrawal requests.

Same reserve-then-review shape as conversions: the amount is spent up front
and an administrator completes, rejects or fails the request. Rejected and
failed requests are refunded in the same unit of work that resolves them.
"""

import logging
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING, List, Optional

from luminarias.conversion import LevelProvider, StorageLevelProvider
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
    from luminarias.ledger import Ledger

logger = logging.getLogger("withdrawal")

REFERENCE_TYPE = "luminarias_withdrawal"

# review action -> terminal status
REVIEW_ACTIONS = {
    "approve": "completed",
    "reject": "rejected",
    "fail": "failed",
}


class WithdrawalWorkflow:
    def __init__(self, ledger: "Ledger", levels: Optional[LevelProvider] = None):
        self.ledger = ledger
        self.config = ledger.config
        self._storage = ledger.storage
        self.levels = levels or StorageLevelProvider(ledger.storage)

    def processing_fee(self, amount: int, withdrawal_type: str) -> int:
        if withdrawal_type != "conversion":
            return 0
        fee = Decimal(amount) * self.config.withdrawal_fee_rate
        return int(fee.to_integral_value(rounding=ROUND_FLOOR))

    async def request_withdrawal(
        self,
        user_id: int,
        amount: int,
        withdrawal_type: str,
        payment_method: str,
        payment_details: Optional[dict] = None,
        notes: Optional[str] = None,
    ) -> dict:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"Withdrawal amount must be a positive integer, got {amount!r}")
        if amount < self.config.withdrawal_min:
            raise OutOfRange(f"Minimum withdrawal is {self.config.withdrawal_min} Luminarias")
        if not withdrawal_type or not payment_method:
            raise InvalidRequest("withdrawal_type and payment_method are required")

        if withdrawal_type == "conversion":
            level = await self.levels.creator_level(user_id)
            if level not in self.config.withdrawal_levels:
                logger.warning("User %s (level %r) not eligible for withdrawal", user_id, level)
                raise NotEligible(
                    "Withdrawal to money requires creator level "
                    + ", ".join(self.config.withdrawal_levels)
                )

        fee = self.processing_fee(amount, withdrawal_type)
        storage = self._storage
        async with self.ledger.unit_of_work() as uow:
            withdrawal_id = await storage.withdrawals.insert(
                user_id, amount, fee, amount - fee, withdrawal_type, payment_method,
                payment_details=payment_details, notes=notes,
            )
            tx_id = await uow.apply(
                user_id, "spend", amount,
                Classification(
                    "withdrawal", withdrawal_type, "withdraw_funds",
                    f"Withdrawal via {payment_method}",
                ),
                reference_id=str(withdrawal_id),
                reference_type=REFERENCE_TYPE,
                metadata={"processing_fee": fee, "final_amount": amount - fee},
            )
            await storage.withdrawals.set_transaction_id(withdrawal_id, tx_id)
            withdrawal = await storage.withdrawals.get(withdrawal_id)

        logger.info(
            "Withdrawal %d requested: user %s amount=%d fee=%d type=%s",
            withdrawal_id, user_id, amount, fee, withdrawal_type,
        )
        return withdrawal

    async def review(
        self,
        withdrawal_id: int,
        action: str,
        admin_id: int,
        admin_role: Optional[str],
        notes: Optional[str] = None,
    ) -> dict:
        if not self.config.is_admin(admin_role):
            logger.warning("User %s (role %r) tried to review withdrawal %d", admin_id, admin_role, withdrawal_id)
            raise NotAuthorized("Only administrators can review withdrawals")
        status = REVIEW_ACTIONS.get(action)
        if status is None:
            raise InvalidRequest(f"Unknown review action {action!r}")

        storage = self._storage
        async with self.ledger.unit_of_work() as uow:
            withdrawal = await storage.withdrawals.get(withdrawal_id)
            if withdrawal is None:
                raise NotFound(f"Withdrawal {withdrawal_id} not found")
            if withdrawal["status"] != "pending":
                raise AlreadyProcessed(f"Withdrawal {withdrawal_id} is already {withdrawal['status']}")

            refund_tx = None
            if status != "completed":
                refund_tx = await uow.apply(
                    withdrawal["user_id"], "earn", withdrawal["original_amount"],
                    Classification(
                        "withdrawal", withdrawal["withdrawal_type"], "withdrawal_refund",
                        f"Refund for {status} withdrawal {withdrawal_id}",
                    ),
                    reference_id=str(withdrawal_id),
                    reference_type=REFERENCE_TYPE,
                    metadata={"admin_id": admin_id, "notes": notes},
                )
            if not await storage.withdrawals.resolve(
                withdrawal_id, status, admin_id, notes, refund_transaction_id=refund_tx,
            ):
                raise AlreadyProcessed(f"Withdrawal {withdrawal_id} is no longer pending")
            withdrawal = await storage.withdrawals.get(withdrawal_id)

        logger.info("Withdrawal %d %s by admin %s", withdrawal_id, status, admin_id)
        return withdrawal

    async def get(self, withdrawal_id: int) -> dict:
        async with self._storage.snapshot():
            withdrawal = await self._storage.withdrawals.get(withdrawal_id)
        if withdrawal is None:
            raise NotFound(f"Withdrawal {withdrawal_id} not found")
        return withdrawal

    async def list_for_user(self, user_id: int, limit: int = 50, offset: int = 0) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.withdrawals.list_all(user_id=user_id, limit=limit, offset=offset)

    async def list_pending(self, limit: int = 50, offset: int = 0) -> List[dict]:
        return await self.list_all(status="pending", limit=limit, offset=offset)

    async def list_all(
        self, status: Optional[str] = None, limit: int = 50, offset: int = 0,
    ) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.withdrawals.list_all(status=status, limit=limit, offset=offset)
