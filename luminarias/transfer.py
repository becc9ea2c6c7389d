"""
transfer.py - Peer-to-peer transfers.

A transfer is two ledger entries (transfer_out on the sender, transfer_in on
the recipient) posted inside one unit of work. Legs are applied in ascending
user id order so two opposite-direction transfers between the same pair
always touch the accounts in the same sequence.
"""

import logging
from typing import TYPE_CHECKING

from luminarias.errors import AccountNotFound, InvalidAmount, InvalidTarget
from luminarias.ledger import Classification

if TYPE_CHECKING:
    from luminarias.ledger import Ledger

logger = logging.getLogger("transfer")

REFERENCE_TYPE = "user_transfer"


class TransferService:
    def __init__(self, ledger: "Ledger"):
        self.ledger = ledger

    async def transfer(
        self, from_user_id: int, to_user_id: int, amount: int, description: str = "",
    ) -> dict:
        """Move ``amount`` from one user to another. Returns both transaction ids."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"Transfer amount must be a positive integer, got {amount!r}")
        if from_user_id == to_user_id:
            raise InvalidTarget("Cannot transfer to yourself")

        note = description or "Transfer"
        legs = {
            from_user_id: (
                "transfer_out",
                Classification(
                    "transfers", "user_to_user", "send_transfer",
                    f"Transfer sent to {to_user_id}: {note}",
                ),
            ),
            to_user_id: (
                "transfer_in",
                Classification(
                    "transfers", "user_to_user", "receive_transfer",
                    f"Transfer received from {from_user_id}: {note}",
                ),
            ),
        }
        metadata = {"description": description, "amount": amount}
        tx_ids = {}

        storage = self.ledger.storage
        async with self.ledger.unit_of_work() as uow:
            if not await storage.accounts.exists(from_user_id):
                raise AccountNotFound(from_user_id)
            if not await storage.accounts.exists(to_user_id):
                raise InvalidTarget(f"Recipient {to_user_id} has no Luminarias account")

            for user_id in sorted(legs):
                transaction_type, classification = legs[user_id]
                tx_ids[transaction_type] = await uow.apply(
                    user_id, transaction_type, amount, classification,
                    reference_id=f"{from_user_id}->{to_user_id}",
                    reference_type=REFERENCE_TYPE,
                    metadata=metadata,
                    from_user_id=from_user_id,
                    to_user_id=to_user_id,
                )

        logger.info(
            "Transfer %d from %s to %s (out=%d in=%d)",
            amount, from_user_id, to_user_id, tx_ids["transfer_out"], tx_ids["transfer_in"],
        )
        return {
            "out_tx_id": tx_ids["transfer_out"],
            "in_tx_id": tx_ids["transfer_in"],
            "from_user_id": from_user_id,
            "to_user_id": to_user_id,
            "amount": amount,
        }
