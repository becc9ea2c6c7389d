"""
ledger.py - Ledger core.

The only component that mutates balances. Every mutation reads the account,
checks the non-negative invariant, updates the balance and appends the
journal row inside one storage unit of work: all of it commits, or none of it.

Workflows (transfer, escrow, conversion, store) open a unit of work with
``Ledger.unit_of_work()`` and post one or more entries through
``UnitOfWork.apply`` alongside their own table writes.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, List, Optional

from luminarias.config import USER_ROLES, LedgerConfig
from luminarias.errors import (
    AccountNotFound,
    InsufficientBalance,
    InvalidAmount,
    InvalidClassification,
    InvalidRequest,
)

if TYPE_CHECKING:
    from luminarias.storage import StorageManager

logger = logging.getLogger("ledger")

CREDIT_TYPES = ("earn", "transfer_in")
DEBIT_TYPES = ("spend", "transfer_out", "conversion")
TRANSACTION_TYPES = CREDIT_TYPES + DEBIT_TYPES


@dataclass(frozen=True)
class Classification:
    """Audit labels for a journal row. Never used for control flow."""

    category: str
    subcategory: Optional[str] = None
    action_type: str = ""
    description: str = ""
    user_role: str = "user"


WELCOME_GRANT = Classification(
    "welcome_bonus", "registration", "account_opened", "Welcome bonus",
)


def _check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer, got {amount!r}")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be a positive magnitude, got {amount}")
    return amount


class UnitOfWork:
    """Handle for posting entries inside one open storage transaction."""

    def __init__(self, ledger: "Ledger"):
        self._ledger = ledger
        self.storage = ledger.storage

    async def apply(
        self,
        user_id: int,
        transaction_type: str,
        amount: int,
        classification: Classification,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        metadata: Optional[dict] = None,
        from_user_id: Optional[int] = None,
        to_user_id: Optional[int] = None,
        create_missing: bool = False,
    ) -> int:
        """Post one entry. ``amount`` is always a positive magnitude.

        Debit types (spend, transfer_out, conversion) are negated here. Raises
        InsufficientBalance without writing anything when a debit would take
        the balance below zero.
        """
        return await self._post(
            user_id, transaction_type, amount, classification,
            reference_id=reference_id, reference_type=reference_type,
            metadata=metadata, from_user_id=from_user_id, to_user_id=to_user_id,
            create_missing=create_missing, allow_negative=False,
        )

    async def open_account(self, user_id: int, grant: int) -> Optional[int]:
        """Create the account and credit ``grant``. None if it already existed."""
        if isinstance(grant, bool) or not isinstance(grant, int) or grant < 0:
            raise InvalidAmount(f"Starting grant must be a non-negative integer, got {grant!r}")
        if not await self.storage.accounts.insert(user_id):
            return None
        if grant == 0:
            return None
        return await self.apply(
            user_id, "earn", grant, WELCOME_GRANT,
            reference_type="registration", metadata={"starting_grant": grant},
        )

    async def _post(
        self,
        user_id: int,
        transaction_type: str,
        amount: int,
        classification: Classification,
        reference_id: Optional[str],
        reference_type: Optional[str],
        metadata: Optional[dict],
        from_user_id: Optional[int],
        to_user_id: Optional[int],
        create_missing: bool,
        allow_negative: bool,
    ) -> int:
        if transaction_type not in TRANSACTION_TYPES:
            raise InvalidRequest(f"Unknown transaction type {transaction_type!r}")
        _check_amount(amount)
        self._ledger.check_classification(classification)

        accounts = self.storage.accounts
        if not await accounts.exists(user_id):
            if not create_missing:
                raise AccountNotFound(user_id)
            await accounts.insert(user_id)
            logger.info("Created account for user %s on first mutation", user_id)

        if transaction_type in CREDIT_TYPES:
            delta, earned, spent = amount, amount, 0
        else:
            delta, earned, spent = -amount, 0, amount

        if not await accounts.apply_delta(
            user_id, delta, earned=earned, spent=spent, allow_negative=allow_negative,
        ):
            balance = await accounts.balance(user_id)
            logger.warning(
                "Insufficient balance: user=%s balance=%s %s=%d",
                user_id, balance, transaction_type, amount,
            )
            raise InsufficientBalance(user_id, balance or 0, amount)

        balance_after = await accounts.balance(user_id)
        tx_id = await self.storage.transactions.insert(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=delta,
            balance_after=balance_after,
            user_role=classification.user_role,
            category=classification.category,
            subcategory=classification.subcategory,
            action_type=classification.action_type,
            description=classification.description,
            reference_id=None if reference_id is None else str(reference_id),
            reference_type=reference_type,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            metadata=metadata,
        )
        logger.debug(
            "Posted tx %d: user=%s %s %+d -> %d", tx_id, user_id, transaction_type, delta, balance_after,
        )
        return tx_id


class Ledger:
    """Atomic transaction processor over the account store."""

    def __init__(self, storage: "StorageManager", config: Optional[LedgerConfig] = None):
        self.storage = storage
        self.config = config or LedgerConfig()

    def check_classification(self, classification: Classification):
        if classification.user_role not in USER_ROLES:
            raise InvalidClassification(f"Unknown user role {classification.user_role!r}")
        if not self.config.taxonomy.allows(
            classification.category, classification.subcategory, classification.action_type,
        ):
            raise InvalidClassification(
                "Unknown classification "
                f"{classification.category}/{classification.subcategory}/{classification.action_type}"
            )

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[UnitOfWork]:
        async with self.storage.transaction():
            yield UnitOfWork(self)

    # ── Mutations ────────────────────────────────────────────────

    async def apply_transaction(
        self,
        user_id: int,
        transaction_type: str,
        amount: int,
        classification: Classification,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        metadata: Optional[dict] = None,
        create_missing: bool = False,
    ) -> int:
        """Apply a single entry in its own unit of work and return its id."""
        async with self.unit_of_work() as uow:
            tx_id = await uow.apply(
                user_id, transaction_type, amount, classification,
                reference_id=reference_id, reference_type=reference_type,
                metadata=metadata, create_missing=create_missing,
            )
        logger.info(
            "Transaction %d: user=%s %s %d (%s/%s)",
            tx_id, user_id, transaction_type, amount,
            classification.category, classification.subcategory,
        )
        return tx_id

    async def open_account(self, user_id: int, starting_grant: Optional[int] = None) -> Optional[int]:
        """Create the account eagerly, crediting the starting grant.

        Returns the grant transaction id, or None when the account already
        existed or the grant is zero.
        """
        grant = self.config.starting_grant if starting_grant is None else starting_grant
        async with self.unit_of_work() as uow:
            tx_id = await uow.open_account(user_id, grant)
        if tx_id is not None:
            logger.info("Opened account for user %s with grant %d", user_id, grant)
        return tx_id

    async def admin_adjust(
        self,
        user_id: int,
        amount: int,
        admin_id: int,
        reason: str,
        allow_negative: bool = False,
    ) -> int:
        """Privileged correction: positive amounts post earn, negative post spend.

        With ``allow_negative`` the balance check is skipped. Every call is
        also written to the admin_adjustments audit table.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise InvalidAmount(f"Adjustment must be a non-zero integer, got {amount!r}")
        if not reason or not reason.strip():
            raise InvalidRequest("An adjustment reason is required")

        transaction_type = "earn" if amount > 0 else "spend"
        classification = Classification(
            "admin_adjustment", "manual", "admin_adjustment",
            f"Admin adjustment: {reason}",
        )
        async with self.unit_of_work() as uow:
            tx_id = await uow._post(
                user_id, transaction_type, abs(amount), classification,
                reference_id=str(admin_id), reference_type="admin_adjustment",
                metadata={"admin_id": admin_id, "reason": reason, "allow_negative": allow_negative},
                from_user_id=None, to_user_id=None,
                create_missing=False, allow_negative=allow_negative,
            )
            await self.storage.adjustments.insert(
                tx_id, user_id, admin_id, amount, reason, allow_negative,
            )

        if allow_negative:
            logger.warning(
                "Admin %s adjusted user %s by %+d with negative override: %s",
                admin_id, user_id, amount, reason,
            )
        else:
            logger.info("Admin %s adjusted user %s by %+d: %s", admin_id, user_id, amount, reason)
        return tx_id

    # ── Queries ──────────────────────────────────────────────────

    async def get_balance(self, user_id: int) -> dict:
        async with self.storage.snapshot():
            account = await self.storage.accounts.get(user_id)
            if account is None:
                raise AccountNotFound(user_id)
            count = await self.storage.transactions.count_for_user(user_id)
        return {
            "user_id": user_id,
            "current": account["current_balance"],
            "total_earned": account["total_earned"],
            "total_spent": account["total_spent"],
            "lifetime_earnings": account["lifetime_earnings"],
            "last_activity": account["last_activity"],
            "transactions_count": count,
        }

    async def list_transactions(
        self,
        user_id: int,
        category: Optional[str] = None,
        transaction_type: Optional[str] = None,
        user_role: Optional[str] = None,
        date_from: Optional[float] = None,
        date_to: Optional[float] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        """One page of the user's journal, newest first."""
        if limit < 1 or offset < 0:
            raise InvalidRequest("limit must be >= 1 and offset >= 0")
        if transaction_type is not None and transaction_type not in TRANSACTION_TYPES:
            raise InvalidRequest(f"Unknown transaction type {transaction_type!r}")
        filters = dict(
            category=category, transaction_type=transaction_type, user_role=user_role,
            date_from=date_from, date_to=date_to,
        )
        async with self.storage.snapshot():
            rows = await self.storage.transactions.list_for_user(
                user_id, limit=limit, offset=offset, **filters,
            )
            total = await self.storage.transactions.count_for_user(user_id, **filters)
        return {
            "transactions": rows,
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(rows) < total,
        }

    async def get_transaction(self, tx_id: int) -> Optional[dict]:
        async with self.storage.snapshot():
            return await self.storage.transactions.get(tx_id)

    async def list_by_reference(self, reference_type: str, reference_id) -> List[dict]:
        """Every journal row posted for one booking, conversion, transfer, etc."""
        async with self.storage.snapshot():
            return await self.storage.transactions.list_by_reference(reference_type, str(reference_id))

    async def reconcile(self, user_id: int) -> dict:
        """Compare the stored balance against the sum of the user's journal."""
        async with self.storage.snapshot():
            balance = await self.storage.accounts.balance(user_id)
            if balance is None:
                raise AccountNotFound(user_id)
            journal_sum = await self.storage.transactions.sum_for_user(user_id)
        if balance != journal_sum:
            logger.error(
                "Ledger mismatch for user %s: balance=%d journal=%d", user_id, balance, journal_sum,
            )
        return {
            "user_id": user_id,
            "balance": balance,
            "journal_sum": journal_sum,
            "consistent": balance == journal_sum,
        }
