"""
config.py - Ledger configuration.

All tunables live on one dataclass that the server builds once (from CLI
flags) and hands to every service. Defaults mirror production values.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, Iterable, Optional, Tuple

WILDCARD = "*"

# (category, subcategory, action_type); "*" matches anything in that slot.
DEFAULT_TAXONOMY: FrozenSet[Tuple[str, str, str]] = frozenset({
    ("welcome_bonus", "registration", "account_opened"),
    ("transfers", "user_to_user", "send_transfer"),
    ("transfers", "user_to_user", "receive_transfer"),
    ("marketplace", WILDCARD, "book_service"),
    ("marketplace", "service_payment", "complete_service"),
    ("marketplace", "booking_refund", "cancel_booking"),
    ("marketplace", "platform_commission", "collect_commission"),
    ("conversion", "real_money", "convert_to_money"),
    ("conversion", "real_money", "conversion_refund"),
    ("withdrawal", WILDCARD, "withdraw_funds"),
    ("withdrawal", WILDCARD, "withdrawal_refund"),
    ("store_purchase", WILDCARD, "buy_item"),
    ("admin_adjustment", "manual", "admin_adjustment"),
    # Earn sources owned by other subsystems
    ("challenges", WILDCARD, WILDCARD),
    ("levels", WILDCARD, WILDCARD),
    ("games", WILDCARD, WILDCARD),
    ("content", WILDCARD, WILDCARD),
})

USER_ROLES = ("user", "creator")


class Taxonomy:
    """Set of valid (category, subcategory, action_type) triples."""

    def __init__(self, triples: Iterable[Tuple[str, str, str]] = DEFAULT_TAXONOMY):
        self._triples = frozenset(triples)
        self._categories = frozenset(t[0] for t in self._triples)

    @property
    def categories(self) -> FrozenSet[str]:
        return self._categories

    def allows(self, category: str, subcategory: Optional[str], action_type: str) -> bool:
        sub = subcategory or ""
        for cat, s, act in self._triples:
            if cat != category:
                continue
            if s not in (WILDCARD, sub):
                continue
            if act not in (WILDCARD, action_type):
                continue
            return True
        return False


@dataclass
class LedgerConfig:
    """Runtime configuration shared by the ledger and every workflow."""

    starting_grant: int = 200

    # Marketplace escrow
    marketplace_commission_rate: Decimal = Decimal("0.05")
    record_platform_commission: bool = False
    platform_user_id: int = 0

    # Conversion to real money
    conversion_min: int = 25000
    conversion_max: int = 100000
    conversion_payout_min: Decimal = Decimal("20.00")
    conversion_payout_max: Decimal = Decimal("95.00")
    conversion_commission_rate: Decimal = Decimal("0.20")
    conversion_levels: Tuple[str, ...] = ("maestro", "experto", "gurú")

    # Direct withdrawal
    withdrawal_min: int = 1
    withdrawal_fee_rate: Decimal = Decimal("0.05")
    withdrawal_levels: Tuple[str, ...] = ("constructor", "orador", "visionario")

    admin_roles: Tuple[str, ...] = ("admin", "super_admin")
    taxonomy: Taxonomy = field(default_factory=Taxonomy)

    # HTTP surface
    admin_key: str = "admin-test-key-do-not-use-in-production"
    jwt_secret: str = ""

    def __post_init__(self):
        if self.conversion_min <= 0 or self.conversion_min > self.conversion_max:
            raise ValueError("conversion band must satisfy 0 < min <= max")
        if self.conversion_payout_min > self.conversion_payout_max:
            raise ValueError("conversion payout band must satisfy min <= max")
        for name in ("marketplace_commission_rate", "conversion_commission_rate", "withdrawal_fee_rate"):
            rate = Decimal(getattr(self, name))
            if rate < 0 or rate >= 1:
                raise ValueError(f"{name} must be in [0, 1)")
            setattr(self, name, rate)
        if self.starting_grant < 0:
            raise ValueError("starting_grant must be >= 0")
        if self.platform_user_id < 0:
            raise ValueError("platform_user_id must be >= 0")

    def is_admin(self, role: Optional[str]) -> bool:
        return role in self.admin_roles
