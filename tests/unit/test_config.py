"""
test_config.py - LedgerConfig validation and the classification taxonomy.
"""

from decimal import Decimal

import pytest

from luminarias.config import LedgerConfig, Taxonomy


class TestLedgerConfig:

    def test_defaults(self):
        cfg = LedgerConfig()
        assert cfg.starting_grant == 200
        assert cfg.marketplace_commission_rate == Decimal("0.05")
        assert cfg.conversion_min == 25000
        assert cfg.conversion_max == 100000
        assert cfg.record_platform_commission is False

    def test_rates_coerced_to_decimal(self):
        cfg = LedgerConfig(marketplace_commission_rate="0.10")
        assert cfg.marketplace_commission_rate == Decimal("0.10")

    @pytest.mark.parametrize("kwargs", [
        {"conversion_min": 0},
        {"conversion_min": 200000},
        {"conversion_payout_min": Decimal("100")},
        {"marketplace_commission_rate": Decimal("1")},
        {"withdrawal_fee_rate": Decimal("-0.1")},
        {"starting_grant": -1},
        {"platform_user_id": -1},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            LedgerConfig(**kwargs)

    def test_is_admin(self):
        cfg = LedgerConfig()
        assert cfg.is_admin("admin")
        assert cfg.is_admin("super_admin")
        assert not cfg.is_admin("creator")
        assert not cfg.is_admin(None)


class TestTaxonomy:

    def test_exact_and_wildcards(self):
        tax = Taxonomy()
        assert tax.allows("transfers", "user_to_user", "send_transfer")
        assert not tax.allows("transfers", "user_to_user", "steal")
        assert tax.allows("marketplace", "mentoring", "book_service")
        assert tax.allows("challenges", "weekly", "anything")
        assert not tax.allows("lottery", "", "jackpot")

    def test_custom_triples(self):
        tax = Taxonomy([("games", "trivia", "win")])
        assert tax.categories == frozenset({"games"})
        assert tax.allows("games", "trivia", "win")
        assert not tax.allows("challenges", "daily", "done")
