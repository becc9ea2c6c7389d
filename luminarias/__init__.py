"""
Luminarias - Ledger & Transaction Engine

Virtual-currency ledger for a gamified content platform: atomic balance
mutations, peer transfers, marketplace escrow, real-money conversion and
withdrawal requests, store purchases, and a REST API over all of it.
"""

__version__ = "0.1.0"

__all__ = [
    "auth",
    "config",
    "conversion",
    "errors",
    "escrow",
    "ledger",
    "server",
    "stats",
    "storage",
    "store",
    "transfer",
    "withdrawal",
]
