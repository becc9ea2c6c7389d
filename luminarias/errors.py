"""
errors.py - Typed failures surfaced by the ledger and its workflows.

Every error carries a stable ``code`` so callers (routers, jobs) can branch
on it without string matching.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""

    code = "ledger_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


# -- validation ---------------------------------------------------------------

class InvalidAmount(LedgerError):
    code = "invalid_amount"


class InvalidClassification(LedgerError):
    code = "invalid_classification"


class InvalidRequest(LedgerError):
    code = "invalid_request"


class OutOfRange(LedgerError):
    code = "out_of_range"


# -- domain -------------------------------------------------------------------

class InsufficientBalance(LedgerError):
    code = "insufficient_balance"

    def __init__(self, user_id: int, balance: int, required: int):
        super().__init__(
            f"Insufficient balance for user {user_id}: have {balance}, need {required}"
        )
        self.user_id = user_id
        self.balance = balance
        self.required = required


class AccountNotFound(LedgerError):
    code = "account_not_found"

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} has no Luminarias account")
        self.user_id = user_id


class NotFound(LedgerError):
    code = "not_found"


class InvalidTarget(LedgerError):
    code = "invalid_target"


class CapacityExceeded(LedgerError):
    code = "capacity_exceeded"


class OutOfStock(LedgerError):
    code = "out_of_stock"


class InvalidState(LedgerError):
    code = "invalid_state"


class NotEligible(LedgerError):
    code = "not_eligible"


class AlreadyProcessed(LedgerError):
    code = "already_processed"


class NotAuthorized(LedgerError):
    code = "not_authorized"


# -- infrastructure -----------------------------------------------------------

class StorageFailure(LedgerError):
    """The database failed mid-operation and the unit of work was rolled back."""

    code = "storage_failure"


class Indeterminate(LedgerError):
    """The outcome is unknown: the commit may or may not have landed.

    Callers must re-read balance/history before retrying.
    """

    code = "indeterminate"
