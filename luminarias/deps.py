"""Dependency helpers for router modules."""

from fastapi import Header
from starlette.requests import Request

from luminarias.errors import (
    AccountNotFound,
    AlreadyProcessed,
    CapacityExceeded,
    Indeterminate,
    InsufficientBalance,
    InvalidAmount,
    InvalidClassification,
    InvalidRequest,
    InvalidState,
    InvalidTarget,
    LedgerError,
    NotAuthorized,
    NotEligible,
    NotFound,
    OutOfRange,
    OutOfStock,
    StorageFailure,
)

# Most specific class first.
ERROR_STATUS = (
    (InsufficientBalance, 400),
    (InvalidAmount, 400),
    (InvalidClassification, 400),
    (InvalidRequest, 400),
    (OutOfRange, 400),
    (InvalidTarget, 400),
    (AccountNotFound, 404),
    (NotFound, 404),
    (NotAuthorized, 403),
    (NotEligible, 403),
    (InvalidState, 409),
    (AlreadyProcessed, 409),
    (CapacityExceeded, 409),
    (OutOfStock, 409),
    (StorageFailure, 503),
    (Indeterminate, 503),
)

INDETERMINATE_DETAIL = "Outcome unknown; please check your balance/history before retrying"


def get_server(request: Request):
    return request.app.state.server


def status_for(exc: LedgerError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


async def current_user(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
) -> dict:
    return await get_server(request).auth.get_current_user(x_api_key, authorization)


async def admin_user(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
) -> dict:
    return await get_server(request).auth.require_admin(x_api_key, authorization)

