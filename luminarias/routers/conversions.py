"""Conversions router — /api/conversions/* and /api/withdrawals/* endpoints."""

from fastapi import APIRouter, Depends
from starlette.requests import Request

from luminarias.conversion import quote
from luminarias.deps import current_user, get_server
from luminarias.errors import OutOfRange
from luminarias.models import ConversionRequest, WithdrawalRequest

router = APIRouter()


@router.get("/api/conversions/quote")
async def conversion_quote(request: Request, amount: int):
    cfg = get_server(request).config
    if not cfg.conversion_min <= amount <= cfg.conversion_max:
        raise OutOfRange(
            f"Conversion amount must be between {cfg.conversion_min} and {cfg.conversion_max} Luminarias"
        )
    return {"luminarias_amount": amount, **quote(amount, cfg)}


@router.post("/api/conversions")
async def request_conversion(
    request: Request, req: ConversionRequest, caller: dict = Depends(current_user),
):
    srv = get_server(request)
    return await srv.conversions.request_conversion(
        caller["user_id"], req.luminarias_amount, req.payment_method,
        payment_details=req.payment_details, notes=req.notes,
    )


@router.get("/api/conversions")
async def my_conversions(
    request: Request, limit: int = 50, offset: int = 0, caller: dict = Depends(current_user),
):
    srv = get_server(request)
    return await srv.conversions.list_for_user(caller["user_id"], limit=min(limit, 200), offset=offset)


@router.post("/api/withdrawals")
async def request_withdrawal(
    request: Request, req: WithdrawalRequest, caller: dict = Depends(current_user),
):
    srv = get_server(request)
    return await srv.withdrawals.request_withdrawal(
        caller["user_id"], req.amount, req.withdrawal_type, req.payment_method,
        payment_details=req.payment_details, notes=req.notes,
    )


@router.get("/api/withdrawals")
async def my_withdrawals(
    request: Request, limit: int = 50, offset: int = 0, caller: dict = Depends(current_user),
):
    srv = get_server(request)
    return await srv.withdrawals.list_for_user(caller["user_id"], limit=min(limit, 200), offset=offset)
