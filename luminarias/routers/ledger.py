"""Ledger router — /api/luminarias/* endpoints: balance, history, transfers, stats."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from starlette.requests import Request

from luminarias.deps import current_user, get_server
from luminarias.models import TransferRequest

router = APIRouter()


@router.get("/api/luminarias/balance")
async def get_balance(request: Request, caller: dict = Depends(current_user)):
    srv = get_server(request)
    return await srv.ledger.get_balance(caller["user_id"])


@router.get("/api/luminarias/transactions")
async def list_transactions(
    request: Request,
    category: Optional[str] = None,
    transaction_type: Optional[str] = None,
    user_role: Optional[str] = None,
    date_from: Optional[float] = None,
    date_to: Optional[float] = None,
    limit: int = 50,
    offset: int = 0,
    caller: dict = Depends(current_user),
):
    srv = get_server(request)
    return await srv.ledger.list_transactions(
        caller["user_id"],
        category=category,
        transaction_type=transaction_type,
        user_role=user_role,
        date_from=date_from,
        date_to=date_to,
        limit=min(limit, 200),
        offset=offset,
    )


@router.get("/api/luminarias/transactions/{tx_id}")
async def get_transaction(request: Request, tx_id: int, caller: dict = Depends(current_user)):
    srv = get_server(request)
    tx = await srv.ledger.get_transaction(tx_id)
    if tx is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    if tx["user_id"] != caller["user_id"] and not srv.config.is_admin(caller["role"]):
        raise HTTPException(status_code=403, detail="You can only view your own transactions")
    return tx


@router.post("/api/luminarias/transfer")
async def transfer(request: Request, req: TransferRequest, caller: dict = Depends(current_user)):
    srv = get_server(request)
    return await srv.transfers.transfer(
        caller["user_id"], req.to_user_id, req.amount, req.description,
    )


@router.get("/api/luminarias/stats/earnings")
async def earnings(request: Request, period_days: int = 30, caller: dict = Depends(current_user)):
    srv = get_server(request)
    return {
        "period_days": period_days,
        "categories": await srv.stats.earnings_by_category(caller["user_id"], period_days),
    }


@router.get("/api/luminarias/stats/spending")
async def spending(request: Request, period_days: int = 30, caller: dict = Depends(current_user)):
    srv = get_server(request)
    return {
        "period_days": period_days,
        "categories": await srv.stats.spending_by_category(caller["user_id"], period_days),
    }
