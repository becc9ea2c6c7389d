"""Admin router — /api/admin/* endpoints: reviews, adjustments, reconciliation, stats."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from starlette.requests import Request

from luminarias.deps import admin_user, get_server
from luminarias.models import (
    AdjustRequest,
    CancelRequest,
    LevelRequest,
    ReviewRequest,
    RoleRequest,
    StoreItemRequest,
)

router = APIRouter()


@router.get("/api/admin/stats")
async def system_stats(request: Request, admin: dict = Depends(admin_user)):
    return await get_server(request).stats.system_stats()


@router.get("/api/admin/accounts")
async def list_accounts(
    request: Request, limit: int = 100, offset: int = 0, admin: dict = Depends(admin_user),
):
    srv = get_server(request)
    async with srv.storage.snapshot():
        items = await srv.storage.accounts.list_all(limit=min(limit, 500), offset=offset)
        total = await srv.storage.accounts.count()
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.get("/api/admin/entries")
async def entries_by_reference(
    request: Request, reference_type: str, reference_id: str, admin: dict = Depends(admin_user),
):
    """Journal rows posted for one booking, conversion, withdrawal or transfer."""
    return await get_server(request).ledger.list_by_reference(reference_type, reference_id)


# ── Conversions / withdrawals ──

@router.get("/api/admin/conversions")
async def list_conversions(
    request: Request, status: Optional[str] = None, limit: int = 50, offset: int = 0,
    admin: dict = Depends(admin_user),
):
    srv = get_server(request)
    return await srv.conversions.list_all(status=status, limit=min(limit, 200), offset=offset)


@router.post("/api/admin/conversions/{conversion_id}/review")
async def review_conversion(
    request: Request, conversion_id: int, req: ReviewRequest, admin: dict = Depends(admin_user),
):
    srv = get_server(request)
    return await srv.conversions.review(
        conversion_id, req.action, admin["user_id"], admin["role"], notes=req.notes,
    )


@router.get("/api/admin/withdrawals")
async def list_withdrawals(
    request: Request, status: Optional[str] = None, limit: int = 50, offset: int = 0,
    admin: dict = Depends(admin_user),
):
    srv = get_server(request)
    return await srv.withdrawals.list_all(status=status, limit=min(limit, 200), offset=offset)


@router.post("/api/admin/withdrawals/{withdrawal_id}/review")
async def review_withdrawal(
    request: Request, withdrawal_id: int, req: ReviewRequest, admin: dict = Depends(admin_user),
):
    srv = get_server(request)
    return await srv.withdrawals.review(
        withdrawal_id, req.action, admin["user_id"], admin["role"], notes=req.notes,
    )


# ── Users / balances ──

@router.post("/api/admin/users/{user_id}/adjust")
async def adjust_balance(
    request: Request, user_id: int, req: AdjustRequest, admin: dict = Depends(admin_user),
):
    srv = get_server(request)
    tx_id = await srv.ledger.admin_adjust(
        user_id, req.amount, admin["user_id"], req.reason, allow_negative=req.allow_negative,
    )
    balance = await srv.ledger.get_balance(user_id)
    return {"transaction_id": tx_id, "balance": balance}


@router.get("/api/admin/users/{user_id}/balance")
async def user_balance(request: Request, user_id: int, admin: dict = Depends(admin_user)):
    return await get_server(request).ledger.get_balance(user_id)


@router.get("/api/admin/users/{user_id}/reconcile")
async def reconcile(request: Request, user_id: int, admin: dict = Depends(admin_user)):
    return await get_server(request).ledger.reconcile(user_id)


@router.post("/api/admin/users/{user_id}/level")
async def set_level(
    request: Request, user_id: int, req: LevelRequest, admin: dict = Depends(admin_user),
):
    user = await get_server(request).auth.set_creator_level(user_id, req.creator_level)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user_id": user["user_id"], "creator_level": user["creator_level"]}


@router.post("/api/admin/users/{user_id}/role")
async def set_role(
    request: Request, user_id: int, req: RoleRequest, admin: dict = Depends(admin_user),
):
    if admin["role"] != "super_admin":
        raise HTTPException(status_code=403, detail="Super admin access required")
    if req.role not in ("user", "creator", "admin", "super_admin"):
        raise HTTPException(status_code=400, detail="Unknown role")
    user = await get_server(request).auth.set_role(user_id, req.role)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user_id": user["user_id"], "role": user["role"]}


# ── Marketplace / store ──

@router.post("/api/admin/bookings/{booking_id}/cancel")
async def admin_cancel_booking(
    request: Request, booking_id: int, req: Optional[CancelRequest] = None,
    admin: dict = Depends(admin_user),
):
    reason = req.reason if req else None
    return await get_server(request).escrow.cancel(booking_id, acting_user_id=None, reason=reason)


@router.post("/api/admin/store/items")
async def create_store_item(
    request: Request, req: StoreItemRequest, admin: dict = Depends(admin_user),
):
    return await get_server(request).store.create_item(
        name=req.name,
        category=req.category,
        price=req.price_luminarias,
        description=req.description,
        subcategory=req.subcategory,
        item_type=req.item_type,
        target_role=req.target_role,
        stock=req.stock,
        duration_days=req.duration_days,
        max_uses=req.max_uses,
    )
