"""Store router — /api/store/* endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from starlette.requests import Request

from luminarias.deps import current_user, get_server
from luminarias.models import PurchaseRequest

router = APIRouter()


@router.get("/api/store/items")
async def list_items(
    request: Request, category: Optional[str] = None, target_role: Optional[str] = None,
):
    return await get_server(request).store.list_items(category=category, target_role=target_role)


@router.post("/api/store/items/{item_id}/purchase")
async def purchase_item(
    request: Request, item_id: int, req: Optional[PurchaseRequest] = None,
    caller: dict = Depends(current_user),
):
    srv = get_server(request)
    quantity = req.quantity if req else 1
    role = caller["role"] if caller["role"] in ("user", "creator") else "user"
    return await srv.store.purchase(caller["user_id"], item_id, quantity, user_role=role)


@router.get("/api/store/purchases")
async def my_purchases(
    request: Request, limit: int = 50, offset: int = 0, caller: dict = Depends(current_user),
):
    srv = get_server(request)
    return await srv.store.list_purchases(caller["user_id"], limit=min(limit, 200), offset=offset)
