"""Marketplace router — /api/marketplace/* endpoints: listings and escrowed bookings."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from starlette.requests import Request

from luminarias.deps import current_user, get_server
from luminarias.models import BookRequest, CancelRequest, CompleteRequest, ServiceRequest

router = APIRouter()


@router.get("/api/marketplace/services")
async def browse_services(
    request: Request,
    category: Optional[str] = None,
    provider_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
):
    srv = get_server(request)
    return await srv.escrow.list_services(
        category=category, provider_id=provider_id, limit=min(limit, 200), offset=offset,
    )


@router.get("/api/marketplace/services/{service_id}")
async def get_service(request: Request, service_id: int):
    return await get_server(request).escrow.get_service(service_id)


@router.post("/api/marketplace/services")
async def create_service(request: Request, req: ServiceRequest, caller: dict = Depends(current_user)):
    srv = get_server(request)
    if caller["role"] != "creator" and not srv.config.is_admin(caller["role"]):
        raise HTTPException(status_code=403, detail="Creator account required to list services")
    return await srv.escrow.create_service(
        provider_id=caller["user_id"],
        name=req.service_name,
        description=req.service_description,
        category=req.category,
        price=req.price_luminarias,
        max_clients=req.max_clients,
        service_type=req.service_type,
        duration_minutes=req.duration_minutes,
        delivery_method=req.delivery_method,
    )


@router.delete("/api/marketplace/services/{service_id}")
async def deactivate_service(request: Request, service_id: int, caller: dict = Depends(current_user)):
    srv = get_server(request)
    return await srv.escrow.deactivate_service(service_id, caller["user_id"])


@router.post("/api/marketplace/services/{service_id}/book")
async def book_service(
    request: Request, service_id: int, req: Optional[BookRequest] = None,
    caller: dict = Depends(current_user),
):
    srv = get_server(request)
    req = req or BookRequest()
    return await srv.escrow.book(
        service_id, caller["user_id"],
        scheduled_at=req.scheduled_at, delivery_notes=req.delivery_notes,
    )


@router.post("/api/marketplace/bookings/{booking_id}/complete")
async def complete_booking(
    request: Request, booking_id: int, req: Optional[CompleteRequest] = None,
    caller: dict = Depends(current_user),
):
    srv = get_server(request)
    notes = req.completion_notes if req else None
    return await srv.escrow.complete(booking_id, caller["user_id"], completion_notes=notes)


@router.post("/api/marketplace/bookings/{booking_id}/cancel")
async def cancel_booking(
    request: Request, booking_id: int, req: Optional[CancelRequest] = None,
    caller: dict = Depends(current_user),
):
    srv = get_server(request)
    reason = req.reason if req else None
    return await srv.escrow.cancel(booking_id, acting_user_id=caller["user_id"], reason=reason)


@router.get("/api/marketplace/bookings")
async def my_bookings(
    request: Request,
    role: str = "client",
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    caller: dict = Depends(current_user),
):
    srv = get_server(request)
    if role == "client":
        return await srv.escrow.list_bookings_for_client(
            caller["user_id"], status=status, limit=min(limit, 200), offset=offset,
        )
    if role == "provider":
        return await srv.escrow.list_bookings_for_provider(
            caller["user_id"], status=status, limit=min(limit, 200), offset=offset,
        )
    raise HTTPException(status_code=400, detail="role must be 'client' or 'provider'")


@router.get("/api/marketplace/bookings/{booking_id}")
async def get_booking(request: Request, booking_id: int, caller: dict = Depends(current_user)):
    srv = get_server(request)
    booking = await srv.escrow.get_booking(booking_id)
    if caller["user_id"] not in (booking["client_id"], booking["provider_id"]) \
            and not srv.config.is_admin(caller["role"]):
        raise HTTPException(status_code=403, detail="Not a party to this booking")
    return booking
