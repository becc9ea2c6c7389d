"""Auth router — /api/auth/* endpoints."""

from fastapi import APIRouter, Depends, Header, HTTPException
from starlette.requests import Request

from luminarias.deps import current_user, get_server
from luminarias.models import RegisterRequest

router = APIRouter()


@router.post("/api/auth/register")
async def auth_register(request: Request, req: RegisterRequest):
    srv = get_server(request)
    user = await srv.auth.register(req.nickname, role=req.role)
    balance = await srv.ledger.get_balance(user["user_id"])
    return {
        "user_id": user["user_id"],
        "nickname": user["nickname"],
        "role": user["role"],
        "api_key": user["api_key"],
        "balance": balance["current"],
    }


@router.post("/api/auth/login")
async def auth_login(request: Request, x_api_key: str = Header(default="")):
    """Exchange the caller's X-API-Key for a short-lived JWT."""
    user = await get_server(request).auth.login(x_api_key)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Login requires a valid user X-API-Key header.",
        )
    return user


@router.get("/api/auth/me")
async def auth_me(caller: dict = Depends(current_user)):
    return {
        "user_id": caller["user_id"],
        "nickname": caller["nickname"],
        "role": caller["role"],
        "creator_level": caller["creator_level"],
    }
