"""
auth.py - API key + JWT authentication over the users directory.

Two ways to authenticate a request:
  1. X-API-Key header: a user's key, or the configured admin key
  2. Authorization: Bearer <jwt> issued by POST /api/auth/login in exchange
     for a valid user API key

resolve_user() checks the bearer token first, then the API key. Identity
only ever comes from here, never from a request body.
"""

import logging
import secrets
import time
from typing import TYPE_CHECKING, Optional

import jwt as pyjwt
from fastapi import Header, HTTPException

from luminarias.config import USER_ROLES
from luminarias.errors import InvalidRequest

if TYPE_CHECKING:
    from luminarias.ledger import Ledger

logger = logging.getLogger("auth")

JWT_TTL = 86400  # 24 hours
# Never owns an account: user ids start at 1 and platform_user_id must be >= 0.
ADMIN_PRINCIPAL_ID = -1


class AuthService:
    """Registration, login and role checks for the REST API."""

    def __init__(self, ledger: "Ledger", admin_key: str = "", jwt_secret: str = ""):
        self.ledger = ledger
        self._storage = ledger.storage
        self._admin_key = admin_key or ledger.config.admin_key
        self._jwt_secret = jwt_secret or ledger.config.jwt_secret or secrets.token_hex(32)
        if not (jwt_secret or ledger.config.jwt_secret):
            logger.warning(
                "No --jwt-secret provided; generated ephemeral secret "
                "(JWTs will invalidate on restart)"
            )

    @staticmethod
    def generate_api_key() -> str:
        return secrets.token_hex(16)

    # -------------------------------------------------------------------
    # JWT
    # -------------------------------------------------------------------

    def issue_jwt(self, user: dict) -> str:
        now = int(time.time())
        payload = {
            "sub": str(user["user_id"]),
            "role": user["role"],
            "iat": now,
            "exp": now + JWT_TTL,
        }
        return pyjwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def decode_jwt(self, token: str) -> Optional[dict]:
        try:
            return pyjwt.decode(token, self._jwt_secret, algorithms=["HS256"])
        except pyjwt.ExpiredSignatureError:
            return None
        except pyjwt.InvalidTokenError:
            return None

    # -------------------------------------------------------------------
    # Registration / login
    # -------------------------------------------------------------------

    async def register(self, nickname: str, role: str = "user") -> dict:
        """Create the user and open their ledger account with the starting grant."""
        if role not in USER_ROLES:
            raise InvalidRequest("Role must be 'user' or 'creator'")
        nickname = (nickname or "").strip()
        if not nickname:
            raise InvalidRequest("A nickname is required")

        api_key = self.generate_api_key()
        grant = self.ledger.config.starting_grant
        async with self.ledger.unit_of_work() as uow:
            if await self._storage.users.get_by_nickname(nickname) is not None:
                raise InvalidRequest(f"Nickname '{nickname}' is already taken")
            user_id = await self._storage.users.insert(nickname, role=role, api_key=api_key)
            await uow.open_account(user_id, grant)
            user = await self._storage.users.get(user_id)
        logger.info("Registered user %d (%s) role=%s grant=%d", user_id, nickname, role, grant)
        return user

    async def login(self, api_key: str) -> Optional[dict]:
        """Exchange a user's API key for a JWT. None if the key is unknown.

        The admin key is not exchangeable: it names no users row.
        """
        if not api_key or secrets.compare_digest(api_key, self._admin_key):
            return None
        async with self._storage.snapshot():
            user = await self._storage.users.get_by_api_key(api_key)
        if user is None:
            logger.warning("Login rejected: unknown API key")
            return None
        return {
            "user_id": user["user_id"],
            "nickname": user["nickname"],
            "role": user["role"],
            "token": self.issue_jwt(user),
        }

    async def set_role(self, user_id: int, role: str) -> Optional[dict]:
        async with self._storage.transaction():
            if not await self._storage.users.set_role(user_id, role):
                return None
            return await self._storage.users.get(user_id)

    async def set_creator_level(self, user_id: int, creator_level: str) -> Optional[dict]:
        async with self._storage.transaction():
            if not await self._storage.users.set_creator_level(user_id, creator_level):
                return None
            return await self._storage.users.get(user_id)

    # -------------------------------------------------------------------
    # FastAPI dependencies
    # -------------------------------------------------------------------

    async def resolve_user(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> Optional[dict]:
        """Resolve JWT or API key to a user. Returns None if no credentials."""
        if authorization.startswith("Bearer "):
            claims = self.decode_jwt(authorization[7:])
            if claims and str(claims.get("sub", "")).isdigit():
                async with self._storage.snapshot():
                    user = await self._storage.users.get(int(claims["sub"]))
                if user:
                    return user

        if not x_api_key:
            return None

        if secrets.compare_digest(x_api_key, self._admin_key):
            return {
                "user_id": ADMIN_PRINCIPAL_ID,
                "nickname": "_admin",
                "role": "super_admin",
                "creator_level": "",
                "api_key": x_api_key,
            }

        async with self._storage.snapshot():
            return await self._storage.users.get_by_api_key(x_api_key)

    async def get_current_user(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> dict:
        user = await self.resolve_user(x_api_key, authorization)
        if user is None:
            raise HTTPException(
                status_code=401,
                detail="Missing or invalid credentials. Pass Authorization: Bearer <jwt> or X-API-Key header.",
            )
        return user

    async def require_admin(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> dict:
        user = await self.get_current_user(x_api_key, authorization)
        if not self.ledger.config.is_admin(user["role"]):
            logger.warning("User %s (role %s) denied admin access", user["user_id"], user["role"])
            raise HTTPException(status_code=403, detail="Admin access required")
        return user
