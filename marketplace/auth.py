"""Bearer-token authentication for the marketplace API.

Tokens are issued by the identity service; this module only verifies them
and resolves the caller to a ``UserRow``.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from marketplace.db.engine import get_session
from marketplace.db.user_tables import UserRow
from marketplace.models.common import UserRole

# ---- JWT (minimal, no PyJWT dependency) ----

_JWT_ALGO = "HS256"
_ACCESS_TTL = 3600 * 24 * 7  # 7 days


def _secret() -> bytes:
    return settings.JWT_SECRET.encode()


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    s += "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s)


def _sign(payload: dict) -> str:
    header = _b64url(json.dumps({"alg": _JWT_ALGO, "typ": "JWT"}).encode())
    body = _b64url(json.dumps(payload).encode())
    sig = hmac.new(_secret(), f"{header}.{body}".encode(), hashlib.sha256).digest()
    return f"{header}.{body}.{_b64url(sig)}"


def _verify(token: str) -> Optional[dict]:
    """Return the payload of a well-signed, unexpired token, else None."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    try:
        expected = hmac.new(_secret(), f"{parts[0]}.{parts[1]}".encode(), hashlib.sha256).digest()
        if not hmac.compare_digest(expected, _b64url_decode(parts[2])):
            return None
        payload = json.loads(_b64url_decode(parts[1]))
    except (ValueError, TypeError):
        return None
    if payload.get("exp", 0) < time.time():
        return None
    return payload


def create_access_token(user_id: str) -> str:
    """Mint an access token in the identity service's format."""
    now = int(time.time())
    return _sign({"sub": user_id, "iat": now, "exp": now + _ACCESS_TTL, "type": "access", "jti": uuid.uuid4().hex[:8]})


# ---- Role checks ----

def is_admin(user: Optional[UserRow]) -> bool:
    if user is None:
        return False
    return bool(user.is_admin or user.is_super_admin) or user.role in (
        UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value,
    )


# ---- FastAPI dependencies ----

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    session: AsyncSession = Depends(get_session),
) -> Optional[UserRow]:
    if not creds:
        return None
    payload = _verify(creds.credentials)
    if not payload or payload.get("type") != "access":
        return None
    result = await session.execute(select(UserRow).where(UserRow.id == payload["sub"]))
    return result.scalar_one_or_none()


async def require_user(user: Optional[UserRow] = Depends(get_current_user)) -> UserRow:
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


async def require_verified_user(user: UserRow = Depends(require_user)) -> UserRow:
    """Reviews and reports can only be written by verified accounts."""
    if not user.is_verified:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account verification required")
    return user


async def require_admin(user: UserRow = Depends(require_user)) -> UserRow:
    if not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
