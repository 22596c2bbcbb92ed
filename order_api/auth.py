"""
Authentication Module

Resolves the current request's session into an ``Identity``.

Sessions are issued by the storefront's identity provider as HS256 JWT
bearer tokens signed with a shared secret (``JWT_SECRET_KEY``). Claims:

    sub   - user id (string or int)
    name  - display name
    role  - CUSTOMER | BRANCH_MANAGER | RESTAURANT_ADMIN | SUPER_ADMIN

A missing, malformed, expired or tampered token resolves to ``None``;
route handlers decide whether that is an error.

Usage:
    @app.get("/order")
    async def list_orders(identity: Identity = Depends(require_identity)):
        ...
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, Request
from jose import JWTError, jwt

from order_api.core.config import get_settings
from order_api.core.errors import Unauthenticated
from order_api.models import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller. Role is fixed for the request."""
    id: int
    name: Optional[str]
    role: UserRole


def create_access_token(
    user_id: int,
    role: UserRole,
    name: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Mint a session token the way the identity provider does."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "name": name,
        "role": UserRole(role).value,
        "exp": expire,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def identity_from_claims(claims: dict[str, Any]) -> Optional[Identity]:
    try:
        return Identity(
            id=int(claims["sub"]),
            name=claims.get("name"),
            role=UserRole(claims["role"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


async def get_current_identity(request: Request) -> Optional[Identity]:
    """Resolve the bearer token on the request, or None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None

    token = auth_header.split(" ", 1)[1]
    try:
        claims = decode_token(token)
    except JWTError as e:
        logger.warning(f"Rejected session token: {e}")
        return None

    identity = identity_from_claims(claims)
    if identity is None:
        logger.warning("Rejected session token: missing or invalid claims")
    return identity


async def require_identity(
    identity: Optional[Identity] = Depends(get_current_identity),
) -> Identity:
    if identity is None:
        raise Unauthenticated()
    return identity
