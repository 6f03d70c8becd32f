"""Access/refresh token issuance backed by Redis.

Keys:

* ``refresh_token:{user_id}`` holds the single live refresh token per user.
* ``blacklist:{sha256(token)}`` marks a revoked access token until it would
  have expired anyway.
* ``password_reset:{token}`` maps a one-time reset token to a user id.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidRefreshToken, UnauthorizedError
from app.core.security import (
    TokenError,
    TokenExpired,
    create_access_token,
    create_refresh_token,
    decode_token,
    read_unverified_expiry,
    token_fingerprint,
)
from app.core.settings import settings
from app.models.user import User
from app.schemas.auth import TokenPair
from app.services import audit
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)

# Replace KEYS[1] with ARGV[2] only while it still holds ARGV[1].
_ROTATE_REFRESH_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current == ARGV[1] then
    redis.call('SET', KEYS[1], ARGV[2], 'EX', tonumber(ARGV[3]))
    return 1
end
return 0
"""


def refresh_key(user_id: UUID | str) -> str:
    return f"refresh_token:{user_id}"


def blacklist_key(token: str) -> str:
    return f"blacklist:{token_fingerprint(token)}"


def reset_key(token: str) -> str:
    return f"password_reset:{token}"


def _refresh_ttl_seconds() -> int:
    return settings.refresh_token_expire_days * 24 * 60 * 60


def _mint_pair(user_id: UUID | str, email: str) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(str(user_id), email),
        refresh_token=create_refresh_token(str(user_id), email),
        expires_in=settings.access_token_expire_minutes * 60,
    )


async def issue_tokens(user_id: UUID | str, email: str) -> TokenPair:
    """Mint a pair and make its refresh token the user's only live one."""
    pair = _mint_pair(user_id, email)
    redis = get_redis_client()
    await redis.set(refresh_key(user_id), pair.refresh_token, ex=_refresh_ttl_seconds())
    return pair


async def rotate_refresh_token(db: AsyncSession, refresh_token: str) -> TokenPair:
    try:
        payload = decode_token(refresh_token, expected_type="refresh")
    except TokenError as exc:
        audit.record_event("auth.refresh", outcome="failure", reason=str(exc))
        raise InvalidRefreshToken("Invalid or expired refresh token") from exc

    try:
        user_id = UUID(str(payload["user_id"]))
    except ValueError as exc:
        raise InvalidRefreshToken("Invalid or expired refresh token") from exc
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("User not found or inactive")

    pair = _mint_pair(user.id, user.email)
    redis = get_redis_client()
    rotate = redis.register_script(_ROTATE_REFRESH_SCRIPT)
    swapped = await rotate(
        keys=[refresh_key(user.id)],
        args=[refresh_token, pair.refresh_token, _refresh_ttl_seconds()],
    )
    if not swapped:
        audit.record_event("auth.refresh", actor_id=user.id, outcome="failure", reason="stale refresh token")
        raise InvalidRefreshToken("Invalid or expired refresh token")
    return pair


async def revoke_access_token(token: str) -> bool:
    """Blacklist ``token`` for the rest of its lifetime; False when nothing was stored."""
    expires_at = read_unverified_expiry(token)
    if expires_at is None:
        return False
    remaining = expires_at - int(time.time())
    if remaining <= 0:
        return False
    redis = get_redis_client()
    await redis.set(blacklist_key(token), "1", ex=remaining)
    return True


async def is_access_token_revoked(token: str) -> bool:
    redis = get_redis_client()
    return bool(await redis.exists(blacklist_key(token)))


async def authenticate_access_token(token: str) -> dict[str, Any]:
    """Decode a bearer token, treating a blacklisted token like a forged one."""
    if await is_access_token_revoked(token):
        raise UnauthorizedError("Token has been revoked")
    try:
        return decode_token(token, expected_type="access")
    except TokenExpired as exc:
        raise UnauthorizedError("Token expired") from exc
    except TokenError as exc:
        raise UnauthorizedError("Invalid token") from exc


async def force_logout_all_sessions(user_id: UUID | str) -> None:
    redis = get_redis_client()
    await redis.delete(refresh_key(user_id))


async def logout(user_id: UUID | str | None, access_token: str | None) -> None:
    """Best-effort sign-out; store failures are logged, never raised."""
    if access_token:
        try:
            await revoke_access_token(access_token)
        except Exception:
            logger.exception("Failed to blacklist access token on logout", extra={"target_user_id": str(user_id)})
    if user_id is None:
        return
    try:
        await force_logout_all_sessions(user_id)
    except Exception:
        logger.exception("Failed to drop refresh token on logout", extra={"target_user_id": str(user_id)})


async def store_password_reset_token(user_id: UUID | str) -> str:
    token = str(uuid.uuid4())
    redis = get_redis_client()
    await redis.setex(reset_key(token), settings.password_reset_token_ttl_seconds, str(user_id))
    return token


async def consume_password_reset_token(token: str) -> UUID | None:
    """Single use: the lookup deletes the key atomically."""
    redis = get_redis_client()
    value = await redis.getdel(reset_key(token))
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None
