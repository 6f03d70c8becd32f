from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.settings import settings

TokenType = Literal["access", "refresh"]

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenError(ValueError):
    """Raised when a token is malformed, tampered with, or of the wrong type."""


class TokenExpired(TokenError):
    pass


def get_password_hash(password: str) -> str:
    min_len = settings.password_min_length
    if len(password) < min_len:
        raise ValueError(f"Password too short; minimum {min_len} characters")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _secret_for(token_type: TokenType) -> str:
    # Distinct keys: a leaked access-token key must not be able to mint refresh tokens.
    if token_type == "refresh":
        return settings.jwt_refresh_secret
    return settings.jwt_access_secret


def _default_lifetime(token_type: TokenType) -> timedelta:
    if token_type == "refresh":
        return timedelta(days=settings.refresh_token_expire_days)
    return timedelta(minutes=settings.access_token_expire_minutes)


def create_token(
    token_type: TokenType,
    user_id: str,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else _default_lifetime(token_type))
    to_encode: dict[str, Any] = {
        "user_id": user_id,
        "email": email,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(to_encode, _secret_for(token_type), algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, email: str, expires_delta: timedelta | None = None) -> str:
    return create_token("access", user_id, email, expires_delta)


def create_refresh_token(user_id: str, email: str, expires_delta: timedelta | None = None) -> str:
    return create_token("refresh", user_id, email, expires_delta)


def decode_token(token: str, expected_type: TokenType = "access") -> dict[str, Any]:
    try:
        payload = jwt.decode(token, _secret_for(expected_type), algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise TokenExpired("Token expired") from exc
    except JWTError as exc:
        raise TokenError("Invalid token") from exc
    if payload.get("type") != expected_type:
        raise TokenError(f"Unexpected token type: {payload.get('type')}")
    if not payload.get("user_id") or not payload.get("exp"):
        raise TokenError("Invalid token")
    return payload


def read_unverified_expiry(token: str) -> int | None:
    """Return the ``exp`` claim without verifying the signature."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    return int(exp) if isinstance(exp, (int, float)) else None


def token_fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def read_signed_subject(token: str) -> str | None:
    """``user_id`` of a correctly signed access token, even after it expired."""
    try:
        payload = jwt.decode(
            token,
            _secret_for("access"),
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": False},
        )
    except JWTError:
        return None
    if payload.get("type") != "access" or not payload.get("user_id"):
        return None
    return str(payload["user_id"])
