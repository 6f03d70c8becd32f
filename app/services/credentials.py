from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequestError, DuplicateIdentity, UnauthorizedError
from app.core.security import get_password_hash, pwd_context, verify_password
from app.models.department import Department
from app.models.user import User
from app.services import audit, sessions

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return pwd_context.hash("timing-equalizer-not-a-real-password")


def constant_time_verify(user_password_hash: Optional[str], password: str) -> bool:
    if user_password_hash:
        return verify_password(password, user_password_hash)
    # Burn the same bcrypt cost so unknown emails are indistinguishable by timing.
    verify_password(password, _dummy_hash())
    return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _hash_or_bad_request(password: str) -> str:
    try:
        return get_password_hash(password)
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def register_user(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    department_id: UUID,
    is_ai_user: bool = False,
) -> User:
    email = normalize_email(email)
    if await get_user_by_email(db, email) is not None:
        raise DuplicateIdentity()
    department = await db.get(Department, department_id)
    if department is None or not department.is_active:
        raise BadRequestError("Invalid department ID")
    user = User(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=email,
        hashed_password=_hash_or_bad_request(password),
        department_id=department_id,
        is_ai_user=is_ai_user,
        is_active=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateIdentity() from exc
    await db.refresh(user)
    audit.record_event("auth.register", actor_id=user.id, department_id=department_id)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """Verify a login; every failure looks the same to the caller."""
    user = await get_user_by_email(db, email)
    password_ok = constant_time_verify(user.hashed_password if user else None, password)
    if user is None or not password_ok or not user.is_active:
        audit.record_event("auth.login", outcome="failure", email=normalize_email(email))
        raise UnauthorizedError("Invalid email or password")
    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)
    audit.record_event("auth.login", actor_id=user.id)
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise BadRequestError("Current password is incorrect")
    if current_password == new_password:
        raise BadRequestError("New password must be different from the current password")
    user.hashed_password = _hash_or_bad_request(new_password)
    await db.commit()
    await sessions.force_logout_all_sessions(user.id)
    audit.record_event("auth.password_changed", actor_id=user.id)


async def request_password_reset(db: AsyncSession, email: str) -> str | None:
    """Return a reset token, or None when no active account matches."""
    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown or inactive email")
        return None
    token = await sessions.store_password_reset_token(user.id)
    audit.record_event("auth.password_reset_requested", actor_id=user.id)
    return token


async def reset_password(db: AsyncSession, token: str, new_password: str) -> None:
    # Validate before consuming so a too-short password does not burn the token.
    hashed = _hash_or_bad_request(new_password)
    user_id = await sessions.consume_password_reset_token(token)
    if user_id is None:
        raise BadRequestError("Invalid or expired reset token")
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise BadRequestError("Invalid or expired reset token")
    user.hashed_password = hashed
    await db.commit()
    await sessions.force_logout_all_sessions(user.id)
    audit.record_event("auth.password_reset", actor_id=user.id)
