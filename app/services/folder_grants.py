from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.permissions import FolderPermissionType
from app.models.department import Department
from app.models.folder_permission import FolderPermission
from app.models.types import DepartmentRef, PrincipalRef, UserRef, principal_ref_from_columns
from app.models.user import User
from app.services import audit, folders
from app.services.authz import Principal
from app.services.folder_access import resolve

logger = logging.getLogger(__name__)


def make_principal_ref(user_id: UUID | None, department_id: UUID | None) -> PrincipalRef:
    try:
        return principal_ref_from_columns(user_id, department_id)
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc


async def ensure_can_manage(db: AsyncSession, principal: Principal, folder_id: UUID) -> None:
    """Only ``manage`` on the folder (or the system override) allows ACL changes."""
    decision = await resolve(db, principal, folder_id, FolderPermissionType.MANAGE)
    if not decision.allowed:
        raise ForbiddenError("Insufficient permissions to manage folder access")


async def _ensure_target_exists(db: AsyncSession, target: PrincipalRef) -> None:
    if isinstance(target, UserRef):
        if await db.get(User, target.id) is None:
            raise NotFoundError("User not found")
    elif isinstance(target, DepartmentRef):
        if await db.get(Department, target.id) is None:
            raise NotFoundError("Department not found")


def _principal_clause(target: PrincipalRef):
    if isinstance(target, UserRef):
        return FolderPermission.user_id == target.id
    return FolderPermission.department_id == target.id


async def grant_permission(
    db: AsyncSession,
    principal: Principal,
    folder_id: UUID,
    target: PrincipalRef,
    permission_type: FolderPermissionType | str,
) -> FolderPermission:
    level = FolderPermissionType(permission_type)
    await folders.require_folder(db, folder_id)
    await ensure_can_manage(db, principal, folder_id)
    await _ensure_target_exists(db, target)

    stmt = select(FolderPermission).where(
        FolderPermission.folder_id == folder_id,
        _principal_clause(target),
        FolderPermission.permission_type == level.value,
    )
    existing = (await db.execute(stmt)).scalar_one_or_none()
    now = datetime.now(timezone.utc)
    if existing is not None:
        if existing.is_active:
            raise ConflictError("Permission already granted")
        existing.is_active = True
        existing.granted_by_user_id = principal.user_id
        existing.granted_at = now
        entry = existing
    else:
        entry = FolderPermission(
            folder_id=folder_id,
            user_id=target.id if isinstance(target, UserRef) else None,
            department_id=target.id if isinstance(target, DepartmentRef) else None,
            permission_type=level.value,
            granted_by_user_id=principal.user_id,
            granted_at=now,
            is_active=True,
        )
        db.add(entry)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("Permission already granted") from exc
    await db.refresh(entry)
    audit.record_event(
        "folder_permission.granted",
        actor_id=principal.user_id,
        folder_id=folder_id,
        principal_kind=target.kind,
        principal_id=target.id,
        permission_type=level.value,
    )
    return entry


async def revoke_permission(
    db: AsyncSession,
    principal: Principal,
    folder_id: UUID,
    *,
    user_id: UUID | None = None,
    department_id: UUID | None = None,
    permission_type: FolderPermissionType | str | None = None,
) -> int:
    """Soft-delete matching active entries; all given filters must match.

    Revoking something that is not granted is not an error; the count is 0.
    """
    await folders.require_folder(db, folder_id)
    await ensure_can_manage(db, principal, folder_id)

    stmt = select(FolderPermission).where(
        FolderPermission.folder_id == folder_id,
        FolderPermission.is_active.is_(True),
    )
    if user_id is not None:
        stmt = stmt.where(FolderPermission.user_id == user_id)
    if department_id is not None:
        stmt = stmt.where(FolderPermission.department_id == department_id)
    if permission_type is not None:
        stmt = stmt.where(FolderPermission.permission_type == FolderPermissionType(permission_type).value)
    entries = list((await db.execute(stmt)).scalars().all())
    for entry in entries:
        entry.is_active = False
    if entries:
        await db.commit()
    audit.record_event(
        "folder_permission.revoked",
        actor_id=principal.user_id,
        folder_id=folder_id,
        user_id=user_id,
        department_id=department_id,
        permission_type=FolderPermissionType(permission_type).value if permission_type else None,
        revoked=len(entries),
    )
    return len(entries)


async def list_folder_permissions(
    db: AsyncSession, principal: Principal, folder_id: UUID
) -> List[FolderPermission]:
    await folders.require_folder(db, folder_id)
    await ensure_can_manage(db, principal, folder_id)
    stmt = (
        select(FolderPermission)
        .where(FolderPermission.folder_id == folder_id, FolderPermission.is_active.is_(True))
        .order_by(FolderPermission.permission_type, FolderPermission.granted_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
