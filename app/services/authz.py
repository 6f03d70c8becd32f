from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import FOLDER_OVERRIDE_PERMISSION, PermissionCode
from app.models.permission import DepartmentPermission, Permission
from app.models.user import User


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated caller as seen by authorization checks."""

    user_id: UUID
    department_id: UUID | None
    email: str
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    def has_permission(self, permission_code: PermissionCode | str) -> bool:
        target = permission_code.value if isinstance(permission_code, PermissionCode) else str(permission_code)
        return target in self.permissions

    @property
    def is_folder_admin(self) -> bool:
        return FOLDER_OVERRIDE_PERMISSION in self.permissions


async def load_permission_names(db: AsyncSession, department_id: UUID | None) -> Set[str]:
    if department_id is None:
        return set()
    stmt = (
        select(Permission.name)
        .join(DepartmentPermission, DepartmentPermission.permission_id == Permission.id)
        .where(
            DepartmentPermission.department_id == department_id,
            Permission.is_active.is_(True),
        )
    )
    result = await db.execute(stmt)
    permissions: set[str] = set()
    for name in result.scalars().all():
        try:
            permissions.add(PermissionCode(name).value)
        except ValueError:
            # Catalog rows without a matching code are ignored rather than trusted.
            continue
    return permissions


async def load_principal(db: AsyncSession, user: User) -> Principal:
    permissions = await load_permission_names(db, user.department_id)
    return Principal(
        user_id=user.id,
        department_id=user.department_id,
        email=user.email,
        permissions=frozenset(permissions),
    )

