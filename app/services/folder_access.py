"""Effective folder permissions.

An ACL entry on a folder applies to the folder and, through inheritance, to
every descendant that has not switched ``inherit_permissions`` off. The walk
starts at the target folder and moves toward the root:

* any active entry for the caller's user id or department id whose level is
  at least the required level allows the action;
* a folder with ``inherit_permissions = False`` (or a root) ends the walk and
  denies.

Holders of the ``manage_folders`` system permission skip the walk entirely.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import FolderHierarchyIntegrityError
from app.core.permissions import FolderAccessLevel, FolderPermissionType
from app.core.settings import settings
from app.models.folder import Folder
from app.models.folder_permission import FolderPermission
from app.services import folders
from app.services.authz import Principal

logger = logging.getLogger(__name__)

GrantIndex = Mapping[UUID, Sequence[FolderPermissionType]]


class Decision(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOWED


def evaluate_path(
    path_leaf_first: Iterable[Folder],
    grants: GrantIndex,
    required: FolderPermissionType | str,
) -> Decision:
    """Walk a leaf-to-root path against the caller's grants. No I/O."""
    required = FolderPermissionType(required)
    last = None
    for folder in path_leaf_first:
        last = folder
        if any(level.satisfies(required) for level in grants.get(folder.id, ())):
            return Decision.ALLOWED
        if not folder.inherit_permissions or folder.parent_folder_id is None:
            return Decision.DENIED
    if last is None:
        return Decision.DENIED
    # The path ran out before reaching a root or an inheritance boundary.
    raise FolderHierarchyIntegrityError(details={"folder_id": str(last.id)})


async def load_principal_grants(
    db: AsyncSession,
    principal: Principal,
    folder_ids: Sequence[UUID] | None = None,
) -> Dict[UUID, List[FolderPermissionType]]:
    """Active ACL levels matching the caller's user id or department, keyed by folder."""
    matches = [FolderPermission.user_id == principal.user_id]
    if principal.department_id is not None:
        matches.append(FolderPermission.department_id == principal.department_id)
    stmt = select(FolderPermission.folder_id, FolderPermission.permission_type).where(
        FolderPermission.is_active.is_(True),
        or_(*matches),
    )
    if folder_ids is not None:
        stmt = stmt.where(FolderPermission.folder_id.in_(list(folder_ids)))
    result = await db.execute(stmt)
    grants: dict[UUID, list[FolderPermissionType]] = defaultdict(list)
    for folder_id, permission_type in result.all():
        try:
            grants[folder_id].append(FolderPermissionType(permission_type))
        except ValueError:
            logger.warning(
                "Ignoring folder permission with unknown level",
                extra={"folder_id": str(folder_id), "permission_type": permission_type},
            )
    return dict(grants)


async def resolve(
    db: AsyncSession,
    principal: Principal,
    folder_id: UUID,
    required: FolderPermissionType | str,
) -> Decision:
    required = FolderPermissionType(required)
    if principal.is_folder_admin:
        return Decision.ALLOWED
    chain = await folders.get_ancestor_chain(db, folder_id)
    grants = await load_principal_grants(db, principal, [folder.id for folder in chain])
    decision = evaluate_path(reversed(chain), grants, required)
    logger.debug(
        "Folder access resolved",
        extra={
            "folder_id": str(folder_id),
            "required": required.value,
            "decision": decision.value,
        },
    )
    return decision


def _walk_to_root(folder: Folder, by_id: Mapping[UUID, Folder]) -> Iterator[Folder]:
    current = folder
    for _ in range(settings.folder_max_depth + 1):
        yield current
        if current.parent_folder_id is None:
            return
        parent = by_id.get(current.parent_folder_id)
        if parent is None:
            logger.error(
                "Orphaned folder: parent row missing",
                extra={"folder_id": str(current.id), "parent_folder_id": str(current.parent_folder_id)},
            )
            raise FolderHierarchyIntegrityError(details={"folder_id": str(folder.id)})
        current = parent
    raise FolderHierarchyIntegrityError(details={"folder_id": str(folder.id)})


async def _load_folder_index(db: AsyncSession) -> Dict[UUID, Folder]:
    # Inactive rows stay in the index so walks can pass through them.
    result = await db.execute(select(Folder))
    return {folder.id: folder for folder in result.scalars().all()}


async def get_user_accessible_folders(
    db: AsyncSession,
    principal: Principal,
    permission_type: FolderPermissionType | str = FolderPermissionType.READ,
) -> List[Folder]:
    required = FolderPermissionType(permission_type)
    by_id = await _load_folder_index(db)
    active = sorted((folder for folder in by_id.values() if folder.is_active), key=lambda f: f.name)
    if principal.is_folder_admin:
        return active
    grants = await load_principal_grants(db, principal)
    return [
        folder
        for folder in active
        if evaluate_path(_walk_to_root(folder, by_id), grants, required).allowed
    ]


def _bypasses_acl(principal: Principal, folder: Folder, required: FolderPermissionType) -> bool:
    if folder.created_by_user_id == principal.user_id:
        return True
    return folder.access_level == FolderAccessLevel.PUBLIC.value and required is FolderPermissionType.READ


async def filter_accessible(
    db: AsyncSession,
    principal: Principal,
    candidates: Iterable[Folder],
    required: FolderPermissionType | str = FolderPermissionType.READ,
) -> List[Folder]:
    """Keep, in order, the candidates ``check_folder_access`` would allow.

    One tree load and one grant lookup cover the whole batch.
    """
    required = FolderPermissionType(required)
    candidates = list(candidates)
    if principal.is_folder_admin:
        return candidates
    pending = [folder for folder in candidates if not _bypasses_acl(principal, folder, required)]
    if not pending:
        return candidates
    by_id = await _load_folder_index(db)
    grants = await load_principal_grants(db, principal)
    denied = {
        folder.id
        for folder in pending
        if not evaluate_path(_walk_to_root(folder, by_id), grants, required).allowed
    }
    return [folder for folder in candidates if folder.id not in denied]


async def check_folder_access(
    db: AsyncSession,
    principal: Principal,
    folder: Folder,
    required: FolderPermissionType | str,
) -> bool:
    """Access check for folder content operations.

    Creators keep full access to folders they made and public folders are
    readable by anyone signed in; everything else goes through ``resolve``.
    ACL administration does not use this shortcut.
    """
    required = FolderPermissionType(required)
    if principal.is_folder_admin:
        return True
    if _bypasses_acl(principal, folder, required):
        return True
    decision = await resolve(db, principal, folder.id, required)
    return decision.allowed
