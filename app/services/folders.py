from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, FolderHierarchyIntegrityError, NotFoundError
from app.core.permissions import FolderAccessLevel
from app.core.settings import settings
from app.models.document import Document
from app.models.folder import Folder
from app.models.folder_permission import FolderPermission

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "access_level", "inherit_permissions")
# Only these may be cleared by sending null.
NULLABLE_FIELDS = frozenset({"description"})


@dataclass(slots=True)
class FolderFilters:
    """Listing filters; ``root_only`` wins over ``parent_folder_id``."""

    parent_folder_id: UUID | None = None
    root_only: bool = False
    created_by_user_id: UUID | None = None
    access_level: FolderAccessLevel | None = None
    search: str | None = None


async def get_folder(db: AsyncSession, folder_id: UUID, *, include_inactive: bool = False) -> Folder | None:
    folder = await db.get(Folder, folder_id)
    if folder is None:
        return None
    if not folder.is_active and not include_inactive:
        return None
    return folder


async def require_folder(db: AsyncSession, folder_id: UUID) -> Folder:
    folder = await get_folder(db, folder_id)
    if folder is None:
        raise NotFoundError("Folder not found")
    return folder


async def get_ancestor_chain(db: AsyncSession, folder_id: UUID) -> List[Folder]:
    """Return the folder and its ancestors ordered root first.

    Parents are followed even when inactive; only the target itself must be
    active. A dangling parent pointer or a cycle means the table is corrupt.
    """
    folder = await require_folder(db, folder_id)
    chain = [folder]
    seen = {folder.id}
    current = folder
    while current.parent_folder_id is not None:
        if len(chain) > settings.folder_max_depth:
            logger.error(
                "Folder chain exceeds maximum depth",
                extra={"folder_id": str(folder_id), "max_depth": settings.folder_max_depth},
            )
            raise FolderHierarchyIntegrityError(details={"folder_id": str(folder_id)})
        parent_id = current.parent_folder_id
        if parent_id in seen:
            logger.error(
                "Cycle detected in folder hierarchy",
                extra={"folder_id": str(folder_id), "repeated_id": str(parent_id)},
            )
            raise FolderHierarchyIntegrityError(details={"folder_id": str(folder_id)})
        parent = await db.get(Folder, parent_id)
        if parent is None:
            logger.error(
                "Orphaned folder: parent row missing",
                extra={"folder_id": str(current.id), "parent_folder_id": str(parent_id)},
            )
            raise FolderHierarchyIntegrityError(details={"folder_id": str(folder_id)})
        seen.add(parent.id)
        chain.append(parent)
        current = parent
    chain.reverse()
    return chain


async def list_children(db: AsyncSession, parent_id: UUID) -> List[Folder]:
    await require_folder(db, parent_id)
    stmt = (
        select(Folder)
        .where(Folder.parent_folder_id == parent_id, Folder.is_active.is_(True))
        .order_by(Folder.name)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def query_folders(db: AsyncSession, filters: FolderFilters) -> List[Folder]:
    """Active folders matching ``filters``, ordered by name. No access filtering."""
    stmt = select(Folder).where(Folder.is_active.is_(True))
    if filters.root_only:
        stmt = stmt.where(Folder.parent_folder_id.is_(None))
    elif filters.parent_folder_id is not None:
        stmt = stmt.where(Folder.parent_folder_id == filters.parent_folder_id)
    if filters.created_by_user_id is not None:
        stmt = stmt.where(Folder.created_by_user_id == filters.created_by_user_id)
    if filters.access_level is not None:
        stmt = stmt.where(Folder.access_level == FolderAccessLevel(filters.access_level).value)
    term = (filters.search or "").strip()
    if term:
        stmt = stmt.where(
            or_(
                Folder.name.icontains(term, autoescape=True),
                Folder.description.icontains(term, autoescape=True),
            )
        )
    result = await db.execute(stmt.order_by(Folder.name, Folder.id))
    return list(result.scalars().all())


async def search_folders(db: AsyncSession, term: str) -> List[Folder]:
    """Name or description matches; name matches rank first."""
    needle = term.strip()
    if not needle:
        return []
    matches = await query_folders(db, FolderFilters(search=needle))
    folded = needle.casefold()
    return sorted(matches, key=lambda folder: (folded not in folder.name.casefold(), folder.name.casefold()))


async def create_folder(
    db: AsyncSession,
    *,
    name: str,
    created_by_user_id: UUID,
    parent_folder_id: UUID | None = None,
    description: str | None = None,
    access_level: FolderAccessLevel | str = FolderAccessLevel.PRIVATE,
    inherit_permissions: bool = True,
) -> Folder:
    parent = None
    if parent_folder_id is not None:
        parent = await get_folder(db, parent_folder_id)
        if parent is None:
            raise NotFoundError("Parent folder not found")
    folder = Folder(
        name=name.strip(),
        parent_folder_id=parent_folder_id,
        description=description,
        access_level=FolderAccessLevel(access_level).value,
        inherit_permissions=inherit_permissions,
        created_by_user_id=created_by_user_id,
        is_active=True,
        document_count=0,
        subfolder_count=0,
    )
    db.add(folder)
    if parent is not None:
        parent.subfolder_count = (parent.subfolder_count or 0) + 1
    await db.commit()
    await db.refresh(folder)
    logger.info(
        "Folder created",
        extra={"folder_id": str(folder.id), "parent_folder_id": str(parent_folder_id) if parent_folder_id else None},
    )
    return folder


async def _ensure_not_descendant(db: AsyncSession, folder: Folder, new_parent_id: UUID) -> Folder:
    if new_parent_id == folder.id:
        raise ConflictError("Cannot create circular folder reference")
    chain = await get_ancestor_chain(db, new_parent_id)
    if any(ancestor.id == folder.id for ancestor in chain):
        raise ConflictError("Cannot create circular folder reference")
    return chain[-1]


async def move_folder(db: AsyncSession, folder: Folder, new_parent_id: UUID | None, *, commit: bool = True) -> Folder:
    """Reparent ``folder``; ``None`` makes it a root."""
    if new_parent_id == folder.parent_folder_id:
        return folder
    new_parent = None
    if new_parent_id is not None:
        new_parent = await _ensure_not_descendant(db, folder, new_parent_id)
    if folder.parent_folder_id is not None:
        old_parent = await db.get(Folder, folder.parent_folder_id)
        if old_parent is not None:
            old_parent.subfolder_count = max((old_parent.subfolder_count or 0) - 1, 0)
    if new_parent is not None:
        new_parent.subfolder_count = (new_parent.subfolder_count or 0) + 1
    folder.parent_folder_id = new_parent_id
    if commit:
        await db.commit()
        await db.refresh(folder)
    return folder


async def update_folder(db: AsyncSession, folder: Folder, changes: dict[str, Any]) -> Folder:
    for field_name in UPDATABLE_FIELDS:
        if field_name not in changes:
            continue
        value = changes[field_name]
        if value is None and field_name not in NULLABLE_FIELDS:
            continue
        if field_name == "access_level":
            value = FolderAccessLevel(value).value
        elif field_name == "name":
            value = value.strip()
        setattr(folder, field_name, value)
    if "parent_folder_id" in changes:
        await move_folder(db, folder, changes["parent_folder_id"], commit=False)
    await db.commit()
    await db.refresh(folder)
    return folder


async def has_active_contents(db: AsyncSession, folder_id: UUID) -> bool:
    subfolders = await db.execute(
        select(func.count())
        .select_from(Folder)
        .where(Folder.parent_folder_id == folder_id, Folder.is_active.is_(True))
    )
    if (subfolders.scalar_one() or 0) > 0:
        return True
    documents = await db.execute(
        select(func.count())
        .select_from(Document)
        .where(Document.folder_id == folder_id, Document.is_active.is_(True))
    )
    return (documents.scalar_one() or 0) > 0


async def collect_descendant_ids(db: AsyncSession, folder_id: UUID) -> List[UUID]:
    """Breadth-first ids of every active folder below ``folder_id``."""
    collected: list[UUID] = []
    seen = {folder_id}
    frontier = [folder_id]
    while frontier:
        result = await db.execute(
            select(Folder.id).where(Folder.parent_folder_id.in_(frontier), Folder.is_active.is_(True))
        )
        frontier = []
        for child_id in result.scalars().all():
            if child_id in seen:
                raise FolderHierarchyIntegrityError(details={"folder_id": str(folder_id)})
            seen.add(child_id)
            frontier.append(child_id)
        collected.extend(frontier)
    return collected


async def deactivate_folder(db: AsyncSession, folder: Folder, *, delete_contents: bool = False) -> List[UUID]:
    """Soft-delete ``folder``; returns every folder id that was deactivated."""
    if not delete_contents and await has_active_contents(db, folder.id):
        raise ConflictError(
            "Folder is not empty; pass delete_contents to remove its contents",
            details={"folder_id": str(folder.id)},
        )
    try:
        descendant_ids = await collect_descendant_ids(db, folder.id) if delete_contents else []
        affected = [folder.id, *descendant_ids]
        if descendant_ids:
            await db.execute(
                update(Folder)
                .where(Folder.id.in_(descendant_ids))
                .values(is_active=False, subfolder_count=0, document_count=0)
                .execution_options(synchronize_session=False)
            )
        await db.execute(
            update(Document)
            .where(Document.folder_id.in_(affected), Document.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(FolderPermission)
            .where(FolderPermission.folder_id.in_(affected), FolderPermission.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        folder.is_active = False
        folder.subfolder_count = 0
        folder.document_count = 0
        if folder.parent_folder_id is not None:
            parent = await db.get(Folder, folder.parent_folder_id)
            if parent is not None and parent.is_active:
                parent.subfolder_count = max((parent.subfolder_count or 0) - 1, 0)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info(
        "Folder deactivated",
        extra={"folder_id": str(folder.id), "cascaded_folders": len(affected) - 1},
    )
    return affected
