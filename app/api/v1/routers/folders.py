from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import ForbiddenError
from app.core.permissions import FolderAccessLevel, FolderPermissionType
from app.schemas.folders import (
    AccessCheckResponse,
    BreadcrumbItem,
    FolderCreate,
    FolderDeleteResult,
    FolderHierarchyResponse,
    FolderListResponse,
    FolderOut,
    FolderPage,
    FolderPermissionCreate,
    FolderPermissionListResponse,
    FolderPermissionOut,
    FolderUpdate,
    RevokeResult,
)
from app.services import audit, folder_access, folder_grants, folders
from app.services.authz import Principal

router = APIRouter(prefix="/folders", tags=["folders"])


async def _require_write_on_parent(db: AsyncSession, principal: Principal, parent_id: UUID) -> None:
    parent = await folders.require_folder(db, parent_id)
    if not await folder_access.check_folder_access(db, principal, parent, FolderPermissionType.WRITE):
        raise ForbiddenError("Insufficient permissions: write access required on parent folder")


@router.get("", response_model=FolderPage, summary="Browse folders the caller can read")
async def list_folders(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    parent_folder_id: Optional[UUID] = Query(default=None),
    root_only: bool = Query(default=False),
    created_by_user_id: Optional[UUID] = Query(default=None),
    access_level: Optional[FolderAccessLevel] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=255),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderPage:
    offset = (page - 1) * page_size
    filters = folders.FolderFilters(
        parent_folder_id=parent_folder_id,
        root_only=root_only,
        created_by_user_id=created_by_user_id,
        access_level=access_level,
        search=search,
    )
    candidates = await folders.query_folders(db, filters)
    # Access is decided per folder, so counting and slicing happen after the filter.
    visible = await folder_access.filter_accessible(db, principal, candidates)
    return FolderPage(
        items=visible[offset : offset + page_size],
        total=len(visible),
        page=page,
        page_size=page_size,
    )


@router.get("/accessible", response_model=FolderListResponse, summary="List folders the caller can access")
async def list_accessible_folders(
    permission_type: FolderPermissionType = Query(default=FolderPermissionType.READ),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderListResponse:
    items = await folder_access.get_user_accessible_folders(db, principal, permission_type)
    return FolderListResponse(items=items)


@router.get("/search", response_model=FolderListResponse, summary="Search folders by name or description")
async def search_folders(
    q: str = Query(min_length=1, max_length=255),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderListResponse:
    matches = await folders.search_folders(db, q)
    visible = await folder_access.filter_accessible(db, principal, matches)
    return FolderListResponse(items=visible[:limit])


@router.post("", response_model=FolderOut, status_code=status.HTTP_201_CREATED, summary="Create a folder")
async def create_folder(
    payload: FolderCreate,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderOut:
    if payload.parent_folder_id is None:
        if not principal.is_folder_admin:
            raise ForbiddenError("Missing permission: manage_folders is required to create root folders")
    else:
        await _require_write_on_parent(db, principal, payload.parent_folder_id)
    folder = await folders.create_folder(
        db,
        name=payload.name,
        parent_folder_id=payload.parent_folder_id,
        description=payload.description,
        access_level=payload.access_level,
        inherit_permissions=payload.inherit_permissions,
        created_by_user_id=principal.user_id,
    )
    return FolderOut.model_validate(folder)


@router.get("/{folder_id}", response_model=FolderOut, summary="Get a folder")
async def read_folder(
    access: deps.FolderContext = Depends(deps.require_folder_access(FolderPermissionType.READ)),
) -> FolderOut:
    return FolderOut.model_validate(access.folder)


@router.patch("/{folder_id}", response_model=FolderOut, summary="Update or move a folder")
async def update_folder(
    payload: FolderUpdate,
    access: deps.FolderContext = Depends(deps.require_folder_access(FolderPermissionType.WRITE)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderOut:
    changes = payload.model_dump(exclude_unset=True)
    new_parent_id = changes.get("parent_folder_id")
    if new_parent_id is not None and new_parent_id != access.folder.parent_folder_id:
        await _require_write_on_parent(db, access.principal, new_parent_id)
    elif "parent_folder_id" in changes and new_parent_id is None and access.folder.parent_folder_id is not None:
        if not access.principal.is_folder_admin:
            raise ForbiddenError("Missing permission: manage_folders is required to create root folders")
    folder = await folders.update_folder(db, access.folder, changes)
    return FolderOut.model_validate(folder)


@router.delete("/{folder_id}", response_model=FolderDeleteResult, summary="Deactivate a folder")
async def delete_folder(
    delete_contents: bool = Query(default=False),
    access: deps.FolderContext = Depends(deps.require_folder_access(FolderPermissionType.DELETE)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderDeleteResult:
    affected = await folders.deactivate_folder(db, access.folder, delete_contents=delete_contents)
    audit.record_event(
        "folder.deactivated",
        actor_id=access.principal.user_id,
        folder_id=access.folder.id,
        delete_contents=delete_contents,
        deactivated_folders=len(affected),
    )
    return FolderDeleteResult(folder_id=access.folder.id, deactivated_folder_ids=affected)


@router.get("/{folder_id}/children", response_model=FolderListResponse, summary="List subfolders")
async def list_children(
    access: deps.FolderContext = Depends(deps.require_folder_access(FolderPermissionType.READ)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderListResponse:
    children = await folders.list_children(db, access.folder.id)
    items = await folder_access.filter_accessible(db, access.principal, children)
    return FolderListResponse(items=items)


@router.get("/{folder_id}/hierarchy", response_model=FolderHierarchyResponse, summary="Breadcrumb from the root")
async def read_hierarchy(
    access: deps.FolderContext = Depends(deps.require_folder_access(FolderPermissionType.READ)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderHierarchyResponse:
    chain = await folders.get_ancestor_chain(db, access.folder.id)
    items = [
        BreadcrumbItem(id=folder.id, name=folder.name, parent_folder_id=folder.parent_folder_id, level=level)
        for level, folder in enumerate(chain)
    ]
    return FolderHierarchyResponse(items=items)


@router.get("/{folder_id}/permissions", response_model=FolderPermissionListResponse, summary="List ACL entries")
async def list_permissions(
    folder_id: UUID,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderPermissionListResponse:
    items = await folder_grants.list_folder_permissions(db, principal, folder_id)
    return FolderPermissionListResponse(items=items)


@router.post(
    "/{folder_id}/permissions",
    response_model=FolderPermissionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Grant a folder permission",
)
async def grant_permission(
    folder_id: UUID,
    payload: FolderPermissionCreate,
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db_session),
) -> FolderPermissionOut:
    target = folder_grants.make_principal_ref(payload.user_id, payload.department_id)
    entry = await folder_grants.grant_permission(db, principal, folder_id, target, payload.permission_type)
    return FolderPermissionOut.model_validate(entry)


@router.delete("/{folder_id}/permissions", response_model=RevokeResult, summary="Revoke folder permissions")
async def revoke_permission(
    folder_id: UUID,
    user_id: Optional[UUID] = Query(default=None),
    department_id: Optional[UUID] = Query(default=None),
    permission_type: Optional[FolderPermissionType] = Query(default=None),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db_session),
) -> RevokeResult:
    revoked = await folder_grants.revoke_permission(
        db,
        principal,
        folder_id,
        user_id=user_id,
        department_id=department_id,
        permission_type=permission_type,
    )
    return RevokeResult(revoked=revoked)


@router.get("/{folder_id}/access", response_model=AccessCheckResponse, summary="Resolve the caller's access")
async def check_access(
    folder_id: UUID,
    permission_type: FolderPermissionType = Query(default=FolderPermissionType.READ),
    principal: Principal = Depends(deps.get_current_principal),
    db: AsyncSession = Depends(deps.get_db_session),
) -> AccessCheckResponse:
    decision = await folder_access.resolve(db, principal, folder_id, permission_type)
    return AccessCheckResponse(folder_id=folder_id, permission_type=permission_type, allowed=decision.allowed)
