from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.permissions import FolderAccessLevel, FolderPermissionType


class FolderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    parent_folder_id: Optional[UUID] = None
    description: Optional[str] = None
    access_level: FolderAccessLevel = FolderAccessLevel.PRIVATE
    inherit_permissions: bool = True

    @field_validator("name")
    @classmethod
    def non_blank(cls, v: str) -> str:
        value = v.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    access_level: Optional[FolderAccessLevel] = None
    inherit_permissions: Optional[bool] = None
    # Explicit null moves the folder to the root level.
    parent_folder_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def non_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        value = v.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class FolderOut(BaseModel):
    id: UUID
    name: str
    parent_folder_id: Optional[UUID] = None
    description: Optional[str] = None
    access_level: FolderAccessLevel
    inherit_permissions: bool
    created_by_user_id: UUID
    is_active: bool
    document_count: int = 0
    subfolder_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FolderListResponse(BaseModel):
    items: List[FolderOut]


class FolderPage(BaseModel):
    items: List[FolderOut]
    total: int
    page: int
    page_size: int


class BreadcrumbItem(BaseModel):
    id: UUID
    name: str
    parent_folder_id: Optional[UUID] = None
    level: int


class FolderHierarchyResponse(BaseModel):
    items: List[BreadcrumbItem]


class FolderDeleteResult(BaseModel):
    folder_id: UUID
    deactivated_folder_ids: List[UUID]


class FolderPermissionCreate(BaseModel):
    user_id: Optional[UUID] = None
    department_id: Optional[UUID] = None
    permission_type: FolderPermissionType


class FolderPermissionOut(BaseModel):
    id: UUID
    folder_id: UUID
    user_id: Optional[UUID] = None
    department_id: Optional[UUID] = None
    permission_type: FolderPermissionType
    granted_by_user_id: UUID
    granted_at: Optional[datetime] = None
    is_active: bool

    class Config:
        from_attributes = True


class FolderPermissionListResponse(BaseModel):
    items: List[FolderPermissionOut]


class RevokeResult(BaseModel):
    revoked: int


class AccessCheckResponse(BaseModel):
    folder_id: UUID
    permission_type: FolderPermissionType
    allowed: bool
