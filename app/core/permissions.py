from enum import Enum
from typing import List


class PermissionCode(str, Enum):
    """System-wide permission names granted to departments."""

    # Documents / folders
    VIEW_DOCUMENTS = "view_documents"
    CREATE_DOCUMENTS = "create_documents"
    EDIT_DOCUMENTS = "edit_documents"
    DELETE_DOCUMENTS = "delete_documents"
    MANAGE_FOLDERS = "manage_folders"

    # Users
    VIEW_USERS = "view_users"
    CREATE_USERS = "create_users"
    EDIT_USERS = "edit_users"
    DELETE_USERS = "delete_users"
    MANAGE_PERMISSIONS = "manage_permissions"

    # Admin
    VIEW_ANALYTICS = "view_analytics"
    SYSTEM_SETTINGS = "system_settings"
    AUDIT_LOGS = "audit_logs"
    BACKUP_RESTORE = "backup_restore"

    @property
    def category(self) -> str:
        if self in _DOCUMENT_CODES:
            return "documents"
        if self in _USER_CODES:
            return "users"
        return "admin"

    @classmethod
    def list_all(cls) -> List[str]:
        return [code.value for code in cls]


_DOCUMENT_CODES = {
    PermissionCode.VIEW_DOCUMENTS,
    PermissionCode.CREATE_DOCUMENTS,
    PermissionCode.EDIT_DOCUMENTS,
    PermissionCode.DELETE_DOCUMENTS,
    PermissionCode.MANAGE_FOLDERS,
}
_USER_CODES = {
    PermissionCode.VIEW_USERS,
    PermissionCode.CREATE_USERS,
    PermissionCode.EDIT_USERS,
    PermissionCode.DELETE_USERS,
    PermissionCode.MANAGE_PERMISSIONS,
}

# Holders bypass per-folder ACLs entirely.
FOLDER_OVERRIDE_PERMISSION = PermissionCode.MANAGE_FOLDERS.value

PERMISSION_DESCRIPTIONS = {
    PermissionCode.VIEW_DOCUMENTS: "View documents in accessible folders",
    PermissionCode.CREATE_DOCUMENTS: "Upload and create new documents",
    PermissionCode.EDIT_DOCUMENTS: "Edit and update documents",
    PermissionCode.DELETE_DOCUMENTS: "Delete documents",
    PermissionCode.MANAGE_FOLDERS: "Create, edit, and delete folders",
    PermissionCode.VIEW_USERS: "View user profiles and lists",
    PermissionCode.CREATE_USERS: "Create new user accounts",
    PermissionCode.EDIT_USERS: "Edit user profiles and settings",
    PermissionCode.DELETE_USERS: "Deactivate user accounts",
    PermissionCode.MANAGE_PERMISSIONS: "Assign and modify user permissions",
    PermissionCode.VIEW_ANALYTICS: "Access usage analytics and reports",
    PermissionCode.SYSTEM_SETTINGS: "Modify system-wide settings",
    PermissionCode.AUDIT_LOGS: "View system audit logs",
    PermissionCode.BACKUP_RESTORE: "Perform system backup and restore operations",
}


class FolderPermissionType(str, Enum):
    """Folder ACL levels, totally ordered: read < write < delete < manage."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MANAGE = "manage"

    @property
    def rank(self) -> int:
        return _FOLDER_RANKS[self]

    def satisfies(self, required: "FolderPermissionType | str") -> bool:
        """True when holding ``self`` is enough for an action needing ``required``."""
        return self.rank >= FolderPermissionType(required).rank


_FOLDER_RANKS = {
    FolderPermissionType.READ: 1,
    FolderPermissionType.WRITE: 2,
    FolderPermissionType.DELETE: 3,
    FolderPermissionType.MANAGE: 4,
}


class FolderAccessLevel(str, Enum):
    PRIVATE = "private"
    DEPARTMENT = "department"
    PUBLIC = "public"
