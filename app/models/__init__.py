from app.models.department import Department
from app.models.document import Document
from app.models.folder import Folder
from app.models.folder_permission import FolderPermission
from app.models.permission import DepartmentPermission, Permission
from app.models.user import User

__all__ = [
    "Department",
    "DepartmentPermission",
    "Document",
    "Folder",
    "FolderPermission",
    "Permission",
    "User",
]
