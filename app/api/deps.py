from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_user_id
from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.permissions import FolderPermissionType
from app.db.session import get_db
from app.models import Folder, User
from app.services import authz, folder_access, folders, sessions
from app.services.authz import Principal

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class FolderContext:
    principal: Principal
    folder: Folder


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_optional_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        return None
    return credentials.credentials


async def get_bearer_token(token: str | None = Depends(get_optional_bearer_token)) -> str:
    if token is None:
        raise UnauthorizedError("Access token required")
    return token


async def get_current_user(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    payload = await sessions.authenticate_access_token(token)
    try:
        user_id = UUID(str(payload["user_id"]))
    except ValueError as exc:
        raise UnauthorizedError("Invalid token") from exc

    user = await db.get(User, user_id)
    if not user:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise UnauthorizedError("User account is deactivated")
    set_user_id(str(user.id))
    return user


async def get_current_principal(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Principal:
    return await authz.load_principal(db, current_user)


def require_folder_access(permission_type: FolderPermissionType | str):
    """Load the ``folder_id`` path parameter and check the caller's access to it."""
    required = FolderPermissionType(permission_type)

    async def dependency(
        folder_id: UUID,
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session),
    ) -> FolderContext:
        folder = await folders.require_folder(db, folder_id)
        if not await folder_access.check_folder_access(db, principal, folder, required):
            raise ForbiddenError(f"Insufficient permissions: {required.value} access required")
        return FolderContext(principal=principal, folder=folder)

    return dependency
