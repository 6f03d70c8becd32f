import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import PERMISSION_DESCRIPTIONS, PermissionCode
from app.core.security import get_password_hash
from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models import Department, DepartmentPermission, Permission, User

logger = logging.getLogger(__name__)

ADMIN_DEPARTMENT = "Admin"

DEFAULT_DEPARTMENTS = {
    ADMIN_DEPARTMENT: {
        "description": "System administrators with full access",
        "permissions": PermissionCode.list_all(),
    },
    "IT": {"description": "Information Technology department", "permissions": []},
    "HR": {"description": "Human Resources department", "permissions": []},
    "Finance": {"description": "Finance and Accounting department", "permissions": []},
    "Marketing": {"description": "Marketing and Communications department", "permissions": []},
    "Operations": {"description": "Operations and Logistics department", "permissions": []},
    "AI Assistant": {
        "description": "Service accounts used by AI assistants",
        "permissions": [PermissionCode.VIEW_DOCUMENTS.value],
    },
}


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    result = await db.execute(select(Permission))
    existing = {permission.name: permission for permission in result.scalars().all()}
    for code in PermissionCode:
        permission = existing.get(code.value)
        if permission is None:
            permission = Permission(
                name=code.value,
                description=PERMISSION_DESCRIPTIONS[code],
                category=code.category,
                is_active=True,
            )
            db.add(permission)
            existing[code.value] = permission
    await db.flush()
    return existing


async def seed_departments(db: AsyncSession, permissions: dict[str, Permission]) -> dict[str, Department]:
    result = await db.execute(select(Department))
    existing = {department.name: department for department in result.scalars().all()}
    for name, definition in DEFAULT_DEPARTMENTS.items():
        department = existing.get(name)
        if department is None:
            department = Department(name=name, description=definition["description"], is_active=True)
            db.add(department)
            await db.flush()
            existing[name] = department
            for code in definition["permissions"]:
                db.add(DepartmentPermission(department_id=department.id, permission_id=permissions[code].id))
            logger.info("Seeded department", extra={"department": name})
    await db.flush()
    return existing


async def seed_admin_user(db: AsyncSession, admin_department: Department) -> None:
    email = settings.seed_admin_email.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        logger.info("Admin user already exists")
        return
    db.add(
        User(
            first_name=settings.seed_admin_first_name,
            last_name=settings.seed_admin_last_name,
            email=email,
            hashed_password=get_password_hash(settings.seed_admin_password),
            department_id=admin_department.id,
            is_active=True,
        )
    )
    logger.info("Created admin user", extra={"email": email})


async def init_db() -> None:
    """Seed the permission catalog, default departments and the admin account."""
    async with AsyncSessionLocal() as session:
        logger.info("Seeding database")
        permissions = await seed_permissions(session)
        departments = await seed_departments(session, permissions)
        await seed_admin_user(session, departments[ADMIN_DEPARTMENT])
        await session.commit()


if __name__ == "__main__":
    asyncio.run(init_db())
