import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base
from app.models.types import PrincipalRef, principal_ref_from_columns


class FolderPermission(Base):
    __tablename__ = "folder_permissions"
    __table_args__ = (
        CheckConstraint(
            "(department_id IS NOT NULL AND user_id IS NULL) OR "
            "(department_id IS NULL AND user_id IS NOT NULL)",
            name="ck_folder_permissions_one_principal",
        ),
        CheckConstraint(
            "permission_type IN ('read', 'write', 'delete', 'manage')",
            name="ck_folder_permissions_type",
        ),
        # NULLs never collide in a plain unique constraint, so each principal kind gets its own index.
        Index(
            "uq_folder_permissions_user",
            "folder_id",
            "user_id",
            "permission_type",
            unique=True,
            postgresql_where=text("user_id IS NOT NULL"),
        ),
        Index(
            "uq_folder_permissions_department",
            "folder_id",
            "department_id",
            "permission_type",
            unique=True,
            postgresql_where=text("department_id IS NOT NULL"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    folder_id = Column(
        UUID(as_uuid=True),
        ForeignKey("folders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    department_id = Column(
        UUID(as_uuid=True),
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    permission_type = Column(String(20), nullable=False)
    granted_by_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    granted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    @property
    def principal(self) -> PrincipalRef:
        return principal_ref_from_columns(self.user_id, self.department_id)
