import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Folder(Base):
    __tablename__ = "folders"
    __table_args__ = (
        CheckConstraint("id <> parent_folder_id", name="ck_folders_not_self_parent"),
        CheckConstraint(
            "access_level IN ('private', 'department', 'public')",
            name="ck_folders_access_level",
        ),
        CheckConstraint("length(trim(name)) > 0", name="ck_folders_name_not_empty"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    parent_folder_id = Column(
        UUID(as_uuid=True), ForeignKey("folders.id"), nullable=True, index=True
    )
    description = Column(Text, nullable=True)
    access_level = Column(String(20), nullable=False, default="private", server_default="private")
    inherit_permissions = Column(Boolean, nullable=False, default=True, server_default="true")
    created_by_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    document_count = Column(Integer, nullable=False, default=0, server_default="0")
    subfolder_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def is_root(self) -> bool:
        return self.parent_folder_id is None
