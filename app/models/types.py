from __future__ import annotations

from dataclasses import dataclass
from typing import Union
from uuid import UUID


@dataclass(frozen=True, slots=True)
class UserRef:
    id: UUID

    kind = "user"


@dataclass(frozen=True, slots=True)
class DepartmentRef:
    id: UUID

    kind = "department"


# An ACL entry targets exactly one of these.
PrincipalRef = Union[UserRef, DepartmentRef]


def principal_ref_from_columns(user_id: UUID | None, department_id: UUID | None) -> PrincipalRef:
    """Build the variant from the two storage columns; exactly one must be set."""
    if (user_id is None) == (department_id is None):
        raise ValueError("Exactly one of user_id or department_id must be set")
    if user_id is not None:
        return UserRef(user_id)
    return DepartmentRef(department_id)


__all__ = ["DepartmentRef", "PrincipalRef", "UserRef", "principal_ref_from_columns"]
