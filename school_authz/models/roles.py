from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from school_authz.db.base import Base
from school_authz.policy import Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentStatus(str, enum.Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    DEACTIVATED = "DEACTIVATED"
    SUPERSEDED = "SUPERSEDED"


class RoleAssignment(Base):
    """
    Authoritative binding of one principal to one role.

    Notes:
    - `principal_id` is unique: a principal has at most one current assignment.
    - `tenant_scope_id` is the school id for school-level roles and null for
      national/office roles (those resolve scope through an Office row).
    - `tenant_scope_id` carries no foreign key: a deleted school leaves a
      dangling reference that the sync engine turns into a deny-all cache row.
    """

    __tablename__ = "role_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    principal_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, native_enum=False, length=32), nullable=False)
    tenant_scope_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    status: Mapped[AssignmentStatus] = mapped_column(
        Enum(AssignmentStatus, native_enum=False, length=32),
        default=AssignmentStatus.ACTIVE,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    @property
    def active(self) -> bool:
        return self.status is AssignmentStatus.ACTIVE
