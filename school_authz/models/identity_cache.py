from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from school_authz.db.base import Base
from school_authz.policy import Role


class IdentityCacheEntry(Base):
    """
    Derived per-principal snapshot of role + resolved scope.

    Notes:
    - Never the source of truth: always re-derivable from role_assignments +
      offices + schools.
    - Readable without any authorization check.
    - Written only by `school_authz.sync.engine` through Core statements;
      ORM writes are refused in `school_authz.sync.listeners`.
    """

    __tablename__ = "identity_cache"

    principal_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[Role | None] = mapped_column(Enum(Role, native_enum=False, length=32), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Fan-out indexes: an office/school change finds its dependents here.
    school_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    office_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    municipality_key: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    province_key: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
