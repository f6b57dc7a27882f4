from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, validates

from school_authz.db.base import Base
from school_authz.policy import OfficeKind, canonical_place_key


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _required_place_key(field: str, value: str | None) -> str:
    key = canonical_place_key(value)
    if key is None:
        raise ValueError(f"{field} must be a non-empty place name")
    return key


class School(Base):
    __tablename__ = "schools"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    # Scope keys: canonicalized on assignment, compared exactly everywhere else.
    municipality_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    province_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    @validates("municipality_key", "province_key")
    def _canonicalize(self, key: str, value: str | None) -> str:
        return _required_place_key(key, value)


class Office(Base):
    """Municipal or provincial education office: a tenant node above schools."""

    __tablename__ = "offices"
    __table_args__ = (
        # At most one active office per place and kind.
        Index(
            "uq_offices_active_place",
            "kind",
            "place_key",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    kind: Mapped[OfficeKind] = mapped_column(Enum(OfficeKind, native_enum=False, length=16), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    # Office holder; null while the office is pending approval.
    principal_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    place_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    # Province of a municipal office; null for provincial offices.
    parent_place_key: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    @validates("place_key")
    def _canonicalize_place(self, key: str, value: str | None) -> str:
        return _required_place_key(key, value)

    @validates("parent_place_key")
    def _canonicalize_parent(self, key: str, value: str | None) -> str | None:
        return canonical_place_key(value)
