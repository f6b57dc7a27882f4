from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from school_authz.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScopedRecordMixin:
    """
    Marks a business entity as protected.

    `school_authz.db.filters` attaches the row-visibility predicate to every
    mapped subclass; the entity only has to expose its owner and its school.
    """

    @declared_attr
    def owner_principal_id(cls) -> Mapped[str | None]:
        return mapped_column(String(64), nullable=True, index=True)

    @declared_attr
    def school_id(cls) -> Mapped[str]:
        return mapped_column(ForeignKey("schools.id"), nullable=False, index=True)


class StudentRecord(ScopedRecordMixin, Base):
    __tablename__ = "student_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
