"""Snapshots the evaluator works on. Frozen, comparable, free of ORM state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .roles import OfficeKind, Role


@dataclass(frozen=True)
class Scope:
    school_id: str | None = None
    municipality_key: str | None = None
    province_key: str | None = None

    def is_empty(self) -> bool:
        return self.school_id is None and self.municipality_key is None and self.province_key is None


@dataclass(frozen=True)
class CachedIdentity:
    """One identity cache row, as read by the evaluator."""

    principal_id: str
    role: Role | None
    active: bool
    school_id: str | None = None
    office_id: str | None = None
    municipality_key: str | None = None
    province_key: str | None = None
    version: int = 0
    updated_at: datetime | None = None

    @property
    def scope(self) -> Scope:
        return Scope(
            school_id=self.school_id,
            municipality_key=self.municipality_key,
            province_key=self.province_key,
        )

    def has_role(self, role: Role) -> bool:
        # An inactive row never grants anything, whatever role it still records.
        return self.active and self.role is role


@dataclass(frozen=True)
class SchoolScope:
    """Static attributes of a target school."""

    school_id: str
    municipality_key: str
    province_key: str


@dataclass(frozen=True)
class OfficeScope:
    """Static attributes of a target office."""

    office_id: str
    kind: OfficeKind
    place_key: str
    parent_place_key: str | None
