"""
Pure derivation of identity cache rows.

    RoleAssignment ──► Office (office roles) ──┐
                   └─► School (school roles) ──┴─► identity cache row

`derive_identity` is a pure function of its inputs: the same source state
always yields the same fields, so re-running a sync is always safe.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from school_authz.policy import OFFICE_ROLES, SCHOOL_ROLES, OfficeKind, Role


class SyncOutcome(str, enum.Enum):
    RESOLVED = "resolved"
    # Assignment exists but is not ACTIVE: row kept, grants nothing.
    NEUTRALIZED = "neutralized"
    # Active assignment whose Office/School cannot be resolved: fail closed.
    DEGRADED = "degraded"
    # No assignment: row removed.
    REMOVED = "removed"


# ---- Source snapshots ----------------------------------------------------------------


@dataclass(frozen=True)
class AssignmentState:
    principal_id: str
    role: Role
    tenant_scope_id: str | None
    active: bool


@dataclass(frozen=True)
class OfficeState:
    office_id: str
    kind: OfficeKind
    place_key: str
    parent_place_key: str | None
    active: bool


@dataclass(frozen=True)
class SchoolState:
    school_id: str
    municipality_key: str
    province_key: str


@dataclass(frozen=True)
class DerivedIdentity:
    """The fields of one cache row, minus bookkeeping (version, updated_at)."""

    principal_id: str
    role: Role | None
    active: bool
    school_id: str | None = None
    office_id: str | None = None
    municipality_key: str | None = None
    province_key: str | None = None

    def as_values(self) -> dict[str, object]:
        return {
            "principal_id": self.principal_id,
            "role": self.role,
            "active": self.active,
            "school_id": self.school_id,
            "office_id": self.office_id,
            "municipality_key": self.municipality_key,
            "province_key": self.province_key,
        }


@dataclass(frozen=True)
class Derivation:
    outcome: SyncOutcome
    identity: DerivedIdentity | None
    detail: str | None = None


# ---- Derivation ----------------------------------------------------------------------


def _closed(assignment: AssignmentState, outcome: SyncOutcome, detail: str | None = None) -> Derivation:
    return Derivation(
        outcome=outcome,
        identity=DerivedIdentity(principal_id=assignment.principal_id, role=assignment.role, active=False),
        detail=detail,
    )


def derive_identity(
    assignment: AssignmentState | None,
    office: OfficeState | None = None,
    school: SchoolState | None = None,
    *,
    office_matches: int | None = None,
) -> Derivation:
    """
    Compute the cache row for one principal.

    - `office`: the active office held by the principal, for office roles.
    - `school`: the school named by `tenant_scope_id`, for school roles.
    - `office_matches`: how many active offices of the right kind the principal
      holds; anything but exactly one is a dangling binding.
    """

    if assignment is None:
        return Derivation(outcome=SyncOutcome.REMOVED, identity=None)

    if not assignment.active:
        return _closed(assignment, SyncOutcome.NEUTRALIZED)

    role = assignment.role

    if role is Role.NATIONAL_ADMIN:
        return Derivation(
            outcome=SyncOutcome.RESOLVED,
            identity=DerivedIdentity(principal_id=assignment.principal_id, role=role, active=True),
        )

    if role in OFFICE_ROLES:
        kind = OFFICE_ROLES[role]
        if office_matches is not None and office_matches > 1:
            return _closed(assignment, SyncOutcome.DEGRADED, f"principal holds {office_matches} active {kind.value} offices")
        if office is None or not office.active or office.kind is not kind:
            return _closed(assignment, SyncOutcome.DEGRADED, f"no active {kind.value} office held by principal")

        if kind is OfficeKind.MUNICIPAL:
            municipality_key, province_key = office.place_key, office.parent_place_key
        else:
            municipality_key, province_key = None, office.place_key

        return Derivation(
            outcome=SyncOutcome.RESOLVED,
            identity=DerivedIdentity(
                principal_id=assignment.principal_id,
                role=role,
                active=True,
                office_id=office.office_id,
                municipality_key=municipality_key,
                province_key=province_key,
            ),
        )

    if role in SCHOOL_ROLES:
        if assignment.tenant_scope_id is None:
            return _closed(assignment, SyncOutcome.DEGRADED, "school role without tenant_scope_id")
        if school is None or school.school_id != assignment.tenant_scope_id:
            return _closed(assignment, SyncOutcome.DEGRADED, f"school {assignment.tenant_scope_id!r} not found")

        return Derivation(
            outcome=SyncOutcome.RESOLVED,
            identity=DerivedIdentity(
                principal_id=assignment.principal_id,
                role=role,
                active=True,
                school_id=school.school_id,
                municipality_key=school.municipality_key,
                province_key=school.province_key,
            ),
        )

    return _closed(assignment, SyncOutcome.DEGRADED, f"unsupported role {role!r}")
