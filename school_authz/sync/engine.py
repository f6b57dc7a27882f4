"""
Sync engine: keeps the identity cache a projection of role assignments plus
the tenant directory.

Key ideas:
- Runs on the caller's connection, inside the caller's transaction. A rollback
  takes the cache change with it.
- Every entry point funnels into `recompute(principal_id)`, which reads the
  authoritative rows, derives the cache row (`sync.derive`) and writes it only
  if it differs from what is stored.
- This is the only writer of `identity_cache`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from sqlalchemy import Connection, delete, insert, select, update
from sqlalchemy.orm import Session

from school_authz.db.cache_store import connection_for, identity_cache, row_to_identity
from school_authz.models.audit import SyncEvent
from school_authz.models.roles import AssignmentStatus, RoleAssignment
from school_authz.models.tenancy import Office, School
from school_authz.policy import OFFICE_ROLES, SCHOOL_ROLES, CachedIdentity

from .derive import (
    AssignmentState,
    Derivation,
    DerivedIdentity,
    OfficeState,
    SchoolState,
    SyncOutcome,
    derive_identity,
)

logger = logging.getLogger(__name__)

role_assignments = RoleAssignment.__table__
offices = Office.__table__
schools = School.__table__
sync_events = SyncEvent.__table__

_CACHE_FIELDS = ("role", "active", "school_id", "office_id", "municipality_key", "province_key")


@dataclass(frozen=True)
class SyncResult:
    principal_id: str
    trigger: str
    outcome: SyncOutcome
    changed: bool
    # Stored row differed from a fresh derivation before this run.
    drift: bool
    identity: CachedIdentity | None
    detail: str | None = None


SyncSink = Callable[[SyncResult], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _matches(row, derived: DerivedIdentity) -> bool:
    values = derived.as_values()
    return all(getattr(row, field) == values[field] for field in _CACHE_FIELDS)


class SyncEngine:
    def __init__(
        self,
        bind: Session | Connection,
        *,
        sinks: Sequence[SyncSink] = (),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._bind = bind
        self._sinks = tuple(sinks)
        self._clock = clock

    @property
    def _conn(self) -> Connection:
        return connection_for(self._bind)

    # ---- Inbound events ---------------------------------------------------------------

    def on_role_assignment_changed(self, principal_id: str) -> SyncResult:
        return self.recompute(principal_id, trigger="assignment")

    def on_office_changed(self, office_id: str, *, previous_holders: Iterable[str] = ()) -> list[SyncResult]:
        principals = self._dependents_of_office(office_id) | {p for p in previous_holders if p}
        return [self.recompute(p, trigger="office") for p in sorted(principals)]

    def on_school_changed(self, school_id: str) -> list[SyncResult]:
        return [self.recompute(p, trigger="school") for p in sorted(self._dependents_of_school(school_id))]

    # ---- Administrative repair --------------------------------------------------------

    def resync(self, principal_id: str) -> SyncResult:
        """Force a full recomputation; `drift` reports whether the stored row was wrong."""

        return self.recompute(principal_id, trigger="resync")

    def resync_all(self) -> list[SyncResult]:
        conn = self._conn
        principals = set(conn.execute(select(role_assignments.c.principal_id)).scalars())
        principals |= set(conn.execute(select(identity_cache.c.principal_id)).scalars())
        logger.info("Resyncing identity cache for %s principals", len(principals))
        return [self.recompute(p, trigger="resync") for p in sorted(principals)]

    def detect_drift(self, principal_id: str) -> bool:
        derivation = self.derive(principal_id)
        existing = self._load_cache_row(principal_id)
        return not self._is_current(existing, derivation)

    # ---- Core -------------------------------------------------------------------------

    def derive(self, principal_id: str) -> Derivation:
        assignment = self._load_assignment(principal_id)
        if assignment is None or not assignment.active:
            return derive_identity(assignment)

        if assignment.role in OFFICE_ROLES:
            held = self._load_offices_held(principal_id, assignment)
            office = held[0] if len(held) == 1 else None
            return derive_identity(assignment, office=office, office_matches=len(held))

        if assignment.role in SCHOOL_ROLES and assignment.tenant_scope_id is not None:
            return derive_identity(assignment, school=self._load_school(assignment.tenant_scope_id))

        return derive_identity(assignment)

    def recompute(self, principal_id: str, *, trigger: str) -> SyncResult:
        derivation = self.derive(principal_id)
        existing = self._load_cache_row(principal_id)
        drift = not self._is_current(existing, derivation)

        if drift:
            self._write(principal_id, derivation, existing)

        identity = None
        if derivation.identity is not None:
            row = self._load_cache_row(principal_id)
            identity = row_to_identity(row) if row is not None else None

        result = SyncResult(
            principal_id=principal_id,
            trigger=trigger,
            outcome=derivation.outcome,
            changed=drift,
            drift=drift,
            identity=identity,
            detail=derivation.detail,
        )

        if not drift:
            logger.debug(
                "Identity cache unchanged principal=%s trigger=%s outcome=%s",
                principal_id,
                trigger,
                derivation.outcome.value,
            )
            return result

        if derivation.outcome is SyncOutcome.DEGRADED:
            logger.warning(
                "Identity cache degraded (fail closed) principal=%s trigger=%s detail=%s",
                principal_id,
                trigger,
                derivation.detail,
            )
        else:
            logger.info(
                "Identity cache updated principal=%s trigger=%s outcome=%s",
                principal_id,
                trigger,
                derivation.outcome.value,
            )

        # Only transitions are recorded; a principal that stays degraded adds no rows.
        self._record_event(result)
        for sink in self._sinks:
            sink(result)

        return result

    # ---- Reads of authoritative rows --------------------------------------------------

    def _load_assignment(self, principal_id: str) -> AssignmentState | None:
        row = self._conn.execute(
            select(
                role_assignments.c.principal_id,
                role_assignments.c.role,
                role_assignments.c.tenant_scope_id,
                role_assignments.c.status,
            ).where(role_assignments.c.principal_id == principal_id)
        ).first()
        if row is None:
            return None
        return AssignmentState(
            principal_id=row.principal_id,
            role=row.role,
            tenant_scope_id=row.tenant_scope_id,
            active=row.status is AssignmentStatus.ACTIVE,
        )

    def _load_offices_held(self, principal_id: str, assignment: AssignmentState) -> list[OfficeState]:
        kind = OFFICE_ROLES[assignment.role]
        rows = self._conn.execute(
            select(offices)
            .where(
                offices.c.principal_id == principal_id,
                offices.c.kind == kind,
                offices.c.active.is_(True),
            )
            .order_by(offices.c.id)
        ).all()
        return [
            OfficeState(
                office_id=row.id,
                kind=row.kind,
                place_key=row.place_key,
                parent_place_key=row.parent_place_key,
                active=bool(row.active),
            )
            for row in rows
        ]

    def _load_school(self, school_id: str) -> SchoolState | None:
        row = self._conn.execute(
            select(schools.c.id, schools.c.municipality_key, schools.c.province_key).where(schools.c.id == school_id)
        ).first()
        if row is None:
            return None
        return SchoolState(school_id=row.id, municipality_key=row.municipality_key, province_key=row.province_key)

    def _dependents_of_office(self, office_id: str) -> set[str]:
        conn = self._conn
        principals = set(
            conn.execute(select(identity_cache.c.principal_id).where(identity_cache.c.office_id == office_id)).scalars()
        )
        holder = conn.execute(select(offices.c.principal_id).where(offices.c.id == office_id)).scalar_one_or_none()
        if holder:
            principals.add(holder)
        return principals

    def _dependents_of_school(self, school_id: str) -> set[str]:
        conn = self._conn
        principals = set(
            conn.execute(select(identity_cache.c.principal_id).where(identity_cache.c.school_id == school_id)).scalars()
        )
        principals |= set(
            conn.execute(
                select(role_assignments.c.principal_id).where(role_assignments.c.tenant_scope_id == school_id)
            ).scalars()
        )
        return principals

    # ---- Cache writes -----------------------------------------------------------------

    def _load_cache_row(self, principal_id: str):
        return self._conn.execute(
            select(identity_cache).where(identity_cache.c.principal_id == principal_id)
        ).first()

    @staticmethod
    def _is_current(existing, derivation: Derivation) -> bool:
        if derivation.identity is None:
            return existing is None
        return existing is not None and _matches(existing, derivation.identity)

    def _write(self, principal_id: str, derivation: Derivation, existing) -> None:
        conn = self._conn

        if derivation.identity is None:
            conn.execute(delete(identity_cache).where(identity_cache.c.principal_id == principal_id))
            return

        values = derivation.identity.as_values()
        if existing is None:
            conn.execute(insert(identity_cache).values(**values, version=1, updated_at=self._clock()))
        else:
            conn.execute(
                update(identity_cache)
                .where(identity_cache.c.principal_id == principal_id)
                .values(**values, version=existing.version + 1, updated_at=self._clock())
            )

    def _record_event(self, result: SyncResult) -> None:
        self._conn.execute(
            insert(sync_events).values(
                principal_id=result.principal_id,
                trigger=result.trigger,
                outcome=result.outcome.value,
                detail=result.detail,
                created_at=self._clock(),
            )
        )
