from __future__ import annotations

import logging

from sqlalchemy import event, inspect, select
from sqlalchemy.orm import Session

from school_authz.errors import (
    BulkWriteError,
    CacheWriteError,
    DuplicateActiveAssignmentError,
    DuplicateActiveOfficeError,
    InvalidRoleAssignmentError,
)
from school_authz.models.identity_cache import IdentityCacheEntry
from school_authz.models.roles import RoleAssignment
from school_authz.models.tenancy import Office, School
from school_authz.policy import SCHOOL_ROLES, OfficeKind, Role

from .engine import SyncEngine

logger = logging.getLogger(__name__)


def _touched(session: Session) -> list[object]:
    return [*session.new, *session.dirty, *session.deleted]


def _previous_values(obj: object, attr: str) -> list:
    return [v for v in inspect(obj).attrs[attr].history.deleted if v is not None]


# ---- Integrity checks (before the write) --------------------------------------------


@event.listens_for(Session, "before_flush")
def _reject_invalid_writes(session: Session, flush_context, instances) -> None:
    """
    Refuse writes that would break the authoritative invariants.

    Raising here aborts the flush; the caller's transaction must not commit.
    """

    for obj in _touched(session):
        if isinstance(obj, IdentityCacheEntry):
            raise CacheWriteError(
                f"identity cache row {obj.principal_id!r} can only be written by the sync engine"
            )

    _check_assignments(session)
    _check_offices(session)


def _check_assignments(session: Session) -> None:
    pending = [
        obj
        for obj in [*session.new, *session.dirty]
        if isinstance(obj, RoleAssignment) and obj not in session.deleted
    ]
    if not pending:
        return

    for assignment in pending:
        if assignment.role in SCHOOL_ROLES:
            if not assignment.tenant_scope_id:
                raise InvalidRoleAssignmentError(
                    f"{Role(assignment.role).value} for {assignment.principal_id!r} requires tenant_scope_id (school id)"
                )
        elif assignment.tenant_scope_id is not None:
            raise InvalidRoleAssignmentError(
                f"{Role(assignment.role).value} for {assignment.principal_id!r} must not carry tenant_scope_id"
            )

    seen: set[str] = set()
    for assignment in pending:
        if assignment.principal_id in seen:
            raise DuplicateActiveAssignmentError(assignment.principal_id)
        seen.add(assignment.principal_id)

    # Rows already in the database, minus the ones this flush rewrites or deletes.
    in_flight = {
        obj.id
        for obj in [*session.dirty, *session.deleted]
        if isinstance(obj, RoleAssignment) and obj.id is not None
    }
    table = RoleAssignment.__table__
    conn = session.connection()
    for assignment in pending:
        stmt = select(table.c.id).where(table.c.principal_id == assignment.principal_id)
        if in_flight:
            stmt = stmt.where(table.c.id.not_in(in_flight))
        if assignment.id is not None:
            stmt = stmt.where(table.c.id != assignment.id)
        if conn.execute(stmt.limit(1)).first() is not None:
            raise DuplicateActiveAssignmentError(assignment.principal_id)


def _check_offices(session: Session) -> None:
    pending = [
        obj
        for obj in [*session.new, *session.dirty]
        if isinstance(obj, Office) and obj.active and obj not in session.deleted
    ]
    if not pending:
        return

    seen: set[tuple] = set()
    for office in pending:
        key = (office.kind, office.place_key)
        if key in seen:
            raise DuplicateActiveOfficeError(OfficeKind(office.kind).value, office.place_key)
        seen.add(key)

    in_flight = {
        obj.id for obj in [*session.dirty, *session.deleted] if isinstance(obj, Office) and obj.id is not None
    }
    table = Office.__table__
    conn = session.connection()
    for office in pending:
        stmt = select(table.c.id).where(
            table.c.kind == office.kind,
            table.c.place_key == office.place_key,
            table.c.active.is_(True),
        )
        if in_flight:
            stmt = stmt.where(table.c.id.not_in(in_flight))
        if office.id is not None:
            stmt = stmt.where(table.c.id != office.id)
        if conn.execute(stmt.limit(1)).first() is not None:
            raise DuplicateActiveOfficeError(OfficeKind(office.kind).value, office.place_key)


# ---- Bulk statements (bypass the unit of work) ---------------------------------------

_SOURCE_TABLES = frozenset({RoleAssignment.__tablename__, Office.__tablename__, School.__tablename__})


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_writes(execute_state) -> None:
    """
    Refuse INSERT/UPDATE/DELETE statements run through the session against
    the identity cache or the tables it is derived from.

    Those statements skip the flush, so neither the place-key validators nor
    the propagation below would see them, and cached scopes would go stale.
    """

    if execute_state.is_insert:
        operation = "INSERT"
    elif execute_state.is_update:
        operation = "UPDATE"
    elif execute_state.is_delete:
        operation = "DELETE"
    else:
        return

    table = getattr(getattr(execute_state.statement, "table", None), "name", None)
    if table == IdentityCacheEntry.__tablename__:
        raise CacheWriteError(f"bulk {operation} on {table!r}: the identity cache is written by the sync engine only")
    if table in _SOURCE_TABLES:
        raise BulkWriteError(operation, table)


# ---- Propagation (after the write, same transaction) ---------------------------------


@event.listens_for(Session, "after_flush")
def _propagate_to_identity_cache(session: Session, flush_context) -> None:
    """
    Recompute every identity cache row affected by this flush.

    Runs after the authoritative rows are written and before the transaction
    can commit, on the same connection: readers later in the transaction see
    the new cache rows, and a rollback discards them together with their cause.
    """

    principals: list[str] = []
    offices: dict[str, set[str]] = {}
    schools: list[str] = []

    for obj in _touched(session):
        if obj in session.dirty and not session.is_modified(obj):
            continue

        if isinstance(obj, RoleAssignment):
            principals.append(obj.principal_id)
            principals.extend(_previous_values(obj, "principal_id"))
        elif isinstance(obj, Office):
            holders = offices.setdefault(obj.id, set())
            holders.update(_previous_values(obj, "principal_id"))
            if obj in session.deleted and obj.principal_id:
                holders.add(obj.principal_id)
        elif isinstance(obj, School):
            schools.append(obj.id)

    if not (principals or offices or schools):
        return

    engine = SyncEngine(session, sinks=session.info.get("sync_sinks", ()))

    for principal_id in dict.fromkeys(principals):
        engine.on_role_assignment_changed(principal_id)
    for office_id, previous_holders in offices.items():
        engine.on_office_changed(office_id, previous_holders=previous_holders)
    for school_id in dict.fromkeys(schools):
        engine.on_school_changed(school_id)

    logger.debug(
        "Identity cache propagation done principals=%s offices=%s schools=%s",
        len(principals),
        len(offices),
        len(schools),
    )
