"""
Role assignment lifecycle.

    PENDING_APPROVAL ──► ACTIVE ──► DEACTIVATED
           │               └──────► SUPERSEDED
           └──────────────────────► DEACTIVATED
    DEACTIVATED / SUPERSEDED ──► PENDING_APPROVAL   (re-onboarding)

Every function writes through the ORM and flushes, so the identity cache is
recomputed (and integrity errors are raised) before it returns.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_authz.errors import DuplicateActiveAssignmentError, InvalidTransitionError, NotFoundError
from school_authz.models.roles import AssignmentStatus, RoleAssignment
from school_authz.models.tenancy import Office
from school_authz.policy import Role, role_for_office

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[AssignmentStatus, frozenset[AssignmentStatus]] = {
    AssignmentStatus.PENDING_APPROVAL: frozenset({AssignmentStatus.ACTIVE, AssignmentStatus.DEACTIVATED}),
    AssignmentStatus.ACTIVE: frozenset({AssignmentStatus.DEACTIVATED, AssignmentStatus.SUPERSEDED}),
    AssignmentStatus.DEACTIVATED: frozenset({AssignmentStatus.PENDING_APPROVAL}),
    AssignmentStatus.SUPERSEDED: frozenset({AssignmentStatus.PENDING_APPROVAL}),
}


def get_assignment(db: Session, principal_id: str) -> RoleAssignment | None:
    return db.scalars(select(RoleAssignment).where(RoleAssignment.principal_id == principal_id)).first()


def _require_assignment(db: Session, principal_id: str) -> RoleAssignment:
    assignment = get_assignment(db, principal_id)
    if assignment is None:
        raise NotFoundError(f"no role assignment for principal {principal_id!r}")
    return assignment


def _transition(assignment: RoleAssignment, target: AssignmentStatus) -> None:
    if target not in _TRANSITIONS[assignment.status]:
        raise InvalidTransitionError(assignment.principal_id, assignment.status.value, target.value)
    logger.info(
        "Role assignment transition principal=%s %s -> %s",
        assignment.principal_id,
        assignment.status.value,
        target.value,
    )
    assignment.status = target


def request_role(db: Session, principal_id: str, role: Role, tenant_scope_id: str | None = None) -> RoleAssignment:
    """Onboarding: create (or reopen) an assignment awaiting approval."""

    assignment = get_assignment(db, principal_id)
    if assignment is None:
        assignment = RoleAssignment(
            principal_id=principal_id,
            role=role,
            tenant_scope_id=tenant_scope_id,
            status=AssignmentStatus.PENDING_APPROVAL,
        )
        db.add(assignment)
    elif assignment.status in (AssignmentStatus.ACTIVE, AssignmentStatus.PENDING_APPROVAL):
        raise DuplicateActiveAssignmentError(principal_id)
    else:
        _transition(assignment, AssignmentStatus.PENDING_APPROVAL)
        assignment.role = role
        assignment.tenant_scope_id = tenant_scope_id

    db.flush()
    return assignment


def approve(db: Session, principal_id: str) -> RoleAssignment:
    assignment = _require_assignment(db, principal_id)
    _transition(assignment, AssignmentStatus.ACTIVE)
    db.flush()
    return assignment


def deactivate(db: Session, principal_id: str) -> RoleAssignment:
    assignment = _require_assignment(db, principal_id)
    _transition(assignment, AssignmentStatus.DEACTIVATED)
    db.flush()
    return assignment


def change_role(db: Session, principal_id: str, role: Role, tenant_scope_id: str | None = None) -> RoleAssignment:
    """Replace an active assignment's role/scope in place; the principal keeps a single row."""

    assignment = _require_assignment(db, principal_id)
    if not assignment.active:
        raise InvalidTransitionError(principal_id, assignment.status.value, AssignmentStatus.ACTIVE.value)

    logger.info(
        "Role assignment superseded in place principal=%s %s -> %s",
        principal_id,
        assignment.role.value,
        Role(role).value,
    )
    assignment.role = role
    assignment.tenant_scope_id = tenant_scope_id
    db.flush()
    return assignment


def appoint_office_holder(db: Session, office_id: str, principal_id: str) -> Office:
    """
    Bind a principal to an office and activate both.

    The previous holder's office assignment (if any) becomes SUPERSEDED, and any
    other office of the same kind held by the principal is left without a holder.
    """

    office = db.scalars(select(Office).where(Office.id == office_id)).first()
    if office is None:
        raise NotFoundError(f"office {office_id!r} does not exist")

    role = role_for_office(office.kind)

    previous_holder = office.principal_id
    if previous_holder and previous_holder != principal_id:
        previous = get_assignment(db, previous_holder)
        if previous is not None and previous.active and previous.role is role:
            _transition(previous, AssignmentStatus.SUPERSEDED)

    # A transfer: the principal leaves every other office of this kind.
    vacated = db.scalars(
        select(Office).where(
            Office.principal_id == principal_id,
            Office.kind == office.kind,
            Office.id != office_id,
        )
    ).all()
    for other in vacated:
        logger.info("Office vacated by transfer office=%s principal=%s", other.id, principal_id)
        other.principal_id = None

    office.principal_id = principal_id
    office.active = True

    assignment = get_assignment(db, principal_id)
    if assignment is None:
        db.add(RoleAssignment(principal_id=principal_id, role=role, status=AssignmentStatus.ACTIVE))
    else:
        if not assignment.active:
            if assignment.status is not AssignmentStatus.PENDING_APPROVAL:
                _transition(assignment, AssignmentStatus.PENDING_APPROVAL)
            _transition(assignment, AssignmentStatus.ACTIVE)
        assignment.role = role
        assignment.tenant_scope_id = None

    db.flush()
    logger.info("Office holder appointed office=%s principal=%s previous=%s", office_id, principal_id, previous_holder)
    return office
