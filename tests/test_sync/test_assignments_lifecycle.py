"""Role assignment lifecycle services and their effect on the identity cache."""

import pytest
from sqlalchemy import select

from school_authz.db.cache_store import IdentityCacheStore
from school_authz.errors import DuplicateActiveAssignmentError, InvalidTransitionError, NotFoundError
from school_authz.models.roles import AssignmentStatus
from school_authz.models.tenancy import Office
from school_authz.policy import OfficeKind, Role
from school_authz.security.enforcement import evaluator_for
from school_authz.services.assignments import (
    appoint_office_holder,
    approve,
    change_role,
    deactivate,
    get_assignment,
    request_role,
)


@pytest.fixture
def schools(build):
    build.school("S1", "Luanda", "Luanda")
    build.school("S2", "Lobito", "Benguela")
    return build


def _cached(db, principal_id):
    return IdentityCacheStore(db).get(principal_id)


def test_request_then_approve(db_session, schools):
    assignment = request_role(db_session, "tess", Role.TEACHER, "S1")

    assert assignment.status is AssignmentStatus.PENDING_APPROVAL
    assert _cached(db_session, "tess").active is False

    approve(db_session, "tess")

    cached = _cached(db_session, "tess")
    assert cached.active is True
    assert cached.school_id == "S1"
    assert evaluator_for(db_session).school_in_scope("tess", "S1") is True


def test_request_while_active_is_refused(db_session, schools):
    schools.assign("tess", Role.TEACHER, "S1")

    with pytest.raises(DuplicateActiveAssignmentError):
        request_role(db_session, "tess", Role.SECRETARY, "S1")


def test_reonboarding_after_deactivation(db_session, schools):
    schools.assign("tess", Role.TEACHER, "S1")
    deactivate(db_session, "tess")

    assignment = request_role(db_session, "tess", Role.SECRETARY, "S2")

    assert assignment.status is AssignmentStatus.PENDING_APPROVAL
    assert assignment.role is Role.SECRETARY
    approve(db_session, "tess")
    cached = _cached(db_session, "tess")
    assert (cached.role, cached.school_id, cached.active) == (Role.SECRETARY, "S2", True)


@pytest.mark.parametrize("action", [approve, lambda db, p: request_role(db, p, Role.TEACHER, "S1")])
def test_invalid_transitions_raise(db_session, schools, action):
    schools.assign("tess", Role.TEACHER, "S1")

    with pytest.raises((InvalidTransitionError, DuplicateActiveAssignmentError)):
        action(db_session, "tess")


def test_deactivate_pending_is_allowed_twice_is_not(db_session, schools):
    request_role(db_session, "tess", Role.TEACHER, "S1")
    deactivate(db_session, "tess")

    with pytest.raises(InvalidTransitionError) as excinfo:
        deactivate(db_session, "tess")
    assert excinfo.value.current == AssignmentStatus.DEACTIVATED.value


def test_unknown_principal(db_session):
    with pytest.raises(NotFoundError):
        approve(db_session, "nobody")


def test_change_role_rebinds_scope(db_session, schools):
    schools.assign("dan", Role.SCHOOL_ADMIN, "S1")

    change_role(db_session, "dan", Role.TEACHER, "S2")

    cached = _cached(db_session, "dan")
    assert (cached.role, cached.school_id, cached.province_key) == (Role.TEACHER, "S2", "Benguela")
    assert cached.version == 2
    evaluator = evaluator_for(db_session)
    assert evaluator.school_in_scope("dan", "S1") is False
    assert evaluator.school_in_scope("dan", "S2") is True


def test_change_role_requires_active_assignment(db_session, schools):
    request_role(db_session, "dan", Role.SCHOOL_ADMIN, "S1")

    with pytest.raises(InvalidTransitionError):
        change_role(db_session, "dan", Role.TEACHER, "S1")


def test_appoint_office_holder_activates_office_and_holder(db_session, schools):
    schools.office("OM", OfficeKind.MUNICIPAL, "Luanda", parent="Luanda", active=False)

    office = appoint_office_holder(db_session, "OM", "alice")

    assert office.active is True
    assert get_assignment(db_session, "alice").role is Role.MUNICIPAL_OFFICE
    cached = _cached(db_session, "alice")
    assert (cached.active, cached.office_id, cached.municipality_key) == (True, "OM", "Luanda")


def test_appoint_office_holder_supersedes_previous_holder(db_session, schools):
    schools.office("OM", OfficeKind.MUNICIPAL, "Luanda", parent="Luanda", active=False)
    appoint_office_holder(db_session, "OM", "alice")
    request_role(db_session, "zoe", Role.MUNICIPAL_OFFICE)

    appoint_office_holder(db_session, "OM", "zoe")

    assert get_assignment(db_session, "alice").status is AssignmentStatus.SUPERSEDED
    assert get_assignment(db_session, "zoe").status is AssignmentStatus.ACTIVE
    evaluator = evaluator_for(db_session)
    assert evaluator.school_in_scope("alice", "S1") is False
    assert evaluator.school_in_scope("zoe", "S1") is True


def test_appoint_unknown_office(db_session):
    with pytest.raises(NotFoundError):
        appoint_office_holder(db_session, "missing", "alice")


def test_transfer_between_offices_keeps_access(db_session, schools):
    schools.school("S9", "Cazenga", "Luanda")
    schools.office("OM-A", OfficeKind.MUNICIPAL, "Luanda", parent="Luanda", active=False)
    schools.office("OM-B", OfficeKind.MUNICIPAL, "Cazenga", parent="Luanda", active=False)
    appoint_office_holder(db_session, "OM-A", "alice")

    appoint_office_holder(db_session, "OM-B", "alice")

    cached = _cached(db_session, "alice")
    assert (cached.active, cached.office_id, cached.municipality_key) == (True, "OM-B", "Cazenga")
    assert get_assignment(db_session, "alice").status is AssignmentStatus.ACTIVE
    vacated = db_session.scalars(select(Office).where(Office.id == "OM-A")).one()
    assert vacated.principal_id is None
    evaluator = evaluator_for(db_session)
    assert evaluator.school_in_scope("alice", "S9") is True
    assert evaluator.school_in_scope("alice", "S1") is False
