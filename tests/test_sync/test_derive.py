"""Tests for the pure cache-row derivation."""

from school_authz.policy import OfficeKind, Role
from school_authz.sync.derive import (
    AssignmentState,
    DerivedIdentity,
    OfficeState,
    SchoolState,
    SyncOutcome,
    derive_identity,
)

MUNICIPAL = OfficeState(office_id="OM", kind=OfficeKind.MUNICIPAL, place_key="Luanda", parent_place_key="Luanda", active=True)
PROVINCIAL = OfficeState(office_id="OP", kind=OfficeKind.PROVINCIAL, place_key="Luanda", parent_place_key=None, active=True)
S1 = SchoolState(school_id="S1", municipality_key="Luanda", province_key="Luanda")


def _assignment(role, scope=None, active=True):
    return AssignmentState(principal_id="p", role=role, tenant_scope_id=scope, active=active)


def test_no_assignment_removes():
    derivation = derive_identity(None)
    assert derivation.outcome is SyncOutcome.REMOVED
    assert derivation.identity is None


def test_inactive_assignment_is_neutralized():
    derivation = derive_identity(_assignment(Role.TEACHER, "S1", active=False), school=S1)
    assert derivation.outcome is SyncOutcome.NEUTRALIZED
    assert derivation.identity == DerivedIdentity(principal_id="p", role=Role.TEACHER, active=False)


def test_national_admin_needs_no_scope():
    derivation = derive_identity(_assignment(Role.NATIONAL_ADMIN))
    assert derivation.outcome is SyncOutcome.RESOLVED
    assert derivation.identity == DerivedIdentity(principal_id="p", role=Role.NATIONAL_ADMIN, active=True)


def test_municipal_office_copies_place_and_parent():
    derivation = derive_identity(_assignment(Role.MUNICIPAL_OFFICE), office=MUNICIPAL, office_matches=1)
    assert derivation.identity == DerivedIdentity(
        principal_id="p",
        role=Role.MUNICIPAL_OFFICE,
        active=True,
        office_id="OM",
        municipality_key="Luanda",
        province_key="Luanda",
    )


def test_provincial_office_copies_province_only():
    derivation = derive_identity(_assignment(Role.PROVINCE_OFFICE), office=PROVINCIAL, office_matches=1)
    assert derivation.identity.province_key == "Luanda"
    assert derivation.identity.municipality_key is None
    assert derivation.identity.office_id == "OP"


def test_school_role_copies_school_scope():
    derivation = derive_identity(_assignment(Role.STUDENT, "S1"), school=S1)
    assert derivation.outcome is SyncOutcome.RESOLVED
    assert derivation.identity.school_id == "S1"
    assert derivation.identity.municipality_key == "Luanda"
    assert derivation.identity.province_key == "Luanda"


def test_dangling_school_degrades_fail_closed():
    derivation = derive_identity(_assignment(Role.TEACHER, "S404"), school=None)
    assert derivation.outcome is SyncOutcome.DEGRADED
    assert derivation.identity == DerivedIdentity(principal_id="p", role=Role.TEACHER, active=False)
    assert "S404" in derivation.detail


def test_missing_or_wrong_kind_office_degrades():
    assert derive_identity(_assignment(Role.MUNICIPAL_OFFICE), office=None).outcome is SyncOutcome.DEGRADED
    assert (
        derive_identity(_assignment(Role.MUNICIPAL_OFFICE), office=PROVINCIAL, office_matches=1).outcome
        is SyncOutcome.DEGRADED
    )


def test_ambiguous_office_binding_degrades():
    derivation = derive_identity(_assignment(Role.MUNICIPAL_OFFICE), office=None, office_matches=2)
    assert derivation.outcome is SyncOutcome.DEGRADED
    assert derivation.identity.active is False


def test_derivation_is_pure():
    args = (_assignment(Role.MUNICIPAL_OFFICE),)
    first = derive_identity(*args, office=MUNICIPAL, office_matches=1)
    second = derive_identity(*args, office=MUNICIPAL, office_matches=1)
    assert first == second
