"""
Row scoping of protected records through the `do_orm_execute` hook.

Demo data (see `seed_demo_data`):
    S1 Luanda/Luanda   records owned by eve, eve-sibling
    S2 Benguela        record owned by gina
    S3 Cazenga/Luanda  record owned by hugo
"""

import re

import pytest
from sqlalchemy import event, func, select

from school_authz.db.filters import protected_entities
from school_authz.models.records import StudentRecord
from school_authz.policy import Role
from school_authz.security.context import AuthzContext
from school_authz.security.enforcement import evaluator_for

ALL = {"eve", "eve-sibling", "gina", "hugo"}


def _as(db, principal_id):
    db.info["authz"] = AuthzContext(principal_id=principal_id, identity=None)


def _visible_owners(db):
    return {r.owner_principal_id for r in db.scalars(select(StudentRecord)).all()}


@pytest.mark.parametrize(
    "principal_id, expected",
    [
        ("bob", ALL),
        ("alice", {"eve", "eve-sibling"}),
        ("carol", {"eve", "eve-sibling", "hugo"}),
        ("dan", {"eve", "eve-sibling"}),
        ("frank", {"gina"}),
        ("eve", {"eve"}),
        ("hugo", {"hugo"}),
        ("nobody", set()),
    ],
)
def test_visibility_per_principal(seeded, principal_id, expected):
    _as(seeded, principal_id)
    assert _visible_owners(seeded) == expected


def test_no_context_means_no_filter(seeded):
    assert _visible_owners(seeded) == ALL


def test_guardian_sees_only_own_records(seeded, build):
    build.assign("gus", Role.GUARDIAN, "S1")
    _as(seeded, "gus")
    assert _visible_owners(seeded) == set()


def test_filter_applies_to_column_selects(seeded):
    _as(seeded, "frank")
    assert seeded.scalars(select(StudentRecord.title)).all() == ["Declaracao de matricula"]


def test_filter_applies_to_counts(seeded):
    _as(seeded, "alice")
    assert seeded.scalar(select(func.count(StudentRecord.id))) == 2


def test_filter_follows_cache_within_transaction(seeded):
    from school_authz.services.assignments import deactivate

    _as(seeded, "dan")
    assert len(_visible_owners(seeded)) == 2

    deactivate(seeded, "dan")

    assert _visible_owners(seeded) == set()


def test_protected_entities():
    assert StudentRecord in protected_entities()


# ---- No-cycle -------------------------------------------------------------------------

_TABLES = ("identity_cache", "role_assignments", "offices", "schools", "student_records")


@pytest.fixture
def captured_selects(engine):
    statements: list[str] = []

    def _capture(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            statements.append(statement)

    event.listen(engine, "before_cursor_execute", _capture)
    yield statements
    event.remove(engine, "before_cursor_execute", _capture)


def _tables_in(statement):
    return {name for name in _TABLES if re.search(rf"\b{name}\b", statement)}


def test_evaluator_reads_only_cache_and_directory(seeded, captured_selects):
    evaluator = evaluator_for(seeded)

    evaluator.is_role("alice", Role.MUNICIPAL_OFFICE)
    evaluator.school_in_scope("alice", "S1")
    evaluator.school_in_scope("dan", "S2")
    evaluator.office_in_scope("carol", "OM-LUANDA")

    touched = set().union(*(_tables_in(s) for s in captured_selects))
    assert captured_selects
    assert touched <= {"identity_cache", "schools", "offices"}
    # Offices are only read as a target, never to resolve the acting principal.
    assert all(_tables_in(s) == {"offices"} for s in captured_selects if "offices" in _tables_in(s))
    assert "role_assignments" not in touched
    assert "student_records" not in touched


def test_filtered_select_resolves_principal_from_cache_only(seeded, captured_selects):
    _as(seeded, "carol")

    _visible_owners(seeded)

    assert [_tables_in(s) for s in captured_selects] == [
        {"identity_cache"},
        {"student_records", "schools"},
    ]
