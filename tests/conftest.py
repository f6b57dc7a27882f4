"""
Pytest fixtures for the test suite.

Database tests use an in-memory SQLite engine. Each test runs inside an outer
transaction that is rolled back at the end; the session itself works in a
SAVEPOINT, so `db_session.rollback()` inside a test behaves like a real
transaction abort.
"""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from school_authz.db import filters as _filters  # noqa: F401  (register record visibility filter)
from school_authz.models.records import StudentRecord
from school_authz.models.roles import AssignmentStatus, RoleAssignment
from school_authz.models.tenancy import Office, School
from school_authz.policy import OfficeKind, Role
from school_authz.sync import listeners as _listeners  # noqa: F401  (register identity cache sync)


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; let SQLAlchemy emit it.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from school_authz.db.base import Base
    from school_authz.models import audit, identity_cache, records, roles, tenancy  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    `commit()` releases the session's savepoint, `rollback()` discards it;
    the outer transaction keeps tests isolated either way.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
        join_transaction_mode="create_savepoint",
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


class TenantBuilder:
    """Arrange helpers: each call adds through the ORM and flushes (firing the sync)."""

    def __init__(self, db: Session):
        self.db = db

    def school(self, school_id: str, municipality: str, province: str = "Luanda", **kwargs) -> School:
        school = School(id=school_id, name=kwargs.pop("name", school_id), municipality_key=municipality, province_key=province, **kwargs)
        self.db.add(school)
        self.db.flush()
        return school

    def office(
        self,
        office_id: str,
        kind: OfficeKind,
        place: str,
        *,
        parent: str | None = None,
        holder: str | None = None,
        active: bool = True,
    ) -> Office:
        office = Office(
            id=office_id,
            kind=kind,
            name=office_id,
            principal_id=holder,
            place_key=place,
            parent_place_key=parent,
            active=active,
        )
        self.db.add(office)
        self.db.flush()
        return office

    def assign(
        self,
        principal_id: str,
        role: Role,
        school_id: str | None = None,
        status: AssignmentStatus = AssignmentStatus.ACTIVE,
    ) -> RoleAssignment:
        assignment = RoleAssignment(principal_id=principal_id, role=role, tenant_scope_id=school_id, status=status)
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def record(self, owner: str | None, school_id: str, title: str = "record") -> StudentRecord:
        record = StudentRecord(owner_principal_id=owner, school_id=school_id, title=title)
        self.db.add(record)
        self.db.flush()
        return record


@pytest.fixture
def build(db_session) -> TenantBuilder:
    return TenantBuilder(db_session)


@pytest.fixture
def seeded(db_session) -> Session:
    """The demo tenants, principals and records from `init_db`."""
    from school_authz.db.init_db import seed_demo_data

    seed_demo_data(db_session)
    db_session.flush()
    return db_session
