from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_authz.db.base import Base
from school_authz.db.session import SessionLocal, engine
from school_authz.models import audit as _audit  # noqa: F401  (register table)
from school_authz.models import identity_cache as _identity_cache  # noqa: F401  (register table)
from school_authz.models.records import StudentRecord
from school_authz.models.roles import AssignmentStatus, RoleAssignment
from school_authz.models.tenancy import Office, School
from school_authz.policy import OfficeKind, Role
from school_authz.sync import listeners as _listeners  # noqa: F401  (seed writes must fill the cache)

logger = logging.getLogger(__name__)


def init_db(seed: bool = True) -> None:
    """
    Create tables, then seed demo tenants and principals.

    Seeding goes through the ORM, so the identity cache is filled by the sync
    listeners exactly as in production writes.
    """

    Base.metadata.create_all(bind=engine)
    if not seed:
        return

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed_demo_data(db)
        db.commit()


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(School.id).limit(1)).first() is not None


def seed_demo_data(db: Session) -> None:
    # Tenant directory
    s1 = School(id="S1", name="Escola Primaria 1", municipality_key="Luanda", province_key="Luanda")
    s2 = School(id="S2", name="Escola Secundaria 2", municipality_key="Benguela", province_key="Benguela")
    s3 = School(id="S3", name="Escola do Cazenga", municipality_key="Cazenga", province_key="Luanda")
    db.add_all([s1, s2, s3])

    luanda_municipal = Office(
        id="OM-LUANDA",
        kind=OfficeKind.MUNICIPAL,
        name="Direccao Municipal de Luanda",
        principal_id="alice",
        place_key="Luanda",
        parent_place_key="Luanda",
        active=True,
    )
    luanda_provincial = Office(
        id="OP-LUANDA",
        kind=OfficeKind.PROVINCIAL,
        name="Direccao Provincial de Luanda",
        principal_id="carol",
        place_key="Luanda",
        active=True,
    )
    db.add_all([luanda_municipal, luanda_provincial])
    db.flush()

    # Role assignments
    db.add_all(
        [
            RoleAssignment(principal_id="bob", role=Role.NATIONAL_ADMIN, status=AssignmentStatus.ACTIVE),
            RoleAssignment(principal_id="alice", role=Role.MUNICIPAL_OFFICE, status=AssignmentStatus.ACTIVE),
            RoleAssignment(principal_id="carol", role=Role.PROVINCE_OFFICE, status=AssignmentStatus.ACTIVE),
            RoleAssignment(
                principal_id="dan", role=Role.SCHOOL_ADMIN, tenant_scope_id="S1", status=AssignmentStatus.ACTIVE
            ),
            RoleAssignment(principal_id="eve", role=Role.STUDENT, tenant_scope_id="S1", status=AssignmentStatus.ACTIVE),
            RoleAssignment(
                principal_id="frank", role=Role.TEACHER, tenant_scope_id="S2", status=AssignmentStatus.ACTIVE
            ),
        ]
    )
    db.flush()

    # Protected business records
    db.add_all(
        [
            StudentRecord(owner_principal_id="eve", school_id="S1", title="Boletim 1o trimestre"),
            StudentRecord(owner_principal_id="eve-sibling", school_id="S1", title="Boletim 1o trimestre"),
            StudentRecord(owner_principal_id="gina", school_id="S2", title="Declaracao de matricula"),
            StudentRecord(owner_principal_id="hugo", school_id="S3", title="Certificado"),
        ]
    )
    logger.info("Seeded demo tenants, principals and records")
