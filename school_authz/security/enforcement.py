"""
Authorization enforcement point for protected records.

Composition, in order, default deny:
    is_self(principal, record.owner)
    OR is_role(principal, NATIONAL_ADMIN)
    OR school_in_scope(principal, record.school_id)   # record-scope roles only

Two renditions of the same rule:
- `can_view_record`: a boolean check for one loaded record.
- `record_visibility_clause`: a SQL criterion attached to queries by
  `school_authz.db.filters`.
Entity-specific narrowing (e.g. a teacher's class assignments) belongs to the
business layer and is combined on top of these.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import ColumnElement, Connection, and_, false, or_, select, true
from sqlalchemy.orm import Session

from school_authz.db.cache_store import IdentityCacheStore
from school_authz.db.directory import TenantDirectory
from school_authz.models.tenancy import School
from school_authz.policy import RECORD_SCOPE_ROLES, SCHOOL_ROLES, CachedIdentity, PolicyEvaluator, Role


def evaluator_for(bind: Session | Connection) -> PolicyEvaluator:
    return PolicyEvaluator(IdentityCacheStore(bind), TenantDirectory(bind))


def is_self(principal_id: str | None, owner_principal_id: str | None) -> bool:
    return bool(principal_id) and principal_id == owner_principal_id


def can_view_record(evaluator: PolicyEvaluator, principal_id: str | None, record: Any) -> bool:
    if is_self(principal_id, record.owner_principal_id):
        return True
    if evaluator.is_role(principal_id, Role.NATIONAL_ADMIN):
        return True
    if not evaluator.is_any_role(principal_id, RECORD_SCOPE_ROLES):
        return False
    return evaluator.school_in_scope(principal_id, record.school_id)


def record_visibility_clause(cls: type, principal_id: str | None, identity: CachedIdentity | None) -> ColumnElement[bool]:
    """
    SQL criterion equivalent to `can_view_record` for a `ScopedRecordMixin` class.

    `identity` is the acting principal's cache row, read once per statement.
    The only other table referenced is `schools` (the record's static scope).
    """

    self_clause = cls.owner_principal_id == principal_id if principal_id else false()

    if identity is None or not identity.active or identity.role is None:
        return self_clause

    if identity.role is Role.NATIONAL_ADMIN:
        return true()

    scope_clause = _scope_clause(cls, identity)
    if scope_clause is None:
        return self_clause
    return or_(self_clause, scope_clause)


def _scope_clause(cls: type, identity: CachedIdentity) -> ColumnElement[bool] | None:
    if identity.role not in RECORD_SCOPE_ROLES:
        return None

    if identity.role is Role.PROVINCE_OFFICE:
        if identity.province_key is None:
            return None
        return cls.school_id.in_(select(School.id).where(School.province_key == identity.province_key))

    if identity.role is Role.MUNICIPAL_OFFICE:
        if identity.municipality_key is None:
            return None
        criteria = [School.municipality_key == identity.municipality_key]
        if identity.province_key is not None:
            criteria.append(School.province_key == identity.province_key)
        return cls.school_id.in_(select(School.id).where(and_(*criteria)))

    if identity.role in SCHOOL_ROLES:
        if identity.school_id is None:
            return None
        return cls.school_id == identity.school_id

    return None
