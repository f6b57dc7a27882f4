"""
Read side of the identity cache.

Deliberately below the security boundary: a single-table select by primary
key, no joins, no filters, no authorization. Writes live in
`school_authz.sync.engine`.
"""

from __future__ import annotations

from sqlalchemy import Connection, select
from sqlalchemy.orm import Session

from school_authz.models.identity_cache import IdentityCacheEntry
from school_authz.policy import CachedIdentity

identity_cache = IdentityCacheEntry.__table__


def connection_for(bind: Session | Connection) -> Connection:
    # Core on the session's connection: same transaction, and no ORM events
    # (do_orm_execute) fire for these statements.
    if isinstance(bind, Session):
        return bind.connection()
    return bind


def row_to_identity(row) -> CachedIdentity:
    return CachedIdentity(
        principal_id=row.principal_id,
        role=row.role,
        active=bool(row.active),
        school_id=row.school_id,
        office_id=row.office_id,
        municipality_key=row.municipality_key,
        province_key=row.province_key,
        version=row.version,
        updated_at=row.updated_at,
    )


class IdentityCacheStore:
    """
    `get(principal_id) -> CachedIdentity | None`.

    Absence is a valid answer (unknown principal) and means deny downstream.
    Reads see flushed state only; pending ORM changes are synced on flush.
    """

    def __init__(self, bind: Session | Connection):
        self._bind = bind

    def get(self, principal_id: str) -> CachedIdentity | None:
        row = connection_for(self._bind).execute(
            select(identity_cache).where(identity_cache.c.principal_id == principal_id)
        ).first()
        if row is None:
            return None
        return row_to_identity(row)
