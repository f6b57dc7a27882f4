from __future__ import annotations

import logging

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria

logger = logging.getLogger(__name__)


def protected_entities() -> list[type]:
    """Every mapped class that mixes in `ScopedRecordMixin`."""

    # Local import to avoid cycles.
    from school_authz.db.base import Base
    from school_authz.models.records import ScopedRecordMixin

    return sorted(
        (m.class_ for m in Base.registry.mappers if issubclass(m.class_, ScopedRecordMixin)),
        key=lambda cls: cls.__name__,
    )


@event.listens_for(Session, "do_orm_execute")
def _apply_record_visibility(execute_state) -> None:
    """
    Transparent row scoping for protected records.

    Any ORM select run on a session that carries `Session.info["authz"]` gets
    the visibility predicate for every protected entity, so
        db.scalars(select(StudentRecord)).all()
    only returns what the acting principal may see.

    The acting principal's identity is read from the identity cache through a
    Core statement, which does not pass through this hook again.
    """

    if not execute_state.is_select:
        return

    authz = execute_state.session.info.get("authz")
    if authz is None:
        return

    # Local import to avoid cycles.
    from school_authz.db.cache_store import IdentityCacheStore
    from school_authz.security.enforcement import record_visibility_clause

    identity = IdentityCacheStore(execute_state.session).get(authz.principal_id) if authz.principal_id else None

    stmt = execute_state.statement
    for cls in protected_entities():
        clause = record_visibility_clause(cls, authz.principal_id, identity)
        stmt = stmt.options(with_loader_criteria(cls, clause, include_aliases=True))

    logger.debug(
        "Scoped select principal=%s role=%s",
        authz.principal_id,
        identity.role.value if identity is not None and identity.role is not None else None,
    )
    execute_state.statement = stmt
