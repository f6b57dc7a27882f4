"""
Policy evaluator.

Answers "is P a {role}?" and "what is P's scope?" from the identity cache only.
The acting principal is always an explicit argument; there is no ambient
"current user".

Reads:
- `IdentityReader`: the identity cache (who is acting).
- `TenantReader`: static attributes of a target school/office (what is being
  looked at). Those tables are not guarded by a rule that depends on the
  acting principal, so the lookup cannot recurse.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .identity import CachedIdentity, OfficeScope, SchoolScope, Scope
from .roles import Role, SCHOOL_ROLES
from .scope import office_visible, school_visible

logger = logging.getLogger(__name__)


class IdentityReader(Protocol):
    def get(self, principal_id: str) -> CachedIdentity | None: ...


class TenantReader(Protocol):
    def school_scope(self, school_id: str) -> SchoolScope | None: ...

    def office_scope(self, office_id: str) -> OfficeScope | None: ...


class PolicyEvaluator:
    def __init__(self, identities: IdentityReader, directory: TenantReader):
        self._identities = identities
        self._directory = directory

    def identity(self, principal_id: str | None) -> CachedIdentity | None:
        if not principal_id:
            return None
        return self._identities.get(principal_id)

    def is_role(self, principal_id: str | None, role: Role) -> bool:
        identity = self.identity(principal_id)
        return identity is not None and identity.has_role(role)

    def is_any_role(self, principal_id: str | None, roles: Iterable[Role]) -> bool:
        identity = self.identity(principal_id)
        if identity is None or not identity.active:
            return False
        return identity.role in frozenset(roles)

    def scope_of(self, principal_id: str | None) -> Scope:
        identity = self.identity(principal_id)
        if identity is None or not identity.active:
            return Scope()
        return identity.scope

    def school_in_scope(self, principal_id: str | None, school_id: str | None) -> bool:
        identity = self.identity(principal_id)
        if identity is None or not identity.active:
            logger.debug("school_in_scope deny (no active identity) principal=%s school=%s", principal_id, school_id)
            return False
        if identity.role is Role.NATIONAL_ADMIN:
            return True
        if school_id is None:
            return False
        if identity.role in SCHOOL_ROLES:
            # Same-school check needs nothing but the cached id.
            return identity.school_id is not None and identity.school_id == school_id
        return school_visible(identity, self._directory.school_scope(school_id))

    def office_in_scope(self, principal_id: str | None, office_id: str | None) -> bool:
        identity = self.identity(principal_id)
        if identity is None or not identity.active:
            return False
        if identity.role is Role.NATIONAL_ADMIN:
            return True
        if office_id is None:
            return False
        return office_visible(identity, self._directory.office_scope(office_id))
