from __future__ import annotations

from dataclasses import dataclass

from school_authz.policy import CachedIdentity, Role


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization context.

    Attached to:
    - request.state (FastAPI request lifetime)
    - Session.info (SQLAlchemy session lifetime), where the record filter reads it

    Only `principal_id` is trusted for row scoping; the filter re-reads the
    identity cache per statement. `identity` is the snapshot used for the
    route-level role check.
    """

    principal_id: str
    identity: CachedIdentity | None

    @property
    def role(self) -> Role | None:
        if self.identity is None or not self.identity.active:
            return None
        return self.identity.role
