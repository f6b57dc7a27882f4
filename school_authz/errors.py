"""Integrity errors raised while writing authoritative role/tenant data."""

from __future__ import annotations


class AuthzIntegrityError(Exception):
    """Base class: the write is refused and the enclosing transaction must not commit it."""


class DuplicateActiveAssignmentError(AuthzIntegrityError):
    def __init__(self, principal_id: str):
        super().__init__(f"principal {principal_id!r} already has a role assignment")
        self.principal_id = principal_id


class DuplicateActiveOfficeError(AuthzIntegrityError):
    def __init__(self, kind: str, place_key: str):
        super().__init__(f"an active {kind} office already exists for {place_key!r}")
        self.kind = kind
        self.place_key = place_key


class InvalidRoleAssignmentError(AuthzIntegrityError):
    """Tenant scope does not match what the role requires."""


class InvalidTransitionError(AuthzIntegrityError):
    def __init__(self, principal_id: str, current: str, target: str):
        super().__init__(f"principal {principal_id!r}: cannot move assignment from {current} to {target}")
        self.principal_id = principal_id
        self.current = current
        self.target = target


class CacheWriteError(AuthzIntegrityError):
    """The identity cache is written by the sync engine only."""


class NotFoundError(LookupError):
    """Referenced principal assignment or office does not exist."""


class BulkWriteError(AuthzIntegrityError):
    """A bulk INSERT/UPDATE/DELETE on a table the identity cache is derived from."""

    def __init__(self, operation: str, table: str):
        super().__init__(
            f"bulk {operation} on {table!r} bypasses identity cache sync; load the objects and modify them instead"
        )
        self.operation = operation
        self.table = table
