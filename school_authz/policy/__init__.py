"""
Authorization decision library.

This package has no dependency on other school_authz packages (db, models,
sync, security). It evaluates identity cache snapshots handed to it through
the `IdentityReader` / `TenantReader` protocols.
"""

from .canonical import canonical_place_key
from .evaluator import IdentityReader, PolicyEvaluator, TenantReader
from .identity import CachedIdentity, OfficeScope, SchoolScope, Scope
from .roles import OFFICE_ROLES, RECORD_SCOPE_ROLES, SCHOOL_ROLES, OfficeKind, Role, role_for_office
from .scope import office_visible, school_visible

__all__ = [
    "CachedIdentity",
    "IdentityReader",
    "OFFICE_ROLES",
    "OfficeKind",
    "OfficeScope",
    "PolicyEvaluator",
    "RECORD_SCOPE_ROLES",
    "Role",
    "SCHOOL_ROLES",
    "SchoolScope",
    "Scope",
    "TenantReader",
    "canonical_place_key",
    "office_visible",
    "role_for_office",
    "school_visible",
]
