"""
Hierarchical scope resolution.

Pure functions over an acting identity and a target's static attributes.
A missing or inactive identity is always a deny.
"""

from __future__ import annotations

from .identity import CachedIdentity, OfficeScope, SchoolScope
from .roles import OfficeKind, Role, SCHOOL_ROLES


def school_visible(identity: CachedIdentity | None, school: SchoolScope | None) -> bool:
    if identity is None or not identity.active or identity.role is None:
        return False

    if identity.role is Role.NATIONAL_ADMIN:
        return True

    if school is None:
        return False

    if identity.role is Role.PROVINCE_OFFICE:
        return identity.province_key is not None and school.province_key == identity.province_key

    if identity.role is Role.MUNICIPAL_OFFICE:
        if identity.municipality_key is None or school.municipality_key != identity.municipality_key:
            return False
        # Municipality names repeat across provinces.
        return identity.province_key is None or school.province_key == identity.province_key

    if identity.role in SCHOOL_ROLES:
        return identity.school_id is not None and school.school_id == identity.school_id

    return False


def office_visible(identity: CachedIdentity | None, office: OfficeScope | None) -> bool:
    if identity is None or not identity.active or identity.role is None:
        return False

    if identity.role is Role.NATIONAL_ADMIN:
        return True

    if office is None:
        return False

    if identity.office_id is not None and office.office_id == identity.office_id:
        return identity.role in (Role.PROVINCE_OFFICE, Role.MUNICIPAL_OFFICE)

    if identity.role is Role.PROVINCE_OFFICE:
        return (
            office.kind is OfficeKind.MUNICIPAL
            and identity.province_key is not None
            and office.parent_place_key == identity.province_key
        )

    return False
