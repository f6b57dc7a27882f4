from __future__ import annotations

import enum


class Role(str, enum.Enum):
    NATIONAL_ADMIN = "NATIONAL_ADMIN"
    PROVINCE_OFFICE = "PROVINCE_OFFICE"
    MUNICIPAL_OFFICE = "MUNICIPAL_OFFICE"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    TEACHER = "TEACHER"
    SECRETARY = "SECRETARY"
    STUDENT = "STUDENT"
    GUARDIAN = "GUARDIAN"


class OfficeKind(str, enum.Enum):
    MUNICIPAL = "MUNICIPAL"
    PROVINCIAL = "PROVINCIAL"


# Roles whose scope is resolved through an Office row instead of tenant_scope_id.
OFFICE_ROLES: dict[Role, OfficeKind] = {
    Role.PROVINCE_OFFICE: OfficeKind.PROVINCIAL,
    Role.MUNICIPAL_OFFICE: OfficeKind.MUNICIPAL,
}

SCHOOL_ROLES: frozenset[Role] = frozenset(
    {Role.SCHOOL_ADMIN, Role.TEACHER, Role.SECRETARY, Role.STUDENT, Role.GUARDIAN}
)

# Roles that see every record owned by a school inside their scope.
# STUDENT and GUARDIAN only reach their own records.
RECORD_SCOPE_ROLES: frozenset[Role] = frozenset(
    {Role.PROVINCE_OFFICE, Role.MUNICIPAL_OFFICE, Role.SCHOOL_ADMIN, Role.SECRETARY, Role.TEACHER}
)


def role_for_office(kind: OfficeKind) -> Role:
    for role, office_kind in OFFICE_ROLES.items():
        if office_kind is kind:
            return role
    raise ValueError(f"no role for office kind {kind!r}")
