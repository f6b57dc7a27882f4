"""
Tenant directory lookups for *target* records.

The evaluator calls these to learn a school's or office's static scope keys.
Nothing here reads role assignments or the identity cache.
"""

from __future__ import annotations

from sqlalchemy import Connection, select
from sqlalchemy.orm import Session

from school_authz.db.cache_store import connection_for
from school_authz.models.tenancy import Office, School
from school_authz.policy import OfficeScope, SchoolScope

schools = School.__table__
offices = Office.__table__


class TenantDirectory:
    def __init__(self, bind: Session | Connection):
        self._bind = bind

    def school_scope(self, school_id: str) -> SchoolScope | None:
        row = connection_for(self._bind).execute(
            select(schools.c.id, schools.c.municipality_key, schools.c.province_key).where(schools.c.id == school_id)
        ).first()
        if row is None:
            return None
        return SchoolScope(school_id=row.id, municipality_key=row.municipality_key, province_key=row.province_key)

    def office_scope(self, office_id: str) -> OfficeScope | None:
        row = connection_for(self._bind).execute(
            select(offices.c.id, offices.c.kind, offices.c.place_key, offices.c.parent_place_key).where(
                offices.c.id == office_id
            )
        ).first()
        if row is None:
            return None
        return OfficeScope(
            office_id=row.id,
            kind=row.kind,
            place_key=row.place_key,
            parent_place_key=row.parent_place_key,
        )
