from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from school_authz.policy import Role


class IdentityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    principal_id: str
    role: Role | None
    active: bool
    school_id: str | None
    office_id: str | None
    municipality_key: str | None
    province_key: str | None
    version: int
    updated_at: datetime | None


class ResyncOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    principal_id: str
    outcome: str
    drift: bool
    detail: str | None
    identity: IdentityOut | None


class ResyncSummaryOut(BaseModel):
    total: int
    repaired: int
    degraded: int
    removed: int


class SyncEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    principal_id: str
    trigger: str
    outcome: str
    detail: str | None
    created_at: datetime
