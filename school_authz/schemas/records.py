from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class StudentRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_principal_id: str | None
    school_id: str
    title: str
    body: str | None
    created_at: datetime
