from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from school_authz.db.session import get_db
from school_authz.models.records import StudentRecord
from school_authz.schemas.identity import IdentityOut
from school_authz.schemas.records import StudentRecordOut
from school_authz.security.context import AuthzContext
from school_authz.security.dependencies import get_authz

router = APIRouter(tags=["records"])


@router.get("/me", response_model=IdentityOut)
def me(authz: AuthzContext = Depends(get_authz)):
    if authz.identity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No identity on record")
    return authz.identity


@router.get("/records", response_model=list[StudentRecordOut])
def list_records(db: Session = Depends(get_db)) -> list[StudentRecord]:
    # Scoped transparently by school_authz/db/filters.py.
    return list(db.scalars(select(StudentRecord).order_by(StudentRecord.id)).all())


@router.get("/records/{id}", response_model=StudentRecordOut)
def get_record(id: int, db: Session = Depends(get_db)) -> StudentRecord:
    record = db.scalars(select(StudentRecord).where(StudentRecord.id == id)).first()
    if record is None:
        # Out-of-scope records are indistinguishable from missing ones.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    return record
