from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from school_authz.db.session import get_db
from school_authz.models.audit import SyncEvent
from school_authz.policy import Role
from school_authz.schemas.identity import IdentityOut, ResyncOut, ResyncSummaryOut, SyncEventOut
from school_authz.security.decorators import require_roles
from school_authz.sync.derive import SyncOutcome
from school_authz.sync.engine import SyncEngine

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/identity-cache/resync", response_model=ResyncSummaryOut)
def resync_all(db: Session = Depends(get_db)) -> ResyncSummaryOut:
    results = SyncEngine(db).resync_all()
    db.commit()
    return ResyncSummaryOut(
        total=len(results),
        repaired=sum(1 for r in results if r.drift),
        degraded=sum(1 for r in results if r.outcome is SyncOutcome.DEGRADED),
        removed=sum(1 for r in results if r.outcome is SyncOutcome.REMOVED and r.drift),
    )


@router.post("/identity-cache/{principal_id}/resync", response_model=ResyncOut)
def resync_principal(principal_id: str, db: Session = Depends(get_db)) -> ResyncOut:
    result = SyncEngine(db).resync(principal_id)
    db.commit()
    return ResyncOut(
        principal_id=result.principal_id,
        outcome=result.outcome.value,
        drift=result.drift,
        detail=result.detail,
        identity=IdentityOut.model_validate(result.identity) if result.identity is not None else None,
    )


@router.get("/sync-events", response_model=list[SyncEventOut])
@require_roles([Role.NATIONAL_ADMIN])
def list_sync_events(
    outcome: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[SyncEvent]:
    stmt = select(SyncEvent).order_by(SyncEvent.id.desc()).limit(limit)
    if outcome:
        stmt = stmt.where(SyncEvent.outcome == outcome)
    return list(db.scalars(stmt).all())
