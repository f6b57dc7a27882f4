from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from school_authz.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def bind_authz(db: Session, request: Request) -> None:
    """Copy the request's AuthzContext (if any) into the session for the record filter."""

    authz = getattr(getattr(request, "state", None), "authz", None)
    if authz is not None:
        db.info["authz"] = authz
    else:
        db.info.pop("authz", None)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency.

    - Route code keeps writing plain `select(StudentRecord)`; scoping comes
      from the `do_orm_execute` hook in `school_authz.db.filters`.
    - Writes to role assignments / offices / schools made through this
      session update the identity cache on flush (`school_authz.sync.listeners`).
    """

    db = SessionLocal()
    try:
        bind_authz(db, request)
        yield db
    finally:
        db.close()
