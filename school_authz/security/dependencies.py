from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from school_authz.db.session import bind_authz, get_db
from school_authz.security.auth import extract_principal_id, load_identity
from school_authz.security.config import AccessConfig
from school_authz.security.context import AuthzContext

logger = logging.getLogger(__name__)


def get_access_config(request: Request) -> AccessConfig:
    config = getattr(request.app.state, "access_config", None)
    if config is None:
        raise RuntimeError("Access config not loaded. Did app startup run?")
    return config


def get_authz(request: Request) -> AuthzContext:
    authz = getattr(request.state, "authz", None)
    if authz is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return authz


def enforce_security(
    request: Request,
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency (configuration-driven, plus decorator metadata).

    - Resolves the route rule, reads the principal id, and looks the principal
      up in the identity cache (never in role_assignments).
    - Role requirements are checked against the cached role; an unknown or
      inactive principal holds no role.
    - Stores an `AuthzContext` on request.state; `get_db` copies it into the
      session so record queries are scoped.
    """

    rule = config.match(request.url.path, request.method)

    endpoint = request.scope.get("endpoint")
    decorator_roles = set(getattr(endpoint, "__security_required_roles__", set())) if endpoint else set()

    auth_required = rule.auth_required or bool(decorator_roles)
    if not auth_required:
        return

    principal_id = extract_principal_id(request, config)
    if principal_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing principal id")

    authz = AuthzContext(principal_id=principal_id, identity=load_identity(db, principal_id))

    required_roles = set(rule.required_roles) | decorator_roles
    if required_roles and authz.role not in required_roles:
        logger.info(
            "Role check denied principal=%s role=%s required=%s path=%s",
            principal_id,
            authz.role,
            sorted(r.value for r in required_roles),
            request.url.path,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient role. Required one of: {sorted(r.value for r in required_roles)}",
        )

    request.state.authz = authz
    # FastAPI may hand this same session to the route from its dependency cache.
    bind_authz(db, request)
