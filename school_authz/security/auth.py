from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from school_authz.db.cache_store import IdentityCacheStore
from school_authz.policy import CachedIdentity
from school_authz.security.config import AccessConfig

logger = logging.getLogger(__name__)


def extract_principal_id(request: Request, config: AccessConfig) -> str | None:
    """
    Read the principal id established upstream.

    - Input: `Authorization: Bearer <principal_id>`
    - Token validation is the upstream gateway's job; here the bearer value
      *is* the opaque principal id.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing %s header (auth required) path=%s method=%s", header_name, request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid %s header format path=%s method=%s", header_name, request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{bearer_prefix} <principal id>'.",
        )

    principal_id = raw[len(prefix) :].strip()
    if not principal_id:
        logger.warning("Empty bearer value path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Missing principal id after '{bearer_prefix}'.",
        )

    return principal_id


def load_identity(db: Session, principal_id: str) -> CachedIdentity | None:
    # Identity cache only: the role_assignments table is never read for the
    # acting principal.
    return IdentityCacheStore(db).get(principal_id)
