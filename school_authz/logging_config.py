from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for this repo.

    Notes:
    - Plain stdlib logging; the host process owns handlers and formatting.
    - Only the `school_authz` logger tree is touched here.
    - `SCHOOL_AUTHZ_LOG_LEVEL=DEBUG` shows every cache recomputation.
    """

    normalized = level.upper()
    logging.getLogger("school_authz").setLevel(normalized)
    logging.getLogger("school_authz").propagate = True
