from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from school_authz.db import filters as _filters  # noqa: F401  (register record visibility filter)
from school_authz.db.init_db import init_db
from school_authz.logging_config import configure_app_logging
from school_authz.routers import admin, health, records
from school_authz.security.config import load_access_config
from school_authz.security.dependencies import enforce_security
from school_authz.settings import get_settings
from school_authz.sync import listeners as _listeners  # noqa: F401  (register identity cache sync)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.access_config = load_access_config(settings.resolved_access_config_path())
        logger.info("Loaded access config: %s", settings.resolved_access_config_path())
        init_db(seed=settings.seed_demo_data)
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    # Global dependency: every route goes through the same security check.
    app = FastAPI(dependencies=[Depends(enforce_security)], lifespan=lifespan)

    app.include_router(health.router)
    app.include_router(records.router)
    app.include_router(admin.router)

    return app


app = create_app()
