"""
FastAPI application entry point for the portfolio API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portfolio.config import DEFAULT_ADMIN_PASSWORD, Settings, get_settings
from portfolio.dependencies import ServerBackends, build_backends
from portfolio.routes import router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None, backends: Optional[ServerBackends] = None
) -> FastAPI:
    settings = settings or get_settings()
    if backends is None:
        backends = build_backends(settings)
    if backends.admin_password == DEFAULT_ADMIN_PASSWORD:
        logger.warning("ADMIN_PASSWORD is not set; write endpoints accept the default")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.backends.close()

    app = FastAPI(title="Portfolio Content API", version="0.1.0", lifespan=lifespan)
    app.state.backends = backends
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Admin-Pass"],
    )
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
