# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the DSICOLA API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dsicola.api.middleware.auth import AuthMiddleware
from dsicola.api.middleware.tenant import SessionFactory, TenantMiddleware
from dsicola.api.routes import health
from dsicola.api.v1 import router as v1_router
from dsicola.core.config import Settings, get_settings
from dsicola.core.exceptions import DsicolaError
from dsicola.domains.auth.authenticator import SessionAuthenticator
from dsicola.domains.auth.jwt import JWTManager
from dsicola.domains.tenancy.guard import TenantGuard
from dsicola.domains.tenancy.resolver import TenantResolver
from dsicola.infrastructure.database.connection import close_database, get_session, init_database
from dsicola.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Configures logging from the settings the app was created with. The shared
    database engine is opened and disposed of only when no session factory
    was injected.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    setup_logging(settings)
    logger.info("Starting DSICOLA API (environment=%s)", settings.environment)

    if app.state.owns_database:
        await init_database(settings)
        logger.info("Database connection initialized")

    yield

    if app.state.owns_database:
        await close_database()
    logger.info("Shutting down DSICOLA API")


async def dsicola_error_handler(request: Request, exc: DsicolaError) -> JSONResponse:
    """Render engine errors as {detail, reason, ...details}."""
    if exc.status_code >= 500:
        logger.error("Request failed: path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(
    settings: Settings | None = None,
    session_factory: SessionFactory | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use, defaults to get_settings().
        session_factory: Session context manager factory used by the
            middleware and by get_db, defaults to the shared database session.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()
    owns_database = session_factory is None
    session_factory = session_factory or get_session

    app = FastAPI(
        title="DSICOLA API",
        description="Tenant isolation and academic workflow authorization engine",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.owns_database = owns_database

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(DsicolaError, dsicola_error_handler)

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================

    # Auth middleware - authenticates the token and applies the tenant guard
    app.add_middleware(
        AuthMiddleware,
        authenticator=SessionAuthenticator(JWTManager(settings.jwt)),
        guard=TenantGuard(settings),
        session_factory=session_factory,
        tenant_param=settings.tenancy.tenant_query_param,
    )

    # Tenant middleware - resolves the tenant from the request host
    app.add_middleware(
        TenantMiddleware,
        resolver=TenantResolver(settings.tenancy),
        session_factory=session_factory,
    )

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router, prefix=settings.api.prefix)

    return app
