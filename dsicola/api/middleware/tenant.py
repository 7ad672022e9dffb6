# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant resolution middleware.

This middleware classifies the request host:
1. Local development hosts and unknown domains are ignored
2. The central portal host is marked central
3. A platform subdomain is resolved to its tenant

The resolution is stored in request.state for the auth middleware and
dependencies. Resolution errors are rendered directly as JSON, since
exceptions raised in middleware never reach the app exception handlers.

Example:
    # Request on an institution subdomain
    GET https://escola-a.dsicola.com/api/v1/grading-periods
"""

import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from dsicola.core.exceptions import DsicolaError
from dsicola.domains.tenancy.resolver import TenantResolution, TenantResolver
from dsicola.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

# Paths that need neither tenant nor authentication
PUBLIC_PATHS = frozenset({
    "/",
    "/health",
    "/health/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
})


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS


def error_response(error: DsicolaError) -> JSONResponse:
    """Render an engine error the same way the app exception handler does."""
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


class TenantMiddleware(BaseHTTPMiddleware):
    """Resolves the tenant context from the request host.

    Attributes:
        _resolver: Host classifier.
        _session_factory: Callable returning an async session context manager.
    """

    def __init__(
        self,
        app: ASGIApp,
        resolver: TenantResolver,
        session_factory: SessionFactory,
    ) -> None:
        super().__init__(app)
        self._resolver = resolver
        self._session_factory = session_factory

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        """Resolve the host, then hand over to the next handler."""
        host = request.headers.get("host", "")
        request.state.tenant_resolution = TenantResolution.ignored(host)
        bind_context(request_id=request.headers.get("x-request-id") or uuid4().hex)

        try:
            if is_public_path(request.url.path):
                return await call_next(request)

            origin = request.headers.get("origin") or request.headers.get("referer")
            try:
                async with self._session_factory() as db:
                    resolution = await self._resolver.resolve(host, db, origin=origin)
            except DsicolaError as e:
                logger.info("Tenant resolution refused: host=%s reason=%s", host, e.reason)
                return error_response(e)

            request.state.tenant_resolution = resolution
            if resolution.tenant_id:
                bind_context(tenant_id=resolution.tenant_id)
            logger.debug("Tenant resolved: mode=%s host=%s", resolution.mode.value, resolution.host)
            return await call_next(request)
        finally:
            clear_context()


def get_resolution_from_request(request: Request) -> TenantResolution:
    """Get the host resolution from request state, ignored when absent."""
    return getattr(request.state, "tenant_resolution", None) or TenantResolution.ignored()
