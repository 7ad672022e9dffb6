# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoints.

This module provides health and readiness endpoints for the API.
"""

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from dsicola.infrastructure.database.connection import check_database_connection
from dsicola.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")


class ReadinessResponse(BaseModel):
    """Readiness check response model."""
    ready: bool = Field(description="Whether the service is ready")
    database: bool = Field(description="Database reachable")


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Liveness probe. Does not touch the database."""
    settings = request.app.state.settings
    return HealthResponse(
        status="healthy",
        timestamp=utc_now(),
        version="1.0.0",
        environment=settings.environment,
        uptime_seconds=int(time.time() - _server_start_time),
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def ready() -> JSONResponse:
    """Readiness probe. Returns 503 while the database is unreachable."""
    database = await check_database_connection()
    body = ReadinessResponse(ready=database, database=database)
    if not database:
        logger.warning("Readiness check failed: database unreachable")
    return JSONResponse(status_code=200 if database else 503, content=body.model_dump())
