# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions and the settings the app was created with
- Get the authenticated Principal
- Get the outbound audit and notification sinks

Example:
    @router.get("/grading-periods")
    async def list_periods(
        db: AsyncSession = Depends(get_db),
        principal: Principal = Depends(get_current_principal),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.api.middleware.auth import get_principal_from_request
from dsicola.core.config import Settings
from dsicola.core.exceptions import ForbiddenError, UnauthenticatedError
from dsicola.domains.auth.principal import Principal
from dsicola.infrastructure.audit.sink import DatabaseAuditSink
from dsicola.infrastructure.notifications.sink import InAppNotificationSink
from dsicola.models.common import Role

logger = logging.getLogger(__name__)

# Roles allowed to inspect any student of their institution
STUDENT_OFFICE_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.REGISTRAR, Role.FINANCE, Role.TEACHER})


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get a database session from the app's session factory.

    Yields:
        AsyncSession, rolled back if the endpoint raises.
    """
    async with request.app.state.session_factory() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_principal(request: Request) -> Principal:
    """Require an authenticated principal.

    Raises:
        UnauthenticatedError: No valid token accompanied the request.
    """
    principal = get_principal_from_request(request)
    if principal is None:
        raise UnauthenticatedError("Authentication token not provided.", reason="TOKEN_MISSING")
    return principal


def get_audit_sink(db: AsyncSession) -> DatabaseAuditSink:
    return DatabaseAuditSink(db)


def get_notification_sink(db: AsyncSession) -> InAppNotificationSink:
    return InAppNotificationSink(db)


def ensure_student_access(principal: Principal, student_id: str) -> None:
    """Allow staff to inspect any student and students to inspect themselves.

    Raises:
        ForbiddenError: A student asking about someone else, or a role with no
            student access.
    """
    if principal.has_any_of(STUDENT_OFFICE_ROLES):
        return
    if principal.has_role(Role.STUDENT) and principal.user_id == student_id:
        return
    logger.warning(
        "Student data access refused: user=%s student=%s",
        principal.user_id,
        student_id,
    )
    raise ForbiddenError("You cannot view this student's status.")
