# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade API endpoints.

- POST / - Record a grade through every academic gate
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.api.dependencies import get_app_settings, get_audit_sink, get_current_principal, get_db
from dsicola.core.config import Settings
from dsicola.domains.auth.principal import Principal
from dsicola.domains.grades.service import GradeService
from dsicola.models.grading import GradeResponse, GradeSubmitRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession, settings: Settings) -> GradeService:
    """Get grade service instance."""
    return GradeService(db=db, settings=settings.academic, audit_sink=get_audit_sink(db))


@router.post(
    "",
    response_model=GradeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a grade",
)
async def submit_grade(
    data: GradeSubmitRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> GradeResponse:
    return await _get_service(db, settings).submit_grade(
        principal,
        data.assessment_id,
        data.student_id,
        data.value,
    )
