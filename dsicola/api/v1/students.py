# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student gate API endpoints.

This module provides endpoints for per-student gating:
- GET /{student_id}/blocking?operation= - Financial gate for one operation
- GET /{student_id}/institutional-status - Enrollment completeness
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.api.dependencies import (
    ensure_student_access,
    get_audit_sink,
    get_current_principal,
    get_app_settings,
    get_db,
)
from dsicola.core.config import Settings
from dsicola.domains.academic_gate.service import AcademicGateService
from dsicola.domains.auth.principal import Principal
from dsicola.domains.tenancy.scope import build_scope_filter
from dsicola.infrastructure.database.models.tenant import Tenant
from dsicola.models.academic_gate import (
    BlockingResponse,
    FinancialStandingResponse,
    InstitutionalStatusResponse,
)
from dsicola.models.common import AcademicVariant, BlockedOperation

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession, settings: Settings) -> AcademicGateService:
    """Get academic gate service instance."""
    return AcademicGateService(db=db, settings=settings.academic, audit_sink=get_audit_sink(db))


async def _tenant_variant(db: AsyncSession, tenant_id: str, principal: Principal) -> AcademicVariant | None:
    result = await db.execute(select(Tenant.academic_variant).where(Tenant.id == tenant_id))
    variant = result.scalar_one_or_none()
    return AcademicVariant(variant) if variant else principal.academic_variant


@router.get("/{student_id}/blocking", response_model=BlockingResponse, summary="Financial blocking")
async def get_blocking(
    student_id: str,
    operation: BlockedOperation = Query(...),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> BlockingResponse:
    """Report whether the student may perform the operation."""
    ensure_student_access(principal, student_id)
    tenant_id = build_scope_filter(principal).require_tenant()
    gate = await _get_service(db, settings).check(student_id, tenant_id, operation, actor=principal)
    return BlockingResponse(
        student_id=student_id,
        operation=gate.operation,
        blocked=gate.blocked,
        reason=gate.reason,
        standing=FinancialStandingResponse(**gate.standing.to_dict()),
    )


@router.get(
    "/{student_id}/institutional-status",
    response_model=InstitutionalStatusResponse,
    summary="Institutional status",
)
async def get_institutional_status(
    student_id: str,
    discipline_id: str | None = Query(default=None),
    academic_year_id: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> InstitutionalStatusResponse:
    ensure_student_access(principal, student_id)
    tenant_id = build_scope_filter(principal).require_tenant()
    variant = await _tenant_variant(db, tenant_id, principal)
    status = await _get_service(db, settings).check_institutional(
        student_id,
        tenant_id,
        variant,
        discipline_id=discipline_id,
        academic_year_id=academic_year_id,
    )
    return InstitutionalStatusResponse(
        student_id=student_id,
        blocked=status.blocked,
        reason=status.reason_code,
        message=status.message,
        academic_variant=status.academic_variant,
        has_active_enrollment=status.has_active_enrollment,
        course_id=status.course_id,
        class_level_id=status.class_level_id,
    )
