# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading period API endpoints.

This module provides endpoints for grading windows:
- GET / - List periods with their computed status
- POST / - Create a period (administrators)
- GET /active - First effectively open period
- GET /submission-status - Whether grades may be submitted for a term
- PATCH /{period_id} - Change dates or close (administrators)
- POST /{period_id}/reopen - Reopen with a mandatory reason (administrators)
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.api.dependencies import get_audit_sink, get_current_principal, get_db
from dsicola.domains.auth.principal import Principal
from dsicola.domains.grading.service import GradingWindowService
from dsicola.domains.grading.window import Term
from dsicola.domains.tenancy.scope import build_scope_filter
from dsicola.models.common import PeriodType
from dsicola.models.grading import (
    GradingPeriodCreate,
    GradingPeriodResponse,
    GradingPeriodUpdate,
    ReopenRequest,
    SubmissionDecision,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> GradingWindowService:
    """Get grading window service instance."""
    return GradingWindowService(db=db, audit_sink=get_audit_sink(db))


@router.get("", response_model=list[GradingPeriodResponse], summary="List grading periods")
async def list_periods(
    academic_year_id: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[GradingPeriodResponse]:
    return await _get_service(db).list_periods(principal, academic_year_id)


@router.post(
    "",
    response_model=GradingPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create grading period",
)
async def create_period(
    data: GradingPeriodCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> GradingPeriodResponse:
    return await _get_service(db).create_period(principal, data)


@router.get("/active", response_model=GradingPeriodResponse | None, summary="Active grading period")
async def get_active_period(
    academic_year_id: str | None = Query(default=None),
    period_type: PeriodType | None = Query(default=None),
    period_number: int | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> GradingPeriodResponse | None:
    return await _get_service(db).get_active(
        principal,
        academic_year_id=academic_year_id,
        period_type=period_type,
        period_number=period_number,
    )


@router.get(
    "/submission-status",
    response_model=SubmissionDecision,
    summary="Grade submission status for a term",
)
async def submission_status(
    academic_year_id: str = Query(...),
    period_type: PeriodType = Query(...),
    period_number: int = Query(...),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> SubmissionDecision:
    """Report whether grades for the term may be submitted right now."""
    tenant_id = build_scope_filter(principal).require_tenant()
    term = Term.of(academic_year_id, period_type, period_number)
    return await _get_service(db).check_submission(tenant_id, term)


@router.patch("/{period_id}", response_model=GradingPeriodResponse, summary="Update grading period")
async def update_period(
    period_id: str,
    data: GradingPeriodUpdate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> GradingPeriodResponse:
    return await _get_service(db).update_period(principal, period_id, data)


@router.post(
    "/{period_id}/reopen",
    response_model=GradingPeriodResponse,
    summary="Reopen grading period",
)
async def reopen_period(
    period_id: str,
    data: ReopenRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> GradingPeriodResponse:
    """Reopen a closed or expired period. Requires ADMIN or SUPER_ADMIN."""
    return await _get_service(db).reopen(period_id, principal, data.reason, data.new_end_at)
