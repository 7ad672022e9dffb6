# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Workflow API endpoints.

This module provides endpoints for the shared approval workflow:
- POST /{kind}/{subject_id}/transitions - Apply a status change
- GET /{kind}/{subject_id}/history - Workflow log, newest first

kind is one of teaching_plan, calendar_event or assessment.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.api.dependencies import (
    get_audit_sink,
    get_current_principal,
    get_db,
    get_notification_sink,
)
from dsicola.domains.auth.principal import Principal
from dsicola.domains.workflow.service import WorkflowService
from dsicola.models.common import SubjectKind
from dsicola.models.workflow import TransitionRequest, TransitionResponse, WorkflowLogResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> WorkflowService:
    """Get workflow service instance with database-backed sinks."""
    return WorkflowService(
        db=db,
        audit_sink=get_audit_sink(db),
        notification_sink=get_notification_sink(db),
    )


@router.post(
    "/{kind}/{subject_id}/transitions",
    response_model=TransitionResponse,
    summary="Apply a workflow transition",
)
async def apply_transition(
    kind: SubjectKind,
    subject_id: str,
    data: TransitionRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> TransitionResponse:
    """Move a subject to the requested status.

    The target may be given directly or as an action name. Refusals are
    rendered by the application exception handler.
    """
    service = _get_service(db)
    target = data.target or service.target_for_action(data.action)
    result = await service.transition(kind, subject_id, target, principal, data.reason)
    return TransitionResponse(
        kind=result.kind,
        subject_id=result.subject_id,
        previous_status=result.previous_status,
        new_status=result.new_status,
        action=result.action,
        log_id=result.log_id,
        notified=result.notified,
    )


@router.get(
    "/{kind}/{subject_id}/history",
    response_model=list[WorkflowLogResponse],
    summary="Workflow history",
)
async def get_history(
    kind: SubjectKind,
    subject_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[WorkflowLogResponse]:
    service = _get_service(db)
    logs = await service.history(kind, subject_id, principal)
    return [WorkflowLogResponse.model_validate(log) for log in logs]
