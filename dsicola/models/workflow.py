# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Workflow transition schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dsicola.models.common import SubjectKind, WorkflowAction, WorkflowStatus


class TransitionRequest(BaseModel):
    """Request to change the status of a workflow subject.

    Either the target status or the action name must be given.

    Attributes:
        target: Requested status.
        action: Action name, mapped to its target status.
        reason: Justification, mandatory for REJECT.
    """

    target: WorkflowStatus | None = None
    action: WorkflowAction | None = None
    reason: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def require_target_or_action(self) -> "TransitionRequest":
        if self.target is None and self.action is None:
            raise ValueError("Either target or action is required")
        return self


class TransitionResponse(BaseModel):
    """Applied transition."""

    kind: SubjectKind
    subject_id: str
    previous_status: WorkflowStatus
    new_status: WorkflowStatus
    action: WorkflowAction
    log_id: str
    notified: int = 0


class WorkflowLogResponse(BaseModel):
    """One workflow log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    subject_kind: SubjectKind
    subject_id: str
    previous_status: WorkflowStatus
    new_status: WorkflowStatus
    action: WorkflowAction
    actor_id: str
    reason: str | None = None
    created_at: datetime
