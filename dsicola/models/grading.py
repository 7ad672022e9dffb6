# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading period and grade submission schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from dsicola.models.common import PeriodStatus, PeriodType


class GradingPeriodCreate(BaseModel):
    """Request to create a grading period.

    Attributes:
        academic_year_id: Academic year of the tenant.
        period_type: SEMESTER or TRIMESTER.
        period_number: 1-2 for semesters, 1-3 for trimesters.
        start_at: Window start.
        end_at: Window end, after start_at.
        status: Initial status, PLANNED or OPEN.
    """

    academic_year_id: str
    period_type: PeriodType
    period_number: int
    start_at: datetime
    end_at: datetime
    status: PeriodStatus = PeriodStatus.OPEN


class GradingPeriodUpdate(BaseModel):
    """Partial update of a grading period. Status is limited to OPEN or CLOSED."""

    start_at: datetime | None = None
    end_at: datetime | None = None
    status: PeriodStatus | None = None


class ReopenRequest(BaseModel):
    """Administrator reopen of a closed or expired period."""

    reason: str = Field(..., description="Mandatory justification recorded in the audit log")
    new_end_at: datetime | None = Field(
        default=None,
        description="New end of the window; required when the period has expired",
    )


class GradingPeriodResponse(BaseModel):
    """Grading period with its status computed at response time.

    Attributes:
        status: Stored status.
        effective_status: Status after applying the current time.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    academic_year_id: str
    period_type: PeriodType
    period_number: int
    start_at: datetime
    end_at: datetime
    status: PeriodStatus
    effective_status: PeriodStatus
    reopen_reason: str | None = None
    reopened_by: str | None = None
    reopened_at: datetime | None = None


class SubmissionDecision(BaseModel):
    """Whether grades may be submitted for a term right now.

    Attributes:
        allowed: Submission permitted.
        reason: Machine-readable reason when refused.
        message: Human-readable explanation when refused.
        period_id: Period the decision was based on.
        effective_status: Computed status of that period.
    """

    allowed: bool
    reason: str | None = None
    message: str | None = None
    period_id: str | None = None
    effective_status: PeriodStatus | None = None


class GradeSubmitRequest(BaseModel):
    """Grade POST body."""

    assessment_id: str
    student_id: str
    value: Decimal = Field(..., description="Grade on the institution's scale")


class GradeResponse(BaseModel):
    """Stored grade."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    assessment_id: str
    student_id: str
    value: Decimal
    recorded_by: str
    created_at: datetime
    updated_at: datetime
