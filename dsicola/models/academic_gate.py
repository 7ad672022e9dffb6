# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student blocking and institutional status schemas."""

from decimal import Decimal

from pydantic import BaseModel

from dsicola.models.common import AcademicVariant, BlockedOperation


class FinancialStandingResponse(BaseModel):
    irregular: bool
    overdue_count: int
    total_due: Decimal
    oldest_overdue_days: int


class BlockingResponse(BaseModel):
    """Financial gate decision for one operation.

    Attributes:
        student_id: Student checked.
        operation: Operation checked.
        blocked: Whether the operation is refused.
        reason: Student-facing reason when blocked.
        standing: Financial standing used for the decision.
    """

    student_id: str
    operation: BlockedOperation
    blocked: bool
    reason: str | None = None
    standing: FinancialStandingResponse


class InstitutionalStatusResponse(BaseModel):
    """Institutional completeness decision."""

    student_id: str
    blocked: bool
    reason: str | None = None
    message: str | None = None
    academic_variant: AcademicVariant | None = None
    has_active_enrollment: bool
    course_id: str | None = None
    class_level_id: str | None = None
