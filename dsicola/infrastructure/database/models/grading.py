# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading period and grade models."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dsicola.infrastructure.database.models.base import (
    Base,
    TenantOwnedMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from dsicola.models.common import PeriodStatus


class GradingPeriod(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """Window during which grades for one term may be submitted.

    The stored status is never EXPIRED; expiry is derived from end_at.
    """

    __tablename__ = "grading_periods"
    __table_args__ = (
        Index(
            "ix_grading_periods_term",
            "tenant_id",
            "academic_year_id",
            "period_type",
            "period_number",
        ),
    )

    academic_year_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("academic_years.id"), nullable=False
    )
    period_type: Mapped[str] = mapped_column(String(20), nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PeriodStatus.OPEN.value
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    reopen_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reopened_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    reopened_at: Mapped[datetime | None] = mapped_column(nullable=True)


class Grade(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """A student's grade in an assessment."""

    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint("assessment_id", "student_id", name="uq_grades_assessment_student"),
    )

    assessment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assessments.id"), nullable=False, index=True
    )
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    recorded_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
