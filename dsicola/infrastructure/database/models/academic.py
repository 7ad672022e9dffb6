# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic structure and workflow subject models.

TeachingPlan, CalendarEvent and Assessment share the approval status
column driven by dsicola.domains.workflow. WorkflowLog is append-only.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dsicola.infrastructure.database.models.base import (
    Base,
    TenantOwnedMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    utc_now,
)
from dsicola.models.common import PlanStage, WorkflowStatus


class AcademicYear(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """Academic year of an institution, e.g. 2025/2026."""

    __tablename__ = "academic_years"

    label: Mapped[str] = mapped_column(String(20), nullable=False)
    starts_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    ends_on: Mapped[date | None] = mapped_column(Date, nullable=True)


class Discipline(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """Curriculum discipline with its required workload."""

    __tablename__ = "disciplines"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    workload_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TeachingPlan(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """Teacher's plan for a discipline in one academic year and cohort."""

    __tablename__ = "teaching_plans"
    __table_args__ = (
        Index(
            "ix_teaching_plans_context",
            "tenant_id",
            "discipline_id",
            "academic_year_id",
            "status",
        ),
    )

    discipline_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("disciplines.id"), nullable=False
    )
    teacher_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    academic_year_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("academic_years.id"), nullable=False
    )
    course_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    class_level_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)
    class_group_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    syllabus: Mapped[str | None] = mapped_column(Text, nullable=True)
    objectives: Mapped[str | None] = mapped_column(Text, nullable=True)
    methodology: Mapped[str | None] = mapped_column(Text, nullable=True)
    assessment_criteria: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WorkflowStatus.DRAFT.value
    )
    stage: Mapped[str] = mapped_column(String(20), nullable=False, default=PlanStage.DRAFT.value)
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    locked_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    discipline: Mapped[Discipline] = relationship(lazy="raise")
    units: Mapped[list["LessonUnit"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="LessonUnit.position",
        lazy="raise",
    )


class LessonUnit(Base, UUIDPrimaryKeyMixin):
    """Unit of a teaching plan with its hour allocation.

    Owned by its plan; tenant ownership is one hop away.
    """

    __tablename__ = "lesson_units"

    plan_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("teaching_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    plan: Mapped[TeachingPlan] = relationship(back_populates="units", lazy="raise")


class CalendarEvent(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """Academic calendar entry that goes through approval."""

    __tablename__ = "calendar_events"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    starts_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    ends_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WorkflowStatus.DRAFT.value
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )


class Assessment(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """Assessment of a teaching plan within one grading term."""

    __tablename__ = "assessments"

    plan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("teaching_plans.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    period_type: Mapped[str] = mapped_column(String(20), nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WorkflowStatus.DRAFT.value
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    closed_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    plan: Mapped[TeachingPlan] = relationship(lazy="raise")


class WorkflowLog(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin):
    """One applied workflow transition. Rows are never updated or deleted."""

    __tablename__ = "workflow_logs"
    __table_args__ = (Index("ix_workflow_logs_subject", "subject_kind", "subject_id"),)

    subject_kind: Mapped[str] = mapped_column(String(30), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), nullable=False)
    previous_status: Mapped[str] = mapped_column(String(20), nullable=False)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
