# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""End-to-end grade submission through every gate, against SQLite."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    PolicyBlockedError,
    PreconditionFailedError,
)
from dsicola.domains.grades import GradeService
from dsicola.domains.grading import GradingWindowService
from dsicola.infrastructure.audit.sink import DatabaseAuditSink
from dsicola.infrastructure.database.models import (
    Assessment,
    AuditLog,
    CourseRegistration,
    Grade,
    InstitutionPolicy,
    TeachingPlan,
)
from dsicola.models.common import PeriodStatus, PeriodType, Role, WorkflowStatus
from dsicola.models.grading import GradingPeriodCreate, GradingPeriodUpdate

TENANT_A = "11111111-1111-4111-8111-111111111111"
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def assessment_id(db: AsyncSession, school: dict[str, Any]) -> str:
    """A first-semester assessment of the teacher's plan, student registered."""
    plan = TeachingPlan(
        tenant_id=TENANT_A,
        discipline_id=school["discipline_id"],
        teacher_id=school["teacher_id"],
        academic_year_id=school["year_id"],
        status=WorkflowStatus.APPROVED.value,
    )
    db.add(plan)
    await db.flush()
    assessment = Assessment(
        tenant_id=TENANT_A,
        plan_id=plan.id,
        title="Test 1",
        period_type=PeriodType.SEMESTER.value,
        period_number=1,
    )
    db.add_all(
        [
            assessment,
            CourseRegistration(
                enrollment_id=school["enrollment_id"],
                student_id=school["student_id"],
                discipline_id=school["discipline_id"],
            ),
        ]
    )
    await db.commit()
    return assessment.id


@pytest.fixture
def grades(db: AsyncSession) -> GradeService:
    return GradeService(db, audit_sink=DatabaseAuditSink(db))


@pytest.fixture
def window(db: AsyncSession) -> GradingWindowService:
    return GradingWindowService(db, DatabaseAuditSink(db))


def _semester_one(school: dict[str, Any]) -> GradingPeriodCreate:
    return GradingPeriodCreate(
        academic_year_id=school["year_id"],
        period_type=PeriodType.SEMESTER,
        period_number=1,
        start_at=NOW - timedelta(days=10),
        end_at=NOW + timedelta(days=20),
    )


class TestGradeSubmissionScenario:
    """Grading window lifecycle seen from a teacher submitting grades."""

    @pytest.mark.asyncio
    async def test_window_lifecycle(self, db, grades, window, school, assessment_id):
        teacher = school["teacher_principal"]
        admin = school["admin_principal"]
        student_id = school["student_id"]

        with pytest.raises(PolicyBlockedError) as exc_info:
            await grades.submit_grade(teacher, assessment_id, student_id, Decimal("14"), NOW)
        assert exc_info.value.reason == "NO_PERIOD_CONFIGURED"

        period = await window.create_period(admin, _semester_one(school), NOW)
        grade = await grades.submit_grade(teacher, assessment_id, student_id, Decimal("14"), NOW)
        assert grade.value == Decimal("14")
        assert grade.recorded_by == school["teacher_id"]

        await window.update_period(admin, period.id, GradingPeriodUpdate(status=PeriodStatus.CLOSED), NOW)
        with pytest.raises(PolicyBlockedError) as exc_info:
            await grades.submit_grade(teacher, assessment_id, student_id, Decimal("15"), NOW)
        assert exc_info.value.reason == "PERIOD_CLOSED"

        await window.reopen(period.id, admin, "correction", now=NOW)
        corrected = await grades.submit_grade(teacher, assessment_id, student_id, Decimal("15.5"), NOW)

        assert corrected.id == grade.id
        assert corrected.value == Decimal("15.5")
        count = await db.execute(select(func.count()).select_from(Grade))
        assert count.scalar_one() == 1

        actions = await db.execute(
            select(AuditLog.action).where(AuditLog.module == "GRADES").order_by(AuditLog.created_at)
        )
        assert list(actions.scalars().all()) == ["CREATE", "UPDATE"]

        period_audits = await db.execute(
            select(AuditLog.action, AuditLog.reason)
            .where(AuditLog.module == "GRADING_PERIOD", AuditLog.entity_id == period.id)
            .order_by(AuditLog.created_at)
        )
        assert [tuple(row) for row in period_audits.all()] == [
            ("CREATE", None),
            ("CLOSE", None),
            ("REOPEN", "correction"),
        ]


class TestGradeRefusals:
    """Tests for the non-window gates."""

    @pytest.mark.asyncio
    async def test_student_role_refused(self, grades, school, assessment_id, make_principal):
        with pytest.raises(ForbiddenError) as exc_info:
            await grades.submit_grade(
                make_principal(school["student_id"], TENANT_A, Role.STUDENT),
                assessment_id,
                school["student_id"],
                Decimal("20"),
                NOW,
            )
        assert exc_info.value.reason == "GRADE_ROLE_REQUIRED"

    @pytest.mark.asyncio
    async def test_other_teacher_refused(self, grades, school, assessment_id, make_principal):
        with pytest.raises(ForbiddenError) as exc_info:
            await grades.submit_grade(
                make_principal("another-teacher", TENANT_A, Role.TEACHER),
                assessment_id,
                school["student_id"],
                Decimal("12"),
                NOW,
            )
        assert exc_info.value.reason == "NOT_PLAN_TEACHER"

    @pytest.mark.asyncio
    async def test_other_tenant_not_found(self, grades, school, assessment_id):
        with pytest.raises(NotFoundError):
            await grades.submit_grade(
                school["other_admin_principal"], assessment_id, school["student_id"], Decimal("12"), NOW
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["-0.5", "20.5"])
    async def test_out_of_range(self, grades, window, school, assessment_id, value):
        await window.create_period(school["admin_principal"], _semester_one(school), NOW)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await grades.submit_grade(
                school["admin_principal"], assessment_id, school["student_id"], Decimal(value), NOW
            )
        assert exc_info.value.reason == "GRADE_OUT_OF_RANGE"

    @pytest.mark.asyncio
    async def test_closed_assessment(self, db, grades, window, school, assessment_id):
        await window.create_period(school["admin_principal"], _semester_one(school), NOW)
        assessment = await db.get(Assessment, assessment_id)
        assessment.status = WorkflowStatus.APPROVED.value
        assessment.closed = True
        await db.commit()

        with pytest.raises(PreconditionFailedError) as exc_info:
            await grades.submit_grade(
                school["teacher_principal"], assessment_id, school["student_id"], Decimal("12"), NOW
            )
        assert exc_info.value.reason == "ASSESSMENT_CLOSED"

    @pytest.mark.asyncio
    async def test_unregistered_student_blocked(self, db, grades, window, school, assessment_id):
        await window.create_period(school["admin_principal"], _semester_one(school), NOW)
        registration = (await db.execute(select(CourseRegistration))).scalar_one()
        await db.delete(registration)
        await db.commit()

        with pytest.raises(PolicyBlockedError) as exc_info:
            await grades.submit_grade(
                school["teacher_principal"], assessment_id, school["student_id"], Decimal("12"), NOW
            )
        assert exc_info.value.reason == "NOT_REGISTERED_IN_DISCIPLINE"

    @pytest.mark.asyncio
    async def test_financial_block(self, db, grades, window, school, assessment_id, overdue_charge):
        await window.create_period(school["admin_principal"], _semester_one(school), NOW)
        db.add(InstitutionPolicy(tenant_id=TENANT_A, allow_assessments_when_irregular=False))
        db.add(overdue_charge(TENANT_A, school["student_id"]))
        await db.commit()

        with pytest.raises(PolicyBlockedError) as exc_info:
            await grades.submit_grade(
                school["teacher_principal"], assessment_id, school["student_id"], Decimal("12"), NOW
            )
        assert exc_info.value.reason == "FINANCIAL_BLOCK_ASSESSMENT_PARTICIPATION"
