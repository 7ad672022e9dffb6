# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade submission service.

Recording a grade is the point where every gate meets: tenant scope,
assessment workflow state, the grading window, institutional completeness
and the student's financial standing for assessment participation.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.config.settings import AcademicSettings
from dsicola.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    PreconditionFailedError,
)
from dsicola.domains.academic_gate.service import AcademicGateService
from dsicola.domains.auth.principal import Principal
from dsicola.domains.grading.service import GradingWindowService
from dsicola.domains.grading.window import Term
from dsicola.domains.tenancy.scope import build_scope_filter
from dsicola.infrastructure.audit.sink import AuditEntry, AuditSink, emit_best_effort
from dsicola.infrastructure.database.models.academic import Assessment, TeachingPlan
from dsicola.infrastructure.database.models.grading import Grade
from dsicola.infrastructure.database.models.tenant import Tenant
from dsicola.models.common import AcademicVariant, BlockedOperation, Role, WorkflowStatus
from dsicola.models.grading import GradeResponse

logger = logging.getLogger(__name__)

GRADE_ROLES = frozenset({Role.TEACHER, Role.ADMIN, Role.SUPER_ADMIN})
FROZEN_ASSESSMENT_STATUSES = frozenset({WorkflowStatus.APPROVED.value, WorkflowStatus.LOCKED.value})


class GradeService:
    """Gated grade recording.

    Attributes:
        _db: Async database session.
        _settings: Academic settings (grade scale).
        _audit: Optional audit sink.
        _window: Grading-window gate.
        _gate: Academic and financial gate.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: AcademicSettings | None = None,
        audit_sink: AuditSink | None = None,
    ) -> None:
        self._db = db
        self._settings = settings or AcademicSettings()
        self._audit = audit_sink
        self._window = GradingWindowService(db, audit_sink)
        self._gate = AcademicGateService(db, self._settings, audit_sink)

    async def _tenant_variant(self, tenant_id: str, principal: Principal) -> AcademicVariant | None:
        result = await self._db.execute(select(Tenant.academic_variant).where(Tenant.id == tenant_id))
        variant = result.scalar_one_or_none()
        if variant:
            return AcademicVariant(variant)
        return principal.academic_variant

    async def submit_grade(
        self,
        principal: Principal,
        assessment_id: str,
        student_id: str,
        value: Decimal,
        now: datetime | None = None,
    ) -> GradeResponse:
        """Record or replace a student's grade for an assessment.

        Args:
            principal: Caller. TEACHER, ADMIN or SUPER_ADMIN.
            assessment_id: Assessment being graded.
            student_id: Student receiving the grade.
            value: Grade on the institution's scale.
            now: Reference instant for the grading window.

        Returns:
            The stored grade.

        Raises:
            ForbiddenError: Role not allowed, or a teacher grading another
                teacher's assessment.
            NotFoundError: Assessment not visible to the caller.
            PreconditionFailedError: Assessment frozen or value out of range.
            PolicyBlockedError: A gate refused the submission.
        """
        if not principal.has_any_of(GRADE_ROLES):
            raise ForbiddenError(
                "Only teachers and administrators can record grades.",
                reason="GRADE_ROLE_REQUIRED",
            )

        scope = build_scope_filter(principal)
        result = await self._db.execute(
            select(Assessment, TeachingPlan)
            .join(TeachingPlan, Assessment.plan_id == TeachingPlan.id)
            .where(Assessment.id == assessment_id, scope.clause(Assessment.tenant_id))
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("Assessment not found.")
        assessment, plan = row
        tenant_id = assessment.tenant_id

        is_admin = principal.has_any_role(Role.ADMIN, Role.SUPER_ADMIN)
        if not is_admin and plan.teacher_id != principal.teacher_ref:
            logger.warning(
                "Grade refused: user=%s is not the teacher of plan=%s",
                principal.user_id,
                plan.id,
            )
            raise ForbiddenError(
                "Only the plan's teacher can record grades for this assessment.",
                reason="NOT_PLAN_TEACHER",
            )

        if assessment.closed or assessment.status in FROZEN_ASSESSMENT_STATUSES:
            raise PreconditionFailedError(
                "The assessment is closed. Grades can no longer be changed.",
                reason="ASSESSMENT_CLOSED",
            )

        term = Term.of(plan.academic_year_id, assessment.period_type, assessment.period_number)
        await self._window.ensure_can_submit(tenant_id, term, now)

        variant = await self._tenant_variant(tenant_id, principal)
        await self._gate.ensure_institutional(
            student_id,
            tenant_id,
            variant,
            discipline_id=plan.discipline_id,
            academic_year_id=plan.academic_year_id,
        )
        await self._gate.ensure_allowed(
            student_id,
            tenant_id,
            BlockedOperation.ASSESSMENT_PARTICIPATION,
            actor=principal,
        )

        max_grade = Decimal(str(self._settings.max_grade))
        if value < 0 or value > max_grade:
            raise PreconditionFailedError(
                f"Grade must be between 0 and {max_grade}.",
                violations=[f"value {value} is outside [0, {max_grade}]"],
                reason="GRADE_OUT_OF_RANGE",
            )

        try:
            existing = await self._db.execute(
                select(Grade)
                .where(
                    Grade.assessment_id == assessment_id,
                    Grade.student_id == student_id,
                    Grade.tenant_id == tenant_id,
                )
                .with_for_update()
            )
            grade = existing.scalar_one_or_none()
            previous = str(grade.value) if grade is not None else None
            if grade is None:
                grade = Grade(
                    tenant_id=tenant_id,
                    assessment_id=assessment_id,
                    student_id=student_id,
                    value=value,
                    recorded_by=principal.user_id,
                )
                self._db.add(grade)
            else:
                grade.value = value
                grade.recorded_by = principal.user_id
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

        response = GradeResponse.model_validate(grade)
        logger.info(
            "Grade recorded: assessment=%s student=%s by %s",
            assessment_id,
            student_id,
            principal.user_id,
        )
        await emit_best_effort(
            self._audit,
            AuditEntry(
                module="GRADES",
                action="CREATE" if previous is None else "UPDATE",
                entity="grade",
                entity_id=response.id,
                tenant_id=tenant_id,
                actor_id=principal.user_id,
                before={"value": previous} if previous is not None else None,
                after={"value": str(response.value), "student_id": student_id},
            ),
        )
        return response
