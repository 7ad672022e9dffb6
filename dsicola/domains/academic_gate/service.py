# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic and financial gate service.

This module provides the AcademicGateService class for:
- Financial blocking of enrollment, documents, certificates and participation
- Institutional completeness of a student's enrollment (course or class level)

Both checks take the tenant explicitly; nothing is read from request state.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.config.settings import AcademicSettings
from dsicola.core.exceptions import NotFoundError, PolicyBlockedError
from dsicola.domains.academic_gate.policy import (
    BlockingPolicy,
    FinancialStanding,
    compute_standing,
    evaluate_block,
)
from dsicola.domains.auth.principal import Principal
from dsicola.infrastructure.audit.sink import AuditEntry, AuditSink, emit_best_effort
from dsicola.infrastructure.database.models.enrollment import AnnualEnrollment, CourseRegistration
from dsicola.infrastructure.database.models.finance import Charge, InstitutionPolicy
from dsicola.infrastructure.database.models.tenant import User
from dsicola.models.common import (
    ACTIVE_REGISTRATION_STATUSES,
    SETTLED_CHARGE_STATUSES,
    AcademicVariant,
    BlockedOperation,
    EnrollmentStatus,
)
from dsicola.utils.datetime import utc_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateResult:
    """Financial gate decision.

    Attributes:
        operation: Operation that was checked.
        blocked: Whether the operation is refused.
        reason: Student-facing explanation when blocked.
        standing: Financial standing the decision was based on.
        policy: Effective institution policy.
    """

    operation: BlockedOperation
    blocked: bool
    reason: str | None
    standing: FinancialStanding
    policy: BlockingPolicy

    @property
    def allowed(self) -> bool:
        return not self.blocked


@dataclass(frozen=True)
class InstitutionalStatus:
    """Institutional completeness decision.

    Attributes:
        blocked: Whether academic operations are refused.
        reason_code: Machine-readable reason when blocked.
        message: Student-facing explanation when blocked.
        academic_variant: Variant the rules were applied for.
        has_active_enrollment: Whether an ACTIVE snapshot was found.
        course_id: Course on the snapshot.
        class_level_id: Class level on the snapshot.
    """

    blocked: bool
    reason_code: str | None = None
    message: str | None = None
    academic_variant: AcademicVariant | None = None
    has_active_enrollment: bool = False
    course_id: str | None = None
    class_level_id: str | None = None
    enrollment_id: str | None = None


class AcademicGateService:
    """Per-student action gating.

    Attributes:
        _db: Async database session.
        _settings: Academic settings (currency label).
        _audit: Optional audit sink for blocked attempts.
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

    async def get_policy(self, tenant_id: str) -> BlockingPolicy:
        """Load the tenant's blocking policy, defaults when unset."""
        result = await self._db.execute(
            select(InstitutionPolicy).where(InstitutionPolicy.tenant_id == tenant_id)
        )
        return BlockingPolicy.from_row(result.scalar_one_or_none())

    async def financial_standing(
        self,
        student_id: str,
        tenant_id: str,
        today: date | None = None,
    ) -> FinancialStanding:
        """Compute the student's financial standing within the tenant."""
        result = await self._db.execute(
            select(Charge).where(
                Charge.student_id == student_id,
                Charge.tenant_id == tenant_id,
                Charge.status.not_in(SETTLED_CHARGE_STATUSES),
            )
        )
        return compute_standing(result.scalars().all(), today or utc_today())

    async def check(
        self,
        student_id: str,
        tenant_id: str,
        operation: BlockedOperation | str,
        actor: Principal | None = None,
        today: date | None = None,
    ) -> GateResult:
        """Decide whether a student may perform an operation.

        A blocked attempt is audited best-effort; a failing audit sink never
        changes the decision.
        """
        operation = BlockedOperation(operation)
        policy = await self.get_policy(tenant_id)
        standing = await self.financial_standing(student_id, tenant_id, today)
        reason = evaluate_block(operation, policy, standing, self._settings.currency_label)

        gate = GateResult(
            operation=operation,
            blocked=reason is not None,
            reason=reason,
            standing=standing,
            policy=policy,
        )

        if gate.blocked:
            logger.info(
                "Financial gate blocked: student=%s tenant=%s operation=%s overdue=%d",
                student_id,
                tenant_id,
                operation.value,
                standing.overdue_count,
            )
            await emit_best_effort(
                self._audit,
                AuditEntry(
                    module="ACADEMIC_GATE",
                    action="BLOCK",
                    entity="student",
                    entity_id=student_id,
                    tenant_id=tenant_id,
                    actor_id=actor.user_id if actor else None,
                    after={"operation": operation.value, "blocked": True, **standing.to_dict()},
                    reason=reason,
                ),
            )

        return gate

    async def ensure_allowed(
        self,
        student_id: str,
        tenant_id: str,
        operation: BlockedOperation | str,
        actor: Principal | None = None,
    ) -> GateResult:
        """Check and raise PolicyBlockedError when blocked."""
        gate = await self.check(student_id, tenant_id, operation, actor)
        if gate.blocked:
            raise PolicyBlockedError(
                gate.reason or "Operation blocked.",
                reason=f"FINANCIAL_BLOCK_{gate.operation.value}",
            )
        return gate

    async def check_institutional(
        self,
        student_id: str,
        tenant_id: str,
        academic_variant: AcademicVariant | str | None,
        discipline_id: str | None = None,
        academic_year_id: str | None = None,
    ) -> InstitutionalStatus:
        """Check that the student's enrollment is complete for the tenant's variant.

        Args:
            student_id: Student user id.
            tenant_id: Institution.
            academic_variant: HIGHER_ED requires a course, SECONDARY a class
                level. None passes once an active enrollment exists.
            discipline_id: When given, an active registration is required.
            academic_year_id: Restrict the snapshot to one academic year.

        Raises:
            NotFoundError: Student does not exist in the tenant.
        """
        variant = AcademicVariant(academic_variant) if academic_variant else None

        student = await self._db.execute(
            select(User.id).where(User.id == student_id, User.tenant_id == tenant_id)
        )
        if student.scalar_one_or_none() is None:
            raise NotFoundError("Student not found or does not belong to this institution.")

        stmt = select(AnnualEnrollment).where(
            AnnualEnrollment.student_id == student_id,
            AnnualEnrollment.tenant_id == tenant_id,
            AnnualEnrollment.status == EnrollmentStatus.ACTIVE.value,
        )
        if academic_year_id:
            stmt = stmt.where(AnnualEnrollment.academic_year_id == academic_year_id)
        result = await self._db.execute(
            stmt.order_by(AnnualEnrollment.created_at.desc()).limit(1)
        )
        enrollment = result.scalar_one_or_none()

        if enrollment is None:
            return InstitutionalStatus(
                blocked=True,
                reason_code="NO_ACTIVE_ENROLLMENT",
                message="Student has no active annual enrollment. Academic operation blocked.",
                academic_variant=variant,
            )

        snapshot: dict[str, Any] = {
            "academic_variant": variant,
            "has_active_enrollment": True,
            "course_id": enrollment.course_id,
            "class_level_id": enrollment.class_level_id,
            "enrollment_id": enrollment.id,
        }

        if variant is AcademicVariant.HIGHER_ED:
            if not enrollment.course_id:
                return InstitutionalStatus(
                    blocked=True,
                    reason_code="MISSING_COURSE",
                    message="Student has no course assigned. Academic operation blocked.",
                    **snapshot,
                )
            if enrollment.class_level_id:
                logger.warning(
                    "Inconsistent enrollment: HIGHER_ED student %s has class_level_id %s",
                    student_id,
                    enrollment.class_level_id,
                )
        elif variant is AcademicVariant.SECONDARY:
            if not enrollment.class_level_id:
                return InstitutionalStatus(
                    blocked=True,
                    reason_code="MISSING_CLASS",
                    message="Student has no class assigned. Academic operation blocked.",
                    **snapshot,
                )
            if enrollment.course_id:
                logger.warning(
                    "Inconsistent enrollment: SECONDARY student %s has course_id %s",
                    student_id,
                    enrollment.course_id,
                )
        else:
            # Variant not configured: course/class rules do not apply.
            return InstitutionalStatus(blocked=False, **snapshot)

        if discipline_id:
            registration = await self._db.execute(
                select(CourseRegistration.id)
                .where(
                    CourseRegistration.student_id == student_id,
                    CourseRegistration.discipline_id == discipline_id,
                    CourseRegistration.enrollment_id == enrollment.id,
                    CourseRegistration.status.in_(ACTIVE_REGISTRATION_STATUSES),
                )
                .limit(1)
            )
            if registration.scalar_one_or_none() is None:
                return InstitutionalStatus(
                    blocked=True,
                    reason_code="NOT_REGISTERED_IN_DISCIPLINE",
                    message="Student is not registered in this discipline. Academic operation blocked.",
                    **snapshot,
                )

        return InstitutionalStatus(blocked=False, **snapshot)

    async def ensure_institutional(
        self,
        student_id: str,
        tenant_id: str,
        academic_variant: AcademicVariant | str | None,
        discipline_id: str | None = None,
        academic_year_id: str | None = None,
    ) -> InstitutionalStatus:
        """Check institutional completeness and raise PolicyBlockedError when blocked."""
        status = await self.check_institutional(
            student_id, tenant_id, academic_variant, discipline_id, academic_year_id
        )
        if status.blocked:
            raise PolicyBlockedError(
                status.message or "Academic operation blocked.",
                reason=status.reason_code,
            )
        return status
