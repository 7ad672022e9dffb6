# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading window service.

This module provides the GradingWindowService class for:
- Deciding whether grades may be submitted for a term
- Administering grading periods (create, update, list, active lookup)
- Administrator reopen of a closed or expired period with a mandatory reason

The reopen audit row is committed in the same transaction as the status
change. Other administration audit entries are best-effort.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PolicyBlockedError,
    PreconditionFailedError,
)
from dsicola.domains.auth.principal import Principal
from dsicola.domains.grading.window import (
    NO_PERIOD_REASON,
    SUBMISSION_REASONS,
    Term,
    effective_status,
    status_at,
)
from dsicola.domains.tenancy.scope import build_scope_filter
from dsicola.infrastructure.audit.sink import AuditEntry, AuditSink, emit_best_effort
from dsicola.infrastructure.database.models.academic import AcademicYear
from dsicola.infrastructure.database.models.grading import GradingPeriod
from dsicola.models.common import ADMIN_ROLES, PERIOD_NUMBER_LIMITS, PeriodStatus, PeriodType
from dsicola.models.grading import (
    GradingPeriodCreate,
    GradingPeriodResponse,
    GradingPeriodUpdate,
    SubmissionDecision,
)
from dsicola.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

AUDIT_MODULE = "GRADING_PERIOD"
AUDIT_ENTITY = "grading_period"


def to_response(period: GradingPeriod, now: datetime) -> GradingPeriodResponse:
    """Render a period with its status computed at now."""
    return GradingPeriodResponse(
        id=period.id,
        tenant_id=period.tenant_id,
        academic_year_id=period.academic_year_id,
        period_type=PeriodType(period.period_type),
        period_number=period.period_number,
        start_at=ensure_utc(period.start_at),
        end_at=ensure_utc(period.end_at),
        status=PeriodStatus(period.status),
        effective_status=effective_status(period, now),
        reopen_reason=period.reopen_reason,
        reopened_by=period.reopened_by,
        reopened_at=ensure_utc(period.reopened_at),
    )


def _snapshot(period: GradingPeriod) -> dict[str, Any]:
    return {
        "status": period.status,
        "start_at": ensure_utc(period.start_at).isoformat(),
        "end_at": ensure_utc(period.end_at).isoformat(),
    }


def validate_period_designation(period_type: PeriodType | str, period_number: int) -> list[str]:
    """Check the period number against the period type."""
    try:
        kind = PeriodType(period_type)
    except ValueError:
        return ["period_type must be SEMESTER or TRIMESTER."]
    limit = PERIOD_NUMBER_LIMITS[kind]
    if not 1 <= period_number <= limit:
        allowed = ", ".join(str(n) for n in range(1, limit + 1))
        return [f"period_number for {kind.value} must be one of {allowed}."]
    return []


class GradingWindowService:
    """Time and state gate for grade submission.

    Attributes:
        _db: Async database session.
        _audit: Optional audit sink for best-effort administration entries.
    """

    def __init__(self, db: AsyncSession, audit_sink: AuditSink | None = None) -> None:
        self._db = db
        self._audit = audit_sink

    @staticmethod
    def _require_admin(principal: Principal, action: str) -> None:
        if not principal.has_any_of(ADMIN_ROLES):
            logger.warning(
                "Grading period %s refused for non-admin user=%s roles=%s",
                action,
                principal.user_id,
                principal.role_names(),
            )
            raise ForbiddenError(
                f"Only administrators can {action} grading periods.",
                reason="ADMIN_REQUIRED",
            )

    async def periods_for_term(self, tenant_id: str, term: Term) -> list[GradingPeriod]:
        result = await self._db.execute(
            select(GradingPeriod)
            .where(
                GradingPeriod.tenant_id == tenant_id,
                GradingPeriod.academic_year_id == term.academic_year_id,
                GradingPeriod.period_type == term.period_type.value,
                GradingPeriod.period_number == term.period_number,
            )
            .order_by(GradingPeriod.created_at.desc())
        )
        return list(result.scalars().all())

    async def check_submission(
        self,
        tenant_id: str,
        term: Term,
        now: datetime | None = None,
    ) -> SubmissionDecision:
        """Decide whether grades for a term may be submitted now.

        When several periods exist for the term, any effectively open one
        permits submission; otherwise the newest period explains the refusal.
        """
        now = now or utc_now()
        periods = await self.periods_for_term(tenant_id, term)
        if not periods:
            reason, message = NO_PERIOD_REASON
            return SubmissionDecision(allowed=False, reason=reason, message=message)

        for period in periods:
            if effective_status(period, now) is PeriodStatus.OPEN:
                return SubmissionDecision(
                    allowed=True,
                    period_id=period.id,
                    effective_status=PeriodStatus.OPEN,
                )

        newest = periods[0]
        status = effective_status(newest, now)
        reason, message = SUBMISSION_REASONS[status]
        return SubmissionDecision(
            allowed=False,
            reason=reason,
            message=message,
            period_id=newest.id,
            effective_status=status,
        )

    async def can_submit(self, tenant_id: str, term: Term, now: datetime | None = None) -> bool:
        decision = await self.check_submission(tenant_id, term, now)
        return decision.allowed

    async def ensure_can_submit(
        self,
        tenant_id: str,
        term: Term,
        now: datetime | None = None,
    ) -> SubmissionDecision:
        """Raise PolicyBlockedError unless submission is allowed."""
        decision = await self.check_submission(tenant_id, term, now)
        if not decision.allowed:
            logger.info(
                "Grade submission blocked: tenant=%s term=%s/%s/%d reason=%s",
                tenant_id,
                term.academic_year_id,
                term.period_type.value,
                term.period_number,
                decision.reason,
            )
            raise PolicyBlockedError(decision.message or "Grade submission blocked.", reason=decision.reason)
        return decision

    async def _find_open_for_term(
        self,
        tenant_id: str,
        term: Term,
        now: datetime,
        exclude_id: str | None = None,
    ) -> GradingPeriod | None:
        for period in await self.periods_for_term(tenant_id, term):
            if period.id != exclude_id and effective_status(period, now) is PeriodStatus.OPEN:
                return period
        return None

    async def _load_period(self, period_id: str, principal: Principal, for_update: bool = False) -> GradingPeriod:
        scope = build_scope_filter(principal)
        stmt = select(GradingPeriod).where(
            GradingPeriod.id == period_id,
            scope.clause(GradingPeriod.tenant_id),
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._db.execute(stmt)
        period = result.scalar_one_or_none()
        if period is None:
            raise NotFoundError("Grading period not found.")
        return period

    async def list_periods(
        self,
        principal: Principal,
        academic_year_id: str | None = None,
        now: datetime | None = None,
    ) -> list[GradingPeriodResponse]:
        """List the tenant's periods with computed status."""
        now = now or utc_now()
        scope = build_scope_filter(principal)
        stmt = select(GradingPeriod).where(scope.clause(GradingPeriod.tenant_id))
        if academic_year_id:
            stmt = stmt.where(GradingPeriod.academic_year_id == academic_year_id)
        result = await self._db.execute(
            stmt.order_by(
                GradingPeriod.academic_year_id,
                GradingPeriod.period_type,
                GradingPeriod.period_number,
                GradingPeriod.start_at,
            )
        )
        return [to_response(period, now) for period in result.scalars().all()]

    async def get_active(
        self,
        principal: Principal,
        academic_year_id: str | None = None,
        period_type: PeriodType | None = None,
        period_number: int | None = None,
        now: datetime | None = None,
    ) -> GradingPeriodResponse | None:
        """Return the first effectively open period matching the filters."""
        now = now or utc_now()
        scope = build_scope_filter(principal)
        stmt = select(GradingPeriod).where(
            scope.clause(GradingPeriod.tenant_id),
            GradingPeriod.status == PeriodStatus.OPEN.value,
        )
        if academic_year_id:
            stmt = stmt.where(GradingPeriod.academic_year_id == academic_year_id)
        if period_type:
            stmt = stmt.where(GradingPeriod.period_type == PeriodType(period_type).value)
        if period_number:
            stmt = stmt.where(GradingPeriod.period_number == period_number)

        result = await self._db.execute(stmt.order_by(GradingPeriod.start_at.desc()))
        for period in result.scalars().all():
            if effective_status(period, now) is PeriodStatus.OPEN:
                return to_response(period, now)
        return None

    async def create_period(
        self,
        principal: Principal,
        data: GradingPeriodCreate,
        now: datetime | None = None,
    ) -> GradingPeriodResponse:
        """Create a PLANNED or OPEN period for a term.

        Raises:
            ForbiddenError: Caller is not an administrator, or has no tenant.
            PreconditionFailedError: Invalid designation, window or status,
                or another period of the term is already open.
            NotFoundError: Academic year not in the tenant.
        """
        self._require_admin(principal, "create")
        tenant_id = build_scope_filter(principal).require_tenant()
        now = now or utc_now()

        start_at = ensure_utc(data.start_at)
        end_at = ensure_utc(data.end_at)
        violations = validate_period_designation(data.period_type, data.period_number)
        if end_at <= start_at:
            violations.append("end_at must be after start_at.")
        if data.status not in (PeriodStatus.PLANNED, PeriodStatus.OPEN):
            violations.append("A new period must be PLANNED or OPEN.")
        if violations:
            raise PreconditionFailedError("Invalid grading period.", violations=violations)

        year = await self._db.execute(
            select(AcademicYear.id).where(
                AcademicYear.id == data.academic_year_id,
                AcademicYear.tenant_id == tenant_id,
            )
        )
        if year.scalar_one_or_none() is None:
            raise NotFoundError("Academic year not found or does not belong to this institution.")

        term = Term.of(data.academic_year_id, data.period_type, data.period_number)
        if data.status is PeriodStatus.OPEN:
            existing = await self._find_open_for_term(tenant_id, term, now)
            if existing is not None:
                raise PreconditionFailedError(
                    "Another grading period for this term is already open.",
                    reason="PERIOD_ALREADY_OPEN",
                )

        period = GradingPeriod(
            tenant_id=tenant_id,
            academic_year_id=data.academic_year_id,
            period_type=term.period_type.value,
            period_number=term.period_number,
            start_at=start_at,
            end_at=end_at,
            status=data.status.value,
            created_by=principal.user_id,
        )
        self._db.add(period)
        await self._db.commit()

        response = to_response(period, now)
        logger.info("Grading period created: id=%s tenant=%s", period.id, tenant_id)
        await emit_best_effort(
            self._audit,
            AuditEntry(
                module=AUDIT_MODULE,
                action="CREATE",
                entity=AUDIT_ENTITY,
                entity_id=response.id,
                tenant_id=tenant_id,
                actor_id=principal.user_id,
                after={
                    "status": response.status.value,
                    "start_at": response.start_at.isoformat(),
                    "end_at": response.end_at.isoformat(),
                },
            ),
        )
        return response

    async def update_period(
        self,
        principal: Principal,
        period_id: str,
        data: GradingPeriodUpdate,
        now: datetime | None = None,
    ) -> GradingPeriodResponse:
        """Change a period's dates or close it.

        A CLOSED or EXPIRED period can only become effectively OPEN again
        through reopen, and at most one period per term may be open.

        Raises:
            ForbiddenError: Caller is not an administrator.
            NotFoundError: Period not in the caller's tenant.
            PreconditionFailedError: Invalid status or window.
            InvalidTransitionError: Attempt to reopen without a reason.
        """
        self._require_admin(principal, "update")
        now = now or utc_now()

        if data.status is not None and data.status not in (PeriodStatus.OPEN, PeriodStatus.CLOSED):
            raise PreconditionFailedError(
                "Status can only be set to OPEN or CLOSED. Expiry is computed automatically.",
                reason="INVALID_PERIOD_STATUS",
            )

        try:
            period = await self._load_period(period_id, principal, for_update=True)
            before = _snapshot(period)

            start_at = ensure_utc(data.start_at) if data.start_at else ensure_utc(period.start_at)
            end_at = ensure_utc(data.end_at) if data.end_at else ensure_utc(period.end_at)
            if end_at <= start_at:
                raise PreconditionFailedError("end_at must be after start_at.")

            current = effective_status(period, now)
            new_status = data.status.value if data.status is not None else period.status
            proposed = status_at(new_status, start_at, end_at, now)

            reopening_closed = (
                data.status is PeriodStatus.OPEN and period.status == PeriodStatus.CLOSED.value
            )
            reviving = proposed is PeriodStatus.OPEN and current in (
                PeriodStatus.CLOSED,
                PeriodStatus.EXPIRED,
            )
            if reopening_closed or reviving:
                raise InvalidTransitionError(
                    "A closed or expired period can only be reopened by an administrator with a reason.",
                    current_status=current.value,
                    reason="REOPEN_REQUIRED",
                )

            if proposed is PeriodStatus.OPEN:
                term = Term.of(period.academic_year_id, period.period_type, period.period_number)
                if await self._find_open_for_term(period.tenant_id, term, now, exclude_id=period.id):
                    raise PreconditionFailedError(
                        "Another grading period for this term is already open.",
                        reason="PERIOD_ALREADY_OPEN",
                    )

            period.start_at = start_at
            period.end_at = end_at
            if data.status is not None:
                period.status = data.status.value
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

        response = to_response(period, now)
        closing = data.status is PeriodStatus.CLOSED and before["status"] != PeriodStatus.CLOSED.value
        action = "CLOSE" if closing else "UPDATE"
        logger.info("Grading period %s: id=%s by %s", action.lower(), period_id, principal.user_id)
        await emit_best_effort(
            self._audit,
            AuditEntry(
                module=AUDIT_MODULE,
                action=action,
                entity=AUDIT_ENTITY,
                entity_id=period_id,
                tenant_id=response.tenant_id,
                actor_id=principal.user_id,
                before=before,
                after={
                    "status": response.status.value,
                    "start_at": response.start_at.isoformat(),
                    "end_at": response.end_at.isoformat(),
                },
            ),
        )
        return response

    async def reopen(
        self,
        period_id: str,
        actor: Principal,
        reason: str | None,
        new_end: datetime | None = None,
        now: datetime | None = None,
    ) -> GradingPeriodResponse:
        """Reopen a CLOSED or EXPIRED period.

        Args:
            period_id: Period to reopen.
            actor: Administrator performing the reopen.
            reason: Mandatory justification.
            new_end: New end of the window; required when the current end has
                already passed.
            now: Reference instant.

        Raises:
            ForbiddenError: Actor is not ADMIN or SUPER_ADMIN. The period is
                left untouched.
            PreconditionFailedError: Blank reason, invalid new end, or another
                period of the term is open.
            NotFoundError: Period not in the actor's tenant.
            InvalidTransitionError: Period is already open, planned or cancelled.
        """
        self._require_admin(actor, "reopen")
        if not reason or not reason.strip():
            raise PreconditionFailedError(
                "A reason is required to reopen a grading period.",
                reason="REASON_REQUIRED",
            )
        reason = reason.strip()
        now = now or utc_now()

        try:
            period = await self._load_period(period_id, actor, for_update=True)
            current = effective_status(period, now)

            if current is PeriodStatus.OPEN:
                raise InvalidTransitionError(
                    "The grading period is already open.",
                    current_status=current.value,
                    reason="ALREADY_OPEN",
                )
            if current in (PeriodStatus.PLANNED, PeriodStatus.CANCELLED):
                raise InvalidTransitionError(
                    f"A {current.value} grading period cannot be reopened.",
                    current_status=current.value,
                )

            start_at = ensure_utc(period.start_at)
            end_at = ensure_utc(period.end_at)
            if new_end is not None:
                new_end = ensure_utc(new_end)
                if new_end <= start_at:
                    raise PreconditionFailedError("The new end must be after the period start.")
                end_at = new_end
            if end_at < now:
                raise PreconditionFailedError(
                    "The period has ended. Provide a new end date in the future to reopen it.",
                    reason="NEW_END_REQUIRED",
                )

            term = Term.of(period.academic_year_id, period.period_type, period.period_number)
            if await self._find_open_for_term(period.tenant_id, term, now, exclude_id=period.id):
                raise PreconditionFailedError(
                    "Another grading period for this term is already open.",
                    reason="PERIOD_ALREADY_OPEN",
                )

            before = _snapshot(period)
            before["effective_status"] = current.value
            period.status = PeriodStatus.OPEN.value
            period.end_at = end_at
            period.reopen_reason = reason
            period.reopened_by = actor.user_id
            period.reopened_at = now

            self._db.add(
                AuditEntry(
                    module=AUDIT_MODULE,
                    action="REOPEN",
                    entity=AUDIT_ENTITY,
                    entity_id=period.id,
                    tenant_id=period.tenant_id,
                    actor_id=actor.user_id,
                    before=before,
                    after=_snapshot(period),
                    reason=reason,
                ).to_row()
            )
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

        logger.info(
            "Grading period reopened: id=%s by %s reason=%r",
            period_id,
            actor.user_id,
            reason,
        )
        return to_response(period, now)
