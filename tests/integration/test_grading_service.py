# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for grading period administration against SQLite."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PolicyBlockedError,
    PreconditionFailedError,
)
from dsicola.domains.grading import GradingWindowService, Term
from dsicola.infrastructure.audit.sink import DatabaseAuditSink
from dsicola.infrastructure.database.models import AuditLog, GradingPeriod
from dsicola.models.common import PeriodStatus, PeriodType, Role
from dsicola.models.grading import GradingPeriodCreate, GradingPeriodUpdate

TENANT_A = "11111111-1111-4111-8111-111111111111"
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db: AsyncSession) -> GradingWindowService:
    return GradingWindowService(db, DatabaseAuditSink(db))


def _create(school: dict[str, Any], **overrides: Any) -> GradingPeriodCreate:
    fields = {
        "academic_year_id": school["year_id"],
        "period_type": PeriodType.SEMESTER,
        "period_number": 1,
        "start_at": NOW - timedelta(days=10),
        "end_at": NOW + timedelta(days=20),
        "status": PeriodStatus.OPEN,
    }
    fields.update(overrides)
    return GradingPeriodCreate(**fields)


def _term(school: dict[str, Any], number: int = 1) -> Term:
    return Term.of(school["year_id"], PeriodType.SEMESTER, number)


async def _stored(db: AsyncSession, period_id: str):
    result = await db.execute(
        select(GradingPeriod.status, GradingPeriod.end_at, GradingPeriod.reopen_reason).where(
            GradingPeriod.id == period_id
        )
    )
    return result.one()


async def _audit_actions(db: AsyncSession, period_id: str) -> list[str]:
    result = await db.execute(
        select(AuditLog.action).where(AuditLog.entity_id == period_id).order_by(AuditLog.created_at)
    )
    return list(result.scalars().all())


class TestCreatePeriod:
    """Tests for period creation."""

    @pytest.mark.asyncio
    async def test_create_open_period(self, db, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)

        assert period.tenant_id == TENANT_A
        assert period.effective_status is PeriodStatus.OPEN
        assert await _audit_actions(db, period.id) == ["CREATE"]

    @pytest.mark.asyncio
    async def test_non_admin_refused(self, service, school):
        with pytest.raises(ForbiddenError) as exc_info:
            await service.create_period(school["teacher_principal"], _create(school), NOW)
        assert exc_info.value.reason == "ADMIN_REQUIRED"

    @pytest.mark.asyncio
    async def test_all_violations_reported(self, service, school):
        data = _create(
            school,
            period_number=3,
            end_at=NOW - timedelta(days=30),
            status=PeriodStatus.CLOSED,
        )

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.create_period(school["admin_principal"], data, NOW)

        assert len(exc_info.value.violations) == 3

    @pytest.mark.asyncio
    async def test_academic_year_of_other_tenant(self, service, school):
        with pytest.raises(NotFoundError):
            await service.create_period(
                school["other_admin_principal"], _create(school), NOW
            )

    @pytest.mark.asyncio
    async def test_second_open_period_for_term_refused(self, service, school):
        await service.create_period(school["admin_principal"], _create(school), NOW)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.create_period(school["admin_principal"], _create(school), NOW)
        assert exc_info.value.reason == "PERIOD_ALREADY_OPEN"

        other_term = await service.create_period(
            school["admin_principal"], _create(school, period_number=2), NOW
        )
        assert other_term.effective_status is PeriodStatus.OPEN


class TestSubmissionDecision:
    """Tests for check_submission."""

    @pytest.mark.asyncio
    async def test_no_period(self, service, school):
        decision = await service.check_submission(TENANT_A, _term(school), NOW)

        assert not decision.allowed
        assert decision.reason == "NO_PERIOD_CONFIGURED"

    @pytest.mark.asyncio
    async def test_open_period_allows(self, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)

        decision = await service.check_submission(TENANT_A, _term(school), NOW)

        assert decision.allowed
        assert decision.period_id == period.id
        assert await service.can_submit(TENANT_A, _term(school), NOW)

    @pytest.mark.asyncio
    async def test_expired_period_blocks(self, service, school):
        await service.create_period(school["admin_principal"], _create(school), NOW)

        later = NOW + timedelta(days=21)
        with pytest.raises(PolicyBlockedError) as exc_info:
            await service.ensure_can_submit(TENANT_A, _term(school), later)

        assert exc_info.value.reason == "PERIOD_EXPIRED"

    @pytest.mark.asyncio
    async def test_planned_period_blocks(self, service, school):
        await service.create_period(
            school["admin_principal"], _create(school, status=PeriodStatus.PLANNED), NOW
        )

        decision = await service.check_submission(TENANT_A, _term(school), NOW)

        assert decision.reason == "PERIOD_NOT_STARTED"

    @pytest.mark.asyncio
    async def test_other_tenant_periods_do_not_count(self, service, school):
        await service.create_period(school["admin_principal"], _create(school), NOW)

        decision = await service.check_submission(
            "22222222-2222-4222-8222-222222222222", _term(school), NOW
        )

        assert decision.reason == "NO_PERIOD_CONFIGURED"


class TestUpdatePeriod:
    """Tests for update_period."""

    @pytest.mark.asyncio
    async def test_close_is_audited(self, db, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)

        closed = await service.update_period(
            school["admin_principal"], period.id, GradingPeriodUpdate(status=PeriodStatus.CLOSED), NOW
        )

        assert closed.effective_status is PeriodStatus.CLOSED
        assert await _audit_actions(db, period.id) == ["CREATE", "CLOSE"]

    @pytest.mark.asyncio
    async def test_closed_period_cannot_be_opened_by_update(self, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)
        await service.update_period(
            school["admin_principal"], period.id, GradingPeriodUpdate(status=PeriodStatus.CLOSED), NOW
        )

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.update_period(
                school["admin_principal"], period.id, GradingPeriodUpdate(status=PeriodStatus.OPEN), NOW
            )
        assert exc_info.value.reason == "REOPEN_REQUIRED"

    @pytest.mark.asyncio
    async def test_planned_period_can_be_opened(self, service, school):
        period = await service.create_period(
            school["admin_principal"], _create(school, status=PeriodStatus.PLANNED), NOW
        )

        opened = await service.update_period(
            school["admin_principal"], period.id, GradingPeriodUpdate(status=PeriodStatus.OPEN), NOW
        )

        assert opened.effective_status is PeriodStatus.OPEN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [PeriodStatus.EXPIRED, PeriodStatus.CANCELLED, PeriodStatus.PLANNED])
    async def test_only_open_or_closed(self, service, school, status):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.update_period(
                school["admin_principal"], period.id, GradingPeriodUpdate(status=status), NOW
            )
        assert exc_info.value.reason == "INVALID_PERIOD_STATUS"

    @pytest.mark.asyncio
    async def test_end_before_start_refused(self, db, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)

        with pytest.raises(PreconditionFailedError):
            await service.update_period(
                school["admin_principal"],
                period.id,
                GradingPeriodUpdate(end_at=NOW - timedelta(days=30)),
                NOW,
            )

        assert (await _stored(db, period.id)).status == PeriodStatus.OPEN.value

    @pytest.mark.asyncio
    async def test_other_tenant_not_found(self, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)

        with pytest.raises(NotFoundError):
            await service.update_period(
                school["other_admin_principal"],
                period.id,
                GradingPeriodUpdate(status=PeriodStatus.CLOSED),
                NOW,
            )

    @pytest.mark.asyncio
    async def test_expired_period_cannot_be_extended_by_update(self, db, service, school):
        period = await service.create_period(
            school["admin_principal"], _create(school, end_at=NOW + timedelta(days=1)), NOW
        )
        later = NOW + timedelta(days=5)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.update_period(
                school["admin_principal"],
                period.id,
                GradingPeriodUpdate(end_at=later + timedelta(days=30)),
                later,
            )

        assert exc_info.value.reason == "REOPEN_REQUIRED"
        assert exc_info.value.current_status == "EXPIRED"
        stored = await _stored(db, period.id)
        assert stored.reopen_reason is None
        decision = await service.check_submission(TENANT_A, _term(school), later)
        assert decision.reason == "PERIOD_EXPIRED"
        assert await _audit_actions(db, period.id) == ["CREATE"]

    @pytest.mark.asyncio
    async def test_expired_planned_period_cannot_be_opened_by_update(self, service, school):
        period = await service.create_period(
            school["admin_principal"],
            _create(school, status=PeriodStatus.PLANNED, end_at=NOW + timedelta(days=1)),
            NOW,
        )
        later = NOW + timedelta(days=5)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.update_period(
                school["admin_principal"],
                period.id,
                GradingPeriodUpdate(status=PeriodStatus.OPEN, end_at=later + timedelta(days=10)),
                later,
            )
        assert exc_info.value.reason == "REOPEN_REQUIRED"

    @pytest.mark.asyncio
    async def test_open_period_end_can_be_extended(self, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)

        updated = await service.update_period(
            school["admin_principal"],
            period.id,
            GradingPeriodUpdate(end_at=NOW + timedelta(days=40)),
            NOW,
        )

        assert updated.effective_status is PeriodStatus.OPEN
        assert updated.end_at == NOW + timedelta(days=40)

    @pytest.mark.asyncio
    async def test_date_change_cannot_open_a_second_period(self, db, service, school):
        future = await service.create_period(
            school["admin_principal"],
            _create(school, start_at=NOW + timedelta(days=30), end_at=NOW + timedelta(days=40)),
            NOW,
        )
        await service.create_period(school["admin_principal"], _create(school), NOW)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.update_period(
                school["admin_principal"],
                future.id,
                GradingPeriodUpdate(start_at=NOW - timedelta(days=1)),
                NOW,
            )

        assert exc_info.value.reason == "PERIOD_ALREADY_OPEN"
        assert await _audit_actions(db, future.id) == ["CREATE"]


class TestReopen:
    """Tests for administrator reopen."""

    async def _closed_period(self, service, school) -> str:
        period = await service.create_period(school["admin_principal"], _create(school), NOW)
        await service.update_period(
            school["admin_principal"], period.id, GradingPeriodUpdate(status=PeriodStatus.CLOSED), NOW
        )
        return period.id

    @pytest.mark.asyncio
    async def test_admin_reopens_closed_period(self, db, service, school):
        period_id = await self._closed_period(service, school)

        reopened = await service.reopen(period_id, school["admin_principal"], "Grade correction", now=NOW)

        assert reopened.effective_status is PeriodStatus.OPEN
        assert reopened.reopen_reason == "Grade correction"
        assert reopened.reopened_by == school["admin_id"]
        assert await _audit_actions(db, period_id) == ["CREATE", "CLOSE", "REOPEN"]

        audit = (
            await db.execute(select(AuditLog).where(AuditLog.action == "REOPEN"))
        ).scalar_one()
        assert audit.reason == "Grade correction"
        assert audit.before["effective_status"] == "CLOSED"
        assert audit.after["status"] == "OPEN"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.TEACHER, Role.REGISTRAR, Role.FINANCE])
    async def test_non_admin_leaves_period_untouched(self, db, service, school, make_principal, role):
        period_id = await self._closed_period(service, school)

        with pytest.raises(ForbiddenError):
            await service.reopen(period_id, make_principal("u1", TENANT_A, role), "please", now=NOW)

        stored = await _stored(db, period_id)
        assert stored.status == PeriodStatus.CLOSED.value
        assert stored.reopen_reason is None
        assert await _audit_actions(db, period_id) == ["CREATE", "CLOSE"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "", "   "])
    async def test_reason_required(self, service, school, reason):
        period_id = await self._closed_period(service, school)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.reopen(period_id, school["admin_principal"], reason, now=NOW)
        assert exc_info.value.reason == "REASON_REQUIRED"

    @pytest.mark.asyncio
    async def test_expired_period_needs_new_end(self, db, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)
        later = NOW + timedelta(days=30)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.reopen(period.id, school["admin_principal"], "Late submissions", now=later)
        assert exc_info.value.reason == "NEW_END_REQUIRED"

        new_end = later + timedelta(days=7)
        reopened = await service.reopen(
            period.id, school["admin_principal"], "Late submissions", new_end=new_end, now=later
        )

        assert reopened.effective_status is PeriodStatus.OPEN
        assert reopened.end_at == new_end

    @pytest.mark.asyncio
    async def test_open_period_cannot_be_reopened(self, service, school):
        period = await service.create_period(school["admin_principal"], _create(school), NOW)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.reopen(period.id, school["admin_principal"], "again", now=NOW)
        assert exc_info.value.reason == "ALREADY_OPEN"

    @pytest.mark.asyncio
    async def test_planned_period_cannot_be_reopened(self, service, school):
        period = await service.create_period(
            school["admin_principal"], _create(school, status=PeriodStatus.PLANNED), NOW
        )

        with pytest.raises(InvalidTransitionError):
            await service.reopen(period.id, school["admin_principal"], "early", now=NOW)

    @pytest.mark.asyncio
    async def test_reopen_refused_while_another_is_open(self, service, school):
        period_id = await self._closed_period(service, school)
        await service.create_period(school["admin_principal"], _create(school), NOW)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await service.reopen(period_id, school["admin_principal"], "correction", now=NOW)
        assert exc_info.value.reason == "PERIOD_ALREADY_OPEN"


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_and_active(self, service, school):
        await service.create_period(school["admin_principal"], _create(school), NOW)
        await service.create_period(
            school["admin_principal"],
            _create(school, period_number=2, status=PeriodStatus.PLANNED),
            NOW,
        )

        periods = await service.list_periods(school["teacher_principal"], school["year_id"], NOW)
        active = await service.get_active(school["teacher_principal"], school["year_id"], now=NOW)

        assert [p.period_number for p in periods] == [1, 2]
        assert active.period_number == 1
        assert await service.list_periods(school["other_admin_principal"], now=NOW) == []
