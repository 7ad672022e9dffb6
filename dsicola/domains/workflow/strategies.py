# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-kind workflow rules.

Each strategy supplies what differs between subject kinds: the ORM model,
preconditions checked before a transition, and extra columns written with
the status change. The transition table itself is shared.
"""

import logging
from abc import ABC
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.exceptions import DsicolaError
from dsicola.domains.auth.principal import Principal
from dsicola.domains.workflow.state_machine import Transition
from dsicola.infrastructure.database.models.academic import (
    Assessment,
    CalendarEvent,
    Discipline,
    LessonUnit,
    TeachingPlan,
)
from dsicola.models.common import PlanStage, SubjectKind, WorkflowAction, WorkflowStatus

logger = logging.getLogger(__name__)

PLAN_STAGE_BY_STATUS: dict[WorkflowStatus, PlanStage] = {
    WorkflowStatus.DRAFT: PlanStage.DRAFT,
    WorkflowStatus.SUBMITTED: PlanStage.IN_REVIEW,
    WorkflowStatus.APPROVED: PlanStage.APPROVED,
    WorkflowStatus.REJECTED: PlanStage.DRAFT,
    WorkflowStatus.LOCKED: PlanStage.CLOSED,
}

NARRATIVE_FIELDS: tuple[tuple[str, str], ...] = (
    ("syllabus", "Syllabus is empty."),
    ("objectives", "Objectives are empty."),
    ("methodology", "Methodology is empty."),
    ("assessment_criteria", "Assessment criteria are empty."),
)


class UnknownSubjectKindError(DsicolaError):
    """Raised for a kind that has no workflow strategy."""

    default_reason = "UNKNOWN_SUBJECT_KIND"


@dataclass(frozen=True)
class UnitSnapshot:
    title: str | None
    hours: int | None


def check_plan_content(
    plan: Any,
    units: Sequence[UnitSnapshot],
    workload_hours: int,
    duplicate_plan_id: str | None = None,
) -> list[str]:
    """Collect every reason a teaching plan cannot be approved.

    Hours must match the discipline workload exactly. The message states
    the excess or the deficit.

    Args:
        plan: Object exposing the narrative fields.
        units: Lesson units of the plan.
        workload_hours: Hours the discipline requires.
        duplicate_plan_id: Another APPROVED plan in the same context, if any.

    Returns:
        Violation messages in evaluation order; empty when approvable.
    """
    violations: list[str] = []

    for field_name, message in NARRATIVE_FIELDS:
        value = getattr(plan, field_name, None)
        if not value or not str(value).strip():
            violations.append(message)

    if not units:
        violations.append("No lesson units registered. Add at least one unit before approval.")

    planned = sum(unit.hours or 0 for unit in units)
    difference = workload_hours - planned
    if difference < 0:
        violations.append(
            f"Workload exceeded. Planned: {planned}h, required: {workload_hours}h. "
            f"Excess: {-difference}h. Planned hours must equal the required workload exactly."
        )
    elif difference > 0:
        violations.append(
            f"Workload incomplete. Planned: {planned}h, required: {workload_hours}h. "
            f"Missing: {difference}h. Planned hours must equal the required workload exactly."
        )

    if duplicate_plan_id:
        violations.append(
            "An APPROVED teaching plan already exists for this discipline in the same context "
            f"(academic year, course/class, semester, class group). Duplicate plan: {duplicate_plan_id}"
        )

    invalid_hours = sum(1 for unit in units if not unit.hours or unit.hours <= 0)
    if invalid_hours:
        violations.append(
            f"{invalid_hours} lesson unit(s) have zero or negative hours. "
            "Every unit must have positive hours."
        )

    untitled = sum(1 for unit in units if not unit.title or not unit.title.strip())
    if untitled:
        violations.append(
            f"{untitled} lesson unit(s) have no title. Every unit must have a descriptive title."
        )

    return violations


class SubjectStrategy(ABC):
    """Rules specific to one workflow subject kind."""

    kind: SubjectKind
    model: Any
    label: str

    async def preconditions(
        self,
        db: AsyncSession,
        subject: Any,
        transition: Transition,
        principal: Principal,
    ) -> list[str]:
        """Return violations blocking the transition. Empty means allowed."""
        return []

    def extra_updates(
        self,
        subject: Any,
        transition: Transition,
        principal: Principal,
        now: datetime,
    ) -> dict[str, Any]:
        """Columns written together with the new status."""
        return {}

    def author_id(self, subject: Any) -> str | None:
        return getattr(subject, "created_by", None)


class TeachingPlanStrategy(SubjectStrategy):
    kind = SubjectKind.TEACHING_PLAN
    model = TeachingPlan
    label = "Teaching plan"

    async def preconditions(
        self,
        db: AsyncSession,
        subject: TeachingPlan,
        transition: Transition,
        principal: Principal,
    ) -> list[str]:
        if transition.action is WorkflowAction.SUBMIT:
            return await self._submit_preconditions(db, subject)
        if transition.action is WorkflowAction.APPROVE:
            return await self._approval_preconditions(db, subject)
        return []

    async def _submit_preconditions(self, db: AsyncSession, plan: TeachingPlan) -> list[str]:
        result = await db.execute(
            select(CalendarEvent.id)
            .where(
                CalendarEvent.tenant_id == plan.tenant_id,
                CalendarEvent.status == WorkflowStatus.APPROVED.value,
            )
            .limit(1)
        )
        if result.scalar_one_or_none() is None:
            return [
                "An APPROVED academic calendar is required before submitting a teaching plan."
            ]
        return []

    async def _approval_preconditions(self, db: AsyncSession, plan: TeachingPlan) -> list[str]:
        units_result = await db.execute(
            select(LessonUnit.title, LessonUnit.hours)
            .where(LessonUnit.plan_id == plan.id)
            .order_by(LessonUnit.position)
        )
        units = [UnitSnapshot(title=row.title, hours=row.hours) for row in units_result]

        workload_result = await db.execute(
            select(Discipline.workload_hours).where(
                Discipline.id == plan.discipline_id,
                Discipline.tenant_id == plan.tenant_id,
            )
        )
        workload_hours = workload_result.scalar_one_or_none()
        if workload_hours is None:
            return ["Discipline not found for this institution. The plan cannot be approved."]

        duplicate_id = await self._find_duplicate(db, plan)
        return check_plan_content(plan, units, workload_hours, duplicate_id)

    async def _find_duplicate(self, db: AsyncSession, plan: TeachingPlan) -> str | None:
        """Find another APPROVED plan for the same discipline, year and cohort.

        Cohort columns only narrow the match when set on the plan itself.
        """
        stmt = select(TeachingPlan.id).where(
            TeachingPlan.tenant_id == plan.tenant_id,
            TeachingPlan.id != plan.id,
            TeachingPlan.discipline_id == plan.discipline_id,
            TeachingPlan.academic_year_id == plan.academic_year_id,
            TeachingPlan.status == WorkflowStatus.APPROVED.value,
        )
        for column in ("course_id", "class_level_id", "semester", "class_group_id"):
            value = getattr(plan, column)
            if value is not None:
                stmt = stmt.where(getattr(TeachingPlan, column) == value)

        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    def extra_updates(
        self,
        subject: TeachingPlan,
        transition: Transition,
        principal: Principal,
        now: datetime,
    ) -> dict[str, Any]:
        updates: dict[str, Any] = {"stage": PLAN_STAGE_BY_STATUS[transition.target].value}
        if transition.action is WorkflowAction.LOCK:
            updates.update(locked_by=principal.user_id, locked_at=now)
        elif transition.action is WorkflowAction.UNLOCK:
            updates.update(locked_by=None, locked_at=None)
        return updates

    def author_id(self, subject: TeachingPlan) -> str | None:
        return subject.created_by or subject.teacher_id


class CalendarEventStrategy(SubjectStrategy):
    kind = SubjectKind.CALENDAR_EVENT
    model = CalendarEvent
    label = "Calendar event"


class AssessmentStrategy(SubjectStrategy):
    kind = SubjectKind.ASSESSMENT
    model = Assessment
    label = "Assessment"

    def extra_updates(
        self,
        subject: Assessment,
        transition: Transition,
        principal: Principal,
        now: datetime,
    ) -> dict[str, Any]:
        if transition.action is WorkflowAction.APPROVE:
            return {"closed": True, "closed_by": principal.user_id, "closed_at": now}
        return {}


STRATEGIES: dict[SubjectKind, SubjectStrategy] = {
    strategy.kind: strategy
    for strategy in (TeachingPlanStrategy(), CalendarEventStrategy(), AssessmentStrategy())
}


def get_strategy(kind: SubjectKind | str) -> SubjectStrategy:
    """Return the strategy for a subject kind.

    Raises:
        UnknownSubjectKindError: The kind has no workflow.
    """
    try:
        return STRATEGIES[SubjectKind(kind)]
    except ValueError:
        raise UnknownSubjectKindError(f"Unknown workflow subject kind: {kind}")
