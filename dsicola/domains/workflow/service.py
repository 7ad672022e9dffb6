# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Workflow service applying approval transitions.

Every transition is one transaction:
1. load the subject through the caller's tenant scope, locking the row
2. validate against the transition table and the kind's strategy
3. conditional UPDATE guarded by the observed status
4. append one workflow log row
5. commit

Audit and notification are emitted after the commit and never undo it.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.exceptions import InvalidTransitionError, NotFoundError, PreconditionFailedError
from dsicola.domains.auth.principal import Principal
from dsicola.domains.tenancy.scope import build_scope_filter
from dsicola.domains.workflow.state_machine import ACTION_TARGETS, Transition, resolve_transition
from dsicola.domains.workflow.strategies import SubjectStrategy, get_strategy
from dsicola.infrastructure.audit.sink import AuditEntry, AuditSink, emit_best_effort
from dsicola.infrastructure.database.models.academic import WorkflowLog
from dsicola.infrastructure.database.models.base import new_uuid
from dsicola.infrastructure.database.models.tenant import User, UserRoleAssignment
from dsicola.infrastructure.notifications.sink import (
    NotificationRequest,
    NotificationSink,
    dispatch_best_effort,
)
from dsicola.models.common import Role, SubjectKind, WorkflowAction, WorkflowStatus
from dsicola.utils.datetime import utc_now

logger = logging.getLogger(__name__)

APPROVER_ROLES = (Role.ADMIN.value, Role.REGISTRAR.value)


@dataclass
class TransitionResult:
    """Outcome of an applied transition.

    Attributes:
        kind: Subject kind.
        subject_id: Subject identifier.
        previous_status: Status before the change.
        new_status: Status after the change.
        action: Action recorded in the log.
        log_id: Identifier of the workflow log row.
        notified: Number of users notified.
    """

    kind: SubjectKind
    subject_id: str
    previous_status: WorkflowStatus
    new_status: WorkflowStatus
    action: WorkflowAction
    log_id: str
    notified: int = 0


class WorkflowService:
    """Drives the shared approval workflow.

    Attributes:
        _db: Async database session.
        _audit: Optional audit sink.
        _notifications: Optional notification sink.
    """

    def __init__(
        self,
        db: AsyncSession,
        audit_sink: AuditSink | None = None,
        notification_sink: NotificationSink | None = None,
    ) -> None:
        self._db = db
        self._audit = audit_sink
        self._notifications = notification_sink

    @staticmethod
    def target_for_action(action: WorkflowAction | str) -> WorkflowStatus:
        """Map an action name to the status it leads to."""
        return ACTION_TARGETS[WorkflowAction(action)]

    async def _load_subject(
        self,
        strategy: SubjectStrategy,
        subject_id: str,
        principal: Principal,
        for_update: bool = False,
    ) -> Any:
        model = strategy.model
        scope = build_scope_filter(principal)
        stmt = select(model).where(model.id == subject_id, scope.clause(model.tenant_id))
        if for_update:
            stmt = stmt.with_for_update()

        result = await self._db.execute(stmt)
        subject = result.scalar_one_or_none()
        if subject is None:
            raise NotFoundError(
                f"{strategy.label} not found or does not belong to your institution.",
            )
        return subject

    async def transition(
        self,
        kind: SubjectKind | str,
        subject_id: str,
        target: WorkflowStatus | str,
        actor: Principal,
        reason: str | None = None,
    ) -> TransitionResult:
        """Apply a status change.

        Args:
            kind: Subject kind.
            subject_id: Subject identifier.
            target: Requested status.
            actor: Caller performing the change.
            reason: Justification, mandatory for REJECT.

        Returns:
            TransitionResult describing the applied change.

        Raises:
            NotFoundError: Subject missing or outside the caller's tenant.
            InvalidTransitionError: Pair not in the table, or the subject
                changed concurrently.
            ForbiddenError: Caller lacks a permitted role.
            PreconditionFailedError: Reason missing or kind rules unmet.
        """
        strategy = get_strategy(kind)
        model = strategy.model

        try:
            subject = await self._load_subject(strategy, subject_id, actor, for_update=True)
            current = WorkflowStatus(subject.status)
            transition = resolve_transition(current, target, actor, reason)

            violations = await strategy.preconditions(self._db, subject, transition, actor)
            if violations:
                logger.info(
                    "Transition refused by preconditions: kind=%s id=%s action=%s violations=%d",
                    strategy.kind.value,
                    subject_id,
                    transition.action.value,
                    len(violations),
                )
                raise PreconditionFailedError(
                    f"Cannot {transition.action.value.lower()} this {strategy.label.lower()}.",
                    violations=violations,
                )

            now = utc_now()
            values = {"status": transition.target.value}
            values.update(strategy.extra_updates(subject, transition, actor, now))

            tenant_id = subject.tenant_id
            author_id = strategy.author_id(subject)

            result = await self._db.execute(
                update(model)
                .where(model.id == subject_id, model.status == current.value)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            if result.rowcount == 0:
                logger.warning(
                    "Concurrent workflow change detected: kind=%s id=%s expected=%s",
                    strategy.kind.value,
                    subject_id,
                    current.value,
                )
                raise InvalidTransitionError(
                    "The item was changed by another user. Reload and try again.",
                    current_status=current.value,
                    reason="CONCURRENT_MODIFICATION",
                )

            log_id = new_uuid()
            log_reason = reason.strip() if reason and reason.strip() else None
            self._db.add(
                WorkflowLog(
                    id=log_id,
                    tenant_id=tenant_id,
                    subject_kind=strategy.kind.value,
                    subject_id=subject_id,
                    previous_status=current.value,
                    new_status=transition.target.value,
                    action=transition.action.value,
                    actor_id=actor.user_id,
                    reason=log_reason,
                    created_at=now,
                )
            )
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

        logger.info(
            "Workflow transition applied: kind=%s id=%s %s -> %s by %s",
            strategy.kind.value,
            subject_id,
            current.value,
            transition.target.value,
            actor.user_id,
        )

        outcome = TransitionResult(
            kind=strategy.kind,
            subject_id=subject_id,
            previous_status=current,
            new_status=transition.target,
            action=transition.action,
            log_id=log_id,
        )

        await emit_best_effort(
            self._audit,
            AuditEntry(
                module="WORKFLOW",
                action=transition.action.value,
                entity=strategy.kind.value,
                entity_id=subject_id,
                tenant_id=tenant_id,
                actor_id=actor.user_id,
                before={"status": current.value},
                after={"status": transition.target.value},
                reason=log_reason,
            ),
        )
        outcome.notified = await self._notify(
            strategy, transition, subject_id, tenant_id, author_id, actor, log_reason
        )
        return outcome

    async def _notify(
        self,
        strategy: SubjectStrategy,
        transition: Transition,
        subject_id: str,
        tenant_id: str,
        author_id: str | None,
        actor: Principal,
        reason: str | None,
    ) -> int:
        """Decide whom to notify and hand the decision to the sink.

        SUBMIT notifies the tenant's approvers; APPROVE and REJECT notify the
        subject's author. Other actions notify nobody.
        """
        if self._notifications is None:
            return 0

        if transition.action is WorkflowAction.SUBMIT:
            recipients = await self.approver_ids(tenant_id, exclude=actor.user_id)
        elif transition.action in (WorkflowAction.APPROVE, WorkflowAction.REJECT):
            recipients = [author_id] if author_id and author_id != actor.user_id else []
        else:
            return 0

        return await dispatch_best_effort(
            self._notifications,
            NotificationRequest(
                recipient_ids=recipients,
                template_key=f"workflow.{transition.action.value.lower()}",
                tenant_id=tenant_id,
                context={
                    "kind": strategy.kind.value,
                    "subject_id": subject_id,
                    "status": transition.target.value,
                    "actor_id": actor.user_id,
                    "reason": reason,
                },
            ),
        )

    async def approver_ids(self, tenant_id: str, exclude: str | None = None) -> list[str]:
        """Users of the tenant holding an approver role."""
        stmt = (
            select(User.id)
            .join(UserRoleAssignment, UserRoleAssignment.user_id == User.id)
            .where(
                User.tenant_id == tenant_id,
                User.is_active.is_(True),
                UserRoleAssignment.role.in_(APPROVER_ROLES),
            )
            .distinct()
        )
        if exclude:
            stmt = stmt.where(User.id != exclude)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def history(
        self,
        kind: SubjectKind | str,
        subject_id: str,
        principal: Principal,
    ) -> list[WorkflowLog]:
        """Return the subject's workflow log, newest first.

        Raises:
            NotFoundError: Subject missing or outside the caller's tenant.
        """
        strategy = get_strategy(kind)
        await self._load_subject(strategy, subject_id, principal)

        scope = build_scope_filter(principal)
        result = await self._db.execute(
            select(WorkflowLog)
            .where(
                WorkflowLog.subject_kind == strategy.kind.value,
                WorkflowLog.subject_id == subject_id,
                scope.clause(WorkflowLog.tenant_id),
            )
            .order_by(WorkflowLog.created_at.desc())
        )
        return list(result.scalars().all())
