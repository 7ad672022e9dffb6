# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Approval state machine shared by every workflow subject.

The table below is the single source of truth for which status changes are
possible and who may perform them. Kind-specific rules live in
dsicola.domains.workflow.strategies.
"""

from dataclasses import dataclass

from dsicola.core.exceptions import ForbiddenError, InvalidTransitionError, PreconditionFailedError
from dsicola.domains.auth.principal import Principal
from dsicola.models.common import Role, WorkflowAction, WorkflowStatus

AUTHORS = frozenset({Role.TEACHER, Role.REGISTRAR, Role.ADMIN})
REVIEWERS = frozenset({Role.ADMIN, Role.SUPER_ADMIN, Role.REGISTRAR})
ADMINS = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


@dataclass(frozen=True)
class Transition:
    """One permitted status change.

    Attributes:
        source: Status the subject must be in.
        target: Status after the change.
        action: Name recorded in the workflow log.
        roles: Roles allowed to perform it.
        requires_reason: Whether a non-blank reason is mandatory.
    """

    source: WorkflowStatus
    target: WorkflowStatus
    action: WorkflowAction
    roles: frozenset[Role]
    requires_reason: bool = False


TRANSITIONS: tuple[Transition, ...] = (
    Transition(WorkflowStatus.DRAFT, WorkflowStatus.SUBMITTED, WorkflowAction.SUBMIT, AUTHORS),
    Transition(WorkflowStatus.SUBMITTED, WorkflowStatus.APPROVED, WorkflowAction.APPROVE, REVIEWERS),
    Transition(
        WorkflowStatus.SUBMITTED,
        WorkflowStatus.REJECTED,
        WorkflowAction.REJECT,
        REVIEWERS,
        requires_reason=True,
    ),
    Transition(WorkflowStatus.SUBMITTED, WorkflowStatus.DRAFT, WorkflowAction.REOPEN, ADMINS),
    Transition(WorkflowStatus.REJECTED, WorkflowStatus.DRAFT, WorkflowAction.REVISE, AUTHORS),
    Transition(WorkflowStatus.APPROVED, WorkflowStatus.LOCKED, WorkflowAction.LOCK, ADMINS),
    Transition(WorkflowStatus.LOCKED, WorkflowStatus.APPROVED, WorkflowAction.UNLOCK, ADMINS),
)

_BY_PAIR: dict[tuple[WorkflowStatus, WorkflowStatus], Transition] = {
    (t.source, t.target): t for t in TRANSITIONS
}

ACTION_TARGETS: dict[WorkflowAction, WorkflowStatus] = {t.action: t.target for t in TRANSITIONS}


def find_transition(source: WorkflowStatus | str, target: WorkflowStatus | str) -> Transition | None:
    """Look up the table entry for a status pair."""
    try:
        return _BY_PAIR.get((WorkflowStatus(source), WorkflowStatus(target)))
    except ValueError:
        return None


def allowed_targets(source: WorkflowStatus | str) -> list[WorkflowStatus]:
    return [t.target for t in TRANSITIONS if t.source == source]


def resolve_transition(
    current: WorkflowStatus | str,
    target: WorkflowStatus | str,
    principal: Principal,
    reason: str | None = None,
) -> Transition:
    """Validate a requested status change against the table.

    Args:
        current: Status the subject is in.
        target: Requested status.
        principal: Caller.
        reason: Justification supplied with the request.

    Returns:
        The matching Transition.

    Raises:
        InvalidTransitionError: The pair is not in the table.
        ForbiddenError: The caller has none of the listed roles.
        PreconditionFailedError: A reason is required but blank.
    """
    current_value = current.value if isinstance(current, WorkflowStatus) else str(current)
    target_value = target.value if isinstance(target, WorkflowStatus) else str(target)
    transition = find_transition(current, target)
    if transition is None:
        raise InvalidTransitionError(
            f"Cannot move an item with status {current_value} to {target_value}.",
            current_status=current_value,
        )

    if not principal.has_any_of(transition.roles):
        raise ForbiddenError(
            f"You are not allowed to {transition.action.value.lower()} an item with status "
            f"{current_value}.",
            details={"current_status": current_value},
        )

    if transition.requires_reason and not (reason and reason.strip()):
        raise PreconditionFailedError(
            "A reason is required to reject an item.",
            reason="REASON_REQUIRED",
        )

    return transition
