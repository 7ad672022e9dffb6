# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Approval workflow for teaching plans, calendar events and assessments."""

from dsicola.domains.workflow.service import TransitionResult, WorkflowService
from dsicola.domains.workflow.state_machine import (
    ACTION_TARGETS,
    TRANSITIONS,
    Transition,
    allowed_targets,
    find_transition,
    resolve_transition,
)
from dsicola.domains.workflow.strategies import (
    PLAN_STAGE_BY_STATUS,
    SubjectStrategy,
    UnitSnapshot,
    UnknownSubjectKindError,
    check_plan_content,
    get_strategy,
)

__all__ = [
    "ACTION_TARGETS",
    "PLAN_STAGE_BY_STATUS",
    "TRANSITIONS",
    "SubjectStrategy",
    "Transition",
    "TransitionResult",
    "UnitSnapshot",
    "UnknownSubjectKindError",
    "WorkflowService",
    "allowed_targets",
    "check_plan_content",
    "find_transition",
    "get_strategy",
    "resolve_transition",
]
