# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading-window gate and grading period administration."""

from dsicola.domains.grading.service import (
    GradingWindowService,
    to_response,
    validate_period_designation,
)
from dsicola.domains.grading.window import (
    NO_PERIOD_REASON,
    SUBMISSION_REASONS,
    Term,
    effective_status,
    is_open,
    status_at,
)

__all__ = [
    "GradingWindowService",
    "NO_PERIOD_REASON",
    "SUBMISSION_REASONS",
    "Term",
    "effective_status",
    "is_open",
    "status_at",
    "to_response",
    "validate_period_designation",
]
