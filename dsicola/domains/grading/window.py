# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Effective grading period status.

Time-based expiry takes precedence over a stale stored status: an OPEN
period whose end has passed is EXPIRED even though nobody closed it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from dsicola.models.common import PeriodStatus, PeriodType
from dsicola.utils.datetime import ensure_utc

SUBMISSION_REASONS: dict[PeriodStatus, tuple[str, str]] = {
    PeriodStatus.CLOSED: ("PERIOD_CLOSED", "The grading period is closed."),
    PeriodStatus.EXPIRED: ("PERIOD_EXPIRED", "The grading period has ended."),
    PeriodStatus.PLANNED: ("PERIOD_NOT_STARTED", "The grading period has not started yet."),
    PeriodStatus.CANCELLED: ("PERIOD_CANCELLED", "The grading period was cancelled."),
}

NO_PERIOD_REASON = ("NO_PERIOD_CONFIGURED", "No grading period is configured for this term.")


@dataclass(frozen=True)
class Term:
    """Academic year plus period designation, e.g. 2nd semester of 2025/2026."""

    academic_year_id: str
    period_type: PeriodType
    period_number: int

    @classmethod
    def of(cls, academic_year_id: str, period_type: PeriodType | str, period_number: int) -> "Term":
        return cls(academic_year_id, PeriodType(period_type), int(period_number))


def effective_status(period: Any, now: datetime) -> PeriodStatus:
    """Compute the status of a period at a given instant.

    Args:
        period: Object exposing status, start_at and end_at.
        now: Reference instant.

    Returns:
        CLOSED and CANCELLED as stored; EXPIRED for an OPEN or PLANNED period
        past its end; PLANNED for a PLANNED period, or an OPEN one before its
        start; otherwise OPEN. The window is inclusive at both ends.
    """
    return status_at(period.status, period.start_at, period.end_at, now)


def status_at(
    status: PeriodStatus | str,
    start_at: datetime,
    end_at: datetime,
    now: datetime,
) -> PeriodStatus:
    """Effective status of a stored status and window, before it is saved."""
    status = PeriodStatus(status)
    if status in (PeriodStatus.CLOSED, PeriodStatus.CANCELLED):
        return status

    now = ensure_utc(now)
    if now > ensure_utc(end_at):
        return PeriodStatus.EXPIRED
    if status is PeriodStatus.PLANNED or now < ensure_utc(start_at):
        return PeriodStatus.PLANNED
    return PeriodStatus.OPEN


def is_open(period: Any, now: datetime) -> bool:
    return effective_status(period, now) is PeriodStatus.OPEN
