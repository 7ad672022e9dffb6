# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for effective grading period status."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from dsicola.domains.grading import Term, effective_status, is_open, status_at, validate_period_designation
from dsicola.models.common import PeriodStatus, PeriodType

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
START = datetime(2026, 3, 1, tzinfo=timezone.utc)
END = datetime(2026, 3, 31, tzinfo=timezone.utc)


def _period(status: str, start: datetime = START, end: datetime = END) -> SimpleNamespace:
    return SimpleNamespace(status=status, start_at=start, end_at=end)


class TestEffectiveStatus:
    """Tests for effective_status."""

    def test_open_within_window(self):
        assert effective_status(_period("OPEN"), NOW) is PeriodStatus.OPEN
        assert is_open(_period("OPEN"), NOW)

    def test_open_past_end_is_expired(self):
        period = _period("OPEN", end=NOW - timedelta(seconds=1))
        assert effective_status(period, NOW) is PeriodStatus.EXPIRED
        assert not is_open(period, NOW)

    def test_open_before_start_is_planned(self):
        period = _period("OPEN", start=NOW + timedelta(days=1), end=NOW + timedelta(days=10))
        assert effective_status(period, NOW) is PeriodStatus.PLANNED

    def test_planned_within_window_stays_planned(self):
        assert effective_status(_period("PLANNED"), NOW) is PeriodStatus.PLANNED

    def test_planned_past_end_is_expired(self):
        period = _period("PLANNED", end=NOW - timedelta(days=1))
        assert effective_status(period, NOW) is PeriodStatus.EXPIRED

    @pytest.mark.parametrize("status", ["CLOSED", "CANCELLED"])
    def test_terminal_statuses_are_kept(self, status):
        assert effective_status(_period(status), NOW) is PeriodStatus(status)

    def test_window_is_inclusive(self):
        assert is_open(_period("OPEN", start=NOW, end=NOW), NOW)

    def test_naive_datetimes_are_utc(self):
        period = _period("OPEN", start=START.replace(tzinfo=None), end=END.replace(tzinfo=None))
        assert effective_status(period, NOW) is PeriodStatus.OPEN


class TestStatusAt:
    """Tests for the status a proposed update would produce."""

    def test_extending_expired_window_reads_open(self):
        assert status_at("OPEN", START, NOW + timedelta(days=30), NOW) is PeriodStatus.OPEN

    def test_closed_stays_closed_whatever_the_dates(self):
        assert status_at(PeriodStatus.CLOSED, START, NOW + timedelta(days=30), NOW) is PeriodStatus.CLOSED

    def test_matches_effective_status(self):
        period = _period("OPEN", end=NOW - timedelta(seconds=1))
        assert status_at(period.status, period.start_at, period.end_at, NOW) is effective_status(period, NOW)


class TestDesignation:
    @pytest.mark.parametrize(
        "period_type,number,valid",
        [
            ("SEMESTER", 1, True),
            ("SEMESTER", 2, True),
            ("SEMESTER", 3, False),
            ("TRIMESTER", 3, True),
            ("TRIMESTER", 0, False),
            ("QUARTER", 1, False),
        ],
    )
    def test_validate(self, period_type, number, valid):
        assert (validate_period_designation(period_type, number) == []) is valid

    def test_term_of_coerces(self):
        term = Term.of("year-1", "TRIMESTER", "2")
        assert term == Term("year-1", PeriodType.TRIMESTER, 2)
