# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Clock helpers for gate decisions.

Grading windows and financial standing are computed at decision time, never
stored, so every gate reads the clock through these helpers. Columns are
stored in UTC; SQLite hands them back naive and ensure_utc restores the zone
before comparing against a window boundary.
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Calendar date used for due-date comparisons."""
    return utc_now().date()


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalise a window boundary to aware UTC.

    Args:
        dt: Boundary read from the database or a request, or None.

    Returns:
        The same instant in UTC. Naive values are taken to be UTC already.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
