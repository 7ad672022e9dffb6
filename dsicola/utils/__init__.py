# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cross-cutting helpers: request-scoped structured logging and the gate clock."""

from dsicola.utils.datetime import ensure_utc, utc_now, utc_today
from dsicola.utils.logging import bind_context, clear_context, setup_logging

__all__ = [
    "setup_logging",
    "bind_context",
    "clear_context",
    "utc_now",
    "utc_today",
    "ensure_utc",
]
