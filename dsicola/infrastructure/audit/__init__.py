# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit trail infrastructure."""

from dsicola.infrastructure.audit.sink import (
    AuditEntry,
    AuditSink,
    AuditSinkError,
    DatabaseAuditSink,
    emit_best_effort,
)

__all__ = [
    "AuditEntry",
    "AuditSink",
    "AuditSinkError",
    "DatabaseAuditSink",
    "emit_best_effort",
]
