# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification dispatch infrastructure."""

from dsicola.infrastructure.notifications.sink import (
    InAppNotificationSink,
    NotificationRequest,
    NotificationSink,
    NotificationSinkError,
    dispatch_best_effort,
)

__all__ = [
    "InAppNotificationSink",
    "NotificationRequest",
    "NotificationSink",
    "NotificationSinkError",
    "dispatch_best_effort",
]
