# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification sink.

The engine decides whether and whom to notify; delivery is the sink's
concern. The bundled InAppNotificationSink stores one notifications row per
recipient. Other transports (email, push) implement NotificationSink and
raise NotificationSinkError on failure.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.infrastructure.database.models.audit import Notification

logger = logging.getLogger(__name__)


class NotificationSinkError(Exception):
    """Raised when a notification could not be dispatched."""

    pass


@dataclass
class NotificationRequest:
    """A notification decision produced by the engine.

    Attributes:
        recipient_ids: Users to notify.
        template_key: Template identifying the message, e.g. workflow.submitted.
        tenant_id: Institution the notification belongs to.
        context: Values rendered into the template.
    """

    recipient_ids: list[str]
    template_key: str
    tenant_id: str | None = None
    context: dict[str, Any] = field(default_factory=dict)


class NotificationSink(ABC):
    """Destination for notification decisions."""

    @abstractmethod
    async def dispatch(self, request: NotificationRequest) -> int:
        """Deliver a notification to every recipient.

        Returns:
            Number of recipients handled.

        Raises:
            NotificationSinkError: If dispatch failed.
        """


class InAppNotificationSink(NotificationSink):
    """Writes in-app notification rows."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def dispatch(self, request: NotificationRequest) -> int:
        for recipient_id in request.recipient_ids:
            self._db.add(
                Notification(
                    tenant_id=request.tenant_id,
                    recipient_id=recipient_id,
                    template_key=request.template_key,
                    context=request.context,
                )
            )
        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise NotificationSinkError(
                f"Failed to store notification {request.template_key}"
            ) from e
        return len(request.recipient_ids)


async def dispatch_best_effort(
    sink: NotificationSink | None,
    request: NotificationRequest,
) -> int:
    """Dispatch a notification, discarding sink failures with a warning.

    Returns:
        Number of recipients handled, 0 when nothing was sent.
    """
    if sink is None or not request.recipient_ids:
        return 0
    try:
        return await sink.dispatch(request)
    except NotificationSinkError as e:
        logger.warning(
            "Notification discarded: template=%s recipients=%d error=%s",
            request.template_key,
            len(request.recipient_ids),
            e,
        )
        return 0
