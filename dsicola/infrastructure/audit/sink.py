# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit sink for policy-relevant actions.

The engine emits audit entries after its primary commit. Emission is
best-effort: a failing sink raises AuditSinkError, which callers discard
through emit_best_effort so the primary operation is never rolled back.
Writes whose audit row must be atomic with the change (grading period
reopen) add AuditEntry.to_row() to their own transaction instead.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.infrastructure.database.models.audit import AuditLog

logger = logging.getLogger(__name__)


class AuditSinkError(Exception):
    """Raised when an audit entry cannot be persisted."""

    pass


@dataclass
class AuditEntry:
    """One auditable action.

    Attributes:
        module: Functional area, e.g. WORKFLOW or GRADING_PERIOD.
        action: What happened, e.g. APPROVE, REOPEN, BLOCK.
        entity: Kind of entity acted upon.
        entity_id: Identifier of the entity.
        tenant_id: Owning institution.
        actor_id: User who triggered the action.
        before: State before the change.
        after: State after the change.
        reason: Free-text justification, when one was given.
        extra: Additional context merged into the stored after-state.
    """

    module: str
    action: str
    entity: str
    entity_id: str | None = None
    tenant_id: str | None = None
    actor_id: str | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    reason: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_row(self) -> AuditLog:
        after = dict(self.after or {})
        after.update(self.extra)
        return AuditLog(
            tenant_id=self.tenant_id,
            actor_id=self.actor_id,
            module=self.module,
            action=self.action,
            entity=self.entity,
            entity_id=self.entity_id,
            before=self.before,
            after=after or None,
            reason=self.reason,
        )


class AuditSink(ABC):
    """Destination for audit entries."""

    @abstractmethod
    async def emit(self, entry: AuditEntry) -> None:
        """Persist one entry.

        Raises:
            AuditSinkError: If the entry could not be persisted.
        """


class DatabaseAuditSink(AuditSink):
    """Audit sink writing rows to the audit_logs table."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def emit(self, entry: AuditEntry) -> None:
        self._db.add(entry.to_row())
        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise AuditSinkError(f"Failed to write audit entry {entry.module}.{entry.action}") from e


async def emit_best_effort(sink: AuditSink | None, entry: AuditEntry) -> bool:
    """Emit an entry, discarding sink failures with a warning.

    Returns:
        True if the entry was written.
    """
    if sink is None:
        return False
    try:
        await sink.emit(entry)
    except AuditSinkError as e:
        logger.warning(
            "Audit entry discarded: module=%s action=%s entity_id=%s error=%s",
            entry.module,
            entry.action,
            entry.entity_id,
            e,
        )
        return False
    return True
