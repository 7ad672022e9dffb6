# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Charge and institution blocking policy models."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dsicola.infrastructure.database.models.base import (
    Base,
    TenantOwnedMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from dsicola.models.common import ChargeStatus


class Charge(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """Tuition charge billed to a student."""

    __tablename__ = "charges"

    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    penalty_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    interest_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChargeStatus.PENDING.value
    )


class InstitutionPolicy(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Per-institution financial blocking configuration.

    A missing row means nothing is blocked and participation is allowed.
    """

    __tablename__ = "institution_policies"

    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    block_enrollment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    block_documents: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    block_certificates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_classes_when_irregular: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    allow_assessments_when_irregular: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    enrollment_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    documents_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    certificates_message: Mapped[str | None] = mapped_column(Text, nullable=True)
