# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Financial standing and blocking policy evaluation.

Everything here is pure. The service loads rows and delegates the decision
to evaluate_block so the rules are testable without a database.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from dsicola.models.common import SETTLED_CHARGE_STATUSES, BlockedOperation


@dataclass(frozen=True)
class FinancialStanding:
    """Snapshot of a student's overdue charges. Never stored.

    Attributes:
        overdue_count: Number of unpaid charges past their due date.
        total_due: Principal plus penalty plus interest of those charges.
        oldest_overdue_days: Days since the oldest overdue due date.
    """

    overdue_count: int = 0
    total_due: Decimal = Decimal("0")
    oldest_overdue_days: int = 0

    @property
    def irregular(self) -> bool:
        return self.overdue_count > 0

    @property
    def regular(self) -> bool:
        return self.overdue_count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "irregular": self.irregular,
            "overdue_count": self.overdue_count,
            "total_due": str(self.total_due),
            "oldest_overdue_days": self.oldest_overdue_days,
        }


def compute_standing(charges: Iterable[Any], today: date) -> FinancialStanding:
    """Compute the financial standing from charge rows.

    A charge is overdue when it is neither PAID nor CANCELLED and its due
    date is strictly before today. Comparison is by calendar date.

    Args:
        charges: Objects exposing status, due_date, amount, penalty_amount
            and interest_amount.
        today: Reference date.
    """
    count = 0
    total = Decimal("0")
    oldest = 0

    for charge in charges:
        if charge.status in SETTLED_CHARGE_STATUSES:
            continue
        due = charge.due_date
        if hasattr(due, "date"):
            due = due.date()
        if due >= today:
            continue

        count += 1
        total += Decimal(charge.amount or 0)
        total += Decimal(charge.penalty_amount or 0)
        total += Decimal(charge.interest_amount or 0)
        oldest = max(oldest, (today - due).days)

    return FinancialStanding(overdue_count=count, total_due=total, oldest_overdue_days=oldest)


@dataclass(frozen=True)
class BlockingPolicy:
    """Institution blocking configuration with defaults for a missing row.

    By default nothing is blocked and class and assessment participation
    are allowed regardless of financial standing.
    """

    block_enrollment: bool = False
    block_documents: bool = False
    block_certificates: bool = False
    allow_classes_when_irregular: bool = True
    allow_assessments_when_irregular: bool = True
    enrollment_message: str | None = None
    documents_message: str | None = None
    certificates_message: str | None = None

    @classmethod
    def from_row(cls, row: Any | None) -> "BlockingPolicy":
        if row is None:
            return cls()

        def flag(name: str, default: bool) -> bool:
            value = getattr(row, name, None)
            return default if value is None else bool(value)

        return cls(
            block_enrollment=flag("block_enrollment", False),
            block_documents=flag("block_documents", False),
            block_certificates=flag("block_certificates", False),
            allow_classes_when_irregular=flag("allow_classes_when_irregular", True),
            allow_assessments_when_irregular=flag("allow_assessments_when_irregular", True),
            enrollment_message=row.enrollment_message or None,
            documents_message=row.documents_message or None,
            certificates_message=row.certificates_message or None,
        )

    def custom_message(self, operation: BlockedOperation) -> str | None:
        return {
            BlockedOperation.ENROLLMENT: self.enrollment_message,
            BlockedOperation.DOCUMENTS: self.documents_message,
            BlockedOperation.CERTIFICATES: self.certificates_message,
        }.get(operation)

    def restricts(self, operation: BlockedOperation) -> bool:
        """Whether an irregular standing blocks the operation under this policy."""
        if operation is BlockedOperation.ENROLLMENT:
            return self.block_enrollment
        if operation is BlockedOperation.DOCUMENTS:
            return self.block_documents
        if operation is BlockedOperation.CERTIFICATES:
            return self.block_certificates
        if operation is BlockedOperation.CLASS_PARTICIPATION:
            return not self.allow_classes_when_irregular
        return not self.allow_assessments_when_irregular


_BLOCK_HEADLINES: dict[BlockedOperation, str] = {
    BlockedOperation.ENROLLMENT: "Enrollment blocked due to irregular financial standing.",
    BlockedOperation.DOCUMENTS: "Document issuance blocked due to irregular financial standing.",
    BlockedOperation.CERTIFICATES: (
        "Certificate issuance blocked. Academic and financial standing must both be regular."
    ),
    BlockedOperation.CLASS_PARTICIPATION: (
        "Class participation blocked due to irregular financial standing."
    ),
    BlockedOperation.ASSESSMENT_PARTICIPATION: (
        "Assessment participation blocked due to irregular financial standing."
    ),
}


def format_amount(amount: Decimal, currency: str) -> str:
    return f"{amount:.2f} {currency}"


def evaluate_block(
    operation: BlockedOperation,
    policy: BlockingPolicy,
    standing: FinancialStanding,
    currency: str,
) -> str | None:
    """Decide whether the operation is blocked.

    Returns:
        The student-facing reason when blocked, otherwise None.
    """
    if standing.regular or not policy.restricts(operation):
        return None

    custom = policy.custom_message(operation)
    if custom:
        return custom

    return (
        f"{_BLOCK_HEADLINES[operation]} There are {standing.overdue_count} overdue charge(s) "
        f"totalling {format_amount(standing.total_due, currency)}."
    )
