# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared enumerations used across domains, ORM models and API schemas.

Values are stored as plain strings in the database, so every enum here
subclasses str and can be compared directly against column values.
"""

from enum import Enum


class Role(str, Enum):
    """Platform roles carried by a Principal.

    SUPER_ADMIN and BACK_OFFICE are platform staff and may use the central
    portal. Every other role belongs to exactly one institution.
    """

    SUPER_ADMIN = "SUPER_ADMIN"
    BACK_OFFICE = "BACK_OFFICE"
    ADMIN = "ADMIN"
    REGISTRAR = "REGISTRAR"
    TEACHER = "TEACHER"
    FINANCE = "FINANCE"
    STUDENT = "STUDENT"


PLATFORM_ROLES = frozenset({Role.SUPER_ADMIN, Role.BACK_OFFICE})
ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


class AcademicVariant(str, Enum):
    """Institution type deciding the mandatory enrollment discriminator."""

    SECONDARY = "SECONDARY"
    HIGHER_ED = "HIGHER_ED"


class SubjectKind(str, Enum):
    """Entities that share the approval workflow."""

    TEACHING_PLAN = "teaching_plan"
    CALENDAR_EVENT = "calendar_event"
    ASSESSMENT = "assessment"


class WorkflowStatus(str, Enum):
    """Approval status shared by every workflow subject."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    LOCKED = "LOCKED"


class WorkflowAction(str, Enum):
    """Named actions recorded in the workflow log."""

    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REOPEN = "REOPEN"
    REVISE = "REVISE"
    LOCK = "LOCK"
    UNLOCK = "UNLOCK"


class PlanStage(str, Enum):
    """Secondary lifecycle stage of a teaching plan."""

    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    CLOSED = "CLOSED"


class EnrollmentStatus(str, Enum):
    """Annual enrollment snapshot status."""

    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class RegistrationStatus(str, Enum):
    """Per-discipline course registration status."""

    ENROLLED = "ENROLLED"
    ATTENDING = "ATTENDING"
    COMPLETED = "COMPLETED"
    DROPPED = "DROPPED"


ACTIVE_REGISTRATION_STATUSES = frozenset(
    {RegistrationStatus.ENROLLED.value, RegistrationStatus.ATTENDING.value}
)


class ChargeStatus(str, Enum):
    """Tuition charge status."""

    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    OVERDUE = "OVERDUE"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


SETTLED_CHARGE_STATUSES = frozenset({ChargeStatus.PAID.value, ChargeStatus.CANCELLED.value})


class BlockedOperation(str, Enum):
    """Student operations the financial gate can refuse."""

    ENROLLMENT = "ENROLLMENT"
    DOCUMENTS = "DOCUMENTS"
    CERTIFICATES = "CERTIFICATES"
    CLASS_PARTICIPATION = "CLASS_PARTICIPATION"
    ASSESSMENT_PARTICIPATION = "ASSESSMENT_PARTICIPATION"


class PeriodType(str, Enum):
    """Division of the academic year used by grading periods."""

    SEMESTER = "SEMESTER"
    TRIMESTER = "TRIMESTER"


PERIOD_NUMBER_LIMITS = {PeriodType.SEMESTER: 2, PeriodType.TRIMESTER: 3}


class PeriodStatus(str, Enum):
    """Grading period status.

    EXPIRED is never stored. It is derived at decision time from an OPEN or
    PLANNED period whose end has passed.
    """

    PLANNED = "PLANNED"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
