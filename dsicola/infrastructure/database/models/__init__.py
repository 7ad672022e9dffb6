# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models for the shared DSICOLA database.

Importing this package registers every table on Base.metadata.
"""

from dsicola.infrastructure.database.models.academic import (
    AcademicYear,
    Assessment,
    CalendarEvent,
    Discipline,
    LessonUnit,
    TeachingPlan,
    WorkflowLog,
)
from dsicola.infrastructure.database.models.audit import AuditLog, Notification
from dsicola.infrastructure.database.models.base import Base, new_uuid
from dsicola.infrastructure.database.models.enrollment import AnnualEnrollment, CourseRegistration
from dsicola.infrastructure.database.models.finance import Charge, InstitutionPolicy
from dsicola.infrastructure.database.models.grading import Grade, GradingPeriod
from dsicola.infrastructure.database.models.tenant import Tenant, User, UserRoleAssignment

__all__ = [
    "Base",
    "new_uuid",
    # Tenancy
    "Tenant",
    "User",
    "UserRoleAssignment",
    # Academic
    "AcademicYear",
    "Discipline",
    "TeachingPlan",
    "LessonUnit",
    "CalendarEvent",
    "Assessment",
    "WorkflowLog",
    # Enrollment
    "AnnualEnrollment",
    "CourseRegistration",
    # Finance
    "Charge",
    "InstitutionPolicy",
    # Grading
    "GradingPeriod",
    "Grade",
    # Audit
    "AuditLog",
    "Notification",
]
