# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student enrollment snapshot and course registration models."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dsicola.infrastructure.database.models.base import (
    Base,
    TenantOwnedMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from dsicola.models.common import EnrollmentStatus, RegistrationStatus


class AnnualEnrollment(Base, UUIDPrimaryKeyMixin, TenantOwnedMixin, TimestampMixin):
    """A student's enrollment for one academic year.

    HIGHER_ED tenants place students on a course_id, SECONDARY tenants on a
    class_level_id. An active row is expected to carry exactly one of them.
    """

    __tablename__ = "annual_enrollments"

    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    academic_year_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("academic_years.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value
    )
    course_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    class_level_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    registrations: Mapped[list["CourseRegistration"]] = relationship(
        back_populates="enrollment",
        cascade="all, delete-orphan",
        lazy="raise",
    )


class CourseRegistration(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Registration of a student in one discipline under an enrollment."""

    __tablename__ = "course_registrations"

    enrollment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("annual_enrollments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    discipline_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("disciplines.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RegistrationStatus.ENROLLED.value
    )

    enrollment: Mapped[AnnualEnrollment] = relationship(
        back_populates="registrations", lazy="raise"
    )
