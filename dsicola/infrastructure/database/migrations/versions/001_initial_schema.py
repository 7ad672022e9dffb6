# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial DSICOLA schema.

Revision ID: 001_initial
Revises: None
Create Date: 2025-03-01

Creates every table of the shared database based on the SQLAlchemy models
in dsicola/infrastructure/database/models/.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _tenant_id(table: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        "tenant_id",
        sa.String(36),
        sa.ForeignKey("tenants.id", ondelete="CASCADE", name=f"fk_{table}_tenant_id_tenants"),
        nullable=nullable,
        index=True,
    )


def _user_fk(table: str, column: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        column,
        sa.String(36),
        sa.ForeignKey("users.id", name=f"fk_{table}_{column}_users"),
        nullable=nullable,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables."""
    # ==========================================================================
    # Tenancy
    # ==========================================================================
    op.create_table(
        "tenants",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("subdomain", sa.String(63), nullable=False),
        sa.Column("academic_variant", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_tenants_subdomain", "tenants", ["subdomain"], unique=True)

    op.create_table(
        "users",
        _id(),
        _tenant_id("users", nullable=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "user_roles",
        _id(),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_user_roles_user_id_users"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "tenant_id",
            sa.String(36),
            sa.ForeignKey("tenants.id", ondelete="CASCADE", name="fk_user_roles_tenant_id_tenants"),
            nullable=True,
        ),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )

    # ==========================================================================
    # Academic structure and workflow subjects
    # ==========================================================================
    op.create_table(
        "academic_years",
        _id(),
        _tenant_id("academic_years"),
        sa.Column("label", sa.String(20), nullable=False),
        sa.Column("starts_on", sa.Date, nullable=True),
        sa.Column("ends_on", sa.Date, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "disciplines",
        _id(),
        _tenant_id("disciplines"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("workload_hours", sa.Integer, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "teaching_plans",
        _id(),
        _tenant_id("teaching_plans"),
        sa.Column(
            "discipline_id",
            sa.String(36),
            sa.ForeignKey("disciplines.id", name="fk_teaching_plans_discipline_id_disciplines"),
            nullable=False,
        ),
        _user_fk("teaching_plans", "teacher_id", nullable=False),
        sa.Column(
            "academic_year_id",
            sa.String(36),
            sa.ForeignKey("academic_years.id", name="fk_teaching_plans_academic_year_id_academic_years"),
            nullable=False,
        ),
        sa.Column("course_id", sa.String(36), nullable=True),
        sa.Column("class_level_id", sa.String(36), nullable=True),
        sa.Column("semester", sa.Integer, nullable=True),
        sa.Column("class_group_id", sa.String(36), nullable=True),
        sa.Column("syllabus", sa.Text, nullable=True),
        sa.Column("objectives", sa.Text, nullable=True),
        sa.Column("methodology", sa.Text, nullable=True),
        sa.Column("assessment_criteria", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("stage", sa.String(20), nullable=False),
        _user_fk("teaching_plans", "created_by"),
        _user_fk("teaching_plans", "locked_by"),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_teaching_plans_context",
        "teaching_plans",
        ["tenant_id", "discipline_id", "academic_year_id", "status"],
    )

    op.create_table(
        "lesson_units",
        _id(),
        sa.Column(
            "plan_id",
            sa.String(36),
            sa.ForeignKey("teaching_plans.id", ondelete="CASCADE", name="fk_lesson_units_plan_id_teaching_plans"),
            nullable=False,
            index=True,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("hours", sa.Integer, nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
    )

    op.create_table(
        "calendar_events",
        _id(),
        _tenant_id("calendar_events"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("starts_on", sa.Date, nullable=True),
        sa.Column("ends_on", sa.Date, nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        _user_fk("calendar_events", "created_by"),
        *_timestamps(),
    )

    op.create_table(
        "assessments",
        _id(),
        _tenant_id("assessments"),
        sa.Column(
            "plan_id",
            sa.String(36),
            sa.ForeignKey("teaching_plans.id", name="fk_assessments_plan_id_teaching_plans"),
            nullable=False,
            index=True,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("period_type", sa.String(20), nullable=False),
        sa.Column("period_number", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _user_fk("assessments", "created_by"),
        sa.Column("closed", sa.Boolean, nullable=False),
        _user_fk("assessments", "closed_by"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "workflow_logs",
        _id(),
        _tenant_id("workflow_logs"),
        sa.Column("subject_kind", sa.String(30), nullable=False),
        sa.Column("subject_id", sa.String(36), nullable=False),
        sa.Column("previous_status", sa.String(20), nullable=False),
        sa.Column("new_status", sa.String(20), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_workflow_logs_subject", "workflow_logs", ["subject_kind", "subject_id"])

    # ==========================================================================
    # Enrollment
    # ==========================================================================
    op.create_table(
        "annual_enrollments",
        _id(),
        _tenant_id("annual_enrollments"),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("users.id", name="fk_annual_enrollments_student_id_users"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "academic_year_id",
            sa.String(36),
            sa.ForeignKey("academic_years.id", name="fk_annual_enrollments_academic_year_id_academic_years"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("course_id", sa.String(36), nullable=True),
        sa.Column("class_level_id", sa.String(36), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "course_registrations",
        _id(),
        sa.Column(
            "enrollment_id",
            sa.String(36),
            sa.ForeignKey(
                "annual_enrollments.id",
                ondelete="CASCADE",
                name="fk_course_registrations_enrollment_id_annual_enrollments",
            ),
            nullable=False,
            index=True,
        ),
        _user_fk("course_registrations", "student_id", nullable=False),
        sa.Column(
            "discipline_id",
            sa.String(36),
            sa.ForeignKey("disciplines.id", name="fk_course_registrations_discipline_id_disciplines"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
    )

    # ==========================================================================
    # Finance
    # ==========================================================================
    op.create_table(
        "charges",
        _id(),
        _tenant_id("charges"),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("users.id", name="fk_charges_student_id_users"),
            nullable=False,
            index=True,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("penalty_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("interest_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.Date, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "institution_policies",
        _id(),
        sa.Column(
            "tenant_id",
            sa.String(36),
            sa.ForeignKey("tenants.id", ondelete="CASCADE", name="fk_institution_policies_tenant_id_tenants"),
            nullable=False,
            unique=True,
        ),
        sa.Column("block_enrollment", sa.Boolean, nullable=False),
        sa.Column("block_documents", sa.Boolean, nullable=False),
        sa.Column("block_certificates", sa.Boolean, nullable=False),
        sa.Column("allow_classes_when_irregular", sa.Boolean, nullable=False),
        sa.Column("allow_assessments_when_irregular", sa.Boolean, nullable=False),
        sa.Column("enrollment_message", sa.Text, nullable=True),
        sa.Column("documents_message", sa.Text, nullable=True),
        sa.Column("certificates_message", sa.Text, nullable=True),
        *_timestamps(),
    )

    # ==========================================================================
    # Grading
    # ==========================================================================
    op.create_table(
        "grading_periods",
        _id(),
        _tenant_id("grading_periods"),
        sa.Column(
            "academic_year_id",
            sa.String(36),
            sa.ForeignKey("academic_years.id", name="fk_grading_periods_academic_year_id_academic_years"),
            nullable=False,
        ),
        sa.Column("period_type", sa.String(20), nullable=False),
        sa.Column("period_number", sa.Integer, nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _user_fk("grading_periods", "created_by"),
        sa.Column("reopen_reason", sa.Text, nullable=True),
        _user_fk("grading_periods", "reopened_by"),
        sa.Column("reopened_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_grading_periods_term",
        "grading_periods",
        ["tenant_id", "academic_year_id", "period_type", "period_number"],
    )

    op.create_table(
        "grades",
        _id(),
        _tenant_id("grades"),
        sa.Column(
            "assessment_id",
            sa.String(36),
            sa.ForeignKey("assessments.id", name="fk_grades_assessment_id_assessments"),
            nullable=False,
            index=True,
        ),
        _user_fk("grades", "student_id", nullable=False),
        sa.Column("value", sa.Numeric(5, 2), nullable=False),
        _user_fk("grades", "recorded_by", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("assessment_id", "student_id", name="uq_grades_assessment_student"),
    )

    # ==========================================================================
    # Audit and notifications
    # ==========================================================================
    op.create_table(
        "audit_logs",
        _id(),
        _tenant_id("audit_logs", nullable=True),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("module", sa.String(50), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("entity", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("before", sa.JSON, nullable=True),
        sa.Column("after", sa.JSON, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity", "entity_id"])

    op.create_table(
        "notifications",
        _id(),
        _tenant_id("notifications", nullable=True),
        sa.Column(
            "recipient_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_notifications_recipient_id_users"),
            nullable=False,
            index=True,
        ),
        sa.Column("template_key", sa.String(100), nullable=False),
        sa.Column("context", sa.JSON, nullable=False),
        sa.Column("is_read", sa.Boolean, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    for table in (
        "notifications",
        "audit_logs",
        "grades",
        "grading_periods",
        "institution_policies",
        "charges",
        "course_registrations",
        "annual_enrollments",
        "workflow_logs",
        "assessments",
        "calendar_events",
        "lesson_units",
        "teaching_plans",
        "disciplines",
        "academic_years",
        "user_roles",
        "users",
        "tenants",
    ):
        op.drop_table(table)
