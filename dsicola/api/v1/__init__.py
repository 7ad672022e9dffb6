# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    workflow: Status transitions and history of plans, calendar events and assessments.
    grading_periods: Grading period administration and submission status.
    students: Financial blocking and institutional status of a student.
    grades: Gated grade recording.
"""

from fastapi import APIRouter

from dsicola.api.v1 import grades, grading_periods, students, workflow

# Mounted under settings.api.prefix by create_app
router = APIRouter()

# Include domain routers
router.include_router(workflow.router, prefix="/workflow", tags=["Workflow"])
router.include_router(grading_periods.router, prefix="/grading-periods", tags=["Grading Periods"])
router.include_router(students.router, prefix="/students", tags=["Students"])
router.include_router(grades.router, prefix="/grades", tags=["Grades"])

__all__ = ["router"]
