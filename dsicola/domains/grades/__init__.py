# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gated grade recording."""

from dsicola.domains.grades.service import GRADE_ROLES, GradeService

__all__ = ["GRADE_ROLES", "GradeService"]
