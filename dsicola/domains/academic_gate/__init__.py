# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic and financial gating of student operations."""

from dsicola.domains.academic_gate.policy import (
    BlockingPolicy,
    FinancialStanding,
    compute_standing,
    evaluate_block,
)
from dsicola.domains.academic_gate.service import (
    AcademicGateService,
    GateResult,
    InstitutionalStatus,
)

__all__ = [
    "AcademicGateService",
    "BlockingPolicy",
    "FinancialStanding",
    "GateResult",
    "InstitutionalStatus",
    "compute_standing",
    "evaluate_block",
]
