# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant isolation: host resolution, domain guard and query scoping."""

from dsicola.domains.tenancy.guard import GuardDecision, GuardOutcome, TenantGuard
from dsicola.domains.tenancy.resolver import (
    ResolutionMode,
    TenantResolution,
    TenantResolver,
    build_subdomain_url,
    normalize_host,
)
from dsicola.domains.tenancy.scope import TenantScope, build_scope_filter

__all__ = [
    "GuardDecision",
    "GuardOutcome",
    "ResolutionMode",
    "TenantGuard",
    "TenantResolution",
    "TenantResolver",
    "TenantScope",
    "build_scope_filter",
    "build_subdomain_url",
    "normalize_host",
]
