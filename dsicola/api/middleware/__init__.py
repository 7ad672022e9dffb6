# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request middleware: tenant resolution, authentication and tenant guard."""

from dsicola.api.middleware.auth import AuthMiddleware, get_principal_from_request
from dsicola.api.middleware.tenant import (
    PUBLIC_PATHS,
    TenantMiddleware,
    error_response,
    get_resolution_from_request,
    is_public_path,
)

__all__ = [
    "AuthMiddleware",
    "PUBLIC_PATHS",
    "TenantMiddleware",
    "error_response",
    "get_principal_from_request",
    "get_resolution_from_request",
    "is_public_path",
]
