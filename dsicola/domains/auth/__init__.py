# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authentication domain: session tokens and principals."""

from dsicola.domains.auth.authenticator import SessionAuthenticator, is_uuid_v4
from dsicola.domains.auth.jwt import (
    InvalidTokenError,
    JWTError,
    JWTManager,
    TokenExpiredError,
    TokenPayload,
)
from dsicola.domains.auth.principal import Principal

__all__ = [
    "InvalidTokenError",
    "JWTError",
    "JWTManager",
    "Principal",
    "SessionAuthenticator",
    "TokenExpiredError",
    "TokenPayload",
    "is_uuid_v4",
]
