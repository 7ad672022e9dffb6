# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""JWT session token utilities.

This module provides session token creation and validation using python-jose.
Signature and expiry are checked here; claim semantics (subject, tenant
format, roles) are checked by SessionAuthenticator.

Example:
    >>> from dsicola.core.config import get_settings
    >>> jwt_manager = JWTManager(get_settings().jwt)
    >>> token = jwt_manager.create_access_token(user_id="user-123", tenant_id=None, roles=["SUPER_ADMIN"])
    >>> claims = jwt_manager.decode_token(token)
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError as JoseJWTError, jwt
from pydantic import BaseModel, ValidationError

from dsicola.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class TokenPayload(BaseModel):
    """Decoded session token claims.

    Attributes:
        sub: Subject (user ID). Legacy tokens carry it as user_id.
        email: User email.
        tenant_id: Tenant claim value, possibly None.
        has_tenant_claim: Whether the tenant_id claim was present at all.
        tenant_claim_malformed: The tenant_id claim was neither a string nor null.
        roles: List of role codes.
        academic_variant: Academic variant of the user's institution.
        teacher_id: Teacher record identifier.
        exp: Expiration timestamp.
        iat: Issued at timestamp.
        jti: JWT ID for token tracking.
    """

    sub: str | None = None
    email: str | None = None
    tenant_id: str | None = None
    has_tenant_claim: bool = False
    tenant_claim_malformed: bool = False
    roles: list[str] = []
    academic_variant: str | None = None
    teacher_id: str | None = None
    exp: int | None = None
    iat: int | None = None
    jti: str | None = None


class JWTError(Exception):
    """Base exception for JWT operations."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid."""

    pass


class JWTManager:
    """Session token creation and validation manager.

    Attributes:
        _settings: JWT configuration settings.
    """

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    def create_access_token(
        self,
        user_id: str,
        tenant_id: str | None = _UNSET,
        roles: list[str] | None = None,
        email: str | None = None,
        academic_variant: str | None = None,
        teacher_id: str | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a session token.

        Args:
            user_id: User identifier.
            tenant_id: Tenant identifier. Leave unset to omit the claim.
            roles: List of role codes.
            email: User email.
            academic_variant: Institution academic variant.
            teacher_id: Teacher record identifier.
            expires_delta: Lifetime override, may be negative for tests.

        Returns:
            JWT string.
        """
        now = datetime.now(timezone.utc)
        if expires_delta is None:
            expires_delta = timedelta(minutes=self._settings.access_token_expire_minutes)
        exp = now + expires_delta

        payload: dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "roles": roles or [],
            "academic_variant": academic_variant,
            "teacher_id": teacher_id,
            "exp": int(exp.timestamp()),
            "iat": int(now.timestamp()),
            "jti": secrets.token_urlsafe(16),
        }
        if tenant_id is not _UNSET:
            payload["tenant_id"] = str(tenant_id) if tenant_id else None

        return jwt.encode(
            payload,
            self._settings.secret_key.get_secret_value(),
            algorithm=self._settings.algorithm,
        )

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate a session token.

        Args:
            token: JWT token string.

        Returns:
            TokenPayload with decoded claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the signature or structure is invalid.
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key.get_secret_value(),
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except JoseJWTError as e:
            logger.warning("Token decode failed: %s", str(e))
            raise InvalidTokenError(f"Invalid token: {str(e)}")

        if not isinstance(payload, dict):
            raise InvalidTokenError("Invalid token: claims are not an object")

        roles = payload.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            logger.warning("Token roles claim malformed: %s", type(roles).__name__)
            raise InvalidTokenError("Invalid token: roles must be a list of strings")

        raw_tenant = payload.get("tenant_id")
        tenant_malformed = raw_tenant is not None and not isinstance(raw_tenant, str)

        subject = payload.get("sub") or payload.get("user_id")
        try:
            return TokenPayload(
                sub=str(subject) if subject else None,
                email=payload.get("email"),
                tenant_id=None if tenant_malformed else raw_tenant,
                has_tenant_claim="tenant_id" in payload,
                tenant_claim_malformed=tenant_malformed,
                roles=roles,
                academic_variant=payload.get("academic_variant"),
                teacher_id=payload.get("teacher_id"),
                exp=payload.get("exp"),
                iat=payload.get("iat"),
                jti=payload.get("jti"),
            )
        except ValidationError as e:
            logger.warning("Token claims malformed: %s", e)
            raise InvalidTokenError("Invalid token: malformed claims")

    def verify_token(self, token: str) -> bool:
        """Verify if a token is valid."""
        try:
            self.decode_token(token)
            return True
        except (TokenExpiredError, InvalidTokenError):
            return False
