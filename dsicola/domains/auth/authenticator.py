# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session authentication: signed token to Principal.

Validation order:
1. token present                        -> TOKEN_MISSING
2. signature and expiry                 -> TOKEN_INVALID / TOKEN_EXPIRED
3. subject present                      -> TOKEN_MISSING_SUBJECT
4. tenant claim present (may be null)   -> TOKEN_MISSING_TENANT_CLAIM
5. non-empty tenant claim is a UUID v4  -> INVALID_TENANT_CLAIM
6. roles from token, else stored roles  -> NO_ROLES (403)

A malformed tenant claim rejects the token outright; it is never treated as
"no tenant", since that would widen a SUPER_ADMIN-style scope.
"""

import logging
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.exceptions import ForbiddenError, UnauthenticatedError
from dsicola.domains.auth.jwt import InvalidTokenError, JWTManager, TokenExpiredError
from dsicola.domains.auth.principal import Principal
from dsicola.infrastructure.database.models.tenant import UserRoleAssignment
from dsicola.models.common import AcademicVariant, Role

logger = logging.getLogger(__name__)

UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_uuid_v4(value: str | None) -> bool:
    """Check whether a value is a UUID v4 string."""
    return bool(value) and bool(UUID_V4_PATTERN.match(value.strip()))


def _parse_roles(raw_roles: list[str], user_id: str) -> frozenset[Role]:
    roles = set()
    for raw in raw_roles:
        try:
            roles.add(Role(raw.strip().upper()))
        except ValueError:
            logger.warning("Ignoring unknown role %r for user %s", raw, user_id)
    return frozenset(roles)


def _parse_variant(raw: str | None) -> AcademicVariant | None:
    if not raw:
        return None
    try:
        return AcademicVariant(raw.strip().upper())
    except ValueError:
        logger.warning("Ignoring unknown academic variant %r", raw)
        return None


class SessionAuthenticator:
    """Turns a bearer token into a Principal.

    Attributes:
        _jwt: Token decoder.
    """

    def __init__(self, jwt_manager: JWTManager) -> None:
        self._jwt = jwt_manager

    async def authenticate(
        self,
        token: str | None,
        db: AsyncSession | None = None,
        tenant_override: str | None = None,
    ) -> Principal:
        """Authenticate a session token.

        Args:
            token: Raw token from the Authorization header or query string.
            db: Session used for the role fallback lookup.
            tenant_override: Tenant a SUPER_ADMIN asked to narrow its view to.
                Ignored for every other role.

        Returns:
            The immutable Principal.

        Raises:
            UnauthenticatedError: Token missing, invalid, expired or with a
                missing subject or malformed tenant claim.
            ForbiddenError: NO_ROLES, or INVALID_TENANT_SCOPE for a malformed
                superuser narrowing value.
        """
        if not token or not token.strip():
            raise UnauthenticatedError("Authentication token not provided.", reason="TOKEN_MISSING")

        try:
            claims = self._jwt.decode_token(token.strip())
        except TokenExpiredError:
            raise UnauthenticatedError("Session expired. Sign in again.", reason="TOKEN_EXPIRED")
        except InvalidTokenError:
            raise UnauthenticatedError("Invalid authentication token.", reason="TOKEN_INVALID")

        if not claims.sub:
            raise UnauthenticatedError(
                "Invalid token: missing user identifier.",
                reason="TOKEN_MISSING_SUBJECT",
            )
        user_id = claims.sub

        if not claims.has_tenant_claim:
            raise UnauthenticatedError(
                "Invalid token: missing institution claim. Sign in again.",
                reason="TOKEN_MISSING_TENANT_CLAIM",
            )

        tenant_id: str | None = None
        raw_tenant = (claims.tenant_id or "").strip()
        if claims.tenant_claim_malformed or raw_tenant:
            if claims.tenant_claim_malformed or not is_uuid_v4(raw_tenant):
                logger.warning("Rejected token with malformed tenant claim for user %s", user_id)
                raise UnauthenticatedError(
                    "Invalid token: malformed institution identifier. Sign in again.",
                    reason="INVALID_TENANT_CLAIM",
                )
            tenant_id = raw_tenant.lower()

        roles = _parse_roles(claims.roles, user_id)
        if not roles and db is not None:
            roles = await self._load_roles(db, user_id)
        if not roles:
            raise ForbiddenError("User has no roles assigned.", reason="NO_ROLES")

        principal = Principal(
            user_id=user_id,
            tenant_id=tenant_id,
            roles=roles,
            email=claims.email,
            academic_variant=_parse_variant(claims.academic_variant),
            teacher_id=claims.teacher_id,
        )

        if tenant_id is None and not principal.is_superuser:
            logger.warning(
                "Principal without tenant and without SUPER_ADMIN: user=%s roles=%s",
                user_id,
                principal.role_names(),
            )

        return self._apply_override(principal, tenant_override)

    def _apply_override(self, principal: Principal, tenant_override: str | None) -> Principal:
        override = (tenant_override or "").strip()
        if not override:
            return principal

        if not principal.is_superuser:
            logger.info(
                "Ignoring tenant parameter from non-superuser: user=%s",
                principal.user_id,
            )
            return principal

        if not is_uuid_v4(override):
            raise ForbiddenError(
                "Invalid institution identifier.",
                reason="INVALID_TENANT_SCOPE",
            )
        return principal.narrowed_to(override.lower())

    async def _load_roles(self, db: AsyncSession, user_id: str) -> frozenset[Role]:
        result = await db.execute(
            select(UserRoleAssignment.role).where(UserRoleAssignment.user_id == user_id)
        )
        return _parse_roles(list(result.scalars().all()), user_id)
