# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant guard: decides whether a principal may use the resolved host.

Decision table:

    mode       principal        tenant relation   outcome
    ignored    any / none       n/a               allow
    subdomain  any              equal             allow
    subdomain  any              different         TENANT_MISMATCH
    central    platform staff   n/a               allow
    central    ordinary role    n/a               REDIRECT_TO_SUBDOMAIN
    subdomain  none             n/a               unauthenticated
    central    none             n/a               unauthenticated
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.config.settings import Settings
from dsicola.core.exceptions import ForbiddenError, TenantRedirectError, UnauthenticatedError
from dsicola.domains.auth.principal import Principal
from dsicola.domains.tenancy.resolver import (
    ResolutionMode,
    TenantResolution,
    build_subdomain_url,
)
from dsicola.infrastructure.database.models.tenant import Tenant

logger = logging.getLogger(__name__)


class GuardOutcome(str, Enum):
    ALLOW = "ALLOW"
    TENANT_MISMATCH = "TENANT_MISMATCH"
    REDIRECT_TO_SUBDOMAIN = "REDIRECT_TO_SUBDOMAIN"
    UNAUTHENTICATED = "UNAUTHENTICATED"


@dataclass(frozen=True)
class GuardDecision:
    """Result of a guard evaluation.

    Attributes:
        outcome: Allow or the named refusal.
        message: Client-facing explanation for refusals.
        redirect_url: Principal's own institution address, for redirects.
    """

    outcome: GuardOutcome
    message: str | None = None
    redirect_url: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is GuardOutcome.ALLOW

    def raise_for_outcome(self) -> None:
        """Raise the error matching a refusal. Does nothing when allowed.

        Raises:
            UnauthenticatedError: No principal on a guarded host.
            ForbiddenError: TENANT_MISMATCH.
            TenantRedirectError: REDIRECT_TO_SUBDOMAIN.
        """
        if self.outcome is GuardOutcome.ALLOW:
            return
        if self.outcome is GuardOutcome.UNAUTHENTICATED:
            raise UnauthenticatedError(self.message or "Authentication required.", reason="UNAUTHORIZED")
        if self.outcome is GuardOutcome.TENANT_MISMATCH:
            raise ForbiddenError(self.message or "", reason=GuardOutcome.TENANT_MISMATCH.value)
        raise TenantRedirectError(self.message or "", redirect_url=self.redirect_url)


ALLOW = GuardDecision(outcome=GuardOutcome.ALLOW)


class TenantGuard:
    """Enforces that principals only act on their own institution's host."""

    def __init__(self, settings: Settings) -> None:
        self._tenancy = settings.tenancy
        self._production = settings.is_production

    def evaluate(
        self,
        resolution: TenantResolution,
        principal: Principal | None,
        home_subdomain: str | None = None,
    ) -> GuardDecision:
        """Apply the decision table.

        Args:
            resolution: Host classification of the request.
            principal: Authenticated caller, None when unauthenticated.
            home_subdomain: Slug of the principal's own tenant, used to build
                the redirect URL on the central portal.
        """
        if resolution.mode is ResolutionMode.IGNORED:
            return ALLOW

        if principal is None:
            return GuardDecision(
                outcome=GuardOutcome.UNAUTHENTICATED,
                message="Not authenticated. Sign in to continue.",
            )

        if resolution.mode is ResolutionMode.SUBDOMAIN:
            if principal.tenant_id is not None and principal.tenant_id == resolution.tenant_id:
                return ALLOW
            logger.warning(
                "Tenant mismatch: user=%s user_tenant=%s host_tenant=%s",
                principal.user_id,
                principal.tenant_id,
                resolution.tenant_id,
            )
            return GuardDecision(
                outcome=GuardOutcome.TENANT_MISMATCH,
                message="This resource does not belong to this institution.",
            )

        if principal.is_platform_staff:
            return ALLOW

        redirect_url = None
        if home_subdomain:
            redirect_url = build_subdomain_url(home_subdomain, self._tenancy, self._production)
        logger.info("Central portal access redirected: user=%s", principal.user_id)
        return GuardDecision(
            outcome=GuardOutcome.REDIRECT_TO_SUBDOMAIN,
            message=(
                "Access through the main portal is reserved for platform administrators. "
                "Use your institution's address."
            ),
            redirect_url=redirect_url,
        )

    async def check(
        self,
        resolution: TenantResolution,
        principal: Principal | None,
        db: AsyncSession,
    ) -> GuardDecision:
        """Evaluate the guard, looking up the redirect target when needed."""
        home_subdomain = None
        if (
            resolution.mode is ResolutionMode.CENTRAL
            and principal is not None
            and not principal.is_platform_staff
            and principal.tenant_id
        ):
            result = await db.execute(
                select(Tenant.subdomain).where(Tenant.id == principal.tenant_id)
            )
            home_subdomain = result.scalar_one_or_none()

        return self.evaluate(resolution, principal, home_subdomain)

    async def enforce(
        self,
        resolution: TenantResolution,
        principal: Principal | None,
        db: AsyncSession,
    ) -> None:
        """Check and raise on refusal."""
        decision = await self.check(resolution, principal, db)
        decision.raise_for_outcome()
