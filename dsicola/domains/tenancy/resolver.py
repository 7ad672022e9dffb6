# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Host-to-tenant resolution.

Every request is classified by the host it was addressed to:

- ignored: local development hosts, tenant logic is bypassed
- central: the platform portal (apex, www, api, app and configured extras)
  or any host outside the platform base domain
- subdomain: <slug>.<base>, looked up in tenants.subdomain

When the API is served from a central host but the browser origin is a
platform subdomain, the origin host is classified instead so users on their
institution's address are not bounced to the central portal.

Example:
    >>> resolver = TenantResolver(get_settings().tenancy)
    >>> resolution = await resolver.resolve("escola-a.dsicola.com", db)
    >>> resolution.mode
    <ResolutionMode.SUBDOMAIN: 'subdomain'>
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dsicola.core.config.settings import TenancySettings
from dsicola.core.exceptions import ForbiddenError, NotFoundError
from dsicola.infrastructure.database.models.tenant import Tenant

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
BUILTIN_RESERVED_LABELS = frozenset({"www", "app", "api"})


class ResolutionMode(str, Enum):
    """How a request host relates to tenants."""

    IGNORED = "ignored"
    CENTRAL = "central"
    SUBDOMAIN = "subdomain"


@dataclass(frozen=True)
class TenantResolution:
    """Outcome of host classification.

    Attributes:
        mode: Host classification.
        host: The effective host that was classified.
        tenant_id: Tenant owning the subdomain (subdomain mode only).
        subdomain: Tenant slug (subdomain mode only).
    """

    mode: ResolutionMode
    host: str = ""
    tenant_id: str | None = None
    subdomain: str | None = None

    @classmethod
    def ignored(cls, host: str = "") -> "TenantResolution":
        return cls(mode=ResolutionMode.IGNORED, host=host)

    @classmethod
    def central(cls, host: str = "") -> "TenantResolution":
        return cls(mode=ResolutionMode.CENTRAL, host=host)


def normalize_host(host: str | None) -> str:
    """Lowercase a Host header value and strip its port.

    Bracketed IPv6 literals ("[::1]:8000") lose their brackets. A bare IPv6
    literal is returned unchanged.
    """
    if not host:
        return ""
    value = host.strip().lower()
    if value.startswith("["):
        return value[1 : value.find("]")] if "]" in value else value.lstrip("[")
    if value.count(":") == 1:
        value = value.split(":", 1)[0]
    return value.rstrip(".")


def is_local_host(host: str) -> bool:
    """Check whether a host is a local development address."""
    return host == "localhost" or host.startswith("127.") or host == "::1"


def build_subdomain_url(subdomain: str, settings: TenancySettings, production: bool) -> str:
    """Build the URL of an institution's own address.

    Args:
        subdomain: Tenant slug.
        settings: Tenancy settings holding the base domain.
        production: Whether to use https.

    Returns:
        e.g. https://escola-a.dsicola.com, or http://localhost:<port> when the
        platform itself runs on localhost.
    """
    scheme = "https" if production else "http"
    base = settings.base_domain
    if is_local_host(base):
        return f"{scheme}://localhost:{settings.frontend_port}"
    return f"{scheme}://{subdomain}.{base}"


class TenantResolver:
    """Classifies request hosts and looks up subdomain tenants.

    Stateless apart from configuration. The tenant lookup is a single indexed
    read per request with no caching.
    """

    def __init__(self, settings: TenancySettings) -> None:
        self._settings = settings
        self._base = settings.base_domain
        self._central = settings.central_hosts_set
        self._reserved = BUILTIN_RESERVED_LABELS | settings.reserved_labels_set

    def _platform_subdomain_label(self, host: str) -> str | None:
        """Return the label left of the base domain, or None if host is not under it."""
        suffix = f".{self._base}"
        if not host.endswith(suffix):
            return None
        return host[: -len(suffix)]

    def _is_valid_tenant_label(self, label: str) -> bool:
        return "." not in label and label not in self._reserved and bool(SLUG_PATTERN.match(label))

    def effective_host(self, host: str | None, origin: str | None = None) -> str:
        """Pick the host to classify.

        The Origin (or Referer) host wins when it differs from the request
        host and is a valid platform subdomain.
        """
        request_host = normalize_host(host)
        if not origin:
            return request_host

        try:
            origin_host = normalize_host(urlsplit(origin).hostname)
        except ValueError:
            return request_host

        if origin_host and origin_host != request_host:
            label = self._platform_subdomain_label(origin_host)
            if label and self._is_valid_tenant_label(label):
                return origin_host
        return request_host

    def classify(self, host: str) -> tuple[ResolutionMode, str | None]:
        """Classify a normalized host without touching the database.

        Returns:
            The mode and, for subdomain mode, the slug to look up.

        Raises:
            ForbiddenError: INVALID_HOST for a reserved or malformed label
                under the platform base domain.
        """
        if is_local_host(host):
            return ResolutionMode.IGNORED, None

        if host in self._central:
            return ResolutionMode.CENTRAL, None

        label = self._platform_subdomain_label(host)
        if label is None:
            return ResolutionMode.CENTRAL, None

        if not self._is_valid_tenant_label(label):
            logger.info("Refused platform host with invalid label: %s", host)
            raise ForbiddenError(
                "Invalid access: use your institution's address or the main portal.",
                reason="INVALID_HOST",
            )

        return ResolutionMode.SUBDOMAIN, label

    async def resolve(
        self,
        host: str | None,
        db: AsyncSession,
        origin: str | None = None,
    ) -> TenantResolution:
        """Resolve the tenant a request belongs to.

        Args:
            host: Host header value.
            db: Database session for the subdomain lookup.
            origin: Origin or Referer header value, if any.

        Returns:
            TenantResolution for the effective host.

        Raises:
            ForbiddenError: Reserved or malformed platform label.
            NotFoundError: Subdomain does not belong to any tenant.
        """
        effective = self.effective_host(host, origin)
        mode, slug = self.classify(effective)

        if mode is ResolutionMode.IGNORED:
            return TenantResolution.ignored(effective)
        if mode is ResolutionMode.CENTRAL:
            return TenantResolution.central(effective)

        result = await db.execute(select(Tenant.id, Tenant.subdomain).where(Tenant.subdomain == slug))
        row = result.first()
        if row is None:
            logger.info("Unknown tenant subdomain: %s", slug)
            raise NotFoundError(
                "Institution not found for this subdomain.",
                reason="TENANT_NOT_FOUND",
            )

        return TenantResolution(
            mode=ResolutionMode.SUBDOMAIN,
            host=effective,
            tenant_id=row.id,
            subdomain=row.subdomain,
        )
