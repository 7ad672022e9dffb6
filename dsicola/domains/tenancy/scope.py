# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mandatory tenant predicate for data access.

Every query over tenant-owned data goes through a TenantScope built from the
caller's Principal. The builder is pure and fails closed: a principal that
should be tenant-bound but carries no tenant gets a scope matching no rows.

Example:
    >>> scope = build_scope_filter(principal)
    >>> stmt = select(TeachingPlan).where(scope.clause(TeachingPlan.tenant_id))
    >>> stmt = select(LessonUnit).where(
    ...     scope.related(LessonUnit.plan, TeachingPlan.tenant_id)
    ... )
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import false, true
from sqlalchemy.sql.elements import ColumnElement

from dsicola.core.exceptions import ForbiddenError
from dsicola.domains.auth.principal import Principal


@dataclass(frozen=True)
class TenantScope:
    """Tenant restriction applied to queries.

    Attributes:
        tenant_id: Tenant every row must belong to.
        unrestricted: True only for a SUPER_ADMIN with no tenant and no
            narrowing, who may read across tenants.
    """

    tenant_id: str | None
    unrestricted: bool = False

    @property
    def matches_nothing(self) -> bool:
        return not self.unrestricted and self.tenant_id is None

    def clause(self, column: Any) -> ColumnElement[bool]:
        """Predicate for a direct tenant_id column."""
        if self.unrestricted:
            return true()
        if self.tenant_id is None:
            return false()
        return column == self.tenant_id

    def related(self, relationship: Any, column: Any) -> ColumnElement[bool]:
        """Predicate for rows owned through a many-to-one relationship.

        Args:
            relationship: Relationship attribute, e.g. LessonUnit.plan.
            column: Tenant column on the related model.
        """
        if self.unrestricted:
            return true()
        if self.tenant_id is None:
            return false()
        return relationship.has(column == self.tenant_id)

    def as_filter(self, key: str = "tenant_id") -> dict[str, Any]:
        """Plain mapping form, for collaborators that do not build SQL.

        A fail-closed scope renders as an empty membership test.
        """
        if self.unrestricted:
            return {}
        if self.tenant_id is None:
            return {key: {"in": []}}
        return {key: self.tenant_id}

    def allows(self, tenant_id: str | None) -> bool:
        """Check an already-loaded row's tenant against the scope."""
        if self.unrestricted:
            return True
        return self.tenant_id is not None and tenant_id == self.tenant_id

    def require_tenant(self) -> str:
        """Return the concrete tenant for writes that must be tenant-bound.

        Raises:
            ForbiddenError: TENANT_SCOPE_REQUIRED when the scope has no tenant.
        """
        if self.tenant_id is None:
            raise ForbiddenError(
                "This operation requires an institution context.",
                reason="TENANT_SCOPE_REQUIRED",
            )
        return self.tenant_id


def build_scope_filter(principal: Principal) -> TenantScope:
    """Derive the tenant scope of a principal.

    - SUPER_ADMIN narrowed to a tenant: that tenant
    - SUPER_ADMIN otherwise: its own tenant, or unrestricted when it has none
    - any other role: its tenant, or no rows at all when it has none
    """
    if principal.is_superuser:
        if principal.narrowed_tenant_id:
            return TenantScope(tenant_id=principal.narrowed_tenant_id)
        if principal.tenant_id:
            return TenantScope(tenant_id=principal.tenant_id)
        return TenantScope(tenant_id=None, unrestricted=True)

    return TenantScope(tenant_id=principal.tenant_id)
