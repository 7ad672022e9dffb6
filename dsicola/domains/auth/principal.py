# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authenticated caller identity.

A Principal is derived from the session token on every request and never
mutated afterwards. It is passed explicitly to the scope filter, gates and
workflow engine.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable

from dsicola.models.common import PLATFORM_ROLES, AcademicVariant, Role


@dataclass(frozen=True)
class Principal:
    """Immutable authenticated identity.

    Attributes:
        user_id: User identifier from the token subject.
        tenant_id: Home institution. None only for platform staff, or for a
            malformed account whose queries then match nothing.
        roles: Non-empty set of roles.
        email: User email, when the token carries it.
        academic_variant: Variant of the home institution.
        teacher_id: Teacher record of the user, when distinct from user_id.
        narrowed_tenant_id: Tenant a SUPER_ADMIN chose to narrow its view to.
    """

    user_id: str
    tenant_id: str | None
    roles: frozenset[Role] = field(default_factory=frozenset)
    email: str | None = None
    academic_variant: AcademicVariant | None = None
    teacher_id: str | None = None
    narrowed_tenant_id: str | None = None

    def has_role(self, role: Role | str) -> bool:
        """Check if the principal has a specific role."""
        return Role(role) in self.roles

    def has_any_role(self, *roles: Role | str) -> bool:
        """Check if the principal has any of the given roles."""
        return any(Role(role) in self.roles for role in roles)

    def has_any_of(self, roles: Iterable[Role]) -> bool:
        return not self.roles.isdisjoint(roles)

    @property
    def is_superuser(self) -> bool:
        return Role.SUPER_ADMIN in self.roles

    @property
    def is_platform_staff(self) -> bool:
        """SUPER_ADMIN or BACK_OFFICE, the roles allowed on the central portal."""
        return self.has_any_of(PLATFORM_ROLES)

    @property
    def teacher_ref(self) -> str:
        """Identifier teaching plans use to reference this user."""
        return self.teacher_id or self.user_id

    def narrowed_to(self, tenant_id: str | None) -> "Principal":
        return replace(self, narrowed_tenant_id=tenant_id)

    def role_names(self) -> list[str]:
        return sorted(role.value for role in self.roles)
