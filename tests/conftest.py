# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- JWT settings and managers
- An in-memory SQLite database with the full schema
- Seeded institutions, users and principals
"""

from collections.abc import AsyncGenerator, Callable
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dsicola.domains.auth.jwt import JWTManager
from dsicola.domains.auth.principal import Principal
from dsicola.infrastructure.database.models import (
    AcademicYear,
    AnnualEnrollment,
    Base,
    Charge,
    Discipline,
    Tenant,
    User,
    UserRoleAssignment,
)
from dsicola.models.common import AcademicVariant, EnrollmentStatus, Role

TENANT_A_ID = "11111111-1111-4111-8111-111111111111"
TENANT_B_ID = "22222222-2222-4222-8222-222222222222"


def build_principal(
    user_id: str,
    tenant_id: str | None,
    *roles: Role,
    academic_variant: AcademicVariant | None = None,
) -> Principal:
    """Build a principal without going through a token."""
    return Principal(
        user_id=user_id,
        tenant_id=tenant_id,
        roles=frozenset(roles),
        academic_variant=academic_variant,
    )


async def create_user(
    db: AsyncSession,
    tenant_id: str | None,
    email: str,
    roles: tuple[Role, ...] = (),
) -> User:
    """Create a user with stored role assignments."""
    user = User(tenant_id=tenant_id, email=email, full_name=email.split("@")[0])
    db.add(user)
    await db.flush()
    for role in roles:
        db.add(UserRoleAssignment(user_id=user.id, tenant_id=tenant_id, role=role.value))
    await db.commit()
    return user


# =============================================================================
# JWT Fixtures
# =============================================================================


@pytest.fixture
def jwt_settings() -> MagicMock:
    """Create mock JWT settings."""
    settings = MagicMock()
    settings.secret_key = SecretStr("test-secret-key-for-jwt-testing")
    settings.algorithm = "HS256"
    settings.access_token_expire_minutes = 30
    return settings


@pytest.fixture
def jwt_manager(jwt_settings: MagicMock) -> JWTManager:
    """Create JWT manager with test settings."""
    return JWTManager(jwt_settings)


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def make_principal() -> Callable[..., Principal]:
    """Provide the principal builder."""
    return build_principal


@pytest.fixture
def tenant_a_id() -> str:
    return TENANT_A_ID


@pytest.fixture
def tenant_b_id() -> str:
    return TENANT_B_ID


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine with every table."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session configured like the application's."""
    sessionmaker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with sessionmaker() as session:
        yield session


@pytest_asyncio.fixture
async def tenants(db: AsyncSession) -> dict[str, Tenant]:
    """Two institutions: a higher-education one and a secondary school."""
    tenant_a = Tenant(
        id=TENANT_A_ID,
        name="Instituto Superior A",
        subdomain="escola-a",
        academic_variant=AcademicVariant.HIGHER_ED.value,
    )
    tenant_b = Tenant(
        id=TENANT_B_ID,
        name="Colegio B",
        subdomain="escola-b",
        academic_variant=AcademicVariant.SECONDARY.value,
    )
    db.add_all([tenant_a, tenant_b])
    await db.commit()
    return {"a": tenant_a, "b": tenant_b}


@pytest_asyncio.fixture
async def school(db: AsyncSession, tenants: dict[str, Tenant]) -> dict[str, Any]:
    """Users, academic year and discipline of tenant A.

    The student has an ACTIVE enrollment on a course and no charges. Only
    plain ids are returned, since a service rollback expires ORM instances.
    """
    admin = await create_user(db, TENANT_A_ID, "admin@escola-a.ao", (Role.ADMIN,))
    registrar = await create_user(db, TENANT_A_ID, "secretaria@escola-a.ao", (Role.REGISTRAR,))
    teacher = await create_user(db, TENANT_A_ID, "professor@escola-a.ao", (Role.TEACHER,))
    student = await create_user(db, TENANT_A_ID, "aluno@escola-a.ao", (Role.STUDENT,))
    other_admin = await create_user(db, TENANT_B_ID, "admin@escola-b.ao", (Role.ADMIN,))

    year = AcademicYear(tenant_id=TENANT_A_ID, label="2025/2026")
    discipline = Discipline(tenant_id=TENANT_A_ID, name="Matematica I", workload_hours=60)
    db.add_all([year, discipline])
    await db.commit()

    enrollment = AnnualEnrollment(
        tenant_id=TENANT_A_ID,
        student_id=student.id,
        academic_year_id=year.id,
        status=EnrollmentStatus.ACTIVE.value,
        course_id="c0000000-0000-4000-8000-000000000001",
    )
    db.add(enrollment)
    await db.commit()

    return {
        "admin_id": admin.id,
        "registrar_id": registrar.id,
        "teacher_id": teacher.id,
        "student_id": student.id,
        "year_id": year.id,
        "discipline_id": discipline.id,
        "enrollment_id": enrollment.id,
        "admin_principal": build_principal(admin.id, TENANT_A_ID, Role.ADMIN),
        "registrar_principal": build_principal(registrar.id, TENANT_A_ID, Role.REGISTRAR),
        "teacher_principal": build_principal(teacher.id, TENANT_A_ID, Role.TEACHER),
        "other_admin_principal": build_principal(other_admin.id, TENANT_B_ID, Role.ADMIN),
    }


@pytest.fixture
def overdue_charge() -> Callable[..., Charge]:
    """Provide a builder for an unpaid charge that fell due in January 2025."""

    def _build(tenant_id: str, student_id: str, amount: str = "15000.00") -> Charge:
        return Charge(
            tenant_id=tenant_id,
            student_id=student_id,
            amount=Decimal(amount),
            due_date=date(2025, 1, 10),
        )

    return _build
