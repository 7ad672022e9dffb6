# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for session authentication."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from jose import jwt

from dsicola.core.exceptions import ForbiddenError, UnauthenticatedError
from dsicola.domains.auth.authenticator import SessionAuthenticator, is_uuid_v4
from dsicola.models.common import AcademicVariant, Role

TENANT_A = "11111111-1111-4111-8111-111111111111"
TENANT_B = "22222222-2222-4222-8222-222222222222"


@pytest.fixture
def authenticator(jwt_manager) -> SessionAuthenticator:
    return SessionAuthenticator(jwt_manager)


def _roles_db(*roles: str) -> AsyncMock:
    scalars = MagicMock()
    scalars.all.return_value = list(roles)
    result = MagicMock()
    result.scalars.return_value = scalars
    db = AsyncMock()
    db.execute.return_value = result
    return db


class TestIsUuidV4:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (TENANT_A, True),
            (TENANT_A.upper(), True),
            ("11111111-1111-1111-8111-111111111111", False),
            ("escola-a", False),
            ("", False),
            (None, False),
        ],
    )
    def test_values(self, value, expected):
        assert is_uuid_v4(value) is expected


class TestAuthenticate:
    """Tests for SessionAuthenticator.authenticate."""

    @pytest.mark.asyncio
    async def test_valid_token(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(
            user_id="user-1",
            tenant_id=TENANT_A,
            roles=["admin", "TEACHER"],
            academic_variant="SECONDARY",
            teacher_id="teacher-9",
        )

        principal = await authenticator.authenticate(token)

        assert principal.user_id == "user-1"
        assert principal.tenant_id == TENANT_A
        assert principal.roles == frozenset({Role.ADMIN, Role.TEACHER})
        assert principal.academic_variant is AcademicVariant.SECONDARY
        assert principal.teacher_ref == "teacher-9"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "   "])
    async def test_missing_token(self, authenticator, token):
        with pytest.raises(UnauthenticatedError) as exc_info:
            await authenticator.authenticate(token)
        assert exc_info.value.reason == "TOKEN_MISSING"

    @pytest.mark.asyncio
    async def test_invalid_token(self, authenticator):
        with pytest.raises(UnauthenticatedError) as exc_info:
            await authenticator.authenticate("garbage")
        assert exc_info.value.reason == "TOKEN_INVALID"

    @pytest.mark.asyncio
    async def test_expired_token(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(
            user_id="user-1", tenant_id=TENANT_A, roles=["ADMIN"], expires_delta=timedelta(seconds=-30)
        )

        with pytest.raises(UnauthenticatedError) as exc_info:
            await authenticator.authenticate(token)
        assert exc_info.value.reason == "TOKEN_EXPIRED"

    @pytest.mark.asyncio
    async def test_missing_subject(self, authenticator, jwt_settings):
        token = jwt.encode(
            {"tenant_id": TENANT_A, "roles": ["ADMIN"]},
            jwt_settings.secret_key.get_secret_value(),
            algorithm="HS256",
        )

        with pytest.raises(UnauthenticatedError) as exc_info:
            await authenticator.authenticate(token)
        assert exc_info.value.reason == "TOKEN_MISSING_SUBJECT"

    @pytest.mark.asyncio
    async def test_missing_tenant_claim(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(user_id="user-1", roles=["ADMIN"])

        with pytest.raises(UnauthenticatedError) as exc_info:
            await authenticator.authenticate(token)
        assert exc_info.value.reason == "TOKEN_MISSING_TENANT_CLAIM"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("claim", ["escola-a", "123", "11111111-1111-1111-8111-111111111111"])
    async def test_malformed_tenant_claim_is_rejected(self, authenticator, jwt_manager, claim):
        token = jwt_manager.create_access_token(user_id="root", tenant_id=claim, roles=["SUPER_ADMIN"])

        with pytest.raises(UnauthenticatedError) as exc_info:
            await authenticator.authenticate(token)
        assert exc_info.value.reason == "INVALID_TENANT_CLAIM"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("claim", [42, ["11111111-1111-4111-8111-111111111111"], {"id": 1}])
    async def test_non_string_tenant_claim_is_rejected(self, authenticator, jwt_settings, claim):
        token = jwt.encode(
            {"sub": "user-1", "tenant_id": claim, "roles": ["ADMIN"]},
            jwt_settings.secret_key.get_secret_value(),
            algorithm="HS256",
        )

        with pytest.raises(UnauthenticatedError) as exc_info:
            await authenticator.authenticate(token)
        assert exc_info.value.reason == "INVALID_TENANT_CLAIM"

    @pytest.mark.asyncio
    async def test_non_list_roles_claim_is_invalid(self, authenticator, jwt_settings):
        token = jwt.encode(
            {"sub": "user-1", "tenant_id": None, "roles": 5},
            jwt_settings.secret_key.get_secret_value(),
            algorithm="HS256",
        )

        with pytest.raises(UnauthenticatedError) as exc_info:
            await authenticator.authenticate(token)
        assert exc_info.value.reason == "TOKEN_INVALID"

    @pytest.mark.asyncio
    async def test_null_tenant_superuser(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(user_id="root", tenant_id=None, roles=["SUPER_ADMIN"])

        principal = await authenticator.authenticate(token)

        assert principal.tenant_id is None
        assert principal.is_superuser

    @pytest.mark.asyncio
    async def test_tenant_claim_is_lowercased(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(
            user_id="user-1", tenant_id=TENANT_A.upper(), roles=["ADMIN"]
        )

        principal = await authenticator.authenticate(token)

        assert principal.tenant_id == TENANT_A

    @pytest.mark.asyncio
    async def test_role_fallback_from_database(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(user_id="user-1", tenant_id=TENANT_A, roles=[])
        db = _roles_db("TEACHER", "UNKNOWN_ROLE")

        principal = await authenticator.authenticate(token, db)

        assert principal.roles == frozenset({Role.TEACHER})
        db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_roles_anywhere(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(user_id="user-1", tenant_id=TENANT_A, roles=[])

        with pytest.raises(ForbiddenError) as exc_info:
            await authenticator.authenticate(token, _roles_db())
        assert exc_info.value.reason == "NO_ROLES"
        assert exc_info.value.status_code == 403


class TestTenantOverride:
    """Tests for superuser narrowing."""

    @pytest.mark.asyncio
    async def test_superuser_narrowing(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(user_id="root", tenant_id=None, roles=["SUPER_ADMIN"])

        principal = await authenticator.authenticate(token, tenant_override=TENANT_B)

        assert principal.narrowed_tenant_id == TENANT_B

    @pytest.mark.asyncio
    async def test_superuser_invalid_narrowing(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(user_id="root", tenant_id=None, roles=["SUPER_ADMIN"])

        with pytest.raises(ForbiddenError) as exc_info:
            await authenticator.authenticate(token, tenant_override="escola-b")
        assert exc_info.value.reason == "INVALID_TENANT_SCOPE"

    @pytest.mark.asyncio
    async def test_override_ignored_for_ordinary_roles(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(user_id="user-1", tenant_id=TENANT_A, roles=["ADMIN"])

        principal = await authenticator.authenticate(token, tenant_override=TENANT_B)

        assert principal.tenant_id == TENANT_A
        assert principal.narrowed_tenant_id is None

    @pytest.mark.asyncio
    async def test_blank_override_is_ignored(self, authenticator, jwt_manager):
        token = jwt_manager.create_access_token(user_id="root", tenant_id=None, roles=["SUPER_ADMIN"])

        principal = await authenticator.authenticate(token, tenant_override="  ")

        assert principal.narrowed_tenant_id is None
