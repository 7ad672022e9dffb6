# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the tenant and auth middleware stack."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from jose import jwt

from dsicola.api.app import create_app
from dsicola.api.dependencies import get_current_principal
from dsicola.core.config.settings import Settings
from dsicola.domains.auth.jwt import JWTManager
from dsicola.domains.auth.principal import Principal

TENANT_A = "11111111-1111-4111-8111-111111111111"
TENANT_B = "22222222-2222-4222-8222-222222222222"


def _session_factory(tenant_row: object | None, home_subdomain: str | None = "escola-a"):
    """Session factory whose queries answer the tenant lookups."""
    result = MagicMock()
    result.first.return_value = tenant_row
    result.scalar_one_or_none.return_value = home_subdomain
    scalars = MagicMock()
    scalars.all.return_value = []
    result.scalars.return_value = scalars

    @asynccontextmanager
    async def factory():
        db = AsyncMock()
        db.execute.return_value = result
        yield db

    return factory


def _build_app(settings: Settings, tenant_row: object | None = None) -> FastAPI:
    app = create_app(settings=settings, session_factory=_session_factory(tenant_row))

    @app.get("/api/v1/whoami")
    async def whoami(principal: Principal = Depends(get_current_principal)) -> dict:
        return {
            "user_id": principal.user_id,
            "tenant_id": principal.tenant_id,
            "narrowed_tenant_id": principal.narrowed_tenant_id,
        }

    return app


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="development", debug=False)


@pytest.fixture
def tokens(settings: Settings):
    manager = JWTManager(settings.jwt)

    def _token(tenant_id: str | None, *roles: str, user_id: str = "user-1") -> str:
        return manager.create_access_token(user_id=user_id, tenant_id=tenant_id, roles=list(roles))

    return _token


@pytest.fixture
def local_client(settings: Settings) -> TestClient:
    return TestClient(_build_app(settings), base_url="http://localhost")


@pytest.fixture
def subdomain_client(settings: Settings) -> TestClient:
    row = MagicMock(id=TENANT_A, subdomain="escola-a")
    return TestClient(_build_app(settings, tenant_row=row), base_url="http://escola-a.dsicola.com")


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestLocalHost:
    """Requests on localhost bypass tenant checks but not authentication."""

    def test_public_health(self, local_client):
        response = local_client.get("/health")
        assert response.status_code == 200

    def test_missing_token(self, local_client):
        response = local_client.get("/api/v1/whoami")

        assert response.status_code == 401
        assert response.json()["reason"] == "TOKEN_MISSING"

    def test_valid_token(self, local_client, tokens):
        response = local_client.get("/api/v1/whoami", headers=_bearer(tokens(TENANT_B, "ADMIN")))

        assert response.status_code == 200
        assert response.json()["tenant_id"] == TENANT_B

    def test_invalid_token_rendered_as_json(self, local_client):
        response = local_client.get("/api/v1/whoami", headers=_bearer("not-a-token"))

        assert response.status_code == 401
        assert response.json() == {
            "detail": "Invalid authentication token.",
            "reason": "TOKEN_INVALID",
        }

    def test_non_list_roles_claim_is_unauthenticated(self, local_client, settings):
        token = jwt.encode(
            {"sub": "user-1", "tenant_id": TENANT_A, "roles": 5},
            settings.jwt.secret_key.get_secret_value(),
            algorithm=settings.jwt.algorithm,
        )

        response = local_client.get("/api/v1/whoami", headers=_bearer(token))

        assert response.status_code == 401
        assert response.json()["reason"] == "TOKEN_INVALID"

    def test_malformed_tenant_claim(self, local_client, tokens):
        response = local_client.get("/api/v1/whoami", headers=_bearer(tokens("escola-a", "ADMIN")))

        assert response.status_code == 401
        assert response.json()["reason"] == "INVALID_TENANT_CLAIM"

    def test_token_query_parameter(self, local_client, tokens):
        response = local_client.get("/api/v1/whoami", params={"token": tokens(TENANT_A, "TEACHER")})

        assert response.status_code == 200
        assert response.json()["tenant_id"] == TENANT_A

    def test_superuser_narrowing(self, local_client, tokens):
        response = local_client.get(
            "/api/v1/whoami",
            params={"tenant_id": TENANT_B},
            headers=_bearer(tokens(None, "SUPER_ADMIN")),
        )

        assert response.status_code == 200
        assert response.json()["narrowed_tenant_id"] == TENANT_B

    def test_superuser_invalid_narrowing(self, local_client, tokens):
        response = local_client.get(
            "/api/v1/whoami",
            params={"tenant_id": "escola-b"},
            headers=_bearer(tokens(None, "SUPER_ADMIN")),
        )

        assert response.status_code == 403
        assert response.json()["reason"] == "INVALID_TENANT_SCOPE"


class TestSubdomainHost:
    """Requests on an institution subdomain."""

    def test_own_tenant(self, subdomain_client, tokens):
        response = subdomain_client.get("/api/v1/whoami", headers=_bearer(tokens(TENANT_A, "TEACHER")))

        assert response.status_code == 200

    def test_other_tenant_mismatch(self, subdomain_client, tokens):
        response = subdomain_client.get("/api/v1/whoami", headers=_bearer(tokens(TENANT_B, "ADMIN")))

        assert response.status_code == 403
        assert response.json()["reason"] == "TENANT_MISMATCH"

    def test_anonymous_refused(self, subdomain_client):
        response = subdomain_client.get("/api/v1/whoami")

        assert response.status_code == 401
        assert response.json()["reason"] == "UNAUTHORIZED"

    def test_unknown_subdomain(self, settings, tokens):
        client = TestClient(_build_app(settings, tenant_row=None), base_url="http://nowhere.dsicola.com")

        response = client.get("/api/v1/whoami", headers=_bearer(tokens(TENANT_A, "ADMIN")))

        assert response.status_code == 404
        assert response.json()["reason"] == "TENANT_NOT_FOUND"

    def test_reserved_label(self, settings, tokens):
        client = TestClient(_build_app(settings), base_url="http://admin.dsicola.com")

        response = client.get("/api/v1/whoami", headers=_bearer(tokens(TENANT_A, "ADMIN")))

        assert response.status_code == 403
        assert response.json()["reason"] == "INVALID_HOST"

    def test_public_path_skips_resolution(self, settings):
        client = TestClient(_build_app(settings), base_url="http://admin.dsicola.com")

        assert client.get("/health").status_code == 200


class TestCentralHost:
    """Requests on the central portal."""

    @pytest.fixture
    def central_client(self, settings) -> TestClient:
        return TestClient(_build_app(settings), base_url="http://app.dsicola.com")

    def test_ordinary_role_redirected(self, central_client, tokens):
        response = central_client.get("/api/v1/whoami", headers=_bearer(tokens(TENANT_A, "ADMIN")))

        assert response.status_code == 403
        body = response.json()
        assert body["reason"] == "REDIRECT_TO_SUBDOMAIN"
        assert body["redirect_url"] == "http://escola-a.dsicola.com"

    @pytest.mark.parametrize("role", ["SUPER_ADMIN", "BACK_OFFICE"])
    def test_platform_staff_allowed(self, central_client, tokens, role):
        response = central_client.get("/api/v1/whoami", headers=_bearer(tokens(None, role)))

        assert response.status_code == 200

    def test_anonymous_refused(self, central_client):
        response = central_client.get("/api/v1/whoami")

        assert response.status_code == 401
