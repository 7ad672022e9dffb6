# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for DSICOLA.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from dsicola.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.tenancy.platform_base_domain)
    'dsicola.com'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Shared relational database configuration.

    All tenants live in one database; isolation is enforced by the
    tenant scope filter on every query.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full async URL, used instead of the components when set.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    user: str = "dsicola"
    password: SecretStr = SecretStr("dsicola_password")
    host: str = "dsicola-db"
    port: int = 5432
    database: str = "dsicola"
    url_override: str | None = None
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class JWTSettings(BaseSettings):
    """JWT session token configuration.

    Attributes:
        secret_key: Secret key for signing tokens.
        algorithm: JWT signing algorithm.
        access_token_expire_minutes: Access token expiration time.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("change-this-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(
        default=60 * 8,
        validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )


class TenancySettings(BaseSettings):
    """Host-to-tenant resolution configuration.

    Attributes:
        platform_base_domain: Apex domain under which tenant subdomains live.
        main_domain: Central portal host (defaults to app.<base>).
        central_hosts: Extra comma-separated hosts treated as central.
        reserved_labels: Subdomain labels that can never be a tenant slug.
        frontend_port: Port used when building localhost redirect URLs.
        tenant_query_param: Request parameter a superuser may use to narrow its view.
    """

    model_config = SettingsConfigDict(
        env_prefix="TENANCY_",
        extra="ignore",
    )

    platform_base_domain: str = "dsicola.com"
    main_domain: str | None = None
    central_hosts: str = ""
    reserved_labels: str = "admin"
    frontend_port: int = 5173
    tenant_query_param: str = "tenant_id"

    @property
    def base_domain(self) -> str:
        """Base domain without scheme or path."""
        return _bare_host(self.platform_base_domain)

    @property
    def main_host(self) -> str:
        """Central portal host."""
        if self.main_domain:
            return _bare_host(self.main_domain)
        return f"app.{self.base_domain}"

    @property
    def central_hosts_set(self) -> frozenset[str]:
        """All hosts classified as the central portal."""
        base = self.base_domain
        extra = {h.strip().lower() for h in self.central_hosts.split(",") if h.strip()}
        return frozenset({self.main_host, base, f"www.{base}", f"api.{base}", *extra})

    @property
    def reserved_labels_set(self) -> frozenset[str]:
        """Reserved subdomain labels."""
        return frozenset(
            label.strip().lower() for label in self.reserved_labels.split(",") if label.strip()
        )


class AcademicSettings(BaseSettings):
    """Academic and financial gate configuration.

    Attributes:
        currency_label: Label appended to amounts in blocking messages.
        max_grade: Upper bound of the grading scale.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACADEMIC_",
        extra="ignore",
    )

    currency_label: str = "Kz"
    max_grade: float = 20.0


class APISettings(BaseSettings):
    """HTTP API server configuration.

    Attributes:
        host: Bind host.
        port: Bind port.
        prefix: Versioned route prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    prefix: str = "/api/v1"


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        jwt: JWT settings.
        tenancy: Tenant resolution settings.
        academic: Academic gate settings.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    tenancy: TenancySettings = Field(default_factory=TenancySettings)
    academic: AcademicSettings = Field(default_factory=AcademicSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            default_jwt_secret = "change-this-in-production"
            if self.jwt.secret_key.get_secret_value() == default_jwt_secret:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


def _bare_host(value: str) -> str:
    value = value.strip().lower()
    for scheme in ("https://", "http://"):
        if value.startswith(scheme):
            value = value[len(scheme):]
    return value.split("/")[0]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
