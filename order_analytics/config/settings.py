"""
Order Analytics Engine
Centralized Configuration Management

Pydantic settings with environment variable support, validation and type
safety. The analytics section carries the currency rate table and the order
status mapping shared by every report.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="commerce_hub", description="Database name")
    user: str = Field(default="analytics", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Database URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise builds one for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class AnalyticsSettings(BaseSettings):
    """Analytics Engine Configuration"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    # Currency
    base_currency: str = Field(default="CZK", description="Reporting currency code")
    currency_rates: Dict[str, Decimal] = Field(
        default_factory=dict,
        description="Units of base currency per one unit of the keyed currency",
    )

    # Order status mapping
    status_completed: List[str] = Field(default_factory=list, description="Statuses counted as completed")
    status_returned: List[str] = Field(default_factory=list, description="Statuses counted as returned")
    status_complaint: List[str] = Field(default_factory=list, description="Statuses counted as complaints")
    status_cancelled: List[str] = Field(default_factory=list, description="Statuses counted as cancelled")

    # Scans and pagination
    chunk_size: int = Field(default=1000, ge=1, description="Rows per chunk for full order scans")
    products_limit_default: int = Field(default=50, ge=1, description="Default product ranking size")
    products_limit_max: int = Field(default=200, ge=1, description="Maximum product ranking size")
    locations_limit_default: int = Field(default=12, ge=1, description="Default locations report size")
    locations_limit_max: int = Field(default=100, ge=1, description="Maximum locations report size")
    top_products_limit: int = Field(default=5, ge=1, description="Top products in the orders report")

    # Labels
    locale: str = Field(default="en", description="Locale of period and fallback labels")

    @field_validator("base_currency")
    @classmethod
    def validate_base_currency(cls, v: str) -> str:
        """Normalize the base currency code"""
        code = v.strip().upper()
        if not code:
            raise ValueError("Base currency must not be empty")
        return code

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, v: str) -> str:
        """Validate locale against the label catalog"""
        from order_analytics.analytics.locales import LOCALES

        if v.lower() not in LOCALES:
            raise ValueError(f"Locale must be one of: {sorted(LOCALES)}")
        return v.lower()


class SecuritySettings(BaseSettings):
    """API Security Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        alias="CORS_ORIGINS",
        description="Allowed CORS origins",
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="order-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
