"""
Configuration Management for Aid Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here, grouped by concern. Components take
the group they need as a constructor argument and fall back to
get_settings() when none is given.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Ledger store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///./aidledger.db",
        description="SQLAlchemy database URL for the ledger store"
    )
    busy_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long a writer waits for the ledger lock"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging only)"
    )


class DonationSettings(BaseSettings):
    """Donation acceptance rules."""

    model_config = SettingsConfigDict(
        env_prefix="DONATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    min_amount: int = Field(
        default=1000,
        ge=1,
        description="Smallest accepted donation, in the smallest currency unit"
    )
    max_amount: int = Field(
        default=10_000_000,
        ge=1,
        description="Largest accepted donation, in the smallest currency unit"
    )
    currency: str = Field(
        default="RWF",
        min_length=3,
        max_length=3,
        description="ISO currency code used in messages"
    )

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class PaymentSettings(BaseSettings):
    """Simulated payment collaborator configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PAYMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    organization_name: str = Field(
        default="Empower Kibuye",
        description="Name shown in payment descriptions"
    )
    mobile_money_success_rate: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Probability that a simulated mobile money payment settles"
    )
    card_success_rate: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Probability that a simulated card payment settles"
    )
    mobile_money_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Simulated mobile money round-trip time"
    )
    card_delay_seconds: float = Field(
        default=1.5,
        ge=0.0,
        description="Simulated card gateway round-trip time"
    )


class AdminSettings(BaseSettings):
    """Default administrator seeded at startup."""

    model_config = SettingsConfigDict(
        env_prefix="ADMIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    name: str = Field(default="System Admin")
    email: str = Field(default="admin@empowerkibuye.org")
    password: str = Field(
        default="admin123",
        description="Change this in production"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # HTTP server
    host: str = Field(default="127.0.0.1")
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # Accounts
    min_password_length: int = Field(
        default=6,
        ge=1,
        description="Minimum password length at signup"
    )

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def donations(self) -> DonationSettings:
        return DonationSettings()

    @property
    def payments(self) -> PaymentSettings:
        return PaymentSettings()

    @property
    def admin(self) -> AdminSettings:
        return AdminSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings groups load.

    Returns a dict of {group_name: is_valid}, plus a "<group>_error" entry
    for every group that failed. Used by the startup check.
    """
    results = {}
    settings = get_settings()

    for name in ("database", "donations", "payments", "admin", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
