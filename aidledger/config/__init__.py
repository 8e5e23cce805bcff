"""Configuration package."""

from aidledger.config.settings import (
    AdminSettings,
    AppSettings,
    DatabaseSettings,
    DonationSettings,
    PaymentSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AdminSettings",
    "AppSettings",
    "DatabaseSettings",
    "DonationSettings",
    "PaymentSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
