"""Configuration package."""

from financepro.config.settings import (
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    StripeSettings,
    TwilioSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StripeSettings",
    "TwilioSettings",
    "get_settings",
    "validate_all_settings",
]
