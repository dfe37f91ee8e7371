"""
Configuration Management for FinancePro

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Hosted table storage (one worksheet per table)."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet that holds every table"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class StripeSettings(BaseSettings):
    """Stripe checkout and webhook configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STRIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    secret_key: str = Field(
        ...,
        description="Stripe secret API key"
    )
    webhook_secret: Optional[str] = Field(
        default=None,
        description="Signing secret of the webhook endpoint"
    )
    price_id: Optional[str] = Field(
        default=None,
        description="Default price used when the client sends none"
    )
    trial_period_days: int = Field(
        default=3,
        ge=0,
        le=90,
    )
    success_path: str = Field(
        default="/dashboard?session_id={CHECKOUT_SESSION_ID}",
    )
    cancel_path: str = Field(
        default="/subscription",
    )


class TwilioSettings(BaseSettings):
    """Twilio credentials, only needed to download WhatsApp media."""

    model_config = SettingsConfigDict(
        env_prefix="TWILIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    account_sid: Optional[str] = None
    auth_token: Optional[str] = None

    @property
    def basic_auth(self) -> Optional[tuple[str, str]]:
        if self.account_sid and self.auth_token:
            return self.account_sid, self.auth_token
        return None


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    storage_backend: str = Field(
        default="sheets",
        pattern="^(sheets|memory)$",
        description="Where tables live: Google Sheets or process memory"
    )
    default_user_id: str = Field(
        default="demo-user",
        description="User shown by the dashboard when none is entered"
    )
    public_url: str = Field(
        default="http://localhost:8501",
        description="Address of the dashboard, used for checkout redirects"
    )

    # Money formatting
    currency_code: str = Field(default="BRL")
    currency_symbol: str = Field(default="R$")

    # Paging and AI context
    default_page_size: int = Field(
        default=100,
        ge=10,
        le=1000,
    )
    context_transaction_limit: int = Field(
        default=15,
        ge=1,
        le=200,
        description="How many recent transactions the assistant sees"
    )
    trial_days: int = Field(
        default=3,
        ge=0,
        description="Trial length given to a new profile"
    )

    # Import / sanity limits
    max_import_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum statement upload size in MB"
    )
    max_transaction_amount: float = Field(
        default=1000000.0,
        description="Amounts above this are flagged for review"
    )

    @property
    def max_import_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_import_size_mb * 1024 * 1024


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def stripe(self) -> StripeSettings:
        return StripeSettings()

    @property
    def twilio(self) -> TwilioSettings:
        return TwilioSettings()

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
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus "<name>_error"
    entries describing what went wrong. Used by the Settings page.
    """
    results = {}
    settings = get_settings()

    for name in ("google_sheets", "gemini", "stripe", "twilio", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
