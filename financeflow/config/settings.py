"""
Configuration Management for FamilyFinance

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini generative AI configuration."""

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
    text_model: str = Field(
        default="gemini-2.5-flash",
        description="Model for tips, plans and chat"
    )
    image_model: str = Field(
        default="imagen-3.0-generate-002",
        description="Model for dream plan images"
    )
    video_model: str = Field(
        default="veo-2.0-generate-001",
        description="Model for video stories"
    )
    video_poll_interval_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Delay between video operation status checks"
    )


class AuthSettings(BaseSettings):
    """Sign-in token configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    jwt_secret: str = Field(
        ...,
        min_length=8,
        description="Secret used to sign session tokens"
    )
    token_ttl_hours: int = Field(
        default=24,
        ge=1,
        description="Session token lifetime"
    )
    bcrypt_rounds: int = Field(
        default=8,
        ge=4,
        le=16,
        description="bcrypt cost factor for password hashes"
    )
    credentials_file: str = Field(
        default=".familyfinance/session.json",
        description="Where the signed-in token is kept between runs"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

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
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    users_sheet_name: str = Field(
        default="Users",
        description="Name of the sheet for user accounts"
    )
    versions_sheet_name: str = Field(
        default="Versions",
        description="Name of the sheet tracking the last saved snapshot version"
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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Autosave
    autosave_debounce_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Mutations within this window share one save (0 = save every mutation)"
    )

    # Dashboard projections
    activity_window_days: int = Field(
        default=30,
        ge=1,
        description="Rolling window for the family activity hub"
    )
    family_hub_limit: int = Field(
        default=5,
        ge=1,
        description="Members shown in the family hub, including 'Me'"
    )
    upcoming_payment_days: int = Field(
        default=7,
        ge=0,
        description="Horizon for 'due soon' recurring payment reminders"
    )


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
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<setting_name>_error" entry for each failure.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("gemini", "auth", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
