"""
Configuration Management for finledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The month start-day configured here is only the DEFAULT for a new
installation; the user's choice lives in MonthStartPreference and is
passed explicitly into every period and balance call.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger engine behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    user_id: str = Field(
        default="local-user",
        min_length=1,
        description="User whose ledger this process serves"
    )
    default_month_start_day: int = Field(
        default=1,
        ge=1,
        le=28,
        description="Start-day used until the user picks one"
    )
    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Which LedgerStoreInterface implementation to use"
    )
    preferences_path: str = Field(
        default=".finledger/preferences.json",
        description="Device-local file holding the user's month start-day"
    )
    count_budget_as_income: bool = Field(
        default=False,
        description="Legacy parity: fold the monthly budget total into income"
    )
    enable_balance_cache: bool = Field(
        default=True,
        description="Cache folded period subtotals between balance requests"
    )

    # Alerts
    alert_days_before: int = Field(
        default=3,
        ge=0,
        le=31,
        description="Planned entries due within this many days raise an alert"
    )
    invoice_closing_alert_days: int = Field(default=3, ge=0, le=31)
    invoice_due_alert_days: int = Field(default=5, ge=0, le=31)
    near_budget_ratio: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Share of a budget limit that counts as 'near' the limit"
    )

    currency: str = Field(default="BRL", min_length=3, max_length=3)


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
    worksheet_prefix: str = Field(
        default="",
        description="Prefix for every ledger worksheet name"
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
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Sub-settings are loaded lazily so a memory-only setup never needs
    # Google credentials.

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

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

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus "<name>_error" messages.
    Google Sheets is only checked when it is the configured backend.
    """
    results = {}

    settings = get_settings()

    checks = {
        "ledger": lambda: settings.ledger,
        "app": lambda: settings.app,
    }
    try:
        backend = settings.ledger.storage_backend
    except Exception:
        backend = None
    if backend == "google_sheets":
        checks["google_sheets"] = lambda: settings.google_sheets

    for name, load in checks.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
