"""Configuration package."""

from finledger.config.preferences import MonthStartPreference, UserPreferences
from finledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "MonthStartPreference",
    "Settings",
    "UserPreferences",
    "get_settings",
    "validate_all_settings",
]
