"""Configuration package."""

from ledger.config.settings import (
    AppSettings,
    BankingSettings,
    SessionSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BankingSettings",
    "SessionSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
