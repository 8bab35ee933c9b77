"""
Configuration Management for Ledger Bank

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Deposit minimums, storage location and session handling are policy, not code,
so they are validated once at startup and read from a single place.
"""

from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Flat-file JSON storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    data_dir: str = Field(
        default="data",
        description="Directory holding users.json, accounts.json, transactions.json, ..."
    )
    write_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failed file write is attempted"
    )
    json_indent: int = Field(
        default=2,
        ge=0,
        le=8,
        description="Indentation of the persisted JSON arrays"
    )


class BankingSettings(BaseSettings):
    """Account opening and ledger policy."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_BANKING_",
        extra="ignore"
    )

    checking_minimum_deposit: float = Field(
        default=25.0,
        ge=0.0,
        description="Minimum opening deposit for a Checking account"
    )
    savings_minimum_deposit: float = Field(
        default=500.0,
        ge=0.0,
        description="Minimum opening deposit for a Savings account"
    )
    account_number_digits: int = Field(
        default=10,
        ge=4,
        le=20,
        description="Length of generated account numbers"
    )
    account_number_attempts: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many fresh account numbers to draw before giving up on collisions"
    )
    notify_on_transaction: bool = Field(
        default=True,
        description="Post a notification to the owner after each ledger entry"
    )


class SessionSettings(BaseSettings):
    """Session cookie configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_SESSION_",
        extra="ignore"
    )

    cookie_name: str = Field(
        default="userId",
        description="Name of the session cookie"
    )
    max_age_seconds: int = Field(
        default=60 * 60 * 24 * 7,
        ge=60,
        description="Cookie lifetime (one week)"
    )
    # plain: the cookie carries the bare user id
    # signed: the cookie carries an HS256 JWT with the user id as subject
    mode: Literal["plain", "signed"] = Field(
        default="plain",
        description="How session tokens are issued and resolved"
    )
    secret_key: str = Field(
        default="",
        description="Signing key for signed session tokens"
    )

    @model_validator(mode='after')
    def require_secret_for_signed(self) -> 'SessionSettings':
        """Signed sessions are meaningless without a key."""
        if self.mode == "signed" and not self.secret_key:
            raise ValueError("LEDGER_SESSION_SECRET_KEY is required when mode is 'signed'")
        return self


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
    log_level: str = Field(
        default="INFO",
        description="Minimum level for the structured log"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.app_environment.lower() == "production"


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

    # Loaded lazily so a broken section does not stop the others

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def banking(self) -> BankingSettings:
        return BankingSettings()

    @property
    def session(self) -> SessionSettings:
        return SessionSettings()

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


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, Any]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error holding the message for each invalid section.
    Useful for startup checks.
    """
    results: dict[str, Any] = {}

    settings = settings or get_settings()

    for name in ("storage", "banking", "session", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
