"""Services package."""

from ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
    JsonFileNotificationStorage,
    JsonFileStore,
    JsonFileUserStorage,
    LedgerStorageInterface,
    NotFoundError,
    NotificationStorageInterface,
    OverdraftError,
    StorageError,
    UserStorageInterface,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "JsonFileAuditStorage",
    "JsonFileLedgerStorage",
    "JsonFileNotificationStorage",
    "JsonFileStore",
    "JsonFileUserStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "NotificationStorageInterface",
    "OverdraftError",
    "StorageError",
    "UserStorageInterface",
]
