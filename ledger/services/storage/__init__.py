"""
Storage Services Package

Provides abstract interfaces and the JSON-file implementation used for
users, accounts, transactions, notifications and the audit trail.
"""

from ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    NotificationStorageInterface,
    OverdraftError,
    StorageError,
    UserStorageInterface,
)
from ledger.services.storage.json_files import (
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
    JsonFileNotificationStorage,
    JsonFileStore,
    JsonFileUserStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "NotificationStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "OverdraftError",
    "StorageError",
    # JSON file implementation
    "JsonFileAuditStorage",
    "JsonFileLedgerStorage",
    "JsonFileNotificationStorage",
    "JsonFileStore",
    "JsonFileUserStorage",
]
