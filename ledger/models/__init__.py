"""
Data Models Package

This package contains all Pydantic models used by Ledger Bank.
Everything read from or written to the data files goes through these schemas.
"""

from ledger.models.banking import (
    Account,
    AccountType,
    HistoryEntry,
    Notification,
    NotificationPriority,
    NotificationType,
    OperationResult,
    Transaction,
    TransactionType,
    User,
    generate_account_number,
    generate_id,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Banking models
    "Account",
    "AccountType",
    "HistoryEntry",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "OperationResult",
    "Transaction",
    "TransactionType",
    "User",
    "generate_account_number",
    "generate_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
