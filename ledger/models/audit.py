"""
Audit Models for Ledger Bank

Every balance change, account opening and sign-in attempt is logged.
This provides:
1. Traceability of who moved money where
2. Debugging information when a write fails
3. A record of rejected requests, not only accepted ones

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Identity
    USER_REGISTERED = "user_registered"
    REGISTRATION_REJECTED = "registration_rejected"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    PROFILE_UPDATED = "profile_updated"

    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_REJECTED = "account_rejected"
    ACCOUNT_NUMBER_COLLISION = "account_number_collision"

    # Ledger
    TRANSACTION_APPLIED = "transaction_applied"
    TRANSACTION_REJECTED = "transaction_rejected"
    TRANSACTION_REPLAYED = "transaction_replayed"

    # Storage
    JOURNAL_RECOVERED = "journal_recovered"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'user')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="User on whose behalf the action ran"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one form submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_record(self) -> dict:
        """Convert to the JSON object appended to audit.json."""
        return self.model_dump(mode="json")


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account, correlation_id)
        event = AuditEventBuilder.transaction_rejected(user_id, account_id, reason, correlation_id)
    """

    @staticmethod
    def user_registered(
        user_id: str,
        email: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"User registered: {email}",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def registration_rejected(
        email: str,
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            correlation_id=correlation_id,
            description=f"Registration rejected: {reason}",
            details={"email": email, "reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def login(
        email: str,
        user_id: Optional[str],
        succeeded: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.LOGIN_SUCCEEDED
                if succeeded
                else AuditEventType.LOGIN_FAILED
            ),
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Login {'succeeded' if succeeded else 'failed'} for {email}",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def profile_updated(
        user_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Profile updated: {', '.join(fields) or 'no changes'}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def account_created(
        account_id: str,
        user_id: str,
        account_type: str,
        initial_deposit: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{account_type} account opened with ${initial_deposit:,.2f}",
            details={
                "account_type": account_type,
                "initial_deposit": initial_deposit,
            },
            is_user_action=True,
        )

    @staticmethod
    def account_rejected(
        user_id: str,
        reason: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Account opening rejected: {reason}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def account_number_collision(
        account_number: str,
        attempt: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_NUMBER_COLLISION,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            correlation_id=correlation_id,
            description=f"Generated account number already in use (attempt {attempt})",
            details={"account_number": account_number, "attempt": attempt},
        )

    @staticmethod
    def transaction_applied(
        transaction_id: str,
        account_id: str,
        user_id: str,
        transaction_type: str,
        amount: float,
        balance: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_APPLIED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} of ${amount:,.2f} applied",
            details={
                "account_id": account_id,
                "type": transaction_type,
                "amount": amount,
                "balance_after": balance,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        user_id: str,
        account_id: str,
        reason: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Transaction rejected: {reason}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def transaction_replayed(
        transaction_id: str,
        user_id: str,
        idempotency_key: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REPLAYED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Duplicate submission answered from an earlier transaction",
            details={"idempotency_key": idempotency_key},
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Failed to persist {entity_type}",
            error_message=error_message,
        )

    @staticmethod
    def journal_recovered(
        collections: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.JOURNAL_RECOVERED,
            severity=AuditSeverity.WARNING,
            entity_type="storage",
            description="Interrupted commit replayed from journal",
            details={"collections": collections},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
