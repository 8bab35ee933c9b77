"""
Core Data Models for Ledger Bank

These models define the records held in the flat-file store:
users, accounts, transactions and notifications.

They are designed to:
1. Round-trip through the JSON files using the camelCase keys
   the files have always used (userId, accountNumber, createdAt, ...)
2. Reject malformed values at the boundary instead of deep in the ledger
3. Carry the string-valued success/error contract back to callers

DESIGN DECISION: Balances and amounts stay floats, rounded to cents
after every mutation. The data files already hold floats and the
accounts are single-currency.
"""

import math
import secrets
import string
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


_ID_ALPHABET = string.ascii_lowercase + string.digits

MAX_IDEMPOTENCY_KEY_LENGTH = 200


def generate_id() -> str:
    """Opaque 9-character base-36 record id."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))


def generate_account_number(digits: int = 10) -> str:
    """Random decimal account number. Uniqueness is checked by the registry."""
    return "".join(secrets.choice(string.digits) for _ in range(digits))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_cents(value: float) -> float:
    return round(value, 2)


def parse_amount(value: Any) -> Optional[float]:
    """
    Read a form amount. Returns None for anything that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount):
        return None
    return amount


# =============================================================================
# ENUMS
# =============================================================================

class AccountType(str, Enum):
    """Account products on offer."""
    CHECKING = "Checking"
    SAVINGS = "Savings"


class TransactionType(str, Enum):
    """
    Direction of a ledger entry.

    Amounts are always positive; the type carries the sign.
    """
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    @property
    def sign(self) -> int:
        return 1 if self is TransactionType.DEPOSIT else -1


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# STORED RECORDS
# =============================================================================

class StoredRecord(BaseModel):
    """
    Base for everything persisted in a JSON array.

    Field names are snake_case in Python and camelCase on disk.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        default_factory=generate_id,
        min_length=1,
        description="Opaque record id"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the record was created (UTC)"
    )

    @field_validator('created_at')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Older rows may carry naive timestamps; they were written in UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_record(self) -> dict:
        """Serialize to the JSON object written to disk."""
        return self.model_dump(mode="json", by_alias=True)


class User(StoredRecord):
    """
    A registered customer.

    NOTE: The password is stored as entered. Accounts in the existing
    data files were created that way and login compares plaintext.
    """

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr = Field(..., description="Unique login email")
    phone: Optional[str] = Field(default=None, max_length=40)
    password: str = Field(..., min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Account(StoredRecord):
    """
    A Checking or Savings account owned by exactly one user.

    The balance is only ever changed through the ledger primitive
    of the storage layer.
    """

    user_id: str = Field(..., min_length=1, description="Owning user id")
    account_number: str = Field(
        ...,
        pattern=r"^\d+$",
        description="Display account number"
    )
    account_type: AccountType
    balance: float = Field(default=0.0, description="Current balance in dollars")

    @field_validator('balance')
    @classmethod
    def balance_is_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Balance must be a finite number")
        return to_cents(v)

    @property
    def masked_number(self) -> str:
        return f"****{self.account_number[-4:]}"


class Transaction(StoredRecord):
    """
    One immutable ledger entry.

    Entries are append-only. A mistake is corrected by appending
    an offsetting entry, never by editing this record.
    """

    account_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    type: TransactionType
    amount: float = Field(..., gt=0, description="Positive magnitude of the entry")
    description: str = Field(default="")
    idempotency_key: Optional[str] = Field(
        default=None,
        max_length=MAX_IDEMPOTENCY_KEY_LENGTH,
        description="Client-supplied key that makes resubmission safe"
    )

    @field_validator('amount')
    @classmethod
    def amount_is_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Amount must be a finite number")
        return v

    @property
    def signed_amount(self) -> float:
        return self.type.sign * self.amount


class HistoryEntry(Transaction):
    """A transaction decorated with its account's display number."""

    account_number: str = Field(default="Unknown")


class Notification(StoredRecord):
    """A message shown in the user's notification center."""

    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    type: NotificationType = NotificationType.INFO
    priority: NotificationPriority = NotificationPriority.MEDIUM
    read: bool = False


# =============================================================================
# RESULTS
# =============================================================================

class OperationResult(BaseModel):
    """
    Outcome of a service call.

    Failures carry a human-readable error string that is shown to
    the user as-is. There are no error codes.
    """

    success: bool
    error: Optional[str] = None

    # Payload, depending on the operation
    user: Optional[User] = None
    account: Optional[Account] = None
    transaction: Optional[Transaction] = None
    notification: Optional[Notification] = None
    token: Optional[str] = None

    # True when an idempotency key matched an earlier request
    replayed: bool = False

    @classmethod
    def ok(cls, **payload) -> "OperationResult":
        return cls(success=True, **payload)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)

    def to_response(self) -> dict:
        """The {success, error?} shape returned by the form endpoints."""
        response = {"success": self.success}
        if self.error is not None:
            response["error"] = self.error
        return response
