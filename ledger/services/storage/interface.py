"""
Abstract Storage Interface

DESIGN DECISION: Business logic talks to storage only through these
interfaces. This allows us to:
1. Keep the JSON data files today and move to a database later
2. Point tests at a temporary directory
3. Keep the one balance-mutation primitive in a single place

The ledger interface deliberately has no "update account" operation.
Balances change only through apply_ledger_entry, which records the
matching transaction in the same commit.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Iterable, Optional
from uuid import UUID

from ledger.models.audit import AuditEvent
from ledger.models.banking import Account, Notification, Transaction, User


class UserStorageInterface(ABC):
    """Storage for registered users."""

    @abstractmethod
    async def add_user(self, user: User) -> User:
        """
        Persist a new user.

        Raises:
            DuplicateError: If the email is already registered
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        """Return the user with this id, or None."""
        pass

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[User]:
        """Return the user registered with this email (case-insensitive), or None."""
        pass

    @abstractmethod
    async def update_user(self, user: User) -> User:
        """
        Replace a stored user.

        Raises:
            NotFoundError: If the user doesn't exist
            DuplicateError: If the new email belongs to another user
            StorageError: If the write fails
        """
        pass


class LedgerStorageInterface(ABC):
    """
    Storage for accounts and their transactions.

    Implementations must make open_account and apply_ledger_entry
    atomic: the account row and its transaction row are either both
    persisted or neither is.
    """

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        """Return the account with this id, or None."""
        pass

    @abstractmethod
    async def list_accounts(self, user_id: Optional[str] = None) -> list[Account]:
        """
        List accounts in insertion order.

        Args:
            user_id: Only return accounts owned by this user
        """
        pass

    @abstractmethod
    async def account_number_exists(self, account_number: str) -> bool:
        """Check whether an account number is already assigned."""
        pass

    @abstractmethod
    async def open_account(
        self,
        account: Account,
        initial_transaction: Optional[Transaction] = None,
    ) -> Account:
        """
        Persist a new account together with its opening transaction.

        Raises:
            DuplicateError: If the account number is already assigned
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def apply_ledger_entry(
        self,
        account_id: str,
        delta: float,
        transaction: Transaction,
    ) -> Account:
        """
        Change an account balance by delta and append the transaction.

        This is the only way a balance changes after opening.

        Returns:
            The account with its new balance

        Raises:
            NotFoundError: If the account doesn't exist
            OverdraftError: If the new balance would be negative
            DuplicateError: If the user already has a transaction with the
                same idempotency key
            StorageError: If the write fails (nothing is changed)
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        account_ids: Optional[Iterable[str]] = None,
    ) -> list[Transaction]:
        """
        List transactions in the order they were recorded.

        Args:
            account_ids: Only return transactions of these accounts
        """
        pass

    @abstractmethod
    async def find_transaction_by_idempotency_key(
        self,
        user_id: str,
        idempotency_key: str,
    ) -> Optional[Transaction]:
        """Return the transaction a user previously submitted under this key."""
        pass

    @abstractmethod
    def account_lock(self, account_id: str) -> asyncio.Lock:
        """
        Lock serializing mutations of one account.

        Callers hold it across their read-check-apply sequence.
        """
        pass


class NotificationStorageInterface(ABC):
    """Storage for user notifications."""

    @abstractmethod
    async def add_notification(self, notification: Notification) -> Notification:
        pass

    @abstractmethod
    async def list_notifications(self, user_id: str) -> list[Notification]:
        """All notifications of a user in the order they were created."""
        pass

    @abstractmethod
    async def set_read(
        self,
        user_id: str,
        notification_id: str,
        read: bool,
    ) -> Notification:
        """
        Mark a notification read or unread.

        Raises:
            NotFoundError: If the user has no such notification
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class OverdraftError(StorageError):
    """A ledger entry would take the balance below zero."""

    def __init__(self, account_id: str, balance: float, delta: float):
        self.account_id = account_id
        self.balance = balance
        self.delta = delta
        super().__init__(
            f"Entry of {delta:.2f} would overdraw account {account_id} (balance {balance:.2f})"
        )
