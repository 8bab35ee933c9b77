"""
Notification Center

Short messages shown to a user: account openings, deposits,
withdrawals and anything else posted on their behalf.
"""

from typing import Optional

from pydantic import ValidationError

from ledger.models.banking import (
    Account,
    Notification,
    NotificationPriority,
    NotificationType,
    OperationResult,
    Transaction,
    TransactionType,
)
from ledger.services.storage import (
    NotFoundError,
    NotificationStorageInterface,
    StorageError,
)


# How many notifications the center shows
LATEST_LIMIT = 20


class NotificationCenter:
    """Creates, lists and marks notifications."""

    def __init__(self, storage: NotificationStorageInterface):
        self._storage = storage

    async def list_for(self, user_id: str, limit: int = LATEST_LIMIT) -> list[Notification]:
        """The user's latest notifications, newest first."""
        notifications = await self._storage.list_notifications(user_id)
        ordered = sorted(
            enumerate(notifications),
            key=lambda pair: (pair[1].created_at, pair[0]),
            reverse=True,
        )
        return [n for _, n in ordered][:limit]

    async def unread_count(self, user_id: str) -> int:
        return sum(1 for n in await self._storage.list_notifications(user_id) if not n.read)

    async def create(
        self,
        user_id: str,
        title: Optional[str],
        message: Optional[str],
        type: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> OperationResult:
        if not (title or "").strip() or not (message or "").strip():
            return OperationResult.fail("Title and message are required")

        try:
            notification = Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=type or NotificationType.INFO,
                priority=priority or NotificationPriority.MEDIUM,
            )
        except ValidationError:
            return OperationResult.fail("Invalid notification data")

        try:
            await self._storage.add_notification(notification)
        except StorageError:
            return OperationResult.fail("Notification could not be saved")

        return OperationResult.ok(notification=notification)

    async def mark_read(
        self,
        user_id: str,
        notification_id: str,
        read: bool = True,
    ) -> OperationResult:
        try:
            notification = await self._storage.set_read(user_id, notification_id, read)
        except NotFoundError:
            return OperationResult.fail("Notification not found")
        except StorageError:
            return OperationResult.fail("Notification could not be saved")
        return OperationResult.ok(notification=notification)

    async def notify_transaction(self, account: Account, transaction: Transaction) -> OperationResult:
        """Tell the owner about a ledger entry on one of their accounts."""
        if transaction.type is TransactionType.DEPOSIT:
            title = "Deposit received"
            kind = NotificationType.SUCCESS
        else:
            title = "Withdrawal made"
            kind = NotificationType.INFO

        return await self.create(
            user_id=account.user_id,
            title=title,
            message=(
                f"${transaction.amount:,.2f} {transaction.type.value} on account "
                f"{account.masked_number}. New balance: ${account.balance:,.2f}"
            ),
            type=kind,
        )

    async def notify_account_opened(self, account: Account) -> OperationResult:
        return await self.create(
            user_id=account.user_id,
            title="Account opened",
            message=(
                f"Your {account.account_type.value} account {account.masked_number} "
                f"is ready with a balance of ${account.balance:,.2f}"
            ),
            type=NotificationType.SUCCESS,
        )
