"""
History Projector

Rebuilds a user's statement from the transaction log.

Only transactions of accounts the user owns are returned, newest first,
each labelled with its account number. Read-only.
"""

from typing import Optional

from ledger.models.banking import HistoryEntry, Transaction
from ledger.services.storage import LedgerStorageInterface


UNKNOWN_ACCOUNT_NUMBER = "Unknown"


def newest_first(transactions: list[Transaction]) -> list[Transaction]:
    """Sort by creation time, descending. Later-recorded entries win ties."""
    ordered = sorted(
        enumerate(transactions),
        key=lambda pair: (pair[1].created_at, pair[0]),
        reverse=True,
    )
    return [transaction for _, transaction in ordered]


class HistoryProjector:
    """Builds transaction statements."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def history_for(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[HistoryEntry]:
        """
        The user's full statement, newest first.

        Args:
            user_id: Owner whose accounts are included
            limit: Return only the most recent entries
        """
        accounts = await self._storage.list_accounts(user_id=user_id)
        numbers = {account.id: account.account_number for account in accounts}
        if not numbers:
            return []

        transactions = newest_first(
            await self._storage.list_transactions(account_ids=numbers.keys())
        )
        if limit is not None:
            transactions = transactions[:max(limit, 0)]

        return [
            HistoryEntry(
                **transaction.model_dump(),
                account_number=numbers.get(transaction.account_id, UNKNOWN_ACCOUNT_NUMBER),
            )
            for transaction in transactions
        ]

    async def recent_for_account(
        self,
        user_id: str,
        account_id: str,
        limit: int = 3,
    ) -> list[HistoryEntry]:
        """The latest entries of one of the user's accounts."""
        history = await self.history_for(user_id)
        return [entry for entry in history if entry.account_id == account_id][:limit]
