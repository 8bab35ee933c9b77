"""
Ledger Mutator

The single entry point for deposits and withdrawals.

Checks run in this order, and the first failure is returned:
1. the account exists and belongs to the caller   -> "Account not found"
2. the amount is a number greater than zero       -> "Amount must be positive"
3. the type is deposit or withdrawal              -> "Invalid transaction type"
4. a withdrawal does not exceed the balance       -> "Insufficient funds"

CONCURRENCY: the balance check and the commit run while holding the
account's lock, so two simultaneous withdrawals cannot both pass the
check against the same balance. The storage primitive refuses to
overdraw as well.

IDEMPOTENCY: a request without an idempotency key is applied every
time it is submitted. Clients that may retry should send a key; a
second request with the same key returns the first transaction.
Keys are scoped to the user, not the account, so the store checks them
again inside the commit; a request that loses that race is answered
like a resubmission.
"""

from typing import Any, Optional
from uuid import UUID

from ledger.audit import AuditLogger
from ledger.models.banking import (
    MAX_IDEMPOTENCY_KEY_LENGTH,
    OperationResult,
    Transaction,
    TransactionType,
    parse_amount,
    to_cents,
)
from ledger.services.storage import (
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    OverdraftError,
    StorageError,
)


class LedgerMutator:
    """Applies deposits and withdrawals to accounts."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def apply(
        self,
        account_id: str,
        caller_user_id: str,
        transaction_type: Any,
        amount: Any,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """
        Apply one ledger entry on behalf of caller_user_id.

        Returns:
            OperationResult with the updated account and the new
            transaction on success, or the reason for refusal.
        """
        account = await self._storage.get_account(account_id)
        if account is None or account.user_id != caller_user_id:
            return await self._reject(caller_user_id, account_id, "Account not found", {}, correlation_id)

        value = parse_amount(amount)
        if value is None or to_cents(value) <= 0:
            return await self._reject(
                caller_user_id, account_id, "Amount must be positive",
                {"amount": str(amount)}, correlation_id,
            )
        value = to_cents(value)

        try:
            kind = TransactionType(transaction_type)
        except ValueError:
            return await self._reject(
                caller_user_id, account_id, "Invalid transaction type",
                {"type": str(transaction_type)}, correlation_id,
            )

        key = (idempotency_key or "").strip() or None
        if key and len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            return await self._reject(
                caller_user_id, account_id, "Idempotency key is too long",
                {"length": len(key)}, correlation_id,
            )

        async with self._storage.account_lock(account_id):
            if key:
                previous = await self._storage.find_transaction_by_idempotency_key(
                    caller_user_id, key
                )
                if previous is not None:
                    return await self._replay(previous, account_id, kind, value, key, correlation_id)

            # Re-read under the lock; the balance may have moved while we waited
            account = await self._storage.get_account(account_id)
            if account is None:
                return await self._reject(caller_user_id, account_id, "Account not found", {}, correlation_id)

            if kind is TransactionType.WITHDRAWAL and value > account.balance:
                return await self._reject(
                    caller_user_id, account_id, "Insufficient funds",
                    {"amount": value, "balance": account.balance}, correlation_id,
                )

            transaction = Transaction(
                account_id=account_id,
                user_id=caller_user_id,
                type=kind,
                amount=value,
                description=(description or "").strip() or f"{kind.value} transaction",
                idempotency_key=key,
            )

            try:
                updated = await self._storage.apply_ledger_entry(
                    account_id, transaction.signed_amount, transaction
                )
            except OverdraftError as e:
                return await self._reject(
                    caller_user_id, account_id, "Insufficient funds",
                    {"amount": value, "balance": e.balance}, correlation_id,
                )
            except NotFoundError:
                return await self._reject(caller_user_id, account_id, "Account not found", {}, correlation_id)
            except DuplicateError:
                # Same key committed meanwhile through another account's lock
                previous = await self._storage.find_transaction_by_idempotency_key(
                    caller_user_id, key
                )
                return await self._replay(previous, account_id, kind, value, key, correlation_id)
            except StorageError as e:
                if self._audit_logger:
                    await self._audit_logger.log_save_failed(
                        entity_type="transaction",
                        entity_id=transaction.id,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                return OperationResult.fail("Transaction could not be saved")

        if self._audit_logger:
            await self._audit_logger.log_transaction_applied(
                transaction_id=transaction.id,
                account_id=account_id,
                user_id=caller_user_id,
                transaction_type=kind.value,
                amount=value,
                balance=updated.balance,
                correlation_id=correlation_id,
            )

        return OperationResult.ok(account=updated, transaction=transaction)

    async def _replay(
        self,
        previous: Transaction,
        account_id: str,
        kind: TransactionType,
        value: float,
        key: str,
        correlation_id: Optional[UUID],
    ) -> OperationResult:
        """Answer a resubmitted request from the transaction it already produced."""
        if (
            previous.account_id != account_id
            or previous.type is not kind
            or previous.amount != value
        ):
            return await self._reject(
                previous.user_id, account_id,
                "Idempotency key was already used for a different transaction",
                {"idempotency_key": key}, correlation_id,
            )

        if self._audit_logger:
            await self._audit_logger.log_transaction_replayed(
                transaction_id=previous.id,
                user_id=previous.user_id,
                idempotency_key=key,
                correlation_id=correlation_id,
            )

        account = await self._storage.get_account(account_id)
        return OperationResult.ok(account=account, transaction=previous, replayed=True)

    async def _reject(
        self,
        user_id: str,
        account_id: str,
        reason: str,
        details: dict,
        correlation_id: Optional[UUID],
    ) -> OperationResult:
        if self._audit_logger:
            await self._audit_logger.log_transaction_rejected(
                user_id=user_id,
                account_id=account_id,
                reason=reason,
                details=details,
                correlation_id=correlation_id,
            )
        return OperationResult.fail(reason)
