"""
Account Registry

Opens accounts and looks them up.

Opening rules:
- account type must be Checking or Savings
- the opening deposit must be a non-negative number
- Checking needs at least $25, Savings at least $500 (configurable)
- a positive opening deposit is recorded as an "Initial deposit"
  transaction in the same commit as the account itself

Account numbers are random. A number that is already assigned is
never reused: a fresh one is drawn, a bounded number of times.
"""

from typing import Any, Callable, Optional
from uuid import UUID

from ledger.audit import AuditLogger
from ledger.config import BankingSettings, get_settings
from ledger.models.banking import (
    Account,
    AccountType,
    OperationResult,
    Transaction,
    TransactionType,
    generate_account_number,
    generate_id,
    parse_amount,
    to_cents,
    utcnow,
)
from ledger.services.storage import (
    DuplicateError,
    LedgerStorageInterface,
    StorageError,
)


INITIAL_DEPOSIT_DESCRIPTION = "Initial deposit"


class AccountRegistry:
    """Creates and finds accounts."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[BankingSettings] = None,
        number_factory: Callable[[int], str] = generate_account_number,
    ):
        """
        Args:
            storage: Ledger storage holding accounts and transactions
            audit_logger: Where openings and rejections are recorded
            settings: Deposit minimums and numbering policy
            number_factory: Produces a candidate account number of the given length
        """
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().banking
        self._number_factory = number_factory

    def minimum_deposit(self, account_type: AccountType) -> float:
        if account_type is AccountType.SAVINGS:
            return self._settings.savings_minimum_deposit
        return self._settings.checking_minimum_deposit

    async def create(
        self,
        user_id: str,
        account_type: Any,
        initial_deposit: Any,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """
        Open an account for user_id.

        account_type and initial_deposit are taken as submitted by the
        form (strings are fine) and validated here.
        """
        try:
            kind = AccountType(account_type)
        except ValueError:
            return await self._reject(
                user_id,
                "Please select a valid account type",
                {"account_type": str(account_type)},
                correlation_id,
            )

        deposit = parse_amount(initial_deposit)
        if deposit is None or deposit < 0:
            return await self._reject(
                user_id,
                "Initial deposit must be a positive number",
                {"initial_deposit": str(initial_deposit)},
                correlation_id,
            )
        deposit = to_cents(deposit)

        minimum = self.minimum_deposit(kind)
        if deposit < minimum:
            return await self._reject(
                user_id,
                f"{kind.value} accounts require a minimum deposit of ${minimum:g}",
                {"account_type": kind.value, "initial_deposit": deposit},
                correlation_id,
            )

        for attempt in range(1, self._settings.account_number_attempts + 1):
            number = self._number_factory(self._settings.account_number_digits)
            if await self._storage.account_number_exists(number):
                await self._log_collision(number, attempt, correlation_id)
                continue

            account, opening = self._build(user_id, kind, deposit, number)
            try:
                await self._storage.open_account(account, opening)
            except DuplicateError:
                # Another request took the number between the check and the commit
                await self._log_collision(number, attempt, correlation_id)
                continue
            except StorageError as e:
                if self._audit_logger:
                    await self._audit_logger.log_save_failed(
                        entity_type="account",
                        entity_id=account.id,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                return OperationResult.fail("Account could not be saved")

            if self._audit_logger:
                await self._audit_logger.log_account_created(
                    account_id=account.id,
                    user_id=user_id,
                    account_type=kind.value,
                    initial_deposit=deposit,
                    correlation_id=correlation_id,
                )
            return OperationResult.ok(account=account, transaction=opening)

        return await self._reject(
            user_id,
            "Could not allocate an account number",
            {"attempts": self._settings.account_number_attempts},
            correlation_id,
        )

    def _build(
        self,
        user_id: str,
        kind: AccountType,
        deposit: float,
        number: str,
    ) -> tuple[Account, Optional[Transaction]]:
        now = utcnow()
        account = Account(
            id=generate_id(),
            user_id=user_id,
            account_number=number,
            account_type=kind,
            balance=deposit,
            created_at=now,
        )
        opening = None
        if deposit > 0:
            opening = Transaction(
                account_id=account.id,
                user_id=user_id,
                type=TransactionType.DEPOSIT,
                amount=deposit,
                description=INITIAL_DEPOSIT_DESCRIPTION,
                created_at=now,
            )
        return account, opening

    async def list_by_owner(self, user_id: str) -> list[Account]:
        """The user's accounts in the order they were opened."""
        return await self._storage.list_accounts(user_id=user_id)

    async def get(self, account_id: str, user_id: str) -> Optional[Account]:
        """The account, if it exists and belongs to user_id."""
        account = await self._storage.get_account(account_id)
        if account is None or account.user_id != user_id:
            return None
        return account

    async def _reject(
        self,
        user_id: str,
        reason: str,
        details: dict,
        correlation_id: Optional[UUID],
    ) -> OperationResult:
        if self._audit_logger:
            await self._audit_logger.log_account_rejected(
                user_id=user_id,
                reason=reason,
                details=details,
                correlation_id=correlation_id,
            )
        return OperationResult.fail(reason)

    async def _log_collision(
        self,
        number: str,
        attempt: int,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_account_number_collision(
                account_number=number,
                attempt=attempt,
                correlation_id=correlation_id,
            )
