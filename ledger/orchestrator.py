"""
Main Orchestrator for Ledger Bank

This module ties together all the components and defines the
operations the front end calls:
1. Identity (register, login, logout, profile)
2. Accounts (open, list)
3. Ledger (submit a deposit or withdrawal)
4. Statements (transaction history)
5. Notifications

Every operation takes the session token from the cookie and resolves
it first. Mutations by an unknown session are refused with
"Not authenticated"; reads by an unknown session return nothing.

DESIGN DECISION: The orchestrator owns no business rules. It resolves
the caller, hands over to the component that owns the rule, and does
the follow-up work (notifications, audit correlation).
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from ledger.audit import AuditLogger, configure_logging, create_correlation_id
from ledger.auth import SessionManager, UserDirectory
from ledger.banking import AccountRegistry, HistoryProjector, LedgerMutator
from ledger.config import BankingSettings, Settings, get_settings, validate_all_settings
from ledger.models.banking import (
    Account,
    HistoryEntry,
    Notification,
    OperationResult,
    User,
)
from ledger.notifications import NotificationCenter
from ledger.services.storage import (
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
    JsonFileNotificationStorage,
    JsonFileStore,
    JsonFileUserStorage,
)


logger = structlog.get_logger(__name__)

NOT_AUTHENTICATED = "Not authenticated"


class BankingService:
    """
    Transport-agnostic surface of the bank.

    Results use the {success, error} contract of OperationResult.
    """

    def __init__(
        self,
        sessions: SessionManager,
        users: UserDirectory,
        registry: AccountRegistry,
        mutator: LedgerMutator,
        history: HistoryProjector,
        notifications: NotificationCenter,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[BankingSettings] = None,
        recovered_collections: Optional[list[str]] = None,
    ):
        self._sessions = sessions
        self._users = users
        self._registry = registry
        self._mutator = mutator
        self._history = history
        self._notifications = notifications
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().banking
        self._recovered = list(recovered_collections or [])

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    async def startup(self) -> None:
        """Record start-up findings (e.g. a replayed journal) in the audit trail."""
        if self._recovered and self._audit_logger:
            await self._audit_logger.log_journal_recovered(self._recovered)
        self._recovered = []

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    async def current_user(self, token: Optional[str]) -> Optional[User]:
        return await self._sessions.resolve(token)

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: Optional[str],
        password: str,
        confirm_password: str,
    ) -> OperationResult:
        return await self._users.register(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            password=password,
            confirm_password=confirm_password,
            correlation_id=create_correlation_id(),
        )

    async def login(self, email: str, password: str) -> OperationResult:
        """On success the result carries the token to store in the session cookie."""
        return await self._users.login(
            email=email,
            password=password,
            correlation_id=create_correlation_id(),
        )

    async def logout(self, token: Optional[str]) -> OperationResult:
        """
        End a session.

        Sessions are not stored server-side; the transport deletes the
        cookie. This only records who left.
        """
        user = await self._sessions.resolve(token)
        logger.info("logout", user_id=user.id if user else None)
        return OperationResult.ok()

    async def update_profile(
        self,
        token: Optional[str],
        changes: dict[str, Any],
    ) -> OperationResult:
        user = await self._sessions.resolve(token)
        if user is None:
            return OperationResult.fail(NOT_AUTHENTICATED)
        return await self._users.update_profile(
            user.id, changes, correlation_id=create_correlation_id()
        )

    # -------------------------------------------------------------------------
    # Accounts and ledger
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        token: Optional[str],
        account_type: Any,
        initial_deposit: Any,
    ) -> OperationResult:
        user = await self._sessions.resolve(token)
        if user is None:
            return OperationResult.fail(NOT_AUTHENTICATED)

        correlation_id = create_correlation_id()
        result = await self._registry.create(
            user.id, account_type, initial_deposit, correlation_id=correlation_id
        )
        if result.success and self._settings.notify_on_transaction:
            await self._notify(
                self._notifications.notify_account_opened(result.account),
                correlation_id,
            )
        return result

    async def submit_transaction(
        self,
        token: Optional[str],
        account_id: str,
        transaction_type: Any,
        amount: Any,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> OperationResult:
        user = await self._sessions.resolve(token)
        if user is None:
            return OperationResult.fail(NOT_AUTHENTICATED)

        correlation_id = create_correlation_id()
        result = await self._mutator.apply(
            account_id=account_id,
            caller_user_id=user.id,
            transaction_type=transaction_type,
            amount=amount,
            description=description,
            idempotency_key=idempotency_key,
            correlation_id=correlation_id,
        )
        if result.success and not result.replayed and self._settings.notify_on_transaction:
            await self._notify(
                self._notifications.notify_transaction(result.account, result.transaction),
                correlation_id,
            )
        return result

    async def get_accounts(self, token: Optional[str]) -> list[Account]:
        user = await self._sessions.resolve(token)
        if user is None:
            return []
        return await self._registry.list_by_owner(user.id)

    async def get_history(
        self,
        token: Optional[str],
        limit: Optional[int] = None,
    ) -> list[HistoryEntry]:
        user = await self._sessions.resolve(token)
        if user is None:
            return []
        return await self._history.history_for(user.id, limit=limit)

    async def get_recent_for_account(
        self,
        token: Optional[str],
        account_id: str,
        limit: int = 3,
    ) -> list[HistoryEntry]:
        user = await self._sessions.resolve(token)
        if user is None:
            return []
        return await self._history.recent_for_account(user.id, account_id, limit=limit)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def get_notifications(self, token: Optional[str]) -> list[Notification]:
        user = await self._sessions.resolve(token)
        if user is None:
            return []
        return await self._notifications.list_for(user.id)

    async def create_notification(
        self,
        token: Optional[str],
        title: Optional[str],
        message: Optional[str],
        type: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> OperationResult:
        user = await self._sessions.resolve(token)
        if user is None:
            return OperationResult.fail(NOT_AUTHENTICATED)
        return await self._notifications.create(user.id, title, message, type, priority)

    async def mark_notification_read(
        self,
        token: Optional[str],
        notification_id: str,
        read: bool = True,
    ) -> OperationResult:
        user = await self._sessions.resolve(token)
        if user is None:
            return OperationResult.fail(NOT_AUTHENTICATED)
        return await self._notifications.mark_read(user.id, notification_id, read)

    async def _notify(self, pending, correlation_id: UUID) -> None:
        """Post a notification; a failure here never undoes the operation."""
        result = await pending
        if not result.success and self._audit_logger:
            await self._audit_logger.log_error(
                error_type="notification_failed",
                error_message=result.error or "",
                correlation_id=correlation_id,
            )


def create_app_components(
    settings: Optional[Settings] = None,
    data_dir: Optional[str] = None,
) -> BankingService:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use instead of the cached environment settings
        data_dir: Overrides the configured data directory (e.g. in tests)

    Returns:
        A ready BankingService. Call startup() once before serving.

    Raises:
        ValueError: If any settings section fails validation
    """
    settings = settings or get_settings()

    status = validate_all_settings(settings)
    invalid = {
        name: status[f"{name}_error"]
        for name in ("storage", "banking", "session", "app")
        if not status[name]
    }
    if invalid:
        logger.error("settings_invalid", sections=invalid)
        raise ValueError(
            "Invalid configuration: "
            + "; ".join(f"{name}: {error}" for name, error in invalid.items())
        )

    app_settings = settings.app
    storage_settings = settings.storage
    banking_settings = settings.banking
    session_settings = settings.session

    configure_logging(app_settings.log_level)

    store = JsonFileStore(data_dir=data_dir, settings=storage_settings)
    user_storage = JsonFileUserStorage(store)
    ledger_storage = JsonFileLedgerStorage(store)
    notification_storage = JsonFileNotificationStorage(store)
    audit_logger = AuditLogger(JsonFileAuditStorage(store))

    sessions = SessionManager(
        user_storage,
        settings=session_settings,
        secure_cookies=app_settings.is_production,
    )

    logger.info(
        "components_created",
        data_dir=str(store.data_dir),
        session_mode=session_settings.mode,
        environment=app_settings.app_environment,
    )

    return BankingService(
        sessions=sessions,
        users=UserDirectory(user_storage, sessions, audit_logger),
        registry=AccountRegistry(ledger_storage, audit_logger, settings=banking_settings),
        mutator=LedgerMutator(ledger_storage, audit_logger),
        history=HistoryProjector(ledger_storage),
        notifications=NotificationCenter(notification_storage),
        audit_logger=audit_logger,
        settings=banking_settings,
        recovered_collections=store.recovered,
    )
