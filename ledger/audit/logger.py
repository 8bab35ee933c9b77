"""
Audit Logger

DESIGN DECISION: Every balance change, every refused request and every
storage failure leaves an audit event. This gives us:
1. Traceability of every balance change
2. Debugging capability when a write fails
3. A record of rejected requests (overdraft attempts, failed logins)

Audit calls are awaited inline but never raise: if audit.json cannot be
written the event still reaches the structured log. Events of one form
submission share a correlation id.
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import AuditEvent, AuditEventBuilder
from ledger.services.storage import AuditStorageInterface


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# JSON log lines, configured on import
_configure_structlog()


def configure_logging(level: str = "INFO") -> None:
    """
    Route the structured log to stderr at the given level.

    Called once at application start-up.
    """
    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


class AuditLogger:
    """
    Writes audit events to the structured log and to audit storage.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Where events are persisted. Without one, events
                     only go to the structured log.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence must never fail the user's request
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_user_registered(
        self,
        user_id: str,
        email: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.user_registered(
            user_id=user_id,
            email=email,
            correlation_id=correlation_id,
        ))

    async def log_registration_rejected(
        self,
        email: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.registration_rejected(
            email=email,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_login(
        self,
        email: str,
        user_id: Optional[str],
        succeeded: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login(
            email=email,
            user_id=user_id,
            succeeded=succeeded,
            correlation_id=correlation_id,
        ))

    async def log_profile_updated(
        self,
        user_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.profile_updated(
            user_id=user_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_account_created(
        self,
        account_id: str,
        user_id: str,
        account_type: str,
        initial_deposit: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(
            account_id=account_id,
            user_id=user_id,
            account_type=account_type,
            initial_deposit=initial_deposit,
            correlation_id=correlation_id,
        ))

    async def log_account_rejected(
        self,
        user_id: str,
        reason: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_rejected(
            user_id=user_id,
            reason=reason,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_account_number_collision(
        self,
        account_number: str,
        attempt: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_number_collision(
            account_number=account_number,
            attempt=attempt,
            correlation_id=correlation_id,
        ))

    async def log_transaction_applied(
        self,
        transaction_id: str,
        account_id: str,
        user_id: str,
        transaction_type: str,
        amount: float,
        balance: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_applied(
            transaction_id=transaction_id,
            account_id=account_id,
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            balance=balance,
            correlation_id=correlation_id,
        ))

    async def log_transaction_rejected(
        self,
        user_id: str,
        account_id: str,
        reason: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_rejected(
            user_id=user_id,
            account_id=account_id,
            reason=reason,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_transaction_replayed(
        self,
        transaction_id: str,
        user_id: str,
        idempotency_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_replayed(
            transaction_id=transaction_id,
            user_id=user_id,
            idempotency_key=idempotency_key,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_journal_recovered(self, collections: list[str]) -> None:
        await self.log(AuditEventBuilder.journal_recovered(collections=collections))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a form submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
