"""
JSON File Storage Implementation

DESIGN DECISION: Data lives in one JSON array per collection
(users.json, accounts.json, transactions.json, notifications.json,
audit.json) because:
1. The existing data directory already uses this layout
2. Anyone can open the files and read their own history
3. No database setup required for a demo bank

TRADEOFFS:
- Every write rewrites a whole file (fine at demo volumes)
- Filtering happens in Python

What the plain layout does NOT give us, and this module adds:
- Atomic files: each file is written to a temp file and os.replace()d
- Atomic commits across files: a commit touching several files is first
  written to ledger.journal; the journal is the commit point and is
  replayed on start-up if the process died half-way
- Memory follows disk: in-memory rows are swapped only after the write
  succeeded, so a failed write changes nothing
- One writer at a time: commits are serialized by a lock, and every
  account has its own lock for read-check-apply sequences
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, TypeVar
from uuid import UUID
from weakref import WeakValueDictionary

import structlog
from pydantic import BaseModel, ValidationError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.config import StorageSettings, get_settings
from ledger.models.audit import AuditEvent
from ledger.models.banking import Account, Notification, Transaction, User, to_cents
from ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    NotificationStorageInterface,
    OverdraftError,
    StorageError,
    UserStorageInterface,
)


# Collection names (file stems)
USERS = "users"
ACCOUNTS = "accounts"
TRANSACTIONS = "transactions"
NOTIFICATIONS = "notifications"
AUDIT = "audit"

JOURNAL_FILE = "ledger.journal"

logger = structlog.get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class JsonFileStore:
    """
    Low-level collection store shared by the typed storages below.

    Rows are kept as the JSON dicts found on disk. Rows are never edited
    in place: a change replaces the dict at its index, so a shallow copy
    of a collection is a safe staging area.
    """

    def __init__(
        self,
        data_dir: Optional[str] = None,
        settings: Optional[StorageSettings] = None,
    ):
        self._settings = settings or get_settings().storage
        self._dir = Path(data_dir or self._settings.data_dir)
        self._collections: dict[str, list[dict]] = {}
        # Collections whose file may lag behind memory after a partial commit
        self._dirty: set[str] = set()
        self._commit_lock = asyncio.Lock()

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self._dir}: {e}")

        self.recovered: list[str] = self._recover_journal()

    @property
    def data_dir(self) -> Path:
        return self._dir

    def path_for(self, name: str) -> Path:
        return self._dir / f"{name}.json"

    @property
    def journal_path(self) -> Path:
        return self._dir / JOURNAL_FILE

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def rows(self, name: str) -> list[dict]:
        """
        Current rows of a collection. Callers must not modify them.

        Raises:
            StorageError: If the collection file cannot be created or read
        """
        if name not in self._collections:
            try:
                self._collections[name] = self._load(name)
            except OSError as e:
                raise StorageError(f"Failed to load {name}: {e}") from e
        return self._collections[name]

    def _load(self, name: str) -> list[dict]:
        path = self.path_for(name)
        if not path.exists():
            self._write_json(path, [])
            return []

        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self._quarantine(path, str(e))
            return []

        if not isinstance(data, list):
            self._quarantine(path, f"expected a JSON array, got {type(data).__name__}")
            return []

        return data

    def _quarantine(self, path: Path, reason: str) -> None:
        """Move an unreadable file aside so the next write can't destroy it."""
        target = path.with_name(path.name + ".corrupt")
        logger.error(
            "collection_unreadable",
            path=str(path),
            moved_to=str(target),
            error=reason,
        )
        try:
            path.replace(target)
        except OSError as e:
            raise StorageError(f"Cannot move unreadable file {path} aside: {e}")

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def _write_json(self, path: Path, data: Any) -> None:
        """Atomically replace a file, retrying transient OS errors."""
        for attempt in Retrying(
            stop=stop_after_attempt(self._settings.write_retries),
            wait=wait_exponential(multiplier=0.05, max=1),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        ):
            with attempt:
                tmp = path.with_name(path.name + ".tmp")
                with tmp.open("w", encoding="utf-8") as f:
                    json.dump(data, f, indent=self._settings.json_indent or None)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, path)

    def _persist(self, staged: dict[str, list[dict]]) -> None:
        """
        Write staged collections to disk.

        A single file is its own commit. Several files go through the
        journal first; once the journal is on disk the commit stands.
        """
        if len(staged) == 1:
            [(name, data)] = staged.items()
            self._write_json(self.path_for(name), data)
            return

        self._write_json(self.journal_path, {"collections": staged})
        try:
            for name, data in staged.items():
                self._write_json(self.path_for(name), data)
        except OSError as e:
            # Committed via the journal; the next commit or restart repairs the files
            logger.error(
                "commit_incomplete",
                collections=sorted(staged),
                error=str(e),
            )
            self._dirty.update(staged)
            return

        self.journal_path.unlink(missing_ok=True)
        self._dirty.difference_update(staged)

    async def update(
        self,
        names: Iterable[str],
        mutate: Callable[[dict[str, list[dict]]], T],
    ) -> T:
        """
        Change one or more collections as a single commit.

        mutate receives shallow copies of the named collections, edits
        them (append rows, or replace rows by index) and returns a value
        that is passed back to the caller. If mutate raises, nothing is
        written. If the write fails, StorageError is raised and memory
        is left as it was.
        """
        async with self._commit_lock:
            names = set(names)
            staged = {name: list(self.rows(name)) for name in names}
            result = mutate(staged)

            for name in self._dirty - names:
                staged[name] = self.rows(name)

            try:
                await asyncio.to_thread(self._persist, staged)
            except OSError as e:
                raise StorageError(
                    f"Failed to write {', '.join(sorted(staged))}: {e}"
                ) from e

            self._collections.update(staged)
            return result

    def _recover_journal(self) -> list[str]:
        """Finish a multi-file commit interrupted by a crash."""
        path = self.journal_path
        if not path.exists():
            return []

        try:
            with path.open(encoding="utf-8") as f:
                collections = json.load(f)["collections"]
            items = list(collections.items())
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("journal_unreadable", path=str(path), error=str(e))
            path.replace(path.with_name(path.name + ".corrupt"))
            return []

        for name, data in items:
            self._write_json(self.path_for(name), data)
        path.unlink()

        recovered = sorted(collections)
        logger.warning("journal_recovered", collections=recovered)
        return recovered


def _parse_rows(rows: list[dict], model: type[M], collection: str) -> list[M]:
    """Validate rows, skipping (and logging) any the model rejects."""
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(
                "invalid_row_skipped",
                collection=collection,
                row_id=row.get("id") if isinstance(row, dict) else None,
                error=str(e),
            )
    return parsed


def _index_of(rows: list[dict], record_id: str) -> Optional[int]:
    for index, row in enumerate(rows):
        if isinstance(row, dict) and row.get("id") == record_id:
            return index
    return None


class JsonFileUserStorage(UserStorageInterface):
    """users.json"""

    def __init__(self, store: JsonFileStore):
        self._store = store

    def _users(self) -> list[User]:
        return _parse_rows(self._store.rows(USERS), User, USERS)

    async def add_user(self, user: User) -> User:
        def mutate(staged: dict[str, list[dict]]) -> User:
            rows = staged[USERS]
            if _email_taken(rows, user.email):
                raise DuplicateError(f"Email already registered: {user.email}")
            rows.append(user.to_record())
            return user

        return await self._store.update([USERS], mutate)

    async def get_user(self, user_id: str) -> Optional[User]:
        for user in self._users():
            if user.id == user_id:
                return user
        return None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for user in self._users():
            if user.email.lower() == wanted:
                return user
        return None

    async def update_user(self, user: User) -> User:
        def mutate(staged: dict[str, list[dict]]) -> User:
            rows = staged[USERS]
            index = _index_of(rows, user.id)
            if index is None:
                raise NotFoundError(f"User not found: {user.id}")
            if _email_taken(rows, user.email, exclude_id=user.id):
                raise DuplicateError(f"Email already registered: {user.email}")
            rows[index] = user.to_record()
            return user

        return await self._store.update([USERS], mutate)


def _email_taken(rows: list[dict], email: str, exclude_id: Optional[str] = None) -> bool:
    wanted = email.lower()
    return any(
        isinstance(row, dict)
        and str(row.get("email", "")).lower() == wanted
        and row.get("id") != exclude_id
        for row in rows
    )


class JsonFileLedgerStorage(LedgerStorageInterface):
    """accounts.json + transactions.json"""

    def __init__(self, store: JsonFileStore):
        self._store = store
        # A lock lives only while some caller holds or waits on it
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    def _accounts(self) -> list[Account]:
        return _parse_rows(self._store.rows(ACCOUNTS), Account, ACCOUNTS)

    def account_lock(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    async def get_account(self, account_id: str) -> Optional[Account]:
        for account in self._accounts():
            if account.id == account_id:
                return account
        return None

    async def list_accounts(self, user_id: Optional[str] = None) -> list[Account]:
        accounts = self._accounts()
        if user_id is not None:
            accounts = [a for a in accounts if a.user_id == user_id]
        return accounts

    async def account_number_exists(self, account_number: str) -> bool:
        return any(
            row.get("accountNumber") == account_number
            for row in self._store.rows(ACCOUNTS)
            if isinstance(row, dict)
        )

    async def open_account(
        self,
        account: Account,
        initial_transaction: Optional[Transaction] = None,
    ) -> Account:
        if initial_transaction is not None and initial_transaction.account_id != account.id:
            raise ValueError("Opening transaction belongs to a different account")

        def mutate(staged: dict[str, list[dict]]) -> Account:
            accounts = staged[ACCOUNTS]
            if any(
                isinstance(row, dict) and row.get("accountNumber") == account.account_number
                for row in accounts
            ):
                raise DuplicateError(f"Account number in use: {account.account_number}")
            if _index_of(accounts, account.id) is not None:
                raise DuplicateError(f"Account id in use: {account.id}")
            accounts.append(account.to_record())
            if initial_transaction is not None:
                staged[TRANSACTIONS].append(initial_transaction.to_record())
            return account

        names = [ACCOUNTS, TRANSACTIONS] if initial_transaction else [ACCOUNTS]
        return await self._store.update(names, mutate)

    async def apply_ledger_entry(
        self,
        account_id: str,
        delta: float,
        transaction: Transaction,
    ) -> Account:
        if transaction.account_id != account_id:
            raise ValueError("Transaction belongs to a different account")

        def mutate(staged: dict[str, list[dict]]) -> Account:
            accounts = staged[ACCOUNTS]
            index = _index_of(accounts, account_id)
            if index is None:
                raise NotFoundError(f"Account not found: {account_id}")

            account = Account.model_validate(accounts[index])
            new_balance = to_cents(account.balance + delta)
            if new_balance < 0:
                raise OverdraftError(account_id, account.balance, delta)

            transactions = staged[TRANSACTIONS]
            key = transaction.idempotency_key
            if key and any(
                isinstance(row, dict)
                and row.get("idempotencyKey") == key
                and row.get("userId") == transaction.user_id
                for row in transactions
            ):
                raise DuplicateError(f"Idempotency key already used: {key}")

            updated = account.model_copy(update={"balance": new_balance})
            accounts[index] = updated.to_record()
            transactions.append(transaction.to_record())
            return updated

        return await self._store.update([ACCOUNTS, TRANSACTIONS], mutate)

    async def list_transactions(
        self,
        account_ids: Optional[Iterable[str]] = None,
    ) -> list[Transaction]:
        transactions = _parse_rows(
            self._store.rows(TRANSACTIONS), Transaction, TRANSACTIONS
        )
        if account_ids is not None:
            wanted = set(account_ids)
            transactions = [t for t in transactions if t.account_id in wanted]
        return transactions

    async def find_transaction_by_idempotency_key(
        self,
        user_id: str,
        idempotency_key: str,
    ) -> Optional[Transaction]:
        for row in self._store.rows(TRANSACTIONS):
            if (
                isinstance(row, dict)
                and row.get("idempotencyKey") == idempotency_key
                and row.get("userId") == user_id
            ):
                return Transaction.model_validate(row)
        return None


class JsonFileNotificationStorage(NotificationStorageInterface):
    """notifications.json"""

    def __init__(self, store: JsonFileStore):
        self._store = store

    async def add_notification(self, notification: Notification) -> Notification:
        def mutate(staged: dict[str, list[dict]]) -> Notification:
            staged[NOTIFICATIONS].append(notification.to_record())
            return notification

        return await self._store.update([NOTIFICATIONS], mutate)

    async def list_notifications(self, user_id: str) -> list[Notification]:
        return [
            n for n in _parse_rows(
                self._store.rows(NOTIFICATIONS), Notification, NOTIFICATIONS
            )
            if n.user_id == user_id
        ]

    async def set_read(
        self,
        user_id: str,
        notification_id: str,
        read: bool,
    ) -> Notification:
        def mutate(staged: dict[str, list[dict]]) -> Notification:
            rows = staged[NOTIFICATIONS]
            index = _index_of(rows, notification_id)
            if index is None or rows[index].get("userId") != user_id:
                raise NotFoundError(f"Notification not found: {notification_id}")
            updated = Notification.model_validate(rows[index]).model_copy(
                update={"read": read}
            )
            rows[index] = updated.to_record()
            return updated

        return await self._store.update([NOTIFICATIONS], mutate)


class JsonFileAuditStorage(AuditStorageInterface):
    """
    audit.json

    Append-only. Events are never updated or removed.
    """

    def __init__(self, store: JsonFileStore):
        self._store = store

    def _events(self) -> list[AuditEvent]:
        return _parse_rows(self._store.rows(AUDIT), AuditEvent, AUDIT)

    async def append_event(self, event: AuditEvent) -> bool:
        def mutate(staged: dict[str, list[dict]]) -> bool:
            staged[AUDIT].append(event.to_record())
            return True

        return await self._store.update([AUDIT], mutate)

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events() if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events()))[:limit]
