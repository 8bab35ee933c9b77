"""
Shared fixtures.

Every test gets its own data directory under tmp_path and explicit
settings objects, so nothing depends on the environment or a .env file.
"""

import pytest

from ledger.audit import AuditLogger
from ledger.auth import SessionManager, UserDirectory
from ledger.banking import AccountRegistry, HistoryProjector, LedgerMutator
from ledger.config import BankingSettings, SessionSettings, StorageSettings
from ledger.notifications import NotificationCenter
from ledger.services.storage import (
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
    JsonFileNotificationStorage,
    JsonFileStore,
    JsonFileUserStorage,
)


@pytest.fixture
def storage_settings(tmp_path):
    return StorageSettings(data_dir=str(tmp_path), write_retries=1)


@pytest.fixture
def banking_settings():
    return BankingSettings(
        checking_minimum_deposit=25.0,
        savings_minimum_deposit=500.0,
        account_number_digits=10,
        account_number_attempts=5,
        notify_on_transaction=True,
    )


@pytest.fixture
def session_settings():
    return SessionSettings(mode="plain")


@pytest.fixture
def store(storage_settings):
    return JsonFileStore(settings=storage_settings)


@pytest.fixture
def user_storage(store):
    return JsonFileUserStorage(store)


@pytest.fixture
def ledger_storage(store):
    return JsonFileLedgerStorage(store)


@pytest.fixture
def notification_storage(store):
    return JsonFileNotificationStorage(store)


@pytest.fixture
def audit_storage(store):
    return JsonFileAuditStorage(store)


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def sessions(user_storage, session_settings):
    return SessionManager(user_storage, settings=session_settings)


@pytest.fixture
def users(user_storage, sessions, audit_logger):
    return UserDirectory(user_storage, sessions, audit_logger)


@pytest.fixture
def registry(ledger_storage, audit_logger, banking_settings):
    return AccountRegistry(ledger_storage, audit_logger, settings=banking_settings)


@pytest.fixture
def mutator(ledger_storage, audit_logger):
    return LedgerMutator(ledger_storage, audit_logger)


@pytest.fixture
def history(ledger_storage):
    return HistoryProjector(ledger_storage)


@pytest.fixture
def notifications(notification_storage):
    return NotificationCenter(notification_storage)


@pytest.fixture
def open_account(registry):
    """Open an account and return it; fails the test if opening is refused."""
    async def _open(user_id="user-1", account_type="Checking", deposit=100):
        result = await registry.create(user_id, account_type, deposit)
        assert result.success, result.error
        return result.account

    return _open
