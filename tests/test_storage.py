"""
Tests for the flat-file JSON store.

Covers file layout, corrupt-file handling, the commit journal and
what happens when a write fails part-way.
"""

import gc
import json

import pytest

from ledger.models.banking import Account, Transaction, TransactionType, User
from ledger.services.storage import (
    DuplicateError,
    JsonFileLedgerStorage,
    JsonFileStore,
    JsonFileUserStorage,
    NotFoundError,
    OverdraftError,
    StorageError,
)


def _account(user_id="user-1", number="1234567890", balance=100.0):
    return Account(
        user_id=user_id,
        account_number=number,
        account_type="Checking",
        balance=balance,
    )


def _entry(account, kind=TransactionType.DEPOSIT, amount=10.0):
    return Transaction(
        account_id=account.id,
        user_id=account.user_id,
        type=kind,
        amount=amount,
        description="test",
    )


class TestFileLayout:
    """Tests for how collections map to files."""

    def test_missing_file_created_empty(self, store, tmp_path):
        """Reading an absent collection creates it as an empty array."""
        assert store.rows("accounts") == []
        assert json.loads((tmp_path / "accounts.json").read_text()) == []

    def test_existing_rows_are_read(self, tmp_path, storage_settings):
        (tmp_path / "users.json").write_text(json.dumps([{
            "id": "abc123xyz",
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "password": "secret",
            "createdAt": "2024-01-05T10:00:00Z",
        }]))
        store = JsonFileStore(settings=storage_settings)
        assert store.rows("users")[0]["firstName"] == "Ada"

    @pytest.mark.asyncio
    async def test_records_written_in_camel_case(self, ledger_storage, tmp_path):
        account = _account()
        await ledger_storage.open_account(account, _entry(account, amount=100.0))

        [row] = json.loads((tmp_path / "accounts.json").read_text())
        assert row["accountNumber"] == "1234567890"
        assert row["userId"] == "user-1"
        assert row["accountType"] == "Checking"
        [tx] = json.loads((tmp_path / "transactions.json").read_text())
        assert tx["accountId"] == account.id

    def test_unreadable_file_is_quarantined(self, tmp_path, storage_settings):
        """A corrupt file is moved aside rather than overwritten."""
        (tmp_path / "users.json").write_text("{not json")
        store = JsonFileStore(settings=storage_settings)

        assert store.rows("users") == []
        assert (tmp_path / "users.json.corrupt").read_text() == "{not json"

    def test_non_array_file_is_quarantined(self, tmp_path, storage_settings):
        (tmp_path / "accounts.json").write_text('{"accounts": []}')
        store = JsonFileStore(settings=storage_settings)

        assert store.rows("accounts") == []
        assert (tmp_path / "accounts.json.corrupt").exists()

    @pytest.mark.asyncio
    async def test_invalid_rows_are_skipped(self, tmp_path, storage_settings):
        (tmp_path / "accounts.json").write_text(json.dumps([
            {"id": "good", "userId": "u1", "accountNumber": "1111111111",
             "accountType": "Checking", "balance": 5},
            {"id": "bad", "userId": "u1", "accountType": "Business"},
        ]))
        ledger = JsonFileLedgerStorage(JsonFileStore(settings=storage_settings))

        accounts = await ledger.list_accounts()
        assert [a.id for a in accounts] == ["good"]


class TestUserStorage:
    """Tests for users.json."""

    @pytest.mark.asyncio
    async def test_add_and_find_by_email(self, user_storage):
        user = User(first_name="Ada", last_name="L", email="ada@example.com", password="pw")
        await user_storage.add_user(user)

        found = await user_storage.find_user_by_email("ADA@example.com")
        assert found.id == user.id
        assert (await user_storage.get_user(user.id)).email == "ada@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, user_storage):
        await user_storage.add_user(
            User(first_name="Ada", last_name="L", email="ada@example.com", password="pw")
        )
        with pytest.raises(DuplicateError):
            await user_storage.add_user(
                User(first_name="Eve", last_name="L", email="Ada@example.com", password="pw")
            )

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, user_storage):
        with pytest.raises(NotFoundError):
            await user_storage.update_user(
                User(first_name="Ada", last_name="L", email="ada@example.com", password="pw")
            )


class TestLedgerStorage:
    """Tests for the ledger primitive."""

    @pytest.mark.asyncio
    async def test_apply_ledger_entry_pairs_balance_and_record(self, ledger_storage):
        account = _account()
        await ledger_storage.open_account(account)

        updated = await ledger_storage.apply_ledger_entry(account.id, 25.0, _entry(account, amount=25.0))

        assert updated.balance == 125.0
        assert (await ledger_storage.get_account(account.id)).balance == 125.0
        assert len(await ledger_storage.list_transactions([account.id])) == 1

    @pytest.mark.asyncio
    async def test_apply_ledger_entry_refuses_overdraft(self, ledger_storage):
        """The primitive itself never lets a balance go negative."""
        account = _account(balance=100.0)
        await ledger_storage.open_account(account)

        with pytest.raises(OverdraftError):
            await ledger_storage.apply_ledger_entry(
                account.id, -120.0, _entry(account, TransactionType.WITHDRAWAL, 120.0)
            )

        assert (await ledger_storage.get_account(account.id)).balance == 100.0
        assert await ledger_storage.list_transactions() == []

    @pytest.mark.asyncio
    async def test_apply_ledger_entry_unknown_account(self, ledger_storage):
        ghost = _account()
        with pytest.raises(NotFoundError):
            await ledger_storage.apply_ledger_entry(ghost.id, 5.0, _entry(ghost))

    @pytest.mark.asyncio
    async def test_open_account_rejects_duplicate_number(self, ledger_storage):
        await ledger_storage.open_account(_account(number="5555555555"))
        with pytest.raises(DuplicateError):
            await ledger_storage.open_account(_account(user_id="user-2", number="5555555555"))

        assert await ledger_storage.account_number_exists("5555555555")
        assert len(await ledger_storage.list_accounts()) == 1

    @pytest.mark.asyncio
    async def test_list_accounts_by_owner(self, ledger_storage):
        await ledger_storage.open_account(_account(user_id="user-1", number="1111111111"))
        await ledger_storage.open_account(_account(user_id="user-2", number="2222222222"))

        owned = await ledger_storage.list_accounts(user_id="user-2")
        assert [a.account_number for a in owned] == ["2222222222"]

    @pytest.mark.asyncio
    async def test_find_by_idempotency_key_is_scoped_to_user(self, ledger_storage):
        account = _account()
        await ledger_storage.open_account(account)
        entry = _entry(account).model_copy(update={"idempotency_key": "key-1"})
        await ledger_storage.apply_ledger_entry(account.id, 10.0, entry)

        assert (await ledger_storage.find_transaction_by_idempotency_key("user-1", "key-1")).id == entry.id
        assert await ledger_storage.find_transaction_by_idempotency_key("user-2", "key-1") is None

    @pytest.mark.asyncio
    async def test_idempotency_key_is_unique_per_user(self, ledger_storage):
        """A second entry with the user's key is refused, whichever account it targets."""
        first = _account(number="1111111111")
        second = _account(number="2222222222")
        other = _account(user_id="user-2", number="3333333333")
        for account in (first, second, other):
            await ledger_storage.open_account(account)
        await ledger_storage.apply_ledger_entry(
            first.id, 10.0, _entry(first).model_copy(update={"idempotency_key": "key-1"})
        )

        with pytest.raises(DuplicateError):
            await ledger_storage.apply_ledger_entry(
                second.id, 10.0, _entry(second).model_copy(update={"idempotency_key": "key-1"})
            )
        await ledger_storage.apply_ledger_entry(
            other.id, 10.0, _entry(other).model_copy(update={"idempotency_key": "key-1"})
        )

        assert (await ledger_storage.get_account(second.id)).balance == 100.0
        assert (await ledger_storage.get_account(other.id)).balance == 110.0
        assert len(await ledger_storage.list_transactions()) == 2

    def test_account_lock_is_per_account(self, ledger_storage):
        assert ledger_storage.account_lock("a") is ledger_storage.account_lock("a")
        assert ledger_storage.account_lock("a") is not ledger_storage.account_lock("b")

    @pytest.mark.asyncio
    async def test_released_locks_are_not_kept(self, ledger_storage):
        lock = ledger_storage.account_lock("a")
        async with lock:
            assert ledger_storage.account_lock("a") is lock

        del lock
        gc.collect()

        assert "a" not in ledger_storage._locks


class TestFailedWrites:
    """Tests for memory/disk agreement when writes fail."""

    @pytest.mark.asyncio
    async def test_failed_write_changes_nothing(self, store, ledger_storage, monkeypatch):
        """If the commit never reaches disk, memory keeps the old state."""
        account = _account(balance=100.0)
        await ledger_storage.open_account(account)

        def fail(staged):
            raise OSError("disk full")

        monkeypatch.setattr(store, "_persist", fail)

        with pytest.raises(StorageError):
            await ledger_storage.apply_ledger_entry(account.id, 10.0, _entry(account))

        assert (await ledger_storage.get_account(account.id)).balance == 100.0
        assert await ledger_storage.list_transactions() == []

    @pytest.mark.asyncio
    async def test_interrupted_commit_is_replayed_on_restart(
        self, store, ledger_storage, storage_settings, tmp_path, monkeypatch
    ):
        """Once the journal is written the commit stands, even if a file write fails."""
        account = _account(balance=100.0)
        await ledger_storage.open_account(account, _entry(account, amount=100.0))

        original = store._write_json

        def flaky(path, data):
            if path.name == "transactions.json":
                raise OSError("disk full")
            original(path, data)

        monkeypatch.setattr(store, "_write_json", flaky)

        updated = await ledger_storage.apply_ledger_entry(account.id, 10.0, _entry(account))
        assert updated.balance == 110.0
        assert (tmp_path / "ledger.journal").exists()
        # transactions.json still lags behind
        assert len(json.loads((tmp_path / "transactions.json").read_text())) == 1

        reopened = JsonFileStore(settings=storage_settings)
        assert reopened.recovered == ["accounts", "transactions"]
        assert not (tmp_path / "ledger.journal").exists()

        ledger = JsonFileLedgerStorage(reopened)
        assert (await ledger.get_account(account.id)).balance == 110.0
        assert len(await ledger.list_transactions()) == 2

    @pytest.mark.asyncio
    async def test_lagging_file_repaired_by_next_commit(
        self, store, ledger_storage, tmp_path, monkeypatch
    ):
        account = _account(balance=100.0)
        await ledger_storage.open_account(account, _entry(account, amount=100.0))

        original = store._write_json

        def flaky(path, data):
            if path.name == "transactions.json":
                raise OSError("disk full")
            original(path, data)

        monkeypatch.setattr(store, "_write_json", flaky)
        await ledger_storage.apply_ledger_entry(account.id, 10.0, _entry(account))
        monkeypatch.setattr(store, "_write_json", original)

        await ledger_storage.apply_ledger_entry(account.id, 5.0, _entry(account, amount=5.0))

        assert len(json.loads((tmp_path / "transactions.json").read_text())) == 3
        assert not (tmp_path / "ledger.journal").exists()

    @pytest.mark.asyncio
    async def test_collection_that_cannot_be_created_raises_storage_error(
        self, store, ledger_storage, monkeypatch
    ):
        """A missing file that cannot be created is a storage failure, not an OSError."""
        account = _account(balance=100.0)
        await ledger_storage.open_account(account)
        assert not store.path_for("transactions").exists()

        def fail(path, data):
            raise OSError("disk full")

        monkeypatch.setattr(store, "_write_json", fail)
        with pytest.raises(StorageError):
            await ledger_storage.apply_ledger_entry(account.id, 10.0, _entry(account))
        monkeypatch.undo()

        assert (await ledger_storage.get_account(account.id)).balance == 100.0
        assert await ledger_storage.list_transactions() == []

    def test_unreadable_journal_is_set_aside(self, tmp_path, storage_settings):
        (tmp_path / "ledger.journal").write_text("garbage")
        store = JsonFileStore(settings=storage_settings)

        assert store.recovered == []
        assert (tmp_path / "ledger.journal.corrupt").exists()
