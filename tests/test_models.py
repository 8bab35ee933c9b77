"""
Tests for Ledger Bank models

Test strategy:
1. Records serialize to the camelCase JSON the data files use
2. Malformed values are rejected at the model boundary
3. Audit events carry the context needed to trace a request
"""

import pytest
from datetime import timezone
from uuid import uuid4

from ledger.models.banking import (
    Account,
    AccountType,
    HistoryEntry,
    Notification,
    OperationResult,
    Transaction,
    TransactionType,
    User,
    generate_account_number,
    generate_id,
    parse_amount,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestHelpers:
    """Tests for id, number and amount helpers."""

    def test_generate_id_is_nine_base36_chars(self):
        """Record ids are 9 lowercase alphanumerics."""
        record_id = generate_id()
        assert len(record_id) == 9
        assert record_id.isalnum()
        assert record_id == record_id.lower()

    def test_generate_account_number_length(self):
        number = generate_account_number(10)
        assert len(number) == 10
        assert number.isdigit()

    @pytest.mark.parametrize("value, expected", [
        ("25", 25.0),
        (" 10.50 ", 10.5),
        (7, 7.0),
        (-3, -3.0),
    ])
    def test_parse_amount_accepts_numbers(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", True, float("nan"), "inf"])
    def test_parse_amount_rejects_non_numbers(self, value):
        assert parse_amount(value) is None


class TestBankingModels:
    """Tests for stored record models."""

    def test_user_record_uses_camel_case(self):
        """Test that users are written with the file's key names."""
        user = User(
            first_name="Ada",
            last_name="Lovelace",
            email="ada@example.com",
            password="secret",
        )
        record = user.to_record()
        assert record["firstName"] == "Ada"
        assert record["lastName"] == "Lovelace"
        assert "createdAt" in record
        assert "first_name" not in record

    def test_user_reads_camel_case_record(self):
        user = User.model_validate({
            "id": "abc123xyz",
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "phone": "555-0100",
            "password": "secret",
            "createdAt": "2024-01-05T10:00:00Z",
        })
        assert user.id == "abc123xyz"
        assert user.full_name == "Ada Lovelace"

    def test_user_rejects_invalid_email(self):
        with pytest.raises(ValueError):
            User(first_name="A", last_name="B", email="not-an-email", password="x")

    def test_user_strips_whitespace(self):
        user = User(first_name="  Ada ", last_name="L", email="ada@example.com", password="x")
        assert user.first_name == "Ada"

    def test_naive_timestamp_is_utc(self):
        """Older rows without an offset are read as UTC."""
        account = Account.model_validate({
            "userId": "u1",
            "accountNumber": "1234567890",
            "accountType": "Checking",
            "balance": 10,
            "createdAt": "2024-01-05T10:00:00",
        })
        assert account.created_at.tzinfo == timezone.utc

    def test_account_balance_rounded_to_cents(self):
        account = Account(
            user_id="u1",
            account_number="1234567890",
            account_type=AccountType.SAVINGS,
            balance=0.1 + 0.2,
        )
        assert account.balance == 0.3

    def test_account_rejects_non_numeric_account_number(self):
        with pytest.raises(ValueError):
            Account(user_id="u1", account_number="12-34", account_type="Checking")

    def test_account_rejects_unknown_type(self):
        with pytest.raises(ValueError):
            Account(user_id="u1", account_number="1234", account_type="Business")

    def test_masked_number(self):
        account = Account(user_id="u1", account_number="1234567890", account_type="Checking")
        assert account.masked_number == "****7890"

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (0, -5):
            with pytest.raises(ValueError):
                Transaction(
                    account_id="a1",
                    user_id="u1",
                    type=TransactionType.DEPOSIT,
                    amount=amount,
                )

    def test_transaction_signed_amount(self):
        deposit = Transaction(account_id="a1", user_id="u1", type="deposit", amount=10)
        withdrawal = Transaction(account_id="a1", user_id="u1", type="withdrawal", amount=4)
        assert deposit.signed_amount == 10
        assert withdrawal.signed_amount == -4

    def test_history_entry_default_account_number(self):
        entry = HistoryEntry(account_id="a1", user_id="u1", type="deposit", amount=1)
        assert entry.account_number == "Unknown"

    def test_notification_defaults(self):
        notification = Notification(user_id="u1", title="Hi", message="Hello")
        assert notification.read is False
        assert notification.to_record()["userId"] == "u1"


class TestOperationResult:
    """Tests for the success/error contract."""

    def test_failure_response(self):
        result = OperationResult.fail("Insufficient funds")
        assert result.to_response() == {"success": False, "error": "Insufficient funds"}

    def test_success_response_has_no_error_key(self):
        assert OperationResult.ok().to_response() == {"success": True}


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            description="Account opened",
        )
        assert event.event_type == AuditEventType.ACCOUNT_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_APPLIED,
            description="Deposit applied",
            details={"amount": 10.0},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_applied"
        assert log_dict["details"]["amount"] == 10.0

    def test_audit_event_to_record_is_json_safe(self):
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            description="Login failed",
            correlation_id=correlation_id,
        )
        record = event.to_record()
        assert record["correlation_id"] == str(correlation_id)
        assert isinstance(record["timestamp"], str)

    def test_builder_transaction_rejected(self):
        """Rejections are warnings tied to the account."""
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_rejected(
            user_id="u1",
            account_id="a1",
            reason="Insufficient funds",
            details={"amount": 100.0},
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.TRANSACTION_REJECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "a1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_builder_login_failure(self):
        event = AuditEventBuilder.login(email="x@example.com", user_id=None, succeeded=False)
        assert event.event_type == AuditEventType.LOGIN_FAILED
        assert event.user_id is None

    def test_builder_journal_recovered(self):
        event = AuditEventBuilder.journal_recovered(collections=["accounts", "transactions"])
        assert event.event_type == AuditEventType.JOURNAL_RECOVERED
        assert event.is_user_action is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
