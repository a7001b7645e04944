"""
Tests for draft transaction validation
"""

from datetime import timedelta

import pytest

from finance_tracker.ledger import ValidationError
from finance_tracker.models import TransactionKind, now_ms
from finance_tracker.validation import MAX_NOTE_LENGTH, TransactionValidator


@pytest.fixture
def validator() -> TransactionValidator:
    return TransactionValidator(max_amount=10_000)


class TestTransactionValidator:
    """Tests for TransactionValidator.validate."""

    def test_valid_expense(self, validator):
        result = validator.validate("12.50", "expense", "Food")
        assert result.is_valid
        assert result.issues == []

    @pytest.mark.parametrize("amount,issue_type", [
        (None, "missing"),
        ("", "missing"),
        ("twelve", "invalid_format"),
        (0, "invalid_value"),
        (-5, "invalid_value"),
        (float("nan"), "invalid_value"),
    ])
    def test_bad_amounts(self, validator, amount, issue_type):
        result = validator.validate(amount, "expense", "Food")
        assert not result.is_valid
        assert result.issues[0].field == "amount"
        assert result.issues[0].issue_type == issue_type

    def test_large_amount_is_warning_only(self, validator):
        result = validator.validate(50_000, "income", "Salary")
        assert result.is_valid
        assert [issue.issue_type for issue in result.issues] == ["suspicious_value"]
        assert result.warnings == ["Amount 50000.00 is unusually large"]

    def test_unknown_kind(self, validator):
        result = validator.validate(10, "transfer", "Food")
        assert result.has_errors
        assert any(issue.field == "kind" for issue in result.issues)

    def test_category_must_match_kind(self, validator):
        result = validator.validate(10, "income", "Food")
        assert not result.is_valid
        issue = result.issues[0]
        assert issue.issue_type == "unknown_category"
        assert "Salary" in issue.suggested_fix

    def test_other_is_valid_for_both_kinds(self, validator):
        assert validator.validate(10, "income", "Other").is_valid
        assert validator.validate(10, "expense", "Other").is_valid

    def test_missing_category(self, validator):
        result = validator.validate(10, "expense", "  ")
        assert result.issues[0].issue_type == "missing"

    def test_future_date_warning(self, validator):
        future = now_ms() + int(timedelta(days=3).total_seconds() * 1000)
        result = validator.validate(10, "expense", "Food", timestamp=future)
        assert result.is_valid
        assert result.issues[0].issue_type == "future_date"
        assert result.warnings == ["Date is in the future"]

    def test_note_too_long(self, validator):
        result = validator.validate(10, "expense", "Food", note="x" * (MAX_NOTE_LENGTH + 1))
        assert result.error_count == 1


class TestBuild:
    """Tests for TransactionValidator.build."""

    def test_build_returns_transaction(self, validator):
        txn = validator.build("19.99", "expense", " Food ", note="lunch", transaction_id="t1")
        assert txn.id == "t1"
        assert txn.amount == 19.99
        assert txn.kind is TransactionKind.EXPENSE
        assert txn.category == "Food"
        assert txn.note == "lunch"

    def test_build_raises_on_first_error(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.build(-1, "expense", "Nope")
        assert exc_info.value.field == "amount"

    def test_validation_error_is_value_error(self, validator):
        with pytest.raises(ValueError):
            validator.build(10, "expense", "Nope")


class TestSummary:
    """Tests for the user-facing summary."""

    def test_summary_when_clean(self, validator):
        result = validator.validate(10, "expense", "Food")
        assert validator.get_user_friendly_summary(result) == "All details look good."

    def test_errors_listed_first(self, validator):
        result = validator.validate(50_000, "expense", "Nope")
        lines = validator.get_user_friendly_summary(result).splitlines()
        assert lines[0].startswith("❌")
        assert lines[-1].startswith("⚠️")
