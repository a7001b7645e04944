"""
Draft Transaction Validation

DESIGN DECISION: The ledger itself only enforces two rules (positive
amount, non-empty id). Everything else a form would check - recognized
categories, sane amounts, dates not in the future - belongs at the UI
boundary, and lives here so every front end applies the same rules.

Validation NEVER silently fixes issues. It reports them; the caller
decides what to show.
"""

import math
from datetime import timedelta
from typing import Any, Optional

from finance_tracker.ledger.errors import ValidationError
from finance_tracker.models.transaction import (
    Transaction,
    TransactionKind,
    now_ms,
    recognized_categories,
)
from finance_tracker.models.validation import ValidationIssue, ValidationResult


MAX_NOTE_LENGTH = 500


class TransactionValidator:
    """Checks user-entered fields before they become a Transaction."""

    def __init__(
        self,
        max_amount: float = 1_000_000.0,
        future_tolerance: timedelta = timedelta(days=1),
    ):
        """
        Args:
            max_amount: Amounts above this are flagged as suspicious (warning)
            future_tolerance: How far in the future a timestamp may be
        """
        self._max_amount = max_amount
        self._future_tolerance_ms = int(future_tolerance.total_seconds() * 1000)

    def _check_amount(self, amount: Any, issues: list[ValidationIssue]) -> Optional[float]:
        if amount is None or amount == "":
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
            return None
        try:
            value = float(amount)
        except (TypeError, ValueError):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=f"Amount is not a number: {amount!r}",
                severity="error",
            ))
            return None
        if not math.isfinite(value) or value <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Enter the amount without a sign; choose income or expense instead",
            ))
            return None
        if value > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount {value:.2f} is unusually large",
                severity="warning",
                suggested_fix="Double-check the amount",
            ))
        return value

    def _check_kind(self, kind: Any, issues: list[ValidationIssue]) -> Optional[TransactionKind]:
        try:
            return TransactionKind(kind)
        except ValueError:
            issues.append(ValidationIssue(
                field="kind",
                issue_type="invalid_value",
                message=f"Kind must be 'income' or 'expense', got {kind!r}",
                severity="error",
            ))
            return None

    def _check_category(
        self,
        category: Any,
        kind: Optional[TransactionKind],
        issues: list[ValidationIssue],
    ) -> None:
        if not isinstance(category, str) or not category.strip():
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))
            return
        if kind is None:
            return
        allowed = recognized_categories(kind)
        if category.strip() not in allowed:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"'{category}' is not a {kind.value} category",
                severity="error",
                suggested_fix=f"Choose one of: {', '.join(allowed)}",
            ))

    def validate(
        self,
        amount: Any,
        kind: Any,
        category: Any,
        timestamp: Optional[int] = None,
        note: Optional[str] = None,
    ) -> ValidationResult:
        """Validate raw form fields."""
        issues: list[ValidationIssue] = []

        self._check_amount(amount, issues)
        parsed_kind = self._check_kind(kind, issues)
        self._check_category(category, parsed_kind, issues)

        if timestamp is not None and timestamp > now_ms() + self._future_tolerance_ms:
            issues.append(ValidationIssue(
                field="timestamp",
                issue_type="future_date",
                message="Date is in the future",
                severity="warning",
            ))

        if note is not None and len(note) > MAX_NOTE_LENGTH:
            issues.append(ValidationIssue(
                field="note",
                issue_type="too_long",
                message=f"Note is longer than {MAX_NOTE_LENGTH} characters",
                severity="error",
            ))

        has_errors = any(issue.severity == "error" for issue in issues)
        return ValidationResult(is_valid=not has_errors, issues=issues)

    def build(
        self,
        amount: Any,
        kind: Any,
        category: Any,
        timestamp: Optional[int] = None,
        note: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> Transaction:
        """
        Validate and build a Transaction.

        Raises:
            ValidationError: On the first error-level issue
        """
        result = self.validate(amount, kind, category, timestamp, note)
        if result.has_errors:
            first = next(issue for issue in result.issues if issue.severity == "error")
            raise ValidationError(first.field, first.message)

        fields: dict[str, Any] = {
            "amount": float(amount),
            "kind": TransactionKind(kind),
            "category": category.strip(),
            "note": note or None,
        }
        if timestamp is not None:
            fields["timestamp"] = timestamp
        if transaction_id is not None:
            fields["id"] = transaction_id
        return Transaction(**fields)

    @staticmethod
    def get_user_friendly_summary(result: ValidationResult) -> str:
        """One line per issue, errors first."""
        if not result.issues:
            return "All details look good."
        ordered = sorted(result.issues, key=lambda issue: issue.severity != "error")
        lines = []
        for issue in ordered:
            prefix = "❌" if issue.severity == "error" else "⚠️"
            line = f"{prefix} {issue.message}"
            if issue.suggested_fix:
                line += f" ({issue.suggested_fix})"
            lines.append(line)
        return "\n".join(lines)
