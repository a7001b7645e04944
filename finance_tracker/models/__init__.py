"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker core.
"""

from finance_tracker.models.alert import (
    Alert,
    HeartbeatAlert,
    OverBudgetAlert,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_tracker.models.transaction import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    Aggregate,
    CategoryBudget,
    Transaction,
    TransactionKind,
    now_ms,
    recognized_categories,
    to_epoch_ms,
)
from finance_tracker.models.validation import (
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Ledger models
    "Aggregate",
    "CategoryBudget",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "Transaction",
    "TransactionKind",
    "now_ms",
    "recognized_categories",
    "to_epoch_ms",
    # Alert models
    "Alert",
    "HeartbeatAlert",
    "OverBudgetAlert",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
