"""
Core Ledger Models for Finance Tracker

These models define the schemas for everything the ledger holds or derives:
1. Transaction - the only stored record
2. Aggregate - balance and per-category spend, always derived
3. CategoryBudget - per-category budget status for a given limit

DESIGN DECISION: Transactions are frozen Pydantic models.
A record is never mutated in place; an edit is a new record with the
same id, written through LedgerStore.upsert (last write wins).
"""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """
    Direction of a transaction.

    The sign of a transaction lives here, never in the amount.
    """
    INCOME = "income"
    EXPENSE = "expense"


# Categories the UI offers. The core never enforces these;
# see finance_tracker.validation for the boundary check.
EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Food",
    "Transport",
    "Shopping",
    "Entertainment",
    "Bills",
    "Other",
)

INCOME_CATEGORIES: tuple[str, ...] = (
    "Salary",
    "Gift",
    "Other",
)


def recognized_categories(kind: TransactionKind) -> tuple[str, ...]:
    """Categories offered for a transaction kind."""
    if kind is TransactionKind.INCOME:
        return INCOME_CATEGORIES
    if kind is TransactionKind.EXPENSE:
        return EXPENSE_CATEGORIES
    raise ValueError(f"Unknown transaction kind: {kind!r}")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_epoch_ms(moment: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive means local time)."""
    return int(moment.timestamp() * 1000)


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single monetary event in the ledger.

    CRITICAL: amount is always positive. Income vs expense is carried
    by `kind`. A negative or zero amount is rejected at construction.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Unique transaction ID"
    )
    amount: float = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Positive amount, currency-agnostic"
    )
    kind: TransactionKind = Field(
        ...,
        description="Income or expense"
    )
    category: str = Field(
        ...,
        description="Free-form category label"
    )
    timestamp: int = Field(
        default_factory=now_ms,
        description="Wall-clock epoch milliseconds"
    )
    note: Optional[str] = Field(
        default=None,
        description="Optional note"
    )

    @property
    def occurred_at(self) -> datetime:
        """Timestamp as an aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)

    @property
    def signed_amount(self) -> float:
        """Contribution of this transaction to the balance."""
        if self.kind is TransactionKind.INCOME:
            return self.amount
        if self.kind is TransactionKind.EXPENSE:
            return -self.amount
        raise ValueError(f"Unknown transaction kind: {self.kind!r}")

    def copy_with(self, **changes) -> "Transaction":
        """
        Return a validated copy with some fields replaced.

        Unlike model_copy(update=...), this re-runs validation, so
        t.copy_with(amount=-5) fails the same way construction does.
        """
        data = self.model_dump()
        data.update(changes)
        return Transaction(**data)


# =============================================================================
# DERIVED VALUES
# =============================================================================

class CategoryBudget(BaseModel):
    """Spending in one category measured against a budget limit."""
    model_config = ConfigDict(frozen=True)

    category: str
    spent: float = Field(ge=0)
    limit: float = Field(gt=0)

    @property
    def remaining(self) -> float:
        """Budget left; negative when over budget."""
        return self.limit - self.spent

    @property
    def progress(self) -> float:
        """Fraction of the budget used, clamped to [0, 1]."""
        return min(max(self.spent / self.limit, 0.0), 1.0)

    @property
    def over_budget(self) -> bool:
        return self.spent > self.limit


class Aggregate(BaseModel):
    """
    Figures derived from a full ledger snapshot.

    DESIGN DECISION: An Aggregate is never stored and never patched.
    It is rebuilt from every transaction each time the ledger changes
    (see Aggregate.from_transactions).
    """
    model_config = ConfigDict(frozen=True)

    revision: int = Field(
        default=0,
        ge=0,
        description="Number of committed mutations this aggregate reflects"
    )
    balance: float = 0.0
    total_income: float = 0.0
    total_expense: float = 0.0
    transaction_count: int = Field(default=0, ge=0)
    category_spend: dict[str, float] = Field(
        default_factory=dict,
        description="Expense total per category"
    )

    @classmethod
    def from_transactions(cls, transactions, revision: int = 0) -> "Aggregate":
        """Recompute every figure from scratch."""
        income = 0.0
        expense = 0.0
        count = 0
        spend: dict[str, float] = {}

        for txn in transactions:
            count += 1
            if txn.kind is TransactionKind.INCOME:
                income += txn.amount
            elif txn.kind is TransactionKind.EXPENSE:
                expense += txn.amount
                spend[txn.category] = spend.get(txn.category, 0.0) + txn.amount
            else:
                raise ValueError(f"Unknown transaction kind: {txn.kind!r}")

        return cls(
            revision=revision,
            balance=income - expense,
            total_income=income,
            total_expense=expense,
            transaction_count=count,
            category_spend=spend,
        )

    def budget_status(self, limit: float) -> list[CategoryBudget]:
        """Budget status for every category with spending, largest first."""
        return sorted(
            (
                CategoryBudget(category=category, spent=spent, limit=limit)
                for category, spent in self.category_spend.items()
            ),
            key=lambda status: status.spent,
            reverse=True,
        )
