"""Ledger package: the transaction store and the aggregates derived from it."""

from finance_tracker.ledger.aggregation import AggregateSubscription, AggregationEngine
from finance_tracker.ledger.errors import (
    LedgerClosedError,
    LedgerError,
    StorageFailure,
    ValidationError,
)
from finance_tracker.ledger.store import CommitListener, LedgerSnapshot, LedgerStore

__all__ = [
    "AggregateSubscription",
    "AggregationEngine",
    "CommitListener",
    "LedgerClosedError",
    "LedgerError",
    "LedgerSnapshot",
    "LedgerStore",
    "StorageFailure",
    "ValidationError",
]
