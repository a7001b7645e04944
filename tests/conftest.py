"""
Shared fixtures for Finance Tracker tests.

No external services are touched: storage is in-memory, with a subclass
that can be told to fail so error paths can be exercised.
"""

from datetime import datetime, timedelta, timezone

import pytest

from finance_tracker.ledger import AggregationEngine, LedgerStore
from finance_tracker.models import Transaction, TransactionKind, to_epoch_ms
from finance_tracker.monitor import AlertSink
from finance_tracker.services.storage import InMemoryTransactionStorage, StorageError


# Fixed reference point: 2025-03-14 18:00 at UTC+1
TZ = timezone(timedelta(hours=1))
NOW = datetime(2025, 3, 14, 18, 0, tzinfo=TZ)
MIDNIGHT = datetime(2025, 3, 14, 0, 0, tzinfo=TZ)


class FlakyStorage(InMemoryTransactionStorage):
    """In-memory storage that fails on demand and counts calls."""

    def __init__(self, transactions=None):
        super().__init__(transactions)
        self.fail_puts = False
        self.fail_deletes = False
        self.fail_queries = False
        self.fail_get_all = False
        self.put_calls = 0
        self.delete_calls = 0

    async def put(self, transaction_id, transaction):
        self.put_calls += 1
        if self.fail_puts:
            raise StorageError("disk full")
        await super().put(transaction_id, transaction)

    async def delete_by_id(self, transaction_id):
        self.delete_calls += 1
        if self.fail_deletes:
            raise StorageError("disk full")
        return await super().delete_by_id(transaction_id)

    async def query_range(self, start, end):
        if self.fail_queries:
            raise StorageError("read timeout")
        return await super().query_range(start, end)

    async def get_all(self):
        if self.fail_get_all:
            raise StorageError("read timeout")
        return await super().get_all()


class RecordingSink(AlertSink):
    """Keeps every alert it receives."""

    def __init__(self):
        self.alerts = []

    async def send(self, alert):
        self.alerts.append(alert)


class FailingSink(AlertSink):
    async def send(self, alert):
        raise RuntimeError("notification service unavailable")


def make_txn(
    txn_id: str,
    amount: float,
    kind: TransactionKind,
    category: str,
    at: datetime = None,
    note: str = None,
) -> Transaction:
    moment = at or (MIDNIGHT + timedelta(hours=9))
    return Transaction(
        id=txn_id,
        amount=amount,
        kind=kind,
        category=category,
        timestamp=to_epoch_ms(moment),
        note=note,
    )


@pytest.fixture
def storage() -> FlakyStorage:
    return FlakyStorage()


@pytest.fixture
def store(storage) -> LedgerStore:
    """An unopened store over FlakyStorage."""
    return LedgerStore(storage)


@pytest.fixture
def engine(store) -> AggregationEngine:
    """An engine attached to the (unopened) store."""
    engine = AggregationEngine()
    engine.attach(store)
    return engine


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
