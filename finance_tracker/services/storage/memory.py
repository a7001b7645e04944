"""
In-Memory Storage Implementation

Used for tests and for running the tracker without any external backend.
Records live in plain dicts/lists for the lifetime of the process.
"""

from typing import Optional

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.transaction import Transaction
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transaction storage backed by a dict keyed on transaction ID."""

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._records: dict[str, Transaction] = {}
        for txn in transactions or []:
            self._records[txn.id] = txn

    async def put(self, transaction_id: str, transaction: Transaction) -> None:
        self._records[transaction_id] = transaction

    async def get_all(self) -> list[Transaction]:
        return list(self._records.values())

    async def delete_by_id(self, transaction_id: str) -> bool:
        return self._records.pop(transaction_id, None) is not None

    async def query_range(self, start: int, end: int) -> list[Transaction]:
        return [
            txn for txn in self._records.values()
            if start <= txn.timestamp < end
        ]

    def __len__(self) -> int:
        return len(self._records)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        if limit <= 0:
            return []
        return list(reversed(self._events))[:limit]
