"""
Abstract Storage Interface

DESIGN DECISION: The ledger never talks to a storage engine directly.
It talks to this interface, which allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep retry/timeout policy inside the storage implementation

The interface is intentionally small - four operations are all the
ledger needs. The storage format is the implementation's business.
"""

from abc import ABC, abstractmethod

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.

    Any storage implementation (Google Sheets, SQLite, etc.)
    must implement these methods. Any I/O failure must be raised
    as a StorageError so the ledger can surface it.
    """

    @abstractmethod
    async def put(self, transaction_id: str, transaction: Transaction) -> None:
        """
        Insert or replace the record stored under transaction_id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_all(self) -> list[Transaction]:
        """
        Load every stored transaction.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def delete_by_id(self, transaction_id: str) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was removed, False if none existed

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def query_range(self, start: int, end: int) -> list[Transaction]:
        """
        Transactions with start <= timestamp < end (epoch milliseconds).

        Raises:
            StorageError: If the read fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
