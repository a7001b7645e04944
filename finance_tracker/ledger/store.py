"""
Ledger Store

The single source of truth for transactions.

DESIGN DECISION: Writes are serialized and follow commit-then-notify:
1. Validate the input (no storage call if invalid)
2. Write to storage
3. Swap in a new snapshot
4. Notify commit listeners, exactly once

If step 2 fails nothing else happens: the snapshot is untouched and no
listener hears about it. Readers never take the write lock; they read
whichever snapshot is current, and a snapshot is never mutated after it
has been swapped in.

There is no module-level store. Build one, open() it, pass it around,
close() it.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional, Union

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.ledger.errors import (
    LedgerClosedError,
    StorageFailure,
    ValidationError,
)
from finance_tracker.models.transaction import Transaction, TransactionKind, to_epoch_ms
from finance_tracker.services.storage import TransactionStorageInterface


LedgerSnapshot = tuple[Transaction, ...]

# Called with (snapshot, revision) after every committed mutation
CommitListener = Callable[[LedgerSnapshot, int], None]

logger = structlog.get_logger(__name__)


class LedgerStore:
    """
    Owns the authoritative set of transactions.

    Durable storage is delegated to a TransactionStorageInterface;
    this class adds validation, write serialization, an in-memory
    snapshot for reads, and commit notifications.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._write_lock = asyncio.Lock()
        self._records: dict[str, Transaction] = {}
        self._listeners: list[CommitListener] = []
        self._revision = 0
        self._is_open = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def revision(self) -> int:
        """Number of mutations committed since open()."""
        return self._revision

    async def open(self) -> None:
        """
        Load the initial snapshot from storage.

        Raises:
            StorageFailure: If storage cannot be read
        """
        async with self._write_lock:
            if self._is_open:
                return
            try:
                loaded = await self._storage.get_all()
            except Exception as e:
                logger.error("ledger_open_failed", error=str(e))
                raise StorageFailure("open", str(e)) from e

            self._records = {txn.id: txn for txn in loaded}
            self._revision = 0
            self._is_open = True
            logger.info("ledger_opened", transaction_count=len(self._records))
            self._notify()

    async def close(self) -> None:
        """Stop accepting operations. Waits for an in-flight write to finish."""
        async with self._write_lock:
            self._is_open = False
            logger.info("ledger_closed", revision=self._revision)

    def _ensure_open(self) -> None:
        if not self._is_open:
            raise LedgerClosedError("Ledger store is not open")

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_commit_listener(self, listener: CommitListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_commit_listener(self, listener: CommitListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.all()
        for listener in list(self._listeners):
            try:
                listener(snapshot, self._revision)
            except Exception:
                # Already committed; keep notifying the rest
                logger.exception("commit_listener_failed", revision=self._revision)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate_id(transaction_id) -> None:
        if not isinstance(transaction_id, str) or not transaction_id.strip():
            raise ValidationError("id", "must be a non-empty string")

    def _validate(self, transaction: Transaction) -> None:
        if not isinstance(transaction, Transaction):
            raise ValidationError("transaction", f"expected Transaction, got {type(transaction).__name__}")
        self._validate_id(transaction.id)
        if not transaction.amount > 0:
            raise ValidationError("amount", f"must be greater than zero, got {transaction.amount}")

    async def upsert(self, transaction: Transaction) -> Transaction:
        """
        Insert a transaction, or replace the one with the same id.

        Returns:
            The stored transaction

        Raises:
            ValidationError: amount <= 0 or empty id (storage untouched)
            StorageFailure: storage write failed (nothing committed)
            LedgerClosedError: store not open
        """
        self._ensure_open()
        self._validate(transaction)

        async with self._write_lock:
            self._ensure_open()
            try:
                await self._storage.put(transaction.id, transaction)
            except Exception as e:
                logger.error("transaction_upsert_failed", transaction_id=transaction.id, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_mutation_failed(transaction.id, "upsert", str(e))
                raise StorageFailure("upsert", str(e)) from e

            records = dict(self._records)
            replaced = transaction.id in records
            records[transaction.id] = transaction
            self._records = records
            self._revision += 1
            revision = self._revision
            self._notify()

        logger.info(
            "transaction_upserted",
            transaction_id=transaction.id,
            replaced=replaced,
            revision=revision,
        )
        if self._audit_logger:
            await self._audit_logger.log_transaction_saved(
                transaction_id=transaction.id,
                kind=transaction.kind.value,
                amount=transaction.amount,
                category=transaction.category,
                revision=revision,
            )
        return transaction

    async def upsert_many(self, transactions) -> list[Transaction]:
        """
        Upsert several transactions under one hold of the write lock.

        Every record is validated before anything is written. Each record
        is then committed on its own: one storage write, one revision and
        one notification per record. If a write fails, the records before
        it stay committed and the rest are not attempted.

        Raises:
            ValidationError: any record invalid (storage untouched)
            StorageFailure: a storage write failed
            LedgerClosedError: store not open
        """
        self._ensure_open()
        batch = list(transactions)
        for transaction in batch:
            self._validate(transaction)

        committed: list[tuple[Transaction, int]] = []
        error: Optional[Exception] = None
        async with self._write_lock:
            self._ensure_open()
            for transaction in batch:
                try:
                    await self._storage.put(transaction.id, transaction)
                except Exception as e:
                    logger.error(
                        "transaction_upsert_failed",
                        transaction_id=transaction.id,
                        committed=len(committed),
                        error=str(e),
                    )
                    error = e
                    break

                records = dict(self._records)
                records[transaction.id] = transaction
                self._records = records
                self._revision += 1
                committed.append((transaction, self._revision))
                self._notify()

        logger.info("transactions_upserted", count=len(committed), revision=self._revision)
        if self._audit_logger:
            for transaction, revision in committed:
                await self._audit_logger.log_transaction_saved(
                    transaction_id=transaction.id,
                    kind=transaction.kind.value,
                    amount=transaction.amount,
                    category=transaction.category,
                    revision=revision,
                )
            if error is not None:
                await self._audit_logger.log_mutation_failed(
                    batch[len(committed)].id, "upsert_many", str(error)
                )
        if error is not None:
            raise StorageFailure("upsert_many", str(error)) from error
        return [transaction for transaction, _ in committed]

    async def delete_by_id(self, transaction_id: str) -> bool:
        """
        Delete a transaction by id.

        Deleting an id that does not exist succeeds and changes nothing;
        listeners are only notified when a record was removed.

        Returns:
            True if a record was removed

        Raises:
            ValidationError: empty id
            StorageFailure: storage delete failed (nothing committed)
            LedgerClosedError: store not open
        """
        self._ensure_open()
        self._validate_id(transaction_id)

        async with self._write_lock:
            self._ensure_open()
            try:
                removed_from_storage = await self._storage.delete_by_id(transaction_id)
            except Exception as e:
                logger.error("transaction_delete_failed", transaction_id=transaction_id, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_mutation_failed(transaction_id, "delete", str(e))
                raise StorageFailure("delete", str(e)) from e

            existed = transaction_id in self._records or bool(removed_from_storage)
            if existed:
                records = dict(self._records)
                records.pop(transaction_id, None)
                self._records = records
                self._revision += 1
                self._notify()
            revision = self._revision

        logger.info(
            "transaction_deleted",
            transaction_id=transaction_id,
            existed=existed,
            revision=revision,
        )
        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                existed=existed,
                revision=revision,
            )
        return existed

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """The transaction with this id, or None."""
        self._ensure_open()
        return self._records.get(transaction_id)

    def all(self) -> LedgerSnapshot:
        """The current snapshot. Later writes never change a returned snapshot."""
        self._ensure_open()
        return tuple(self._records.values())

    def by_kind(self, kind: TransactionKind) -> list[Transaction]:
        return [txn for txn in self.all() if txn.kind is kind]

    def by_category(self, category: str) -> list[Transaction]:
        return [txn for txn in self.all() if txn.category == category]

    async def query_range(
        self,
        start: Union[int, datetime],
        end: Union[int, datetime],
    ) -> list[Transaction]:
        """
        Transactions with start <= timestamp < end, in no particular order.

        Bounds are epoch milliseconds or datetimes. An empty result is not
        an error.

        Raises:
            StorageFailure: storage read failed
        """
        self._ensure_open()
        start_ms = to_epoch_ms(start) if isinstance(start, datetime) else int(start)
        end_ms = to_epoch_ms(end) if isinstance(end, datetime) else int(end)

        try:
            found = await self._storage.query_range(start_ms, end_ms)
        except Exception as e:
            logger.error("ledger_query_failed", start=start_ms, end=end_ms, error=str(e))
            raise StorageFailure("query_range", str(e)) from e

        # Storage may treat the end bound inclusively; we do not.
        return [txn for txn in found if start_ms <= txn.timestamp < end_ms]
