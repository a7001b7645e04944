"""
Tests for storage backends

Google Sheets storage is exercised against an in-process stand-in for
a worksheet; no network access.
"""

import asyncio

import pytest

from conftest import MIDNIGHT, make_txn
from finance_tracker.models import (
    AuditEventBuilder,
    AuditEventType,
    HeartbeatAlert,
    OverBudgetAlert,
    TransactionKind,
)
from finance_tracker.monitor import LoggingAlertSink, QueueAlertSink
from finance_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    StorageError,
)
from finance_tracker.services.storage.google_sheets import AUDIT_COLUMNS, TRANSACTION_COLUMNS


EXPENSE = TransactionKind.EXPENSE


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, header):
        self.rows = [list(header)]
        self.broken = False

    def get_all_values(self):
        if self.broken:
            raise ConnectionError("network down")
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def update(self, range_name, values, value_input_option=None):
        idx = int(range_name.split(":")[0][1:])
        self.rows[idx - 1] = list(values[0])

    def delete_rows(self, idx):
        del self.rows[idx - 1]


class FakeSheetsClient:
    def __init__(self):
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_transactions_sheet(self):
        return self.transactions

    def get_audit_sheet(self):
        return self.audit


class TestInMemoryStorage:
    """Tests for InMemoryTransactionStorage."""

    @pytest.mark.asyncio
    async def test_put_replaces_by_id(self):
        storage = InMemoryTransactionStorage()
        await storage.put("t1", make_txn("t1", 10, EXPENSE, "Food"))
        await storage.put("t1", make_txn("t1", 20, EXPENSE, "Food"))
        assert len(storage) == 1
        assert (await storage.get_all())[0].amount == 20

    @pytest.mark.asyncio
    async def test_delete_reports_presence(self):
        storage = InMemoryTransactionStorage([make_txn("t1", 10, EXPENSE, "Food")])
        assert await storage.delete_by_id("t1") is True
        assert await storage.delete_by_id("t1") is False

    @pytest.mark.asyncio
    async def test_audit_non_positive_limit_reads_nothing(self):
        storage = InMemoryAuditStorage()
        await storage.append_event(AuditEventBuilder.transaction_deleted("t1", True, 1))
        assert await storage.get_recent_events(limit=0) == []
        assert await storage.get_recent_events(limit=-1) == []


class TestGoogleSheetsTransactionStorage:
    """Tests for GoogleSheetsTransactionStorage against a fake worksheet."""

    @pytest.fixture
    def client(self):
        return FakeSheetsClient()

    @pytest.fixture
    def storage(self, client):
        return GoogleSheetsTransactionStorage(client)

    def test_row_conversion_preserves_fields(self):
        txn = make_txn("t1", 12.34, EXPENSE, "Food", note="lunch")
        row = GoogleSheetsTransactionStorage._transaction_to_row(txn)
        assert row[0] == "t1"
        assert GoogleSheetsTransactionStorage._row_to_transaction(row) == txn

    def test_row_without_note(self):
        row = ["t1", "5.0", "income", "Gift", "0"]
        txn = GoogleSheetsTransactionStorage._row_to_transaction(row)
        assert txn.note is None
        assert txn.kind is TransactionKind.INCOME

    @pytest.mark.asyncio
    async def test_put_appends_then_updates_in_place(self, storage, client):
        await storage.put("t1", make_txn("t1", 10, EXPENSE, "Food"))
        await storage.put("t2", make_txn("t2", 5, EXPENSE, "Bills"))
        await storage.put("t1", make_txn("t1", 99, EXPENSE, "Transport"))

        assert len(client.transactions.rows) == 3
        loaded = {txn.id: txn for txn in await storage.get_all()}
        assert loaded["t1"].amount == 99
        assert loaded["t1"].category == "Transport"

    @pytest.mark.asyncio
    async def test_delete(self, storage, client):
        await storage.put("t1", make_txn("t1", 10, EXPENSE, "Food"))
        assert await storage.delete_by_id("t1") is True
        assert await storage.delete_by_id("t1") is False
        assert client.transactions.rows == [TRANSACTION_COLUMNS]

    @pytest.mark.asyncio
    async def test_query_range_is_half_open(self, storage):
        await storage.put("a", make_txn("a", 1, EXPENSE, "Food", at=MIDNIGHT))
        await storage.put("b", make_txn("b", 1, EXPENSE, "Food", at=MIDNIGHT.replace(day=15)))
        found = await storage.query_range(
            int(MIDNIGHT.timestamp() * 1000),
            int(MIDNIGHT.replace(day=15).timestamp() * 1000),
        )
        assert [txn.id for txn in found] == ["a"]

    @pytest.mark.asyncio
    async def test_failures_become_storage_error(self, storage, client):
        client.transactions.broken = True
        with pytest.raises(StorageError):
            await storage.get_all()


class TestGoogleSheetsAuditStorage:
    """Tests for GoogleSheetsAuditStorage."""

    @pytest.mark.asyncio
    async def test_append_and_read_back_newest_first(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        await storage.append_event(AuditEventBuilder.transaction_saved("t1", "expense", 1.0, "Food", 1))
        await storage.append_event(AuditEventBuilder.transaction_deleted("t1", True, 2))

        events = await storage.get_recent_events(limit=10)
        assert [event.event_type for event in events] == [
            AuditEventType.TRANSACTION_DELETED,
            AuditEventType.TRANSACTION_SAVED,
        ]
        assert events[1].details["category"] == "Food"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -1])
    async def test_non_positive_limit_reads_nothing(self, limit):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        await storage.append_event(AuditEventBuilder.transaction_deleted("t1", True, 1))

        assert await storage.get_recent_events(limit=limit) == []

    @pytest.mark.asyncio
    async def test_limit_keeps_newest(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        for revision in range(1, 4):
            await storage.append_event(AuditEventBuilder.transaction_deleted(f"t{revision}", True, revision))

        events = await storage.get_recent_events(limit=2)
        assert [event.entity_id for event in events] == ["t3", "t2"]


class TestAlertSinks:
    """Tests for the bundled alert sinks."""

    @pytest.mark.asyncio
    async def test_queue_sink(self):
        sink = QueueAlertSink()
        alert = HeartbeatAlert(transaction_count=0)
        await sink.send(alert)
        assert await asyncio.wait_for(sink.queue.get(), timeout=1) is alert

    @pytest.mark.asyncio
    async def test_logging_sink_accepts_both_kinds(self):
        sink = LoggingAlertSink("$")
        await sink.send(OverBudgetAlert(category="Food", spent=300, limit=250))
        await sink.send(HeartbeatAlert(transaction_count=1, top_category="Food", top_amount=3))
