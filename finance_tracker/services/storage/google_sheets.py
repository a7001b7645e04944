"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is available as a durable backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a personal ledger is fine)
- No server-side queries (we filter in Python)
- gspread is blocking, so every call runs in a worker thread

Retry with backoff lives here, not in the ledger: the ledger surfaces
whatever error remains after this layer gives up.
"""

import asyncio
import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from finance_tracker.config import GoogleSheetsSettings, get_settings
from finance_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_tracker.models.transaction import Transaction, TransactionKind
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "amount",
    "kind",
    "category",
    "timestamp",
    "note",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

_sheets_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row; the id column is the primary key.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _transaction_to_row(transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction.id,
            repr(transaction.amount),
            transaction.kind.value,
            transaction.category,
            str(transaction.timestamp),
            transaction.note or "",
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return Transaction(
            id=safe_get(0),
            amount=float(safe_get(1)),
            kind=TransactionKind(safe_get(2)),
            category=safe_get(3),
            timestamp=int(safe_get(4)),
            note=safe_get(5) or None,
        )

    def _data_rows(self, sheet: gspread.Worksheet) -> list[list]:
        # Skip the header row
        return [row for row in sheet.get_all_values()[1:] if row and row[0]]

    @staticmethod
    def _find_row_index(all_rows: list[list], transaction_id: str) -> Optional[int]:
        """1-based sheet row index for an id, or None."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == transaction_id:
                return idx
        return None

    @_sheets_retry
    def _put_sync(self, transaction_id: str, transaction: Transaction) -> None:
        sheet = self._client.get_transactions_sheet()
        row = self._transaction_to_row(transaction)
        idx = self._find_row_index(sheet.get_all_values(), transaction_id)
        if idx is None:
            sheet.append_row(row, value_input_option="RAW")
        else:
            sheet.update(
                range_name=f"A{idx}:{chr(ord('A') + len(row) - 1)}{idx}",
                values=[row],
                value_input_option="RAW",
            )

    @_sheets_retry
    def _get_all_sync(self) -> list[Transaction]:
        sheet = self._client.get_transactions_sheet()
        return [self._row_to_transaction(row) for row in self._data_rows(sheet)]

    @_sheets_retry
    def _delete_sync(self, transaction_id: str) -> bool:
        sheet = self._client.get_transactions_sheet()
        idx = self._find_row_index(sheet.get_all_values(), transaction_id)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    async def put(self, transaction_id: str, transaction: Transaction) -> None:
        """Insert or replace a transaction row."""
        try:
            await asyncio.to_thread(self._put_sync, transaction_id, transaction)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction {transaction_id}: {e}") from e

    async def get_all(self) -> list[Transaction]:
        """Load every transaction row."""
        try:
            return await asyncio.to_thread(self._get_all_sync)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load transactions: {e}") from e

    async def delete_by_id(self, transaction_id: str) -> bool:
        """Delete a transaction row; False if there was none."""
        try:
            return await asyncio.to_thread(self._delete_sync, transaction_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete transaction {transaction_id}: {e}") from e

    async def query_range(self, start: int, end: int) -> list[Transaction]:
        """Transactions in [start, end), filtered in Python."""
        transactions = await self.get_all()
        return [txn for txn in transactions if start <= txn.timestamp < end]


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit storage.

    Append-only log in a separate worksheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @_sheets_retry
    def _append_sync(self, event: AuditEvent) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

    @_sheets_retry
    def _recent_sync(self, limit: int) -> list[list]:
        sheet = self._client.get_audit_sheet()
        return sheet.get_all_values()[1:][-limit:]

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the sheet."""
        try:
            await asyncio.to_thread(self._append_sync, event)
            return True
        except Exception as e:
            raise StorageError(f"Failed to append audit event: {e}") from e

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events, newest first."""
        if limit <= 0:
            return []
        try:
            rows = await asyncio.to_thread(self._recent_sync, limit)
        except Exception as e:
            raise StorageError(f"Failed to read audit events: {e}") from e

        events = []
        for row in reversed(rows):
            row = row + [""] * (len(AUDIT_COLUMNS) - len(row))
            events.append(AuditEvent(
                event_id=UUID(row[0]),
                timestamp=datetime.fromisoformat(row[1]),
                event_type=AuditEventType(row[2]),
                severity=AuditSeverity(row[3]),
                entity_type=row[4] or None,
                entity_id=row[5] or None,
                correlation_id=UUID(row[6]) if row[6] else None,
                description=row[7],
                details=json.loads(row[8]) if row[8] else {},
                error_message=row[9] or None,
            ))
        return events
