"""
Application Wiring for Finance Tracker

This module builds one process-scoped set of components and owns their
lifecycle:
1. Storage (in-memory or Google Sheets, per settings)
2. LedgerStore + AggregationEngine
3. BudgetMonitor + AlertSink
4. AuditLogger

DESIGN DECISION: There is no global store. create_app_components() returns
a container; callers pass its members by reference. start() must be
awaited before use and shutdown() at the end - or use it as an async
context manager.
"""

from typing import Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.config import Settings, get_settings
from finance_tracker.ledger import AggregationEngine, LedgerStore, StorageFailure
from finance_tracker.monitor import AlertSink, BudgetMonitor, LoggingAlertSink
from finance_tracker.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    TransactionStorageInterface,
)
from finance_tracker.validation import TransactionValidator


logger = structlog.get_logger(__name__)


class AppComponents:
    """
    Everything one running tracker needs, wired together.

    The engine is attached before the store opens, so the very first
    Aggregate reflects the loaded ledger.
    """

    def __init__(
        self,
        store: LedgerStore,
        engine: AggregationEngine,
        monitor: BudgetMonitor,
        audit_logger: AuditLogger,
        validator: Optional[TransactionValidator] = None,
    ):
        self.store = store
        self.engine = engine
        self.monitor = monitor
        self.audit_logger = audit_logger
        self.validator = validator or TransactionValidator()
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Attach the engine and load the ledger."""
        if self._started:
            return
        self.engine.attach(self.store)
        try:
            await self.store.open()
        except StorageFailure as e:
            self.engine.detach()
            await self.audit_logger.log_error("ledger_open_failed", str(e))
            raise
        self._started = True
        logger.info("components_started", revision=self.store.revision)

    async def shutdown(self) -> None:
        """End subscriptions and close the ledger."""
        if not self._started:
            return
        self.engine.close()
        await self.store.close()
        self._started = False
        logger.info("components_stopped")

    async def __aenter__(self) -> "AppComponents":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()


def create_app_components(
    storage: Optional[TransactionStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    sink: Optional[AlertSink] = None,
    settings: Optional[Settings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        storage: Transaction storage to use. When None, the backend named
                 by AppSettings.storage_backend is built.
        audit_storage: Where audit events are persisted; local log only if None
                       (Google Sheets backend brings its own).
        sink: Alert sink; logs alerts when None.
        settings: Settings to use instead of get_settings().

    Returns:
        Unstarted AppComponents
    """
    settings = settings or get_settings()
    budget = settings.budget

    if storage is None:
        backend = settings.app.storage_backend
        if backend == "google_sheets":
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            storage = GoogleSheetsTransactionStorage(sheets_client)
            if audit_storage is None:
                audit_storage = GoogleSheetsAuditStorage(sheets_client)
        elif backend == "memory":
            storage = InMemoryTransactionStorage()
        else:
            raise ValueError(f"Unknown storage backend: {backend}")
        logger.info("storage_selected", backend=backend)

    audit_logger = AuditLogger(audit_storage)
    store = LedgerStore(storage, audit_logger=audit_logger)
    engine = AggregationEngine()
    monitor = BudgetMonitor(
        store,
        sink or LoggingAlertSink(budget.currency_symbol),
        limit=budget.daily_limit,
        tz=budget.tzinfo,
        currency_symbol=budget.currency_symbol,
        audit_logger=audit_logger,
    )

    return AppComponents(
        store=store,
        engine=engine,
        monitor=monitor,
        audit_logger=audit_logger,
    )
