"""
Audit Logger

DESIGN DECISION: Every ledger mutation and budget check is logged.
This provides:
1. Traceability of every committed write
2. Debugging capability when storage or a budget check fails
3. A history of raised alerts

The audit logger:
- Is async so persistence can go through the storage interface
- Gracefully handles failures (an audit write never breaks a ledger write)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder
from finance_tracker.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """
    Configure stdlib logging and structlog.

    Safe to call more than once; the last call wins.
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", level=numeric_level)
    logging.getLogger().setLevel(numeric_level)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Records ledger and budget-check events.

    Every event goes to the structured log; when an AuditStorageInterface
    is configured it is also appended there.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Where events are persisted. Local log only if None.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_saved(
        self,
        transaction_id: str,
        kind: str,
        amount: float,
        category: str,
        revision: int,
    ) -> None:
        """Log a committed upsert."""
        await self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction_id,
            kind=kind,
            amount=amount,
            category=category,
            revision=revision,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        existed: bool,
        revision: int,
    ) -> None:
        """Log a committed delete."""
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            existed=existed,
            revision=revision,
        ))

    async def log_mutation_failed(
        self,
        transaction_id: str,
        operation: str,
        error_message: str,
    ) -> None:
        """Log a mutation that storage rejected."""
        await self.log(AuditEventBuilder.mutation_failed(
            transaction_id=transaction_id,
            operation=operation,
            error_message=error_message,
        ))

    async def log_budget_check_started(self, run_id: UUID, window_start, window_end) -> None:
        await self.log(AuditEventBuilder.budget_check_started(
            run_id=run_id,
            window_start=window_start,
            window_end=window_end,
        ))

    async def log_budget_check_completed(
        self,
        run_id: UUID,
        transaction_count: int,
        spend: dict[str, float],
    ) -> None:
        await self.log(AuditEventBuilder.budget_check_completed(
            run_id=run_id,
            transaction_count=transaction_count,
            spend=spend,
        ))

    async def log_budget_check_failed(self, run_id: UUID, error_message: str) -> None:
        await self.log(AuditEventBuilder.budget_check_failed(
            run_id=run_id,
            error_message=error_message,
        ))

    async def log_alert_raised(self, run_id: UUID, alert_kind: str, message: str) -> None:
        await self.log(AuditEventBuilder.alert_raised(
            run_id=run_id,
            alert_kind=alert_kind,
            message=message,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a unit of work (e.g., one budget check run).
    """
    return uuid4()
