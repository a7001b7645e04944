"""
Budget Monitor

A job that something else triggers on an interval (see
finance_tracker.scheduling). Each run looks at today's transactions and
raises exactly one alert:

1. Window = local midnight .. now
2. Query the ledger for that window
3. Sum expenses per category, in the order categories are first seen
4. First category over the limit -> OverBudgetAlert
5. Otherwise -> HeartbeatAlert naming the top category (if any)

DESIGN DECISION: The monitor keeps no memory between runs. If a category
stays over budget, every run raises the same alert again. Only one alert
is raised per run even when several categories are over the limit.

State: IDLE -> RUNNING -> (SUCCEEDED | FAILED) -> IDLE. The monitor holds
no ledger locks, so cancelling a run mid-query leaves the ledger as it was.
"""

import asyncio
from datetime import datetime, time, tzinfo
from enum import Enum
from typing import Callable, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.ledger.errors import LedgerError
from finance_tracker.ledger.store import LedgerStore
from finance_tracker.models.alert import Alert, HeartbeatAlert, OverBudgetAlert
from finance_tracker.models.transaction import Aggregate, Transaction
from finance_tracker.monitor.sinks import AlertSink


DEFAULT_DAILY_LIMIT = 250.0

logger = structlog.get_logger(__name__)


class MonitorState(str, Enum):
    """Lifecycle of a single budget check."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MonitorRunFailure(Exception):
    """A budget check was aborted. No alert was raised for it."""

    def __init__(self, run_id: UUID, message: str):
        self.run_id = run_id
        super().__init__(message)


class MonitorBusyError(RuntimeError):
    """run() was called while a previous run was still in progress."""
    pass


class MonitorRunResult(BaseModel):
    """What one successful budget check saw and raised."""
    model_config = ConfigDict(frozen=True)

    run_id: UUID
    window_start: datetime
    window_end: datetime
    transaction_count: int = Field(ge=0)
    spend: dict[str, float] = Field(default_factory=dict)
    alert: Alert


class BudgetMonitor:
    """
    Periodic check of today's spending against a single per-category limit.

    The limit is one global value applied to every category.
    """

    def __init__(
        self,
        store: LedgerStore,
        sink: AlertSink,
        limit: float = DEFAULT_DAILY_LIMIT,
        tz: Optional[tzinfo] = None,
        currency_symbol: str = "€",
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            store: Ledger to query
            sink: Where alerts go
            limit: Spending limit shared by all categories
            tz: Timezone that defines "today"; system local time if None
            currency_symbol: Used when rendering alert messages
            audit_logger: Optional audit trail
            clock: Returns "now"; defaults to the wall clock
        """
        if not limit > 0:
            raise ValueError(f"Budget limit must be positive, got {limit}")
        self._store = store
        self._sink = sink
        self._limit = float(limit)
        self._tz = tz
        self._currency_symbol = currency_symbol
        self._audit_logger = audit_logger
        self._clock = clock or (lambda: datetime.now(tz) if tz else datetime.now().astimezone())
        self._state = MonitorState.IDLE
        self._last_outcome: Optional[MonitorState] = None
        self._run_count = 0

    @property
    def limit(self) -> float:
        return self._limit

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def last_outcome(self) -> Optional[MonitorState]:
        """SUCCEEDED or FAILED for the most recent run; None before the first."""
        return self._last_outcome

    @property
    def run_count(self) -> int:
        return self._run_count

    # -------------------------------------------------------------------------
    # Pure steps
    # -------------------------------------------------------------------------

    def _localize(self, now: datetime) -> datetime:
        if self._tz is None:
            return now.astimezone()
        if now.tzinfo is None:
            return now.replace(tzinfo=self._tz)
        return now.astimezone(self._tz)

    def window_for(self, now: datetime) -> tuple[datetime, datetime]:
        """
        Start of the local calendar day containing `now`, and `now`.

        Midnight gets the UTC offset in force at midnight, which differs
        from the offset of `now` on a DST-change day.
        """
        now = self._localize(now)
        if self._tz is None:
            # System local time is a fixed offset; resolve midnight's own offset
            return datetime.combine(now.date(), time.min).astimezone(), now
        return now.replace(hour=0, minute=0, second=0, microsecond=0), now

    @staticmethod
    def category_spend(transactions: Iterable[Transaction]) -> dict[str, float]:
        """Expense total per category, in first-seen order. Income is ignored."""
        return dict(Aggregate.from_transactions(transactions).category_spend)

    def evaluate(self, spend: dict[str, float], transaction_count: int) -> Alert:
        """Pick the single alert for a run."""
        for category, spent in spend.items():
            if spent > self._limit:
                return OverBudgetAlert(category=category, spent=spent, limit=self._limit)

        if not spend:
            return HeartbeatAlert(transaction_count=transaction_count)

        top_category = max(spend, key=spend.get)
        return HeartbeatAlert(
            transaction_count=transaction_count,
            top_category=top_category,
            top_amount=spend[top_category],
        )

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def run(self, now: Optional[datetime] = None) -> MonitorRunResult:
        """
        Execute one budget check.

        Returns:
            MonitorRunResult with the alert that was sent

        Raises:
            MonitorBusyError: A run is already in progress
            MonitorRunFailure: The query or alert delivery failed; no alert
                               was recorded as raised
        """
        if self._state is MonitorState.RUNNING:
            raise MonitorBusyError("Budget check already running")

        self._state = MonitorState.RUNNING
        self._run_count += 1
        outcome = MonitorState.FAILED
        run_id = create_correlation_id()
        log = logger.bind(run_id=str(run_id))

        try:
            window_start, window_end = self.window_for(now or self._clock())
            log.info(
                "budget_check_started",
                window_start=window_start.isoformat(),
                window_end=window_end.isoformat(),
            )
            if self._audit_logger:
                await self._audit_logger.log_budget_check_started(run_id, window_start, window_end)

            try:
                transactions = await self._store.query_range(window_start, window_end)
            except LedgerError as e:
                raise MonitorRunFailure(run_id, f"Ledger query failed: {e}") from e

            spend = self.category_spend(transactions)
            alert = self.evaluate(spend, len(transactions))

            try:
                await self._sink.send(alert)
            except Exception as e:
                raise MonitorRunFailure(run_id, f"Alert delivery failed: {e}") from e

            outcome = MonitorState.SUCCEEDED
            log.info(
                "budget_check_completed",
                transaction_count=len(transactions),
                alert_kind=alert.kind,
            )
            if self._audit_logger:
                await self._audit_logger.log_budget_check_completed(run_id, len(transactions), spend)
                await self._audit_logger.log_alert_raised(run_id, alert.kind, alert.message(self._currency_symbol))

            return MonitorRunResult(
                run_id=run_id,
                window_start=window_start,
                window_end=window_end,
                transaction_count=len(transactions),
                spend=spend,
                alert=alert,
            )

        except MonitorRunFailure as e:
            log.error("budget_check_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_budget_check_failed(run_id, str(e))
            raise

        except asyncio.CancelledError:
            log.warning("budget_check_cancelled")
            raise

        finally:
            self._last_outcome = outcome
            self._state = MonitorState.IDLE
