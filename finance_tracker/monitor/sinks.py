"""
Alert Sinks

The BudgetMonitor hands every alert to an AlertSink. Rendering an alert as
a user-visible notification is the sink's job, not the core's.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from finance_tracker.models.alert import Alert, OverBudgetAlert


class AlertSink(ABC):
    """Receives one alert per successful budget check."""

    @abstractmethod
    async def send(self, alert: Alert) -> None:
        """
        Deliver an alert.

        Raises:
            Exception: Any delivery failure; the monitor reports the
                       run as failed
        """
        pass


class LoggingAlertSink(AlertSink):
    """Writes alerts to the structured log. Over-budget alerts log as warnings."""

    def __init__(self, currency_symbol: str = "€"):
        self._currency_symbol = currency_symbol
        self._logger = structlog.get_logger(__name__)

    async def send(self, alert: Alert) -> None:
        log = self._logger.warning if isinstance(alert, OverBudgetAlert) else self._logger.info
        log(
            "budget_alert",
            kind=alert.kind,
            title=alert.title,
            message=alert.message(self._currency_symbol),
        )


class QueueAlertSink(AlertSink):
    """Puts alerts on an asyncio.Queue for a consumer elsewhere in the process."""

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    async def send(self, alert: Alert) -> None:
        await self.queue.put(alert)
