"""Budget monitoring package."""

from finance_tracker.monitor.budget import (
    DEFAULT_DAILY_LIMIT,
    BudgetMonitor,
    MonitorBusyError,
    MonitorRunFailure,
    MonitorRunResult,
    MonitorState,
)
from finance_tracker.monitor.sinks import AlertSink, LoggingAlertSink, QueueAlertSink

__all__ = [
    "DEFAULT_DAILY_LIMIT",
    "AlertSink",
    "BudgetMonitor",
    "LoggingAlertSink",
    "MonitorBusyError",
    "MonitorRunFailure",
    "MonitorRunResult",
    "MonitorState",
    "QueueAlertSink",
]
