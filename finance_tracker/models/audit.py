"""
Audit Models for Finance Tracker

Every ledger mutation and every budget check is recorded for audit purposes.
This provides:
1. A history of what changed in the ledger and when
2. Debugging information when a storage write or a budget check fails
3. A record of which alerts were raised

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_DELETED = "transaction_deleted"
    SAVE_FAILED = "save_failed"
    DELETE_FAILED = "delete_failed"

    # Budget monitoring
    BUDGET_CHECK_STARTED = "budget_check_started"
    BUDGET_CHECK_COMPLETED = "budget_check_completed"
    BUDGET_CHECK_FAILED = "budget_check_failed"
    ALERT_RAISED = "alert_raised"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget_check')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one budget check run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(txn_id, "expense", 12.5, "Food")
        event = AuditEventBuilder.budget_check_failed(run_id, "timeout")
    """

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        kind: str,
        amount: float,
        category: str,
        revision: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction saved: {kind} {amount:.2f} ({category})",
            details={
                "kind": kind,
                "amount": amount,
                "category": category,
                "revision": revision,
            },
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        existed: bool,
        revision: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=(
                "Transaction deleted"
                if existed
                else "Delete requested for unknown transaction (no-op)"
            ),
            details={
                "existed": existed,
                "revision": revision,
            },
        )

    @staticmethod
    def mutation_failed(
        transaction_id: str,
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.SAVE_FAILED
            if operation in ("upsert", "upsert_many")
            else AuditEventType.DELETE_FAILED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Ledger {operation} failed; nothing was committed",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def budget_check_started(
        run_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CHECK_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type="budget_check",
            entity_id=str(run_id),
            correlation_id=run_id,
            description="Budget check started",
            details={
                "window_start": window_start.isoformat(),
                "window_end": window_end.isoformat(),
            },
        )

    @staticmethod
    def budget_check_completed(
        run_id: UUID,
        transaction_count: int,
        spend: dict[str, float],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CHECK_COMPLETED,
            entity_type="budget_check",
            entity_id=str(run_id),
            correlation_id=run_id,
            description=f"Budget check completed over {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
                "spend": spend,
            },
        )

    @staticmethod
    def budget_check_failed(
        run_id: UUID,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CHECK_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="budget_check",
            entity_id=str(run_id),
            correlation_id=run_id,
            description="Budget check failed; no alert raised",
            error_message=error_message,
        )

    @staticmethod
    def alert_raised(
        run_id: UUID,
        alert_kind: str,
        message: str,
    ) -> AuditEvent:
        severity = (
            AuditSeverity.WARNING
            if alert_kind == "over_budget"
            else AuditSeverity.INFO
        )
        return AuditEvent(
            event_type=AuditEventType.ALERT_RAISED,
            severity=severity,
            entity_type="budget_check",
            entity_id=str(run_id),
            correlation_id=run_id,
            description=message,
            details={"alert_kind": alert_kind},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
