"""Validation package."""

from finance_tracker.validation.validator import MAX_NOTE_LENGTH, TransactionValidator

__all__ = ["MAX_NOTE_LENGTH", "TransactionValidator"]
