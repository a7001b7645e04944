"""
Ledger Errors

Typed failures surfaced by LedgerStore. Storage-level exceptions
(finance_tracker.services.storage.StorageError) never escape the ledger
unwrapped; they arrive as StorageFailure with the original as __cause__.
"""


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError, ValueError):
    """
    Invalid input to a mutation (non-positive amount, empty id).

    Raised before storage is touched.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class StorageFailure(LedgerError):
    """
    The storage collaborator failed.

    For a mutation this means nothing was committed and no
    aggregate was published.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class LedgerClosedError(LedgerError):
    """Operation on a store that is not open."""
    pass
