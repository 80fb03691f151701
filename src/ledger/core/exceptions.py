"""
Custom exceptions for the party ledger pipeline.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""
    pass


class ParseError(LedgerError):
    """
    CSV input cannot be parsed at all.

    Raised when:
    - The file is empty
    - A required header column is missing
    """

    def __init__(self, message: str, missing_columns: list = None):
        super().__init__(message)
        self.missing_columns = missing_columns or []


class ValidationError(LedgerError):
    """
    A single CSV row failed validation.

    Row-level errors are collected by the parser, never raised past it.
    """

    def __init__(self, row_number: int, message: str):
        super().__init__(f"Row {row_number}: {message}")
        self.row_number = row_number


class RecordImportError(LedgerError):
    """A single record could not be written to the remote store."""

    def __init__(self, name: str, reason: str, category, cause: Exception = None):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason
        self.category = category
        self.cause = cause


class AllocationError(RecordImportError):
    """Id generation failed for one record."""
    pass


class SubmissionError(RecordImportError):
    """Create call failed after a successful id allocation."""

    def __init__(
        self,
        name: str,
        reason: str,
        category,
        allocated_id: str,
        cause: Exception = None,
    ):
        super().__init__(name, reason, category, cause)
        self.allocated_id = allocated_id


class TransferFormatError(LedgerError):
    """
    Snapshot JSON is malformed.

    Raised when:
    - The payload is not valid JSON
    - A required key is missing or has the wrong shape
    - An integer field is not a decimal string
    """

    def __init__(self, message: str, path: Optional[str] = None):
        if path:
            message = f"{message} (at {path})"
        super().__init__(message)
        self.path = path


class RemoteStoreError(LedgerError):
    """
    Error reported by, or while talking to, the remote store.

    Attributes:
        status_code: HTTP status code when the backend is HTTP-based
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DuplicateNameError(RemoteStoreError):
    """A party with the same name already exists."""
    pass


class RemoteNetworkError(RemoteStoreError):
    """The remote store could not be reached."""
    pass


class RemoteTimeoutError(RemoteStoreError):
    """The remote store did not answer in time."""
    pass


class RemoteUnavailable(RemoteStoreError):
    """No usable remote store for a whole-dataset operation."""
    pass


class LedgerPermissionError(LedgerError):
    """The session is not allowed to perform the operation."""
    pass


class LedgerConfigError(LedgerError):
    """
    Error in ledger configuration.

    Raised when:
    - Configuration file is missing or invalid
    - Configuration values are out of valid range
    """
    pass
