"""
Core abstractions for the party ledger pipeline.
"""

from .models import (
    PartyRecord, VisitRecord, Location, BrandingConfig, Snapshot,
    ParsedPartyInput, ImportFailure, ImportOutcome,
    FailureCategory, FailureStage,
)
from .remote_store import RemoteStore
from .exceptions import (
    LedgerError, ParseError, ValidationError, RecordImportError,
    AllocationError, SubmissionError, TransferFormatError,
    RemoteStoreError, DuplicateNameError, RemoteNetworkError,
    RemoteTimeoutError, RemoteUnavailable, LedgerPermissionError,
    LedgerConfigError,
)

__all__ = [
    "PartyRecord",
    "VisitRecord",
    "Location",
    "BrandingConfig",
    "Snapshot",
    "ParsedPartyInput",
    "ImportFailure",
    "ImportOutcome",
    "FailureCategory",
    "FailureStage",
    "RemoteStore",
    "LedgerError",
    "ParseError",
    "ValidationError",
    "RecordImportError",
    "AllocationError",
    "SubmissionError",
    "TransferFormatError",
    "RemoteStoreError",
    "DuplicateNameError",
    "RemoteNetworkError",
    "RemoteTimeoutError",
    "RemoteUnavailable",
    "LedgerPermissionError",
    "LedgerConfigError",
]
