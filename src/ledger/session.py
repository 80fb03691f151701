"""
Caller-facing entry points.

A LedgerSession carries the remote store and what the caller is allowed to
do with it. Every entry point takes the session explicitly; nothing is read
from ambient global state.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from .core.exceptions import LedgerPermissionError, RemoteUnavailable
from .core.models import ImportOutcome, ParsedPartyInput, Snapshot
from .core.remote_store import RemoteStore
from .csv_io.parser import CsvParseResult, CsvParserOptions
from .csv_io.parser import parse_csv as _parse_csv
from .runner.batch_coordinator import (
    BatchImportConfig, BatchSubmissionCoordinator, ProgressCallback,
)
from .transfer.exporter import ExportSerializer
from .transfer.importer import ImportReport, SnapshotImporter, SnapshotSource
from .transfer.merge import ImportMode

logger = logging.getLogger(__name__)


@dataclass
class LedgerSession:
    """
    Authenticated handle on a remote store.

    Attributes:
        store: Remote store, or None if the backend is not connected
        principal: Identity of the caller, for logs
        can_transfer: Whether whole-dataset export/import is allowed
    """
    store: Optional[RemoteStore] = None
    principal: Optional[str] = None
    can_transfer: bool = True

    def require_store(self) -> RemoteStore:
        """
        Raises:
            RemoteUnavailable: If no store is connected
        """
        if self.store is None:
            raise RemoteUnavailable("Backend connection not available")
        return self.store

    def require_transfer(self) -> RemoteStore:
        """
        Raises:
            LedgerPermissionError: If the session may not export/import
            RemoteUnavailable: If no store is connected
        """
        if not self.can_transfer:
            raise LedgerPermissionError(
                f"Principal {self.principal or '<anonymous>'} is not allowed to export or import data"
            )
        return self.require_store()


def parse_csv(text: str, options: Optional[CsvParserOptions] = None) -> CsvParseResult:
    """Parse and validate CSV text. Pure; needs no session."""
    return _parse_csv(text, options)


async def import_parties(
    session: LedgerSession,
    records: Sequence[ParsedPartyInput],
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[BatchImportConfig] = None,
) -> ImportOutcome:
    """
    Create parties for already-validated records.

    Raises:
        RemoteUnavailable: If the session has no store
    """
    store = session.require_store()
    logger.info(f"Bulk import of {len(records)} parties requested by {session.principal or '<anonymous>'}")
    coordinator = BatchSubmissionCoordinator(store, config)
    return await coordinator.import_parties(records, on_progress=on_progress)


async def export_snapshot(session: LedgerSession) -> Snapshot:
    """
    Read the whole dataset.

    Raises:
        LedgerPermissionError: If the session lacks the transfer capability
        RemoteUnavailable: If the store cannot be reached
    """
    store = session.require_transfer()
    return await ExportSerializer(store).export_snapshot()


async def import_snapshot(
    session: LedgerSession,
    data: SnapshotSource,
    mode: Union[ImportMode, str] = ImportMode.MERGE,
    dry_run: bool = False,
) -> ImportReport:
    """
    Merge or overwrite the dataset with an incoming snapshot.

    Raises:
        LedgerPermissionError: If the session lacks the transfer capability
        TransferFormatError: If `data` is malformed
        RemoteUnavailable: If the store cannot be reached
    """
    store = session.require_transfer()
    return await SnapshotImporter(store).import_snapshot(data, mode=mode, dry_run=dry_run)
