"""
Snapshot import: decode, reconcile, write once.

The whole target snapshot is computed before the single apply_snapshot call,
so a decode or reconciliation failure leaves the remote store untouched.
Atomicity of that one write is up to the store.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..core.logging import CorrelationContext, log_with_context
from ..core.models import Snapshot
from ..core.remote_store import RemoteStore
from .canonical import compute_snapshot_hash
from .codec import decode_snapshot, loads, read_snapshot_file
from .exporter import ExportSerializer
from .merge import ImportMode, apply_import

logger = logging.getLogger(__name__)

SnapshotSource = Union[Snapshot, Dict[str, Any], str, bytes, Path]


@dataclass
class ImportReport:
    """Report of a snapshot import."""
    mode: str
    dry_run: bool
    started_at: datetime
    completed_at: Optional[datetime] = None

    incoming_parties: int = 0
    incoming_visit_records: int = 0

    # Only known in merge mode
    existing_parties: Optional[int] = None
    existing_visit_records: Optional[int] = None

    result_parties: int = 0
    result_visit_records: int = 0
    result_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "mode": self.mode,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "incoming": {
                "parties": self.incoming_parties,
                "visit_records": self.incoming_visit_records,
            },
            "existing": {
                "parties": self.existing_parties,
                "visit_records": self.existing_visit_records,
            },
            "result": {
                "parties": self.result_parties,
                "visit_records": self.result_visit_records,
                "hash": self.result_hash,
            },
        }

    def summary(self) -> str:
        """Get a human-readable summary."""
        lines = [
            f"Snapshot Import ({self.mode})",
            f"  Dry run: {self.dry_run}",
            f"  Incoming: {self.incoming_parties} parties, "
            f"{self.incoming_visit_records} visit records",
        ]
        if self.existing_parties is not None:
            lines.append(
                f"  Existing: {self.existing_parties} parties, "
                f"{self.existing_visit_records} visit records"
            )
        lines.append(
            f"  Result: {self.result_parties} parties, "
            f"{self.result_visit_records} visit records"
        )
        if self.result_hash:
            lines.append(f"  Result hash: {self.result_hash[:16]}...")
        return "\n".join(lines)


def coerce_snapshot(data: SnapshotSource) -> Snapshot:
    """
    Turn any supported import source into a Snapshot.

    Accepts a Snapshot, a decoded wire dict, wire JSON text/bytes, or a path
    to a wire JSON file.

    Raises:
        TransferFormatError: If the source is not a valid snapshot
    """
    if isinstance(data, Snapshot):
        return data
    if isinstance(data, Path):
        return read_snapshot_file(data)
    if isinstance(data, (str, bytes)):
        return loads(data)
    return decode_snapshot(data)


class SnapshotImporter:
    """
    Applies an incoming snapshot to a remote store in merge or overwrite mode.
    """

    def __init__(self, store: RemoteStore):
        """
        Initialize the importer.

        Args:
            store: Remote store to read from (merge mode) and write to
        """
        self.store = store
        self.exporter = ExportSerializer(store)

    async def import_snapshot(
        self,
        data: SnapshotSource,
        mode: Union[ImportMode, str] = ImportMode.MERGE,
        dry_run: bool = False,
    ) -> ImportReport:
        """
        Import a snapshot.

        Args:
            data: Snapshot, wire dict, wire JSON text, or path to a JSON file
            mode: ImportMode.MERGE (default) or ImportMode.OVERWRITE
            dry_run: If True, compute the target but do not write it

        Returns:
            ImportReport with before/after counts

        Raises:
            TransferFormatError: If `data` is malformed (nothing is written)
            ValueError: If `mode` is unknown (nothing is written)
            RemoteUnavailable: If merge mode cannot read existing data
        """
        mode = ImportMode(mode)
        incoming = coerce_snapshot(data)

        report = ImportReport(
            mode=mode.value,
            dry_run=dry_run,
            started_at=datetime.now(timezone.utc),
            incoming_parties=len(incoming.parties),
            incoming_visit_records=incoming.visit_record_count,
        )

        with CorrelationContext(mode=mode.value, store=self.store.get_name()):
            if mode == ImportMode.MERGE:
                existing = await self.exporter.export_snapshot()
                report.existing_parties = len(existing.parties)
                report.existing_visit_records = existing.visit_record_count
            else:
                existing = Snapshot()

            target = apply_import(existing, incoming, mode)
            report.result_parties = len(target.parties)
            report.result_visit_records = target.visit_record_count
            report.result_hash = compute_snapshot_hash(target)

            if dry_run:
                log_with_context(logger, logging.INFO, "Dry run: snapshot not written")
            else:
                await self.store.apply_snapshot(target)
                log_with_context(
                    logger,
                    logging.INFO,
                    f"Applied snapshot: {report.result_parties} parties, "
                    f"{report.result_visit_records} visit records",
                )

        report.completed_at = datetime.now(timezone.utc)
        return report
