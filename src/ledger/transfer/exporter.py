"""
Export serializer: reads the whole dataset from the remote store.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..core.exceptions import RemoteStoreError, RemoteUnavailable
from ..core.models import Snapshot
from ..core.remote_store import RemoteStore
from .codec import DEFAULT_EXPORT_FILENAME, dumps, write_snapshot_file

logger = logging.getLogger(__name__)


class ExportSerializer:
    """
    Produces a complete Snapshot of the remote store.

    There is no filtering or pagination: an export either returns the whole
    dataset or raises RemoteUnavailable.
    """

    def __init__(self, store: RemoteStore):
        """
        Initialize the exporter.

        Args:
            store: Remote store to read from
        """
        self.store = store

    async def export_snapshot(self) -> Snapshot:
        """
        Read parties, visit records and branding in one logical operation.

        Raises:
            RemoteUnavailable: If the store cannot be read
        """
        try:
            snapshot = await self.store.export_snapshot()
        except RemoteUnavailable:
            raise
        except RemoteStoreError as e:
            raise RemoteUnavailable(
                f"Failed to export from {self.store.get_name()}: {e}",
                status_code=e.status_code,
            ) from e

        orphaned = snapshot.orphaned_party_ids()
        if orphaned:
            logger.warning(
                f"Export contains visit records for {len(orphaned)} unknown parties: "
                f"{', '.join(orphaned[:5])}"
            )

        logger.info(
            f"Exported {len(snapshot.parties)} parties and "
            f"{snapshot.visit_record_count} visit records from {self.store.get_name()}"
        )
        return snapshot

    async def export_json(self, indent: Optional[int] = None) -> str:
        """Export and serialize to wire JSON text."""
        return dumps(await self.export_snapshot(), indent=indent)

    async def export_to_file(self, path: Union[str, Path, None] = None) -> Path:
        """
        Export to a wire JSON file.

        Args:
            path: Target file (default: ./party-ledger-export.json)
        """
        snapshot = await self.export_snapshot()
        return write_snapshot_file(snapshot, Path(path or DEFAULT_EXPORT_FILENAME))
