"""
Snapshot transfer: JSON codec, export serializer and import merge engine.

This module provides:
- Codec: bigint-safe encode/decode between Snapshot and wire JSON
- Canonical hashing: stable fingerprint of a snapshot's wire form
- ExportSerializer: full-dataset read from the remote store
- apply_import: merge/overwrite reconciliation
- SnapshotImporter: decode → reconcile → single write
"""

from .codec import (
    DEFAULT_EXPORT_FILENAME,
    decode_snapshot,
    dumps,
    encode_snapshot,
    loads,
    read_snapshot_file,
    write_snapshot_file,
)
from .canonical import canonicalize, compute_snapshot_hash
from .exporter import ExportSerializer
from .merge import ImportMode, apply_import
from .importer import ImportReport, SnapshotImporter, coerce_snapshot

__all__ = [
    "DEFAULT_EXPORT_FILENAME",
    "decode_snapshot",
    "dumps",
    "encode_snapshot",
    "loads",
    "read_snapshot_file",
    "write_snapshot_file",
    "canonicalize",
    "compute_snapshot_hash",
    "ExportSerializer",
    "ImportMode",
    "apply_import",
    "ImportReport",
    "SnapshotImporter",
    "coerce_snapshot",
]
