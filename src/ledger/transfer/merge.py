"""
Import merge engine.

Reconciles an incoming snapshot against the existing one. The result is a
complete target snapshot; writing it is the caller's job (see importer.py).
"""

import copy
import logging
from enum import Enum
from typing import Dict, List, Union

from ..core.models import PartyRecord, Snapshot, VisitRecord

logger = logging.getLogger(__name__)


class ImportMode(str, Enum):
    """How an incoming snapshot is reconciled with existing data."""
    MERGE = "merge"
    OVERWRITE = "overwrite"


def merge_parties(
    existing: Dict[str, PartyRecord],
    incoming: Dict[str, PartyRecord],
) -> Dict[str, PartyRecord]:
    """Key-wise union; on a shared id the incoming record replaces the existing one whole."""
    merged = dict(existing)
    for party_id, party in incoming.items():
        merged[party_id] = party
    return merged


def merge_visit_records(
    existing: Dict[str, List[VisitRecord]],
    incoming: Dict[str, List[VisitRecord]],
) -> Dict[str, List[VisitRecord]]:
    """
    Key-wise union; on a shared party id the lists are concatenated.

    Existing entries come first. Nothing is deduplicated, so applying the
    same import twice appends its visit records twice.
    """
    merged = {party_id: list(records) for party_id, records in existing.items()}
    for party_id, records in incoming.items():
        merged.setdefault(party_id, []).extend(records)
    return merged


def apply_import(
    existing: Snapshot,
    incoming: Snapshot,
    mode: Union[ImportMode, str],
) -> Snapshot:
    """
    Compute the snapshot that results from importing `incoming`.

    Args:
        existing: Current dataset
        incoming: Dataset being imported
        mode: ImportMode.MERGE or ImportMode.OVERWRITE (or their string values)

    Returns:
        A new Snapshot; neither input is modified

    Raises:
        ValueError: If mode is not a known ImportMode
    """
    mode = ImportMode(mode)

    if mode == ImportMode.OVERWRITE:
        return copy.deepcopy(incoming)

    branding = incoming.branding if incoming.branding is not None else existing.branding
    extra = {**existing.extra, **incoming.extra}

    result = Snapshot(
        parties=merge_parties(existing.parties, incoming.parties),
        visit_records=merge_visit_records(existing.visit_records, incoming.visit_records),
        branding=branding,
        extra=extra,
    )

    logger.debug(
        f"Merged {len(existing.parties)} existing + {len(incoming.parties)} incoming parties "
        f"into {len(result.parties)}"
    )
    return copy.deepcopy(result)
