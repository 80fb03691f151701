"""
CSV export of parties and visit records.

Produces spreadsheet-friendly text; the party export is not meant to be fed
back into the importer (its header uses "Name" and carries the party id).
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..core.models import PartyRecord, Snapshot, VisitRecord

logger = logging.getLogger(__name__)

PARTY_HEADERS = ["Party ID", "Name", "Address", "Phone", "PAN", "Due Amount"]
VISIT_HEADERS = [
    "Party ID",
    "Party Name",
    "Amount",
    "Comment",
    "Payment Date",
    "Next Payment Date",
    "Has Location",
    "Latitude",
    "Longitude",
]


def escape_csv(value: str) -> str:
    """Quote a field if it contains a comma, quote or newline."""
    if not value:
        return ""
    if "," in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def format_timestamp(nanos: int, date_only: bool = False) -> str:
    """
    Render nanoseconds since the epoch as a UTC date or date-time.

    Timestamps outside the datetime range render as the raw integer.
    """
    try:
        moment = datetime.fromtimestamp(nanos // 1_000_000_000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return str(nanos)
    if date_only:
        return moment.strftime("%Y-%m-%d")
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def _join(rows: List[List[str]]) -> str:
    return "\n".join(",".join(row) for row in rows)


def parties_to_csv(parties: Iterable[Tuple[str, PartyRecord]]) -> str:
    """
    Render (id, party) pairs as CSV text.
    """
    rows = [PARTY_HEADERS]
    for party_id, party in parties:
        rows.append([
            escape_csv(party_id),
            escape_csv(party.name),
            escape_csv(party.address),
            escape_csv(party.phone),
            escape_csv(party.tax_id),
            str(party.due_amount),
        ])
    return _join(rows)


def visits_to_csv(
    visit_records: Dict[str, List[VisitRecord]],
    parties: Optional[Dict[str, PartyRecord]] = None,
) -> str:
    """
    Render every visit record as CSV text, one row per visit.

    Party names are looked up in `parties`; unknown ids render as "Unknown".
    """
    parties = parties or {}
    rows = [VISIT_HEADERS]
    for party_id, records in visit_records.items():
        party = parties.get(party_id)
        party_name = escape_csv(party.name) if party is not None else "Unknown"
        for record in records:
            location = record.location
            rows.append([
                escape_csv(party_id),
                party_name,
                str(record.amount),
                escape_csv(record.comment),
                format_timestamp(record.payment_timestamp),
                format_timestamp(record.next_payment_timestamp, date_only=True)
                if record.next_payment_timestamp is not None else "",
                "Yes" if location is not None else "No",
                str(location.latitude) if location is not None else "",
                str(location.longitude) if location is not None else "",
            ])
    return _join(rows)


def export_snapshot_csv(snapshot: Snapshot, output_dir: Union[str, Path]) -> Tuple[Path, Path]:
    """
    Write the parties and events CSV files for a snapshot.

    Returns:
        Paths of the parties and visits files
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")

    parties_path = output_dir / f"parties_export_{stamp}.csv"
    visits_path = output_dir / f"events_export_{stamp}.csv"

    with open(parties_path, "w", encoding="utf-8", newline="") as f:
        f.write(parties_to_csv(snapshot.parties.items()))
    with open(visits_path, "w", encoding="utf-8", newline="") as f:
        f.write(visits_to_csv(snapshot.visit_records, snapshot.parties))

    logger.info(
        f"Exported {len(snapshot.parties)} parties and "
        f"{snapshot.visit_record_count} visit records to {output_dir}"
    )
    return parties_path, visits_path
