"""
Data transfer codec for full-dataset snapshots.

Wire format (JSON object):

    {
      "parties": [[partyId, {"id", "name", "address", "phone", "pan", "dueAmount"}], ...],
      "partyVisitRecords": [[partyId, [{"comment", "paymentDate", "amount",
                                        "nextPaymentDate"?, "location"?}, ...]], ...],
      "branding": {"name"?, "logo"?}          # optional
    }

Integer fields that may exceed 53 bits (dueAmount, amount, paymentDate,
nextPaymentDate) are written as decimal strings and read back as Python ints.
Unrecognized keys at any level are kept in the model's `extra` mapping and
written back unchanged. Absent optional fields are omitted on encode; absent
or null ones decode to None.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.exceptions import TransferFormatError
from ..core.models import BrandingConfig, Location, PartyRecord, Snapshot, VisitRecord

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_FILENAME = "party-ledger-export.json"

PARTY_KEYS = ("id", "name", "address", "phone", "pan", "dueAmount")
VISIT_KEYS = ("comment", "paymentDate", "amount", "nextPaymentDate", "location")
LOCATION_KEYS = ("latitude", "longitude")
BRANDING_KEYS = ("name", "logo")
SNAPSHOT_KEYS = ("parties", "partyVisitRecords", "branding")

_DECIMAL = re.compile(r"-?[0-9]+")


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------

def _encode_party(party: PartyRecord) -> Dict[str, Any]:
    data = {
        "id": party.id,
        "name": party.name,
        "address": party.address,
        "phone": party.phone,
        "pan": party.tax_id,
        "dueAmount": str(party.due_amount),
    }
    data.update(party.extra)
    return data


def _encode_visit(record: VisitRecord) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "comment": record.comment,
        "paymentDate": str(record.payment_timestamp),
        "amount": str(record.amount),
    }
    if record.next_payment_timestamp is not None:
        data["nextPaymentDate"] = str(record.next_payment_timestamp)
    if record.location is not None:
        location = {
            "latitude": record.location.latitude,
            "longitude": record.location.longitude,
        }
        location.update(record.location.extra)
        data["location"] = location
    data.update(record.extra)
    return data


def _encode_branding(branding: BrandingConfig) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if branding.name is not None:
        data["name"] = branding.name
    if branding.logo is not None:
        data["logo"] = branding.logo
    data.update(branding.extra)
    return data


def encode_snapshot(snapshot: Snapshot) -> Dict[str, Any]:
    """
    Convert a snapshot to its JSON-ready wire form.

    Args:
        snapshot: The snapshot to encode

    Returns:
        Dictionary containing only JSON-native types
    """
    data: Dict[str, Any] = {
        "parties": [
            [party_id, _encode_party(party)]
            for party_id, party in snapshot.parties.items()
        ],
        "partyVisitRecords": [
            [party_id, [_encode_visit(record) for record in records]]
            for party_id, records in snapshot.visit_records.items()
        ],
    }
    if snapshot.branding is not None:
        data["branding"] = _encode_branding(snapshot.branding)
    data.update(snapshot.extra)
    return data


def dumps(snapshot: Snapshot, indent: Optional[int] = None) -> str:
    """Serialize a snapshot to wire JSON text."""
    return json.dumps(encode_snapshot(snapshot), ensure_ascii=False, indent=indent)


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------

def _decode_int(value: Any, path: str, allow_negative: bool = False) -> int:
    """Read a decimal-string (or plain JSON integer) field."""
    if isinstance(value, bool):
        raise TransferFormatError("Expected a decimal integer string, got a boolean", path)
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and _DECIMAL.fullmatch(value):
        number = int(value)
    else:
        raise TransferFormatError(f"Expected a decimal integer string, got {value!r}", path)
    if number < 0 and not allow_negative:
        raise TransferFormatError(f"Expected a non-negative integer, got {number}", path)
    return number


def _decode_str(data: Dict[str, Any], key: str, path: str, default: Optional[str] = None) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise TransferFormatError(f"Expected a string for '{key}'", path)
    return value


def _decode_optional_str(data: Dict[str, Any], key: str, path: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TransferFormatError(f"Expected a string for '{key}'", path)
    return value


def _decode_float(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TransferFormatError(f"Expected a number, got {value!r}", path)
    return float(value)


def _extras(data: Dict[str, Any], known) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k not in known}


def _expect_pair(item: Any, path: str) -> List[Any]:
    if not isinstance(item, list) or len(item) != 2 or not isinstance(item[0], str):
        raise TransferFormatError("Expected an [id, value] pair", path)
    return item


def _decode_party(party_id: str, data: Any, path: str) -> PartyRecord:
    if not isinstance(data, dict):
        raise TransferFormatError("Expected a party object", path)
    record_id = data.get("id", party_id)
    if record_id != party_id:
        raise TransferFormatError(
            f"Party id {record_id!r} does not match its key {party_id!r}", path
        )
    if "dueAmount" not in data:
        raise TransferFormatError("Missing 'dueAmount'", path)
    return PartyRecord(
        id=party_id,
        name=_decode_str(data, "name", path),
        address=_decode_str(data, "address", path, default=""),
        phone=_decode_str(data, "phone", path, default=""),
        tax_id=_decode_str(data, "pan", path, default=""),
        due_amount=_decode_int(data["dueAmount"], f"{path}.dueAmount"),
        extra=_extras(data, PARTY_KEYS),
    )


def _decode_location(data: Any, path: str) -> Optional[Location]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise TransferFormatError("Expected a location object", path)
    for key in LOCATION_KEYS:
        if key not in data:
            raise TransferFormatError(f"Missing '{key}'", path)
    return Location(
        latitude=_decode_float(data["latitude"], f"{path}.latitude"),
        longitude=_decode_float(data["longitude"], f"{path}.longitude"),
        extra=_extras(data, LOCATION_KEYS),
    )


def _decode_visit(party_id: str, data: Any, path: str) -> VisitRecord:
    if not isinstance(data, dict):
        raise TransferFormatError("Expected a visit record object", path)
    for key in ("amount", "paymentDate"):
        if key not in data:
            raise TransferFormatError(f"Missing '{key}'", path)

    next_payment = data.get("nextPaymentDate")
    return VisitRecord(
        party_id=party_id,
        amount=_decode_int(data["amount"], f"{path}.amount"),
        comment=_decode_str(data, "comment", path, default=""),
        payment_timestamp=_decode_int(
            data["paymentDate"], f"{path}.paymentDate", allow_negative=True
        ),
        next_payment_timestamp=(
            _decode_int(next_payment, f"{path}.nextPaymentDate", allow_negative=True)
            if next_payment is not None else None
        ),
        location=_decode_location(data.get("location"), f"{path}.location"),
        extra=_extras(data, VISIT_KEYS),
    )


def _decode_branding(data: Any) -> Optional[BrandingConfig]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise TransferFormatError("Expected a branding object", "branding")
    return BrandingConfig(
        name=_decode_optional_str(data, "name", "branding"),
        logo=_decode_optional_str(data, "logo", "branding"),
        extra=_extras(data, BRANDING_KEYS),
    )


def decode_snapshot(data: Any) -> Snapshot:
    """
    Convert the wire form back into a Snapshot.

    Args:
        data: Parsed JSON object

    Returns:
        The decoded snapshot

    Raises:
        TransferFormatError: If the structure or any integer field is malformed,
            or a party id appears twice
    """
    if not isinstance(data, dict):
        raise TransferFormatError("Snapshot must be a JSON object")
    for key in ("parties", "partyVisitRecords"):
        if not isinstance(data.get(key), list):
            raise TransferFormatError(f"Missing or invalid '{key}' array")

    parties: Dict[str, PartyRecord] = {}
    for idx, item in enumerate(data["parties"]):
        path = f"parties[{idx}]"
        party_id, party_data = _expect_pair(item, path)
        if party_id in parties:
            raise TransferFormatError(f"Duplicate party id {party_id!r}", path)
        parties[party_id] = _decode_party(party_id, party_data, f"{path}[1]")

    visit_records: Dict[str, List[VisitRecord]] = {}
    for idx, item in enumerate(data["partyVisitRecords"]):
        path = f"partyVisitRecords[{idx}]"
        party_id, records = _expect_pair(item, path)
        if party_id in visit_records:
            raise TransferFormatError(f"Duplicate visit list for party {party_id!r}", path)
        if not isinstance(records, list):
            raise TransferFormatError("Expected a list of visit records", f"{path}[1]")
        visit_records[party_id] = [
            _decode_visit(party_id, record, f"{path}[1][{n}]")
            for n, record in enumerate(records)
        ]

    return Snapshot(
        parties=parties,
        visit_records=visit_records,
        branding=_decode_branding(data.get("branding")),
        extra=_extras(data, SNAPSHOT_KEYS),
    )


def loads(text: Union[str, bytes]) -> Snapshot:
    """
    Parse wire JSON text into a Snapshot.

    Raises:
        TransferFormatError: If the text is not valid JSON or not a valid snapshot
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise TransferFormatError(f"Invalid JSON: {e}") from e
    return decode_snapshot(data)


def write_snapshot_file(
    snapshot: Snapshot,
    path: Union[str, Path],
    indent: Optional[int] = None,
) -> Path:
    """Write a snapshot as wire JSON to a file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(dumps(snapshot, indent=indent))
    logger.info(f"Wrote snapshot to {path}")
    return path


def read_snapshot_file(path: Union[str, Path]) -> Snapshot:
    """Read a wire JSON snapshot file."""
    path = Path(path)
    with open(path, "rb") as f:
        return loads(f.read())
