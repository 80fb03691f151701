"""
Canonical JSON serialization and snapshot fingerprinting.

Provides a stable serialization of the wire form of a snapshot so two
snapshots can be compared by hash (e.g. to confirm an export → overwrite
import round trip left the store unchanged). The canonicalization ensures:
- Object keys are sorted recursively (pair arrays keep their order)
- Unicode is normalized (NFC)
- No insignificant whitespace
"""

import hashlib
import json
import unicodedata
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.models import Snapshot


def canonicalize(obj: Any) -> str:
    """
    Canonicalize a JSON-compatible Python object to a stable string.

    Args:
        obj: The object to canonicalize

    Returns:
        Canonical JSON string
    """
    return json.dumps(
        _nfc(obj),
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )


def _nfc(obj: Any) -> Any:
    """Apply NFC to every string (keys included), leaving other scalars alone."""
    if isinstance(obj, str):
        return unicodedata.normalize("NFC", obj)
    if isinstance(obj, dict):
        return {_nfc(key): _nfc(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_nfc(item) for item in obj]
    return obj


def compute_snapshot_hash(snapshot: "Snapshot") -> str:
    """
    Compute the SHA256 of a snapshot's canonical wire form.

    Args:
        snapshot: The snapshot to hash

    Returns:
        Hex-encoded SHA256 hash string
    """
    from .codec import encode_snapshot

    canonical_str = canonicalize(encode_snapshot(snapshot))
    return hashlib.sha256(canonical_str.encode("utf-8")).hexdigest()
