#!/usr/bin/env python3
"""
Unit tests for canonical serialization and snapshot hashing.
"""

import sys
import unittest
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from ledger.core.models import PartyRecord, Snapshot, VisitRecord
from ledger.transfer.canonical import canonicalize, compute_snapshot_hash


class TestCanonicalize(unittest.TestCase):
    """Test cases for canonical JSON serialization."""

    def test_basic_dict(self):
        """Test canonicalization of a simple dict."""
        result = canonicalize({"b": 1, "a": 2})
        self.assertEqual(result, '{"a":2,"b":1}')

    def test_nested_dict(self):
        """Test canonicalization of nested dicts."""
        result = canonicalize({"z": {"b": 1, "a": 2}, "a": 0})
        self.assertEqual(result, '{"a":0,"z":{"a":2,"b":1}}')

    def test_pair_array_order_preserved(self):
        """Test that [key, value] pair arrays keep their order."""
        result = canonicalize({"parties": [["B", {"id": "B"}], ["A", {"id": "A"}]]})
        self.assertEqual(result, '{"parties":[["B",{"id":"B"}],["A",{"id":"A"}]]}')

    def test_unicode_normalization(self):
        """Test unicode NFC normalization."""
        composed = "\u00e9"
        decomposed = "e\u0301"

        self.assertEqual(canonicalize({"name": composed}), canonicalize({"name": decomposed}))

    def test_non_ascii_kept(self):
        """Test that non-ASCII text is not escaped."""
        self.assertEqual(canonicalize({"c": "₹"}), '{"c":"₹"}')

    def test_null_and_boolean(self):
        """Test null and boolean values."""
        result = canonicalize({"t": True, "n": None, "f": False})
        self.assertEqual(result, '{"f":false,"n":null,"t":true}')


class TestSnapshotHash(unittest.TestCase):
    """Test cases for snapshot hashing."""

    def make_snapshot(self, due=500):
        return Snapshot(
            parties={"A": PartyRecord(id="A", name="Asha", due_amount=due)},
            visit_records={"A": [VisitRecord(party_id="A", amount=1, comment="x", payment_timestamp=2 ** 62)]},
        )

    def test_hash_format(self):
        """Test that hash is a 64-char hex string (SHA256)."""
        digest = compute_snapshot_hash(self.make_snapshot())

        self.assertEqual(len(digest), 64)
        int(digest, 16)

    def test_same_content_same_hash(self):
        self.assertEqual(
            compute_snapshot_hash(self.make_snapshot()),
            compute_snapshot_hash(self.make_snapshot()),
        )

    def test_large_amounts_distinguished(self):
        """Test that amounts differing beyond float precision hash differently."""
        self.assertNotEqual(
            compute_snapshot_hash(self.make_snapshot(due=2 ** 64)),
            compute_snapshot_hash(self.make_snapshot(due=2 ** 64 + 1)),
        )

    def test_party_order_matters(self):
        """Test that insertion order is part of the fingerprint."""
        first = Snapshot(parties={
            "A": PartyRecord(id="A", name="Asha"),
            "B": PartyRecord(id="B", name="Bala"),
        })
        second = Snapshot(parties={
            "B": PartyRecord(id="B", name="Bala"),
            "A": PartyRecord(id="A", name="Asha"),
        })

        self.assertNotEqual(compute_snapshot_hash(first), compute_snapshot_hash(second))


if __name__ == "__main__":
    unittest.main()
