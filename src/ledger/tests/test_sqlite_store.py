#!/usr/bin/env python3
"""
Unit tests for the SQLite remote store.
"""

import asyncio
import sys
import tempfile
import unittest
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from ledger.core.exceptions import DuplicateNameError, RemoteStoreError
from ledger.core.models import (
    BrandingConfig, Location, ParsedPartyInput, PartyRecord, Snapshot, VisitRecord,
)
from ledger.store import create_remote_store
from ledger.store.sqlite_store import SqliteRemoteStore
from ledger.transfer.merge import ImportMode
from ledger.transfer.importer import SnapshotImporter


def run(coro):
    return asyncio.run(coro)


def sample_snapshot() -> Snapshot:
    return Snapshot(
        parties={
            "P9": PartyRecord(id="P9", name="Zed", tax_id="Z", due_amount=2 ** 70,
                              extra={"category": "retail"}),
            "P1": PartyRecord(id="P1", name="Asha", address="1 Rd", phone="5", tax_id="A", due_amount=10),
        },
        visit_records={
            "P1": [
                VisitRecord(party_id="P1", amount=5, comment="first", payment_timestamp=1_700_000_000_000_000_000,
                            next_payment_timestamp=1_702_592_000_000_000_000,
                            location=Location(latitude=12.5, longitude=77.25, extra={"accuracy": 8})),
                VisitRecord(party_id="P1", amount=3, comment="second", payment_timestamp=-5,
                            extra={"receipt": "R1"}),
            ],
            "GHOST": [VisitRecord(party_id="GHOST", amount=1, comment="", payment_timestamp=0)],
        },
        branding=BrandingConfig(name="Shop", logo=None, extra={"theme": "dark"}),
        extra={"schemaVersion": 2},
    )


class TestSqliteRemoteStore(unittest.TestCase):
    """Test cases for SqliteRemoteStore."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.temp_dir.name) / "nested" / "ledger.db"
        self.store = SqliteRemoteStore(self.db_path)

    def tearDown(self):
        run(self.store.close())
        self.temp_dir.cleanup()

    def test_creates_database_file(self):
        """Test that the parent directory and file are created."""
        self.assertTrue(self.db_path.exists())
        self.assertEqual(self.store.get_name(), "sqlite")

    def test_generate_and_create(self):
        """Test id allocation followed by party creation."""
        fields = ParsedPartyInput(name="Acme", address="1 Rd", phone="555", tax_id="PAN1", due_amount=2 ** 65)

        party_id = run(self.store.generate_id("Acme", "555"))
        run(self.store.create_party(party_id, fields))

        pairs = run(self.store.get_all_parties())
        self.assertEqual(pairs, [(party_id, fields.to_party(party_id))])
        self.assertEqual(run(self.store.unattached_ids()), [])

    def test_sequential_ids(self):
        """Test that ids are allocated in sequence."""
        first = run(self.store.generate_id("A", ""))
        second = run(self.store.generate_id("B", ""))

        self.assertEqual((first, second), ("P000001", "P000002"))

    def test_duplicate_name_is_case_insensitive(self):
        """Test that an existing name blocks allocation."""
        party_id = run(self.store.generate_id("Acme", ""))
        run(self.store.create_party(party_id, ParsedPartyInput("Acme", "", "", "X", 0)))

        with self.assertRaises(DuplicateNameError):
            run(self.store.generate_id("  ACME ", ""))

    def test_unattached_ids_are_tracked(self):
        """Test that allocated but unused ids are listed."""
        run(self.store.generate_id("Acme", ""))
        used = run(self.store.generate_id("Bharat", ""))
        run(self.store.create_party(used, ParsedPartyInput("Bharat", "", "", "X", 0)))

        self.assertEqual(run(self.store.unattached_ids()), ["P000001"])

    def test_allocation_skips_imported_ids(self):
        """Test that ids brought in by apply_snapshot are never handed out again."""
        run(self.store.apply_snapshot(Snapshot(parties={
            "P000001": PartyRecord(id="P000001", name="Imported"),
            "P000002": PartyRecord(id="P000002", name="Imported Two"),
        })))

        party_id = run(self.store.generate_id("New Co", ""))
        run(self.store.create_party(party_id, ParsedPartyInput("New Co", "", "", "X", 0)))

        self.assertEqual(party_id, "P000003")
        names = [party.name for _, party in run(self.store.get_all_parties())]
        self.assertEqual(names, ["Imported", "Imported Two", "New Co"])

    def test_create_with_unallocated_id(self):
        """Test that create_party requires a prior allocation."""
        with self.assertRaises(RemoteStoreError):
            run(self.store.create_party("P404", ParsedPartyInput("Acme", "", "", "X", 0)))

    def test_create_twice_with_same_id(self):
        """Test that an allocated id can only be used once."""
        party_id = run(self.store.generate_id("Acme", ""))
        run(self.store.create_party(party_id, ParsedPartyInput("Acme", "", "", "X", 0)))

        with self.assertRaises(RemoteStoreError):
            run(self.store.create_party(party_id, ParsedPartyInput("Other", "", "", "X", 0)))

    def test_snapshot_round_trip(self):
        """Test that apply_snapshot then export_snapshot is lossless."""
        snapshot = sample_snapshot()

        run(self.store.apply_snapshot(snapshot))
        exported = run(self.store.export_snapshot())

        self.assertEqual(exported, snapshot)
        self.assertEqual(list(exported.parties), ["P9", "P1"])
        self.assertEqual(list(exported.visit_records), ["P1", "GHOST"])

    def test_apply_snapshot_replaces_everything(self):
        """Test that apply_snapshot is a full replace."""
        run(self.store.apply_snapshot(sample_snapshot()))
        replacement = Snapshot(parties={"N": PartyRecord(id="N", name="New")})

        run(self.store.apply_snapshot(replacement))

        self.assertEqual(run(self.store.export_snapshot()), replacement)

    def test_failed_apply_rolls_back(self):
        """Test that a failing apply leaves the previous data in place."""
        original = sample_snapshot()
        run(self.store.apply_snapshot(original))

        # Unserializable extras fail after the deletes have run
        bad = Snapshot(
            parties={"X": PartyRecord(id="X", name="X")},
            visit_records={"X": [VisitRecord(party_id="X", amount=1, comment="", payment_timestamp=0,
                                             extra={"bad": object()})]},
        )

        with self.assertRaises(TypeError):
            run(self.store.apply_snapshot(bad))

        self.assertEqual(run(self.store.export_snapshot()), original)

    def test_merge_import_against_sqlite(self):
        """Test merge import through the importer."""
        run(self.store.apply_snapshot(sample_snapshot()))
        incoming = Snapshot(
            visit_records={"P1": [VisitRecord(party_id="P1", amount=7, comment="third", payment_timestamp=9)]}
        )

        run(SnapshotImporter(self.store).import_snapshot(incoming, ImportMode.MERGE))

        amounts = [v.amount for v in run(self.store.export_snapshot()).visit_records["P1"]]
        self.assertEqual(amounts, [5, 3, 7])


class TestCreateRemoteStore(unittest.TestCase):
    """Test cases for the create_remote_store factory."""

    def test_sqlite_backend(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            store = create_remote_store("sqlite", db_path=Path(temp_dir) / "x.db")
            try:
                self.assertIsInstance(store, SqliteRemoteStore)
            finally:
                run(store.close())

    def test_unknown_backend(self):
        from ledger.core.exceptions import LedgerConfigError

        with self.assertRaises(LedgerConfigError):
            create_remote_store("postgres")

    def test_http_backend_requires_url(self):
        from ledger.core.exceptions import LedgerConfigError

        with self.assertRaises(LedgerConfigError):
            create_remote_store("http", base_url=None)


if __name__ == "__main__":
    unittest.main()
