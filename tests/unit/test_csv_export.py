"""
Unit tests for CSV export of parties and visit records.
"""

from ledger.core.models import PartyRecord, VisitRecord
from ledger.csv_io.exporter import (
    escape_csv,
    export_snapshot_csv,
    format_timestamp,
    parties_to_csv,
    visits_to_csv,
)
from ledger.csv_io.parser import split_csv_line


class TestEscapeCsv:
    """Tests for field escaping."""

    def test_plain_value(self):
        assert escape_csv("Acme") == "Acme"

    def test_comma_and_quote(self):
        assert escape_csv('Shop "4", Main') == '"Shop ""4"", Main"'

    def test_empty(self):
        assert escape_csv("") == ""

    def test_escaped_field_splits_back(self):
        value = 'Shop "4", Main'
        assert split_csv_line(f"{escape_csv(value)},x") == [value, "x"]


class TestFormatTimestamp:
    """Tests for timestamp rendering."""

    def test_date_time(self):
        assert format_timestamp(1_700_000_000_000_000_000) == "2023-11-14 22:13:20"

    def test_date_only(self):
        assert format_timestamp(1_702_592_000_000_000_000, date_only=True) == "2023-12-14"

    def test_out_of_range(self):
        assert format_timestamp(2 ** 90) == str(2 ** 90)


class TestCsvExport:
    """Tests for rendering and writing CSV exports."""

    def test_parties_to_csv(self, sample_snapshot):
        lines = parties_to_csv(sample_snapshot.parties.items()).split("\n")

        assert lines[0] == "Party ID,Name,Address,Phone,PAN,Due Amount"
        assert lines[1] == "A,Asha Traders,1 MG Road,9845000001,ABCDE1234F,5000"
        assert lines[2] == "B,Bala Stores,,,BCDEF2345G,0"

    def test_visits_to_csv(self, sample_snapshot):
        lines = visits_to_csv(sample_snapshot.visit_records, sample_snapshot.parties).split("\n")

        assert len(lines) == 2
        assert lines[1] == (
            "A,Asha Traders,1500,First instalment,2023-11-14 22:13:20,2023-12-14,Yes,12.9716,77.5946"
        )

    def test_unknown_party_and_no_location(self):
        visits = {"X": [VisitRecord(party_id="X", amount=5, comment="", payment_timestamp=0)]}

        lines = visits_to_csv(visits, {}).split("\n")

        assert lines[1] == "X,Unknown,5,,1970-01-01 00:00:00,,No,,"

    def test_export_snapshot_csv_writes_two_files(self, tmp_path, sample_snapshot):
        parties_path, events_path = export_snapshot_csv(sample_snapshot, tmp_path / "exports")

        assert parties_path.name.startswith("parties_export_")
        assert events_path.name.startswith("events_export_")
        assert parties_path.read_text(encoding="utf-8").count("\n") == 2
        assert "First instalment" in events_path.read_text(encoding="utf-8")

    def test_parties_to_csv_accepts_store_pairs(self):
        pairs = [("P000001", PartyRecord(id="P000001", name="Acme, Ltd", tax_id="X"))]

        assert parties_to_csv(pairs).split("\n")[1] == 'P000001,"Acme, Ltd",,,X,0'
