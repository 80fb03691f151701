"""
CSV import and export for parties.
"""

from .parser import (
    CsvParseResult,
    CsvParserOptions,
    parse_csv,
    parse_csv_file,
    parse_csv_strict,
    split_csv_line,
)
from .exporter import export_snapshot_csv, parties_to_csv, visits_to_csv

__all__ = [
    "CsvParseResult",
    "CsvParserOptions",
    "parse_csv",
    "parse_csv_file",
    "parse_csv_strict",
    "split_csv_line",
    "export_snapshot_csv",
    "parties_to_csv",
    "visits_to_csv",
]
