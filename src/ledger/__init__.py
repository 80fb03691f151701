"""
Party ledger ingestion and transfer pipeline.

Subpackages:
- core: data models, exceptions, remote store interface, logging helpers
- csv_io: CSV parsing/validation and CSV export
- runner: bounded batch pool and the batch submission coordinator
- transfer: snapshot codec, export serializer, import merge engine
- store: remote store backends (in-memory, SQLite, HTTP)
- config: YAML configuration loader
"""

__version__ = "0.1.0"
