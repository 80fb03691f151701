"""
SQLite-backed remote store.

Suitable for local runs and single-user deployments. Monetary amounts and
timestamps are stored as TEXT so arbitrarily large integers survive the
round trip unchanged.
"""

import asyncio
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, TypeVar, Union

from ..core.exceptions import DuplicateNameError, RemoteStoreError
from ..core.models import (
    BrandingConfig, Location, ParsedPartyInput, PartyRecord, Snapshot, VisitRecord,
)
from ..core.remote_store import RemoteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _dumps_extra(extra: dict) -> Optional[str]:
    return json.dumps(extra) if extra else None


def _loads_extra(value: Optional[str]) -> dict:
    return json.loads(value) if value else {}


class SqliteRemoteStore(RemoteStore):
    """
    SQLite implementation of the remote store.

    Blocking sqlite3 calls run in a worker thread; a lock serializes them
    on the shared connection. apply_snapshot replaces every table inside a
    single transaction.
    """

    def __init__(self, db_path: Union[str, Path], auto_init: bool = True):
        """
        Initialize the SQLite store.

        Args:
            db_path: Path to the SQLite database file (":memory:" allowed)
            auto_init: Whether to create tables automatically
        """
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._connect()

        if auto_init:
            self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to SQLite store: {self.db_path}")

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS parties (
                party_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                name_key TEXT NOT NULL,
                address TEXT NOT NULL DEFAULT '',
                phone TEXT NOT NULL DEFAULT '',
                tax_id TEXT NOT NULL DEFAULT '',
                due_amount TEXT NOT NULL DEFAULT '0',
                extra TEXT
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS ix_parties_name_key
            ON parties (name_key)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS visit_records (
                visit_id INTEGER PRIMARY KEY AUTOINCREMENT,
                party_id TEXT NOT NULL,
                list_index INTEGER NOT NULL,
                seq INTEGER NOT NULL,
                amount TEXT NOT NULL,
                comment TEXT NOT NULL DEFAULT '',
                payment_ts TEXT NOT NULL,
                next_payment_ts TEXT,
                latitude REAL,
                longitude REAL,
                location_extra TEXT,
                extra TEXT
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS ix_visit_records_order
            ON visit_records (list_index, seq)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS branding (
                singleton INTEGER PRIMARY KEY CHECK (singleton = 1),
                name TEXT,
                logo TEXT,
                extra TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS snapshot_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS id_allocations (
                party_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                phone TEXT NOT NULL DEFAULT '',
                allocated_at TEXT NOT NULL,
                attached INTEGER NOT NULL DEFAULT 0
            )
        """)

        self.conn.commit()
        logger.debug("Initialized ledger store schema")

    async def _run(self, func: Callable[[], T]) -> T:
        """Run a blocking database call in a worker thread."""
        def locked() -> T:
            with self._lock:
                try:
                    return func()
                except sqlite3.Error as e:
                    self.conn.rollback()
                    raise RemoteStoreError(f"SQLite error: {e}") from e

        return await asyncio.to_thread(locked)

    # Id allocation and creation

    def _generate_id(self, name: str, phone: str) -> str:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT party_id FROM parties WHERE name_key = ?",
            (name.strip().lower(),),
        )
        if cursor.fetchone():
            raise DuplicateNameError(f"Party with name '{name}' already exists")

        cursor.execute("SELECT COUNT(*) FROM id_allocations")
        sequence = cursor.fetchone()[0] + 1
        # Skip ids held by imported parties or earlier allocations
        while True:
            party_id = f"P{sequence:06d}"
            cursor.execute("""
                SELECT 1 FROM parties WHERE party_id = ?
                UNION ALL
                SELECT 1 FROM id_allocations WHERE party_id = ?
            """, (party_id, party_id))
            if cursor.fetchone() is None:
                break
            sequence += 1

        cursor.execute("""
            INSERT INTO id_allocations (party_id, name, phone, allocated_at)
            VALUES (?, ?, ?, ?)
        """, (party_id, name, phone, datetime.now(timezone.utc).isoformat()))
        self.conn.commit()
        return party_id

    async def generate_id(self, name: str, phone: str) -> str:
        return await self._run(lambda: self._generate_id(name, phone))

    def _create_party(self, party_id: str, fields: ParsedPartyInput) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT attached FROM id_allocations WHERE party_id = ?",
            (party_id,),
        )
        row = cursor.fetchone()
        if row is None:
            raise RemoteStoreError(f"Party id {party_id} was not allocated")
        if row["attached"]:
            raise RemoteStoreError(f"Party id {party_id} is already in use")

        cursor.execute("""
            INSERT INTO parties (party_id, name, name_key, address, phone, tax_id, due_amount)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            party_id,
            fields.name,
            fields.name.strip().lower(),
            fields.address,
            fields.phone,
            fields.tax_id,
            str(fields.due_amount),
        ))
        cursor.execute(
            "UPDATE id_allocations SET attached = 1 WHERE party_id = ?",
            (party_id,),
        )
        self.conn.commit()

    async def create_party(self, party_id: str, fields: ParsedPartyInput) -> None:
        await self._run(lambda: self._create_party(party_id, fields))

    def _unattached_ids(self) -> List[str]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT party_id FROM id_allocations WHERE attached = 0 ORDER BY party_id"
        )
        return [row["party_id"] for row in cursor.fetchall()]

    async def unattached_ids(self) -> List[str]:
        """Ids that were allocated but never used by a successful create."""
        return await self._run(self._unattached_ids)

    # Whole-dataset reads

    @staticmethod
    def _row_to_party(row: sqlite3.Row) -> PartyRecord:
        return PartyRecord(
            id=row["party_id"],
            name=row["name"],
            address=row["address"],
            phone=row["phone"],
            tax_id=row["tax_id"],
            due_amount=int(row["due_amount"]),
            extra=_loads_extra(row["extra"]),
        )

    @staticmethod
    def _row_to_visit(row: sqlite3.Row) -> VisitRecord:
        location = None
        if row["latitude"] is not None and row["longitude"] is not None:
            location = Location(
                latitude=row["latitude"],
                longitude=row["longitude"],
                extra=_loads_extra(row["location_extra"]),
            )
        next_ts = row["next_payment_ts"]
        return VisitRecord(
            party_id=row["party_id"],
            amount=int(row["amount"]),
            comment=row["comment"],
            payment_timestamp=int(row["payment_ts"]),
            next_payment_timestamp=int(next_ts) if next_ts is not None else None,
            location=location,
            extra=_loads_extra(row["extra"]),
        )

    def _get_all_parties(self) -> List[Tuple[str, PartyRecord]]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM parties ORDER BY rowid")
        return [(row["party_id"], self._row_to_party(row)) for row in cursor.fetchall()]

    async def get_all_parties(self) -> List[Tuple[str, PartyRecord]]:
        return await self._run(self._get_all_parties)

    def _export_snapshot(self) -> Snapshot:
        snapshot = Snapshot()
        for party_id, party in self._get_all_parties():
            snapshot.parties[party_id] = party

        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM visit_records ORDER BY list_index, seq")
        for row in cursor.fetchall():
            visit = self._row_to_visit(row)
            snapshot.visit_records.setdefault(visit.party_id, []).append(visit)

        cursor.execute("SELECT * FROM branding WHERE singleton = 1")
        row = cursor.fetchone()
        if row is not None:
            snapshot.branding = BrandingConfig(
                name=row["name"],
                logo=row["logo"],
                extra=_loads_extra(row["extra"]),
            )

        cursor.execute("SELECT key, value FROM snapshot_meta ORDER BY rowid")
        for row in cursor.fetchall():
            snapshot.extra[row["key"]] = json.loads(row["value"])

        return snapshot

    async def export_snapshot(self) -> Snapshot:
        return await self._run(self._export_snapshot)

    # Whole-dataset write

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        cursor = self.conn.cursor()
        try:
            cursor.execute("DELETE FROM parties")
            cursor.execute("DELETE FROM visit_records")
            cursor.execute("DELETE FROM branding")
            cursor.execute("DELETE FROM snapshot_meta")

            cursor.executemany("""
                INSERT INTO parties (party_id, name, name_key, address, phone, tax_id, due_amount, extra)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                (
                    party_id,
                    party.name,
                    party.name.strip().lower(),
                    party.address,
                    party.phone,
                    party.tax_id,
                    str(party.due_amount),
                    _dumps_extra(party.extra),
                )
                for party_id, party in snapshot.parties.items()
            ])

            rows: List[Tuple[Any, ...]] = []
            for list_index, (party_id, visits) in enumerate(snapshot.visit_records.items()):
                for seq, visit in enumerate(visits):
                    location = visit.location
                    rows.append((
                        party_id,
                        list_index,
                        seq,
                        str(visit.amount),
                        visit.comment,
                        str(visit.payment_timestamp),
                        str(visit.next_payment_timestamp) if visit.has_next_payment else None,
                        location.latitude if location else None,
                        location.longitude if location else None,
                        _dumps_extra(location.extra) if location else None,
                        _dumps_extra(visit.extra),
                    ))
            cursor.executemany("""
                INSERT INTO visit_records (
                    party_id, list_index, seq, amount, comment, payment_ts,
                    next_payment_ts, latitude, longitude, location_extra, extra
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, rows)

            if snapshot.branding is not None:
                cursor.execute("""
                    INSERT INTO branding (singleton, name, logo, extra)
                    VALUES (1, ?, ?, ?)
                """, (
                    snapshot.branding.name,
                    snapshot.branding.logo,
                    _dumps_extra(snapshot.branding.extra),
                ))

            cursor.executemany(
                "INSERT INTO snapshot_meta (key, value) VALUES (?, ?)",
                [(key, json.dumps(value)) for key, value in snapshot.extra.items()],
            )

            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

        logger.debug(
            f"Applied snapshot: {len(snapshot.parties)} parties, "
            f"{snapshot.visit_record_count} visit records"
        )

    async def apply_snapshot(self, snapshot: Snapshot) -> None:
        await self._run(lambda: self._apply_snapshot(snapshot))

    def get_name(self) -> str:
        """Return store name."""
        return "sqlite"

    async def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed SQLite store")
