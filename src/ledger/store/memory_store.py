"""
In-memory remote store for tests and local runs.

Keeps the whole dataset in process memory. Deterministic id allocation,
configurable latency and per-name fault injection make it usable for
exercising the batch pipeline without any network dependency.
"""

import asyncio
import copy
import logging
from typing import Dict, List, Optional, Tuple

from ..core.exceptions import DuplicateNameError, RemoteStoreError
from ..core.models import ParsedPartyInput, PartyRecord, Snapshot
from ..core.remote_store import RemoteStore

logger = logging.getLogger(__name__)


def _name_key(name: str) -> str:
    return name.strip().lower()


class InMemoryRemoteStore(RemoteStore):
    """
    Deterministic in-memory implementation of the remote store.

    Features:
    - Sequential ids (P000001, P000002, ...)
    - Case-insensitive duplicate-name rejection at id allocation
    - Configurable latency simulation
    - Error injection for specific party names, per call
    - In-flight tracking so tests can assert the concurrency bound
    """

    def __init__(
        self,
        snapshot: Optional[Snapshot] = None,
        simulate_latency_ms: int = 0,
        allocation_errors: Optional[Dict[str, Exception]] = None,
        create_errors: Optional[Dict[str, Exception]] = None,
        export_error: Optional[Exception] = None,
        id_prefix: str = "P",
    ):
        """
        Initialize the store.

        Args:
            snapshot: Initial dataset (copied)
            simulate_latency_ms: Delay added to every call
            allocation_errors: Party name -> exception raised by generate_id
            create_errors: Party name -> exception raised by create_party
            export_error: Exception raised by export_snapshot, if set
            id_prefix: Prefix for allocated ids
        """
        self._snapshot = copy.deepcopy(snapshot) if snapshot else Snapshot()
        self.simulate_latency_ms = simulate_latency_ms
        self.allocation_errors = dict(allocation_errors or {})
        self.create_errors = dict(create_errors or {})
        self.export_error = export_error
        self.id_prefix = id_prefix

        self._next_id = 1
        # Allocated id -> name; entries are removed once the party is created
        self.pending_allocations: Dict[str, str] = {}

        # Track calls for testing
        self.request_history: List[Tuple[str, str]] = []
        self.apply_count = 0
        self.in_flight = 0
        self.max_in_flight = 0

        logger.debug(f"InMemoryRemoteStore initialized with {len(self._snapshot.parties)} parties")

    @property
    def snapshot(self) -> Snapshot:
        """Current dataset (live, not a copy)."""
        return self._snapshot

    async def _enter(self, operation: str, subject: str) -> None:
        self.request_history.append((operation, subject))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.simulate_latency_ms > 0:
            await asyncio.sleep(self.simulate_latency_ms / 1000.0)
        else:
            # Yield so concurrent callers actually interleave
            await asyncio.sleep(0)

    def _leave(self) -> None:
        self.in_flight -= 1

    def _allocate_id(self) -> str:
        """Next sequential id not held by a party (imported ones included) or a pending allocation."""
        while True:
            party_id = f"{self.id_prefix}{self._next_id:06d}"
            self._next_id += 1
            if party_id not in self._snapshot.parties and party_id not in self.pending_allocations:
                return party_id

    async def generate_id(self, name: str, phone: str) -> str:
        await self._enter("generate_id", name)
        try:
            if name in self.allocation_errors:
                logger.debug(f"Simulating allocation error for: {name}")
                raise self.allocation_errors[name]

            key = _name_key(name)
            if any(_name_key(p.name) == key for p in self._snapshot.parties.values()):
                raise DuplicateNameError(f"Party with name '{name}' already exists")

            party_id = self._allocate_id()
            self.pending_allocations[party_id] = name
            return party_id
        finally:
            self._leave()

    async def create_party(self, party_id: str, fields: ParsedPartyInput) -> None:
        await self._enter("create_party", fields.name)
        try:
            if fields.name in self.create_errors:
                logger.debug(f"Simulating create error for: {fields.name}")
                raise self.create_errors[fields.name]

            if party_id in self._snapshot.parties:
                raise RemoteStoreError(f"Party id {party_id} is already in use")
            if party_id not in self.pending_allocations:
                raise RemoteStoreError(f"Party id {party_id} was not allocated")

            del self.pending_allocations[party_id]
            self._snapshot.parties[party_id] = fields.to_party(party_id)
        finally:
            self._leave()

    async def get_all_parties(self) -> List[Tuple[str, PartyRecord]]:
        await self._enter("get_all_parties", "")
        try:
            return [(pid, copy.deepcopy(p)) for pid, p in self._snapshot.parties.items()]
        finally:
            self._leave()

    async def export_snapshot(self) -> Snapshot:
        await self._enter("export_snapshot", "")
        try:
            if self.export_error is not None:
                raise self.export_error
            return copy.deepcopy(self._snapshot)
        finally:
            self._leave()

    async def apply_snapshot(self, snapshot: Snapshot) -> None:
        await self._enter("apply_snapshot", "")
        try:
            self._snapshot = copy.deepcopy(snapshot)
            self.apply_count += 1
        finally:
            self._leave()

    def unattached_ids(self) -> List[str]:
        """Ids that were allocated but never used by a successful create."""
        return list(self.pending_allocations)

    def get_name(self) -> str:
        """Return store name."""
        return "memory"

    def reset(self) -> None:
        """Clear request history and counters."""
        self.request_history.clear()
        self.apply_count = 0
        self.max_in_flight = 0
