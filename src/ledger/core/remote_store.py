"""
Remote store interface for party persistence.

The remote store owns party CRUD, id allocation and persistence. The pipeline
only talks to it through this interface; every method is a coroutine so each
network round trip is an await point.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple

from .models import ParsedPartyInput, PartyRecord, Snapshot


class RemoteStore(ABC):
    """
    Abstract base class for remote record stores.

    Implementations translate their transport errors into the
    RemoteStoreError hierarchy (DuplicateNameError, RemoteNetworkError,
    RemoteTimeoutError) so failures can be classified per record.
    """

    @abstractmethod
    async def generate_id(self, name: str, phone: str) -> str:
        """
        Validate a new party name and allocate an id for it.

        Args:
            name: Party name
            phone: Party phone number

        Returns:
            The allocated party id

        Raises:
            DuplicateNameError: If a party with this name already exists
            RemoteNetworkError: If the store cannot be reached
            RemoteTimeoutError: If the store does not answer in time
        """
        pass

    @abstractmethod
    async def create_party(self, party_id: str, fields: ParsedPartyInput) -> None:
        """
        Create a party under a previously allocated id.

        Args:
            party_id: Id returned by generate_id
            fields: Party fields
        """
        pass

    @abstractmethod
    async def get_all_parties(self) -> List[Tuple[str, PartyRecord]]:
        """
        Get every party as (id, record) pairs.
        """
        pass

    @abstractmethod
    async def export_snapshot(self) -> Snapshot:
        """
        Read the entire dataset in one logical operation.
        """
        pass

    @abstractmethod
    async def apply_snapshot(self, snapshot: Snapshot) -> None:
        """
        Replace the entire dataset with the given snapshot.
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return the store name/identifier."""
        pass

    async def close(self) -> None:
        """Close any open resources. Optional."""
        pass
