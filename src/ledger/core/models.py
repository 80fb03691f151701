"""
Core data models for the party ledger pipeline.

Parties and their visit/payment records are held in memory as plain
dataclasses. A Snapshot is one point-in-time copy of the whole dataset and is
the unit moved by export/import. Wire-format concerns (decimal-string integers,
pair arrays) live in ledger.transfer.codec, not here.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class FailureCategory(str, Enum):
    """Why a single record failed to import."""
    DUPLICATE_NAME = "duplicate_name"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class FailureStage(str, Enum):
    """Which remote call a record failed in."""
    ALLOCATION = "allocation"
    SUBMISSION = "submission"


@dataclass
class Location:
    """Latitude/longitude pair attached to a visit."""
    latitude: float
    longitude: float
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PartyRecord:
    """
    A tracked customer/entity with a due balance.

    Attributes:
        id: Opaque identifier allocated by the remote store
        name: Party name
        address: Postal address (may be empty)
        phone: Phone number (may be empty)
        tax_id: PAN / tax identifier
        due_amount: Outstanding balance in whole currency units (non-negative)
        extra: Unrecognized wire fields, passed through unchanged
    """
    id: str
    name: str
    address: str = ""
    phone: str = ""
    tax_id: str = ""
    due_amount: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VisitRecord:
    """
    One dated transaction against a party.

    Attributes:
        party_id: Owning party (the pair key on the wire)
        amount: Amount paid in whole currency units (non-negative)
        comment: Free-form note
        payment_timestamp: Payment time, integer nanoseconds since the epoch
        next_payment_timestamp: Scheduled next payment, if any
        location: Where the visit happened, if recorded
        extra: Unrecognized wire fields, passed through unchanged
    """
    party_id: str
    amount: int
    comment: str
    payment_timestamp: int
    next_payment_timestamp: Optional[int] = None
    location: Optional[Location] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_next_payment(self) -> bool:
        return self.next_payment_timestamp is not None

    @property
    def has_location(self) -> bool:
        return self.location is not None


@dataclass
class BrandingConfig:
    """Shop branding shown in the UI header."""
    name: Optional[str] = None
    logo: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Snapshot:
    """
    A complete, consistent copy of all parties, visit records and branding.

    Dict insertion order is preserved and is the order used on the wire.
    """
    parties: Dict[str, PartyRecord] = field(default_factory=dict)
    visit_records: Dict[str, List[VisitRecord]] = field(default_factory=dict)
    branding: Optional[BrandingConfig] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def visit_record_count(self) -> int:
        return sum(len(records) for records in self.visit_records.values())

    def orphaned_party_ids(self) -> List[str]:
        """Party ids that have visit records but no party entry."""
        return [pid for pid in self.visit_records if pid not in self.parties]


@dataclass(frozen=True)
class ParsedPartyInput:
    """A validated CSV row that has not been assigned an id yet."""
    name: str
    address: str
    phone: str
    tax_id: str
    due_amount: int

    def to_party(self, party_id: str) -> PartyRecord:
        return PartyRecord(
            id=party_id,
            name=self.name,
            address=self.address,
            phone=self.phone,
            tax_id=self.tax_id,
            due_amount=self.due_amount,
        )


@dataclass
class ImportFailure:
    """
    A record that could not be imported.

    Attributes:
        name: Party name from the input row
        reason: Human-readable reason
        category: Classified failure kind
        stage: Remote call that failed
        allocated_id: Id that was allocated before the create call failed.
            Such ids are never reclaimed.
    """
    name: str
    reason: str
    category: FailureCategory = FailureCategory.UNKNOWN
    stage: FailureStage = FailureStage.ALLOCATION
    allocated_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "reason": self.reason,
            "category": self.category.value,
            "stage": self.stage.value,
            "allocated_id": self.allocated_id,
        }


@dataclass
class ImportOutcome:
    """Result of a bulk party import."""
    success_count: int = 0
    failed: List[ImportFailure] = field(default_factory=list)
    total: int = 0
    batches: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success_count": self.success_count,
            "failed": [f.to_dict() for f in self.failed],
            "total": self.total,
            "batches": self.batches,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def summary(self) -> str:
        """Get a human-readable summary."""
        line = f"Imported {self.success_count} parties successfully"
        if self.failed:
            line += f", {len(self.failed)} failed"
        lines = [line]
        for failure in self.failed:
            lines.append(f"  - {failure.name}: {failure.reason}")
        return "\n".join(lines)
