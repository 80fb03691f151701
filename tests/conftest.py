"""
Shared test fixtures and configuration for pytest.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ledger.core.models import (  # noqa: E402
    BrandingConfig, Location, ParsedPartyInput, PartyRecord, Snapshot, VisitRecord,
)


logger = logging.getLogger(__name__)


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: Tests that take a long time to run")


# ============================================================================
# Fixtures
# ============================================================================

def _make_inputs(count: int, prefix: str = "Party") -> list:
    """Build `count` valid parsed rows named '<prefix> 1' .. '<prefix> N'."""
    return [
        ParsedPartyInput(
            name=f"{prefix} {i}",
            address=f"{i} Market Road",
            phone=f"98450{i:05d}",
            tax_id=f"ABCDE{i:04d}F",
            due_amount=i * 100,
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def memory_store():
    """Fixture providing an empty in-memory remote store."""
    from ledger.store.memory_store import InMemoryRemoteStore

    return InMemoryRemoteStore()


@pytest.fixture
def make_inputs():
    """Fixture providing the parsed-row factory."""
    return _make_inputs


@pytest.fixture
def sample_inputs():
    """Fixture providing five valid parsed rows."""
    return _make_inputs(5)


@pytest.fixture
def sample_snapshot() -> Snapshot:
    """Fixture providing a small snapshot with one visit list and branding."""
    return Snapshot(
        parties={
            "A": PartyRecord(id="A", name="Asha Traders", address="1 MG Road",
                             phone="9845000001", tax_id="ABCDE1234F", due_amount=5000),
            "B": PartyRecord(id="B", name="Bala Stores", tax_id="BCDEF2345G", due_amount=0),
        },
        visit_records={
            "A": [
                VisitRecord(
                    party_id="A",
                    amount=1500,
                    comment="First instalment",
                    payment_timestamp=1_700_000_000_000_000_000,
                    next_payment_timestamp=1_702_592_000_000_000_000,
                    location=Location(latitude=12.9716, longitude=77.5946),
                ),
            ],
        },
        branding=BrandingConfig(name="Sri Lakshmi Agencies", logo="logo-v1"),
    )
