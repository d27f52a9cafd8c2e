"""
Shared pytest fixtures.

Every test gets a fresh in-memory store built from the packaged JSON
fixtures, with artificial service latency switched off.
"""

import copy
from datetime import datetime, timezone

import pytest

from mel_dashboard.loaders import load_all_fixtures
from mel_dashboard.services import MelServices, MockStore
from mel_dashboard.state import MelStore


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def fixture_data():
    return load_all_fixtures()


@pytest.fixture()
def data(fixture_data):
    """Deep copy of every fixture table, safe to mutate."""
    return copy.deepcopy(fixture_data)


@pytest.fixture()
def mock_store(fixture_data):
    return MockStore(fixture_data)


@pytest.fixture()
def services(mock_store):
    return MelServices(mock_store, delay_scale=0)


@pytest.fixture()
def store():
    return MelStore()


@pytest.fixture()
def now():
    """Fixed 'current time' two days after the 2024-Q1 deadline."""
    return datetime(2024, 4, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def country_manager(data):
    """Sokha Chan, Country Manager scoped to Cambodia (country 1)."""
    return next(u for u in data["users"] if u["name"] == "Sokha Chan")


@pytest.fixture()
def make_data_point():
    """Factory for a minimal submitted data point."""

    def _make(**overrides) -> dict:
        record = {
            "id": 1,
            "project_id": 1,
            "indicator_id": 1,
            "value": 100,
            "period": "2024-Q1",
            "status": "submitted",
            "submitted_by": "Field Officer",
            "submitted_at": "2024-03-31T09:00:00Z",
            "rejection_count": 0,
            "changes_requested_count": 0,
            "audit_trail": [],
        }
        record.update(overrides)
        return record

    return _make
