"""
Pytest configuration and fixtures for VisaMate tests.
"""

import os
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

# Set test environment before importing visamate modules
os.environ["VISAMATE_ENV"] = "development"
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key-not-real")
os.environ["FLAG_STORE"] = "memory"
os.environ["TOUR_AUTO_START_DELAY"] = "0"
os.environ.pop("OPENAI_API_KEY", None)

from onboarding.flags import MemoryFlagStore
from onboarding.steps import TourStep, anchor_for


@dataclass
class FakeIdentity:
    """Stand-in for IdentitySession exposing only what the core reads."""
    identity_id: str | None = "u1"
    loading: bool = False
    profile_complete: bool | None = False


class ManualScheduler:
    """Deferred-call scheduler the test fires by hand."""

    def __init__(self):
        self.calls: list[tuple[float, object, MagicMock]] = []

    def __call__(self, delay, callback):
        handle = MagicMock()
        self.calls.append((delay, callback, handle))
        return handle

    def fire_all(self):
        calls, self.calls = self.calls, []
        for _, callback, handle in calls:
            if not handle.cancel.called:
                callback()


@pytest.fixture
def flags():
    return MemoryFlagStore()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def three_steps():
    """Minimal tour: intro, one anchored step, outro."""
    return [
        TourStep(id="welcome", title="Welcome", body="Hello"),
        TourStep(id="dashboard", title="Dashboard", body="Overview", anchor=anchor_for("dashboard")),
        TourStep(id="complete", title="Done", body="Bye"),
    ]


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    # Mock table operations
    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.insert.return_value = mock_table
    mock_table.upsert.return_value = mock_table
    mock_table.update.return_value = mock_table
    mock_table.delete.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.maybe_single.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])

    mock_client.table.return_value = mock_table

    return mock_client
