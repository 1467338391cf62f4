# tests/conftest.py
"""Shared test fixtures and Hypothesis configuration.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from fanin.adapters.memory import InMemoryStore
from fanin.core.clock import MockClock
from fanin.core.config import MemoryStoreSettings
from tests.fixtures.stores import ControlledStore

# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def controlled_store() -> ControlledStore:
    """Store double whose futures the test resolves explicitly."""
    return ControlledStore()


@pytest.fixture
def mock_clock() -> MockClock:
    """Clock pinned to 2026-01-30T12:00:00Z."""
    return MockClock(start_ms=1_769_774_400_000)


@pytest.fixture
def inline_store(mock_clock: MockClock) -> Iterator[InMemoryStore]:
    """InMemoryStore that resolves every future before returning it."""
    store = InMemoryStore(MemoryStoreSettings(delivery_workers=0), clock=mock_clock)
    yield store
    store.close()


@pytest.fixture
def threaded_store() -> Iterator[InMemoryStore]:
    """InMemoryStore delivering completions from background threads.

    Closed at teardown so delivery threads never outlive the test.
    """
    store = InMemoryStore(MemoryStoreSettings(delivery_workers=4))
    yield store
    store.close()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Timing varies on shared runners
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
