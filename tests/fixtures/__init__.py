# tests/fixtures/__init__.py
"""Shared test doubles for fanin tests.

- ControlledStore: StoreProtocol whose futures the test resolves by hand
- IdentityFetcher / DeferredFetcher: minimal AggregatingFetcher subclasses
"""

from tests.fixtures.fetchers import DeferredFetcher, IdentityFetcher
from tests.fixtures.stores import ControlledStore, PendingOperation

__all__ = [
    "ControlledStore",
    "DeferredFetcher",
    "IdentityFetcher",
    "PendingOperation",
]
