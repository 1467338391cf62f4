"""fanin: fan-out/fan-in completion coordination for record stores.

Usage:
    from fanin import AggregatingFetcher, CompletionBarrier, InMemoryStore
"""

from fanin.adapters import InMemoryStore
from fanin.contracts import (
    BarrierContractViolation,
    CollectionSnapshot,
    PartialFetchError,
    RawRecord,
    RecordKey,
    RecordNotFoundError,
    RecordParseError,
    StoreError,
    StoreProtocol,
    StoreReadError,
    StoreWriteError,
)
from fanin.core import CompletionBarrier, FaninSettings, FetcherSettings, Token, load_settings
from fanin.engine import AggregatingFetcher

__version__ = "0.1.0"

__all__ = [
    "AggregatingFetcher",
    "BarrierContractViolation",
    "CollectionSnapshot",
    "CompletionBarrier",
    "FaninSettings",
    "FetcherSettings",
    "InMemoryStore",
    "PartialFetchError",
    "RawRecord",
    "RecordKey",
    "RecordNotFoundError",
    "RecordParseError",
    "StoreError",
    "StoreProtocol",
    "StoreReadError",
    "StoreWriteError",
    "Token",
    "load_settings",
]
