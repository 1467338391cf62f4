"""Shared contracts: record shapes, store protocol and errors."""

from fanin.contracts.errors import (
    BarrierContractViolation,
    PartialFetchError,
    RecordNotFoundError,
    RecordParseError,
    StoreError,
    StoreReadError,
    StoreWriteError,
)
from fanin.contracts.records import CollectionSnapshot, RawRecord, RecordKey
from fanin.contracts.store import StoreProtocol

__all__ = [
    "BarrierContractViolation",
    "CollectionSnapshot",
    "PartialFetchError",
    "RawRecord",
    "RecordKey",
    "RecordNotFoundError",
    "RecordParseError",
    "StoreError",
    "StoreProtocol",
    "StoreReadError",
    "StoreWriteError",
]
