# src/fanin/contracts/store.py
"""StoreProtocol: the key-value store collaborator consumed by fetchers.

Every asynchronous operation returns a concurrent.futures.Future which
the store resolves exactly once, possibly from one of its own I/O
threads. Store-level failures are delivered as the future's exception
(or by cancelling the future); the store never raises from the
dispatching call itself except for programming errors.
"""

from concurrent.futures import Future
from typing import Any, Protocol, runtime_checkable

from fanin.contracts.records import CollectionSnapshot, RawRecord, RecordKey


@runtime_checkable
class StoreProtocol(Protocol):
    """Protocol for record store backends."""

    def read_one(self, table: str, key: RecordKey) -> Future[RawRecord | None]:
        """Read a single entry.

        Args:
            table: Table (collection) name
            key: Entry key within the table

        Returns:
            Future resolving to the entry, or None if no entry exists
        """
        ...

    def read_all(self, table: str) -> Future[CollectionSnapshot]:
        """Read every child of a table in one call.

        Returns:
            Future resolving to a snapshot whose cardinality is known
            at delivery time (an empty table gives an empty snapshot)
        """
        ...

    def write(self, table: str, key: RecordKey, value: Any) -> Future[None]:
        """Upsert an entry.

        Returns:
            Future resolving to None on success
        """
        ...

    def delete(self, table: str, key: RecordKey) -> Future[None]:
        """Delete an entry. Deleting a missing entry succeeds.

        Returns:
            Future resolving to None on success
        """
        ...

    def new_key(self, table: str) -> RecordKey:
        """Generate a fresh, collision-free key for the table (synchronous)."""
        ...
