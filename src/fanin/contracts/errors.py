# src/fanin/contracts/errors.py
"""Exception taxonomy for fanin.

Two families:
- Contract violations: programming bugs in how a barrier is driven.
  Raised immediately and never caught inside the library.
- Store and parse failures: runtime conditions. Never raised to the
  dispatching caller; delivered as the exception of the Future the
  caller received.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from fanin.contracts.records import RecordKey

# =============================================================================
# Contract Violations
# =============================================================================


class BarrierContractViolation(RuntimeError):
    """Raised when a CompletionBarrier is driven out of protocol.

    Examples: register() after seal(), seal() called twice.
    """


# =============================================================================
# Store Failures
# =============================================================================


class StoreError(Exception):
    """Base class for failures surfaced by the store collaborator.

    Attributes:
        table: Table the operation targeted
        key: Entry key, or None for collection-wide operations
    """

    def __init__(self, table: str, key: RecordKey | None, message: str) -> None:
        self.table = table
        self.key = key
        super().__init__(message)


class StoreReadError(StoreError):
    """A read was cancelled or failed at the store level."""


class StoreWriteError(StoreError):
    """A write or delete was cancelled or failed at the store level."""


class RecordNotFoundError(StoreError):
    """A single-record read found no entry under the key."""

    def __init__(self, table: str, key: RecordKey) -> None:
        super().__init__(table, key, f"No record '{key}' in table '{table}'")


# =============================================================================
# Parse and Aggregate Failures
# =============================================================================


class RecordParseError(Exception):
    """The parse hook raised for a record.

    The original exception is chained as __cause__.
    """

    def __init__(self, table: str, key: RecordKey, message: str) -> None:
        self.table = table
        self.key = key
        super().__init__(f"Failed to parse record '{key}' in table '{table}': {message}")


class PartialFetchError(Exception):
    """An aggregate fetch finished with at least one failed child.

    Raised only after every child has reported, so values holds
    everything that could be parsed.

    Attributes:
        table: Table that was fetched
        values: Successfully parsed values, in result order
        failures: Failure per child key
    """

    def __init__(
        self,
        table: str,
        values: Sequence[Any],
        failures: Mapping[RecordKey, BaseException],
    ) -> None:
        self.table = table
        self.values = list(values)
        self.failures = dict(failures)
        super().__init__(f"{len(self.failures)} of {len(self.values) + len(self.failures)} records in table '{table}' failed: {sorted(self.failures)}")
