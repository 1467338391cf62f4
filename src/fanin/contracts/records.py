# src/fanin/contracts/records.py
"""Record shapes exchanged with the store collaborator.

These are the raw, unparsed entries a store hands back. Parsing them
into domain values is the job of each concrete fetcher.
"""

from dataclasses import dataclass
from typing import Any, NewType

RecordKey = NewType("RecordKey", str)


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One store entry as read from a table.

    Attributes:
        key: Key of the entry within its table
        value: Decoded store value (mapping, scalar or list)
    """

    key: RecordKey
    value: Any


@dataclass(frozen=True, slots=True)
class CollectionSnapshot:
    """All children of a table, captured by a single read.

    Children are kept in the store's native order. The cardinality is
    fixed at read time; later writes to the table do not affect it.
    """

    table: str
    children: tuple[RawRecord, ...] = ()

    @property
    def cardinality(self) -> int:
        """Number of children reported by the store at read time."""
        return len(self.children)
