# src/fanin/engine/fetcher.py
"""AggregatingFetcher: typed record access over a callback-driven store.

One fetcher serves one table. Concrete subclasses supply the parse hook
that turns a RawRecord into a domain value:

    class UserFetcher(AggregatingFetcher[User]):
        def parse(self, record: RawRecord) -> User:
            return User(id=record.key, **record.value)

    users = UserFetcher(store, "users")
    users.get_all().add_done_callback(render)

Every operation dispatches and returns a Future immediately. Results are
delivered later, usually from the store's own I/O thread.

Architecture:
    get_all() ─▶ store.read_all ─▶ snapshot (N children)
                                       │
                        one CompletionBarrier, N tokens, sealed
                                       │
                 parse_async(child_i) ─┼─▶ slot i / failure for key_i
                                       │        └─▶ barrier.complete(token_i)
                                       ▼
                       barrier finishes ─▶ result future (exactly once)

Failure contract:
    - Store read failure/cancellation -> StoreReadError
    - Missing single record -> RecordNotFoundError
    - Parse hook raised -> RecordParseError
    - Any child of an aggregate failed -> PartialFetchError, delivered
      only after every child has reported
    - Write/delete failure/cancellation -> StoreWriteError

Cancelling a future returned by get_all() or get_many() aborts its
barrier; completions that arrive afterwards are discarded.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from concurrent.futures import CancelledError, Future, InvalidStateError
from functools import partial
from typing import Any

import structlog

from fanin.contracts.errors import (
    PartialFetchError,
    RecordNotFoundError,
    RecordParseError,
    StoreReadError,
    StoreWriteError,
)
from fanin.contracts.records import CollectionSnapshot, RawRecord, RecordKey
from fanin.contracts.store import StoreProtocol
from fanin.core.barrier import CompletionBarrier, Token
from fanin.core.config import FetcherSettings

slog = structlog.get_logger(__name__)

__all__ = ["AggregatingFetcher"]


def _resolve[V](future: Future[V], value: V) -> None:
    """Set a result unless the consumer cancelled the future first."""
    try:
        future.set_result(value)
    except InvalidStateError:
        if not future.cancelled():
            raise
        slog.debug("Discarding result for cancelled future")


def _fail(future: Future[Any], exc: BaseException) -> None:
    """Set an exception unless the consumer cancelled the future first."""
    try:
        future.set_exception(exc)
    except InvalidStateError:
        if not future.cancelled():
            raise
        slog.debug("Discarding failure for cancelled future", error=str(exc))


def _outcome(future: Future[Any]) -> BaseException | None:
    """Exception of a done future, treating cancellation as a failure."""
    if future.cancelled():
        return CancelledError()
    return future.exception()


class _CollectionFetch[T]:
    """Result accumulator owned by one in-flight get_all() call.

    Values land in index-addressed slots (source order) or in an
    arrival-order list, depending on preserve_order.
    """

    def __init__(self, children: Sequence[RawRecord], *, preserve_order: bool) -> None:
        self._lock = threading.Lock()
        self._children = children
        self._preserve_order = preserve_order
        self._slots: list[T | None] = [None] * len(children)
        self._filled: list[bool] = [False] * len(children)
        self._arrivals: list[T] = []
        self.failures: dict[RecordKey, BaseException] = {}

    def record(self, index: int, parsed: Future[T]) -> None:
        key = self._children[index].key
        exc = _outcome(parsed)
        with self._lock:
            if exc is not None:
                self.failures[key] = exc
            elif self._preserve_order:
                self._slots[index] = parsed.result()
                self._filled[index] = True
            else:
                self._arrivals.append(parsed.result())

    def values(self) -> list[T]:
        with self._lock:
            if not self._preserve_order:
                return list(self._arrivals)
            return [value for value, filled in zip(self._slots, self._filled, strict=True) if filled]  # type: ignore[misc]


class AggregatingFetcher[T](ABC):
    """Fetches single records and whole collections from one table.

    Subclasses implement parse(). Record types whose parsing is itself
    asynchronous (e.g. needs a lookup in another table) override
    parse_async() instead and leave parse() raising.
    """

    def __init__(
        self,
        store: StoreProtocol,
        table: str,
        settings: FetcherSettings | None = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            store: Store collaborator used for every operation
            table: Table (collection) this fetcher reads and writes
            settings: Fetcher behaviour. Defaults to FetcherSettings().
        """
        self._store = store
        self._table = table
        self._settings = settings if settings is not None else FetcherSettings()

    @property
    def table(self) -> str:
        return self._table

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def parse(self, record: RawRecord) -> T:
        """Turn a raw store entry into a domain value."""
        ...

    def parse_async(self, record: RawRecord) -> Future[T]:
        """Parse a record, delivering the value through a future.

        The default runs parse() inline and returns a completed future.
        Exceptions from parse() become RecordParseError.
        """
        future: Future[T] = Future()
        try:
            value = self.parse(record)
        except Exception as exc:
            error = RecordParseError(self._table, record.key, str(exc))
            error.__cause__ = exc
            future.set_exception(error)
        else:
            future.set_result(value)
        return future

    def serialize(self, value: T) -> Any:
        """Turn a domain value into the store representation (default: as-is)."""
        return value

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_one(self, key: RecordKey) -> Future[T]:
        """Fetch and parse the record stored under key."""
        result: Future[T] = Future()
        read = self._store.read_one(self._table, key)
        read.add_done_callback(partial(self._on_record, key, result))
        return result

    def get_all(self) -> Future[list[T]]:
        """Fetch and parse every record in the table.

        An empty table resolves with [] from the store's callback,
        without creating a barrier.
        """
        result: Future[list[T]] = Future()
        read = self._store.read_all(self._table)
        read.add_done_callback(partial(self._on_collection, result))
        return result

    def get_many(self, keys: Sequence[RecordKey]) -> Future[list[T]]:
        """Fetch several records by key, delivered in key order.

        Repeated keys are read once and appear once in the result.
        Fails with PartialFetchError if any single read failed.
        """
        result: Future[list[T]] = Future()
        unique = list(dict.fromkeys(keys))
        reads = [self.get_one(key) for key in unique]
        barrier = CompletionBarrier(
            on_finish=partial(self._gather, unique, reads, result),
            name=f"{self._table}.get_many",
        )
        for read in reads:
            barrier.watch(read)
        barrier.seal()
        result.add_done_callback(partial(self._abort_if_cancelled, barrier, reads))
        return result

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def new_key(self) -> RecordKey:
        """Generate a fresh key for this table."""
        return self._store.new_key(self._table)

    def save(self, value: T, key: RecordKey) -> Future[None]:
        """Write value under key.

        A serialize() failure fails the returned future with
        StoreWriteError; nothing is sent to the store.
        """
        result: Future[None] = Future()
        try:
            payload = self.serialize(value)
        except Exception as exc:
            slog.warning("Record serialization failed", table=self._table, key=key, error=repr(exc))
            error = StoreWriteError(self._table, key, f"serialize of '{key}' in table '{self._table}' failed: {exc!r}")
            error.__cause__ = exc
            result.set_exception(error)
            return result
        write = self._store.write(self._table, key, payload)
        write.add_done_callback(partial(self._on_written, key, "write", result))
        return result

    def delete(self, key: RecordKey) -> Future[None]:
        """Delete the record under key."""
        result: Future[None] = Future()
        write = self._store.delete(self._table, key)
        write.add_done_callback(partial(self._on_written, key, "delete", result))
        return result

    # -------------------------------------------------------------------------
    # Completion handlers (run on the store's delivery thread)
    # -------------------------------------------------------------------------

    def _on_record(self, key: RecordKey, result: Future[T], read: Future[RawRecord | None]) -> None:
        exc = _outcome(read)
        if exc is not None:
            slog.warning("Record read failed", table=self._table, key=key, error=repr(exc))
            error = StoreReadError(self._table, key, f"Read of '{key}' in table '{self._table}' failed: {exc!r}")
            error.__cause__ = exc
            _fail(result, error)
            return

        record = read.result()
        if record is None:
            _fail(result, RecordNotFoundError(self._table, key))
            return

        self._parse(record).add_done_callback(partial(self._forward, result))

    def _on_collection(self, result: Future[list[T]], read: Future[CollectionSnapshot]) -> None:
        if result.cancelled():
            return
        exc = _outcome(read)
        if exc is not None:
            slog.warning("Collection read failed", table=self._table, error=repr(exc))
            error = StoreReadError(self._table, None, f"Read of table '{self._table}' failed: {exc!r}")
            error.__cause__ = exc
            _fail(result, error)
            return

        snapshot = read.result()
        if snapshot.cardinality == 0:
            _resolve(result, [])
            return

        slog.debug("Collection fetch started", table=self._table, cardinality=snapshot.cardinality)
        fetch: _CollectionFetch[T] = _CollectionFetch(snapshot.children, preserve_order=self._settings.preserve_source_order)
        barrier = CompletionBarrier(
            on_finish=partial(self._deliver_collection, fetch, result),
            name=f"{self._table}.get_all",
        )

        # All tokens exist before any parse is dispatched, so an early
        # child can never finish the barrier on its own
        tokens = [barrier.register() for _ in snapshot.children]
        barrier.seal()

        parses: list[Future[T]] = []
        for index, (child, token) in enumerate(zip(snapshot.children, tokens, strict=True)):
            # Caller may cancel from another thread while we dispatch
            if result.cancelled():
                break
            parsed = self._parse(child)
            parses.append(parsed)
            parsed.add_done_callback(partial(self._on_child_parsed, fetch, barrier, index, token))
        # Registered after dispatch so the abort sees every parse; a
        # result cancelled earlier runs it immediately
        result.add_done_callback(partial(self._abort_if_cancelled, barrier, parses))

    def _on_child_parsed(
        self,
        fetch: _CollectionFetch[T],
        barrier: CompletionBarrier,
        index: int,
        token: Token,
        parsed: Future[T],
    ) -> None:
        fetch.record(index, parsed)
        barrier.complete(token)

    def _deliver_collection(self, fetch: _CollectionFetch[T], result: Future[list[T]]) -> None:
        values = fetch.values()
        if fetch.failures:
            slog.warning("Collection fetch partially failed", table=self._table, failed=len(fetch.failures))
            _fail(result, PartialFetchError(self._table, values, fetch.failures))
            return
        slog.debug("Collection fetch finished", table=self._table, count=len(values))
        _resolve(result, values)

    def _gather(self, keys: list[RecordKey], reads: list[Future[T]], result: Future[list[T]]) -> None:
        values: list[T] = []
        failures: dict[RecordKey, BaseException] = {}
        for key, read in zip(keys, reads, strict=True):
            exc = _outcome(read)
            if exc is not None:
                failures[key] = exc
            else:
                values.append(read.result())
        if failures:
            _fail(result, PartialFetchError(self._table, values, failures))
        else:
            _resolve(result, values)

    def _on_written(self, key: RecordKey, operation: str, result: Future[None], write: Future[None]) -> None:
        exc = _outcome(write)
        if exc is None:
            _resolve(result, None)
            return
        slog.warning("Store write failed", table=self._table, key=key, operation=operation, error=repr(exc))
        error = StoreWriteError(self._table, key, f"{operation} of '{key}' in table '{self._table}' failed: {exc!r}")
        error.__cause__ = exc
        _fail(result, error)

    def _abort_if_cancelled(self, barrier: CompletionBarrier, pending: list[Future[Any]], result: Future[Any]) -> None:
        if not result.cancelled():
            return
        dropped = barrier.abort()
        for future in pending:
            future.cancel()
        slog.debug("Fetch cancelled by caller", table=self._table, barrier=barrier.name, abandoned=len(dropped))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _parse(self, record: RawRecord) -> Future[T]:
        try:
            return self.parse_async(record)
        except Exception as exc:
            future: Future[T] = Future()
            error = RecordParseError(self._table, record.key, str(exc))
            error.__cause__ = exc
            future.set_exception(error)
            return future

    @staticmethod
    def _forward(target: Future[T], source: Future[T]) -> None:
        if source.cancelled():
            target.cancel()
            return
        exc = source.exception()
        if exc is not None:
            _fail(target, exc)
        else:
            _resolve(target, source.result())
