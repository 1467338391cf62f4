# src/fanin/adapters/memory.py
"""In-memory StoreProtocol implementation.

Behaves like a networked document store from the caller's point of view:
every operation returns immediately and its future is resolved from a
background delivery thread. Values are deep-copied on the way in and
out, so callers never share mutable state with the store.

Children of a table are returned in key order. Push keys sort
chronologically, so that is also creation order for generated keys.

With delivery_workers=0 every future is resolved before the dispatching
call returns, which makes single-threaded tests deterministic.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import structlog

from fanin.contracts.records import CollectionSnapshot, RawRecord, RecordKey
from fanin.core.clock import Clock
from fanin.core.config import MemoryStoreSettings
from fanin.core.identifiers import PushKeyGenerator

slog = structlog.get_logger(__name__)

__all__ = ["InMemoryStore"]


class InMemoryStore:
    """Thread-safe dict-backed store with asynchronous delivery.

    Usage:
        with InMemoryStore(MemoryStoreSettings(delivery_workers=2)) as store:
            key = store.new_key("users")
            store.write("users", key, {"name": "Ada"}).result()
            snapshot = store.read_all("users").result()
    """

    def __init__(self, settings: MemoryStoreSettings | None = None, *, clock: Clock | None = None) -> None:
        """Initialize an empty store.

        Args:
            settings: Delivery and key settings. Defaults to MemoryStoreSettings().
            clock: Clock for push-key timestamps. Defaults to system clock.
        """
        self._settings = settings if settings is not None else MemoryStoreSettings()
        self._tables: dict[str, dict[RecordKey, Any]] = {}
        self._lock = threading.Lock()
        self._keys = PushKeyGenerator(entropy_chars=self._settings.key_entropy_chars, clock=clock)
        self._closed = False
        self._executor: ThreadPoolExecutor | None = None
        if self._settings.delivery_workers > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=self._settings.delivery_workers,
                thread_name_prefix="fanin-store",
            )

    # -------------------------------------------------------------------------
    # StoreProtocol
    # -------------------------------------------------------------------------

    def read_one(self, table: str, key: RecordKey) -> Future[RawRecord | None]:
        return self._submit(self._read_one, table, key)

    def read_all(self, table: str) -> Future[CollectionSnapshot]:
        return self._submit(self._read_all, table)

    def write(self, table: str, key: RecordKey, value: Any) -> Future[None]:
        # Copy now so later caller mutations cannot leak into the write
        try:
            snapshot = copy.deepcopy(value)
        except Exception as exc:
            slog.warning("Store rejected uncopyable value", table=table, key=key, error=repr(exc))
            future: Future[None] = Future()
            future.set_exception(exc)
            return future
        return self._submit(self._write, table, key, snapshot)

    def delete(self, table: str, key: RecordKey) -> Future[None]:
        return self._submit(self._delete, table, key)

    def new_key(self, table: str) -> RecordKey:
        return self._keys.generate()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Stop delivery threads after pending operations finish. Idempotent."""
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> InMemoryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Operations (run on the delivery thread)
    # -------------------------------------------------------------------------

    def _read_one(self, table: str, key: RecordKey) -> RawRecord | None:
        with self._lock:
            rows = self._tables.get(table)
            if rows is None or key not in rows:
                return None
            return RawRecord(key=key, value=copy.deepcopy(rows[key]))

    def _read_all(self, table: str) -> CollectionSnapshot:
        with self._lock:
            rows = self._tables.get(table, {})
            children = tuple(RawRecord(key=key, value=copy.deepcopy(rows[key])) for key in sorted(rows))
        return CollectionSnapshot(table=table, children=children)

    def _write(self, table: str, key: RecordKey, value: Any) -> None:
        with self._lock:
            self._tables.setdefault(table, {})[key] = value

    def _delete(self, table: str, key: RecordKey) -> None:
        with self._lock:
            rows = self._tables.get(table)
            if rows is not None:
                rows.pop(key, None)

    def _submit[R](self, fn: Callable[..., R], *args: Any) -> Future[R]:
        if self._closed:
            raise RuntimeError("InMemoryStore is closed")
        if self._executor is not None:
            return self._executor.submit(fn, *args)

        future: Future[R] = Future()
        try:
            future.set_result(fn(*args))
        except Exception as exc:
            slog.warning("Store operation failed", operation=fn.__name__, error=repr(exc))
            future.set_exception(exc)
        return future
