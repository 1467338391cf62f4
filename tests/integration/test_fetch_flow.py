# tests/integration/test_fetch_flow.py
"""End-to-end flows over a threaded InMemoryStore.

Completions arrive on the store's delivery threads, as they would from a
networked store, so these tests exercise the cross-thread paths of the
barrier and the fetcher together.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

import pytest

from fanin.adapters.memory import InMemoryStore
from fanin.contracts.errors import PartialFetchError, RecordNotFoundError
from fanin.contracts.records import RawRecord, RecordKey
from fanin.core.barrier import CompletionBarrier
from fanin.core.config import FetcherSettings
from fanin.engine.fetcher import AggregatingFetcher
from tests.fixtures.fetchers import IdentityFetcher

TIMEOUT = 10


@dataclass(frozen=True)
class Author:
    key: str
    name: str


@dataclass(frozen=True)
class Book:
    key: str
    title: str
    author: Author


class AuthorFetcher(AggregatingFetcher[Author]):
    def parse(self, record: RawRecord) -> Author:
        return Author(key=record.key, name=record.value["name"])

    def serialize(self, value: Author) -> Any:
        return {"name": value.name}


class BookFetcher(AggregatingFetcher[Book]):
    """Books reference an author, so parsing needs a second read."""

    def __init__(self, store: InMemoryStore, authors: AuthorFetcher, settings: FetcherSettings | None = None) -> None:
        super().__init__(store, "books", settings)
        self._authors = authors

    def parse(self, record: RawRecord) -> Book:
        raise NotImplementedError("books are parsed asynchronously")

    def parse_async(self, record: RawRecord) -> Future[Book]:
        book: Future[Book] = Future()

        def on_author(author: Future[Author]) -> None:
            exc = author.exception()
            if exc is not None:
                book.set_exception(exc)
            else:
                book.set_result(Book(key=record.key, title=record.value["title"], author=author.result()))

        self._authors.get_one(RecordKey(record.value["author"])).add_done_callback(on_author)
        return book


class TestCollectionFlow:
    """get_all() across threads."""

    def test_three_children_delivered_once_without_duplicates(self, threaded_store: InMemoryStore) -> None:
        fetcher = IdentityFetcher(threaded_store, "letters")
        for key, value in {"a": "x", "b": "y", "c": "z"}.items():
            fetcher.save(value, RecordKey(key)).result(timeout=TIMEOUT)

        deliveries: list[list[Any]] = []
        delivered = threading.Event()
        result = fetcher.get_all()
        result.add_done_callback(lambda f: (deliveries.append(f.result()), delivered.set()))

        assert delivered.wait(timeout=TIMEOUT)
        assert len(deliveries) == 1
        assert sorted(deliveries[0]) == ["x", "y", "z"]

    def test_empty_table(self, threaded_store: InMemoryStore) -> None:
        fetcher = IdentityFetcher(threaded_store, "nothing")

        assert fetcher.get_all().result(timeout=TIMEOUT) == []

    def test_asynchronous_parse_joins_other_table(self, threaded_store: InMemoryStore) -> None:
        authors = AuthorFetcher(threaded_store, "authors")
        books = BookFetcher(threaded_store, authors)

        ada = Author(key=authors.new_key(), name="Ada")
        authors.save(ada, RecordKey(ada.key)).result(timeout=TIMEOUT)
        for title in ("Notes", "Sketch", "Letters"):
            threaded_store.write("books", books.new_key(), {"title": title, "author": ada.key}).result(timeout=TIMEOUT)

        result = books.get_all().result(timeout=TIMEOUT)

        assert [book.title for book in result] == ["Notes", "Sketch", "Letters"]
        assert {book.author for book in result} == {ada}

    def test_broken_reference_is_partial_failure(self, threaded_store: InMemoryStore) -> None:
        authors = AuthorFetcher(threaded_store, "authors")
        books = BookFetcher(threaded_store, authors)
        ada = Author(key="ada", name="Ada")
        authors.save(ada, RecordKey("ada")).result(timeout=TIMEOUT)
        threaded_store.write("books", RecordKey("b1"), {"title": "Notes", "author": "ada"}).result(timeout=TIMEOUT)
        threaded_store.write("books", RecordKey("b2"), {"title": "Lost", "author": "ghost"}).result(timeout=TIMEOUT)

        with pytest.raises(PartialFetchError) as exc_info:
            books.get_all().result(timeout=TIMEOUT)

        assert [book.title for book in exc_info.value.values] == ["Notes"]
        assert isinstance(exc_info.value.failures[RecordKey("b2")], RecordNotFoundError)

    def test_large_collection(self, threaded_store: InMemoryStore) -> None:
        fetcher = IdentityFetcher(threaded_store, "numbers")
        writes = [fetcher.save(i, RecordKey(f"n{i:04d}")) for i in range(500)]
        for write in writes:
            write.result(timeout=TIMEOUT)

        assert fetcher.get_all().result(timeout=TIMEOUT) == list(range(500))


class TestWriteFlow:
    """save()/delete() round trips."""

    def test_save_then_delete(self, threaded_store: InMemoryStore) -> None:
        fetcher = IdentityFetcher(threaded_store, "users")
        key = fetcher.new_key()

        fetcher.save({"name": "Ada"}, key).result(timeout=TIMEOUT)
        assert fetcher.get_one(key).result(timeout=TIMEOUT) == {"name": "Ada"}

        fetcher.delete(key).result(timeout=TIMEOUT)
        with pytest.raises(RecordNotFoundError):
            fetcher.get_one(key).result(timeout=TIMEOUT)


class TestListenerGroup:
    """A barrier joining operations attached by independent call sites."""

    def test_reverse_completion_fires_once_after_third(self) -> None:
        fired: list[str] = []
        barrier = CompletionBarrier(on_finish=lambda: fired.append(threading.current_thread().name), name="listeners")
        tokens = [barrier.register() for _ in range(3)]
        barrier.seal()

        def complete(index: int) -> None:
            barrier.complete(tokens[index])

        for index in (2, 1):
            thread = threading.Thread(target=complete, args=(index,))
            thread.start()
            thread.join(timeout=TIMEOUT)
        assert fired == []

        last = threading.Thread(target=complete, args=(0,), name="last-completer")
        last.start()
        last.join(timeout=TIMEOUT)

        assert fired == ["last-completer"]

    def test_watch_writes_from_several_call_sites(self, threaded_store: InMemoryStore) -> None:
        users = IdentityFetcher(threaded_store, "users")
        audit = IdentityFetcher(threaded_store, "audit")
        barrier = CompletionBarrier(name="signup")

        barrier.watch(users.save({"name": "Ada"}, RecordKey("ada")))
        barrier.watch(audit.save({"event": "signup"}, audit.new_key()))
        barrier.watch(users.get_many([RecordKey("missing")]))
        barrier.seal()

        assert barrier.finished.result(timeout=TIMEOUT) is None
        assert users.get_one(RecordKey("ada")).result(timeout=TIMEOUT) == {"name": "Ada"}
