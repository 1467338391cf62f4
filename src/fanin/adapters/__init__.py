"""Store adapters implementing StoreProtocol."""

from fanin.adapters.memory import InMemoryStore

__all__ = ["InMemoryStore"]
