"""Core primitives: completion barrier, key generation, config and logging."""

from fanin.core.barrier import CompletionBarrier, Token
from fanin.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from fanin.core.config import (
    FaninSettings,
    FetcherSettings,
    LoggingSettings,
    MemoryStoreSettings,
    load_settings,
)
from fanin.core.identifiers import PushKeyGenerator

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "CompletionBarrier",
    "FaninSettings",
    "FetcherSettings",
    "LoggingSettings",
    "MemoryStoreSettings",
    "MockClock",
    "PushKeyGenerator",
    "SystemClock",
    "Token",
    "load_settings",
]
