"""Store interfaces and in-memory implementations for credwarden."""

from credwarden.storage.memory import MemoryAccountStore, MemoryHistoryStore
from credwarden.storage.ports import (
    AccountStore,
    ConfigSource,
    HistoryStore,
    StaticConfigSource,
)

__all__ = [
    "AccountStore",
    "ConfigSource",
    "HistoryStore",
    "StaticConfigSource",
    "MemoryAccountStore",
    "MemoryHistoryStore",
]
