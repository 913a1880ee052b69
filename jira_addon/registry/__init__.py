"""Client registry: storage of per-installation credentials."""

from jira_addon.registry.registry import ClientRegistry
from jira_addon.registry.store import ClientStore, JsonFileStore, MemoryStore, SqliteStore, open_store

__all__ = [
    "ClientRegistry",
    "ClientStore",
    "JsonFileStore",
    "MemoryStore",
    "SqliteStore",
    "open_store",
]
