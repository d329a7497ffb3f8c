"""Client-side synchronization of remotely owned collections."""

from .changefeed import (
    ChangeEvent,
    ChangeFeed,
    ChangeKind,
    InMemoryChangeFeed,
    NullChangeFeed,
    SupabaseChangeFeed,
)
from .fetchers import CollectionFetcher
from .orchestrator import RefreshOrchestrator
from .replica import Replica

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "ChangeKind",
    "CollectionFetcher",
    "InMemoryChangeFeed",
    "NullChangeFeed",
    "RefreshOrchestrator",
    "Replica",
    "SupabaseChangeFeed",
]
