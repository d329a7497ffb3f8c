"""Remote store transports."""

from .base import RemoteStore
from .memory import InMemoryStore
from .rest import RestStore, create_rest_store
from .supabase import TABLES, SupabaseStore

__all__ = ["InMemoryStore", "RemoteStore", "RestStore", "SupabaseStore", "TABLES", "create_rest_store"]
