"""Supabase client for the admin console transport."""

import asyncio
import logging

from supabase import AsyncClient, acreate_client

from ..config import settings

logger = logging.getLogger(__name__)

_client: AsyncClient | None = None
_client_lock = asyncio.Lock()


async def get_supabase_client() -> AsyncClient:
    """Get the shared async Supabase client, creating it on first use.

    Raises:
        ConfigurationError: when the project URL or key is missing. There is
        no bundled fallback; the application refuses to start instead.
    """
    global _client
    if _client is not None:
        return _client
    async with _client_lock:
        if _client is None:
            url, key = settings.require_supabase()
            _client = await acreate_client(url, key)
            logger.info(f"Supabase client created for {url}")
    return _client


def reset_supabase_client() -> None:
    """Forget the cached client (used when settings change, e.g. in tests)."""
    global _client
    _client = None


# Example usage patterns:
#
# client = await get_supabase_client()
#
# # Select with ordering and an embedded foreign row
# result = await client.table("visitas") \
#     .select("*, vendedores(nombre)") \
#     .order("fecha_creacion", desc=True) \
#     .execute()
#
# # Update
# result = await client.table("vendedores") \
#     .update({"estado": "inactivo"}) \
#     .eq("id", 3) \
#     .execute()
#
# # Realtime
# channel = client.channel("vendedores-changes")
# channel.on_postgres_changes("*", callback, table="vendedores", schema="public")
# await channel.subscribe()
