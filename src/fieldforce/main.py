"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI

from .api.routes import admin, mobile
from .config import settings
from .consoles.admin import AdminConsole, deny_all
from .db.supabase import get_supabase_client
from .services.geolocation import GeolocationProvider
from .store import InMemoryStore, RemoteStore, SupabaseStore, TABLES, create_rest_store
from .sync.changefeed import ChangeFeed, NullChangeFeed, SupabaseChangeFeed

logger = logging.getLogger(__name__)


@dataclass
class Backend:
    admin_store: RemoteStore
    feed: Optional[ChangeFeed]
    field_agent_store: RemoteStore
    owned: tuple = ()

    async def aclose(self) -> None:
        for store in self.owned:
            await store.aclose()


async def build_backend() -> Backend:
    """Wire the stores and change feed for the configured backend."""
    if settings.backend == "memory":
        store = InMemoryStore()
        logger.info("Using the in-memory backend")
        return Backend(store, store.feed, store)

    client = await get_supabase_client()
    feed: ChangeFeed = SupabaseChangeFeed(client, TABLES) if settings.realtime_enabled else NullChangeFeed()
    rest = create_rest_store()
    return Backend(SupabaseStore(client), feed, rest, owned=(rest,))


def create_app(
    *,
    store: RemoteStore | None = None,
    feed: ChangeFeed | None = None,
    field_agent_store: RemoteStore | None = None,
    geolocation: GeolocationProvider | None = None,
) -> FastAPI:
    """Build the application. An injected ``store`` replaces the configured backend."""
    logging.basicConfig(level=settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if store is not None:
            backend = Backend(store, feed, field_agent_store or store)
        else:
            backend = await build_backend()
        console = AdminConsole(backend.admin_store, backend.feed, confirm=deny_all)
        await console.mount()
        app.state.admin_console = console
        app.state.field_agent_store = backend.field_agent_store
        app.state.geolocation = geolocation
        try:
            yield
        finally:
            await console.unmount()
            await backend.aclose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(mobile.router)
    app.include_router(admin.router)
    return app


app = create_app()
