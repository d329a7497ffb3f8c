"""Refresh orchestration: initial load, polling and push invalidation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping

from .changefeed import ChangeFeed, EventMask, Handler, NullChangeFeed, Subscription
from .fetchers import CollectionFetcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Registration:
    collection: str
    events: EventMask
    handler: Handler


class RefreshOrchestrator:
    """Keeps a set of replicas converging on the remote store.

    On :meth:`start` every fetcher runs once, the registered change-feed
    subscriptions are opened and a poll task re-runs every fetcher on a fixed
    interval. :meth:`close` is the single teardown path: it unsubscribes every
    channel, cancelling handlers still in flight, then stops the timer. It is
    safe to call more than once.
    """

    def __init__(
        self,
        fetchers: Mapping[str, CollectionFetcher],
        feed: ChangeFeed | None = None,
        *,
        poll_interval: float,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.fetchers = dict(fetchers)
        self.feed = feed or NullChangeFeed()
        self.poll_interval = poll_interval
        self._registrations: list[_Registration] = []
        self._subscriptions: list[Subscription] = []
        self._poll_task: asyncio.Task | None = None
        self._started = False
        self._closed = False

    @property
    def running(self) -> bool:
        return self._started and not self._closed

    def on(self, collection: str, events: EventMask, handler: Handler) -> None:
        """Register a change-feed subscription opened at start."""
        if self._started:
            raise RuntimeError("Subscriptions must be registered before start()")
        self._registrations.append(_Registration(str(collection), events, handler))

    async def refresh(self, *names: str) -> dict[str, bool]:
        """Run the named fetchers concurrently (all of them when none are named)."""
        selected = [self.fetchers[str(name)] for name in names] if names else list(self.fetchers.values())
        results = await asyncio.gather(*(fetcher() for fetcher in selected))
        return {fetcher.name: ok for fetcher, ok in zip(selected, results)}

    async def start(self) -> None:
        if self._closed:
            raise RuntimeError("Orchestrator already closed")
        if self._started:
            return
        self._started = True
        await self.refresh()
        for registration in self._registrations:
            subscription = await self.feed.subscribe(
                registration.collection, registration.events, registration.handler
            )
            self._subscriptions.append(subscription)
        self._poll_task = asyncio.get_running_loop().create_task(self._poll())
        logger.info(
            f"Sync started: {len(self.fetchers)} collections, "
            f"{len(self._subscriptions)} subscriptions, poll every {self.poll_interval}s"
        )

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.refresh()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        subscriptions, self._subscriptions = self._subscriptions, []
        try:
            for subscription in subscriptions:
                await subscription.unsubscribe()
        finally:
            await self._stop_polling()
        logger.info("Sync stopped")

    async def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Poll task ended with an error")

    async def __aenter__(self) -> "RefreshOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
