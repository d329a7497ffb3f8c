"""Push invalidation: a generic subscribe(collection, events, handler) capability.

The sync layer only depends on :class:`ChangeFeed`. Three implementations are
provided: a no-op feed for polling-only setups, an in-process feed used by the
in-memory store, and an adapter over Supabase realtime channels.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol, Union

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


ALL_EVENTS = "*"
EventMask = Union[str, ChangeKind, Iterable[ChangeKind]]


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    kind: ChangeKind
    record: dict = field(default_factory=dict)
    old_record: dict = field(default_factory=dict)


Handler = Callable[[ChangeEvent], Awaitable[None]]


def normalize_mask(events: EventMask) -> frozenset[ChangeKind]:
    """Expand an event mask (``"*"``, a kind, or several kinds) into a set of kinds."""
    if isinstance(events, ChangeKind):
        return frozenset({events})
    if isinstance(events, str):
        if events == ALL_EVENTS:
            return frozenset(ChangeKind)
        return frozenset({ChangeKind(events.upper())})
    return frozenset(ChangeKind(kind) for kind in events)


class Subscription(Protocol):
    async def unsubscribe(self) -> None: ...


class ChangeFeed(Protocol):
    async def subscribe(self, collection: str, events: EventMask, handler: Handler) -> Subscription: ...


class HandlerRunner:
    """Runs handlers as tasks on the running loop and keeps them referenced until done.

    Each task is tagged with the subscription that dispatched it, so an
    unsubscribe can cancel the handlers it still has in flight.
    """

    def __init__(self) -> None:
        self._tasks: dict[asyncio.Task, object] = {}

    def dispatch(self, handler: Handler, event: ChangeEvent, owner: object = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(handler(event))
        self._tasks[task] = owner
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.pop(task, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Change handler failed", exc_info=exc)

    async def cancel(self, owner: object) -> None:
        """Cancel the pending handlers dispatched for ``owner`` and wait for them to unwind."""
        current = asyncio.current_task()
        pending = [task for task, tag in list(self._tasks.items()) if tag is owner and task is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"Cancelled {len(pending)} pending change handlers")

    async def drain(self) -> None:
        """Wait until every dispatched handler has finished, including ones they trigger."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class _NullSubscription:
    async def unsubscribe(self) -> None:
        return None


class NullChangeFeed:
    """Accepts subscriptions and never fires. The consoles then rely on polling alone."""

    async def subscribe(self, collection: str, events: EventMask, handler: Handler) -> Subscription:
        logger.info(f"Change feed disabled; {collection} relies on polling")
        return _NullSubscription()


class _InMemorySubscription:
    def __init__(self, feed: "InMemoryChangeFeed", collection: str, kinds: frozenset[ChangeKind], handler: Handler) -> None:
        self.feed = feed
        self.collection = collection
        self.kinds = kinds
        self.handler = handler
        self.active = True

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.feed._subscriptions.remove(self)
        await self.feed._runner.cancel(self)


class InMemoryChangeFeed:
    """In-process change feed. :meth:`publish` fans an event out to matching handlers."""

    def __init__(self) -> None:
        self._subscriptions: list[_InMemorySubscription] = []
        self._runner = HandlerRunner()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def subscribe(self, collection: str, events: EventMask, handler: Handler) -> Subscription:
        subscription = _InMemorySubscription(self, str(collection), normalize_mask(events), handler)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            if subscription.collection == event.collection and event.kind in subscription.kinds:
                self._runner.dispatch(subscription.handler, event, subscription)

    async def drain(self) -> None:
        await self._runner.drain()


class _ChannelSubscription:
    def __init__(self, client: Any, runner: HandlerRunner, name: str) -> None:
        self._client = client
        self._runner = runner
        self._channel: Any = None
        self.name = name
        self.active = True

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            await self._client.remove_channel(self._channel)
        except Exception as exc:  # vendor teardown errors must not stop the other channels
            logger.warning(f"Failed to remove channel {self.name}: {exc}")
        else:
            logger.info(f"Removed channel {self.name}")
        await self._runner.cancel(self)


class SupabaseChangeFeed:
    """Adapter over Supabase realtime ``postgres_changes`` channels."""

    def __init__(self, client: Any, tables: Mapping[str, str], *, schema: str = "public") -> None:
        self._client = client
        self._tables = dict(tables)
        self._schema = schema
        self._runner = HandlerRunner()
        self._ids = itertools.count(1)

    async def subscribe(self, collection: str, events: EventMask, handler: Handler) -> Subscription:
        table = self._tables[str(collection)]
        kinds = normalize_mask(events)
        vendor_event = next(iter(kinds)).value if len(kinds) == 1 else ALL_EVENTS
        name = f"{table}-changes-{next(self._ids)}"

        subscription = _ChannelSubscription(self._client, self._runner, name)

        def callback(payload: Any) -> None:
            if not subscription.active:
                return
            event = _payload_to_event(str(collection), payload)
            if event is not None and event.kind in kinds:
                self._runner.dispatch(handler, event, subscription)

        channel = self._client.channel(name)
        subscription._channel = channel
        channel.on_postgres_changes(vendor_event, callback, table=table, schema=self._schema)
        await channel.subscribe()
        logger.info(f"Subscribed to {vendor_event} on {self._schema}.{table} ({name})")
        return subscription

    async def drain(self) -> None:
        await self._runner.drain()


def _payload_to_event(collection: str, payload: Any) -> ChangeEvent | None:
    """Normalise a realtime payload into a :class:`ChangeEvent`."""
    if not isinstance(payload, dict):
        logger.warning(f"Ignoring malformed change payload for {collection}: {payload!r}")
        return None
    data = payload.get("data", payload)
    raw_kind = data.get("type") or data.get("eventType")
    try:
        kind = ChangeKind(str(raw_kind).upper())
    except ValueError:
        logger.warning(f"Ignoring change payload with unknown event type {raw_kind!r} for {collection}")
        return None
    record = data.get("record") or data.get("new") or {}
    old_record = data.get("old_record") or data.get("old") or {}
    return ChangeEvent(collection=collection, kind=kind, record=dict(record), old_record=dict(old_record))
