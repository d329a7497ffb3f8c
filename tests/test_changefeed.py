import asyncio
import logging

from fieldforce.models.domain import Collection
from fieldforce.store.supabase import TABLES
from fieldforce.sync.changefeed import (
    ALL_EVENTS,
    ChangeEvent,
    ChangeKind,
    InMemoryChangeFeed,
    SupabaseChangeFeed,
    normalize_mask,
)


class FakeChannel:
    def __init__(self, name: str) -> None:
        self.name = name
        self.bindings = []
        self.subscribed = False

    def on_postgres_changes(self, event, callback, table=None, schema=None, filter=None):
        self.bindings.append({"event": event, "callback": callback, "table": table, "schema": schema})
        return self

    async def subscribe(self, callback=None):
        self.subscribed = True
        return self


class FakeRealtimeClient:
    def __init__(self, fail_removal: bool = False) -> None:
        self.channels = []
        self.removed = []
        self.fail_removal = fail_removal

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel) -> None:
        if self.fail_removal:
            raise RuntimeError("socket closed")
        self.removed.append(channel)


def test_normalize_mask_expands_wildcard() -> None:
    assert normalize_mask(ALL_EVENTS) == frozenset(ChangeKind)
    assert normalize_mask("insert") == frozenset({ChangeKind.INSERT})
    assert normalize_mask([ChangeKind.UPDATE, ChangeKind.DELETE]) == frozenset({ChangeKind.UPDATE, ChangeKind.DELETE})


def test_in_memory_feed_delivers_only_matching_events() -> None:
    async def scenario():
        feed = InMemoryChangeFeed()
        received = []

        async def handler(event: ChangeEvent) -> None:
            received.append(event)

        await feed.subscribe(Collection.LOCATION_PINGS, ChangeKind.INSERT, handler)
        feed.publish(ChangeEvent(Collection.LOCATION_PINGS, ChangeKind.INSERT, {"vendedor_id": 1}))
        feed.publish(ChangeEvent(Collection.LOCATION_PINGS, ChangeKind.DELETE, {}))
        feed.publish(ChangeEvent(Collection.VISITS, ChangeKind.INSERT, {"id": 2}))
        await feed.drain()
        return received

    received = asyncio.run(scenario())

    assert [event.record for event in received] == [{"vendedor_id": 1}]


def test_in_memory_unsubscribe_is_idempotent() -> None:
    async def scenario():
        feed = InMemoryChangeFeed()

        async def handler(event):
            return None

        subscription = await feed.subscribe(Collection.SALESPEOPLE, ALL_EVENTS, handler)
        assert feed.subscriber_count == 1
        await subscription.unsubscribe()
        await subscription.unsubscribe()
        return feed.subscriber_count

    assert asyncio.run(scenario()) == 0


def test_supabase_feed_opens_one_channel_per_subscription() -> None:
    async def scenario():
        client = FakeRealtimeClient()
        feed = SupabaseChangeFeed(client, TABLES)
        received = []

        async def handler(event):
            received.append(event)

        subscription = await feed.subscribe(Collection.LOCATION_PINGS, ChangeKind.INSERT, handler)
        channel = client.channels[0]
        binding = channel.bindings[0]
        binding["callback"](
            {"data": {"type": "INSERT", "table": "ubicaciones", "record": {"vendedor_id": 4}, "old_record": None}}
        )
        await feed.drain()
        await subscription.unsubscribe()
        await subscription.unsubscribe()
        return client, channel, binding, received

    client, channel, binding, received = asyncio.run(scenario())

    assert channel.name == "ubicaciones-changes-1"
    assert channel.subscribed
    assert binding["event"] == "INSERT"
    assert binding["table"] == "ubicaciones"
    assert binding["schema"] == "public"
    assert received == [ChangeEvent(Collection.LOCATION_PINGS, ChangeKind.INSERT, {"vendedor_id": 4}, {})]
    assert client.removed == [channel]


def test_supabase_feed_wildcard_and_malformed_payloads() -> None:
    async def scenario():
        client = FakeRealtimeClient()
        feed = SupabaseChangeFeed(client, TABLES)
        received = []

        async def handler(event):
            received.append(event.kind)

        await feed.subscribe(Collection.SALESPEOPLE, ALL_EVENTS, handler)
        callback = client.channels[0].bindings[0]["callback"]
        callback({"data": {"type": "DELETE", "record": None, "old_record": {"id": 1}}})
        callback({"data": {"type": "TRUNCATE"}})
        callback("not a payload")
        await feed.drain()
        return client.channels[0].bindings[0]["event"], received

    event, received = asyncio.run(scenario())

    assert event == "*"
    assert received == [ChangeKind.DELETE]


def test_failed_channel_removal_is_logged_not_raised(caplog) -> None:
    async def scenario():
        client = FakeRealtimeClient(fail_removal=True)
        feed = SupabaseChangeFeed(client, TABLES)

        async def handler(event):
            return None

        subscription = await feed.subscribe(Collection.SALESPEOPLE, ALL_EVENTS, handler)
        await subscription.unsubscribe()

    with caplog.at_level(logging.WARNING, logger="fieldforce.sync.changefeed"):
        asyncio.run(scenario())

    assert "Failed to remove channel vendedores-changes-1" in caplog.text


def test_in_memory_unsubscribe_cancels_handlers_in_flight() -> None:
    feed = InMemoryChangeFeed()
    started = []
    finished = []

    async def handler(event):
        started.append(event.kind)
        await asyncio.sleep(10)
        finished.append(event.kind)

    async def scenario():
        subscription = await feed.subscribe("visits", ALL_EVENTS, handler)
        feed.publish(ChangeEvent("visits", ChangeKind.INSERT, {"id": 1}))
        await asyncio.sleep(0)
        feed.publish(ChangeEvent("visits", ChangeKind.UPDATE, {"id": 1}))
        await subscription.unsubscribe()
        await feed.drain()

    asyncio.run(scenario())

    assert started == [ChangeKind.INSERT]
    assert finished == []


def test_unsubscribe_leaves_other_subscribers_running() -> None:
    feed = InMemoryChangeFeed()
    handled = []

    async def slow(event):
        await asyncio.sleep(0.01)
        handled.append("kept")

    async def dropped(event):
        await asyncio.sleep(0.01)
        handled.append("dropped")

    async def scenario():
        await feed.subscribe("visits", ALL_EVENTS, slow)
        subscription = await feed.subscribe("visits", ALL_EVENTS, dropped)
        feed.publish(ChangeEvent("visits", ChangeKind.INSERT, {"id": 1}))
        await subscription.unsubscribe()
        await feed.drain()

    asyncio.run(scenario())

    assert handled == ["kept"]


def test_channel_unsubscribe_cancels_pending_and_ignores_late_payloads() -> None:
    async def scenario():
        client = FakeRealtimeClient()
        feed = SupabaseChangeFeed(client, TABLES)
        received = []

        async def handler(event):
            received.append(event.kind)

        subscription = await feed.subscribe(Collection.SALESPEOPLE, ALL_EVENTS, handler)
        callback = client.channels[0].bindings[0]["callback"]
        callback({"data": {"type": "UPDATE", "record": {"id": 1}}})
        await subscription.unsubscribe()
        callback({"data": {"type": "UPDATE", "record": {"id": 2}}})
        await feed.drain()
        return received

    assert asyncio.run(scenario()) == []
