import asyncio
import logging

from fieldforce.errors import RemoteStoreError
from fieldforce.sync.fetchers import CollectionFetcher
from fieldforce.sync.replica import Replica


def test_fetch_applies_loaded_items() -> None:
    replica = Replica("clients")

    async def load():
        return ["c1", "c2"]

    ok = asyncio.run(CollectionFetcher("clients", replica, load)())

    assert ok
    assert replica.items == ("c1", "c2")


def test_failed_fetch_leaves_replica_untouched_and_logs(caplog) -> None:
    replica = Replica("orders")
    replica.apply(replica.issue(), ["o1"])

    async def load():
        raise RemoteStoreError("network down", operation="select", collection="orders")

    with caplog.at_level(logging.ERROR, logger="fieldforce.sync.fetchers"):
        ok = asyncio.run(CollectionFetcher("orders", replica, load)())

    assert ok is False
    assert replica.items == ("o1",)
    assert "Error fetching orders" in caplog.text


def test_repeated_fetch_of_unchanged_data_is_idempotent() -> None:
    replica = Replica("salespeople")
    changes = []
    replica.add_listener(changes.append)

    async def load():
        return ["ana"]

    fetcher = CollectionFetcher("salespeople", replica, load)

    async def scenario():
        await fetcher()
        await fetcher()

    asyncio.run(scenario())

    assert replica.items == ("ana",)
    assert len(changes) == 1


def test_unexpected_loader_error_is_logged_not_raised(caplog) -> None:
    replica = Replica("visits")
    replica.apply(replica.issue(), ["v1"])

    async def load():
        raise RuntimeError("unexpected payload")

    with caplog.at_level(logging.ERROR, logger="fieldforce.sync.fetchers"):
        ok = asyncio.run(CollectionFetcher("visits", replica, load)())

    assert ok is False
    assert replica.items == ("v1",)
    assert "Unexpected error fetching visits" in caplog.text
