import asyncio

from fieldforce.sync.fetchers import CollectionFetcher
from fieldforce.sync.replica import Replica


def test_apply_replaces_items_wholesale() -> None:
    replica = Replica("visits")
    assert replica.apply(replica.issue(), ["a", "b"])
    assert replica.apply(replica.issue(), ["c"])

    assert replica.items == ("c",)
    assert replica.loaded
    assert len(replica) == 1


def test_earlier_ticket_is_discarded_after_a_later_one_applied() -> None:
    replica = Replica("visits")
    early = replica.issue()
    late = replica.issue()

    assert replica.apply(late, ["new"])
    assert replica.apply(early, ["old"]) is False
    assert replica.items == ("new",)


def test_without_sequence_check_last_resolved_wins() -> None:
    replica = Replica("visits", discard_stale=False)
    early = replica.issue()
    late = replica.issue()

    replica.apply(late, ["new"])
    assert replica.apply(early, ["old"])
    assert replica.items == ("old",)


def test_listeners_fire_only_when_items_change() -> None:
    replica = Replica("salespeople")
    seen = []
    replica.add_listener(seen.append)

    replica.apply(replica.issue(), [1, 2])
    replica.apply(replica.issue(), [1, 2])
    replica.apply(replica.issue(), [2])

    assert seen == [(1, 2), (2,)]


def test_find_returns_first_match_or_none() -> None:
    replica = Replica("orders")
    replica.apply(replica.issue(), [3, 4, 5])

    assert replica.find(lambda item: item > 3) == 4
    assert replica.find(lambda item: item > 10) is None


def _race(discard_stale: bool) -> tuple:
    async def scenario() -> tuple:
        replica = Replica("visits", discard_stale=discard_stale)
        gates = [asyncio.Event(), asyncio.Event()]
        responses = [["stale"], ["fresh"]]
        calls = iter(range(2))

        async def load():
            index = next(calls)
            await gates[index].wait()
            return responses[index]

        fetcher = CollectionFetcher("visits", replica, load)
        first = asyncio.create_task(fetcher())
        await asyncio.sleep(0)
        second = asyncio.create_task(fetcher())
        await asyncio.sleep(0)

        # The later request resolves first
        gates[1].set()
        await second
        gates[0].set()
        await first
        return replica.items

    return asyncio.run(scenario())


def test_out_of_order_responses_keep_the_latest_issued_result() -> None:
    assert _race(discard_stale=True) == ("fresh",)


def test_out_of_order_responses_regress_without_sequence_check() -> None:
    assert _race(discard_stale=False) == ("stale",)
