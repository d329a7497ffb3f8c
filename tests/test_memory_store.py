import asyncio
from datetime import datetime, timezone

import pytest

from fieldforce.errors import RemoteStoreError
from fieldforce.models.domain import Collection, LocationPing, RecordStatus
from fieldforce.schemas.forms import SalespersonForm
from fieldforce.store.memory import InMemoryStore
from fieldforce.sync.changefeed import ALL_EVENTS

NOW = datetime(2024, 5, 6, 15, 0, tzinfo=timezone.utc)


def test_writes_publish_row_shaped_events() -> None:
    store = InMemoryStore(clock=lambda: NOW)
    events = []

    async def handler(event):
        events.append(event)

    async def scenario():
        await store.feed.subscribe(Collection.SALESPEOPLE, ALL_EVENTS, handler)
        await store.feed.subscribe(Collection.LOCATION_PINGS, ALL_EVENTS, handler)
        await store.create_salesperson(SalespersonForm(name="Ana"), now=NOW)
        person_id = next(iter(store.salespeople))
        await store.push_location(LocationPing(person_id, 12.0, -86.0))
        await store.delete_salesperson(person_id)
        await store.feed.drain()

    asyncio.run(scenario())

    assert [(event.collection, event.kind.value) for event in events] == [
        ("salespeople", "INSERT"),
        ("location_pings", "INSERT"),
        ("salespeople", "DELETE"),
    ]
    assert events[0].record["nombre"] == "Ana"
    assert events[1].record["latitud"] == 12.0
    assert events[1].record["fecha_registro"] == NOW.isoformat()
    assert events[2].old_record["estado"] == "activo"


def test_push_location_does_not_move_the_salesperson() -> None:
    store = InMemoryStore(clock=lambda: NOW)
    ana = store.add_salesperson("Ana")

    asyncio.run(store.push_location(LocationPing(ana.id, 12.0, -86.0)))

    assert store.salespeople[ana.id].position is None


def test_missing_records_are_rejected() -> None:
    store = InMemoryStore()

    with pytest.raises(RemoteStoreError) as excinfo:
        asyncio.run(store.update_visit_status(42, RecordStatus.COMPLETED, completed_at=NOW))

    assert excinfo.value.rejected is True
    assert excinfo.value.collection == "visits"
