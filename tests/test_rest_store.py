import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from fieldforce.errors import RemoteStoreError, UnsupportedOperationError
from fieldforce.models.domain import LocationPing, RecordStatus, VisitKind
from fieldforce.schemas.forms import OrderForm, VisitForm
from fieldforce.store.rest import RestStore

BASE_URL = "http://api.test/"


def _store(handler) -> tuple[RestStore, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return RestStore(BASE_URL, client=client), requests


def test_salespeople_are_mapped_and_sorted_by_name() -> None:
    payload = [
        {"id": 2, "name": "zoe", "status": "active", "latitude": 12.1, "longitude": -86.2},
        {"id": 1, "name": "Ana", "status": "inactive", "phone": "555", "last_updated": "2024-05-06T15:00:00Z"},
    ]
    store, requests = _store(lambda request: httpx.Response(200, json=payload))

    people = asyncio.run(store.list_salespeople())

    assert str(requests[0].url) == "http://api.test/api/salespeople"
    assert [person.name for person in people] == ["Ana", "zoe"]
    assert people[0].last_position_at == datetime(2024, 5, 6, 15, 0, tzinfo=timezone.utc)
    assert people[1].position == (12.1, -86.2)


def test_visits_come_back_newest_first_with_unknown_names() -> None:
    payload = [
        {"id": 1, "salesperson_id": 3, "client_name": "A", "visit_type": "delivery", "created_at": "2024-05-01T10:00:00Z"},
        {"id": 2, "salesperson_id": 3, "client_name": "B", "salesperson_name": "Ana", "created_at": "2024-05-02T10:00:00Z"},
    ]
    store, _ = _store(lambda request: httpx.Response(200, json=payload))

    visits = asyncio.run(store.list_visits())

    assert [visit.id for visit in visits] == [2, 1]
    assert visits[1].salesperson_name == "Unknown"
    assert visits[1].kind is VisitKind.DELIVERY


def test_push_location_puts_coordinates() -> None:
    store, requests = _store(lambda request: httpx.Response(200, json={"ok": True}))

    asyncio.run(store.push_location(LocationPing(salesperson_id=7, latitude=12.5, longitude=-86.1)))

    request = requests[0]
    assert request.method == "PUT"
    assert request.url.path == "/api/salespeople/7/location"
    assert json.loads(request.content) == {"latitude": 12.5, "longitude": -86.1}


def test_create_and_complete_requests() -> None:
    store, requests = _store(lambda request: httpx.Response(201, json={}))

    async def scenario():
        await store.create_visit(VisitForm(salesperson_id=3, client_name="Tienda", kind="collection"))
        await store.create_order(OrderForm(salesperson_id=3, client_name="Tienda", total_amount="12.50"))
        await store.update_order_status(9, RecordStatus.COMPLETED)

    asyncio.run(scenario())

    bodies = [json.loads(request.content) for request in requests]
    assert bodies[0]["visit_type"] == "collection"
    assert bodies[1]["total_amount"] == 12.5
    assert (requests[2].method, requests[2].url.path, bodies[2]) == ("PUT", "/api/orders/9", {"status": "completed"})


def test_error_status_is_a_rejection() -> None:
    store, _ = _store(lambda request: httpx.Response(500, json={"detail": "boom"}))

    with pytest.raises(RemoteStoreError) as excinfo:
        asyncio.run(store.list_orders())

    assert excinfo.value.rejected is True
    assert excinfo.value.collection == "orders"


def test_transport_failure_is_not_a_rejection() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store, _ = _store(handler)

    with pytest.raises(RemoteStoreError) as excinfo:
        asyncio.run(store.list_salespeople())

    assert excinfo.value.rejected is False


def test_non_list_payload_is_an_error() -> None:
    store, _ = _store(lambda request: httpx.Response(200, json={"items": []}))

    with pytest.raises(RemoteStoreError):
        asyncio.run(store.list_visits())


def test_operations_missing_from_the_api_are_unsupported() -> None:
    store, requests = _store(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(UnsupportedOperationError):
        asyncio.run(store.delete_visit(1))
    with pytest.raises(UnsupportedOperationError):
        asyncio.run(store.list_clients())
    assert requests == []


def test_naive_and_zulu_timestamps_sort_together() -> None:
    payload = [
        {"id": 1, "salesperson_id": 3, "client_name": "A", "created_at": "2024-05-01T10:00:00Z"},
        {"id": 2, "salesperson_id": 3, "client_name": "B", "created_at": "2024-05-02T10:00:00"},
    ]
    store, _ = _store(lambda request: httpx.Response(200, json=payload))

    visits = asyncio.run(store.list_visits())

    assert [visit.id for visit in visits] == [2, 1]
    assert visits[0].created_at == datetime(2024, 5, 2, 10, 0, tzinfo=timezone.utc)


def test_visit_completion_time_follows_status() -> None:
    payload = [
        {"id": 1, "salesperson_id": 3, "client_name": "A", "status": "completed", "created_at": "2024-05-01T10:00:00Z"},
        {"id": 2, "salesperson_id": 3, "client_name": "B", "status": "pending", "completed_at": "2024-05-02T11:00:00Z"},
    ]
    store, _ = _store(lambda request: httpx.Response(200, json=payload))

    visits = {visit.id: visit for visit in asyncio.run(store.list_visits())}

    assert visits[1].completed_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert visits[2].status is RecordStatus.PENDING
    assert visits[2].completed_at is None
