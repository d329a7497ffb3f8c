"""Field agent transport: the REST API in front of the backend of record."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

import httpx

from ..config import settings
from ..errors import RemoteStoreError, UnsupportedOperationError
from ..models.domain import (
    Client,
    Collection,
    LocationPing,
    Order,
    RecordStatus,
    Salesperson,
    SalespersonStatus,
    Visit,
    VisitKind,
    parse_amount,
    parse_timestamp,
    reconcile_completion,
    resolve_salesperson_name,
)
from ..schemas.forms import OrderForm, SalespersonForm, VisitForm
from .base import newest_first, sort_salespeople

T = TypeVar("T")

logger = logging.getLogger(__name__)


def salesperson_from_json(item: dict) -> Salesperson:
    latitude = item.get("latitude")
    longitude = item.get("longitude")
    if latitude is None or longitude is None:
        latitude = longitude = None
    return Salesperson(
        id=int(item["id"]),
        name=str(item["name"]),
        phone=item.get("phone"),
        email=item.get("email"),
        latitude=float(latitude) if latitude is not None else None,
        longitude=float(longitude) if longitude is not None else None,
        status=SalespersonStatus(item.get("status", "active")),
        last_position_at=parse_timestamp(item.get("last_updated")),
        created_at=parse_timestamp(item.get("created_at")),
    )


def visit_from_json(item: dict) -> Visit:
    status = RecordStatus(item.get("status", "pending"))
    created_at = parse_timestamp(item.get("created_at"))
    completed_at = parse_timestamp(item.get("completed_at"))
    return Visit(
        id=int(item["id"]),
        salesperson_id=int(item["salesperson_id"]),
        salesperson_name=resolve_salesperson_name(item.get("salesperson_name")),
        client_name=str(item["client_name"]),
        address=item.get("address"),
        notes=item.get("notes"),
        kind=VisitKind(item.get("visit_type", "visit")),
        status=status,
        created_at=created_at,
        completed_at=reconcile_completion(item["id"], status, completed_at, created_at),
    )


def order_from_json(item: dict) -> Order:
    return Order(
        id=int(item["id"]),
        salesperson_id=int(item["salesperson_id"]),
        salesperson_name=resolve_salesperson_name(item.get("salesperson_name")),
        client_name=str(item["client_name"]),
        products=item.get("products"),
        total_amount=parse_amount(item.get("total_amount")),
        status=RecordStatus(item.get("status", "pending")),
        created_at=parse_timestamp(item.get("created_at")),
    )


class RestStore:
    """Remote store over the REST API. Offers the subset the field agent needs."""

    def __init__(self, base_url: str, *, client: httpx.AsyncClient | None = None, timeout: float | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout if timeout is not None else settings.http_timeout_seconds),
        )

    async def _request(self, method: str, path: str, *, collection: str, json: Any = None) -> Any:
        try:
            response = await self._client.request(method, f"{self.base_url}{path}", json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteStoreError(
                f"{method} {path} rejected with {exc.response.status_code}",
                operation=method,
                collection=collection,
                rejected=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreError(
                f"{method} {path} failed: {exc}", operation=method, collection=collection
            ) from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreError(
                f"{method} {path} returned invalid JSON", operation=method, collection=collection
            ) from exc

    async def _list(self, path: str, collection: str, mapper: Callable[[dict], T]) -> list[T]:
        payload = await self._request("GET", path, collection=collection)
        if not isinstance(payload, list):
            raise RemoteStoreError(f"GET {path} did not return a list", operation="GET", collection=collection)
        items: list[T] = []
        for item in payload:
            try:
                items.append(mapper(item))
            except (KeyError, ValueError, TypeError) as exc:
                logger.warning(f"Skipping invalid {collection} item {item!r}: {exc}")
        return items

    @staticmethod
    def _unsupported(operation: str, collection: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            f"The REST API does not support {operation} on {collection}",
            operation=operation,
            collection=collection,
        )

    async def list_salespeople(self) -> list[Salesperson]:
        items = await self._list("/api/salespeople", Collection.SALESPEOPLE, salesperson_from_json)
        return sort_salespeople(items)

    async def list_visits(self) -> list[Visit]:
        return newest_first(await self._list("/api/visits", Collection.VISITS, visit_from_json))

    async def list_orders(self) -> list[Order]:
        return newest_first(await self._list("/api/orders", Collection.ORDERS, order_from_json))

    async def list_clients(self) -> list[Client]:
        raise self._unsupported("select", Collection.CLIENTS)

    async def create_salesperson(self, form: SalespersonForm, *, now: datetime) -> None:
        raise self._unsupported("insert", Collection.SALESPEOPLE)

    async def update_salesperson(self, salesperson_id: int, form: SalespersonForm) -> None:
        raise self._unsupported("update", Collection.SALESPEOPLE)

    async def update_salesperson_position(
        self, salesperson_id: int, latitude: float, longitude: float, *, at: datetime
    ) -> None:
        await self._request(
            "PUT",
            f"/api/salespeople/{salesperson_id}/location",
            collection=Collection.SALESPEOPLE,
            json={"latitude": latitude, "longitude": longitude},
        )

    async def delete_salesperson(self, salesperson_id: int) -> None:
        raise self._unsupported("delete", Collection.SALESPEOPLE)

    async def push_location(self, ping: LocationPing) -> None:
        # The API stamps the position server side
        await self.update_salesperson_position(
            ping.salesperson_id, ping.latitude, ping.longitude, at=ping.recorded_at or datetime.now(timezone.utc)
        )

    async def create_visit(self, form: VisitForm) -> None:
        await self._request(
            "POST",
            "/api/visits",
            collection=Collection.VISITS,
            json={
                "salesperson_id": form.salesperson_id,
                "client_name": form.client_name,
                "address": form.address,
                "notes": form.notes,
                "visit_type": form.kind.value,
            },
        )

    async def update_visit_status(
        self, visit_id: int, status: RecordStatus, *, completed_at: datetime | None = None
    ) -> None:
        await self._request(
            "PUT", f"/api/visits/{visit_id}", collection=Collection.VISITS, json={"status": status.value}
        )

    async def delete_visit(self, visit_id: int) -> None:
        raise self._unsupported("delete", Collection.VISITS)

    async def create_order(self, form: OrderForm) -> None:
        await self._request(
            "POST",
            "/api/orders",
            collection=Collection.ORDERS,
            json={
                "salesperson_id": form.salesperson_id,
                "client_name": form.client_name,
                "products": form.products,
                "total_amount": form.total_amount,
            },
        )

    async def update_order_status(self, order_id: int, status: RecordStatus) -> None:
        await self._request(
            "PUT", f"/api/orders/{order_id}", collection=Collection.ORDERS, json={"status": status.value}
        )

    async def delete_order(self, order_id: int) -> None:
        raise self._unsupported("delete", Collection.ORDERS)

    async def delete_client(self, client_id: int) -> None:
        raise self._unsupported("delete", Collection.CLIENTS)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def create_rest_store() -> RestStore:
    """Build the REST store from settings, failing fast when the base URL is missing."""
    return RestStore(settings.require_api_base_url())
