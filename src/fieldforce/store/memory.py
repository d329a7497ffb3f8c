"""In-process remote store for local runs and tests.

Behaves like the Supabase tables the admin console talks to: writes land in
plain lists, every write publishes a change event, and location pings are only
recorded (the admin console applies them to the salesperson).
"""

from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from ..errors import RemoteStoreError
from ..models.domain import (
    Client,
    Collection,
    LocationPing,
    Order,
    RecordStatus,
    Salesperson,
    Visit,
    resolve_salesperson_name,
)
from ..schemas.forms import OrderForm, SalespersonForm, VisitForm
from ..sync.changefeed import ChangeEvent, ChangeKind, InMemoryChangeFeed
from .base import newest_first, sort_salespeople
from .supabase import ping_to_row, salesperson_to_row


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStore:
    def __init__(self, feed: InMemoryChangeFeed | None = None, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.feed = feed or InMemoryChangeFeed()
        self.clock = clock
        self.salespeople: dict[int, Salesperson] = {}
        self.visits: dict[int, Visit] = {}
        self.orders: dict[int, Order] = {}
        self.clients: dict[int, Client] = {}
        self.pings: list[LocationPing] = []
        self._ids = itertools.count(1)

    def _publish(self, collection: str, kind: ChangeKind, record: dict, old_record: dict | None = None) -> None:
        self.feed.publish(ChangeEvent(collection, kind, record, old_record or {}))

    def _name_of(self, salesperson_id: int) -> str:
        salesperson = self.salespeople.get(salesperson_id)
        return resolve_salesperson_name(salesperson.name if salesperson else None)

    def _require(self, table: dict, record_id: int, collection: str, operation: str):
        try:
            return table[record_id]
        except KeyError:
            raise RemoteStoreError(
                f"{collection} {record_id} does not exist", operation=operation, collection=collection, rejected=True
            ) from None

    # Seeding helpers, used by demos and tests

    def add_salesperson(self, name: str, **fields) -> Salesperson:
        salesperson = Salesperson(id=next(self._ids), name=name, created_at=self.clock(), **fields)
        self.salespeople[salesperson.id] = salesperson
        return salesperson

    def add_client(self, salesperson_id: int, name: str, latitude: float, longitude: float, **fields) -> Client:
        client = Client(
            id=next(self._ids),
            salesperson_id=salesperson_id,
            name=name,
            latitude=latitude,
            longitude=longitude,
            created_at=self.clock(),
            **fields,
        )
        self.clients[client.id] = client
        return client

    # Reads

    async def list_salespeople(self) -> list[Salesperson]:
        return sort_salespeople(list(self.salespeople.values()))

    async def list_visits(self) -> list[Visit]:
        return newest_first(
            [replace(visit, salesperson_name=self._name_of(visit.salesperson_id)) for visit in self.visits.values()]
        )

    async def list_orders(self) -> list[Order]:
        return newest_first(
            [replace(order, salesperson_name=self._name_of(order.salesperson_id)) for order in self.orders.values()]
        )

    async def list_clients(self) -> list[Client]:
        return newest_first(
            [replace(client, salesperson_name=self._name_of(client.salesperson_id)) for client in self.clients.values()]
        )

    # Salespeople

    async def create_salesperson(self, form: SalespersonForm, *, now: datetime) -> None:
        salesperson = Salesperson(
            id=next(self._ids),
            name=form.name,
            phone=form.phone,
            email=form.email,
            latitude=form.latitude,
            longitude=form.longitude,
            status=form.status,
            last_position_at=now,
            created_at=self.clock(),
        )
        self.salespeople[salesperson.id] = salesperson
        self._publish(Collection.SALESPEOPLE, ChangeKind.INSERT, salesperson_to_row(salesperson))

    async def update_salesperson(self, salesperson_id: int, form: SalespersonForm) -> None:
        current = self._require(self.salespeople, salesperson_id, Collection.SALESPEOPLE, "update")
        updated = replace(current, name=form.name, phone=form.phone, email=form.email, status=form.status)
        self.salespeople[salesperson_id] = updated
        self._publish(
            Collection.SALESPEOPLE, ChangeKind.UPDATE, salesperson_to_row(updated), salesperson_to_row(current)
        )

    async def update_salesperson_position(
        self, salesperson_id: int, latitude: float, longitude: float, *, at: datetime
    ) -> None:
        current = self._require(self.salespeople, salesperson_id, Collection.SALESPEOPLE, "update")
        updated = replace(current, latitude=latitude, longitude=longitude, last_position_at=at)
        self.salespeople[salesperson_id] = updated
        self._publish(
            Collection.SALESPEOPLE, ChangeKind.UPDATE, salesperson_to_row(updated), salesperson_to_row(current)
        )

    async def delete_salesperson(self, salesperson_id: int) -> None:
        removed = self.salespeople.pop(salesperson_id, None)
        if removed is not None:
            self._publish(Collection.SALESPEOPLE, ChangeKind.DELETE, {}, salesperson_to_row(removed))

    async def push_location(self, ping: LocationPing) -> None:
        self._require(self.salespeople, ping.salesperson_id, Collection.SALESPEOPLE, "insert")
        if ping.recorded_at is None:
            ping = replace(ping, recorded_at=self.clock())
        self.pings.append(ping)
        self._publish(Collection.LOCATION_PINGS, ChangeKind.INSERT, ping_to_row(ping))

    # Visits

    async def create_visit(self, form: VisitForm) -> None:
        visit = Visit(
            id=next(self._ids),
            salesperson_id=form.salesperson_id,
            client_name=form.client_name,
            address=form.address,
            notes=form.notes,
            kind=form.kind,
            created_at=self.clock(),
        )
        self.visits[visit.id] = visit
        self._publish(Collection.VISITS, ChangeKind.INSERT, {"id": visit.id})

    async def update_visit_status(
        self, visit_id: int, status: RecordStatus, *, completed_at: datetime | None = None
    ) -> None:
        current = self._require(self.visits, visit_id, Collection.VISITS, "update")
        if current.completed_at is not None or current.status is RecordStatus.COMPLETED:
            return
        if status is RecordStatus.COMPLETED:
            updated = replace(current, status=status, completed_at=completed_at or self.clock())
        else:
            updated = replace(current, status=status)
        self.visits[visit_id] = updated
        self._publish(Collection.VISITS, ChangeKind.UPDATE, {"id": visit_id})

    async def delete_visit(self, visit_id: int) -> None:
        if self.visits.pop(visit_id, None) is not None:
            self._publish(Collection.VISITS, ChangeKind.DELETE, {}, {"id": visit_id})

    # Orders

    async def create_order(self, form: OrderForm) -> None:
        order = Order(
            id=next(self._ids),
            salesperson_id=form.salesperson_id,
            client_name=form.client_name,
            products=form.products,
            total_amount=form.total_amount,
            created_at=self.clock(),
        )
        self.orders[order.id] = order
        self._publish(Collection.ORDERS, ChangeKind.INSERT, {"id": order.id})

    async def update_order_status(self, order_id: int, status: RecordStatus) -> None:
        current = self._require(self.orders, order_id, Collection.ORDERS, "update")
        if current.status is RecordStatus.COMPLETED:
            return
        self.orders[order_id] = replace(current, status=status)
        self._publish(Collection.ORDERS, ChangeKind.UPDATE, {"id": order_id})

    async def delete_order(self, order_id: int) -> None:
        if self.orders.pop(order_id, None) is not None:
            self._publish(Collection.ORDERS, ChangeKind.DELETE, {}, {"id": order_id})

    # Clients

    async def delete_client(self, client_id: int) -> None:
        if self.clients.pop(client_id, None) is not None:
            self._publish(Collection.CLIENTS, ChangeKind.DELETE, {}, {"id": client_id})

    async def aclose(self) -> None:
        return None
