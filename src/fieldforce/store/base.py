"""Contract shared by the remote store transports."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence

from ..models.domain import (
    Client,
    LocationPing,
    Order,
    RecordStatus,
    Salesperson,
    Visit,
)
from ..schemas.forms import OrderForm, SalespersonForm, VisitForm


class RemoteStore(Protocol):
    """Per-collection read and write access to the backend of record.

    Listing methods return the full collection in its display order:
    salespeople by name ascending, everything else newest first, with the
    owning salesperson's name joined in. Every failure is raised as
    :class:`~fieldforce.errors.RemoteStoreError`.
    """

    async def list_salespeople(self) -> Sequence[Salesperson]: ...

    async def list_visits(self) -> Sequence[Visit]: ...

    async def list_orders(self) -> Sequence[Order]: ...

    async def list_clients(self) -> Sequence[Client]: ...

    async def create_salesperson(self, form: SalespersonForm, *, now: datetime) -> None: ...

    async def update_salesperson(self, salesperson_id: int, form: SalespersonForm) -> None: ...

    async def update_salesperson_position(
        self, salesperson_id: int, latitude: float, longitude: float, *, at: datetime
    ) -> None: ...

    async def delete_salesperson(self, salesperson_id: int) -> None: ...

    async def push_location(self, ping: LocationPing) -> None: ...

    async def create_visit(self, form: VisitForm) -> None: ...

    async def update_visit_status(
        self, visit_id: int, status: RecordStatus, *, completed_at: datetime | None = None
    ) -> None: ...

    async def delete_visit(self, visit_id: int) -> None: ...

    async def create_order(self, form: OrderForm) -> None: ...

    async def update_order_status(self, order_id: int, status: RecordStatus) -> None: ...

    async def delete_order(self, order_id: int) -> None: ...

    async def delete_client(self, client_id: int) -> None: ...

    async def aclose(self) -> None: ...


def sort_salespeople(items: Sequence[Salesperson]) -> list[Salesperson]:
    return sorted(items, key=lambda item: (item.name.casefold(), item.id))


def newest_first(items: Sequence[Any]) -> list[Any]:
    """Order records by creation time descending; undated records go last."""
    dated = [item for item in items if item.created_at is not None]
    undated = [item for item in items if item.created_at is None]
    dated.sort(key=lambda item: (item.created_at, item.id), reverse=True)
    return dated + undated
