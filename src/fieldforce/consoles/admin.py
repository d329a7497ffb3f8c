"""Admin console: every salesperson on the map plus the visit, order and client lists."""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Union

from ..config import settings
from ..errors import InvalidTransitionError, RemoteStoreError
from ..models.domain import (
    Client,
    Collection,
    Order,
    RecordStatus,
    Salesperson,
    SalespersonStatus,
    Visit,
    check_transition,
)
from ..schemas.forms import LocationForm, OrderForm, SalespersonForm, VisitForm
from ..schemas.snapshots import (
    AdminSnapshot,
    AdminViewModel,
    ClientModel,
    CountsModel,
    MarkerModel,
    OrderModel,
    SalespersonModel,
    ViewportModel,
    VisitModel,
)
from ..services.map_view import ViewportTracker, build_markers, mappable
from ..store.base import RemoteStore
from ..store.supabase import ping_from_row
from ..sync.changefeed import ALL_EVENTS, ChangeEvent, ChangeFeed, ChangeKind
from ..sync.fetchers import CollectionFetcher
from ..sync.orchestrator import RefreshOrchestrator
from ..sync.replica import Replica
from .state import AdminViewState, Dialog, Section

logger = logging.getLogger(__name__)

Confirm = Callable[[str], Union[bool, Awaitable[bool]]]

DELETE_PROMPTS = {
    Collection.SALESPEOPLE: "Esta seguro de eliminar este vendedor?",
    Collection.VISITS: "Esta seguro de eliminar esta visita?",
    Collection.ORDERS: "Esta seguro de eliminar este pedido?",
    Collection.CLIENTS: "Esta seguro de eliminar este cliente?",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def deny_all(prompt: str) -> bool:
    """Confirmation callback for surfaces that never delete."""
    return False


class AdminConsole:
    """Keeps four replicas in sync with the remote store and exposes the admin actions.

    Every mutation issues a single write and then refetches the affected
    collection; nothing is spliced into local state. Failures are logged and
    reported as ``False``, leaving the open dialog as it was.
    """

    def __init__(
        self,
        store: RemoteStore,
        feed: ChangeFeed | None = None,
        *,
        confirm: Confirm,
        poll_interval: float | None = None,
        discard_stale: bool | None = None,
        viewport: ViewportTracker | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.confirm = confirm
        self.clock = clock
        discard = settings.discard_stale_responses if discard_stale is None else discard_stale

        self.salespeople: Replica[Salesperson] = Replica(Collection.SALESPEOPLE, discard_stale=discard)
        self.visits: Replica[Visit] = Replica(Collection.VISITS, discard_stale=discard)
        self.orders: Replica[Order] = Replica(Collection.ORDERS, discard_stale=discard)
        self.clients: Replica[Client] = Replica(Collection.CLIENTS, discard_stale=discard)
        self.fetchers = {
            Collection.SALESPEOPLE: CollectionFetcher(Collection.SALESPEOPLE, self.salespeople, store.list_salespeople),
            Collection.VISITS: CollectionFetcher(Collection.VISITS, self.visits, store.list_visits),
            Collection.ORDERS: CollectionFetcher(Collection.ORDERS, self.orders, store.list_orders),
            Collection.CLIENTS: CollectionFetcher(Collection.CLIENTS, self.clients, store.list_clients),
        }
        self.orchestrator = RefreshOrchestrator(
            self.fetchers,
            feed,
            poll_interval=poll_interval or settings.poll_interval_seconds,
        )
        self.orchestrator.on(Collection.SALESPEOPLE, ALL_EVENTS, self._on_salespeople_changed)
        self.orchestrator.on(Collection.LOCATION_PINGS, ChangeKind.INSERT, self._on_location_ping)

        self.viewport = viewport or ViewportTracker()
        self.salespeople.add_listener(self.viewport.update)
        self.state = AdminViewState()
        self.loading = True

    # Lifecycle

    async def mount(self) -> None:
        try:
            await self.orchestrator.start()
        finally:
            self.loading = False

    async def unmount(self) -> None:
        await self.orchestrator.close()

    async def __aenter__(self) -> "AdminConsole":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unmount()

    async def refresh(self) -> dict[str, bool]:
        return await self.orchestrator.refresh()

    # Push invalidation

    async def _on_salespeople_changed(self, event: ChangeEvent) -> None:
        await self.fetchers[Collection.SALESPEOPLE]()

    async def _on_location_ping(self, event: ChangeEvent) -> None:
        """Apply an inserted ping to its salesperson, then refetch salespeople."""
        try:
            ping = ping_from_row(event.record)
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning(f"Ignoring malformed location ping {event.record!r}: {exc}")
            return
        try:
            await self.store.update_salesperson_position(
                ping.salesperson_id, ping.latitude, ping.longitude, at=self.clock()
            )
        except RemoteStoreError as exc:
            logger.error(f"Error applying location ping for salesperson {ping.salesperson_id}: {exc}")
        await self.fetchers[Collection.SALESPEOPLE]()

    # View state

    def select_section(self, section: Section) -> None:
        self.state = self.state.show(section)

    def open_dialog(self, dialog: Dialog, salesperson_id: int | None = None) -> None:
        self.state = self.state.open_dialog(dialog, salesperson_id)

    def close_dialog(self) -> None:
        self.state = self.state.close_dialog()

    def toggle_sidebar(self) -> None:
        self.state = self.state.toggle_sidebar()

    def _close_dialog(self, dialog: Dialog) -> None:
        if self.state.dialog is dialog:
            self.state = self.state.close_dialog()

    # Mutations

    async def _mutate(self, description: str, write: Awaitable[None], *collections: str) -> bool:
        try:
            await write
        except RemoteStoreError as exc:
            logger.error(f"Error {description}: {exc}")
            return False
        await self.orchestrator.refresh(*collections)
        return True

    async def _confirmed(self, collection: str) -> bool:
        answer = self.confirm(DELETE_PROMPTS[collection])
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def add_salesperson(self, form: SalespersonForm) -> bool:
        ok = await self._mutate(
            "adding salesperson",
            self.store.create_salesperson(form, now=self.clock()),
            Collection.SALESPEOPLE,
        )
        if ok:
            self._close_dialog(Dialog.ADD_SALESPERSON)
        return ok

    async def update_salesperson(self, salesperson_id: int, form: SalespersonForm) -> bool:
        ok = await self._mutate(
            "updating salesperson",
            self.store.update_salesperson(salesperson_id, form),
            Collection.SALESPEOPLE,
        )
        if ok:
            self._close_dialog(Dialog.EDIT_SALESPERSON)
        return ok

    async def update_location(self, salesperson_id: int, form: LocationForm) -> bool:
        ok = await self._mutate(
            "updating location",
            self.store.update_salesperson_position(salesperson_id, form.latitude, form.longitude, at=self.clock()),
            Collection.SALESPEOPLE,
        )
        if ok:
            self._close_dialog(Dialog.EDIT_LOCATION)
        return ok

    async def delete_salesperson(self, salesperson_id: int) -> bool:
        if not await self._confirmed(Collection.SALESPEOPLE):
            return False
        return await self._mutate(
            "deleting salesperson", self.store.delete_salesperson(salesperson_id), Collection.SALESPEOPLE
        )

    async def add_visit(self, form: VisitForm) -> bool:
        ok = await self._mutate("adding visit", self.store.create_visit(form), Collection.VISITS)
        if ok:
            self._close_dialog(Dialog.ADD_VISIT)
        return ok

    async def update_visit_status(self, visit_id: int, status: RecordStatus) -> bool:
        """Move a visit forward. Completing stamps ``completed_at`` exactly once."""
        current = self.visits.find(lambda visit: visit.id == visit_id)
        if current is not None:
            try:
                check_transition(current.status, status)
            except InvalidTransitionError as exc:
                logger.warning(f"Visit {visit_id}: {exc}")
                return False
            if current.is_completed:
                logger.info(f"Visit {visit_id} is already completed")
                return True
        completed_at = self.clock() if status is RecordStatus.COMPLETED else None
        return await self._mutate(
            "updating visit",
            self.store.update_visit_status(visit_id, status, completed_at=completed_at),
            Collection.VISITS,
        )

    async def complete_visit(self, visit_id: int) -> bool:
        return await self.update_visit_status(visit_id, RecordStatus.COMPLETED)

    async def delete_visit(self, visit_id: int) -> bool:
        if not await self._confirmed(Collection.VISITS):
            return False
        return await self._mutate("deleting visit", self.store.delete_visit(visit_id), Collection.VISITS)

    async def add_order(self, form: OrderForm) -> bool:
        ok = await self._mutate("adding order", self.store.create_order(form), Collection.ORDERS)
        if ok:
            self._close_dialog(Dialog.ADD_ORDER)
        return ok

    async def update_order_status(self, order_id: int, status: RecordStatus) -> bool:
        current = self.orders.find(lambda order: order.id == order_id)
        if current is not None:
            try:
                check_transition(current.status, status)
            except InvalidTransitionError as exc:
                logger.warning(f"Order {order_id}: {exc}")
                return False
            if current.is_completed:
                logger.info(f"Order {order_id} is already completed")
                return True
        return await self._mutate(
            "updating order", self.store.update_order_status(order_id, status), Collection.ORDERS
        )

    async def complete_order(self, order_id: int) -> bool:
        return await self.update_order_status(order_id, RecordStatus.COMPLETED)

    async def delete_order(self, order_id: int) -> bool:
        if not await self._confirmed(Collection.ORDERS):
            return False
        return await self._mutate("deleting order", self.store.delete_order(order_id), Collection.ORDERS)

    async def delete_client(self, client_id: int) -> bool:
        if not await self._confirmed(Collection.CLIENTS):
            return False
        return await self._mutate("deleting client", self.store.delete_client(client_id), Collection.CLIENTS)

    # Read side

    def mappable_salespeople(self) -> list[Salesperson]:
        return mappable(self.salespeople)

    def snapshot(self) -> AdminSnapshot:
        salespeople = self.salespeople.items
        markers = build_markers(salespeople, self.clients.items)
        viewport = self.viewport.viewport
        return AdminSnapshot(
            loading=self.loading,
            view=AdminViewModel(
                section=self.state.section.value,
                dialog=self.state.dialog.value if self.state.dialog else None,
                selected_salesperson_id=self.state.selected_salesperson_id,
                sidebar_open=self.state.sidebar_open,
            ),
            counts=CountsModel(
                salespeople=len(salespeople),
                active_salespeople=sum(1 for person in salespeople if person.status is SalespersonStatus.ACTIVE),
                located_salespeople=len(mappable(salespeople)),
                visits=len(self.visits),
                pending_visits=sum(1 for visit in self.visits if not visit.is_completed),
                orders=len(self.orders),
                orders_total=round(sum(order.total_amount for order in self.orders), 2),
                clients=len(self.clients),
            ),
            viewport=ViewportModel(center=viewport.center, zoom=viewport.zoom),
            markers=[
                MarkerModel(
                    kind=marker.kind,
                    id=marker.id,
                    latitude=marker.latitude,
                    longitude=marker.longitude,
                    label=marker.label,
                    popup=marker.popup,
                    color=marker.style.color,
                    icon_url=marker.style.icon_url,
                )
                for marker in markers
            ],
            salespeople=[SalespersonModel.model_validate(person) for person in salespeople],
            visits=[VisitModel.model_validate(visit) for visit in self.visits],
            orders=[OrderModel.model_validate(order) for order in self.orders],
            clients=[ClientModel.model_validate(client) for client in self.clients],
        )
