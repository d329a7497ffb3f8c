"""Field agent console: one salesperson reporting position, visits and orders."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Sequence

from pydantic import ValidationError

from ..errors import GeolocationError, RemoteStoreError
from ..models.domain import (
    Collection,
    LocationPing,
    Order,
    Position,
    RecordStatus,
    Salesperson,
    SalespersonStatus,
    Visit,
)
from ..schemas.forms import OrderForm, VisitForm
from ..schemas.snapshots import FieldAgentSnapshot, OrderModel, SalespersonModel, VisitModel
from ..services.geolocation import GeolocationOptions, GeolocationProvider, failure_message
from ..store.base import RemoteStore
from ..sync.fetchers import CollectionFetcher
from ..sync.replica import Replica
from .state import CaptureStatus, FieldAgentViewState, Tab

logger = logging.getLogger(__name__)

SELECT_FIRST = "Seleccione un vendedor primero"
NOT_SUPPORTED = "Geolocalización no soportada en este navegador"
LOCATING = "Obteniendo ubicación..."
TRACKING_STOPPED = "Seguimiento detenido"
MISSING_FIELDS = "Complete los campos requeridos"
CONNECTION_ERROR = "Error de conexión"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _local_day(moment: datetime):
    return moment.astimezone().date()


class FieldAgentConsole:
    """State and actions of the mobile screen.

    The console talks to the store directly, without change feeds or polling:
    own visits and orders are refetched after every successful submission and
    whenever the selected identity changes.
    """

    def __init__(
        self,
        store: RemoteStore,
        geolocation: GeolocationProvider | None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        options: GeolocationOptions | None = None,
    ) -> None:
        self.store = store
        self.geolocation = geolocation
        self.clock = clock
        self.options = options or GeolocationOptions.from_settings()
        self.salespeople: Replica[Salesperson] = Replica(Collection.SALESPEOPLE)
        self.visits: Replica[Visit] = Replica(Collection.VISITS)
        self.orders: Replica[Order] = Replica(Collection.ORDERS)
        self._visits_fetcher = CollectionFetcher(Collection.VISITS, self.visits, self._load_own_visits)
        self._orders_fetcher = CollectionFetcher(Collection.ORDERS, self.orders, self._load_own_orders)
        self.state = FieldAgentViewState()
        self._watch_id: int | None = None
        # Bumped whenever tracking starts or stops; a push finishing under an
        # older generation leaves the view state alone.
        self._generation = 0

    # Loading

    async def load(self) -> bool:
        ticket = self.salespeople.issue()
        try:
            people = await self.store.list_salespeople()
        except RemoteStoreError as exc:
            logger.error(f"Error fetching salespeople: {exc}")
            self.state = self.state.report(CaptureStatus.ERROR, "Error al cargar vendedores")
            return False
        return self.salespeople.apply(
            ticket, [person for person in people if person.status is SalespersonStatus.ACTIVE]
        )

    @property
    def active_salespeople(self) -> tuple[Salesperson, ...]:
        return self.salespeople.items

    @property
    def salesperson_id(self) -> int | None:
        return self.state.salesperson_id

    async def _load_own_visits(self) -> list[Visit]:
        return [visit for visit in await self.store.list_visits() if visit.salesperson_id == self.salesperson_id]

    async def _load_own_orders(self) -> list[Order]:
        return [order for order in await self.store.list_orders() if order.salesperson_id == self.salesperson_id]

    async def refresh_own(self) -> None:
        if self.salesperson_id is None:
            return
        await self._visits_fetcher()
        await self._orders_fetcher()

    async def select(self, salesperson_id: int | None) -> bool:
        """Pick the identity to report as. Refused while tracking."""
        if self.state.tracking:
            logger.warning("Cannot switch salesperson while tracking")
            return False
        if salesperson_id == self.salesperson_id:
            return True
        self.state = replace(self.state, salesperson_id=salesperson_id, current_location=None)
        self.visits.apply(self.visits.issue(), ())
        self.orders.apply(self.orders.issue(), ())
        await self.refresh_own()
        return True

    def show(self, tab: Tab) -> None:
        self.state = replace(self.state, tab=tab)

    # Location

    def _ready(self) -> bool:
        if self.salesperson_id is None:
            self.state = self.state.report(self.state.capture, SELECT_FIRST)
            return False
        if self.geolocation is None:
            self.state = self.state.report(CaptureStatus.ERROR, NOT_SUPPORTED)
            return False
        return True

    async def _push(self, position: Position) -> bool:
        salesperson_id = self.salesperson_id
        if salesperson_id is None:
            return False
        ping = LocationPing(
            salesperson_id=salesperson_id,
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy_m=position.accuracy_m,
            recorded_at=self.clock(),
        )
        generation = self._generation
        try:
            await self.store.push_location(ping)
        except RemoteStoreError as exc:
            logger.error(f"Error sending location for salesperson {salesperson_id}: {exc}")
            if generation != self._generation:
                return False
            message = "Error al enviar ubicación" if exc.rejected else CONNECTION_ERROR
            self.state = self.state.report(CaptureStatus.ERROR, message)
            return False
        if generation != self._generation:
            logger.info(f"Location for salesperson {salesperson_id} sent after tracking changed")
            return True
        self.state = self.state.report(
            CaptureStatus.SUCCESS,
            f"Ubicación enviada: {position.latitude:.6f}, {position.longitude:.6f}",
            current_location=(position.latitude, position.longitude),
        )
        return True

    async def send_single_location(self) -> bool:
        if not self._ready():
            return False
        self.state = self.state.report(CaptureStatus.LOADING, LOCATING)
        try:
            position = await self.geolocation.current_position(self.options)
        except GeolocationError as exc:
            self.state = self.state.report(CaptureStatus.ERROR, failure_message(exc.reason))
            return False
        return await self._push(position)

    def start_tracking(self) -> bool:
        """Open a position watch; every fix is pushed once, with no retry."""
        if not self._ready():
            return False
        if self._watch_id is not None:
            self.geolocation.clear_watch(self._watch_id)
            self._watch_id = None
        self._generation += 1
        self.state = self.state.report(CaptureStatus.LOADING, LOCATING, tracking=True)
        self._watch_id = self.geolocation.watch_position(self._on_fix, self._on_watch_error, self.options)
        logger.info(f"Tracking started for salesperson {self.salesperson_id}")
        return True

    def stop_tracking(self) -> None:
        self._clear_watch()
        self.state = self.state.report(CaptureStatus.IDLE, TRACKING_STOPPED, tracking=False)

    def _clear_watch(self) -> None:
        self._generation += 1
        if self._watch_id is not None and self.geolocation is not None:
            self.geolocation.clear_watch(self._watch_id)
        self._watch_id = None

    @property
    def tracking(self) -> bool:
        return self.state.tracking

    async def _on_fix(self, position: Position) -> None:
        if not self.state.tracking:
            return
        await self._push(position)

    async def _on_watch_error(self, error: GeolocationError) -> None:
        self._clear_watch()
        self.state = self.state.report(CaptureStatus.ERROR, failure_message(error.reason), tracking=False)

    # Visits and orders

    async def add_visit(self, client_name: str, **fields) -> bool:
        try:
            form = VisitForm(salesperson_id=self.salesperson_id, client_name=client_name, **fields)
        except ValidationError:
            self.state = self.state.report(self.state.capture, MISSING_FIELDS)
            return False
        try:
            await self.store.create_visit(form)
        except RemoteStoreError as exc:
            logger.error(f"Error adding visit: {exc}")
            message = "Error al registrar visita" if exc.rejected else CONNECTION_ERROR
            self.state = self.state.report(CaptureStatus.ERROR, message)
            return False
        self.state = self.state.report(CaptureStatus.SUCCESS, "Visita registrada exitosamente")
        await self._visits_fetcher()
        return True

    async def add_order(self, client_name: str, **fields) -> bool:
        try:
            form = OrderForm(salesperson_id=self.salesperson_id, client_name=client_name, **fields)
        except ValidationError:
            self.state = self.state.report(self.state.capture, MISSING_FIELDS)
            return False
        try:
            await self.store.create_order(form)
        except RemoteStoreError as exc:
            logger.error(f"Error adding order: {exc}")
            message = "Error al registrar pedido" if exc.rejected else CONNECTION_ERROR
            self.state = self.state.report(CaptureStatus.ERROR, message)
            return False
        self.state = self.state.report(CaptureStatus.SUCCESS, "Pedido registrado exitosamente")
        await self._orders_fetcher()
        return True

    async def complete_visit(self, visit_id: int) -> bool:
        current = self.visits.find(lambda visit: visit.id == visit_id)
        if current is None or not current.is_completed:
            try:
                await self.store.update_visit_status(visit_id, RecordStatus.COMPLETED, completed_at=self.clock())
            except RemoteStoreError as exc:
                logger.error(f"Error completing visit {visit_id}: {exc}")
                self.state = self.state.report(CaptureStatus.ERROR, "Error al completar visita")
                return False
            await self._visits_fetcher()
        self.state = self.state.report(CaptureStatus.SUCCESS, "Visita completada")
        return True

    async def complete_order(self, order_id: int) -> bool:
        current = self.orders.find(lambda order: order.id == order_id)
        if current is None or not current.is_completed:
            try:
                await self.store.update_order_status(order_id, RecordStatus.COMPLETED)
            except RemoteStoreError as exc:
                logger.error(f"Error completing order {order_id}: {exc}")
                self.state = self.state.report(CaptureStatus.ERROR, "Error al completar pedido")
                return False
            await self._orders_fetcher()
        self.state = self.state.report(CaptureStatus.SUCCESS, "Pedido completado")
        return True

    # Read side

    def _today(self, records: Sequence[Visit | Order]) -> list:
        today = _local_day(self.clock())
        return [record for record in records if record.created_at and _local_day(record.created_at) == today]

    def todays_visits(self) -> list[Visit]:
        return self._today(self.visits.items)

    def todays_orders(self) -> list[Order]:
        return self._today(self.orders.items)

    def snapshot(self) -> FieldAgentSnapshot:
        return FieldAgentSnapshot(
            salespeople=[SalespersonModel.model_validate(person) for person in self.salespeople],
            salesperson_id=self.salesperson_id,
            tab=self.state.tab.value,
            capture=self.state.capture.value,
            message=self.state.message,
            tracking=self.state.tracking,
            current_location=self.state.current_location,
            visits_today=[VisitModel.model_validate(visit) for visit in self.todays_visits()],
            orders_today=[OrderModel.model_validate(order) for order in self.todays_orders()],
        )

    async def close(self) -> None:
        if self.state.tracking or self._watch_id is not None:
            self.stop_tracking()
