"""Admin console transport: PostgREST tables behind the Supabase client."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Sequence, TypeVar

import httpx
from postgrest.exceptions import APIError

from ..errors import RemoteStoreError
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

T = TypeVar("T")

logger = logging.getLogger(__name__)

TABLES: dict[str, str] = {
    Collection.SALESPEOPLE: "vendedores",
    Collection.VISITS: "visitas",
    Collection.ORDERS: "pedidos",
    Collection.CLIENTS: "clientes",
    Collection.LOCATION_PINGS: "ubicaciones",
}

SALESPERSON_STATUS = {
    SalespersonStatus.ACTIVE: "activo",
    SalespersonStatus.INACTIVE: "inactivo",
}
VISIT_STATUS = {
    RecordStatus.PENDING: "pendiente",
    RecordStatus.IN_PROGRESS: "en_progreso",
    RecordStatus.COMPLETED: "completada",
}
ORDER_STATUS = {
    RecordStatus.PENDING: "pendiente",
    RecordStatus.IN_PROGRESS: "en_proceso",
    RecordStatus.COMPLETED: "completado",
}
VISIT_KIND = {
    VisitKind.VISIT: "visita",
    VisitKind.DELIVERY: "entrega",
    VisitKind.COLLECTION: "cobro",
}

_EMBED_SALESPERSON = "*, vendedores(nombre)"


def _reverse(mapping: dict) -> dict:
    return {value: key for key, value in mapping.items()}


_SALESPERSON_STATUS_IN = _reverse(SALESPERSON_STATUS)
_VISIT_STATUS_IN = _reverse(VISIT_STATUS)
_ORDER_STATUS_IN = _reverse(ORDER_STATUS)
_VISIT_KIND_IN = _reverse(VISIT_KIND)


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _embedded_name(row: dict) -> str:
    embedded = row.get("vendedores")
    if isinstance(embedded, list):
        embedded = embedded[0] if embedded else None
    name = embedded.get("nombre") if isinstance(embedded, dict) else None
    return resolve_salesperson_name(name)


def salesperson_from_row(row: dict) -> Salesperson:
    latitude = _optional_float(row.get("latitud"))
    longitude = _optional_float(row.get("longitud"))
    if (latitude is None) != (longitude is None):
        logger.warning(f"Salesperson {row.get('id')} has a partial position; treating it as unknown")
        latitude = longitude = None
    return Salesperson(
        id=int(row["id"]),
        name=str(row["nombre"]),
        phone=row.get("telefono"),
        email=row.get("correo"),
        latitude=latitude,
        longitude=longitude,
        status=_SALESPERSON_STATUS_IN[row.get("estado", "activo")],
        last_position_at=parse_timestamp(row.get("ultima_actualizacion")),
        created_at=parse_timestamp(row.get("fecha_creacion")),
    )


def visit_from_row(row: dict) -> Visit:
    status = _VISIT_STATUS_IN[row.get("estado", "pendiente")]
    created_at = parse_timestamp(row.get("fecha_creacion"))
    completed_at = parse_timestamp(row.get("fecha_completado"))
    return Visit(
        id=int(row["id"]),
        salesperson_id=int(row["vendedor_id"]),
        client_name=str(row["nombre_cliente"]),
        address=row.get("direccion"),
        notes=row.get("notas"),
        latitude=_optional_float(row.get("latitud")),
        longitude=_optional_float(row.get("longitud")),
        kind=_VISIT_KIND_IN[row.get("tipo_visita", "visita")],
        status=status,
        created_at=created_at,
        completed_at=reconcile_completion(row["id"], status, completed_at, created_at),
        salesperson_name=_embedded_name(row),
    )


def order_from_row(row: dict) -> Order:
    visit_id = row.get("visita_id")
    return Order(
        id=int(row["id"]),
        salesperson_id=int(row["vendedor_id"]),
        visit_id=int(visit_id) if visit_id is not None else None,
        client_name=str(row["nombre_cliente"]),
        products=row.get("productos"),
        total_amount=parse_amount(row.get("monto_total")),
        status=_ORDER_STATUS_IN[row.get("estado", "pendiente")],
        created_at=parse_timestamp(row.get("fecha_creacion")),
        salesperson_name=_embedded_name(row),
    )


def client_from_row(row: dict) -> Client:
    return Client(
        id=int(row["id"]),
        salesperson_id=int(row["vendedor_id"]),
        name=str(row["nombre"]),
        address=row.get("direccion"),
        phone=row.get("telefono"),
        latitude=float(row["latitud"]),
        longitude=float(row["longitud"]),
        notes=row.get("notas"),
        created_at=parse_timestamp(row.get("fecha_creacion")),
        salesperson_name=_embedded_name(row),
    )


def salesperson_to_row(salesperson: Salesperson) -> dict:
    return {
        "id": salesperson.id,
        "nombre": salesperson.name,
        "telefono": salesperson.phone,
        "correo": salesperson.email,
        "latitud": salesperson.latitude,
        "longitud": salesperson.longitude,
        "estado": SALESPERSON_STATUS[salesperson.status],
        "ultima_actualizacion": salesperson.last_position_at.isoformat() if salesperson.last_position_at else None,
        "fecha_creacion": salesperson.created_at.isoformat() if salesperson.created_at else None,
    }


def ping_from_row(row: dict) -> LocationPing:
    accuracy = row.get("precision_metros")
    return LocationPing(
        salesperson_id=int(row["vendedor_id"]),
        latitude=float(row["latitud"]),
        longitude=float(row["longitud"]),
        accuracy_m=float(accuracy) if accuracy is not None else None,
        recorded_at=parse_timestamp(row.get("fecha_registro")),
    )


def ping_to_row(ping: LocationPing) -> dict:
    row = {
        "vendedor_id": ping.salesperson_id,
        "latitud": ping.latitude,
        "longitud": ping.longitude,
        "precision_metros": ping.accuracy_m,
    }
    if ping.recorded_at is not None:
        row["fecha_registro"] = ping.recorded_at.isoformat()
    return row


def _map_rows(collection: str, rows: Sequence[dict] | None, mapper: Callable[[dict], T]) -> list[T]:
    items: list[T] = []
    for row in rows or []:
        try:
            items.append(mapper(row))
        except (KeyError, ValueError, TypeError) as exc:
            # Skip invalid rows but keep the rest of the collection
            logger.warning(f"Skipping invalid {collection} row {row.get('id')!r}: {exc}")
    return items


class SupabaseStore:
    """Remote store over a Supabase async client."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def _table(self, collection: str):
        return self.client.table(TABLES[collection])

    async def _execute(self, query: Any, *, operation: str, collection: str) -> Any:
        try:
            return await query.execute()
        except APIError as exc:
            raise RemoteStoreError(
                f"{operation} on {collection} rejected: {exc.message}",
                operation=operation,
                collection=collection,
                rejected=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreError(
                f"{operation} on {collection} failed: {exc}", operation=operation, collection=collection
            ) from exc

    # Reads

    async def list_salespeople(self) -> list[Salesperson]:
        query = self._table(Collection.SALESPEOPLE).select("*").order("nombre")
        response = await self._execute(query, operation="select", collection=Collection.SALESPEOPLE)
        return _map_rows(Collection.SALESPEOPLE, response.data, salesperson_from_row)

    async def list_visits(self) -> list[Visit]:
        query = self._table(Collection.VISITS).select(_EMBED_SALESPERSON).order("fecha_creacion", desc=True)
        response = await self._execute(query, operation="select", collection=Collection.VISITS)
        return _map_rows(Collection.VISITS, response.data, visit_from_row)

    async def list_orders(self) -> list[Order]:
        query = self._table(Collection.ORDERS).select(_EMBED_SALESPERSON).order("fecha_creacion", desc=True)
        response = await self._execute(query, operation="select", collection=Collection.ORDERS)
        return _map_rows(Collection.ORDERS, response.data, order_from_row)

    async def list_clients(self) -> list[Client]:
        query = self._table(Collection.CLIENTS).select(_EMBED_SALESPERSON).order("fecha_creacion", desc=True)
        response = await self._execute(query, operation="select", collection=Collection.CLIENTS)
        return _map_rows(Collection.CLIENTS, response.data, client_from_row)

    # Salespeople

    async def create_salesperson(self, form: SalespersonForm, *, now: datetime) -> None:
        query = self._table(Collection.SALESPEOPLE).insert(
            {
                "nombre": form.name,
                "telefono": form.phone,
                "correo": form.email,
                "latitud": form.latitude,
                "longitud": form.longitude,
                "estado": SALESPERSON_STATUS[form.status],
                "ultima_actualizacion": now.isoformat(),
            }
        )
        await self._execute(query, operation="insert", collection=Collection.SALESPEOPLE)

    async def update_salesperson(self, salesperson_id: int, form: SalespersonForm) -> None:
        query = (
            self._table(Collection.SALESPEOPLE)
            .update(
                {
                    "nombre": form.name,
                    "telefono": form.phone,
                    "correo": form.email,
                    "estado": SALESPERSON_STATUS[form.status],
                }
            )
            .eq("id", salesperson_id)
        )
        await self._execute(query, operation="update", collection=Collection.SALESPEOPLE)

    async def update_salesperson_position(
        self, salesperson_id: int, latitude: float, longitude: float, *, at: datetime
    ) -> None:
        query = (
            self._table(Collection.SALESPEOPLE)
            .update({"latitud": latitude, "longitud": longitude, "ultima_actualizacion": at.isoformat()})
            .eq("id", salesperson_id)
        )
        await self._execute(query, operation="update", collection=Collection.SALESPEOPLE)

    async def delete_salesperson(self, salesperson_id: int) -> None:
        query = self._table(Collection.SALESPEOPLE).delete().eq("id", salesperson_id)
        await self._execute(query, operation="delete", collection=Collection.SALESPEOPLE)

    async def push_location(self, ping: LocationPing) -> None:
        query = self._table(Collection.LOCATION_PINGS).insert(ping_to_row(ping))
        await self._execute(query, operation="insert", collection=Collection.LOCATION_PINGS)

    # Visits

    async def create_visit(self, form: VisitForm) -> None:
        query = self._table(Collection.VISITS).insert(
            {
                "vendedor_id": form.salesperson_id,
                "nombre_cliente": form.client_name,
                "direccion": form.address,
                "notas": form.notes,
                "tipo_visita": VISIT_KIND[form.kind],
                "estado": VISIT_STATUS[RecordStatus.PENDING],
            }
        )
        await self._execute(query, operation="insert", collection=Collection.VISITS)

    async def update_visit_status(
        self, visit_id: int, status: RecordStatus, *, completed_at: datetime | None = None
    ) -> None:
        changes: dict[str, Any] = {"estado": VISIT_STATUS[status]}
        query = self._table(Collection.VISITS)
        if status is RecordStatus.COMPLETED:
            if completed_at is None:
                raise ValueError("completed_at is required when completing a visit")
            changes["fecha_completado"] = completed_at.isoformat()
            # Only stamp visits that were never completed
            query = query.update(changes).eq("id", visit_id).is_("fecha_completado", "null")
        else:
            query = query.update(changes).eq("id", visit_id).neq("estado", VISIT_STATUS[RecordStatus.COMPLETED])
        await self._execute(query, operation="update", collection=Collection.VISITS)

    async def delete_visit(self, visit_id: int) -> None:
        query = self._table(Collection.VISITS).delete().eq("id", visit_id)
        await self._execute(query, operation="delete", collection=Collection.VISITS)

    # Orders

    async def create_order(self, form: OrderForm) -> None:
        query = self._table(Collection.ORDERS).insert(
            {
                "vendedor_id": form.salesperson_id,
                "nombre_cliente": form.client_name,
                "productos": form.products,
                "monto_total": form.total_amount,
                "estado": ORDER_STATUS[RecordStatus.PENDING],
            }
        )
        await self._execute(query, operation="insert", collection=Collection.ORDERS)

    async def update_order_status(self, order_id: int, status: RecordStatus) -> None:
        query = (
            self._table(Collection.ORDERS)
            .update({"estado": ORDER_STATUS[status]})
            .eq("id", order_id)
            .neq("estado", ORDER_STATUS[RecordStatus.COMPLETED])
        )
        await self._execute(query, operation="update", collection=Collection.ORDERS)

    async def delete_order(self, order_id: int) -> None:
        query = self._table(Collection.ORDERS).delete().eq("id", order_id)
        await self._execute(query, operation="delete", collection=Collection.ORDERS)

    # Clients

    async def delete_client(self, client_id: int) -> None:
        query = self._table(Collection.CLIENTS).delete().eq("id", client_id)
        await self._execute(query, operation="delete", collection=Collection.CLIENTS)

    async def aclose(self) -> None:
        # The Supabase client is shared and owned by fieldforce.db
        return None
