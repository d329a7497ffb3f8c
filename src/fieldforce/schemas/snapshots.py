"""Response models for the console snapshots served over HTTP."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from ..models.domain import RecordStatus, SalespersonStatus, VisitKind


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SalespersonModel(_FromDomain):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: SalespersonStatus
    last_position_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class VisitModel(_FromDomain):
    id: int
    salesperson_id: int
    salesperson_name: str
    client_name: str
    address: Optional[str] = None
    notes: Optional[str] = None
    kind: VisitKind
    status: RecordStatus
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class OrderModel(_FromDomain):
    id: int
    salesperson_id: int
    salesperson_name: str
    client_name: str
    products: Optional[str] = None
    total_amount: float
    status: RecordStatus
    created_at: Optional[datetime] = None


class ClientModel(_FromDomain):
    id: int
    salesperson_id: int
    salesperson_name: str
    name: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class MarkerModel(BaseModel):
    kind: str
    id: int
    latitude: float
    longitude: float
    label: str
    popup: str
    color: str
    icon_url: str


class ViewportModel(BaseModel):
    center: tuple[float, float]
    zoom: int


class CountsModel(BaseModel):
    salespeople: int
    active_salespeople: int
    located_salespeople: int
    visits: int
    pending_visits: int
    orders: int
    orders_total: float
    clients: int


class AdminViewModel(BaseModel):
    section: str
    dialog: Optional[str] = None
    selected_salesperson_id: Optional[int] = None
    sidebar_open: bool


class AdminSnapshot(BaseModel):
    loading: bool
    view: AdminViewModel
    counts: CountsModel
    viewport: ViewportModel
    markers: List[MarkerModel]
    salespeople: List[SalespersonModel]
    visits: List[VisitModel]
    orders: List[OrderModel]
    clients: List[ClientModel]


class FieldAgentSnapshot(BaseModel):
    salespeople: List[SalespersonModel]
    salesperson_id: Optional[int] = None
    tab: str
    capture: str
    message: str
    tracking: bool
    current_location: Optional[tuple[float, float]] = None
    visits_today: List[VisitModel]
    orders_today: List[OrderModel]
