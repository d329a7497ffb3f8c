"""Domain models."""

from .domain import (
    Client,
    LocationPing,
    Order,
    Position,
    RecordStatus,
    Salesperson,
    SalespersonStatus,
    Visit,
    VisitKind,
)

__all__ = [
    "Client",
    "LocationPing",
    "Order",
    "Position",
    "RecordStatus",
    "Salesperson",
    "SalespersonStatus",
    "Visit",
    "VisitKind",
]
