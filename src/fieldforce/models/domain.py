"""Domain models for salespeople and the records they produce in the field."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, StrEnum
from typing import Optional

from ..config import settings
from ..errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class Collection(StrEnum):
    """Logical names of the remotely owned collections."""

    SALESPEOPLE = "salespeople"
    VISITS = "visits"
    ORDERS = "orders"
    CLIENTS = "clients"
    LOCATION_PINGS = "location_pings"


class SalespersonStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class VisitKind(str, Enum):
    VISIT = "visit"
    DELIVERY = "delivery"
    COLLECTION = "collection"


class RecordStatus(str, Enum):
    """Lifecycle shared by visits and orders. ``completed`` is terminal."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Position:
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None


@dataclass(frozen=True, slots=True)
class Salesperson:
    """A field agent tracked by position and status."""

    id: int
    name: str
    status: SalespersonStatus = SalespersonStatus.ACTIVE
    phone: Optional[str] = None
    email: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    last_position_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError(f"Salesperson {self.id} has only one coordinate set")

    @property
    def is_mappable(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def position(self) -> Optional[tuple[float, float]]:
        if not self.is_mappable:
            return None
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Visit:
    """A logged field interaction with a customer.

    ``completed_at`` is set exactly when ``status`` is ``completed``.
    """

    id: int
    salesperson_id: int
    client_name: str
    kind: VisitKind = VisitKind.VISIT
    status: RecordStatus = RecordStatus.PENDING
    address: Optional[str] = None
    notes: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    salesperson_name: str = field(default_factory=lambda: settings.unknown_salesperson_label)

    def __post_init__(self) -> None:
        if (self.status is RecordStatus.COMPLETED) != (self.completed_at is not None):
            raise ValueError(f"Visit {self.id} is {self.status.value} with completed_at={self.completed_at}")

    @property
    def is_completed(self) -> bool:
        return self.status is RecordStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class Order:
    """A logged sale with a monetary total."""

    id: int
    salesperson_id: int
    client_name: str
    total_amount: float = 0.0
    status: RecordStatus = RecordStatus.PENDING
    products: Optional[str] = None
    visit_id: Optional[int] = None
    created_at: Optional[datetime] = None
    salesperson_name: str = field(default_factory=lambda: settings.unknown_salesperson_label)

    @property
    def is_completed(self) -> bool:
        return self.status is RecordStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class Client:
    """A customer registered by a salesperson, always at a fixed position."""

    id: int
    salesperson_id: int
    name: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    salesperson_name: str = field(default_factory=lambda: settings.unknown_salesperson_label)


@dataclass(frozen=True, slots=True)
class LocationPing:
    """A single position report, consumed write-through into a salesperson."""

    salesperson_id: int
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None
    recorded_at: Optional[datetime] = None


def resolve_salesperson_name(name: object) -> str:
    """Return a display name for a joined salesperson, never blank."""
    if isinstance(name, str) and name.strip():
        return name
    return settings.unknown_salesperson_label


def parse_amount(value: object) -> float:
    """Parse a monetary total, falling back to 0 for blank, negative or unparsable input."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        text = str(value).strip().replace(",", "")
        try:
            amount = float(text) if text else 0.0
        except ValueError:
            return 0.0
    if not math.isfinite(amount) or amount < 0:
        return 0.0
    return amount


def parse_timestamp(value: object) -> Optional[datetime]:
    """Parse an ISO timestamp. Naive values are taken as UTC so every parsed value is comparable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def reconcile_completion(
    record_id: object,
    status: RecordStatus,
    completed_at: Optional[datetime],
    created_at: Optional[datetime],
) -> Optional[datetime]:
    """Return a completion time consistent with ``status``.

    The status wins: a stray completion time on an open visit is dropped, and a
    completed visit without one is stamped with its creation time.
    """
    if status is RecordStatus.COMPLETED:
        if completed_at is None:
            logger.warning(f"Visit {record_id} is completed without a completion time; using its creation time")
            return created_at or datetime.fromtimestamp(0, timezone.utc)
        return completed_at
    if completed_at is not None:
        logger.warning(f"Visit {record_id} is {status.value} but carries a completion time; ignoring it")
    return None


def check_transition(current: RecordStatus, target: RecordStatus) -> None:
    """Refuse any status change that would reopen a completed record."""
    if current is RecordStatus.COMPLETED and target is not RecordStatus.COMPLETED:
        raise InvalidTransitionError(f"Cannot move a completed record back to {target.value}")
