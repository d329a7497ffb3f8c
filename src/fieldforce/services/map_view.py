"""Marker styling and viewport tracking for the admin map."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..config import settings
from ..models.domain import Client, Salesperson, SalespersonStatus
from .geospatial import Viewport, fit_bounds

logger = logging.getLogger(__name__)

_SHADOW_URL = "https://unpkg.com/leaflet@1.9.4/dist/images/marker-shadow.png"
_COLOR_ICON = "https://raw.githubusercontent.com/pointhi/leaflet-color-markers/master/img/marker-icon-2x-{color}.png"


@dataclass(frozen=True, slots=True)
class MarkerStyle:
    color: str
    icon_url: str
    shadow_url: str = _SHADOW_URL
    icon_size: tuple[int, int] = (25, 41)
    icon_anchor: tuple[int, int] = (12, 41)


ACTIVE_SALESPERSON = MarkerStyle("green", _COLOR_ICON.format(color="green"))
INACTIVE_SALESPERSON = MarkerStyle("red", _COLOR_ICON.format(color="red"))
CLIENT = MarkerStyle("blue", _COLOR_ICON.format(color="blue"))


@dataclass(frozen=True, slots=True)
class Marker:
    kind: str  # "salesperson" | "client"
    id: int
    latitude: float
    longitude: float
    label: str
    popup: str
    style: MarkerStyle


def mappable(salespeople: Iterable[Salesperson]) -> list[Salesperson]:
    """Salespeople that have both coordinates."""
    return [person for person in salespeople if person.latitude is not None and person.longitude is not None]


def salesperson_style(salesperson: Salesperson) -> MarkerStyle:
    return ACTIVE_SALESPERSON if salesperson.status is SalespersonStatus.ACTIVE else INACTIVE_SALESPERSON


def build_markers(salespeople: Sequence[Salesperson], clients: Sequence[Client] = ()) -> list[Marker]:
    markers = []
    for person in mappable(salespeople):
        popup_lines = [person.name]
        if person.phone:
            popup_lines.append(f"Tel: {person.phone}")
        if person.last_position_at:
            popup_lines.append(f"Actualizado: {person.last_position_at.isoformat()}")
        markers.append(
            Marker(
                kind="salesperson",
                id=person.id,
                latitude=person.latitude,
                longitude=person.longitude,
                label=person.name,
                popup="\n".join(popup_lines),
                style=salesperson_style(person),
            )
        )
    for client in clients:
        popup_lines = [client.name, f"Vendedor: {client.salesperson_name}"]
        if client.address:
            popup_lines.append(client.address)
        markers.append(
            Marker(
                kind="client",
                id=client.id,
                latitude=client.latitude,
                longitude=client.longitude,
                label=client.name,
                popup="\n".join(popup_lines),
                style=CLIENT,
            )
        )
    return markers


class ViewportTracker:
    """Refits the viewport whenever the set of mappable salespeople changes.

    Unchanged positions (the usual case on a poll tick) keep the current
    viewport, so the map is not re-animated every few seconds. When nobody is
    mappable the last viewport stays.
    """

    def __init__(
        self,
        *,
        width: int | None = None,
        height: int | None = None,
        padding: int | None = None,
        max_zoom: int | None = None,
    ) -> None:
        self.width = width or settings.map_width_px
        self.height = height or settings.map_height_px
        self.padding = padding if padding is not None else settings.map_fit_padding_px
        self.max_zoom = max_zoom if max_zoom is not None else settings.map_max_zoom
        self.viewport = Viewport(center=settings.map_default_center, zoom=settings.map_default_zoom)
        self._key: frozenset[tuple[int, float, float]] = frozenset()
        self.fits = 0

    def update(self, salespeople: Iterable[Salesperson]) -> Viewport | None:
        """Return the new viewport when a refit happened, otherwise None."""
        located = mappable(salespeople)
        key = frozenset((person.id, person.latitude, person.longitude) for person in located)
        if key == self._key:
            return None
        self._key = key
        if not located:
            return None
        self.viewport = fit_bounds(
            [(person.latitude, person.longitude) for person in located],
            width=self.width,
            height=self.height,
            padding=self.padding,
            max_zoom=self.max_zoom,
        )
        self.fits += 1
        logger.debug(f"Viewport refit to {self.viewport.center} at zoom {self.viewport.zoom}")
        return self.viewport
