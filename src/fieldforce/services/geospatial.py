"""Geospatial helper functions for fitting the map viewport."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from shapely.geometry import MultiPoint

TILE_SIZE = 256
MAX_MERCATOR_LATITUDE = 85.0511287798


@dataclass(frozen=True, slots=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.south <= latitude <= self.north and self.west <= longitude <= self.east


@dataclass(frozen=True, slots=True)
class Viewport:
    center: tuple[float, float]
    zoom: int
    bounds: Bounds | None = None

    def visible_bounds(self, width: int, height: int) -> Bounds:
        """Geographic extent shown by a map of the given pixel size at this center and zoom."""
        scale = TILE_SIZE * 2**self.zoom
        cx, cy = project(*self.center)
        half_w = width / 2 / scale * TILE_SIZE
        half_h = height / 2 / scale * TILE_SIZE
        north, west = unproject(cx - half_w, cy - half_h)
        south, east = unproject(cx + half_w, cy + half_h)
        return Bounds(south=south, west=west, north=north, east=east)


def project(latitude: float, longitude: float) -> tuple[float, float]:
    """Spherical Mercator projection to pixel space at zoom 0."""

    lat = max(-MAX_MERCATOR_LATITUDE, min(MAX_MERCATOR_LATITUDE, latitude))
    sin_lat = math.sin(math.radians(lat))
    x = TILE_SIZE * (longitude + 180.0) / 360.0
    y = TILE_SIZE * (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi))
    return x, y


def unproject(x: float, y: float) -> tuple[float, float]:
    """Inverse of :func:`project`; returns (latitude, longitude)."""

    longitude = x / TILE_SIZE * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / TILE_SIZE
    latitude = math.degrees(math.atan(math.sinh(n)))
    return latitude, longitude


def bounding_box(points: Sequence[tuple[float, float]]) -> Bounds:
    """Smallest box covering every (lat, lon) point."""

    if not points:
        raise ValueError("At least one point is required for a bounding box")
    west, south, east, north = MultiPoint([(lon, lat) for lat, lon in points]).bounds
    return Bounds(south=south, west=west, north=north, east=east)


def fit_bounds(
    points: Sequence[tuple[float, float]],
    *,
    width: int,
    height: int,
    padding: int,
    max_zoom: int,
) -> Viewport:
    """Center and integral zoom that show every point inside a padded map.

    Picks the largest zoom whose projected bounding box fits into the map
    minus ``padding`` pixels on every side, capped at ``max_zoom``. A single
    point (or several identical ones) gets ``max_zoom``.
    """

    bounds = bounding_box(points)
    x_min, y_max = project(bounds.south, bounds.west)
    x_max, y_min = project(bounds.north, bounds.east)
    span_x = x_max - x_min
    span_y = y_max - y_min
    avail_x = max(width - 2 * padding, 1)
    avail_y = max(height - 2 * padding, 1)

    scales = []
    if span_x > 0:
        scales.append(avail_x / span_x)
    if span_y > 0:
        scales.append(avail_y / span_y)
    if scales:
        zoom = min(max_zoom, math.floor(math.log2(min(scales))))
        zoom = max(zoom, 0)
    else:
        zoom = max_zoom

    center = unproject((x_min + x_max) / 2, (y_min + y_max) / 2)
    return Viewport(center=center, zoom=zoom, bounds=bounds)
