import pytest

from fieldforce.models.domain import Client, Salesperson, SalespersonStatus
from fieldforce.services.geospatial import Bounds, bounding_box, fit_bounds, project, unproject
from fieldforce.services.map_view import ViewportTracker, build_markers, mappable


def _person(pid: int, lat=None, lon=None, status=SalespersonStatus.ACTIVE) -> Salesperson:
    return Salesperson(id=pid, name=f"Vendedor {pid}", latitude=lat, longitude=lon, status=status)


def test_projection_round_trips() -> None:
    x, y = project(12.1364, -86.2514)

    assert unproject(x, y) == pytest.approx((12.1364, -86.2514))


def test_bounding_box_covers_all_points() -> None:
    box = bounding_box([(12.0, -86.5), (12.5, -86.0), (11.8, -86.2)])

    assert box == Bounds(south=11.8, west=-86.5, north=12.5, east=-86.0)
    with pytest.raises(ValueError):
        bounding_box([])


def test_fit_bounds_keeps_every_point_visible() -> None:
    points = [(12.0, -86.5), (12.5, -86.0), (11.2, -85.1)]

    viewport = fit_bounds(points, width=1024, height=768, padding=50, max_zoom=14)
    visible = viewport.visible_bounds(1024, 768)

    assert 0 <= viewport.zoom < 14
    assert all(visible.contains(lat, lon) for lat, lon in points)
    # One level closer would cut something off
    closer = type(viewport)(center=viewport.center, zoom=viewport.zoom + 1).visible_bounds(1024 - 100, 768 - 100)
    assert not all(closer.contains(lat, lon) for lat, lon in points)


def test_single_point_uses_max_zoom() -> None:
    viewport = fit_bounds([(12.1, -86.2)], width=800, height=600, padding=50, max_zoom=14)

    assert viewport.zoom == 14
    assert viewport.center == pytest.approx((12.1, -86.2))


def test_only_salespeople_with_both_coordinates_are_mappable() -> None:
    people = [_person(1, 12.0, -86.0), _person(2)]

    assert [person.id for person in mappable(people)] == [1]
    with pytest.raises(ValueError):
        _person(3, 12.0, None)


def test_marker_colors_follow_status_and_kind() -> None:
    people = [_person(1, 12.0, -86.0), _person(2, 12.1, -86.1, SalespersonStatus.INACTIVE), _person(3)]
    clients = [Client(id=9, salesperson_id=1, name="Pulperia", latitude=12.05, longitude=-86.05, address="Km 3")]

    markers = build_markers(people, clients)

    assert [(marker.kind, marker.id, marker.style.color) for marker in markers] == [
        ("salesperson", 1, "green"),
        ("salesperson", 2, "red"),
        ("client", 9, "blue"),
    ]
    assert markers[2].popup == "Pulperia\nVendedor: Unknown\nKm 3"


def test_viewport_refits_only_when_positions_change() -> None:
    tracker = ViewportTracker(width=1024, height=768, padding=50, max_zoom=14)
    default = tracker.viewport

    assert tracker.update([_person(1)]) is None
    assert tracker.viewport == default

    first = tracker.update([_person(1, 12.0, -86.0), _person(2, 12.5, -86.5)])
    assert first is not None
    assert tracker.update([_person(2, 12.5, -86.5), _person(1, 12.0, -86.0)]) is None
    assert tracker.update([_person(1, 12.0, -86.0), _person(2, 13.0, -86.5)]) is not None
    assert tracker.fits == 2
