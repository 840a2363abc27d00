from __future__ import annotations

from types import SimpleNamespace

import pytest

from pointhub.core.point import DIMENSIONS, Intensity, Point, ScanDirection, as_point
from pointhub.errors import MissingDimension


def test_point_defaults_mark_optional_dimensions_absent() -> None:
    p = Point(1.0, 2.0, 3.0)
    assert p.xyz == (1.0, 2.0, 3.0)
    assert p.intensity == Intensity(0.0, 0.0, 0.0)
    assert p.scan_direction is ScanDirection.UNKNOWN
    assert p.classification == 0
    assert not (p.synthetic or p.key_point or p.withheld or p.edge_of_flight_line)
    assert p.present_dimensions() == []
    assert p.gps_time is None and p.return_number is None


def test_value_or_default_never_raises_for_known_dimensions() -> None:
    p = Point(0.0, 0.0, 0.0, gps_time=12.5)
    assert p.value_or_default("gps_time") == 12.5
    assert p.value_or_default("return_number") == 0
    assert p.value_or_default("scan_angle") == 0.0
    assert p.value_or_default("high_channel") is False
    assert p.value_or_default("classification") == 0
    for name in DIMENSIONS:
        p.value_or_default(name)
    with pytest.raises(KeyError):
        p.value_or_default("colour")


def test_require_reports_the_missing_dimension() -> None:
    p = Point(0.0, 0.0, 0.0, scan_angle=3.0)
    assert p.require("scan_angle") == 3.0
    with pytest.raises(MissingDimension) as info:
        p.require("gps_time", "time")
    assert info.value.dimension == "time"
    assert isinstance(info.value, ValueError)


def test_present_dimensions_lists_only_fields_with_data() -> None:
    p = Point(0.0, 0.0, 0.0, range=4.0, facet_number=0, high_channel=False)
    assert p.present_dimensions() == ["range", "facet_number", "high_channel"]


def test_copy_is_independent() -> None:
    p = Point(1.0, 1.0, 1.0, return_number=1)
    q = p.copy()
    q.return_number = 2
    assert p.return_number == 1
    assert q.intensity is p.intensity


def test_as_point_accepts_objects_and_mappings() -> None:
    p = Point(1.0, 2.0, 3.0)
    assert as_point(p) is p

    obj = SimpleNamespace(x=1, y=2, z=3, intensity=100, gps_time=5.0, colour="red")
    q = as_point(obj)
    assert q.xyz == (1.0, 2.0, 3.0)
    assert q.intensity == Intensity.from_u16(100)
    assert q.gps_time == 5.0
    assert q.return_number is None

    r = as_point({"x": 0.5, "y": 0.5, "z": 0.5, "scan_direction": "backward", "withheld": True})
    assert r.scan_direction is ScanDirection.BACKWARD
    assert r.withheld is True


def test_as_point_rejects_objects_without_coordinates() -> None:
    with pytest.raises(TypeError):
        as_point(SimpleNamespace(x=1.0, y=2.0))
