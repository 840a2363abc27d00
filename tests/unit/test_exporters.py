from __future__ import annotations

import io
from pathlib import Path

import pytest

from pointhub.config.schema import TextSinkConfig
from pointhub.core.point import Intensity, Point
from pointhub.errors import InvalidOption, MissingDimension, SinkClosed
from pointhub.formats.text import TextSink


def test_text_sink_writes_header_and_rows(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "points.txt"
    cfg = TextSinkConfig(dimensions=["x", "y", "z", "intensity", "high_channel"], delimiter=",", precision=2)
    with TextSink.open(out, cfg) as sink:
        sink.sink(Point(1.0, 2.5, -3.125, intensity=Intensity.from_u16(7), high_channel=True))
        sink.sink(Point(4.0, 5.0, 6.0, intensity=Intensity(1.0, 0.0, 1.0), high_channel=False))
        assert sink.count == 2

    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "x,y,z,intensity,high_channel"
    assert lines[1] == "1.00,2.50,-3.12,7,1"
    assert lines[2] == "4.00,5.00,6.00,65535,0"


def test_text_sink_default_is_xyz() -> None:
    buf = io.StringIO()
    sink = TextSink(buf, ["x", "y", "z"])
    sink.sink(Point(1.5, 2.0, 3.0))
    assert buf.getvalue() == "x y z\n1.5 2.0 3.0\n"


def test_text_sink_requires_listed_optional_dimensions() -> None:
    sink = TextSink(io.StringIO(), ["x", "gps_time"])
    with pytest.raises(MissingDimension) as info:
        sink.sink(Point(0.0, 0.0, 0.0))
    assert info.value.dimension == "gps time"


def test_text_sink_rejects_unknown_dimensions() -> None:
    with pytest.raises(InvalidOption):
        TextSink(io.StringIO(), ["x", "colour"])


def test_text_sink_close_is_final() -> None:
    sink = TextSink(io.StringIO(), ["x"])
    sink.close_sink()
    with pytest.raises(SinkClosed):
        sink.sink(Point(0.0, 0.0, 0.0))
    with pytest.raises(SinkClosed):
        sink.close_sink()


def test_text_sink_checks_dimensions_before_creating_the_file(tmp_path: Path) -> None:
    out = tmp_path / "never.txt"
    cfg = TextSinkConfig.model_construct(kind="txt", dimensions=["x", "colour"], delimiter=" ", precision=None)
    with pytest.raises(InvalidOption):
        TextSink.open(out, cfg)
    assert not out.exists()
