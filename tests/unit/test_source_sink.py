from __future__ import annotations

from typing import List, Optional

import pytest

from pointhub.core.point import Point
from pointhub.core.sink import MemorySink, Sink
from pointhub.core.source import MemorySource, Source
from pointhub.errors import SinkClosed


def _points(n: int) -> List[Point]:
    return [Point(float(i), float(2 * i), float(-i), return_number=1) for i in range(n)]


@pytest.mark.parametrize("want", [1, 5, 10, 100])
def test_source_to_end_returns_every_point_in_order(want: int) -> None:
    points = _points(10)
    out = MemorySource(points).source_to_end(want)
    assert [p.x for p in out] == [p.x for p in points]


def test_source_returns_none_instead_of_an_empty_chunk() -> None:
    source = MemorySource(_points(3))
    assert len(source.source(2)) == 2
    assert len(source.source(2)) == 1
    assert source.source(2) is None
    assert source.source(2) is None


def test_empty_source_ends_immediately() -> None:
    source = MemorySource([])
    assert source.source(10) is None
    assert source.source_to_end(10) == []


def test_want_must_be_positive() -> None:
    with pytest.raises(ValueError):
        MemorySource(_points(1)).source(0)


def test_source_len_is_a_hint() -> None:
    assert MemorySource(_points(4)).source_len() == 4
    assert Source().source_len() is None


class _ShortReads(Source):
    """Returns fewer points than asked for, as a streaming reader may."""

    def __init__(self, n: int) -> None:
        self.remaining = n
        self.calls = 0

    def source(self, want: int) -> Optional[List[Point]]:
        self.calls += 1
        if self.remaining == 0:
            return None
        take = min(want, 2, self.remaining)
        self.remaining -= take
        return _points(take)


def test_source_to_end_tolerates_short_reads() -> None:
    source = _ShortReads(7)
    assert len(source.source_to_end(100)) == 7
    assert source.calls == 5


def test_chunks_stops_at_end_of_stream() -> None:
    chunks = list(MemorySource(_points(5)).chunks(2))
    assert [len(c) for c in chunks] == [2, 2, 1]


def test_memory_sink_copies_points_and_closes_once() -> None:
    sink = MemorySink()
    p = Point(1.0, 2.0, 3.0)
    sink.sink(p)
    p.x = 99.0
    assert sink.points[0].x == 1.0
    sink.close_sink()
    assert sink.closed
    with pytest.raises(SinkClosed):
        sink.sink(p)
    with pytest.raises(SinkClosed):
        sink.close_sink()


def test_sink_context_manager_closes() -> None:
    finalized = []

    class _Recorder(Sink):
        def _write(self, point: Point) -> None:
            pass

        def _finalize(self) -> None:
            finalized.append(True)

    with _Recorder() as sink:
        sink.sink(Point(0.0, 0.0, 0.0))
    assert finalized == [True]
    assert sink.closed
