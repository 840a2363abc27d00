from __future__ import annotations

from typing import List, Optional

from ..errors import SinkClosed
from .point import Point


class Sink:
    """Push-based writer of canonical points.

    ``close_sink`` must be called exactly once after the last ``sink`` call;
    until then the underlying file may be incomplete. Subclasses implement
    ``_write`` and ``_finalize``; the open/closed bookkeeping lives here.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def sink(self, point: Point) -> None:
        if self._closed:
            raise SinkClosed(f"{self.name} sink is already closed")
        self._write(point)

    def close_sink(self) -> None:
        if self._closed:
            raise SinkClosed(f"{self.name} sink is already closed")
        self._closed = True
        self._finalize()

    def _write(self, point: Point) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def _finalize(self) -> None:
        pass

    def __enter__(self) -> "Sink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._closed:
            self.close_sink()


class MemorySink(Sink):
    """Collects copies of sunk points in a list."""

    name = "memory"

    def __init__(self, points: Optional[List[Point]] = None) -> None:
        super().__init__()
        self.points: List[Point] = points if points is not None else []

    def _write(self, point: Point) -> None:
        self.points.append(point.copy())
