from __future__ import annotations

from typing import Iterator, List, Optional, Sequence

from .point import Point


class Source:
    """Pull-based reader of canonical points.

    Subclasses implement :meth:`source`. It returns between 1 and ``want``
    points while data remains and ``None`` once the stream is exhausted; it
    never returns an empty list. Once ``None`` has been returned the source
    stays exhausted.
    """

    name: str = "base"

    def source(self, want: int) -> Optional[List[Point]]:  # pragma: no cover - abstract
        raise NotImplementedError

    def source_to_end(self, want: int) -> List[Point]:
        """Drain the source, ``want`` points per pull, preserving order.

        Sources without a natural end override this to raise
        :class:`~pointhub.errors.UnboundedSource`.
        """
        points: List[Point] = []
        for chunk in self.chunks(want):
            points.extend(chunk)
        return points

    def source_len(self) -> Optional[int]:
        """Cheap size hint, ``None`` when unknown. Never use it to stop a loop."""
        return None

    def chunks(self, want: int) -> Iterator[List[Point]]:
        while True:
            points = self.source(want)
            if points is None:
                return
            yield points

    def close(self) -> None:
        pass

    def __enter__(self) -> "Source":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def check_want(want: int) -> int:
    want = int(want)
    if want < 1:
        raise ValueError(f"want must be at least 1, got {want}")
    return want


class MemorySource(Source):
    """Serves points from an in-memory sequence."""

    name = "memory"

    def __init__(self, points: Sequence[Point]) -> None:
        self._points = list(points)
        self._pos = 0

    def source(self, want: int) -> Optional[List[Point]]:
        want = check_want(want)
        if self._pos >= len(self._points):
            return None
        chunk = self._points[self._pos:self._pos + want]
        self._pos += len(chunk)
        return chunk

    def source_len(self) -> Optional[int]:
        return len(self._points)
