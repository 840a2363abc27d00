"""Riegl SDF full-waveform adapter (optional).

Waveform discretisation happens in a backend, not here: a backend opens a
file and hands out, per waveform record, the discrete points it found. The
adapter is only registered once a backend has been installed with
:func:`install_backend`.
"""

from __future__ import annotations

import pathlib
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence

from ..config.schema import SdfSourceConfig
from ..core.point import Intensity, Point
from ..core.source import Source, check_want
from ..core.utils import get_logger
from ..errors import SdfError

_log = get_logger()


class WaveformFile(Protocol):
    def read_points(self) -> Optional[Sequence[Mapping[str, Any]]]:
        """Discrete points of the next waveform record, ``None`` at end of file."""
        ...

    def record_count(self) -> Optional[int]: ...

    def close(self) -> None: ...


WaveformOpener = Callable[[str], WaveformFile]

_BACKEND: Optional[WaveformOpener] = None


def install_backend(opener: Optional[WaveformOpener]) -> None:
    """Install (or, with ``None``, remove) the waveform backend used to open .sdf files."""
    global _BACKEND
    _BACKEND = opener


def have_backend() -> bool:
    return _BACKEND is not None


def point_from_sdf(record: Mapping[str, Any]) -> Point:
    """Convert one discretised waveform point.

    ``peak_amplitude`` is a 16-bit amplitude; ``time`` is taken as GPS time.
    """
    return Point(
        x=float(record["x"]),
        y=float(record["y"]),
        z=float(record["z"]),
        intensity=Intensity.from_u16(record["peak_amplitude"]),
        return_number=int(record["target"]),
        number_of_returns=int(record["num_target"]),
        facet_number=int(record["facet"]),
        high_channel=bool(record["high_channel"]),
        gps_time=float(record["time"]),
    )


class SdfSource(Source):
    name = "sdf"

    def __init__(self, file: WaveformFile) -> None:
        self._file = file
        self._pending: List[Point] = []
        self._exhausted = False

    @classmethod
    def open(cls, path: str | pathlib.Path, config: Optional[SdfSourceConfig] = None) -> "SdfSource":
        if _BACKEND is None:
            raise SdfError("no waveform backend is installed")
        try:
            file = _BACKEND(str(path))
        except OSError as exc:
            raise SdfError(f"unable to open {path}: {exc}") from exc
        _log.info("Opened %s (sdf)", pathlib.Path(path).name)
        return cls(file)

    def source(self, want: int) -> Optional[List[Point]]:
        want = check_want(want)
        while len(self._pending) < want and not self._exhausted:
            try:
                records = self._file.read_points()
            except OSError as exc:
                raise SdfError(f"failed reading waveform record: {exc}") from exc
            if records is None:
                self._exhausted = True
                break
            self._pending.extend(point_from_sdf(r) for r in records)
        if not self._pending:
            return None
        chunk, self._pending = self._pending[:want], self._pending[want:]
        return chunk

    def source_len(self) -> Optional[int]:
        # Counts waveform records, so it undercounts multi-target files.
        return self._file.record_count()

    def close(self) -> None:
        self._file.close()
