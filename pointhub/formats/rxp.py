"""Riegl RXP adapter, read through PDAL's ``readers.rxp`` (optional dependency).

Ingest only. Reflectance becomes the intensity on ``reflectance_range``
(``[-50, 50]`` dB by default). Echo indices are reduced to what the echo type
says for certain: a single echo is return 1 of 1, a first echo is return 1 of
an unknown count, interior and last echoes carry no return information.
Time is only reported for points synchronised to the PPS signal; integer
time stamps are nanosecond counters and are converted to seconds.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from ..config.schema import RxpSourceConfig
from ..core.point import Intensity, Point
from ..core.source import Source, check_want
from ..core.utils import get_logger, optional_float
from ..errors import RxpError, UnboundedSource

_log = get_logger()

try:
    import pdal  # type: ignore
    _HAVE_PDAL = True
except Exception:
    pdal = None  # type: ignore
    _HAVE_PDAL = False

ECHO_SINGLE = "single"
ECHO_FIRST = "first"
ECHO_INTERIOR = "interior"
ECHO_LAST = "last"

NANOSECONDS = 1e-9

_TIME_DIMS = ("GpsTime", "InternalTime")


def have_backend() -> bool:
    return _HAVE_PDAL


def echo_type(return_number: int, number_of_returns: int) -> str:
    if number_of_returns <= 1:
        return ECHO_SINGLE
    if return_number <= 1:
        return ECHO_FIRST
    if return_number >= number_of_returns:
        return ECHO_LAST
    return ECHO_INTERIOR


def point_from_rxp(
    record: Mapping[str, Any],
    reflectance_range: Tuple[float, float] = (-50.0, 50.0),
) -> Point:
    """Convert one rxp record into a canonical point.

    ``record`` carries ``x``, ``y``, ``z``, ``reflectance``, ``echo_type``,
    ``pps`` and ``time`` (seconds), plus ``range`` and ``deviation`` when known.
    """
    echo = record.get("echo_type")
    return_number: Optional[int] = 1 if echo in (ECHO_SINGLE, ECHO_FIRST) else None
    number_of_returns: Optional[int] = 1 if echo == ECHO_SINGLE else None
    time = record.get("time")
    lo, hi = reflectance_range
    return Point(
        x=float(record["x"]),
        y=float(record["y"]),
        z=float(record["z"]),
        intensity=Intensity(float(record.get("reflectance", 0.0)), lo, hi),
        return_number=return_number,
        number_of_returns=number_of_returns,
        gps_time=float(time) if record.get("pps") and time is not None else None,
        range=optional_float(record.get("range")),
        width=optional_float(record.get("deviation")),
    )


def records_from_array(arr: np.ndarray, assume_pps: bool = True) -> List[Dict[str, Any]]:
    """Map a PDAL point view array onto rxp records."""
    names = arr.dtype.names or ()
    n = len(arr)

    def column(name: str, default: Any = None) -> List[Any]:
        if name in names:
            return arr[name].tolist()
        return [default] * n

    time_name = next((t for t in _TIME_DIMS if t in names), None)
    if time_name is None:
        times: List[Any] = [None] * n
    elif np.issubdtype(arr.dtype[time_name], np.integer):
        times = (arr[time_name].astype(np.float64) * NANOSECONDS).tolist()
    else:
        times = arr[time_name].tolist()

    rn = column("ReturnNumber", 1)
    nr = column("NumberOfReturns", 1)
    pps = column("IsPpsLocked", assume_pps)
    rng = column("EchoRange")
    deviation = column("Deviation")
    reflectance = column("Reflectance", 0.0)
    xs, ys, zs = column("X"), column("Y"), column("Z")
    return [
        {
            "x": xs[i],
            "y": ys[i],
            "z": zs[i],
            "reflectance": reflectance[i],
            "echo_type": echo_type(int(rn[i]), int(nr[i])),
            "pps": bool(pps[i]),
            "time": times[i],
            "range": rng[i],
            "deviation": deviation[i],
        }
        for i in range(n)
    ]


def is_stream_uri(path: str) -> bool:
    return "://" in path


class RxpSource(Source):
    """Pulls points from a PDAL streaming iterator over ``readers.rxp``."""

    name = "rxp"

    def __init__(
        self,
        arrays: Iterator[np.ndarray],
        config: Optional[RxpSourceConfig] = None,
        unbounded: bool = False,
    ) -> None:
        self.config = config or RxpSourceConfig()
        self.unbounded = unbounded
        self._arrays = arrays
        self._pending: List[Dict[str, Any]] = []
        self._exhausted = False

    @classmethod
    def open(cls, path: str | pathlib.Path, config: Optional[RxpSourceConfig] = None) -> "RxpSource":
        if not _HAVE_PDAL:
            raise RxpError("PDAL python bindings are not available. pip install pdal.")
        config = config or RxpSourceConfig()
        target = str(path)
        unbounded = is_stream_uri(target)
        stages = {
            "pipeline": [
                {
                    "type": "readers.rxp",
                    "filename": target,
                    "rdtp": unbounded,
                    "sync_to_pps": config.sync_to_pps,
                }
            ]
        }
        try:
            pipeline = pdal.Pipeline(json.dumps(stages))
            arrays = iter(pipeline.iterator(chunk_size=config.read_chunk))
        except RuntimeError as exc:
            raise RxpError(f"unable to open {target}: {exc}") from exc
        _log.info("Opened %s (rxp, sync_to_pps=%s)", target, config.sync_to_pps)
        return cls(arrays, config, unbounded=unbounded)

    def source(self, want: int) -> Optional[List[Point]]:
        want = check_want(want)
        while len(self._pending) < want and not self._exhausted:
            try:
                arr = next(self._arrays)
            except StopIteration:
                self._exhausted = True
                break
            except RuntimeError as exc:
                raise RxpError(f"failed reading points: {exc}") from exc
            self._pending.extend(records_from_array(arr, assume_pps=self.config.sync_to_pps))
        if not self._pending:
            return None
        chunk, self._pending = self._pending[:want], self._pending[want:]
        lo, hi = self.config.reflectance_range
        return [point_from_rxp(r, (lo, hi)) for r in chunk]

    def source_to_end(self, want: int) -> List[Point]:
        if self.unbounded:
            raise UnboundedSource("an rxp network stream has no end; pull it with source() instead")
        return super().source_to_end(want)
