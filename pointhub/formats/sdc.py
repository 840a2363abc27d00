"""Riegl SDC (simple discrete return) adapter.

The file is an 8 byte preamble (``u32`` header size, ``u16`` major, ``u16``
minor), the rest of the header, then packed little-endian point records
whose layout grows with the minor version (5.0 through 5.4).

Ingest supplies time, range, scan angle (``theta``), amplitude, width, echo
indices, range index, facet, channel and, from 5.2 on, classification.
Egress requires ``gps_time`` and ``scan_angle``; range falls back to the
cartesian norm of the point. Coordinates are stored as ``float32``.
"""

from __future__ import annotations

import os
import pathlib
import struct
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Tuple

import numpy as np

from ..config.schema import SdcSinkConfig, SdcSourceConfig
from ..core.point import Intensity, Point
from ..core.sink import Sink
from ..core.source import Source, check_want
from ..core.utils import check_unsigned, get_logger, norm3, round_half_up
from ..errors import SdcError

_log = get_logger()

_PREAMBLE = struct.Struct("<IHH")

TARGET_TYPES: Dict[int, str] = {
    0: "center_of_gravity",
    1: "parabola",
    2: "gaussian",
    3: "peak",
}
DEFAULT_TARGET_TYPE = 3

_FACET_MASK = 0b0000_0011
_HIGH_CHANNEL_MASK = 0b0100_0000

_BASE_FIELDS: List[Tuple[str, str]] = [
    ("time", "<f8"),
    ("range", "<f4"),
    ("theta", "<f4"),
    ("x", "<f4"),
    ("y", "<f4"),
    ("z", "<f4"),
    ("amplitude", "<u2"),
    ("width", "<u2"),
    ("target_type", "u1"),
    ("target", "u1"),
    ("num_target", "u1"),
    ("rg_index", "<u2"),
    ("channel_desc_byte", "u1"),
]


def point_dtype(version: Tuple[int, int]) -> np.dtype:
    """Packed record layout for an SDC ``(major, minor)`` version."""
    major, minor = version
    if major != 5 or not 0 <= minor <= 4:
        raise SdcError(f"unsupported sdc version {major}.{minor}")
    fields = list(_BASE_FIELDS)
    if minor >= 2:
        fields.append(("class_id", "u1"))
    if minor >= 3:
        fields.append(("rho", "<f4"))
    if minor >= 4:
        fields.append(("reflectance", "<i2"))
    return np.dtype(fields)


def records_from_array(arr: np.ndarray) -> List[Dict[str, Any]]:
    """Decode a structured array into plain records, splitting the channel byte."""
    names = arr.dtype.names or ()
    records = []
    for values in arr.tolist():
        record = dict(zip(names, values))
        desc = record.pop("channel_desc_byte")
        record["facet_number"] = desc & _FACET_MASK
        record["high_channel"] = bool(desc & _HIGH_CHANNEL_MASK)
        records.append(record)
    return records


def array_from_records(records: List[Mapping[str, Any]], version: Tuple[int, int]) -> np.ndarray:
    dtype = point_dtype(version)
    arr = np.zeros(len(records), dtype=dtype)
    for name in dtype.names:
        if name == "channel_desc_byte":
            arr[name] = [
                (r["facet_number"] & _FACET_MASK) | (_HIGH_CHANNEL_MASK if r["high_channel"] else 0)
                for r in records
            ]
        else:
            arr[name] = [r.get(name, 0) for r in records]
    return arr


class SdcReader:
    """Sequential reader over an SDC byte stream."""

    def __init__(self, fh: BinaryIO, path: Optional[pathlib.Path] = None) -> None:
        self._fh = fh
        self.path = path
        preamble = fh.read(_PREAMBLE.size)
        if len(preamble) != _PREAMBLE.size:
            raise SdcError("file is too short to hold an sdc header")
        self.header_size, major, minor = _PREAMBLE.unpack(preamble)
        if self.header_size < _PREAMBLE.size:
            raise SdcError(f"invalid header size {self.header_size}")
        self.version = (major, minor)
        self.dtype = point_dtype(self.version)
        self.header_information = fh.read(self.header_size - _PREAMBLE.size)
        if len(self.header_information) != self.header_size - _PREAMBLE.size:
            raise SdcError("truncated sdc header")

    @classmethod
    def from_path(cls, path: str | pathlib.Path) -> "SdcReader":
        path = pathlib.Path(path)
        try:
            fh = open(path, "rb")
        except OSError as exc:
            raise SdcError(f"unable to open {path}: {exc}") from exc
        try:
            return cls(fh, path)
        except SdcError:
            fh.close()
            raise

    def read(self, n: int) -> np.ndarray:
        size = self.dtype.itemsize
        data = self._fh.read(n * size)
        if len(data) % size:
            raise SdcError(f"truncated point record ({len(data) % size} of {size} bytes)")
        return np.frombuffer(data, dtype=self.dtype)

    def point_count(self) -> Optional[int]:
        if self.path is None:
            return None
        body = os.path.getsize(self.path) - self.header_size
        return max(body, 0) // self.dtype.itemsize

    def close(self) -> None:
        self._fh.close()


class SdcWriter:
    """Writes an SDC preamble followed by packed point records."""

    def __init__(self, fh: BinaryIO, version: Tuple[int, int] = (5, 2), header_information: bytes = b"") -> None:
        self._fh = fh
        self.version = tuple(version)
        self.dtype = point_dtype(self.version)  # type: ignore[arg-type]
        header_size = _PREAMBLE.size + len(header_information)
        fh.write(_PREAMBLE.pack(header_size, self.version[0], self.version[1]))
        fh.write(header_information)

    @classmethod
    def from_path(cls, path: str | pathlib.Path, version: Tuple[int, int] = (5, 2)) -> "SdcWriter":
        path = pathlib.Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(path, "wb")
        except OSError as exc:
            raise SdcError(f"unable to create {path}: {exc}") from exc
        return cls(fh, version)

    def write(self, records: List[Mapping[str, Any]]) -> None:
        self._fh.write(array_from_records(records, self.version).tobytes())  # type: ignore[arg-type]

    def close(self) -> None:
        self._fh.close()


def point_from_sdc(record: Mapping[str, Any]) -> Point:
    class_id = record.get("class_id")
    return Point(
        x=float(record["x"]),
        y=float(record["y"]),
        z=float(record["z"]),
        intensity=Intensity.from_u16(record["amplitude"]),
        return_number=int(record["target"]),
        number_of_returns=int(record["num_target"]),
        classification=int(class_id) if class_id is not None else 0,
        scan_angle=float(record["theta"]),
        gps_time=float(record["time"]),
        range=float(record["range"]),
        width=float(record["width"]),
        rg_index=float(record["rg_index"]),
        facet_number=int(record["facet_number"]),
        target_type=int(record["target_type"]),
        high_channel=bool(record["high_channel"]),
    )


def sdc_from_point(point: Point) -> Dict[str, Any]:
    """Convert a canonical point into an SDC record.

    Raises :class:`~pointhub.errors.MissingDimension` for ``time`` and
    ``scan angle``, :class:`SdcError` for values the record cannot hold.
    """
    time = point.require("gps_time", "time")
    theta = point.require("scan_angle", "scan angle")
    rng = point.range if point.range is not None else norm3(point.x, point.y, point.z)
    target_type = point.target_type if point.target_type is not None else DEFAULT_TARGET_TYPE
    if target_type not in TARGET_TYPES:
        raise SdcError(f"unknown target type {target_type}")
    try:
        return {
            "time": float(time),
            "range": float(rng),
            "theta": float(theta),
            "x": point.x,
            "y": point.y,
            "z": point.z,
            "amplitude": point.intensity.rescaled_to_u16(),
            "width": check_unsigned(round_half_up(point.value_or_default("width")), 16, "width"),
            "target_type": target_type,
            "target": check_unsigned(point.value_or_default("return_number"), 8, "target"),
            "num_target": check_unsigned(point.value_or_default("number_of_returns"), 8, "number of targets"),
            "rg_index": check_unsigned(round_half_up(point.value_or_default("rg_index")), 16, "range index"),
            "facet_number": check_unsigned(point.value_or_default("facet_number"), 2, "facet number"),
            "high_channel": bool(point.value_or_default("high_channel")),
            "class_id": check_unsigned(point.classification, 8, "classification"),
        }
    except ValueError as exc:
        raise SdcError(str(exc)) from exc


class SdcSource(Source):
    name = "sdc"

    def __init__(self, reader: SdcReader) -> None:
        self._reader = reader
        self._exhausted = False

    @classmethod
    def open(cls, path: str | pathlib.Path, config: Optional[SdcSourceConfig] = None) -> "SdcSource":
        reader = SdcReader.from_path(path)
        _log.info("Opened %s (sdc %d.%d)", pathlib.Path(path).name, *reader.version)
        return cls(reader)

    def source(self, want: int) -> Optional[List[Point]]:
        want = check_want(want)
        if self._exhausted:
            return None
        arr = self._reader.read(want)
        if len(arr) == 0:
            self._exhausted = True
            return None
        return [point_from_sdc(r) for r in records_from_array(arr)]

    def source_len(self) -> Optional[int]:
        return self._reader.point_count()

    def close(self) -> None:
        self._reader.close()


class SdcSink(Sink):
    name = "sdc"

    def __init__(self, writer: SdcWriter, buffer_size: int = 10_000) -> None:
        super().__init__()
        self._writer = writer
        self.buffer_size = buffer_size
        self.count = 0
        self._buffer: List[Dict[str, Any]] = []

    @classmethod
    def open(cls, path: str | pathlib.Path, config: Optional[SdcSinkConfig] = None) -> "SdcSink":
        config = config or SdcSinkConfig()
        _log.info("Opened %s (sdc %d.%d)", pathlib.Path(path).name, *config.version)
        return cls(SdcWriter.from_path(path, config.version))

    def _write(self, point: Point) -> None:
        self._buffer.append(sdc_from_point(point))
        if len(self._buffer) >= self.buffer_size:
            self._flush()

    def _flush(self) -> None:
        if not self._buffer:
            return
        try:
            self._writer.write(self._buffer)
        except OSError as exc:
            raise SdcError(f"failed writing points: {exc}") from exc
        self.count += len(self._buffer)
        self._buffer.clear()

    def _finalize(self) -> None:
        try:
            self._flush()
        finally:
            self._writer.close()
        _log.info("Wrote %d sdc points", self.count)
