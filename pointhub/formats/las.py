"""LAS/LAZ adapter built on laspy (v2+).

Ingest supplies every standard LAS dimension; ``gps_time`` only when the point
format stores it. Egress needs only ``x``, ``y`` and ``z``, except that point
formats with a time field also need ``gps_time``. Scan angles are integer
degrees (formats 0-5) or 0.006 degree steps (formats 6-10) on disk and
floating point degrees in the canonical point.
"""

from __future__ import annotations

import math
import pathlib
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import laspy  # type: ignore
import numpy as np
from laspy.errors import LaspyException  # type: ignore

from ..config.schema import LasSinkConfig, LasSourceConfig, required_las_version
from ..core.point import Intensity, Point, ScanDirection
from ..core.sink import Sink
from ..core.source import Source, check_want
from ..core.utils import check_unsigned, get_logger, round_half_up
from ..errors import LasError

_log = get_logger()

EXTENDED_SCAN_ANGLE_STEP = 0.006

_COMMON_FIELDS = (
    "intensity",
    "return_number",
    "number_of_returns",
    "scan_direction_flag",
    "edge_of_flight_line",
    "classification",
    "synthetic",
    "key_point",
    "withheld",
    "user_data",
    "point_source_id",
)


def is_extended(point_format: int) -> bool:
    return point_format >= 6


def has_gps_time(point_format: int) -> bool:
    return point_format not in (0, 2)


def point_from_las(record: Mapping[str, Any]) -> Point:
    """Convert one LAS record (dimension name -> value) into a canonical point."""
    if "scan_angle_rank" in record:
        scan_angle: Optional[float] = float(record["scan_angle_rank"])
    elif "scan_angle" in record:
        scan_angle = float(record["scan_angle"]) * EXTENDED_SCAN_ANGLE_STEP
    else:
        scan_angle = None
    gps_time = record.get("gps_time")
    return Point(
        x=float(record["x"]),
        y=float(record["y"]),
        z=float(record["z"]),
        intensity=Intensity.from_u16(record.get("intensity", 0)),
        return_number=int(record["return_number"]),
        number_of_returns=int(record["number_of_returns"]),
        scan_direction=ScanDirection.FORWARD if record.get("scan_direction_flag") else ScanDirection.BACKWARD,
        edge_of_flight_line=bool(record.get("edge_of_flight_line", False)),
        classification=int(record.get("classification", 0)),
        synthetic=bool(record.get("synthetic", False)),
        key_point=bool(record.get("key_point", False)),
        withheld=bool(record.get("withheld", False)),
        scan_angle=scan_angle,
        point_source_id=int(record["point_source_id"]) if "point_source_id" in record else None,
        user_data=int(record["user_data"]) if "user_data" in record else None,
        gps_time=float(gps_time) if gps_time is not None else None,
    )


def las_from_point(point: Point, point_format: int) -> Dict[str, Any]:
    """Convert a canonical point into a LAS record for ``point_format``.

    Raises :class:`MissingDimension` (``"time"``) when the format stores time and the
    point has none, and :class:`LasError` when a value does not fit.
    """
    extended = is_extended(point_format)
    return_bits = 4 if extended else 3
    class_bits = 8 if extended else 5
    try:
        record: Dict[str, Any] = {
            "x": point.x,
            "y": point.y,
            "z": point.z,
            "intensity": point.intensity.rescaled_to_u16(),
            "return_number": check_unsigned(point.value_or_default("return_number"), return_bits, "return number"),
            "number_of_returns": check_unsigned(
                point.value_or_default("number_of_returns"), return_bits, "number of returns"
            ),
            "scan_direction_flag": 0 if point.scan_direction is ScanDirection.BACKWARD else 1,
            "edge_of_flight_line": int(point.edge_of_flight_line),
            "classification": check_unsigned(point.classification, class_bits, "classification"),
            "synthetic": int(point.synthetic),
            "key_point": int(point.key_point),
            "withheld": int(point.withheld),
            "user_data": check_unsigned(point.value_or_default("user_data"), 8, "user data"),
            "point_source_id": check_unsigned(point.value_or_default("point_source_id"), 16, "point source id"),
        }
    except ValueError as exc:
        raise LasError(str(exc)) from exc

    angle = float(point.value_or_default("scan_angle"))
    if not math.isfinite(angle):
        raise LasError(f"scan angle {angle} cannot be stored")
    if extended:
        steps = round_half_up(angle / EXTENDED_SCAN_ANGLE_STEP)
        record["scan_angle"] = int(np.clip(steps, -30_000, 30_000))
    else:
        record["scan_angle_rank"] = int(np.clip(round_half_up(angle), -90, 90))

    if has_gps_time(point_format):
        record["gps_time"] = float(point.require("gps_time", "time"))
    return record


class LasSource(Source):
    """Streams points out of a LAS/LAZ file with ``LasReader.read_points``."""

    name = "las"

    def __init__(self, reader: "laspy.LasReader", path: Optional[pathlib.Path] = None) -> None:
        self._reader = reader
        self.path = path
        self._exhausted = False

    @classmethod
    def open(cls, path: str | pathlib.Path, config: Optional[LasSourceConfig] = None) -> "LasSource":
        path = pathlib.Path(path)
        try:
            reader = laspy.open(path)
        except (OSError, LaspyException) as exc:
            raise LasError(f"unable to open {path}: {exc}") from exc
        hdr = reader.header
        _log.info("Opened %s (PF=%d, version=%s, %d points)", path.name, hdr.point_format.id, hdr.version, hdr.point_count)
        return cls(reader, path)

    @property
    def header(self) -> "laspy.LasHeader":
        return self._reader.header

    def source(self, want: int) -> Optional[List[Point]]:
        want = check_want(want)
        if self._exhausted:
            return None
        try:
            record = self._reader.read_points(want)
        except (OSError, LaspyException) as exc:
            raise LasError(f"failed reading points: {exc}") from exc
        if len(record) == 0:
            self._exhausted = True
            return None
        return [point_from_las(r) for r in self._records(record)]

    def source_len(self) -> Optional[int]:
        return int(self._reader.header.point_count)

    def close(self) -> None:
        self._reader.close()

    def _records(self, points: "laspy.ScaleAwarePointRecord") -> List[Dict[str, Any]]:
        hdr = self._reader.header
        pf = hdr.point_format
        dims = set(pf.dimension_names)
        names: List[str] = ["x", "y", "z"]
        columns: List[Sequence[Any]] = []
        for i, raw in enumerate(("X", "Y", "Z")):
            scaled = np.asarray(points[raw], dtype=np.float64) * hdr.scales[i] + hdr.offsets[i]
            columns.append(scaled.tolist())
        optional = ("scan_angle", "gps_time") if is_extended(pf.id) else ("scan_angle_rank", "gps_time")
        for name in _COMMON_FIELDS + optional:
            if name in dims:
                names.append(name)
                columns.append(np.asarray(points[name]).tolist())
        return [dict(zip(names, values)) for values in zip(*columns)]


class LasSink(Sink):
    """Writes points to LAS/LAZ with laspy (v2+).

    The header (point format, offsets) is created lazily from the first
    buffered points; records are written in batches of ``buffer_size``.
    """

    name = "las"

    def __init__(
        self,
        path: str | pathlib.Path,
        point_format: Optional[int] = None,
        version: Optional[str] = None,
        scale: Tuple[float, float, float] = (1e-3, 1e-3, 1e-3),
        offset: Optional[Tuple[float, float, float]] = None,
        compress: bool = False,
        buffer_size: int = 10_000,
    ) -> None:
        super().__init__()
        self.path = pathlib.Path(path)
        self.point_format = point_format
        self.version = version
        self.scale = scale
        self.offset = offset
        self.compress = compress
        self.buffer_size = buffer_size
        self.count = 0
        self._fh: Optional[laspy.LasWriter] = None  # type: ignore
        self._header: Optional[laspy.LasHeader] = None  # type: ignore
        self._buffer: List[Dict[str, Any]] = []

    @classmethod
    def open(cls, path: str | pathlib.Path, config: Optional[LasSinkConfig] = None) -> "LasSink":
        config = config or LasSinkConfig()
        compress = config.compress
        if compress is None:
            compress = config.kind == "laz" or pathlib.Path(path).suffix.lower() == ".laz"
        return cls(
            path,
            point_format=config.point_format,
            version=config.version,
            scale=config.scale,
            offset=config.offset,
            compress=compress,
            buffer_size=config.buffer_size,
        )

    def _write(self, point: Point) -> None:
        if self.point_format is None:
            self.point_format = 1 if point.gps_time is not None else 0
        self._buffer.append(las_from_point(point, self.point_format))
        if len(self._buffer) >= self.buffer_size:
            self._flush()

    def _finalize(self) -> None:
        try:
            self._flush()
            if self._fh is None:
                self._init_header(None)
        except (OSError, LaspyException) as exc:
            raise LasError(f"unable to finish {self.path}: {exc}") from exc
        finally:
            fh, self._fh = self._fh, None
            if fh is not None:
                try:
                    fh.close()
                except (OSError, LaspyException) as exc:
                    raise LasError(f"unable to close {self.path}: {exc}") from exc
        _log.info("Wrote %d points to %s", self.count, self.path.name)

    def _flush(self) -> None:
        if not self._buffer:
            return
        try:
            if self._fh is None:
                self._init_header(self._buffer)
            assert self._fh is not None and self._header is not None
            pts = laspy.ScaleAwarePointRecord.zeros(len(self._buffer), header=self._header)
            for name in self._buffer[0]:
                values = np.array([r[name] for r in self._buffer])
                setattr(pts, name, values)
            self._fh.write_points(pts)
        except (OSError, LaspyException) as exc:
            raise LasError(f"failed writing {self.path}: {exc}") from exc
        self.count += len(self._buffer)
        self._buffer.clear()

    def _init_header(self, first: Optional[List[Dict[str, Any]]]) -> None:
        pf_id = self.point_format if self.point_format is not None else 0
        version = self.version or required_las_version(pf_id)
        hdr = laspy.LasHeader(point_format=laspy.PointFormat(pf_id), version=version)
        hdr.scales = np.asarray(self.scale, dtype=np.float64)
        if self.offset is not None:
            hdr.offsets = np.asarray(self.offset, dtype=np.float64)
        elif first:
            # Infer offset from first batch
            hdr.offsets = np.array([min(r[k] for r in first) for k in ("x", "y", "z")], dtype=np.float64)
        else:
            hdr.offsets = np.zeros(3, dtype=np.float64)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = laspy.open(self.path, mode="w", header=hdr, do_compress=self.compress)
        self._header = hdr
        _log.info("Opened %s (PF=%d, compress=%s)", self.path.name, pf_id, self.compress)
