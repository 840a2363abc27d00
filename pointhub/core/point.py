from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import MissingDimension

U16_MAX = 65535


class ScanDirection(Enum):
    """Direction the scanner mirror was travelling when the pulse left."""

    FORWARD = "forward"
    BACKWARD = "backward"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Intensity:
    """Backscatter strength together with the sensor's dynamic range.

    ``min <= value <= max`` is the expected domain, but it is not enforced:
    rescaling clamps instead.
    """

    value: float = 0.0
    min: float = 0.0
    max: float = 0.0

    @classmethod
    def from_dynamic_range(cls, value: float, native_bit_width: int = 16) -> "Intensity":
        if native_bit_width <= 0:
            raise ValueError("native_bit_width must be positive.")
        return cls(float(value), 0.0, float((1 << native_bit_width) - 1))

    @classmethod
    def from_u16(cls, value: int) -> "Intensity":
        return cls.from_dynamic_range(value, 16)

    def normalized(self) -> float:
        """Position of ``value`` within ``[min, max]`` as a float in ``[0, 1]``.

        A zero-width range maps to 0; values beyond either end clamp.
        """
        span = self.max - self.min
        if span == 0.0:
            return 0.0
        t = (self.value - self.min) / span
        if not math.isfinite(t):
            return 0.0
        return min(max(t, 0.0), 1.0)

    def rescaled_to_u16(self) -> int:
        """Rescale onto ``[0, 65535]``.

        ``value == min`` gives 0 and ``value == max`` gives 65535. Values
        strictly inside the range never round onto either end point.
        """
        span = self.max - self.min
        if span == 0.0:
            return 0
        t = (self.value - self.min) / span
        if not math.isfinite(t) or t <= 0.0:
            return 0
        if t >= 1.0:
            return U16_MAX
        scaled = int(math.floor(U16_MAX * t + 0.5))
        return min(max(scaled, 1), U16_MAX - 1)


# Zero values handed out for absent optional dimensions.
_OPTIONAL_DEFAULTS: Dict[str, Any] = {
    "return_number": 0,
    "number_of_returns": 0,
    "scan_angle": 0.0,
    "point_source_id": 0,
    "user_data": 0,
    "gps_time": 0.0,
    "range": 0.0,
    "width": 0.0,
    "rg_index": 0.0,
    "facet_number": 0,
    "target_type": 0,
    "high_channel": False,
}

_DEFAULTED = ("scan_direction", "edge_of_flight_line", "classification", "synthetic", "key_point", "withheld")


@dataclass
class Point:
    """Format-agnostic LiDAR point.

    ``x``, ``y`` and ``z`` are always present and copied verbatim between
    formats. Optional dimensions are ``None`` when the originating format had
    no data for them; read them through :meth:`value_or_default` when a zero
    is acceptable, or :meth:`require` when it is not.
    """

    x: float
    y: float
    z: float
    intensity: Intensity = field(default_factory=Intensity)
    return_number: Optional[int] = None
    number_of_returns: Optional[int] = None
    scan_direction: ScanDirection = ScanDirection.UNKNOWN
    edge_of_flight_line: bool = False
    classification: int = 0  # 0 is "created, never classified"
    synthetic: bool = False
    key_point: bool = False
    withheld: bool = False
    scan_angle: Optional[float] = None  # degrees
    point_source_id: Optional[int] = None
    user_data: Optional[int] = None
    gps_time: Optional[float] = None  # seconds
    range: Optional[float] = None
    width: Optional[float] = None
    rg_index: Optional[float] = None
    facet_number: Optional[int] = None
    target_type: Optional[int] = None
    high_channel: Optional[bool] = None

    @property
    def xyz(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def value_or_default(self, name: str) -> Any:
        if name not in DIMENSIONS:
            raise KeyError(f"unknown point dimension '{name}'")
        value = getattr(self, name)
        if value is None:
            return _OPTIONAL_DEFAULTS[name]
        return value

    def require(self, name: str, label: Optional[str] = None) -> Any:
        value = getattr(self, name)
        if value is None:
            raise MissingDimension(label or name)
        return value

    def present_dimensions(self) -> List[str]:
        return [name for name in OPTIONAL_DIMENSIONS if getattr(self, name) is not None]

    def copy(self) -> "Point":
        return replace(self)


DIMENSIONS: Tuple[str, ...] = tuple(f.name for f in fields(Point))
OPTIONAL_DIMENSIONS: Tuple[str, ...] = tuple(_OPTIONAL_DEFAULTS)


def as_point(obj: Any) -> Point:
    """Convert anything point-like into a :class:`Point`.

    Accepts a ``Point`` (returned unchanged), a mapping, or any object with
    ``x``, ``y`` and ``z`` attributes. Known dimensions it carries are copied,
    everything else takes the default.
    """
    if isinstance(obj, Point):
        return obj
    if isinstance(obj, Mapping):
        get = obj.get
    else:
        def get(name: str, default: Any = None) -> Any:
            return getattr(obj, name, default)

    try:
        kwargs: Dict[str, Any] = {"x": float(get("x")), "y": float(get("y")), "z": float(get("z"))}
    except TypeError as exc:
        raise TypeError(f"{type(obj).__name__} does not provide x, y and z") from exc

    intensity = get("intensity")
    if isinstance(intensity, Intensity):
        kwargs["intensity"] = intensity
    elif intensity is not None:
        kwargs["intensity"] = Intensity.from_u16(intensity)

    scan_direction = get("scan_direction")
    if scan_direction is not None:
        kwargs["scan_direction"] = ScanDirection(scan_direction)

    for name in _DEFAULTED[1:] + OPTIONAL_DIMENSIONS:
        value = get(name)
        if value is not None:
            kwargs[name] = value
    return Point(**kwargs)
