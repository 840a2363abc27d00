from __future__ import annotations

import pathlib
from typing import Any, List, Optional, TextIO

from ..config.schema import TEXT_DIMENSIONS, TextSinkConfig
from ..core.point import Point
from ..core.sink import Sink
from ..core.utils import get_logger
from ..errors import InvalidOption, TextError

_log = get_logger()

_ALWAYS_PRESENT = {"x", "y", "z", "intensity", "classification"}


def check_dimensions(dimensions: List[str]) -> List[str]:
    unknown = [d for d in dimensions if d not in TEXT_DIMENSIONS]
    if unknown:
        raise InvalidOption(f"text sink does not know how to write {unknown}")
    return list(dimensions)


class TextSink(Sink):
    """Whitespace separated text: a header line of dimension names, then one line per point.

    Intensity is written rescaled to 16 bits. Optional dimensions must be
    present on every point.
    """

    name = "txt"

    def __init__(self, fh: TextIO, dimensions: List[str], delimiter: str = " ", precision: Optional[int] = None) -> None:
        super().__init__()
        self.dimensions = check_dimensions(dimensions)
        self._fh = fh
        self.delimiter = delimiter
        self.precision = precision
        self.count = 0
        self._fh.write(delimiter.join(self.dimensions) + "\n")

    @classmethod
    def open(cls, path: str | pathlib.Path, config: Optional[TextSinkConfig] = None) -> "TextSink":
        config = config or TextSinkConfig()
        dimensions = check_dimensions(config.dimensions)
        path = pathlib.Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(path, "w", encoding="utf-8")
        except OSError as exc:
            raise TextError(f"unable to create {path}: {exc}") from exc
        try:
            sink = cls(fh, dimensions, config.delimiter, config.precision)
        except OSError as exc:
            fh.close()
            raise TextError(f"unable to write header to {path}: {exc}") from exc
        _log.info("Opened %s (txt: %s)", path.name, ",".join(dimensions))
        return sink

    def _format(self, value: Any) -> str:
        if isinstance(value, bool):
            return str(int(value))
        if isinstance(value, float) and self.precision is not None:
            return f"{value:.{self.precision}f}"
        return str(value)

    def _value(self, point: Point, name: str) -> Any:
        if name == "intensity":
            return point.intensity.rescaled_to_u16()
        if name in _ALWAYS_PRESENT:
            return getattr(point, name)
        return point.require(name, name.replace("_", " "))

    def _write(self, point: Point) -> None:
        fields = [self._format(self._value(point, name)) for name in self.dimensions]
        try:
            self._fh.write(self.delimiter.join(fields) + "\n")
        except OSError as exc:
            raise TextError(f"failed writing point: {exc}") from exc
        self.count += 1

    def _finalize(self) -> None:
        self._fh.close()
        _log.info("Wrote %d text points", self.count)
