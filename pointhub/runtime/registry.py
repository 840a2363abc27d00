"""Extension -> adapter dispatch.

Adapters register a source and/or sink factory under a kind (``"las"``) and
the file extensions they claim. Optional adapters register an availability
check, so the table itself never depends on what happens to be installed.
"""

from __future__ import annotations

import pathlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..config.schema import SinkConfig, SourceConfig
from ..core.sink import Sink
from ..core.source import Source
from ..core.utils import get_logger
from ..errors import (
    ConfigurationError,
    InvalidOption,
    UndefinedSink,
    UndefinedSource,
    UnregisteredFileExtension,
)
from ..formats import rxp, sdf
from ..formats.las import LasSink, LasSource
from ..formats.rxp import RxpSource
from ..formats.sdc import SdcSink, SdcSource
from ..formats.sdf import SdfSource
from ..formats.text import TextSink

_log = get_logger()

PathLike = Union[str, pathlib.Path]
ConfigPayload = Union[None, Dict[str, Any], BaseModel]
SourceFactory = Callable[[PathLike, Any], Source]
SinkFactory = Callable[[PathLike, Any], Sink]

_SOURCE_CONFIG = TypeAdapter(SourceConfig)
_SINK_CONFIG = TypeAdapter(SinkConfig)


@dataclass
class FormatEntry:
    kind: str
    extensions: List[str] = field(default_factory=list)
    source: Optional[SourceFactory] = None
    sink: Optional[SinkFactory] = None
    available: Callable[[], bool] = lambda: True
    unavailable_reason: str = ""
    # Validators for the options; without one the payload is passed through.
    source_options: Optional[TypeAdapter] = None
    sink_options: Optional[TypeAdapter] = None


def _parse_config(adapter: Optional[TypeAdapter], kind: str, payload: ConfigPayload) -> Any:
    if adapter is None:
        return payload
    if isinstance(payload, BaseModel):
        data = payload.model_dump()
    elif payload is None:
        data = {}
    elif isinstance(payload, dict):
        data = dict(payload)
    else:
        raise ConfigurationError(f"configuration for '{kind}' must be a mapping, got {type(payload).__name__}")
    named = data.get("kind")
    if named is not None and named != kind:
        raise ConfigurationError(f"configuration is for '{named}' but the selected adapter is '{kind}'")
    data["kind"] = kind
    try:
        return adapter.validate_python(data)
    except ValidationError as exc:
        if any(err["type"] == "extra_forbidden" for err in exc.errors()):
            raise InvalidOption(f"{kind} adapter does not support {_extra_keys(exc)}") from exc
        raise ConfigurationError(f"invalid {kind} configuration: {exc}") from exc


def _extra_keys(exc: ValidationError) -> List[str]:
    return [str(err["loc"][-1]) for err in exc.errors() if err["type"] == "extra_forbidden"]


class FormatRegistry:
    def __init__(self) -> None:
        self._entries: Dict[str, FormatEntry] = {}
        self._by_extension: Dict[str, str] = {}

    def register(
        self,
        kind: str,
        *,
        extensions: Sequence[str] = (),
        source: Optional[SourceFactory] = None,
        sink: Optional[SinkFactory] = None,
        available: Optional[Callable[[], bool]] = None,
        unavailable_reason: str = "",
        source_options: Optional[TypeAdapter] = None,
        sink_options: Optional[TypeAdapter] = None,
    ) -> FormatEntry:
        exts = [e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions]
        entry = FormatEntry(
            kind=kind,
            extensions=exts,
            source=source,
            sink=sink,
            available=available or (lambda: True),
            unavailable_reason=unavailable_reason,
            source_options=source_options,
            sink_options=sink_options,
        )
        self._entries[kind] = entry
        for ext in exts:
            self._by_extension[ext] = kind
        return entry

    def kinds(self) -> List[str]:
        return sorted(self._entries)

    def entry(self, kind: str) -> FormatEntry:
        try:
            return self._entries[kind]
        except KeyError:
            raise UnregisteredFileExtension(kind) from None

    def resolve(self, path: PathLike, kind: Optional[str] = None) -> FormatEntry:
        if kind is not None:
            return self.entry(kind)
        ext = pathlib.Path(path).suffix.lower()
        if ext not in self._by_extension:
            raise UnregisteredFileExtension(ext)
        return self._entries[self._by_extension[ext]]

    def open_source(self, path: PathLike, config: ConfigPayload = None, kind: Optional[str] = None) -> Source:
        entry = self.resolve(path, kind)
        if entry.source is None:
            raise UndefinedSource(entry.kind, "the format can only be written")
        if not entry.available():
            raise UndefinedSource(entry.kind, entry.unavailable_reason or "adapter is unavailable")
        cfg = _parse_config(entry.source_options, entry.kind, config)
        _log.debug("Opening %s source for %s", entry.kind, path)
        return entry.source(path, cfg)

    def open_sink(self, path: PathLike, config: ConfigPayload = None, kind: Optional[str] = None) -> Sink:
        entry = self.resolve(path, kind)
        if entry.sink is None:
            raise UndefinedSink(entry.kind, "the format can only be read")
        if not entry.available():
            raise UndefinedSink(entry.kind, entry.unavailable_reason or "adapter is unavailable")
        cfg = _parse_config(entry.sink_options, entry.kind, config)
        _log.debug("Opening %s sink for %s", entry.kind, path)
        return entry.sink(path, cfg)


def default_registry() -> FormatRegistry:
    registry = FormatRegistry()
    builtin = dict(source_options=_SOURCE_CONFIG, sink_options=_SINK_CONFIG)
    registry.register("las", extensions=[".las"], source=LasSource.open, sink=LasSink.open, **builtin)
    registry.register("laz", extensions=[".laz"], source=LasSource.open, sink=LasSink.open, **builtin)
    registry.register("sdc", extensions=[".sdc"], source=SdcSource.open, sink=SdcSink.open, **builtin)
    registry.register("txt", extensions=[".txt"], sink=TextSink.open, **builtin)
    registry.register(
        "rxp",
        extensions=[".rxp"],
        source=RxpSource.open,
        available=rxp.have_backend,
        unavailable_reason="PDAL python bindings are not installed",
        **builtin,
    )
    registry.register(
        "sdf",
        extensions=[".sdf"],
        source=SdfSource.open,
        available=sdf.have_backend,
        unavailable_reason="no waveform backend is installed",
        **builtin,
    )
    return registry


REGISTRY = default_registry()


def open_source(path: PathLike, config: ConfigPayload = None, kind: Optional[str] = None) -> Source:
    """Open a source for ``path`` chosen by ``kind`` or the file extension."""
    return REGISTRY.open_source(path, config, kind)


def open_sink(path: PathLike, config: ConfigPayload = None, kind: Optional[str] = None) -> Sink:
    """Open a sink for ``path`` chosen by ``kind`` or the file extension."""
    return REGISTRY.open_sink(path, config, kind)
