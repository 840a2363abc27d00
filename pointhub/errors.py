"""Exception hierarchy shared by every adapter, the dispatcher and the pipeline."""

from __future__ import annotations

from typing import Optional


class PointhubError(Exception):
    """Base class for all pointhub errors."""


class MissingDimension(PointhubError, ValueError):
    """A sink needs a dimension that the point does not carry."""

    def __init__(self, dimension: str) -> None:
        super().__init__(f"point is missing required dimension '{dimension}'")
        self.dimension = dimension


class ConfigurationError(PointhubError, ValueError):
    """A configuration document or value is malformed."""


class InvalidOption(ConfigurationError):
    """An option is not supported by the selected adapter."""


class UnregisteredFileExtension(PointhubError):
    def __init__(self, extension: str) -> None:
        shown = extension or "<none>"
        super().__init__(f"no format adapter is registered for extension '{shown}'")
        self.extension = extension


class UndefinedSource(PointhubError):
    """The adapter exists but cannot act as a source in this installation."""

    def __init__(self, kind: str, reason: str) -> None:
        super().__init__(f"cannot open a '{kind}' source: {reason}")
        self.kind = kind


class UndefinedSink(PointhubError):
    """The adapter exists but cannot act as a sink in this installation."""

    def __init__(self, kind: str, reason: str) -> None:
        super().__init__(f"cannot open a '{kind}' sink: {reason}")
        self.kind = kind


class UpstreamError(PointhubError):
    """Failure raised by a format library, tagged with the adapter it came from."""

    adapter: str = "unknown"

    def __init__(self, message: str, adapter: Optional[str] = None) -> None:
        if adapter is not None:
            self.adapter = adapter
        super().__init__(f"[{self.adapter}] {message}")


class LasError(UpstreamError):
    adapter = "las"


class SdcError(UpstreamError):
    adapter = "sdc"


class RxpError(UpstreamError):
    adapter = "rxp"


class SdfError(UpstreamError):
    adapter = "sdf"


class TextError(UpstreamError):
    adapter = "txt"


class SinkClosed(PointhubError):
    """A sink was used after ``close_sink``."""


class UnboundedSource(PointhubError):
    """``source_to_end`` was called on a source without a natural end."""
