"""pointhub – a canonical LiDAR point and the adapters around it.

- Point & Intensity (core.point)
- Source / Sink streaming contracts (core.source, core.sink)
- Format adapters: las/laz, sdc, rxp, sdf, txt (formats.*)
- Extension dispatch (runtime.registry)
- Reader → writer conversion (sdk.run)
"""

__version__ = "0.4.0"

from .core.point import Intensity, Point, ScanDirection, as_point
from .core.source import MemorySource, Source
from .core.sink import MemorySink, Sink
from .errors import (
    ConfigurationError,
    InvalidOption,
    MissingDimension,
    PointhubError,
    UndefinedSink,
    UndefinedSource,
    UnregisteredFileExtension,
    UpstreamError,
)
from .runtime.registry import open_sink, open_source
from .sdk import convert
