from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..config import PipelineConfig, load_config, parse_pipeline_config
from ..core.sink import Sink
from ..core.source import Source
from ..core.utils import get_logger
from ..runtime.registry import FormatRegistry, REGISTRY

_log = get_logger()


@dataclass(frozen=True)
class ConvertResult:
    """Summary of a conversion run."""

    points: int
    chunks: int
    limited: bool
    input_path: Path
    output_path: Path
    config: PipelineConfig


def transfer(source: Source, sink: Sink, chunk_size: int, limit: Optional[int] = None) -> tuple[int, int, bool]:
    """Push points from ``source`` into ``sink`` until the source ends or ``limit`` is hit.

    Returns ``(points, chunks, limited)``. Neither end is closed here.
    """
    count = 0
    chunks = 0
    for chunk in source.chunks(chunk_size):
        chunks += 1
        for point in chunk:
            sink.sink(point)
            count += 1
            if limit is not None and count >= limit:
                _log.info("Limit of %d points reached", limit)
                return count, chunks, True
        _log.debug("Transferred chunk %d (%d points so far)", chunks, count)
    return count, chunks, False


def convert(
    infile: Union[str, Path],
    outfile: Union[str, Path],
    config: Union[None, str, Path, dict, PipelineConfig] = None,
    *,
    limit: Optional[int] = None,
    chunk_size: Optional[int] = None,
    registry: Optional[FormatRegistry] = None,
) -> ConvertResult:
    """Convert ``infile`` into ``outfile``, choosing adapters by extension.

    Parameters
    ----------
    config:
        Path to a YAML/TOML file, a mapping, or a pre-loaded
        :class:`~pointhub.config.schema.PipelineConfig`. Its ``source`` and
        ``sink`` sections are handed to the selected adapters.
    limit, chunk_size:
        Optional overrides for the values in ``config``.
    registry:
        Adapter table to dispatch through; defaults to the process-wide one.

    Any error is fatal to the run: both ends are closed and the error
    propagates. The sink is still closed, so a partial output may remain.
    """
    if config is None:
        cfg = PipelineConfig()
    elif isinstance(config, PipelineConfig):
        cfg = config.model_copy(deep=True)
    elif isinstance(config, dict):
        cfg = parse_pipeline_config(config)
    else:
        cfg = load_config(config)
    overrides = {k: v for k, v in (("limit", limit), ("chunk_size", chunk_size)) if v is not None}
    if overrides:
        cfg = parse_pipeline_config({**cfg.model_dump(), **overrides})

    registry = registry or REGISTRY
    infile, outfile = Path(infile), Path(outfile)
    source = registry.open_source(infile, cfg.source)
    try:
        sink = registry.open_sink(outfile, cfg.sink)
        try:
            hint = source.source_len()
            if hint is not None:
                _log.info("Converting %s → %s (~%d points)", infile.name, outfile.name, hint)
            points, chunks, limited = transfer(source, sink, cfg.chunk_size, cfg.limit)
        finally:
            if not sink.closed:
                sink.close_sink()
    finally:
        source.close()

    _log.info("Converted %d points in %d chunks", points, chunks)
    return ConvertResult(
        points=points,
        chunks=chunks,
        limited=limited,
        input_path=infile,
        output_path=outfile,
        config=cfg,
    )
