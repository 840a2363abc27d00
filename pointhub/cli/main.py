from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from ..errors import PointhubError
from ..runtime.registry import REGISTRY
from ..sdk import convert as run_convert

app = typer.Typer(help="Convert LiDAR point clouds between formats")


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("pointhub").setLevel(numeric)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"pointhub {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Print the version and exit."
    ),
) -> None:
    """Point cloud format conversion."""


@app.command("convert")
def convert(
    infile: Path = typer.Argument(..., help="Input point cloud (.las, .laz, .sdc, .rxp, .sdf)."),
    outfile: Path = typer.Argument(..., help="Output point cloud (.las, .laz, .sdc, .txt)."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML or TOML configuration file."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Override the maximum number of points."),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", min=1, help="Override points pulled per read."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Read INFILE and write every point to OUTFILE."""

    _configure_logging(log_level)
    try:
        result = run_convert(infile, outfile, config, limit=limit, chunk_size=chunk_size)
    except (PointhubError, OSError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Converted {result.points} points → {result.output_path}")


@app.command("formats")
def formats() -> None:
    """List registered formats and whether they can be read or written."""

    for kind in REGISTRY.kinds():
        entry = REGISTRY.entry(kind)
        modes = "".join(m for m, f in (("r", entry.source), ("w", entry.sink)) if f is not None)
        status = "" if entry.available() else f" (unavailable: {entry.unavailable_reason})"
        typer.echo(f"{kind:<4} {modes:<2} {' '.join(entry.extensions)}{status}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
