from __future__ import annotations

from pathlib import Path

import laspy
import numpy as np
import yaml
from typer.testing import CliRunner

from pointhub import __version__
from pointhub.cli.main import app
from pointhub.formats.sdc import SdcSource


def _write_las(path: Path) -> None:
    hdr = laspy.LasHeader(point_format=1, version="1.2")
    hdr.scales = np.array([0.01, 0.01, 0.01])
    hdr.offsets = np.array([470000.0, 5300000.0, 0.0])
    las = laspy.LasData(hdr)
    las.x = np.array([470692.44, 470692.54, 470692.64, 470692.74])
    las.y = np.array([5363833.25, 5363833.35, 5363833.45, 5363833.55])
    las.z = np.array([101.5, 102.5, 103.5, 104.5])
    las.intensity = np.array([10, 20, 30, 40], dtype=np.uint16)
    las.gps_time = np.array([1.0, 2.0, 3.0, 4.0])
    las.scan_angle_rank = np.array([-5, 0, 5, 10], dtype=np.int8)
    las.write(path)


def test_cli_las_to_txt_with_config(tmp_path: Path) -> None:
    in_path = tmp_path / "in.las"
    _write_las(in_path)
    config = {
        "chunk_size": 3,
        "sink": {"dimensions": ["x", "y", "gps_time", "scan_angle"], "delimiter": ",", "precision": 2},
    }
    cfg_path = tmp_path / "config.yaml"
    with open(cfg_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f)

    out_path = tmp_path / "out.txt"
    runner = CliRunner()
    result = runner.invoke(app, ["convert", str(in_path), str(out_path), "--config", str(cfg_path)])

    assert result.exit_code == 0, result.output
    assert "Converted 4 points" in result.output
    lines = out_path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "x,y,gps_time,scan_angle"
    assert lines[1] == "470692.44,5363833.25,1.00,-5.00"
    assert len(lines) == 5


def test_cli_las_to_sdc_with_limit(tmp_path: Path) -> None:
    in_path = tmp_path / "in.las"
    _write_las(in_path)
    out_path = tmp_path / "out.sdc"

    runner = CliRunner()
    result = runner.invoke(app, ["convert", str(in_path), str(out_path), "--limit", "2"])

    assert result.exit_code == 0, result.output
    with SdcSource.open(out_path) as source:
        points = source.source_to_end(10)
    assert [p.gps_time for p in points] == [1.0, 2.0]
    assert [p.scan_angle for p in points] == [-5.0, 0.0]


def test_cli_unknown_extension_fails(tmp_path: Path) -> None:
    in_path = tmp_path / "in.las"
    _write_las(in_path)

    runner = CliRunner()
    result = runner.invoke(app, ["convert", str(in_path), str(tmp_path / "out.xyz")])

    assert result.exit_code == 1
    assert "ERROR" in result.output
    assert ".xyz" in result.output


def test_cli_bad_config_fails(tmp_path: Path) -> None:
    in_path = tmp_path / "in.las"
    _write_las(in_path)
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("sink:\n  point_format: 3\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["convert", str(in_path), str(tmp_path / "out.txt"), "-c", str(cfg_path)])

    assert result.exit_code == 1
    assert "point_format" in result.output


def test_cli_version() -> None:
    result = CliRunner().invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"pointhub {__version__}"


def test_cli_formats() -> None:
    result = CliRunner().invoke(app, ["formats"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert any(line.startswith("las  rw .las") for line in lines)
    assert any(line.startswith("txt  w  .txt") for line in lines)
    assert any(line.startswith("sdc  rw .sdc") for line in lines)
