from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from pointhub.errors import SdfError, UndefinedSource
from pointhub.formats import sdf
from pointhub.formats.sdf import SdfSource, install_backend, point_from_sdf
from pointhub.runtime.registry import default_registry


def _record(x: float, target: int = 1, num_target: int = 1) -> Dict[str, Any]:
    return {
        "x": x,
        "y": 2.0,
        "z": 3.0,
        "peak_amplitude": 1200,
        "target": target,
        "num_target": num_target,
        "facet": 2,
        "high_channel": 1,
        "time": 50.0 + x,
    }


class _FakeWaveformFile:
    def __init__(self, waveforms: List[List[Dict[str, Any]]]) -> None:
        self._waveforms = list(waveforms)
        self.reads = 0
        self.closed = False

    def read_points(self) -> Optional[List[Dict[str, Any]]]:
        self.reads += 1
        if not self._waveforms:
            return None
        return self._waveforms.pop(0)

    def record_count(self) -> Optional[int]:
        return 3

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def backend():
    opened: List[_FakeWaveformFile] = []

    def opener(path: str) -> _FakeWaveformFile:
        if path.endswith("missing.sdf"):
            raise FileNotFoundError(path)
        f = _FakeWaveformFile(
            [
                [_record(0.0, 1, 2), _record(1.0, 2, 2)],
                [],
                [_record(2.0), _record(3.0), _record(4.0)],
            ]
        )
        opened.append(f)
        return f

    install_backend(opener)
    yield opened
    install_backend(None)


def test_point_from_sdf() -> None:
    p = point_from_sdf(_record(5.0, 2, 3))
    assert p.xyz == (5.0, 2.0, 3.0)
    assert p.intensity.rescaled_to_u16() == 1200
    assert (p.return_number, p.number_of_returns) == (2, 3)
    assert p.facet_number == 2 and p.high_channel is True
    assert p.gps_time == 55.0
    assert p.scan_angle is None


def test_never_returns_more_than_want(backend) -> None:
    source = SdfSource.open("wave.sdf")
    sizes = []
    xs = []
    while True:
        chunk = source.source(1)
        if chunk is None:
            break
        sizes.append(len(chunk))
        xs.extend(p.x for p in chunk)
    assert sizes == [1] * 5
    assert xs == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert source.source(1) is None


def test_multi_target_records_are_split_across_pulls(backend) -> None:
    with SdfSource.open("wave.sdf") as source:
        assert source.source_len() == 3
        assert [p.x for p in source.source(3)] == [0.0, 1.0, 2.0]
        assert [p.x for p in source.source(3)] == [3.0, 4.0]
        assert source.source(3) is None
    assert backend[0].closed


def test_backend_oserror_is_wrapped(backend) -> None:
    with pytest.raises(SdfError):
        SdfSource.open("missing.sdf")


def test_without_backend_sdf_is_undefined() -> None:
    assert not sdf.have_backend()
    with pytest.raises(UndefinedSource) as info:
        default_registry().open_source("wave.sdf")
    assert info.value.kind == "sdf"
    with pytest.raises(SdfError):
        SdfSource.open("wave.sdf")


def test_registry_uses_installed_backend(backend) -> None:
    source = default_registry().open_source("wave.sdf")
    assert isinstance(source, SdfSource)
    assert len(source.source_to_end(2)) == 5
