from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    ValidationError,
    field_validator,
    model_validator,
)

from ..errors import ConfigurationError

DEFAULT_CHUNK_SIZE = 10_000

LAS_VERSIONS = ("1.0", "1.1", "1.2", "1.3", "1.4")
SDC_VERSIONS = ((5, 0), (5, 1), (5, 2), (5, 3), (5, 4))


class _AdapterConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")


class LasSourceConfig(_AdapterConfig):
    kind: Literal["las", "laz"] = "las"


class LasSinkConfig(_AdapterConfig):
    kind: Literal["las", "laz"] = "las"
    point_format: Optional[int] = None
    version: Optional[str] = None
    scale: tuple[float, float, float] = (1e-3, 1e-3, 1e-3)
    offset: Optional[tuple[float, float, float]] = None
    compress: Optional[bool] = None
    buffer_size: PositiveInt = 10_000

    @field_validator("point_format")
    @classmethod
    def _check_point_format(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 0 <= value <= 10:
            raise ValueError(f"unsupported las point format {value}")
        return value

    @field_validator("scale")
    @classmethod
    def _check_scale(cls, value: tuple[float, float, float]) -> tuple[float, float, float]:
        if any(s <= 0.0 for s in value):
            raise ValueError("scale factors must be positive")
        return value

    @model_validator(mode="after")
    def _check_version(self) -> "LasSinkConfig":
        if self.kind == "laz" and self.compress is False:
            raise ValueError("kind 'laz' implies compress=True")
        if self.version is None:
            return self
        if self.version not in LAS_VERSIONS:
            raise ValueError(f"unsupported las version '{self.version}'")
        if self.point_format is not None and required_las_version(self.point_format) > self.version:
            raise ValueError(f"point format {self.point_format} needs las version {required_las_version(self.point_format)}")
        return self


class SdcSourceConfig(_AdapterConfig):
    kind: Literal["sdc"] = "sdc"


class SdcSinkConfig(_AdapterConfig):
    kind: Literal["sdc"] = "sdc"
    version: tuple[int, int] = (5, 2)

    @field_validator("version", mode="before")
    @classmethod
    def _parse_version(cls, value: Any) -> Any:
        if isinstance(value, str):
            major, _, minor = value.partition(".")
            return (int(major), int(minor or 0))
        if isinstance(value, float):
            return cls._parse_version(f"{value:.1f}")
        return value

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: tuple[int, int]) -> tuple[int, int]:
        if tuple(value) not in SDC_VERSIONS:
            raise ValueError(f"unsupported sdc version {value[0]}.{value[1]}")
        return value


class RxpSourceConfig(_AdapterConfig):
    kind: Literal["rxp"] = "rxp"
    sync_to_pps: bool = True
    reflectance_range: tuple[float, float] = (-50.0, 50.0)
    read_chunk: PositiveInt = 100_000


class SdfSourceConfig(_AdapterConfig):
    kind: Literal["sdf"] = "sdf"


TEXT_DIMENSIONS = (
    "x",
    "y",
    "z",
    "intensity",
    "return_number",
    "number_of_returns",
    "classification",
    "scan_angle",
    "point_source_id",
    "user_data",
    "gps_time",
    "range",
    "width",
    "rg_index",
    "facet_number",
    "target_type",
    "high_channel",
)


class TextSinkConfig(_AdapterConfig):
    kind: Literal["txt"] = "txt"
    dimensions: List[str] = Field(default_factory=lambda: ["x", "y", "z"])
    delimiter: str = " "
    precision: Optional[int] = None

    @field_validator("dimensions")
    @classmethod
    def _check_dimensions(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("at least one dimension is required")
        unknown = [d for d in value if d not in TEXT_DIMENSIONS]
        if unknown:
            raise ValueError(f"text sink does not know how to write {unknown}")
        return value


SourceConfig = Annotated[
    Union[LasSourceConfig, SdcSourceConfig, RxpSourceConfig, SdfSourceConfig],
    Field(discriminator="kind"),
]

SinkConfig = Annotated[
    Union[LasSinkConfig, SdcSinkConfig, TextSinkConfig],
    Field(discriminator="kind"),
]


class PipelineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    limit: Optional[PositiveInt] = None
    chunk_size: PositiveInt = DEFAULT_CHUNK_SIZE
    source: Optional[Dict[str, Any]] = None
    sink: Optional[Dict[str, Any]] = None


def required_las_version(point_format: int) -> str:
    if point_format >= 6:
        return "1.4"
    if point_format >= 4:
        return "1.3"
    return "1.2"


def load_config(path: str | Path) -> PipelineConfig:
    """Read a YAML (or ``.toml``) pipeline configuration file."""
    path = Path(path)
    try:
        if path.suffix.lower() == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
    except (yaml.YAMLError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"unable to parse configuration file {path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping.")
    return parse_pipeline_config(data)


def parse_pipeline_config(data: Dict[str, Any]) -> PipelineConfig:
    try:
        return PipelineConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid pipeline configuration: {exc}") from exc
