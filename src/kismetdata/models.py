"""Pydantic models shared by both backends."""

from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field

REST_MODE = "rest"
DB_MODE = "db"


class Record(BaseModel):
    """One tracked device observation, or the end-of-stream sentinel."""

    model_config = ConfigDict(frozen=True)

    identifier: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    present: bool = True  # False marks end of stream; other fields are meaningless


END_OF_STREAM = Record(present=False)


class RestFilter(BaseModel):
    """Tracked-field selectors sent with a REST device query."""

    model_config = ConfigDict(frozen=True)

    fields: Tuple[str, ...]


class SnapshotFilter(BaseModel):
    """A single table plus the columns to read from it."""

    model_config = ConfigDict(frozen=True)

    table: str
    columns: Tuple[str, ...]


class RestSettings(BaseModel):
    device_view: str = "all"
    page_size: int = Field(default=500, gt=0)
    timeout_seconds: float = Field(default=20, gt=0)
    user_agent: str = "kismetdata/0.1"


class SnapshotSettings(BaseModel):
    """Column names mapped onto Record fields, first match wins."""

    identifier_columns: List[str] = Field(default_factory=lambda: ["devmac", "sourcemac", "macaddr"])
    latitude_columns: List[str] = Field(default_factory=lambda: ["avg_lat", "lat"])
    longitude_columns: List[str] = Field(default_factory=lambda: ["avg_lon", "lon"])


class ToolConfig(BaseModel):
    rest: RestSettings = Field(default_factory=RestSettings)
    snapshot: SnapshotSettings = Field(default_factory=SnapshotSettings)
