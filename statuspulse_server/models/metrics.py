"""Wire models for snapshot ingestion and time-series queries"""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Agents send camelCase keys; snake_case is accepted as well."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
    )


class MemoryIn(WireModel):
    total: int = Field(ge=0)
    free: int = Field(default=0, ge=0)
    used: int = Field(default=0, ge=0)
    percent: float = Field(default=0.0, ge=0)


class DiskIn(WireModel):
    identifier: str = ""
    total: int = Field(default=0, ge=0)
    used: int = Field(default=0, ge=0)
    free: int = Field(default=0, ge=0)
    percent: float = Field(default=0.0, ge=0)


class NetworkInterfaceIn(WireModel):
    name: str
    download_rate_mbps: float = Field(default=0.0, ge=0)
    upload_rate_mbps: float = Field(default=0.0, ge=0)
    rx_bytes_cumulative: int = Field(default=0, ge=0)
    tx_bytes_cumulative: int = Field(default=0, ge=0)


class SnapshotIn(WireModel):
    """
    One snapshot as posted by an agent.

    The timestamp is informational; the collector stamps samples with its
    own receive time.
    """
    timestamp: datetime | None = None
    hostname: str = Field(min_length=1)
    platform: str = "unknown"
    cpu_percent: float = Field(ge=0, description="CPU utilisation over the sampling window")
    memory: MemoryIn
    disks: list[DiskIn] = Field(
        default_factory=list,
        description="Filesystems in OS order; the first one is the primary disk",
    )
    network_interfaces: list[NetworkInterfaceIn] = Field(
        default_factory=list,
        description="Interfaces in OS order; the first one is the primary interface",
    )
    uptime_seconds: float = Field(default=0.0, ge=0)

    @property
    def primary_disk(self) -> DiskIn | None:
        return self.disks[0] if self.disks else None

    @property
    def primary_interface(self) -> NetworkInterfaceIn | None:
        return self.network_interfaces[0] if self.network_interfaces else None


class MetricType(str, Enum):
    CPU = "cpu"
    RAM = "ram"
    DISK = "disk"
    NETWORK = "network"


class Window(str, Enum):
    ONE_HOUR = "1h"
    SIX_HOURS = "6h"
    ONE_DAY = "24h"
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"


class TimePoint(BaseModel):
    timestamp: datetime
    value: float


class NetworkTimePoint(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: datetime
    download_rate: float
    upload_rate: float
