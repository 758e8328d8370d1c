"""
Data types exchanged between the sample source, the sampler and the reporter.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def percent_of(used: float, total: float) -> float:
    """Return used/total as a percentage, 0.0 when total is not positive."""
    if total <= 0:
        return 0.0
    return used / total * 100


@dataclass(frozen=True)
class CpuTimes:
    """Cumulative time-in-state for one core, seconds since boot."""
    idle: float
    total: float


@dataclass(frozen=True)
class NetworkCounters:
    """Cumulative byte counters for one interface."""
    rx_bytes: int
    tx_bytes: int


@dataclass(frozen=True)
class MemoryUsage:
    total: int
    free: int
    used: int
    percent: float

    def to_payload(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "free": self.free,
            "used": self.used,
            "percent": self.percent,
        }


@dataclass(frozen=True)
class DiskUsage:
    identifier: str
    total: int
    used: int
    free: int
    percent: float

    def to_payload(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "total": self.total,
            "used": self.used,
            "free": self.free,
            "percent": self.percent,
        }


@dataclass(frozen=True)
class InterfaceRate:
    name: str
    download_rate_mbps: float
    upload_rate_mbps: float
    rx_bytes_cumulative: int
    tx_bytes_cumulative: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "downloadRateMbps": self.download_rate_mbps,
            "uploadRateMbps": self.upload_rate_mbps,
            "rxBytesCumulative": self.rx_bytes_cumulative,
            "txBytesCumulative": self.tx_bytes_cumulative,
        }


@dataclass(frozen=True)
class Snapshot:
    """
    One complete set of measurements captured in a single sampling cycle.

    Immutable once built; the reporter serialises it with to_payload().
    """
    timestamp: datetime
    hostname: str
    platform: str
    cpu_percent: float
    memory: MemoryUsage
    disks: tuple[DiskUsage, ...] = ()
    network_interfaces: tuple[InterfaceRate, ...] = ()
    uptime_seconds: float = 0.0

    @property
    def primary_disk(self) -> DiskUsage | None:
        return self.disks[0] if self.disks else None

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON body the collector's ingestion endpoint expects."""
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        return {
            "timestamp": ts.isoformat(),
            "hostname": self.hostname,
            "platform": self.platform,
            "cpuPercent": self.cpu_percent,
            "memory": self.memory.to_payload(),
            "disks": [d.to_payload() for d in self.disks],
            "networkInterfaces": [n.to_payload() for n in self.network_interfaces],
            "uptimeSeconds": self.uptime_seconds,
        }


@dataclass
class RateState:
    """
    Previous-cycle counters carried forward by one Sampler.

    Empty on construction; the first cycle only fills it in.
    """
    previous_cpu_counters: list[CpuTimes] | None = None
    previous_network_counters: dict[str, NetworkCounters] | None = None
    previous_network_timestamp: float | None = None


@dataclass(frozen=True)
class RawCounterSet:
    """Counters read from the OS in one cycle. Never persisted."""
    cpu: list[CpuTimes] = field(default_factory=list)
    memory_total: int = 0
    memory_free: int = 0
    disks: list[DiskUsage] = field(default_factory=list)
    network: dict[str, NetworkCounters] = field(default_factory=dict)
    uptime_seconds: float = 0.0
    captured_at: float = 0.0


def utcnow() -> datetime:
    return datetime.now(UTC)
