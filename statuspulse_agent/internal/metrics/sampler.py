"""
Snapshot sampler for the StatusPulse agent.

Turns raw OS counters into one Snapshot per cycle. CPU utilisation and
network rates are derived from the difference between this cycle's
cumulative counters and the previous cycle's, so the Sampler keeps a
RateState between calls. sample() must not be called concurrently.
"""

import logging
import platform
import sys
import time
from collections.abc import Callable
from typing import Any

from statuspulse_agent.internal.errors import SamplingDegraded
from statuspulse_agent.internal.metrics.models import (
    CpuTimes,
    InterfaceRate,
    MemoryUsage,
    NetworkCounters,
    RateState,
    RawCounterSet,
    Snapshot,
    percent_of,
    utcnow,
)
from statuspulse_agent.internal.metrics.sources import SampleSource

logger = logging.getLogger(__name__)

# Rates are reported as bytes per second / 2**20. The collector and the
# dashboard both label this unit "Mbps".
BYTES_PER_MEGABIT_UNIT = 1024 * 1024

LOOPBACK_INTERFACES = {"lo", "lo0"}


def is_loopback(name: str) -> bool:
    return name in LOOPBACK_INTERFACES or name.startswith("Loopback")


def cpu_busy_percent(previous: list[CpuTimes] | None, current: list[CpuTimes]) -> float | None:
    """
    busy = 100 * (1 - idleDelta / totalDelta), summed over all cores.

    Returns None when no rate can be computed (no previous counters, or
    the counters went backwards).
    """
    if not previous or not current:
        return None
    idle_delta = sum(c.idle for c in current) - sum(p.idle for p in previous)
    total_delta = sum(c.total for c in current) - sum(p.total for p in previous)
    if total_delta <= 0:
        return None
    busy = 100.0 * (1.0 - idle_delta / total_delta)
    return min(100.0, max(0.0, busy))


def byte_rate_mbps(previous: int, current: int, elapsed: float) -> float:
    """Convert a cumulative byte counter delta to the Mbps unit; 0 on reset."""
    if elapsed <= 0 or current < previous:
        return 0.0
    return (current - previous) / elapsed / BYTES_PER_MEGABIT_UNIT


class Sampler:
    def __init__(
        self,
        source: SampleSource,
        hostname: str | None = None,
        platform_name: str | None = None,
        rate_state: RateState | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            source: Platform capability set that reads raw counters.
            hostname: Reported hostname (default: platform.node()).
            platform_name: Reported platform (default: sys.platform).
            rate_state: Previous-cycle counters; a fresh one if omitted.
            clock: Monotonic clock used for rate elapsed time.
        """
        self.source = source
        self.hostname = hostname or platform.node()
        self.platform_name = platform_name or sys.platform
        self.rate_state = rate_state if rate_state is not None else RateState()
        self._clock = clock

    def _measure(self, metric: str, reader: Callable[[], Any], default: Any) -> tuple[Any, bool]:
        """Run one reader; on failure log a degraded sample and return the default."""
        try:
            return reader(), True
        except SamplingDegraded as e:
            logger.warning(f"SamplingDegraded {e}")
        except Exception as e:
            logger.warning(f"SamplingDegraded {metric}: {type(e).__name__}: {e}")
        return default, False

    def read_counters(self) -> tuple[RawCounterSet, set[str]]:
        """
        Read every counter group. Returns the counter set and the names of
        the groups that were actually read.
        """
        ok = set()
        cpu, read = self._measure("cpu", self.source.read_cpu_counters, [])
        if read:
            ok.add("cpu")
        memory, read = self._measure("memory", self.source.read_memory, (0, 0))
        disks, read = self._measure("disk", self.source.read_disk_usage, [])
        network, read = self._measure("network", self.source.read_network_counters, {})
        if read:
            ok.add("network")
        uptime, _ = self._measure("uptime", self.source.read_uptime, 0.0)

        raw = RawCounterSet(
            cpu=cpu,
            memory_total=memory[0],
            memory_free=memory[1],
            disks=disks,
            network=network,
            uptime_seconds=uptime,
            captured_at=self._clock(),
        )
        return raw, ok

    def collect_cpu(self, current: list[CpuTimes]) -> float:
        busy = cpu_busy_percent(self.rate_state.previous_cpu_counters, current)
        if busy is None:
            if self.rate_state.previous_cpu_counters is None:
                reason = "no previous counters (first cycle)"
            else:
                reason = "counter delta not positive"
            logger.warning(f"SamplingDegraded cpu: {reason}, reporting 0")
            busy = 0.0
        self.rate_state.previous_cpu_counters = current
        return busy

    def collect_memory(self, total: int, free: int) -> MemoryUsage:
        used = max(0, total - free)
        return MemoryUsage(total=total, free=free, used=used, percent=percent_of(used, total))

    def collect_network(self, current: dict[str, NetworkCounters], captured_at: float) -> list[InterfaceRate]:
        previous = self.rate_state.previous_network_counters or {}
        previous_ts = self.rate_state.previous_network_timestamp
        elapsed = captured_at - previous_ts if previous_ts is not None else 0.0

        interfaces = []
        for name, counters in current.items():
            if is_loopback(name):
                continue
            prev = previous.get(name)
            if prev is None:
                down = up = 0.0
            else:
                down = byte_rate_mbps(prev.rx_bytes, counters.rx_bytes, elapsed)
                up = byte_rate_mbps(prev.tx_bytes, counters.tx_bytes, elapsed)
            interfaces.append(InterfaceRate(
                name=name,
                download_rate_mbps=down,
                upload_rate_mbps=up,
                rx_bytes_cumulative=counters.rx_bytes,
                tx_bytes_cumulative=counters.tx_bytes,
            ))

        self.rate_state.previous_network_counters = current
        self.rate_state.previous_network_timestamp = captured_at
        return interfaces

    def sample(self) -> Snapshot:
        """Take one Snapshot. Measurement failures degrade to zero/empty values."""
        timestamp = utcnow()
        raw, ok = self.read_counters()

        if "cpu" in ok:
            cpu_percent = self.collect_cpu(raw.cpu)
        else:
            # keep the old baseline so the next cycle can still compute a rate
            cpu_percent = 0.0

        if "network" in ok:
            interfaces = self.collect_network(raw.network, raw.captured_at)
        else:
            interfaces = []

        return Snapshot(
            timestamp=timestamp,
            hostname=self.hostname,
            platform=self.platform_name,
            cpu_percent=cpu_percent,
            memory=self.collect_memory(raw.memory_total, raw.memory_free),
            disks=tuple(raw.disks),
            network_interfaces=tuple(interfaces),
            uptime_seconds=raw.uptime_seconds,
        )

    def warm_up(self) -> None:
        """Establish the rate baseline. The resulting snapshot is discarded."""
        logger.info("Taking warm-up sample to establish rate baseline")
        self.sample()
