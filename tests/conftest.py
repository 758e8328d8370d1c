"""
Shared pytest fixtures for StatusPulse tests.

Fakes stand in for the OS counter source and the collector's database so
no real host measurements, network or PostgreSQL are needed.
"""

from datetime import UTC, datetime

import pytest

from statuspulse_agent.internal.metrics.models import CpuTimes, DiskUsage, NetworkCounters
from statuspulse_agent.internal.metrics.sources import SampleSource
from statuspulse_server.internal.errors import StorageUnavailable
from statuspulse_server.models.models import HostRecord, HostStatus

GB = 1024 ** 3


# =============================================================================
# Agent fakes
# =============================================================================

class FakeSource(SampleSource):
    """
    SampleSource returning whatever the test assigns. Assign an exception
    instance to make that reader fail.
    """

    name = "fake"

    def __init__(self):
        super().__init__()
        self.cpu = [CpuTimes(idle=100.0, total=200.0), CpuTimes(idle=100.0, total=200.0)]
        self.memory = (8 * GB, 2 * GB)
        self.disks = [DiskUsage("/dev/sda1", 100 * GB, 40 * GB, 60 * GB, 40.0)]
        self.network = {
            "lo": NetworkCounters(rx_bytes=5000, tx_bytes=5000),
            "eth0": NetworkCounters(rx_bytes=100, tx_bytes=100),
        }
        self.uptime = 3600.0
        self.calls = 0

    @staticmethod
    def _value(value):
        if isinstance(value, Exception):
            raise value
        return value

    def read_cpu_counters(self):
        self.calls += 1
        return self._value(self.cpu)

    def read_memory(self):
        return self._value(self.memory)

    def read_disk_usage(self):
        return self._value(self.disks)

    def read_network_counters(self):
        return self._value(self.network)

    def read_uptime(self):
        return self._value(self.uptime)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def fake_clock():
    return FakeClock()


# =============================================================================
# Collector fakes
# =============================================================================

class InMemoryStore:
    """MetricStore keeping hosts and samples in dicts and lists."""

    def __init__(self):
        self.hosts: dict[int, HostRecord] = {}
        self.samples = []
        self.fail_writes = False
        self.fail_reads = False

    def add_host(self, host_id: int, name: str, credential: str) -> HostRecord:
        host = HostRecord(id=host_id, name=name, credential=credential, status=HostStatus.INACTIVE)
        self.hosts[host_id] = host
        return host

    async def find_host_by_credential(self, credential):
        if self.fail_reads:
            raise StorageUnavailable("database offline")
        for host in self.hosts.values():
            if host.credential == credential:
                return host.model_copy()
        return None

    async def record_ingest(self, host_id, update, sample):
        if self.fail_writes:
            raise StorageUnavailable("database offline")
        host = self.hosts[host_id]
        if host.last_seen_at is None or host.last_seen_at <= update.last_seen_at:
            self.hosts[host_id] = host.model_copy(update=update.model_dump())
        self.samples.append(sample)

    async def fetch_samples(self, host_id, since):
        if self.fail_reads:
            raise StorageUnavailable("database offline")
        rows = [s for s in self.samples if s.host_id == host_id and s.timestamp > since]
        return sorted(rows, key=lambda s: s.timestamp)

    async def fetch_latest(self, host_id):
        rows = [s for s in self.samples if s.host_id == host_id]
        return max(rows, key=lambda s: s.timestamp) if rows else None


@pytest.fixture
def store():
    store = InMemoryStore()
    store.add_host(1, "web-1", "tok-web-1")
    store.add_host(2, "db-1", "tok-db-1")
    return store


@pytest.fixture
def fixed_now():
    return datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)


def snapshot_payload(cpu=20.0, ram=30.0, disk=40.0, disks=True, interfaces=True, **overrides):
    """Wire-format snapshot as an agent would post it."""
    payload = {
        "timestamp": "2026-10-19T11:59:58+00:00",
        "hostname": "web-1.internal",
        "platform": "linux",
        "cpuPercent": cpu,
        "memory": {"total": 8 * GB, "free": 4 * GB, "used": 4 * GB, "percent": ram},
        "disks": [
            {"identifier": "/dev/sda1", "total": 100 * GB, "used": 40 * GB, "free": 60 * GB, "percent": disk},
            {"identifier": "/dev/sdb1", "total": 500 * GB, "used": 10 * GB, "free": 490 * GB, "percent": 2.0},
        ] if disks else [],
        "networkInterfaces": [
            {"name": "eth0", "downloadRateMbps": 1.5, "uploadRateMbps": 0.25,
             "rxBytesCumulative": 123456, "txBytesCumulative": 65432},
        ] if interfaces else [],
        "uptimeSeconds": 86400,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_payload():
    return snapshot_payload
