# statuspulse_server/internal/query/aggregator.py

import logging
from datetime import UTC, datetime, timedelta

from statuspulse_server.internal.storage.store import MetricStore
from statuspulse_server.models.metrics import (
    MetricType,
    NetworkTimePoint,
    TimePoint,
    Window,
)
from statuspulse_server.models.models import MetricSample

logger = logging.getLogger(__name__)

WINDOW_SPANS = {
    Window.ONE_HOUR: timedelta(hours=1),
    Window.SIX_HOURS: timedelta(hours=6),
    Window.ONE_DAY: timedelta(hours=24),
    Window.SEVEN_DAYS: timedelta(days=7),
    Window.THIRTY_DAYS: timedelta(days=30),
}
DEFAULT_WINDOW = Window.ONE_DAY

# percent column read for each single-value metric
METRIC_COLUMNS = {
    MetricType.CPU: "cpu_percent",
    MetricType.RAM: "memory_percent",
    MetricType.DISK: "disk_percent",
}


def resolve_metric(metric: str | MetricType | None) -> MetricType:
    """Unknown metric names fall back to cpu."""
    try:
        return MetricType(metric)
    except ValueError:
        logger.warning(f"Unknown metric {metric!r} requested, falling back to 'cpu'")
        return MetricType.CPU


def resolve_window(window: str | Window | None) -> Window:
    """Unknown windows fall back to the last 24 hours."""
    try:
        return Window(window)
    except ValueError:
        logger.info(f"Unknown window {window!r} requested, using {DEFAULT_WINDOW.value}")
        return DEFAULT_WINDOW


def to_points(samples: list[MetricSample], metric: MetricType) -> list[TimePoint] | list[NetworkTimePoint]:
    if metric is MetricType.NETWORK:
        return [
            NetworkTimePoint(
                timestamp=s.timestamp,
                download_rate=s.network_download_rate,
                upload_rate=s.network_upload_rate,
            )
            for s in samples
        ]
    column = METRIC_COLUMNS[metric]
    return [TimePoint(timestamp=s.timestamp, value=getattr(s, column)) for s in samples]


class Aggregator:
    """
    Read-only windowed queries over stored samples. Rows are returned as
    stored, oldest first; no downsampling.
    """

    def __init__(self, store: MetricStore):
        self.store = store

    async def query(
        self,
        host_id: int,
        metric: str | MetricType | None,
        window: str | Window | None,
        now: datetime | None = None,
    ) -> list[TimePoint] | list[NetworkTimePoint]:
        metric = resolve_metric(metric)
        window = resolve_window(window)
        now = now or datetime.now(UTC)

        samples = await self.store.fetch_samples(host_id, now - WINDOW_SPANS[window])
        return to_points(samples, metric)

    async def latest(self, host_id: int) -> MetricSample | None:
        return await self.store.fetch_latest(host_id)
