# statuspulse_server/internal/ingest/status.py

from statuspulse_server.internal.config.config import ThresholdSettings
from statuspulse_server.models.models import HostStatus


def classify_status(
    cpu_percent: float,
    memory_percent: float,
    disk_percent: float,
    thresholds: ThresholdSettings,
) -> HostStatus:
    """
    Derive host health from the three headline metrics.

    The critical level is checked across all three metrics before the
    warning level is considered, so any single metric at or above
    critical makes the host critical.
    """
    metrics = (cpu_percent, memory_percent, disk_percent)
    if any(value >= thresholds.critical for value in metrics):
        return HostStatus.CRITICAL
    if any(value >= thresholds.warning for value in metrics):
        return HostStatus.WARNING
    return HostStatus.HEALTHY
