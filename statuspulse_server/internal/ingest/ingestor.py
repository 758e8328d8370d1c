"""
Snapshot ingestion for the StatusPulse collector.

Authenticates the sending host, classifies its health from the snapshot,
and persists the host state update together with one metric sample.
"""

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from statuspulse_server.internal.config.config import ThresholdSettings
from statuspulse_server.internal.errors import Malformed, Unauthorized
from statuspulse_server.internal.ingest.status import classify_status
from statuspulse_server.internal.storage.store import MetricStore
from statuspulse_server.models.metrics import SnapshotIn
from statuspulse_server.models.models import (
    Accepted,
    HostStateUpdate,
    MetricSample,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_snapshot(payload: SnapshotIn | dict[str, Any] | bytes | str) -> SnapshotIn:
    """Validate a snapshot given as a model, a dict, or a raw JSON body."""
    if isinstance(payload, SnapshotIn):
        return payload
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise Malformed(f"body is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise Malformed(f"snapshot must be a JSON object, got {type(payload).__name__}")
    try:
        return SnapshotIn.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
            for err in e.errors()
        )
        raise Malformed(problems) from e


def build_sample(host_id: int, snapshot: SnapshotIn, received_at: datetime) -> MetricSample:
    """
    Flatten a snapshot into a sample row. A missing primary disk or
    interface is stored as zeros.
    """
    disk = snapshot.primary_disk
    nic = snapshot.primary_interface
    return MetricSample(
        host_id=host_id,
        timestamp=received_at,
        cpu_percent=snapshot.cpu_percent,
        memory_total=snapshot.memory.total,
        memory_used=snapshot.memory.used,
        memory_free=snapshot.memory.free,
        memory_percent=snapshot.memory.percent,
        disk_total=disk.total if disk else 0,
        disk_used=disk.used if disk else 0,
        disk_free=disk.free if disk else 0,
        disk_percent=disk.percent if disk else 0.0,
        network_download_rate=nic.download_rate_mbps if nic else 0.0,
        network_upload_rate=nic.upload_rate_mbps if nic else 0.0,
    )


class Ingestor:
    def __init__(
        self,
        store: MetricStore,
        thresholds: ThresholdSettings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.thresholds = thresholds
        self._clock = clock

    async def ingest(
        self,
        credential: str | None,
        payload: SnapshotIn | dict[str, Any] | bytes | str,
        source_address: str | None = None,
    ) -> Accepted:
        """
        Accept one snapshot from a host.

        The sample and lastSeenAt use the collector's clock, not the
        agent's timestamp, so a skewed agent clock cannot reorder a series.

        Raises:
            Unauthorized: missing or unknown credential. Nothing is written.
            Malformed: the payload fails validation. Nothing is written.
            StorageUnavailable: the store failed; the transaction is rolled back.
        """
        if not credential:
            raise Unauthorized("host credential missing")

        host = await self.store.find_host_by_credential(credential)
        if host is None:
            logger.warning(f"Rejected snapshot from {source_address or 'unknown address'}: unknown credential")
            raise Unauthorized("invalid host credential")

        try:
            snapshot = parse_snapshot(payload)
        except Malformed as e:
            logger.warning(f"Rejected malformed snapshot from host {host.id}: {e}")
            raise

        disk = snapshot.primary_disk
        status = classify_status(
            snapshot.cpu_percent,
            snapshot.memory.percent,
            disk.percent if disk else 0.0,
            self.thresholds,
        )

        received_at = self._clock()
        update = HostStateUpdate(
            status=status,
            hostname=snapshot.hostname,
            source_address=source_address,
            uptime_seconds=snapshot.uptime_seconds,
            last_seen_at=received_at,
        )
        await self.store.record_ingest(host.id, update, build_sample(host.id, snapshot, received_at))

        if status != host.status:
            logger.info(f"Host {host.id} ({host.name}) status {host.status.value} -> {status.value}")
        logger.debug(
            f"Stored sample for host {host.id}: cpu={snapshot.cpu_percent:.1f} "
            f"mem={snapshot.memory.percent:.1f} disk={disk.percent if disk else 0.0:.1f}"
        )
        return Accepted(host_id=host.id, status=status, received_at=received_at)
