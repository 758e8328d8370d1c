"""
Storage contract used by the ingestor and the aggregator.

Host creation, renaming and deletion belong to the registry and are not
part of this interface.
"""
from datetime import datetime
from typing import Protocol

from statuspulse_server.models.models import HostRecord, HostStateUpdate, MetricSample


class MetricStore(Protocol):
    async def find_host_by_credential(self, credential: str) -> HostRecord | None:
        """Resolve a host credential, or None if it is unknown."""
        ...

    async def record_ingest(self, host_id: int, update: HostStateUpdate, sample: MetricSample) -> None:
        """
        Apply the host state update and append the sample atomically:
        either both are committed or neither is. An update whose
        last_seen_at is older than the stored one leaves the host as it is,
        but the sample is still appended.
        """
        ...

    async def fetch_samples(self, host_id: int, since: datetime) -> list[MetricSample]:
        """Samples for host_id with timestamp > since, oldest first."""
        ...

    async def fetch_latest(self, host_id: int) -> MetricSample | None:
        ...
