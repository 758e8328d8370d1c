# statuspulse_server/models/models.py

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr


class HostStatus(str, Enum):
    """
    Derived health of a monitored host.
    inactive: registered but has never reported
    healthy / warning / critical: classification of the latest snapshot
    """
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    INACTIVE = "inactive"


class HostRecord(BaseModel):
    """
    Latest-known state of one monitored host, as stored by the registry.
    Built straight from an asyncpg.Record.
    """
    id: int
    name: str
    credential: str
    status: HostStatus = HostStatus.INACTIVE
    hostname: str | None = None
    last_seen_at: datetime | None = None
    uptime_seconds: float | None = None
    source_address: str | None = None


class HostStateUpdate(BaseModel):
    """Fields the ingestor writes to a HostRecord on every accepted snapshot."""
    status: HostStatus
    hostname: str
    source_address: str | None = None
    uptime_seconds: float
    last_seen_at: datetime


class MetricSample(BaseModel):
    """
    One persisted data point. Only the primary disk and primary network
    interface are kept.
    """
    model_config = ConfigDict(from_attributes=True)

    host_id: int
    timestamp: datetime
    cpu_percent: float
    memory_total: int = 0
    memory_used: int = 0
    memory_free: int = 0
    memory_percent: float = 0.0
    disk_total: int = 0
    disk_used: int = 0
    disk_free: int = 0
    disk_percent: float = 0.0
    network_download_rate: float = 0.0
    network_upload_rate: float = 0.0


class Accepted(BaseModel):
    """Result of a successful ingestion."""
    host_id: int
    status: HostStatus
    received_at: datetime


class TokenData(BaseModel):
    """
    Pydantic model for the data encoded within a dashboard JWT.
    """
    email: EmailStr | None = None
    role: str | None = None
