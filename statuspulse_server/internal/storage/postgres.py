# statuspulse_server/internal/storage/postgres.py

import logging
from datetime import datetime

import asyncpg

from statuspulse_server.internal.config.config import DB_URL, settings
from statuspulse_server.internal.errors import StorageUnavailable
from statuspulse_server.models.models import HostRecord, HostStateUpdate, MetricSample

logger = logging.getLogger(__name__)

# We'll create a global pool variable
db_pool: asyncpg.Pool | None = None

# Errors that mean "try again later" rather than "bad request"
TRANSIENT_ERRORS = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.SerializationError,
    asyncpg.exceptions.DeadlockDetectedError,
    ConnectionError,
    OSError,
)

SAMPLE_COLUMNS = """
    host_id, timestamp, cpu_percent,
    memory_total, memory_used, memory_free, memory_percent,
    disk_total, disk_used, disk_free, disk_percent,
    network_download_rate, network_upload_rate
"""


async def init_db_pool():
    """
    Initializes the asyncpg connection pool.
    """
    global db_pool
    if not DB_URL:
        logger.critical("Database URL not configured. Add a [database] section to config.toml.")
        raise ValueError("Database configuration is missing.")

    db = settings.database
    db_pool = await asyncpg.create_pool(
        DB_URL,
        min_size=db.min_pool_size,
        max_size=db.max_pool_size,
    )
    logger.info("Database connection pool established.")


async def close_db_pool():
    """
    Closes the asyncpg connection pool.
    """
    global db_pool
    if db_pool:
        await db_pool.close()
        db_pool = None
        logger.info("Database connection pool closed.")


def get_db_pool() -> asyncpg.Pool | None:
    return db_pool


class PostgresMetricStore:
    """MetricStore backed by the hosts and metric_samples tables."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def find_host_by_credential(self, credential: str) -> HostRecord | None:
        try:
            async with self.pool.acquire() as conn:
                record = await conn.fetchrow(
                    """
                    SELECT id, name, credential, status, hostname,
                           last_seen_at, uptime_seconds, source_address
                    FROM hosts
                    WHERE credential = $1
                    """,
                    credential,
                )
        except TRANSIENT_ERRORS as e:
            raise StorageUnavailable(f"host lookup failed: {e}") from e
        if not record:
            return None
        return HostRecord.model_validate(dict(record))

    async def record_ingest(self, host_id: int, update: HostStateUpdate, sample: MetricSample) -> None:
        try:
            async with self.pool.acquire() as conn:
                # Deliveries for one host can reach the row lock out of order;
                # an update older than the stored last_seen_at is skipped so the
                # latest arrival wins. The sample is inserted either way.
                async with conn.transaction():
                    result = await conn.execute(
                        """
                        UPDATE hosts
                        SET status = $1, hostname = $2, source_address = $3,
                            uptime_seconds = $4, last_seen_at = $5
                        WHERE id = $6
                          AND (last_seen_at IS NULL OR last_seen_at <= $5)
                        """,
                        update.status.value,
                        update.hostname,
                        update.source_address,
                        update.uptime_seconds,
                        update.last_seen_at,
                        host_id,
                    )
                    if result == "UPDATE 0":
                        logger.debug(f"Host {host_id} already has a newer state than {update.last_seen_at}, keeping it")
                    await conn.execute(
                        f"""
                        INSERT INTO metric_samples ({SAMPLE_COLUMNS})
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                        """,
                        host_id,
                        sample.timestamp,
                        sample.cpu_percent,
                        sample.memory_total,
                        sample.memory_used,
                        sample.memory_free,
                        sample.memory_percent,
                        sample.disk_total,
                        sample.disk_used,
                        sample.disk_free,
                        sample.disk_percent,
                        sample.network_download_rate,
                        sample.network_upload_rate,
                    )
        except TRANSIENT_ERRORS as e:
            raise StorageUnavailable(f"could not store sample for host {host_id}: {e}") from e

    async def fetch_samples(self, host_id: int, since: datetime) -> list[MetricSample]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {SAMPLE_COLUMNS}
                    FROM metric_samples
                    WHERE host_id = $1 AND timestamp > $2
                    ORDER BY timestamp ASC
                    """,
                    host_id,
                    since,
                )
        except TRANSIENT_ERRORS as e:
            raise StorageUnavailable(f"could not read samples for host {host_id}: {e}") from e
        return [MetricSample.model_validate(dict(row)) for row in rows]

    async def fetch_latest(self, host_id: int) -> MetricSample | None:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {SAMPLE_COLUMNS}
                    FROM metric_samples
                    WHERE host_id = $1
                    ORDER BY timestamp DESC
                    LIMIT 1
                    """,
                    host_id,
                )
        except TRANSIENT_ERRORS as e:
            raise StorageUnavailable(f"could not read latest sample for host {host_id}: {e}") from e
        if not row:
            return None
        return MetricSample.model_validate(dict(row))

