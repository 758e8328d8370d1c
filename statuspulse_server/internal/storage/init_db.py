"""Database initialization and schema management"""
import logging

import asyncpg

from statuspulse_server.internal.config.config import DB_URL

logger = logging.getLogger(__name__)


async def init_db():
    """
    Initialize database schema.

    The hosts table is normally owned by the registry; it is created here
    only if missing so a fresh collector can start on an empty database.
    """
    if not DB_URL:
        raise ValueError("Database configuration is missing.")

    conn = await asyncpg.connect(DB_URL)
    try:
        await conn.execute('''
        CREATE TABLE IF NOT EXISTS hosts (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            credential VARCHAR(255) NOT NULL UNIQUE,
            status VARCHAR(20) NOT NULL DEFAULT 'inactive',
            hostname VARCHAR(255),
            last_seen_at TIMESTAMP WITH TIME ZONE,
            uptime_seconds DOUBLE PRECISION,
            source_address VARCHAR(64),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        );
        ''')

        await conn.execute('''
        CREATE TABLE IF NOT EXISTS metric_samples (
            id BIGSERIAL PRIMARY KEY,
            host_id BIGINT NOT NULL REFERENCES hosts(id) ON DELETE CASCADE,
            timestamp TIMESTAMP WITH TIME ZONE NOT NULL,
            cpu_percent DOUBLE PRECISION NOT NULL,
            memory_total BIGINT NOT NULL DEFAULT 0,
            memory_used BIGINT NOT NULL DEFAULT 0,
            memory_free BIGINT NOT NULL DEFAULT 0,
            memory_percent DOUBLE PRECISION NOT NULL DEFAULT 0,
            disk_total BIGINT NOT NULL DEFAULT 0,
            disk_used BIGINT NOT NULL DEFAULT 0,
            disk_free BIGINT NOT NULL DEFAULT 0,
            disk_percent DOUBLE PRECISION NOT NULL DEFAULT 0,
            network_download_rate DOUBLE PRECISION NOT NULL DEFAULT 0,
            network_upload_rate DOUBLE PRECISION NOT NULL DEFAULT 0
        );
        ''')

        # Window queries filter on (host_id, timestamp)
        await conn.execute('''
        CREATE INDEX IF NOT EXISTS idx_metric_samples_host_time
        ON metric_samples(host_id, timestamp);
        ''')

        await conn.execute('''
        CREATE INDEX IF NOT EXISTS idx_hosts_credential ON hosts(credential);
        ''')
    finally:
        await conn.close()
    logger.info("Database schema initialized successfully.")
