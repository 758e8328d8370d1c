"""
Router for system metrics endpoints.
Handles snapshot ingestion from agents and time-series queries for the dashboard.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from statuspulse_server.internal.auth.jwt import get_current_user, get_host_credential
from statuspulse_server.internal.config.config import settings
from statuspulse_server.internal.errors import Malformed, StorageUnavailable, Unauthorized
from statuspulse_server.internal.ingest.ingestor import Ingestor
from statuspulse_server.internal.query.aggregator import Aggregator
from statuspulse_server.internal.storage.postgres import PostgresMetricStore, get_db_pool
from statuspulse_server.internal.storage.store import MetricStore
from statuspulse_server.models.models import TokenData

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store() -> MetricStore:
    """
    Dependency function to get the metric store.
    """
    pool = get_db_pool()
    if pool is None:
        raise HTTPException(status_code=503, detail="Database connection pool not available")
    return PostgresMetricStore(pool)


@router.post("/metrics")
async def ingest_metrics(
    request: Request,
    credential: str | None = Depends(get_host_credential),
    store: MetricStore = Depends(get_store),
):
    """
    Ingest one snapshot from an agent.

    The host is identified by the bearer credential it was issued. The body
    is read raw so the credential is checked before the JSON is decoded.
    """
    payload = await request.body()
    source_address = request.client.host if request.client else None
    ingestor = Ingestor(store, settings.thresholds)

    try:
        accepted = await ingestor.ingest(credential, payload, source_address=source_address)
    except Unauthorized as e:
        raise HTTPException(status_code=401, detail=str(e), headers={"WWW-Authenticate": "Bearer"})
    except Malformed as e:
        raise HTTPException(status_code=422, detail=f"Malformed snapshot: {e}")
    except StorageUnavailable as e:
        logger.error(f"Storage unavailable during ingestion: {e}")
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")

    return {"success": True, "status": accepted.status.value}


@router.get("/metrics/{host_id}")
async def get_metrics(
    host_id: int,
    metric: str = Query("cpu", alias="type"),  # Options: cpu, ram, disk, network
    period: str = "24h",  # Options: 1h, 6h, 24h, 7d, 30d
    current_user: TokenData = Depends(get_current_user),
    store: MetricStore = Depends(get_store),
) -> list[dict[str, Any]]:
    """
    Get a metric time series for a host within a window, oldest first.
    """
    try:
        points = await Aggregator(store).query(host_id, metric, period)
    except StorageUnavailable as e:
        logger.error(f"Storage unavailable during query for host {host_id}: {e}")
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")
    return [p.model_dump(mode="json", by_alias=True) for p in points]


@router.get("/metrics/{host_id}/latest")
async def get_latest_metrics(
    host_id: int,
    current_user: TokenData = Depends(get_current_user),
    store: MetricStore = Depends(get_store),
) -> dict[str, Any]:
    """
    Get the most recent stored sample for a host.
    """
    try:
        sample = await Aggregator(store).latest(host_id)
    except StorageUnavailable as e:
        logger.error(f"Storage unavailable reading latest sample for host {host_id}: {e}")
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable")
    if sample is None:
        raise HTTPException(status_code=404, detail="No samples for this host")
    return sample.model_dump(mode="json")
