# statuspulse_server/main.py

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import asyncpg
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from statuspulse_server.internal.config.config import settings
from statuspulse_server.internal.storage.init_db import init_db
from statuspulse_server.internal.storage.postgres import close_db_pool, init_db_pool
from statuspulse_server.routers import metrics

logger = logging.getLogger("statuspulse_server")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Server starting up...")
    await init_db_pool()

    yield  # Application runs here

    logger.info("Server shutting down...")
    await close_db_pool()


app = FastAPI(
    title="StatusPulse Collector",
    description="Ingestion and query service for StatusPulse host telemetry.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Include Routers ---
app.include_router(metrics.router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "StatusPulse collector is running."}


@app.get("/health")
async def health_check():
    """Health check endpoint for deployment services"""
    return {
        "status": "healthy",
        "service": "statuspulse-collector",
        "version": app.version,
    }


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="StatusPulse collector")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=settings.server.host)
    serve_parser.add_argument("--port", type=int, default=settings.server.port)

    subparsers.add_parser("init-db", help="Create tables and indexes if missing")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    if args.command == "init-db":
        try:
            asyncio.run(init_db())
        except (ValueError, OSError, asyncpg.PostgresError) as e:
            logger.critical(f"Failed to initialize database schema: {e}")
            return 1
        return 0

    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
