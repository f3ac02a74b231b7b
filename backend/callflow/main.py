"""FastAPI application entry point."""

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from callflow.db.database import close_database, init_database

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    db_path = os.getenv("DATABASE_PATH", "./data/callflow.db")
    await init_database(db_path)
    logger.info(f"Opened database at {db_path}")

    yield

    # Shutdown
    await close_database()


app = FastAPI(
    title="Call Flow Versioning",
    description="Draft, publish and archive call-routing segment graphs",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers after app is created to avoid circular imports
from callflow.api import changesets, flows, graph  # noqa: E402

app.include_router(flows.router, prefix="/api/v1")
app.include_router(changesets.router, prefix="/api/v1")
app.include_router(graph.router, prefix="/api/v1")
