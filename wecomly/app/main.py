"""
wecomly - WeCom channel adapter

FastAPI application entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from wecomly import __version__
from wecomly.app.api.webhooks import wecom_router
from wecomly.app.dependencies import get_settings, initialize_services, shutdown_services
from wecomly.pipeline.transports import TransportNotFoundError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting wecomly services...")
    try:
        await initialize_services()
        logger.info("wecomly services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down wecomly services...")
    try:
        await shutdown_services()
        logger.info("wecomly services shut down successfully")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)


app = FastAPI(
    title="wecomly",
    description="WeCom channel adapter - reliable delivery and inbound normalization for automated agents",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

app.include_router(wecom_router, prefix="/api/v1")


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint with service info."""
    return {
        "service": settings.service_name,
        "version": __version__,
        "status": "running",
    }


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, Any]:
    """
    Health check endpoint.

    Reports WeCom channel connectivity (token fetch or webhook probe).
    """
    from wecomly.app.dependencies import get_wecom_transport

    try:
        transport = get_wecom_transport()
    except TransportNotFoundError:
        return {"status": "disabled", "channel": None}

    channel = await transport.health_check()
    return {
        "status": "healthy" if channel["healthy"] else "unhealthy",
        "channel": channel,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "wecomly.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
