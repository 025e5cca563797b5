"""
Dependency Injection for wecomly.

Provides process-wide singletons: settings read from the environment,
the delivery pipeline, and the registered WeCom transport.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Optional, cast

from wecomly.config import AppSettings, WeComConfig
from wecomly.pipeline import DeliveryPipeline, LoggingObserver
from wecomly.pipeline.transports import (
    WeComTransport,
    get_transport,
    register_transport,
    reset_transport_registry,
)

logger = logging.getLogger(__name__)


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else None


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings from environment.

    Uses lru_cache for singleton pattern.
    """
    allow_from = os.getenv("WECOMLY_WECOM_ALLOW_FROM", "")
    wecom = WeComConfig(
        enabled=os.getenv("WECOMLY_WECOM_ENABLED", "true").lower() == "true",
        corp_id=os.getenv("WECOMLY_WECOM_CORP_ID") or None,
        corp_secret=os.getenv("WECOMLY_WECOM_CORP_SECRET") or None,
        agent_id=_env_int("WECOMLY_WECOM_AGENT_ID"),
        webhook_url=os.getenv("WECOMLY_WECOM_WEBHOOK_URL") or None,
        dm_policy=os.getenv("WECOMLY_WECOM_DM_POLICY", "pairing"),
        allow_from=[item.strip() for item in allow_from.split(",") if item.strip()],
        proxy=os.getenv("WECOMLY_WECOM_PROXY") or None,
        message_prefix=os.getenv("WECOMLY_WECOM_MESSAGE_PREFIX") or None,
        token_refresh_interval=float(os.getenv("WECOMLY_WECOM_TOKEN_REFRESH_INTERVAL", "3600")),
        max_retries=int(os.getenv("WECOMLY_WECOM_MAX_RETRIES", "3")),
        timeout_ms=int(os.getenv("WECOMLY_WECOM_TIMEOUT_MS", "10000")),
    )
    return AppSettings(
        service_name=os.getenv("WECOMLY_SERVICE_NAME", "wecomly"),
        environment=os.getenv("WECOMLY_ENVIRONMENT", "development"),
        debug=os.getenv("WECOMLY_DEBUG", "false").lower() == "true",
        log_level=os.getenv("WECOMLY_LOG_LEVEL", "INFO"),
        wecom=wecom,
    )


# Global instances (initialized on startup)
_pipeline: Optional[DeliveryPipeline] = None


def get_pipeline() -> DeliveryPipeline:
    """
    Get the delivery pipeline.

    Creates the pipeline on first call; raises ConfigError if the
    channel configuration is invalid.
    """
    global _pipeline
    if _pipeline is None:
        settings = get_settings()
        _pipeline = DeliveryPipeline.from_config(
            settings.wecom,
            observer=LoggingObserver(extra_context={"service": settings.service_name}),
        )
    return _pipeline


def get_wecom_transport() -> WeComTransport:
    """Get the registered WeCom transport."""
    return cast(WeComTransport, get_transport("wecom"))


async def initialize_services() -> None:
    """
    Initialize services on application startup.

    Called from FastAPI lifespan. Does nothing if the channel is disabled.
    """
    settings = get_settings()
    if not settings.wecom.enabled:
        logger.info("[wecom] Channel disabled; skipping initialization")
        return

    pipeline = get_pipeline()
    pipeline.start()
    register_transport(WeComTransport(pipeline, settings.wecom))
    logger.info(f"[wecom] Channel initialized in {settings.wecom.mode.value} mode")


async def shutdown_services() -> None:
    """
    Cleanup services on application shutdown.

    Called from FastAPI lifespan.
    """
    global _pipeline
    if _pipeline is not None:
        await _pipeline.close()
        _pipeline = None
    reset_transport_registry()
