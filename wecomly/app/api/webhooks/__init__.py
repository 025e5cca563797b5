"""Inbound webhook routes."""

from wecomly.app.api.webhooks.wecom import router as wecom_router

__all__ = ["wecom_router"]
